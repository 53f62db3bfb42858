"""
Extractions: Pydantic Request/Response Schemas

Covers every /api/extractions route:
  - Upload acknowledgement (201)
  - List items (no originalText) and the full single-record payload
  - Update / share / reassign request bodies
  - Dashboard counters
  - The uniform error envelope used by every 4xx/5xx response

Wire format is camelCase (fileName, documentType, sharedWith, ...); Python
code uses the snake_case field names. ORM rows are validated directly
(from_attributes), so relationship attributes such as owner and shared_with
are resolved to user summaries without any manual mapping.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


# ---------------------------------------------------------------------------
# Allowed MIME types: enforced before a record is created
# ---------------------------------------------------------------------------

MIME_PDF  = "application/pdf"
MIME_TEXT = "text/plain"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset({MIME_PDF, MIME_TEXT, MIME_DOCX})

# Used only when the client sends no usable part type
EXTENSION_CONTENT_TYPES: dict[str, str] = {
    ".pdf":  MIME_PDF,
    ".txt":  MIME_TEXT,
    ".docx": MIME_DOCX,
}

MAX_FILE_NAME_LENGTH = 255
MAX_SUMMARY_LENGTH   = 1000


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Processing state machine
# ---------------------------------------------------------------------------

class ExtractionStatus(str, Enum):
    """
    Maps to extractions.status.
    Transitions: processing → completed | failed (terminal)
    """
    PROCESSING = "processing"
    COMPLETED  = "completed"
    FAILED     = "failed"


# ---------------------------------------------------------------------------
# Users as they appear inside extraction payloads
# ---------------------------------------------------------------------------

class UserSummary(_CamelModel):
    id:    UUID
    email: str
    role:  str


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class UploadResponse(_CamelModel):
    """
    Returned immediately after a valid upload.
    HTTP 201: the record exists in `processing`; extraction runs afterwards.
    """
    message:       str = "Document processing started"
    extraction_id: UUID
    file_name:     str


class ExtractionListItem(_CamelModel):
    """One row of GET /api/extractions. Never carries originalText."""
    id:            UUID
    owner_id:      UUID
    owner:         Optional[UserSummary] = None
    status:        ExtractionStatus
    file_name:     str
    document_type: str
    summary:       Optional[str] = None
    shared_with:   list[UserSummary] = Field(default_factory=list)
    created_at:    datetime
    updated_at:    datetime


class ExtractionDetail(ExtractionListItem):
    """GET /api/extractions/{id}: the full record."""
    original_text: Optional[str] = None


class ExtractionMutationResponse(_CamelModel):
    message:    str
    extraction: ExtractionDetail


class MessageResponse(_CamelModel):
    message: str


class ExtractionStats(_CamelModel):
    """Counters over the records visible to the caller."""
    total_extractions: int = 0
    completed:         int = 0
    processing:        int = 0
    failed:            int = 0


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class ExtractionUpdateRequest(_CamelModel):
    """PUT /api/extractions/{id}: at least one field is required."""
    file_name: Optional[str] = Field(None, max_length=MAX_FILE_NAME_LENGTH)
    summary:   Optional[str] = Field(None, max_length=MAX_SUMMARY_LENGTH)

    @field_validator("file_name")
    @classmethod
    def file_name_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("fileName must not be empty")
        return value

    @model_validator(mode="after")
    def at_least_one_field(self) -> "ExtractionUpdateRequest":
        if self.file_name is None and self.summary is None:
            raise ValueError("Provide fileName and/or summary")
        return self


class ShareRequest(_CamelModel):
    user_id: UUID


class ReassignRequest(_CamelModel):
    user_id: UUID


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorDetail(_CamelModel):
    """Single structured error: may appear in a list."""
    field:   Optional[str] = Field(None, description="Request field that caused the error, if applicable")
    message: str
    code:    str


class ErrorResponse(_CamelModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `errorCode` for programmatic handling.
    """
    error_code: str
    message:    str
    details:    list[ErrorDetail] = Field(default_factory=list)
    request_id: Optional[str] = Field(None, description="Trace ID for log correlation")
