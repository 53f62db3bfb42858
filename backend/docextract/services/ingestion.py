"""
Document Ingestion Service

Orchestrates POST /api/extractions/upload:
  1. Require a file part and enforce the size ceiling
  2. Resolve the MIME type (client part type, extension fallback)
  3. Reject anything outside the allow-list BEFORE a record exists
  4. Sanitize the display name (basename, ≤255 chars)
  5. Insert the extraction row (status=processing, owner=caller)
  6. Write the audit entry and COMMIT
  7. Hand the bytes to the task runner and return

Ordering invariant: the commit in step 6 happens before dispatch, so the
`processing` row is visible to any reader (GET) before the background task
can write its terminal state.

Audit events written:
  - extraction.uploaded       (on success)
  - extraction.queue_failed   (runner raised; the record is marked failed)
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
from typing import Optional

from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from docextract.auth.session import Principal
from docextract.core.config import settings
from docextract.core.exceptions import (
    InvalidRequestError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)
from docextract.models.extractions import Extraction
from docextract.schemas.extractions import (
    ALLOWED_CONTENT_TYPES,
    EXTENSION_CONTENT_TYPES,
    MAX_FILE_NAME_LENGTH,
    ExtractionStatus,
    UploadResponse,
)
from docextract.services.audit import extraction_resource, write_audit_log
from docextract.workers.runner import TaskRunner

logger = logging.getLogger(__name__)

_GENERIC_CONTENT_TYPES = frozenset({"", "application/octet-stream"})


# ---------------------------------------------------------------------------
# Upload helpers
# ---------------------------------------------------------------------------

def resolve_mime_type(filename: str, declared: Optional[str]) -> str:
    """
    Use the client-declared part type, minus parameters (`; charset=...`).
    Only a missing or generic type falls back to the file extension.
    """
    mime = (declared or "").split(";", 1)[0].strip().lower()
    if mime not in _GENERIC_CONTENT_TYPES:
        return mime

    ext = posixpath.splitext(filename.lower())[1]
    if ext in EXTENSION_CONTENT_TYPES:
        return EXTENSION_CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(filename)
    return guessed or "application/octet-stream"


def sanitize_filename(filename: str) -> str:
    """Strip any directory component and cap the length."""
    basename = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return (basename or "upload")[:MAX_FILE_NAME_LENGTH]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class IngestionService:
    """
    Stateless service object: one instance per request.
    All dependencies are injected (testable, no hidden globals).
    """

    def __init__(
        self,
        db:     AsyncSession,
        runner: TaskRunner,
        user:   Principal,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        self._db     = db
        self._runner = runner
        self._user   = user
        self._max_bytes = max_upload_bytes or settings.max_upload_bytes

    async def upload(self, file: Optional[UploadFile]) -> UploadResponse:
        data = await self._read_upload(file)
        raw_name  = file.filename or "upload"
        mime_type = resolve_mime_type(raw_name, file.content_type)

        if mime_type not in ALLOWED_CONTENT_TYPES:
            logger.info(
                "Upload rejected | user=%s file=%r mime=%s",
                self._user.id, raw_name, mime_type,
            )
            raise UnsupportedMediaTypeError(field="file")

        file_name = sanitize_filename(raw_name)
        record = Extraction(
            owner_id=self._user.id,
            status=ExtractionStatus.PROCESSING.value,
            file_name=file_name,
            document_type=mime_type,
        )
        self._db.add(record)
        await self._db.flush()   # assigns id

        await write_audit_log(
            self._db,
            user_id=self._user.id,
            action="extraction.uploaded",
            resource=extraction_resource(record.id),
            metadata={
                "file_name":     file_name,
                "document_type": mime_type,
                "size_bytes":    len(data),
            },
        )
        # Must be visible before the background task can touch it
        await self._db.commit()

        logger.info(
            "Extraction created | id=%s user=%s file=%r mime=%s size=%d",
            record.id, self._user.id, file_name, mime_type, len(data),
        )

        try:
            await self._runner.dispatch(record.id, data, mime_type)
        except Exception as exc:
            logger.error("Failed to dispatch extraction | id=%s error=%s", record.id, exc)
            await self._fail_undispatched(record, str(exc))

        return UploadResponse(extraction_id=record.id, file_name=file_name)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _read_upload(self, file: Optional[UploadFile]) -> bytes:
        """
        Read the upload into memory with a hard size ceiling.
        Empty files are accepted; extraction decides what they yield.
        """
        if file is None:
            raise InvalidRequestError("No file uploaded", field="file")

        if file.size is not None and file.size > self._max_bytes:
            raise PayloadTooLargeError(field="file")

        data = await file.read()
        if len(data) > self._max_bytes:
            raise PayloadTooLargeError(field="file")
        return data

    async def _fail_undispatched(self, record: Extraction, reason: str) -> None:
        """A record no runner will ever pick up goes straight to failed."""
        record.status = ExtractionStatus.FAILED.value
        await write_audit_log(
            self._db,
            user_id=self._user.id,
            action="extraction.queue_failed",
            resource=extraction_resource(record.id),
            metadata={"error": reason[:500]},
            success=False,
        )
        await self._db.commit()
