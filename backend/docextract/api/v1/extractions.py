"""
Extractions API Router
/api/extractions

Request lifecycle for every route:
  ┌─────────────────────────────────────────────────────────┐
  │ 1. Session (cookie or Bearer) → Principal, else 401      │
  │ 2. Fresh read of the record                              │
  │ 3. Authorization predicate on that read:                 │
  │      read/update/delete → 404 when denied                │
  │      share/unshare      → 403 OWNER_ONLY when denied     │
  │      reassign           → 403 unless superadmin          │
  │ 4. Mutation + audit row, committed by the service        │
  └─────────────────────────────────────────────────────────┘

Every write is committed before the handler returns, so a 200 means the
change is stored. Upload commits before handing the document to the task
runner, then returns 201 while extraction runs in the background.
"""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, File, Query, UploadFile, status

from docextract.auth.dependencies import CurrentPrincipal, DBSession, ReassignPrincipal, TaskRunnerDep
from docextract.schemas.extractions import (
    ErrorResponse,
    ExtractionDetail,
    ExtractionListItem,
    ExtractionMutationResponse,
    ExtractionStats,
    ExtractionStatus,
    ExtractionUpdateRequest,
    MessageResponse,
    ReassignRequest,
    ShareRequest,
    UploadResponse,
)
from docextract.services.extractions import ExtractionService
from docextract.services.ingestion import IngestionService
from docextract.services.sharing import SharingService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/extractions",
    tags=["Extractions"],
    responses={
        401: {"model": ErrorResponse, "description": "Missing, invalid or expired session"},
    },
)


# ---------------------------------------------------------------------------
# POST /extractions/upload
# ---------------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a document for extraction",
    description=(
        "Accepts PDF, TXT or DOCX files. Returns 201 immediately with the new "
        "extraction id; poll GET /extractions/{id} until status leaves `processing`."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Missing file or unsupported type"},
        413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
    },
)
async def upload_document(
    user:   CurrentPrincipal,
    db:     DBSession,
    runner: TaskRunnerDep,
    file:   Optional[UploadFile] = File(None, description="Document file (PDF, TXT, DOCX)"),
) -> UploadResponse:
    return await IngestionService(db, runner, user).upload(file)


# ---------------------------------------------------------------------------
# GET /extractions, GET /extractions/stats
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[ExtractionListItem],
    summary="List extractions visible to the caller",
)
async def list_extractions(
    user: CurrentPrincipal,
    db:   DBSession,
    status_filter: Optional[ExtractionStatus] = Query(None, alias="status"),
) -> list[ExtractionListItem]:
    return await ExtractionService(db, user).list_visible(status_filter)


@router.get(
    "/stats",
    response_model=ExtractionStats,
    summary="Status counters over the caller's visible extractions",
)
async def extraction_stats(user: CurrentPrincipal, db: DBSession) -> ExtractionStats:
    return await ExtractionService(db, user).stats()


# ---------------------------------------------------------------------------
# Single record
# ---------------------------------------------------------------------------

@router.get(
    "/{extraction_id}",
    response_model=ExtractionDetail,
    summary="Fetch one extraction including its original text",
    responses={404: {"model": ErrorResponse}},
)
async def get_extraction(
    extraction_id: UUID,
    user: CurrentPrincipal,
    db:   DBSession,
) -> ExtractionDetail:
    return await ExtractionService(db, user).get(extraction_id)


@router.put(
    "/{extraction_id}",
    response_model=ExtractionMutationResponse,
    summary="Edit fileName and/or summary",
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_extraction(
    extraction_id: UUID,
    body: ExtractionUpdateRequest,
    user: CurrentPrincipal,
    db:   DBSession,
) -> ExtractionMutationResponse:
    extraction = await ExtractionService(db, user).update(extraction_id, body)
    return ExtractionMutationResponse(message="Extraction updated successfully", extraction=extraction)


@router.delete(
    "/{extraction_id}",
    response_model=MessageResponse,
    summary="Delete an extraction (owner or admin)",
    responses={404: {"model": ErrorResponse}},
)
async def delete_extraction(
    extraction_id: UUID,
    user: CurrentPrincipal,
    db:   DBSession,
) -> MessageResponse:
    await ExtractionService(db, user).delete(extraction_id)
    return MessageResponse(message="Extraction deleted successfully")


# ---------------------------------------------------------------------------
# Ownership + sharing
# ---------------------------------------------------------------------------

@router.put(
    "/{extraction_id}/reassign",
    response_model=ExtractionMutationResponse,
    summary="Transfer ownership (superadmin only)",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def reassign_extraction(
    extraction_id: UUID,
    body: ReassignRequest,
    user: ReassignPrincipal,
    db:   DBSession,
) -> ExtractionMutationResponse:
    extraction = await SharingService(db, user).reassign(extraction_id, body.user_id)
    return ExtractionMutationResponse(
        message="Extraction ownership reassigned successfully",
        extraction=extraction,
    )


@router.post(
    "/{extraction_id}/share",
    response_model=ExtractionMutationResponse,
    summary="Grant a user read/write access (owner only)",
    responses={
        400: {"model": ErrorResponse, "description": "Already shared, or target is the owner"},
        403: {"model": ErrorResponse, "description": "Caller is not the owner"},
        404: {"model": ErrorResponse, "description": "Unknown extraction or user"},
    },
)
async def share_extraction(
    extraction_id: UUID,
    body: ShareRequest,
    user: CurrentPrincipal,
    db:   DBSession,
) -> ExtractionMutationResponse:
    extraction = await SharingService(db, user).share(extraction_id, body.user_id)
    return ExtractionMutationResponse(message="Extraction shared successfully", extraction=extraction)


@router.delete(
    "/{extraction_id}/unshare",
    response_model=ExtractionMutationResponse,
    summary="Revoke a user's access (owner only)",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def unshare_extraction(
    extraction_id: UUID,
    body: ShareRequest,
    user: CurrentPrincipal,
    db:   DBSession,
) -> ExtractionMutationResponse:
    extraction = await SharingService(db, user).unshare(extraction_id, body.user_id)
    return ExtractionMutationResponse(
        message="User removed from sharing successfully",
        extraction=extraction,
    )
