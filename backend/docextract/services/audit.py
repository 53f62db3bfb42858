"""Audit trail writer shared by the request services and the background pipeline."""

from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from docextract.models.extractions import AuditLog


async def write_audit_log(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID],
    action: str,
    resource: Optional[str],
    metadata: Optional[dict] = None,
    success: bool = True,
) -> None:
    """
    Stage an append-only audit row on the caller's session.
    Not flushed here; it commits or rolls back with the surrounding work.
    """
    db.add(AuditLog(
        user_id=user_id,
        action=action,
        resource=resource,
        doc_metadata=metadata or {},
        success=success,
    ))


def extraction_resource(extraction_id: uuid.UUID) -> str:
    return f"extraction:{extraction_id}"
