"""
Extraction record service: list, fetch, edit, delete, counters.

Every method re-reads the record from the database and evaluates the
authorization predicate on that fresh read before touching it. A caller who
may not read, write or delete a record gets ExtractionNotFoundError, exactly
as if the id did not exist.
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docextract.auth.policy import can_delete, can_read, can_write, visible
from docextract.auth.session import Principal
from docextract.core.exceptions import ExtractionNotFoundError, InvalidRequestError
from docextract.models.extractions import Extraction
from docextract.schemas.extractions import (
    ExtractionDetail,
    ExtractionListItem,
    ExtractionStats,
    ExtractionStatus,
    ExtractionUpdateRequest,
)
from docextract.services.audit import extraction_resource, write_audit_log

logger = logging.getLogger(__name__)


async def load_extraction(
    db: AsyncSession,
    extraction_id: uuid.UUID,
    *,
    refresh: bool = False,
) -> Optional[Extraction]:
    """Fetch one record with owner and collaborators; refresh=True bypasses the identity map."""
    stmt = select(Extraction).where(Extraction.id == extraction_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


class ExtractionService:
    """Stateless service object: one instance per request."""

    def __init__(self, db: AsyncSession, user: Principal) -> None:
        self._db   = db
        self._user = user

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_visible(self, status: Optional[ExtractionStatus] = None) -> list[ExtractionListItem]:
        stmt = select(Extraction).where(visible(self._user))
        if status is not None:
            stmt = stmt.where(Extraction.status == status.value)
        stmt = stmt.order_by(Extraction.created_at.desc(), Extraction.id)

        rows = (await self._db.execute(stmt)).scalars().all()
        return [ExtractionListItem.model_validate(r) for r in rows]

    async def get(self, extraction_id: uuid.UUID) -> ExtractionDetail:
        record = await self._readable(extraction_id)
        return ExtractionDetail.model_validate(record)

    async def stats(self) -> ExtractionStats:
        stmt = (
            select(Extraction.status, func.count())
            .where(visible(self._user))
            .group_by(Extraction.status)
        )
        counts = {status: n for status, n in (await self._db.execute(stmt)).all()}
        return ExtractionStats(
            total_extractions=sum(counts.values()),
            completed=counts.get(ExtractionStatus.COMPLETED.value, 0),
            processing=counts.get(ExtractionStatus.PROCESSING.value, 0),
            failed=counts.get(ExtractionStatus.FAILED.value, 0),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update(
        self,
        extraction_id: uuid.UUID,
        changes: ExtractionUpdateRequest,
    ) -> ExtractionDetail:
        record = await load_extraction(self._db, extraction_id, refresh=True)
        if record is None or not can_write(self._user, record):
            self._deny("update", extraction_id)

        if changes.summary is not None and record.status == ExtractionStatus.PROCESSING.value:
            raise InvalidRequestError(
                "Summary cannot be edited while the document is processing", field="summary",
            )

        changed: dict[str, str] = {}
        if changes.file_name is not None:
            record.file_name = changes.file_name
            changed["file_name"] = changes.file_name
        if changes.summary is not None:
            record.summary = changes.summary
            changed["summary_chars"] = str(len(changes.summary))

        await write_audit_log(
            self._db,
            user_id=self._user.id,
            action="extraction.updated",
            resource=extraction_resource(record.id),
            metadata=changed,
        )
        await self._db.commit()

        logger.info("Extraction updated | id=%s user=%s fields=%s", record.id, self._user.id, list(changed))
        record = await load_extraction(self._db, extraction_id, refresh=True)
        return ExtractionDetail.model_validate(record)

    async def delete(self, extraction_id: uuid.UUID) -> None:
        """Hard delete. Share rows go with the record."""
        record = await load_extraction(self._db, extraction_id, refresh=True)
        if record is None or not can_delete(self._user, record):
            self._deny("delete", extraction_id)

        await self._db.delete(record)
        await write_audit_log(
            self._db,
            user_id=self._user.id,
            action="extraction.deleted",
            resource=extraction_resource(extraction_id),
            metadata={"status_at_delete": record.status},
        )
        await self._db.commit()
        logger.info("Extraction deleted | id=%s user=%s", extraction_id, self._user.id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _readable(self, extraction_id: uuid.UUID) -> Extraction:
        record = await load_extraction(self._db, extraction_id, refresh=True)
        if record is None or not can_read(self._user, record):
            self._deny("read", extraction_id)
        return record

    def _deny(self, action: str, extraction_id: uuid.UUID) -> None:
        logger.info(
            "Extraction hidden | action=%s id=%s user=%s role=%s",
            action, extraction_id, self._user.id, self._user.role.value,
        )
        raise ExtractionNotFoundError()
