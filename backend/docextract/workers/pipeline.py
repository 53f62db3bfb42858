"""
Extraction Pipeline: the background half of an upload

run_extraction() is the single code path both task runners execute:

  1. Skip if the record is gone or already terminal (deleted mid-flight,
     duplicate delivery).
  2. Extract text in a worker thread, bounded by a timeout.
  3. Summarize.
  4. Conditional terminal write:
        UPDATE extractions SET status = 'completed', ...
         WHERE id = :id AND status = 'processing'
     A deleted record or one that already reached a terminal state matches
     zero rows, so the write is a silent no-op.
  5. Any failure in 2-4 ends in the same conditional UPDATE with
     status = 'failed' and no stored text.

Nothing raises out of run_extraction(): every path ends in a status write
(or a logged no-op), so a record cannot stay in `processing` because of an
uncaught exception.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docextract.models.extractions import Extraction
from docextract.processing.extractor import TextExtractor
from docextract.processing.summarizer import summarize
from docextract.schemas.extractions import MAX_SUMMARY_LENGTH, ExtractionStatus
from docextract.services.audit import extraction_resource, write_audit_log

logger = logging.getLogger(__name__)


async def run_extraction(
    record_id: uuid.UUID,
    data: bytes,
    mime_type: str,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    extractor: TextExtractor,
    timeout: Optional[float] = None,
) -> Optional[ExtractionStatus]:
    """
    Process one uploaded document and persist its terminal state.

    Returns the status written, or None when the record was missing or
    already terminal and nothing changed.
    """
    t0 = time.monotonic()

    try:
        pending = await _is_pending(session_factory, record_id)
    except Exception:
        # The conditional writes below still guard the record
        logger.exception("Pending check failed | id=%s", record_id)
        pending = True

    if not pending:
        logger.info("Extraction skipped | id=%s reason=not_pending", record_id)
        return None

    try:
        loop = asyncio.get_running_loop()
        text = await asyncio.wait_for(
            loop.run_in_executor(None, extractor.extract, data, mime_type),
            timeout=timeout,
        )
        summary = summarize(text)[:MAX_SUMMARY_LENGTH]
    except asyncio.TimeoutError:
        logger.warning(
            "Extraction timed out | id=%s mime=%s timeout_s=%s",
            record_id, mime_type, timeout,
        )
        return await mark_failed(session_factory, record_id, "timeout")
    except Exception as exc:
        logger.warning(
            "Extraction failed | id=%s mime=%s error=%s",
            record_id, mime_type, exc,
        )
        return await mark_failed(session_factory, record_id, str(exc))

    try:
        applied = await _write_terminal(
            session_factory,
            record_id,
            ExtractionStatus.COMPLETED,
            summary=summary,
            original_text=text,
            audit_metadata={"chars": len(text)},
        )
    except Exception as exc:
        logger.exception("Completion write failed | id=%s", record_id)
        return await mark_failed(session_factory, record_id, f"persist: {exc}")

    if not applied:
        logger.info("Completion ignored | id=%s reason=deleted_or_terminal", record_id)
        return None

    logger.info(
        "Extraction completed | id=%s mime=%s chars=%d elapsed_ms=%.0f",
        record_id, mime_type, len(text), (time.monotonic() - t0) * 1000,
    )
    return ExtractionStatus.COMPLETED


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _is_pending(
    session_factory: async_sessionmaker[AsyncSession],
    record_id: uuid.UUID,
) -> bool:
    async with session_factory() as db:
        status = await db.scalar(
            select(Extraction.status).where(Extraction.id == record_id)
        )
    return status == ExtractionStatus.PROCESSING.value


async def _write_terminal(
    session_factory: async_sessionmaker[AsyncSession],
    record_id: uuid.UUID,
    status: ExtractionStatus,
    *,
    summary: Optional[str] = None,
    original_text: Optional[str] = None,
    audit_metadata: Optional[dict] = None,
) -> bool:
    """Conditional processing → terminal UPDATE. Returns True if a row changed."""
    async with session_factory() as db:
        async with db.begin():
            result = await db.execute(
                update(Extraction)
                .where(
                    Extraction.id == record_id,
                    Extraction.status == ExtractionStatus.PROCESSING.value,
                )
                .values(status=status.value, summary=summary, original_text=original_text)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                return False

            await write_audit_log(
                db,
                user_id=None,
                action=f"extraction.processing_{status.value}",
                resource=extraction_resource(record_id),
                metadata=audit_metadata,
                success=status is ExtractionStatus.COMPLETED,
            )
    return True


async def mark_failed(
    session_factory: async_sessionmaker[AsyncSession],
    record_id: uuid.UUID,
    reason: str,
) -> Optional[ExtractionStatus]:
    try:
        applied = await _write_terminal(
            session_factory,
            record_id,
            ExtractionStatus.FAILED,
            audit_metadata={"error": reason[:500]},
        )
    except Exception:
        logger.exception("Failure write failed | id=%s", record_id)
        return None

    if not applied:
        logger.info("Failure ignored | id=%s reason=deleted_or_terminal", record_id)
        return None

    logger.info("Extraction marked failed | id=%s reason=%s", record_id, reason)
    return ExtractionStatus.FAILED
