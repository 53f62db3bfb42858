"""
Celery Tasks: extraction worker side

Task: process_extraction
  1. Read the spooled upload written by CeleryTaskRunner.
  2. Run the shared pipeline (docextract.workers.pipeline.run_extraction)
     against a worker-owned engine.
  3. Remove the spool file, whatever the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from typing import Any

from celery import Task

from docextract.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Async task helper
# Run async coroutines inside Celery's synchronous task context.
# ---------------------------------------------------------------------------

def run_async(coro):
    """Execute an async coroutine from a synchronous Celery task."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    import concurrent.futures
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


@celery_app.task(
    name="docextract.workers.tasks.process_extraction",
    bind=True,
    acks_late=True,
)
def process_extraction(
    self: Task,
    *,
    extraction_id: str,
    mime_type:     str,
    spool_path:    str,
) -> dict[str, Any]:
    return run_async(
        _process_extraction_async(
            record_id=uuid.UUID(extraction_id),
            mime_type=mime_type,
            spool_path=spool_path,
        )
    )


async def _process_extraction_async(
    record_id: uuid.UUID,
    mime_type: str,
    spool_path: str,
) -> dict[str, Any]:
    from docextract.core.config import settings
    from docextract.db.session import build_engine, build_sessionmaker
    from docextract.processing.extractor import TextExtractor
    from docextract.workers.pipeline import mark_failed, run_extraction

    # A fresh engine per task: asyncio.run() gives each task its own loop and
    # pooled connections cannot cross loops.
    engine = build_engine(settings.database_url)
    try:
        session_factory = build_sessionmaker(engine)
        try:
            with open(spool_path, "rb") as fh:
                data = fh.read()
        except OSError as exc:
            logger.error("Spool file unreadable | id=%s path=%s error=%s", record_id, spool_path, exc)
            status = await mark_failed(session_factory, record_id, "spool file unreadable")
        else:
            status = await run_extraction(
                record_id,
                data,
                mime_type,
                session_factory=session_factory,
                extractor=TextExtractor(settings=settings),
                timeout=settings.extraction_timeout_seconds,
            )
    finally:
        await engine.dispose()
        try:
            os.remove(spool_path)
        except FileNotFoundError:
            pass

    return {"extraction_id": str(record_id), "status": status.value if status else None}
