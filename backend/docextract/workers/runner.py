"""
Task Runners: where the extraction pipeline executes

The upload route never calls run_extraction() itself. It hands the freshly
committed record to a TaskRunner and returns; the runner decides where the
work happens:

  InProcessTaskRunner  (TASK_BACKEND=inprocess, default)
      A detached asyncio task on the API's own event loop. Strong references
      are kept in a set until each task finishes; drain() awaits everything
      still outstanding (shutdown hook, tests).

  CeleryTaskRunner     (TASK_BACKEND=celery)
      Writes the upload bytes to UPLOAD_SPOOL_DIR/<record_id> and publishes
      docextract.workers.tasks.process_extraction with a JSON payload. The
      worker runs the same pipeline and removes the spool file. Raw bytes are
      never put on the broker.

Routes obtain the runner through the get_task_runner dependency, which reads
app.state.task_runner; tests override that dependency.
"""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docextract.core.config import Settings
from docextract.processing.extractor import TextExtractor
from docextract.workers.pipeline import run_extraction

logger = logging.getLogger(__name__)


class TaskRunner(ABC):

    @abstractmethod
    async def dispatch(self, record_id: uuid.UUID, data: bytes, mime_type: str) -> None:
        """Schedule extraction for a committed `processing` record and return at once."""

    async def drain(self) -> None:
        """Wait for locally running work. No-op for out-of-process runners."""


# ---------------------------------------------------------------------------
# In-process (asyncio)
# ---------------------------------------------------------------------------

class InProcessTaskRunner(TaskRunner):

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        extractor: TextExtractor,
        timeout: Optional[float] = None,
    ) -> None:
        self._session_factory = session_factory
        self._extractor       = extractor
        self._timeout         = timeout
        self._tasks: set[asyncio.Task] = set()

    async def dispatch(self, record_id: uuid.UUID, data: bytes, mime_type: str) -> None:
        task = asyncio.create_task(
            run_extraction(
                record_id,
                data,
                mime_type,
                session_factory=self._session_factory,
                extractor=self._extractor,
                timeout=self._timeout,
            ),
            name=f"extraction-{record_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Extraction scheduled | id=%s backend=inprocess mime=%s", record_id, mime_type)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# ---------------------------------------------------------------------------
# Celery
# ---------------------------------------------------------------------------

class CeleryTaskRunner(TaskRunner):

    def __init__(self, spool_dir: str) -> None:
        self._spool_dir = spool_dir

    def _spool(self, record_id: uuid.UUID, data: bytes) -> str:
        os.makedirs(self._spool_dir, exist_ok=True)
        path = os.path.join(self._spool_dir, str(record_id))
        with open(path, "wb") as fh:
            fh.write(data)
        return path

    async def dispatch(self, record_id: uuid.UUID, data: bytes, mime_type: str) -> None:
        """
        Spool + publish. Both steps block, so they run in a thread executor
        to keep the event loop free.
        """
        from docextract.workers.tasks import process_extraction

        loop = asyncio.get_running_loop()
        spool_path = await loop.run_in_executor(None, self._spool, record_id, data)
        await loop.run_in_executor(
            None,
            lambda: process_extraction.apply_async(
                kwargs={
                    "extraction_id": str(record_id),
                    "mime_type":     mime_type,
                    "spool_path":    spool_path,
                },
            ),
        )
        logger.info("Extraction published | id=%s backend=celery spool=%s", record_id, spool_path)


# ---------------------------------------------------------------------------
# Factory + FastAPI dependency
# ---------------------------------------------------------------------------

def build_task_runner(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> TaskRunner:
    backend = settings.task_backend.lower()
    if backend == "inprocess":
        return InProcessTaskRunner(
            session_factory,
            TextExtractor(settings=settings),
            timeout=settings.extraction_timeout_seconds,
        )
    if backend == "celery":
        return CeleryTaskRunner(settings.upload_spool_dir)
    raise ValueError(f"Unknown task backend '{backend}'. Choose from: ['inprocess', 'celery']")


def get_task_runner(request: Request) -> TaskRunner:
    return request.app.state.task_runner
