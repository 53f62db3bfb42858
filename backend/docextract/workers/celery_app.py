"""
Celery Application Factory

Only used when TASK_BACKEND=celery. The API process publishes to it through
CeleryTaskRunner; a worker started with

    celery -A docextract.workers.celery_app worker -Q extractions.process

consumes the messages.

Queue topology:
  extractions.process : one message per uploaded document

Task payloads are JSON only and never carry file bytes: the upload is
spooled to UPLOAD_SPOOL_DIR and the message holds its path.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from docextract.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

EXTRACTIONS_EXCHANGE = Exchange("extractions", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "extractions.process",
        exchange=EXTRACTIONS_EXCHANGE,
        routing_key="extractions.process",
        durable=True,
    ),
)

TASK_ROUTES = {
    "docextract.workers.tasks.process_extraction": {"queue": "extractions.process"},
}

# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("docextract")

    app.conf.update(
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # JSON only; reject pickled messages
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],

        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="extractions.process",

        # Extraction is not retried: a failure is recorded as status=failed
        task_acks_late=True,
        task_reject_on_worker_lost=False,
        worker_prefetch_multiplier=1,

        # Backstop above the pipeline's own asyncio timeout
        task_soft_time_limit=int(settings.extraction_timeout_seconds) + 30,
        task_time_limit=int(settings.extraction_timeout_seconds) + 60,

        # State lives in the database, not in Celery results
        result_expires=3600,
        task_ignore_result=True,

        timezone="UTC",
        enable_utc=True,
        worker_max_tasks_per_child=200,
    )

    app.autodiscover_tasks(["docextract.workers"])
    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals: structured task logging
# ---------------------------------------------------------------------------

@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s extraction=%s",
        task_id, task.name, (kwargs or {}).get("extraction_id", "?"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s extraction=%s",
        task_id, task.name, state, (kwargs or {}).get("extraction_id", "?"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s extraction=%s error=%s",
        task_id, (kwargs or {}).get("extraction_id", "?"), exception,
        exc_info=True,
    )
