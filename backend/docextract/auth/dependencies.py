"""
Composed FastAPI Dependencies

Route handlers import their request context from here: the authenticated
principal, the request-scoped DB session and the task runner. Tests swap the
underlying providers through app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docextract.auth.roles import Permission, require_permission
from docextract.auth.session import Principal, get_current_principal
from docextract.db.session import get_db
from docextract.workers.runner import TaskRunner, get_task_runner

# ---------------------------------------------------------------------------
# Type aliases for cleaner route signatures
# ---------------------------------------------------------------------------

CurrentPrincipal = Annotated[Principal,    Depends(get_current_principal)]
DBSession        = Annotated[AsyncSession, Depends(get_db)]
TaskRunnerDep    = Annotated[TaskRunner,   Depends(get_task_runner)]

ReassignPrincipal = Annotated[Principal, Depends(require_permission(Permission.REASSIGN_OWNER))]
