"""
Users API Router
GET /api/users/directory: share-target picker: every other account.
"""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import select

from docextract.auth.dependencies import CurrentPrincipal, DBSession
from docextract.models.extractions import User
from docextract.schemas.extractions import UserSummary

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/directory", response_model=list[UserSummary])
async def user_directory(user: CurrentPrincipal, db: DBSession) -> list[UserSummary]:
    rows = await db.scalars(
        select(User).where(User.id != user.id).order_by(User.email)
    )
    return [UserSummary.model_validate(u) for u in rows]
