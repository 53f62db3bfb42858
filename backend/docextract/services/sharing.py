"""
Sharing Service: collaborator set and ownership transfer

share / unshare
    Owner only. Admins and superadmins get OwnerOnlyError like everyone else:
    sharing is a right of the owner, not of a role.

    Checks run in this order, each on a fresh read of the record:
      1. record exists                  else 404 ExtractionNotFoundError
      2. caller is the owner            else 403 OwnerOnlyError
      3. target user exists             else 404 UserNotFoundError
      4. target is not the owner        else 400 InvalidRequestError
      5. (share) target not yet shared  else 400 AlreadySharedError

    Unsharing a user who is not a collaborator succeeds without change.
    The (extraction_id, user_id) primary key of extraction_shares backs up
    check 5 when two identical share requests race.

reassign
    Superadmin only (Permission.REASSIGN_OWNER). Moves owner_id to another
    existing user. If the new owner was a collaborator their share row is
    dropped, since an owner is never in its own collaborator set.
"""

from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docextract.auth.policy import can_share
from docextract.auth.roles import Permission, has_permission
from docextract.auth.session import Principal
from docextract.core.exceptions import (
    AlreadySharedError,
    AuthorizationDeniedError,
    ExtractionNotFoundError,
    InvalidRequestError,
    OwnerOnlyError,
    UserNotFoundError,
)
from docextract.models.extractions import Extraction, User
from docextract.schemas.extractions import ExtractionDetail
from docextract.services.audit import extraction_resource, write_audit_log
from docextract.services.extractions import load_extraction

logger = logging.getLogger(__name__)


class SharingService:
    """Stateless service object: one instance per request."""

    def __init__(self, db: AsyncSession, user: Principal) -> None:
        self._db   = db
        self._user = user

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def share(self, extraction_id: uuid.UUID, target_id: uuid.UUID) -> ExtractionDetail:
        record = await self._owned(extraction_id)
        target = await self._target(record, target_id)

        if target.id in record.shared_user_ids:
            raise AlreadySharedError(field="userId")

        record.shared_with.append(target)
        try:
            await self._db.flush()
        except IntegrityError:
            # Concurrent share of the same pair won the insert
            await self._db.rollback()
            raise AlreadySharedError(field="userId")

        await self._audit("extraction.shared", record.id, {"target_user_id": str(target.id)})
        await self._db.commit()
        logger.info("Extraction shared | id=%s owner=%s target=%s", record.id, self._user.id, target.id)
        return await self._detail(extraction_id)

    async def unshare(self, extraction_id: uuid.UUID, target_id: uuid.UUID) -> ExtractionDetail:
        record = await self._owned(extraction_id)
        target = await self._target(record, target_id)

        if target.id in record.shared_user_ids:
            record.shared_with.remove(target)
            await self._db.flush()
            await self._audit("extraction.unshared", record.id, {"target_user_id": str(target.id)})
            await self._db.commit()
            logger.info("Extraction unshared | id=%s owner=%s target=%s", record.id, self._user.id, target.id)
        else:
            logger.info("Unshare no-op | id=%s target=%s reason=not_shared", record.id, target.id)

        return await self._detail(extraction_id)

    async def reassign(self, extraction_id: uuid.UUID, new_owner_id: uuid.UUID) -> ExtractionDetail:
        if not has_permission(self._user.role, Permission.REASSIGN_OWNER):
            raise AuthorizationDeniedError()

        record = await load_extraction(self._db, extraction_id, refresh=True)
        if record is None:
            raise ExtractionNotFoundError()

        new_owner = await self._db.get(User, new_owner_id)
        if new_owner is None:
            raise UserNotFoundError(field="userId")

        previous_owner = record.owner_id
        if new_owner.id in record.shared_user_ids:
            record.shared_with.remove(new_owner)
        record.owner_id = new_owner.id
        record.owner = new_owner
        await self._db.flush()

        await self._audit(
            "extraction.reassigned",
            record.id,
            {"previous_owner_id": str(previous_owner), "new_owner_id": str(new_owner.id)},
        )
        await self._db.commit()
        logger.info(
            "Extraction reassigned | id=%s from=%s to=%s by=%s",
            record.id, previous_owner, new_owner.id, self._user.id,
        )
        return await self._detail(extraction_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _owned(self, extraction_id: uuid.UUID) -> Extraction:
        record = await load_extraction(self._db, extraction_id, refresh=True)
        if record is None:
            raise ExtractionNotFoundError()
        if not can_share(self._user, record):
            logger.info(
                "Share denied | id=%s user=%s role=%s reason=not_owner",
                extraction_id, self._user.id, self._user.role.value,
            )
            raise OwnerOnlyError()
        return record

    async def _target(self, record: Extraction, target_id: uuid.UUID) -> User:
        target = await self._db.get(User, target_id)
        if target is None:
            raise UserNotFoundError(field="userId")
        if target.id == record.owner_id:
            raise InvalidRequestError("Cannot share an extraction with its owner", field="userId")
        return target

    async def _audit(self, action: str, extraction_id: uuid.UUID, metadata: dict) -> None:
        await write_audit_log(
            self._db,
            user_id=self._user.id,
            action=action,
            resource=extraction_resource(extraction_id),
            metadata=metadata,
        )

    async def _detail(self, extraction_id: uuid.UUID) -> ExtractionDetail:
        record = await load_extraction(self._db, extraction_id, refresh=True)
        return ExtractionDetail.model_validate(record)
