"""
SQLAlchemy ORM Models: Users, Extractions, Shares & Audit Logs

Declarative 2.x mapped classes with full async support. Column types are the
portable SQLAlchemy ones (Uuid, JSON with a JSONB variant) so the same models
run on PostgreSQL in production and SQLite in local development and tests.

Ownership and sharing:
    extractions.owner_id      exactly one owner per record
    extraction_shares         (extraction_id, user_id) collaborator rows;
                              the composite primary key rejects duplicates
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from werkzeug.security import check_password_hash, generate_password_hash


# ---------------------------------------------------------------------------
# Declarative base: shared across all models
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


_JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Association table: extraction_shares
# ---------------------------------------------------------------------------

extraction_shares = Table(
    "extraction_shares",
    Base.metadata,
    Column(
        "extraction_id",
        Uuid,
        ForeignKey("extractions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Index("idx_extraction_shares_user_id", "user_id"),
)


# ---------------------------------------------------------------------------
# User model: users
# ---------------------------------------------------------------------------

class User(Base):
    """
    Account in the credential store.

    The password hash never leaves this class: callers only ever see
    check_password() -> bool.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "role IN ('user', 'admin', 'superadmin')",
            name="users_role_check",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="user", server_default="user")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"


# ---------------------------------------------------------------------------
# Extraction model: extractions
# ---------------------------------------------------------------------------

class Extraction(Base):
    """
    One uploaded document and the result of processing it.

    State machine (status column):
        processing: record created, background extraction scheduled
        completed : summary and original_text populated
        failed    : extraction or summarization raised; no text stored

    processing is the only non-terminal state. The background task writes its
    result with a conditional UPDATE (WHERE status = 'processing'), so a
    record never leaves completed/failed once it reaches them.
    """

    __tablename__ = "extractions"
    __table_args__ = (
        CheckConstraint(
            "status IN ('processing', 'completed', 'failed')",
            name="extractions_status_check",
        ),
        CheckConstraint(
            "status <> 'processing' OR (summary IS NULL AND original_text IS NULL)",
            name="extractions_processing_has_no_text",
        ),
        Index("idx_extractions_owner_id",   "owner_id"),
        Index("idx_extractions_status",     "status"),
        Index("idx_extractions_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="processing",
        server_default="processing",
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    document_type: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="MIME type accepted at upload; immutable",
    )
    summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_text: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Full extracted text; only returned by single-record fetch",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
    )

    owner: Mapped[User] = relationship(lazy="selectin")
    shared_with: Mapped[list[User]] = relationship(
        secondary=extraction_shares,
        lazy="selectin",
        order_by=User.email,
    )

    @property
    def shared_user_ids(self) -> frozenset[uuid.UUID]:
        return frozenset(u.id for u in self.shared_with)

    def __repr__(self) -> str:
        return (
            f"<Extraction id={self.id} owner={self.owner_id} "
            f"status={self.status} file={self.file_name!r}>"
        )


# ---------------------------------------------------------------------------
# AuditLog model: audit_logs
# ---------------------------------------------------------------------------

class AuditLog(Base):
    """
    Append-only audit trail.

    Written for every record-touching mutation: upload, update, delete,
    share, unshare, reassign, and the background terminal transitions.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_logs_user_id",    "user_id"),
        Index("idx_audit_logs_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # NULL for system actions (background worker)
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    action: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="e.g. extraction.uploaded, extraction.shared, extraction.processing_failed",
    )
    resource: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="e.g. extraction:<uuid>",
    )
    doc_metadata: Mapped[dict] = mapped_column(
        "metadata",
        _JSONType,
        nullable=False,
        default=dict,
    )
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog id={self.id} user={self.user_id} "
            f"action={self.action!r} success={self.success}>"
        )
