"""SQLAlchemy (async) security record repository."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, UniqueConstraint, select
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..methods import TwoFactorMethod
from ..record import BackupCode, SecurityRecord

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the two-factor tables."""


class SecurityRecordModel(Base):
    """
    One row per (user, method).
    Backup codes are stored inline as a JSON list of ``{value, used_at}``.
    """

    __tablename__ = "user_two_factor_auth"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    method: Mapped[str] = mapped_column(String(32))
    secret: Mapped[str | None] = mapped_column(String(128), nullable=True)
    channel_binding: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    backup_codes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("user_id", "method", name="uq_user_two_factor_auth_user_method"),
    )


def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; stored values are always UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _dump_backup_codes(codes: list[BackupCode]) -> list[dict[str, Any]]:
    return [
        {
            "value": code.value,
            "used_at": code.used_at.isoformat() if code.used_at else None,
        }
        for code in codes
    ]


def _load_backup_codes(raw: list[dict[str, Any]] | None) -> list[BackupCode]:
    codes: list[BackupCode] = []
    for item in raw or []:
        used_at = item.get("used_at")
        codes.append(
            BackupCode(
                value=item["value"],
                used_at=_aware(datetime.fromisoformat(used_at)) if used_at else None,
            )
        )
    return codes


def to_domain(model: SecurityRecordModel) -> SecurityRecord:
    return SecurityRecord(
        user_id=model.user_id,
        method=TwoFactorMethod(model.method),
        secret=model.secret,
        channel_binding=model.channel_binding,
        is_enabled=model.is_enabled,
        backup_codes=_load_backup_codes(model.backup_codes),
        failed_attempts=model.failed_attempts,
        locked_until=_aware(model.locked_until),
        last_used_at=_aware(model.last_used_at),
        created_at=_aware(model.created_at),
        updated_at=_aware(model.updated_at),
    )


def apply_to_model(record: SecurityRecord, model: SecurityRecordModel) -> None:
    model.user_id = record.user_id
    model.method = record.method.value
    model.secret = record.secret
    model.channel_binding = record.channel_binding
    model.is_enabled = record.is_enabled
    model.backup_codes = _dump_backup_codes(record.backup_codes)
    model.failed_attempts = record.failed_attempts
    model.locked_until = record.locked_until
    model.last_used_at = record.last_used_at
    model.created_at = record.created_at
    model.updated_at = record.updated_at


class SQLAlchemySecurityRecordRepository:
    """
    ``ISecurityRecordRepository`` over an ``async_sessionmaker``.

    Each call runs in its own transaction. ``save`` is an upsert on
    ``(user_id, method)``.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @staticmethod
    async def _load(
        session: AsyncSession, user_id: str, method: TwoFactorMethod
    ) -> SecurityRecordModel | None:
        stmt = select(SecurityRecordModel).where(
            SecurityRecordModel.user_id == user_id,
            SecurityRecordModel.method == method.value,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(
        self, user_id: str, method: TwoFactorMethod
    ) -> SecurityRecord | None:
        async with self._session_factory() as session:
            model = await self._load(session, user_id, method)
            return to_domain(model) if model is not None else None

    async def list_for_user(self, user_id: str) -> list[SecurityRecord]:
        async with self._session_factory() as session:
            stmt = select(SecurityRecordModel).where(
                SecurityRecordModel.user_id == user_id
            )
            result = await session.execute(stmt)
            by_method = {
                TwoFactorMethod(model.method): to_domain(model)
                for model in result.scalars()
            }
        return [by_method[method] for method in TwoFactorMethod if method in by_method]

    async def save(self, record: SecurityRecord) -> None:
        async with self._session_factory() as session, session.begin():
            model = await self._load(session, record.user_id, record.method)
            if model is None:
                model = SecurityRecordModel()
                session.add(model)
                logger.debug(
                    "Inserting 2FA record for user %s method %s",
                    record.user_id,
                    record.method.value,
                )
            apply_to_model(record, model)


__all__: list[str] = [
    "Base",
    "SecurityRecordModel",
    "SQLAlchemySecurityRecordRepository",
    "to_domain",
    "apply_to_model",
]
