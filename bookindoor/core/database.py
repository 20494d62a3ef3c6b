"""Async SQLAlchemy 2.0 engine, declarative base and session dependency."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, MetaData, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from bookindoor.core.config import get_settings
from bookindoor.shared.utils import utc_now

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(AsyncAttrs, DeclarativeBase):
    """Declarative base class for all ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class UUIDMixin:
    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)


class TimestampMixin:
    """UTC audit timestamps. ``created_at`` is never rewritten."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False,
    )


class BaseModelMixin(UUIDMixin, TimestampMixin):
    """Base mixin used by all business entities."""


def is_constraint_violation(exc: IntegrityError, constraint_name: str) -> bool:
    """Return True when ``exc`` was raised by the named constraint or index."""
    orig = exc.orig
    reported = getattr(orig, "constraint_name", None)
    if reported is None:
        # asyncpg wraps the driver error one level deeper
        reported = getattr(getattr(orig, "__cause__", None), "constraint_name", None)
    if reported is not None:
        return reported == constraint_name
    return constraint_name in str(orig)


settings = get_settings()
engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that provides DB session per request.

    A request is one transaction: its writes are committed together or
    rolled back together.
    """
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> None:
    """Run a trivial query; raises when the database is unreachable."""
    async with SessionLocal() as session:
        await session.execute(text("SELECT 1"))


async def close_engine() -> None:
    await engine.dispose()
