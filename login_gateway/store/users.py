"""
User store backed by an async SQLAlchemy engine.

One row per user: ``(id PRIMARY KEY, provider, profile)``. Rows are created on
first login and only the ``profile`` column is ever updated afterwards.

Usage:
    ```python
    store = UserStore("sqlite+aiosqlite:///./src/database/user.db")
    await store.init_schema()

    created = await store.create_if_absent("abc123", "google")
    record = await store.get("abc123")
    await store.set_profile_image("abc123", "cat.png")
    ```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import String, update
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the user table cannot be read or written."""


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    provider: Mapped[str] = mapped_column(String, nullable=False)
    profile: Mapped[Optional[str]] = mapped_column(String, nullable=True)


@dataclass(frozen=True)
class UserRecord:
    id: str
    provider: str
    profile: Optional[str] = None


def _create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    kwargs = {}
    if database_url.startswith("sqlite"):
        # aiosqlite connections are bound to the loop that opened them
        kwargs["poolclass"] = NullPool
    else:
        kwargs.update(pool_pre_ping=True, pool_recycle=3600)
    return create_async_engine(database_url, echo=echo, **kwargs)


class UserStore:
    """
    Async access to the ``user`` table.

    Every public method either returns a result or raises StoreError; driver
    exceptions never leak to callers.
    """

    def __init__(self, database_url: str, *, echo: bool = False):
        self.database_url = database_url
        self._engine = _create_engine(database_url, echo=echo)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_schema(self) -> None:
        """Create the ``user`` table (and the SQLite file's directory) if missing."""
        url = make_url(self.database_url)
        if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
            directory = os.path.dirname(url.database)
            if directory:
                os.makedirs(directory, exist_ok=True)

        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to initialise user table: {e}") from e

        logger.info("User table ready", extra={"backend": url.get_backend_name()})

    async def close(self) -> None:
        await self._engine.dispose()

    async def get(self, user_id: str) -> Optional[UserRecord]:
        """
        Read a user row.

        Returns:
            UserRecord, or None when no row exists for ``user_id``.

        Raises:
            StoreError: If the read fails.
        """
        try:
            async with self._sessionmaker() as session:
                row = await session.get(User, user_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read user {user_id}: {e}") from e

        if row is None:
            return None
        return UserRecord(id=row.id, provider=row.provider, profile=row.profile)

    async def create_if_absent(self, user_id: str, provider: str) -> bool:
        """
        Insert ``(user_id, provider, NULL)`` unless a row already exists.

        An existing row is never modified. A duplicate-key failure on insert
        (two first logins racing) counts as "already existed".

        Returns:
            True if this call created the row, False if it already existed.

        Raises:
            StoreError: If the read or the insert fails for any other reason.
        """
        if await self.get(user_id) is not None:
            return False

        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    session.add(User(id=user_id, provider=provider, profile=None))
        except IntegrityError:
            logger.info(
                "User row created concurrently, treating as existing",
                extra={"user_id": user_id, "provider": provider},
            )
            return False
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to create user {user_id}: {e}") from e

        logger.info("Created user row", extra={"user_id": user_id, "provider": provider})
        return True

    async def set_profile_image(self, user_id: str, image: Optional[str]) -> None:
        """
        Set the profile image of ``user_id``.

        Updating an id with no row is not an error; nothing changes.

        Raises:
            StoreError: If the update fails.
        """
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    await session.execute(
                        update(User).where(User.id == user_id).values(profile=image)
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update profile of {user_id}: {e}") from e


__all__ = ["StoreError", "User", "UserRecord", "UserStore"]
