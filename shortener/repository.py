"""Durable storage for URL mappings and user block records.

The repository wraps a single ``AsyncSession`` and exposes the narrow set of
queries the services need, plus classifiers that turn driver errors into
domain decisions (duplicate key, check-constraint violation, not found).

Query Overview
==============
::
    urls
    ├─ create_url()        INSERT ... RETURNING
    ├─ get_long_url()      SELECT long_url WHERE code = ?
    ├─ delete_url()        DELETE WHERE code = ? [AND user_id = ?]
    ├─ delete_user_urls()  DELETE WHERE user_id = ? RETURNING code
    └─ get_urls()          filtered page + COUNT(*) OVER ()

    user_blocks
    ├─ block_user()        INSERT ... ON CONFLICT (user_id) DO UPDATE
    ├─ unblock_user()      UPDATE ... WHERE unblocked_at IS NULL RETURNING
    └─ get_user_blocks()   page + COUNT(*) OVER ()

Key Behaviours
===============
- Single-statement writes commit on success and roll back on failure, so a
  failed insert leaves no row behind.
- ``block_user`` and ``unblock_user`` do not commit; they run inside
  ``transaction()`` and the caller decides when to ``commit()``.
- The upsert uses the PostgreSQL dialect in production and the SQLite dialect
  under the in-memory test database.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.models import URL, UserBlock

__all__ = ["Repository"]

UNIQUE_VIOLATION = "23505"
CHECK_VIOLATION = "23514"


def _sqlstate(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class Repository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Error classifiers
    # ------------------------------------------------------------------

    @staticmethod
    def is_duplicate_key_error(exc: BaseException) -> bool:
        if not isinstance(exc, IntegrityError):
            return False
        if _sqlstate(exc) == UNIQUE_VIOLATION:
            return True
        return "UNIQUE constraint failed" in str(exc.orig)

    @staticmethod
    def is_check_constraint_error(exc: BaseException) -> bool:
        if not isinstance(exc, IntegrityError):
            return False
        if _sqlstate(exc) == CHECK_VIOLATION:
            return True
        return "CHECK constraint failed" in str(exc.orig)

    @staticmethod
    def is_not_found_error(exc: BaseException) -> bool:
        return isinstance(exc, NoResultFound)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["Repository"]:
        """Open a transaction; anything not committed by the caller is rolled back."""
        if not self._session.in_transaction():
            await self._session.begin()
        try:
            yield self
        finally:
            if self._session.in_transaction():
                await self._session.rollback()

    async def commit(self) -> None:
        await self._session.commit()

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    async def create_url(self, code: str, long_url: str, is_custom: bool, user_id: str | None) -> URL:
        stmt = (
            insert(URL)
            .values(code=code, long_url=long_url, is_custom=is_custom, user_id=user_id)
            .returning(URL)
        )
        try:
            result = await self._session.execute(stmt)
            url = result.scalar_one()
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return url

    async def get_long_url(self, code: str) -> str:
        result = await self._session.execute(select(URL.long_url).where(URL.code == code).limit(1))
        return result.scalar_one()

    async def delete_url(self, code: str, user_id: str | None = None) -> int:
        stmt = delete(URL).where(URL.code == code)
        if user_id is not None:
            stmt = stmt.where(URL.user_id == user_id)
        try:
            result = await self._session.execute(stmt)
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return result.rowcount

    async def delete_user_urls(self, user_id: str) -> list[str]:
        stmt = delete(URL).where(URL.user_id == user_id).returning(URL.code)
        try:
            result = await self._session.execute(stmt)
            codes = list(result.scalars().all())
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return codes

    async def get_urls(
        self,
        limit: int,
        offset: int,
        is_custom: bool | None = None,
        user_id: str | None = None,
    ) -> tuple[list[URL], int]:
        stmt = select(URL, func.count().over().label("total_count"))
        if is_custom is not None:
            stmt = stmt.where(URL.is_custom == is_custom)
        if user_id is not None:
            stmt = stmt.where(URL.user_id == user_id)
        stmt = stmt.order_by(URL.created_at.desc(), URL.code).limit(limit).offset(offset)

        rows = (await self._session.execute(stmt)).all()
        total = rows[0].total_count if rows else 0
        return [row.URL for row in rows], total

    # ------------------------------------------------------------------
    # User blocks
    # ------------------------------------------------------------------

    async def block_user(
        self,
        user_id: str,
        user_email: str | None,
        blocked_by: str,
        reason: str | None,
    ) -> UserBlock:
        upsert = postgresql.insert if self._dialect == "postgresql" else sqlite.insert
        stmt = upsert(UserBlock).values(
            user_id=user_id,
            user_email=user_email,
            blocked_by=blocked_by,
            reason=reason,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserBlock.user_id],
            set_={
                "user_email": stmt.excluded.user_email,
                "blocked_by": stmt.excluded.blocked_by,
                "blocked_at": func.now(),
                "reason": stmt.excluded.reason,
                "unblocked_by": None,
                "unblocked_at": None,
            },
        ).returning(UserBlock)

        result = await self._session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def unblock_user(self, user_id: str, unblocked_by: str) -> UserBlock:
        stmt = (
            update(UserBlock)
            .where(UserBlock.user_id == user_id, UserBlock.unblocked_at.is_(None))
            .values(unblocked_by=unblocked_by, unblocked_at=func.now())
            .returning(UserBlock)
        )
        result = await self._session.execute(stmt, execution_options={"populate_existing": True})
        return result.scalar_one()

    async def get_user_blocks(self, limit: int, offset: int) -> tuple[list[UserBlock], int]:
        stmt = (
            select(UserBlock, func.count().over().label("total_count"))
            .order_by(UserBlock.blocked_at.desc(), UserBlock.id.desc())
            .limit(limit)
            .offset(offset)
        )
        rows = (await self._session.execute(stmt)).all()
        total = rows[0].total_count if rows else 0
        return [row.UserBlock for row in rows], total

    @property
    def _dialect(self) -> str:
        return self._session.get_bind().dialect.name
