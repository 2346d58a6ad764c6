"""Keeps "is this user blocked" consistent between the identity provider and the
local ``user_blocks`` table, without a distributed transaction.

Flow Diagram — block()
======================
::
    ┌──────────────────┐
    │ open transaction │
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  fails → rollback, surface provider
    │ 1. block remote  │          status (or Internal)
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  fails ─┐
    │ 2. upsert record │         │
    │    + commit      │         ▼
    └────────┬─────────┘  ┌──────────────────┐
             │            │ compensate:      │
             │            │ unblock remote   │
             │            │ (once, logged)   │
             │            └────────┬─────────┘
             ▼                     ▼
        UserBlock             InternalError

Flow Diagram — unblock()
========================
::
    ┌──────────────────┐
    │ open transaction │
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  no active block → NotFound,
    │ 1. stamp record  │  provider is never called
    └────────┬─────────┘
             ▼
    ┌──────────────────┐  fails → commit anyway, surface the
    │ 2. unblock remote│          provider error for a retry
    └────────┬─────────┘
             ▼
    ┌──────────────────┐
    │ commit           │
    └──────────────────┘

Key Behaviours
===============
- Blocking fails safe toward "user still has access": the remote block gates
  the local write, and a failed local write is compensated remotely.
- Unblocking fails safe toward "local record reflects intent": the local row
  is the system of record and the provider is reconciled by retrying.
- Blocking an already-blocked user refreshes email, reason and blocker and
  clears the unblock columns.
- Provider calls are never retried automatically.
"""

import logging
from contextlib import suppress

from shortener.errors import InternalError, NotFound, ProviderError, ShortenerError
from shortener.identity import IdentityProvider, IdentityProviderAPIError, ProviderUser
from shortener.models import UserBlock
from shortener.repository import Repository

__all__ = ["UserBlockSaga"]


class UserBlockSaga:
    def __init__(
        self,
        store: Repository,
        provider: IdentityProvider,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._logger = logger or logging.getLogger("shortener")

    async def block(self, user_id: str, reason: str | None, acting_admin_id: str) -> UserBlock:
        async with self._store.transaction() as tx:
            provider_user = await self._block_remote(user_id)
            try:
                record = await self._persist_block(tx, user_id, provider_user.email, reason, acting_admin_id)
            except Exception as exc:
                self._logger.error(
                    f"Failed to block user {user_id} in the database: {exc}",
                    exc_info=exc,
                    extra={"user_id": user_id},
                )
                await self._compensate_block(user_id)
                raise InternalError() from exc

        self._logger.info(f"User {user_id} blocked by {acting_admin_id}", extra={"user_id": user_id})
        return record

    async def unblock(self, user_id: str, acting_admin_id: str) -> UserBlock:
        async with self._store.transaction() as tx:
            record = await self._persist_unblock(tx, user_id, acting_admin_id)
            try:
                await self._unblock_remote(user_id)
            except ShortenerError:
                # The local record is the system of record; keep it and let an
                # operator retry the provider call. The provider error is what
                # the caller sees even if this commit fails too.
                with suppress(InternalError):
                    await self._commit(tx, user_id)
                raise
            await self._commit(tx, user_id)

        self._logger.info(f"User {user_id} unblocked by {acting_admin_id}", extra={"user_id": user_id})
        return record

    async def list_blocks(self, limit: int, offset: int) -> tuple[list[UserBlock], int]:
        try:
            return await self._store.get_user_blocks(limit=limit, offset=offset)
        except Exception as exc:
            self._logger.error(f"Failed to list user blocks: {exc}", exc_info=exc)
            raise InternalError() from exc

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _block_remote(self, user_id: str) -> ProviderUser:
        try:
            return await self._provider.block_user(user_id)
        except Exception as exc:
            raise self._provider_failure("block", user_id, exc) from exc

    async def _persist_block(
        self,
        tx: Repository,
        user_id: str,
        user_email: str | None,
        reason: str | None,
        acting_admin_id: str,
    ) -> UserBlock:
        record = await tx.block_user(
            user_id=user_id,
            user_email=user_email,
            blocked_by=acting_admin_id,
            reason=reason,
        )
        await tx.commit()
        return record

    async def _compensate_block(self, user_id: str) -> None:
        try:
            await self._provider.unblock_user(user_id)
        except Exception as exc:
            self._logger.error(
                f"Compensation failed: user {user_id} is still blocked in the identity provider: {exc}",
                exc_info=exc,
                extra={"user_id": user_id},
            )
        else:
            self._logger.warning(
                f"Compensated failed block of user {user_id} by unblocking it in the identity provider",
                extra={"user_id": user_id},
            )

    async def _persist_unblock(self, tx: Repository, user_id: str, acting_admin_id: str) -> UserBlock:
        try:
            return await tx.unblock_user(user_id=user_id, unblocked_by=acting_admin_id)
        except Exception as exc:
            if tx.is_not_found_error(exc):
                self._logger.warning(f"No active block found for user {user_id}", extra={"user_id": user_id})
                raise NotFound("User block not found") from exc
            self._logger.error(
                f"Failed to unblock user {user_id} in the database: {exc}",
                exc_info=exc,
                extra={"user_id": user_id},
            )
            raise InternalError() from exc

    async def _unblock_remote(self, user_id: str) -> None:
        try:
            await self._provider.unblock_user(user_id)
        except Exception as exc:
            raise self._provider_failure("unblock", user_id, exc) from exc

    async def _commit(self, tx: Repository, user_id: str) -> None:
        try:
            await tx.commit()
        except Exception as exc:
            self._logger.error(f"Failed to commit transaction for user {user_id}: {exc}", exc_info=exc)
            raise InternalError() from exc

    def _provider_failure(self, action: str, user_id: str, exc: Exception) -> ShortenerError:
        self._logger.error(
            f"Failed to {action} user {user_id} in the identity provider: {exc}",
            exc_info=exc,
            extra={"user_id": user_id},
        )
        if isinstance(exc, IdentityProviderAPIError):
            return ProviderError(status_code=exc.status_code)
        return InternalError()
