"""Short-code allocation.

Flow Diagram — allocate()
=========================
::
    ┌──────────────────┐
    │ allocate(url,    │
    │   custom, owner) │
    └────────┬─────────┘
             ▼
      custom code given?
    ┌────────┴─────────────────────┐
    │ YES                          │ NO
    ▼                              ▼
┌──────────────┐            ┌──────────────────┐
│ owner?       │            │ RetryPolicy(3,   │
│ no → 403     │            │ duplicate key)   │
└──────┬───────┘            └────────┬─────────┘
       ▼                             ▼
┌──────────────┐            ┌──────────────────┐
│ validate     │            │ generate + insert│◀──┐
│ 5-16, alpha  │            │ is_custom=false  │   │ collision
└──────┬───────┘            └────────┬─────────┘───┘
       ▼                             ▼
┌──────────────┐            ┌──────────────────┐
│ single insert│            │ exhausted → 500  │
│ dup → 409    │            │ other error → 500│
└──────────────┘            └──────────────────┘

Key Behaviours
===============
- Anonymous callers may never choose a code, whatever the code looks like.
- Custom codes are inserted once; a taken code is a terminal ``Conflict``.
- Generated codes are retried on primary-key collisions only, immediately and
  at most ``max_attempts`` times in total.
- Uniqueness under concurrency comes from the primary key, not from locks.
- Success writes exactly one row; failure writes none.
"""

import logging
from collections.abc import Callable

from prometheus_client import Counter

from shortener.enums import RequestStatus
from shortener.errors import Conflict, Forbidden, InternalError
from shortener.generator import generate_short_code
from shortener.models import URL
from shortener.repository import Repository
from shortener.retry import RetryExhausted, RetryPolicy
from shortener.validation import validate_long_url, validate_short_code

__all__ = ["CodeAllocator", "DEFAULT_MAX_ATTEMPTS"]

DEFAULT_MAX_ATTEMPTS = 3

URL_ALLOCATIONS_TOTAL = Counter(
    "shortener_url_allocations_total",
    "Short code allocations by outcome",
    ["status", "custom"],
)
SHORT_CODE_COLLISIONS_TOTAL = Counter(
    "shortener_short_code_collisions_total",
    "Generated short codes that collided with an existing code",
)


class CodeAllocator:
    """Creates new URL mappings, either from a caller-chosen or a generated code."""

    def __init__(
        self,
        store: Repository,
        generator: Callable[[int | None], str] = generate_short_code,
        code_length: int | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._code_length = code_length
        self._logger = logger or logging.getLogger("shortener")
        self._retry_policy = RetryPolicy(
            max_attempts=max_attempts,
            is_retryable=store.is_duplicate_key_error,
            logger=self._logger,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    async def allocate(self, long_url: str, custom_code: str | None = None, owner_id: str | None = None) -> URL:
        if custom_code:
            return await self._allocate_custom(long_url, custom_code, owner_id)
        return await self._allocate_generated(long_url, owner_id)

    async def _allocate_custom(self, long_url: str, custom_code: str, owner_id: str | None) -> URL:
        if not owner_id:
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.FORBIDDEN, custom="true").inc()
            self._logger.info("Anonymous caller attempted to create a custom short code")
            raise Forbidden("Only authenticated users can create custom short codes")

        try:
            validate_short_code(custom_code)
            validate_long_url(long_url)
        except Exception:
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR, custom="true").inc()
            raise

        try:
            url = await self._store.create_url(custom_code, long_url, is_custom=True, user_id=owner_id)
        except Exception as exc:
            if self._store.is_duplicate_key_error(exc):
                URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.CONFLICT, custom="true").inc()
                raise Conflict(errors={"short_code": "Short code is not available"}) from exc
            if self._store.is_check_constraint_error(exc):
                URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.CONFLICT, custom="true").inc()
                raise Conflict(errors={"short_code": "Custom short code could not be created"}) from exc
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.ERROR, custom="true").inc()
            self._logger.error(
                f"Failed to create custom short url {custom_code}: {exc}",
                exc_info=exc,
                extra={"short_code": custom_code, "user_id": owner_id},
            )
            raise InternalError() from exc

        URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.SUCCESS, custom="true").inc()
        self._logger.info(f"Custom short url created: {url.code}", extra={"short_code": url.code, "user_id": owner_id})
        return url

    async def _allocate_generated(self, long_url: str, owner_id: str | None) -> URL:
        try:
            validate_long_url(long_url)
        except Exception:
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR, custom="false").inc()
            raise

        async def attempt_insert(attempt: int) -> URL:
            code = self._generator(self._code_length)
            try:
                return await self._store.create_url(code, long_url, is_custom=False, user_id=owner_id)
            except Exception as exc:
                if self._store.is_duplicate_key_error(exc):
                    SHORT_CODE_COLLISIONS_TOTAL.inc()
                raise

        try:
            url = await self._retry_policy.run(attempt_insert)
        except RetryExhausted as exc:
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.ERROR, custom="false").inc()
            self._logger.error(
                f"Failed to generate a free short code after {exc.attempts} attempts",
                extra={"attempt": exc.attempts},
            )
            raise InternalError() from exc
        except Exception as exc:
            URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.ERROR, custom="false").inc()
            if self._store.is_check_constraint_error(exc):
                raise Conflict(errors={"short_code": "Short code could not be created"}) from exc
            self._logger.error(f"Failed to generate short url: {exc}", exc_info=exc)
            raise InternalError() from exc

        URL_ALLOCATIONS_TOTAL.labels(status=RequestStatus.SUCCESS, custom="false").inc()
        self._logger.info(f"Short url generated: {url.code}", extra={"short_code": url.code, "user_id": owner_id})
        return url
