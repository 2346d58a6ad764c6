"""Shared enums for the URL shortener service.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["HealthStatus", "RequestStatus", "CacheStatus", "Permission"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Cache lookup outcomes."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


class Permission(StrEnum):
    """Permissions carried by verified access tokens."""

    CREATE_URLS = "create:urls"
    DELETE_URLS = "delete:urls"
    DELETE_OWN_URLS = "delete:own-urls"
    GET_OWN_URLS = "get:own-urls"
    GET_URL = "get:url"
    BLOCK_USERS = "block:users"
