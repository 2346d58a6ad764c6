"""Input validation applied by the core services before anything is written."""

import re
from urllib.parse import urlsplit

import validators

from shortener.errors import ValidationError
from shortener.models import SHORT_CODE_MAX_LENGTH

__all__ = [
    "CUSTOM_CODE_MIN_LENGTH",
    "CUSTOM_CODE_MAX_LENGTH",
    "validate_short_code",
    "validate_long_url",
]

CUSTOM_CODE_MIN_LENGTH = 5
CUSTOM_CODE_MAX_LENGTH = SHORT_CODE_MAX_LENGTH

# Same symbols the generator draws from.
SHORT_CODE_PATTERN = re.compile(r"[a-zA-Z0-9_-]+")


def validate_short_code(code: str) -> str:
    if not CUSTOM_CODE_MIN_LENGTH <= len(code) <= CUSTOM_CODE_MAX_LENGTH:
        raise ValidationError(
            errors={
                "short_code": (
                    f"Short code must be between {CUSTOM_CODE_MIN_LENGTH} "
                    f"and {CUSTOM_CODE_MAX_LENGTH} characters"
                )
            }
        )
    if not SHORT_CODE_PATTERN.fullmatch(code):
        raise ValidationError(errors={"short_code": "Short code cannot contain special characters"})
    return code


def validate_long_url(url: str) -> str:
    # validators.url rejects malformed hosts that make urlsplit raise.
    if not url or not validators.url(url) or urlsplit(url).scheme not in ("http", "https"):
        raise ValidationError(errors={"url": "Invalid URL provided"})
    return url
