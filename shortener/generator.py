"""Random short-code generation.

Codes are drawn uniformly from the URL-safe nanoid alphabet using
``os.urandom`` as the entropy source. Uniqueness is not guaranteed here; the
primary key on ``urls.code`` enforces it and the allocator retries on collision.
"""

from nanoid import generate

__all__ = ["ALPHABET", "DEFAULT_SHORT_CODE_LENGTH", "generate_short_code"]

ALPHABET = "_-0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
DEFAULT_SHORT_CODE_LENGTH = 8


def generate_short_code(length: int | None = None) -> str:
    if not length or length <= 0:
        length = DEFAULT_SHORT_CODE_LENGTH
    return generate(ALPHABET, length)
