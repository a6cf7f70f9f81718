"""Input validation and normalization for identities and request metadata."""

import re
import unicodedata

from lockguard.core.errors import InvalidIdentityError

# Control characters to remove (except newline, tab)
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

# Multiple whitespace pattern
MULTI_WHITESPACE_PATTERN = re.compile(r"\s+")

MAX_IDENTITY_LENGTH = 255
MAX_USER_AGENT_LENGTH = 512
MAX_IP_LENGTH = 64


def normalize_single_line(text: str | None) -> str | None:
    """
    Normalize text for single-line fields:
    - Normalizing Unicode to NFC form
    - Removing control characters and newlines
    - Stripping and collapsing whitespace

    Returns None if input is None.
    """
    if text is None:
        return None

    text = unicodedata.normalize("NFC", text)
    text = text.replace("\n", " ").replace("\r", " ")
    text = CONTROL_CHAR_PATTERN.sub("", text)
    text = text.strip()
    return MULTI_WHITESPACE_PATTERN.sub(" ", text)


def is_safe_string(text: str) -> bool:
    """
    Check if a string is safe (no control characters, null bytes).
    """
    if not text:
        return True
    return CONTROL_CHAR_PATTERN.search(text) is None


def normalize_identity(identity: str | None) -> str:
    """Return the lookup key for an identity (trimmed, NFC, lowercased).

    Raises InvalidIdentityError for empty identities, identities with control
    characters or whitespace inside, and identities longer than the column.
    """
    if identity is None:
        raise InvalidIdentityError("Identity is required")

    key = unicodedata.normalize("NFC", identity).strip().lower()
    if not key:
        raise InvalidIdentityError("Identity is required")
    if not is_safe_string(key) or MULTI_WHITESPACE_PATTERN.search(key):
        raise InvalidIdentityError("Identity contains invalid characters")
    if len(key) > MAX_IDENTITY_LENGTH:
        raise InvalidIdentityError("Identity is too long")
    return key


def clip_metadata(value: str | None, max_len: int) -> str | None:
    """Normalize diagnostic metadata (IP, user agent) and truncate to column size."""
    value = normalize_single_line(value)
    if not value:
        return None
    return value[:max_len]
