"""Redaction helpers for run logs and structured log payloads."""

from __future__ import annotations

import os
import re
from typing import Any, Iterable, Mapping
from urllib.parse import urlsplit, urlunsplit

__all__ = [
    "REDACTED",
    "SECRET_ENV_KEYS",
    "SECRET_PATTERNS",
    "mask_uri",
    "sanitize_text",
    "scrub_object",
]

REDACTED = "***"
_CIRCULAR = "<circular>"
_MIN_SECRET_LENGTH = 4

# Always redacted, whatever their names look like.
SECRET_ENV_KEYS: frozenset[str] = frozenset(
    {
        "OPENAI_API_KEY",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SESSION_TOKEN",
        "NEO4J_PASSWORD",
    }
)

_SENSITIVE_NAME = re.compile(
    r"(?i)(?:^|[_-])(?:key|token|secret|password|passwd|credentials?|authorization|bearer)(?:$|[_-])"
)

SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    # OpenAI style API keys.
    (re.compile(r"sk-[A-Za-z0-9_-]{4,}"), REDACTED),
    # AWS access key ids.
    (re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b"), REDACTED),
    # user:password@ in bolt://, neo4j:// and http(s):// URIs.
    (re.compile(r"(?<=://)[^\s/:@]+:[^\s/@]+@"), f"{REDACTED}@"),
    (
        re.compile(
            r"(?i)\b(api[_-]?key|password|secret|token|aws_secret_access_key|aws_session_token)"
            r"(\"?\s*[:=]\s*)['\"]?[^\s'\",}]{4,}['\"]?"
        ),
        rf"\1\2{REDACTED}",
    ),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._-]{10,}"), f"Bearer {REDACTED}"),
)


def _is_sensitive_name(name: str) -> bool:
    return bool(_SENSITIVE_NAME.search(name))


def _secret_env_values() -> list[str]:
    """Values of secret-looking environment variables, longest first."""

    values = {
        value
        for key, value in os.environ.items()
        if len(value) >= _MIN_SECRET_LENGTH and (key in SECRET_ENV_KEYS or _is_sensitive_name(key))
    }
    return sorted(values, key=len, reverse=True)


def mask_uri(uri: str) -> str:
    """Return ``uri`` with any embedded credentials replaced by ``***``."""

    try:
        parts = urlsplit(uri)
    except ValueError:
        return REDACTED
    if "@" not in parts.netloc:
        return uri
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"{REDACTED}@{host}"))


def sanitize_text(text: Any, *, extra_patterns: Iterable[re.Pattern[str]] | None = None) -> Any:
    """
    Redact secrets from a string.

    Values of secret environment variables are replaced first, then every
    pattern in ``SECRET_PATTERNS`` and finally ``extra_patterns``.

    Parameters:
        text (Any): Input text; non-string values are returned unchanged.
        extra_patterns (Iterable[re.Pattern[str]] | None): Additional patterns whose matches become ``***``.

    Returns:
        Any: The redacted string, or ``text`` itself when it is not a string.
    """
    if not isinstance(text, str):
        return text

    sanitized = text
    for value in _secret_env_values():
        sanitized = sanitized.replace(value, REDACTED)
    for pattern, replacement in SECRET_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)
    for pattern in extra_patterns or ():
        sanitized = pattern.sub(REDACTED, sanitized)
    return sanitized


def scrub_object(obj: Any, *, _seen: set[int] | None = None) -> Any:
    """Return a redacted deep copy of ``obj`` suitable for JSON run logs.

    Mapping entries under secret-looking keys are replaced wholesale; strings
    anywhere else go through ``sanitize_text``. Reference cycles are cut with
    a ``"<circular>"`` marker.
    """

    if isinstance(obj, str):
        return sanitize_text(obj)
    if not isinstance(obj, (Mapping, list, tuple, set)):
        return obj

    seen = set() if _seen is None else _seen
    marker = id(obj)
    if marker in seen:
        return _CIRCULAR
    seen.add(marker)
    try:
        if isinstance(obj, Mapping):
            return {
                key: (
                    REDACTED
                    if value is not None and isinstance(key, str) and _is_sensitive_name(key)
                    else scrub_object(value, _seen=seen)
                )
                for key, value in obj.items()
            }
        items = [scrub_object(item, _seen=seen) for item in obj]
        if isinstance(obj, tuple):
            return tuple(items)
        if isinstance(obj, set):
            return set(items)
        return items
    finally:
        seen.discard(marker)
