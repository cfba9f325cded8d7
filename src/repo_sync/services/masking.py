"""Masking helpers that keep secrets out of diagnostic output."""

from __future__ import annotations

import re
from urllib.parse import urlparse, urlunparse

MASK_PREFIX = "****"
FULLY_MASKED = "********"
VISIBLE_TAIL = 4

_URL_WITH_CREDS_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
_BASIC_AUTH_FRAGMENT = re.compile(r"(https?://)([^/@]+@)")


def mask_secret(secret: str) -> str:
    """Return a fixed mask followed by the last four characters of ``secret``.

    The mask length does not depend on the secret length. Secrets shorter
    than four characters are masked entirely.
    """
    if not secret or len(secret) < VISIBLE_TAIL:
        return FULLY_MASKED
    return f"{MASK_PREFIX}{secret[-VISIBLE_TAIL:]}"


def mask_sensitive_text(value: str) -> str:
    """Mask credentials within any Git-style URLs contained in ``value``."""

    if not isinstance(value, str):
        return str(value)

    def _replace(match: re.Match[str]) -> str:
        return mask_url_credentials(match.group(0))

    return _URL_WITH_CREDS_PATTERN.sub(_replace, value)


def mask_url_credentials(url: str) -> str:
    """Replace the credential portion of a URL with masked placeholders."""

    try:
        parsed = urlparse(url)
        port = f":{parsed.port}" if parsed.port else ""
    except ValueError:
        return _BASIC_AUTH_FRAGMENT.sub(r"\1***@", url)

    if parsed.scheme.lower() not in {"http", "https"}:
        return url

    netloc = parsed.netloc
    if "@" not in netloc:
        return url

    hostname = parsed.hostname or ""
    if parsed.password is not None:
        userinfo = "***:***@"
    else:
        userinfo = "***@"

    return urlunparse(parsed._replace(netloc=f"{userinfo}{hostname}{port}"))
