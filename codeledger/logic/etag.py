"""ETag helpers for the ledger view.

The ledger's version token is exposed as a strong entity tag so HTTP clients
can poll the ledger cheaply with If-None-Match.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def ledger_etag(token: str) -> str:
    """Return the quoted entity tag for a ledger version token."""
    return f'"{token}"'


def _split_tags(value: str) -> list[str]:
    """Split a header on commas that are not inside quotes."""
    in_quote = False
    buf: list[str] = []
    parts: list[str] = []
    for ch in value:
        if ch == '"':
            in_quote = not in_quote
            buf.append(ch)
        elif ch == "," and not in_quote:
            parts.append("".join(buf).strip())
            buf.clear()
        else:
            buf.append(ch)
    if in_quote:
        raise ValueError("unterminated quoted string in entity-tag list")
    parts.append("".join(buf).strip())
    return [p for p in parts if p]


def normalize_etag(raw: str) -> str:
    """Return the opaque tag without weak prefix or quotes; '' when invalid."""
    t = raw.strip()
    if len(t) >= 2 and t[:2].upper() == "W/":
        t = t[2:].lstrip()
    if not (len(t) >= 2 and t.startswith('"') and t.endswith('"')):
        return ""
    inner = t[1:-1].strip()
    if '"' in inner:
        return ""
    return inner


def etag_matches(token: str, header: str | None) -> bool:
    """Return True when an If-None-Match style header names `token`.

    Supports '*' and comma-separated lists; weak validators compare equal to
    strong ones. Malformed headers never match.
    """
    if header is None or not header.strip():
        return False
    if header.strip() == "*":
        return True
    try:
        tags = _split_tags(header)
    except ValueError:
        logger.info("etag.malformed header=%r", header)
        return False
    return any(normalize_etag(tag) == token for tag in tags)


__all__ = ["ledger_etag", "normalize_etag", "etag_matches"]
