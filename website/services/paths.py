from __future__ import annotations

from urllib.parse import quote_plus


def sanitize_path(path: str) -> str:
    """Query-escape a request path, keeping the slashes and dropping control characters.

    The result is safe to use as a log field and as a metrics label.
    """

    escaped = quote_plus(path).replace("%2F", "/")
    return "".join(ch for ch in escaped if ord(ch) >= 32 and ord(ch) != 127)
