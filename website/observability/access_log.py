from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping

_TIME_FORMAT = "%d/%b/%Y:%H:%M:%S %z"
_ESCAPES = str.maketrans({"\n": "\\n", "\r": "\\r", "\t": "\\t"})


def sanitize_log_field(value: str) -> str:
    """Escape line breaks and tabs so a single request stays on a single line."""

    return value.translate(_ESCAPES)


def resolve_client_ip(headers: Mapping[str, str], peer: str | None) -> str:
    """Real client address: Cloudflare header, then X-Forwarded-For, then the socket peer."""

    for name in ("cf-connecting-ip", "x-forwarded-for"):
        value = headers.get(name)
        if value:
            return value
    return peer or "-"


@dataclass
class AccessRecord:
    vhost: str
    client_ip: str
    method: str
    uri: str
    protocol: str
    status_code: int
    response_size: int
    referer: str = ""
    user_agent: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def format(self) -> str:
        ts = self.timestamp.astimezone(timezone.utc).strftime(_TIME_FORMAT)
        clean = sanitize_log_field
        return (
            f"{clean(self.vhost or '-')} {clean(self.client_ip)} [{ts}] "
            f'"{clean(self.method)} {clean(self.uri)} {clean(self.protocol)}" '
            f"{self.status_code} {self.response_size} "
            f'"{clean(self.referer)}" "{clean(self.user_agent)}"'
        )
