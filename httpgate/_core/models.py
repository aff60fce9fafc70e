from __future__ import annotations

from dataclasses import dataclass, field

from httpgate._core._headers import Headers


@dataclass
class Request:
    method: str
    headers: Headers = field(default_factory=lambda: Headers({}))

    @property
    def is_get_or_head(self) -> bool:
        return self.method.upper() in ("GET", "HEAD")


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=lambda: Headers({}))
    body: bytes = b""

    @property
    def is_successful(self) -> bool:
        return 200 <= self.status_code < 300
