"""Data types for the audiobook CORS proxy."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel

Body = Union[str, bytes]


class ProxyRequest(BaseModel):
    """Request body accepted by every proxy endpoint."""

    url: Optional[str] = None


class ContentKind(str, Enum):
    """How an upstream body is relayed."""

    BINARY = "binary"
    TEXT = "text"


@dataclass
class Classification:
    """Outcome of inspecting an upstream content type."""

    kind: ContentKind
    body: Body
    content_type: str


@dataclass
class UpstreamResponse:
    """What a fetcher hands back: status line, headers and the drained body."""

    status: int
    reason: str
    headers: dict[str, str]
    content: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default


@dataclass
class ProxyResult:
    """Neutral response produced once per call and written by an adapter."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: Body = ""

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""

    @property
    def is_binary(self) -> bool:
        return isinstance(self.body, bytes)

    def body_bytes(self) -> bytes:
        """Body ready for the wire."""
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")

    def json(self) -> Any:
        """Decode a JSON body (error results)."""
        return json.loads(self.body_bytes())


class MiddlewareOutcome(str, Enum):
    """Result of offering a request to the embedded middleware."""

    HANDLED = "handled"
    NOT_HANDLED = "not_handled"
    ERROR = "error"


def extract_url(payload: Any) -> Any:
    """Pull the ``url`` field out of a decoded JSON body.

    Anything that is not a JSON object carries no url.
    """
    if isinstance(payload, dict):
        return payload.get("url")
    return None
