from __future__ import annotations

from typing import Optional

import httpx


class ProxyError(Exception):
    """Base class for everything the relay answers with an error response."""

    status_code = 400

    @property
    def public_message(self) -> str:
        return str(self)


class ClassifiedRejection(ProxyError):
    """An expected refusal with a fixed caller-visible message."""

    FORBIDDEN = "forbidden"
    BAD_ADDRESS = "bad_address"
    LOOP = "loop"
    PRIVATE_NETWORK = "private_network"
    MISSING_TARGET = "missing_target"

    MESSAGES = {
        FORBIDDEN: "Forbidden",
        BAD_ADDRESS: "Bad address",
        LOOP: "Loop detected, proxy loading itself.",
        PRIVATE_NETWORK: "Access to private network is denied.",
        MISSING_TARGET: "Bad address",
    }

    def __init__(self, kind: str, reason: Optional[str] = None):
        if kind not in self.MESSAGES:
            raise ValueError(f"Unknown rejection kind: {kind}")
        self.kind = kind
        # reason is for server-side logs only
        self.reason = reason
        super().__init__(self.MESSAGES[kind])

    def __repr__(self) -> str:
        return f"ClassifiedRejection(kind={self.kind!r}, reason={self.reason!r})"


class UnexpectedFailure(ProxyError):
    """Wraps any unclassified error raised while relaying a request."""

    def __init__(self, cause: BaseException, request_url: Optional[str] = None):
        self.cause = cause
        self.request_url = request_url
        super().__init__(str(cause) or type(cause).__name__)

    @property
    def public_message(self) -> str:
        # transport errors carry socket and address details, keep them server-side
        if isinstance(self.cause, httpx.TransportError):
            return "Upstream request failed."
        return f"Proxy request failed: {self}"
