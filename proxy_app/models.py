"""
Request-scoped value types for the forwarding gateway.

Nothing here is persisted: a ``TargetRequest`` and the
``UpstreamResponse`` fetched for it live for exactly one inbound
request.  ``ProxySettings`` is the only process-wide value and is
frozen once the application has been created.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

import requests


@dataclass(frozen=True)
class ProxySettings:
    """
    Immutable runtime settings handed to the orchestrator at construction.

    Attributes:
        access_key: Shared secret for the access gate; empty disables it.
        timeout: Upstream connect/read timeout in seconds.
        max_html_bytes: Upper bound on a buffered HTML body.
        html_deadline: Seconds allowed for reading a whole HTML body.
        chunk_size: Chunk size used on the binary pass-through path.
        default_user_agent: Sent upstream when the client sends none.
        default_accept: Sent upstream when the client sends none.
    """

    access_key: str = ""
    timeout: float = 30.0
    max_html_bytes: int = 10 * 1024 * 1024
    html_deadline: float = 60.0
    chunk_size: int = 8192
    default_user_agent: str = "mini-proxy"
    default_accept: str = "*/*"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> ProxySettings:
        """Build settings from a Flask ``app.config`` mapping."""
        return cls(
            access_key=config.get("PROXY_KEY", "") or "",
            timeout=float(config.get("PROXY_TIMEOUT", cls.timeout)),
            max_html_bytes=int(config.get("MAX_HTML_BYTES", cls.max_html_bytes)),
            html_deadline=float(config.get("HTML_READ_DEADLINE", cls.html_deadline)),
            chunk_size=int(config.get("STREAM_CHUNK_SIZE", cls.chunk_size)),
            default_user_agent=config.get("DEFAULT_USER_AGENT", cls.default_user_agent),
            default_accept=config.get("DEFAULT_ACCEPT", cls.default_accept),
        )


@dataclass
class TargetRequest:
    """
    What the client asked the gateway to fetch.

    ``raw_url`` is the unvalidated ``url`` query parameter; ``access_key``
    is the ``key`` query parameter, propagated into every rewritten link.
    ``headers`` holds the inbound request headers the orchestrator may
    forward upstream.
    """

    raw_url: str | None
    access_key: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


class UpstreamTooLargeError(Exception):
    """Raised when a buffered upstream body exceeds the configured bound."""

    def __init__(self, limit: int):
        super().__init__(f"Upstream document exceeds {limit} bytes")
        self.limit = limit


class UpstreamResponse:
    """
    Wrapper around a streamed ``requests.Response``.

    ``final_url`` is the post-redirect URL and is the only correct base
    for resolving relative references found in the body.  The body can
    be consumed once, either buffered (``read_body``) or as raw chunks
    (``iter_raw``).
    """

    def __init__(self, response: requests.Response):
        self._response = response
        self.final_url: str = response.url
        self.status: int = response.status_code
        self.headers = response.headers

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "") or ""

    def read_body(self, limit: int, chunk_size: int = 8192, deadline: float | None = None) -> bytes:
        """
        Buffer the decoded body, refusing to hold more than *limit* bytes.

        Content-Encoding (gzip, deflate) is undone here because the body
        is about to be parsed rather than relayed.  The per-read timeout
        of the fetch does not bound a slowly trickling body, so
        *deadline* caps the total seconds spent reading it.

        Raises:
            UpstreamTooLargeError: if the body grows beyond *limit*.
            requests.Timeout: if reading takes longer than *deadline*.
        """
        started = time.monotonic()
        buffer = bytearray()
        for chunk in self._response.iter_content(chunk_size=chunk_size):
            buffer.extend(chunk)
            if len(buffer) > limit:
                raise UpstreamTooLargeError(limit)
            if deadline is not None and time.monotonic() - started > deadline:
                raise requests.Timeout(f"Upstream body not received within {deadline}s")
        return bytes(buffer)

    def iter_raw(self, chunk_size: int = 8192) -> Iterator[bytes]:
        """Yield the body exactly as received on the wire, still encoded."""
        return self._response.raw.stream(chunk_size, decode_content=False)

    def close(self) -> None:
        self._response.close()
