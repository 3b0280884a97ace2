"""
Content Classifier & Streamer.

Decides how an upstream response reaches the client.  HTML is buffered,
rewritten and re-emitted as UTF-8; everything else is relayed byte for
byte, chunk by chunk, with only a fixed allow-list of headers copied
across.

Charset policy: the buffered HTML body is decoded as UTF-8 (invalid
sequences replaced) and always re-declared as ``text/html;
charset=utf-8``.  Charsets declared by the upstream, in headers or in
``<meta>`` tags, are not honoured by this layer.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from flask import Response, stream_with_context

from proxy_app.models import UpstreamResponse
from proxy_app.rewriter import rewrite_html

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
FALLBACK_CONTENT_TYPE = "application/octet-stream"

# The only upstream headers relayed on the pass-through path.  Cookies,
# redirects and everything else stay behind.
PASSTHROUGH_HEADERS = (
    "content-type",
    "content-length",
    "cache-control",
    "content-encoding",
    "last-modified",
)


def is_html(content_type: str | None) -> bool:
    """Return True when *content_type* mentions ``text/html`` in any case."""
    return "text/html" in (content_type or "").lower()


def decode_html(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def render_html(
    upstream: UpstreamResponse,
    access_key: str | None,
    max_bytes: int,
    chunk_size: int = 8192,
    deadline: float | None = None,
) -> Response:
    """
    Buffer, rewrite and return an HTML upstream response.

    The upstream connection is released before returning, whether or
    not the body could be read.

    Raises:
        UpstreamTooLargeError: if the body exceeds *max_bytes*.
        requests.Timeout: if the body takes longer than *deadline*.
    """
    try:
        body = upstream.read_body(max_bytes, chunk_size, deadline)
    finally:
        upstream.close()

    document = rewrite_html(decode_html(body), upstream.final_url, access_key)
    return Response(document, status=upstream.status, content_type=HTML_CONTENT_TYPE)


def passthrough_headers(upstream: UpstreamResponse) -> dict[str, str]:
    headers: dict[str, str] = {}
    for name in PASSTHROUGH_HEADERS:
        value = upstream.headers.get(name)
        if value:
            headers[name.title()] = value
    return headers


def stream_passthrough(upstream: UpstreamResponse, chunk_size: int = 8192) -> Response:
    """
    Relay a non-HTML upstream body without parsing or buffering it.

    Chunks are read from the raw connection with content decoding
    disabled, so a compressed body reaches the client exactly as the
    upstream sent it, alongside its ``Content-Encoding`` header.
    """
    headers = passthrough_headers(upstream)

    def generate() -> Iterator[bytes]:
        try:
            yield from upstream.iter_raw(chunk_size)
        except Exception:
            # Headers are already sent; all that is left is to log and drop.
            logger.exception("Stream from %s aborted", upstream.final_url)
            raise
        finally:
            upstream.close()

    response = Response(
        stream_with_context(generate()),
        status=upstream.status,
        headers=headers,
        mimetype=None if "Content-Type" in headers else FALLBACK_CONTENT_TYPE,
    )
    # Covers clients that disconnect before the first chunk is pulled.
    response.call_on_close(upstream.close)
    return response
