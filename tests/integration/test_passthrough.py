"""
Integration tests for the non-HTML pass-through path of ``/proxy``.

Verifies that bodies are relayed byte for byte straight from the raw
upstream stream, that only the allow-listed headers survive, and that
the upstream connection is released once the client has read it.
"""

from __future__ import annotations

import gzip

import pytest

from proxy_app.streaming import PASSTHROUGH_HEADERS
from tests.helpers import FakeUpstreamResponse

pytestmark = pytest.mark.integration


def test_binary_body_is_byte_identical(client, upstream):
    """Test that a multi-chunk binary body reaches the client unchanged."""
    # Arrange
    body = bytes(range(256)) * 40
    fake = FakeUpstreamResponse(
        url="http://example.test/blob.bin",
        body=body,
        headers={"Content-Type": "application/octet-stream", "Content-Length": str(len(body))},
    )
    upstream(fake)

    # Act
    response = client.get("/proxy", query_string={"url": "http://example.test/blob.bin"})

    # Assert
    assert response.status_code == 200
    assert response.data == body
    assert fake.closed is True


def test_only_allow_listed_headers_are_relayed(client, upstream):
    """Test that cookies, redirects and other upstream headers are dropped."""
    # Arrange
    upstream(
        FakeUpstreamResponse(
            body=b"\x89PNG",
            headers={
                "Content-Type": "image/png",
                "Content-Length": "4",
                "Cache-Control": "max-age=60",
                "Last-Modified": "Mon, 19 Oct 2026 10:00:00 GMT",
                "Set-Cookie": "tracker=1",
                "Location": "http://elsewhere.test/",
                "X-Powered-By": "origin",
            },
        )
    )

    # Act
    response = client.get("/proxy", query_string={"url": "http://example.test/logo.png"})

    # Assert
    assert response.data == b"\x89PNG"
    assert {name.lower() for name in response.headers.keys()} <= set(PASSTHROUGH_HEADERS)
    assert response.headers["Content-Type"] == "image/png"
    assert response.headers["Cache-Control"] == "max-age=60"
    assert "Set-Cookie" not in response.headers


def test_compressed_body_is_relayed_without_decoding(client, upstream):
    """Test that gzip bytes and their Content-Encoding pass through untouched."""
    # Arrange
    payload = gzip.compress(b"body { color: red; }")
    fake = FakeUpstreamResponse(
        body=payload,
        headers={"Content-Type": "text/css", "Content-Encoding": "gzip"},
    )
    upstream(fake)

    # Act
    response = client.get("/proxy", query_string={"url": "http://example.test/site.css"})

    # Assert
    assert response.data == payload
    assert response.headers["Content-Encoding"] == "gzip"
    assert fake.raw_decode_content == [False]


def test_missing_content_type_falls_back_to_octet_stream(client, upstream):
    """Test that an untyped upstream body is not mislabelled as HTML."""
    # Arrange
    upstream(FakeUpstreamResponse(body=b"raw"))

    # Act
    response = client.get("/proxy", query_string={"url": "http://example.test/raw"})

    # Assert
    assert response.data == b"raw"
    assert response.headers["Content-Type"] == "application/octet-stream"


def test_upstream_status_is_propagated_on_binary_path(client, upstream):
    """Test that a non-HTML upstream error keeps its status code."""
    # Arrange
    upstream(
        FakeUpstreamResponse(
            status_code=404,
            body=b'{"error": "gone"}',
            headers={"Content-Type": "application/json"},
        )
    )

    # Act
    response = client.get("/proxy", query_string={"url": "http://example.test/api"})

    # Assert
    assert response.status_code == 404
    assert response.data == b'{"error": "gone"}'


class _DropsMidStream(FakeUpstreamResponse):
    """Upstream whose raw connection fails after the first chunk."""

    def _raw_stream(self, amt: int = 2 ** 16, decode_content: bool | None = None):
        self.raw_decode_content.append(decode_content)
        yield b"part"
        raise OSError("read timed out")


def test_stream_failure_aborts_response_and_releases_upstream(client, upstream):
    """Test that a relay broken mid-body errors out and still closes the upstream."""
    # Arrange
    fake = _DropsMidStream(body=b"partial", headers={"Content-Type": "video/mp4"})
    upstream(fake)

    # Act / Assert
    with pytest.raises(OSError, match="read timed out"):
        response = client.get("/proxy", query_string={"url": "http://example.test/clip.mp4"})
        response.get_data()
    assert fake.closed is True
