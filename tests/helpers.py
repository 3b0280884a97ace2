"""Fake upstream responses and constants shared by the gateway tests."""

from __future__ import annotations

from types import SimpleNamespace

from requests.structures import CaseInsensitiveDict

TEST_PROXY_KEY = "s3cret"


class FakeUpstreamResponse:
    """
    Stand-in for a streamed ``requests.Response``.

    ``url`` plays the post-redirect URL.  The body is served in chunks
    through both ``iter_content`` (decoded path) and ``raw.stream``
    (wire path); ``closed`` records whether the gateway released it.
    """

    def __init__(
        self,
        *,
        url: str = "http://example.test/",
        status_code: int = 200,
        body: bytes = b"",
        headers: dict[str, str] | None = None,
    ):
        self.url = url
        self.status_code = status_code
        self.body = body
        self.headers = CaseInsensitiveDict(headers or {})
        self.raw = SimpleNamespace(stream=self._raw_stream)
        self.closed = False
        self.raw_decode_content: list[bool] = []

    def _chunks(self, size: int):
        for start in range(0, len(self.body), size):
            yield self.body[start:start + size]

    def iter_content(self, chunk_size: int = 1, decode_unicode: bool = False):
        return self._chunks(chunk_size)

    def _raw_stream(self, amt: int = 2 ** 16, decode_content: bool | None = None):
        self.raw_decode_content.append(decode_content)
        return self._chunks(amt)

    def close(self) -> None:
        self.closed = True


def html_upstream(markup: str, *, url: str = "http://example.test/", **kwargs) -> FakeUpstreamResponse:
    """Build a fake upstream serving *markup* as ``text/html``."""
    headers = kwargs.pop("headers", None) or {"Content-Type": "text/html; charset=utf-8"}
    return FakeUpstreamResponse(url=url, body=markup.encode("utf-8"), headers=headers, **kwargs)
