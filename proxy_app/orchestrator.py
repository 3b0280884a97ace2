"""
Proxy Orchestrator.

Composes the gateway's pieces for a single ``/proxy`` request:

  1. validate the requested target (absolute ``http``/``https`` only),
  2. build a deliberately narrow set of outbound headers,
  3. fetch the target, following redirects, within a bounded timeout,
  4. hand the upstream response to the HTML rewriter or the byte
     streamer depending on its content type.

Every failure is local to the request and reported as a JSON error; a
half-rewritten page is never sent.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from urllib.parse import urlsplit

import requests
from flask import Response, jsonify

from proxy_app.models import ProxySettings, TargetRequest, UpstreamResponse, UpstreamTooLargeError
from proxy_app.streaming import is_html, render_html, stream_passthrough

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}


class InvalidTargetError(ValueError):
    """The requested target cannot be fetched; reported as 400."""


class ProxyOrchestrator:
    """
    Handles ``/proxy`` requests with settings fixed at construction.

    One instance is created per application and shared by all requests;
    it holds no per-request state.
    """

    def __init__(self, settings: ProxySettings):
        self.settings = settings

    # =================================================================
    # Request preparation
    # =================================================================

    @staticmethod
    def validate_target(raw_url: str | None) -> str:
        """
        Check that *raw_url* is an absolute http(s) URL.

        Raises:
            InvalidTargetError: with the client-facing message.
        """
        if not raw_url:
            raise InvalidTargetError("Missing ?url=...")
        url = raw_url.strip()
        try:
            parsed = urlsplit(url)
            parsed.port  # raises ValueError on a non-numeric or out-of-range port
        except ValueError as exc:
            raise InvalidTargetError("Invalid URL") from exc

        if not parsed.scheme:
            raise InvalidTargetError("Invalid URL")
        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            raise InvalidTargetError("Only http/https URLs supported")
        if not parsed.hostname:
            raise InvalidTargetError("Invalid URL")

        # urlsplit is lenient about hosts; requests rejects what it cannot send.
        try:
            requests.Request("GET", url).prepare()
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ) as exc:
            raise InvalidTargetError("Invalid URL") from exc
        return url

    def build_upstream_headers(self, inbound: Mapping[str, str]) -> dict[str, str]:
        """
        Pick the few inbound headers that are sent upstream.

        Only ``User-Agent`` and ``Accept`` (with defaults) and ``Cookie``
        (verbatim, when present) cross the gateway.  Authorization, Host
        and the gateway's own ``x-api-key`` are never forwarded.
        """
        lowered = {name.lower(): value for name, value in inbound.items()}
        headers = {
            "User-Agent": lowered.get("user-agent") or self.settings.default_user_agent,
            "Accept": lowered.get("accept") or self.settings.default_accept,
        }
        cookie = lowered.get("cookie")
        if cookie:
            headers["Cookie"] = cookie
        return headers

    def fetch(self, url: str, headers: dict[str, str]) -> UpstreamResponse:
        response = requests.request(
            method="GET",
            url=url,
            headers=headers,
            allow_redirects=True,
            stream=True,
            timeout=self.settings.timeout,
        )
        return UpstreamResponse(response)

    # =================================================================
    # Entry point
    # =================================================================

    def handle(self, target: TargetRequest) -> tuple[Response, int]:
        """
        Fetch *target* and return the response to send to the client.

        Returns:
            A ``(Response, status_code)`` tuple suitable for returning
            directly from a Flask view function.
        """
        try:
            url = self.validate_target(target.raw_url)
        except InvalidTargetError as exc:
            logger.warning("Rejected proxy target %r: %s", target.raw_url, exc)
            return jsonify({"error": str(exc)}), 400

        logger.info("Proxying GET -> %s", url)
        try:
            upstream = self.fetch(url, self.build_upstream_headers(target.headers))
        except requests.Timeout:
            logger.warning("Upstream timed out after %ss: %s", self.settings.timeout, url)
            return jsonify({"error": "Upstream request timed out"}), 502
        except requests.RequestException as exc:
            logger.warning("Upstream fetch failed for %s: %s", url, exc)
            return jsonify({"error": f"Error fetching target: {exc}"}), 502

        if upstream.final_url != url:
            logger.info("Redirect resolved %s -> %s", url, upstream.final_url)

        if not is_html(upstream.content_type):
            return stream_passthrough(upstream, self.settings.chunk_size), upstream.status

        try:
            response = render_html(
                upstream,
                target.access_key,
                max_bytes=self.settings.max_html_bytes,
                chunk_size=self.settings.chunk_size,
                deadline=self.settings.html_deadline,
            )
        except UpstreamTooLargeError as exc:
            logger.warning("Refusing oversized document from %s: %s", upstream.final_url, exc)
            return jsonify({"error": str(exc)}), 502
        except requests.Timeout:
            logger.warning("Upstream body from %s not received in time", upstream.final_url)
            return jsonify({"error": "Upstream request timed out"}), 502
        except requests.RequestException as exc:
            logger.warning("Upstream body read failed for %s: %s", upstream.final_url, exc)
            return jsonify({"error": f"Error fetching target: {exc}"}), 502
        except Exception as exc:
            logger.exception("Rewriting %s failed", upstream.final_url)
            return jsonify({"error": f"Error rewriting target: {exc}"}), 500
        return response, upstream.status
