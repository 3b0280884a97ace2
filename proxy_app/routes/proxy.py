"""
The ``/proxy`` endpoint.

Turns the inbound Flask request into a ``TargetRequest`` and hands it to
the application's ``ProxyOrchestrator``.  Only ``GET`` is served; forms
are rewritten to submit here with their fields as query parameters.
"""

from __future__ import annotations

from flask import Blueprint, Response, request

from proxy_app.auth import get_orchestrator, require_proxy_key
from proxy_app.models import TargetRequest
from proxy_app.rewriter import PROXY_ROUTE

proxy_bp = Blueprint("proxy", __name__)


@proxy_bp.route(PROXY_ROUTE, methods=["GET"])
@require_proxy_key
def proxy() -> tuple[Response, int]:
    """
    Fetch ``?url=`` and relay it, rewriting HTML so links stay proxied.

    Returns:
        The rewritten or streamed upstream response, or a JSON error.
    """
    target = TargetRequest(
        raw_url=request.args.get("url"),
        access_key=request.args.get("key") or None,
        headers=request.headers,
    )
    return get_orchestrator().handle(target)
