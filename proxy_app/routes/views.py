"""
Gateway pages served directly, without touching any upstream.

Endpoints:
    GET /         - Form for entering a target URL and access key
    GET /_health  - Liveness probe
"""

from __future__ import annotations

from flask import Blueprint, Response, render_template_string, request

from proxy_app.auth import require_proxy_key
from proxy_app.rewriter import PROXY_ROUTE

views_bp = Blueprint("views", __name__)

HOME_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Mini Proxy</title>
</head>
<body>
  <h2>Mini Proxy (Navigation-enabled)</h2>
  <form method="get" action="{{ proxy_path }}">
    <input type="text" name="url" placeholder="https://example.com" size="60" />
    <input type="text" name="key" placeholder="API key (if required)" size="30" value="{{ key }}" />
    <button type="submit">Go</button>
  </form>
</body>
</html>
"""


@views_bp.route("/", methods=["GET"])
@require_proxy_key
def home() -> str:
    """Render the target-URL form, pre-filling ``key`` when one was given."""
    return render_template_string(
        HOME_TEMPLATE,
        proxy_path=PROXY_ROUTE,
        key=request.args.get("key", ""),
    )


@views_bp.route("/_health", methods=["GET"])
@require_proxy_key
def health_check() -> tuple[Response, int]:
    """Answer load balancers with a fixed plain-text body."""
    return Response("ok", mimetype="text/plain"), 200
