"""
Access-key gate for the gateway.

When a shared secret is configured, every route requires it either as
the ``key`` query parameter or in the ``x-api-key`` header.  Requests
without a matching key are answered with ``401`` before the view runs.
The gate holds no state beyond the configured secret.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable
from functools import wraps

from flask import Response, current_app, jsonify, request

from proxy_app.orchestrator import ProxyOrchestrator

API_KEY_HEADER = "x-api-key"
EXTENSION_NAME = "mini_proxy"


def get_orchestrator() -> ProxyOrchestrator:
    """Return the orchestrator created for the current application."""
    return current_app.extensions[EXTENSION_NAME]


def key_matches(supplied: str | None, expected: str) -> bool:
    """
    Compare a supplied key against the configured secret.

    An empty *expected* secret disables the gate, so every request
    matches.  Comparison is constant-time.
    """
    if not expected:
        return True
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_proxy_key(view_func: Callable[..., tuple[Response, int] | Response]):
    """
    Decorator that enforces the shared access key on a route.

    The key is read from ``?key=`` first, then from the ``x-api-key``
    header.

    Args:
        view_func: The Flask view function to protect.

    Returns:
        A wrapped view that only runs when the key matches (or no key
        is configured).
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        expected = get_orchestrator().settings.access_key
        supplied = request.args.get("key") or request.headers.get(API_KEY_HEADER)
        if not key_matches(supplied, expected):
            return jsonify({"error": "Unauthorized: missing or invalid proxy key"}), 401
        return view_func(*args, **kwargs)

    return wrapper
