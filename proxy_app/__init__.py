"""
Mini Proxy application factory.

This module provides the Flask application factory for the forwarding
gateway.  The gateway fetches a remote page on behalf of the client
and, for HTML, rewrites every embedded reference so that navigation
keeps flowing through ``/proxy`` instead of escaping to the origin.
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask

from config import get_config
from proxy_app.auth import EXTENSION_NAME
from proxy_app.models import ProxySettings
from proxy_app.orchestrator import ProxyOrchestrator
from proxy_app.routes.proxy import proxy_bp
from proxy_app.routes.views import views_bp

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(config_name: str | None = None, overrides: dict[str, Any] | None = None) -> Flask:
    """
    Construct and configure the gateway Flask application.

    Args:
        config_name: Optional environment key ("development", "testing",
            "production").  When *None*, the FLASK_ENV environment
            variable is consulted, defaulting to "development".
        overrides: Config keys applied on top of the selected class,
            e.g. ``{"PROXY_KEY": "secret"}``.

    Returns:
        A Flask application with the proxy orchestrator attached and
        the view and proxy blueprints registered.
    """
    app = Flask(__name__)
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    logger.info("Creating gateway app with config: %s", config_class.__name__)

    settings = ProxySettings.from_config(app.config)
    app.extensions[EXTENSION_NAME] = ProxyOrchestrator(settings)
    if settings.access_key:
        logger.info("Access key gate enabled")

    app.register_blueprint(views_bp)
    app.register_blueprint(proxy_bp)
    return app
