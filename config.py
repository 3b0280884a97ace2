"""
Mini Proxy configuration.

Defines environment-specific configuration classes for the forwarding
gateway.  Each class captures the optional access secret, the bounds
applied to upstream fetches (timeout, buffered HTML size), and the
defaults substituted for missing inbound headers.  The ``get_config``
factory selects the right class based on the ``FLASK_ENV`` environment
variable (or an explicit key).
"""

from __future__ import annotations

import os


class Config:
    """
    Base (shared) configuration for the gateway.

    All environment-specific classes inherit from ``Config`` so that
    common defaults only need to be stated once.  Individual settings
    can be overridden by environment variables.
    """

    # Shared secret required on every request via ``?key=`` or the
    # ``x-api-key`` header.  Empty disables the access gate.
    PROXY_KEY: str = os.environ.get("PROXY_KEY", "")

    # Seconds to wait on upstream connect and on each read before giving
    # up with 502.  Not a bound on the whole transfer.
    PROXY_TIMEOUT: float = float(os.environ.get("PROXY_TIMEOUT", "30"))

    # HTML bodies are buffered for rewriting; anything larger is refused.
    MAX_HTML_BYTES: int = int(os.environ.get("MAX_HTML_BYTES", str(10 * 1024 * 1024)))

    # Total seconds allowed for buffering one HTML body.
    HTML_READ_DEADLINE: float = float(os.environ.get("HTML_READ_DEADLINE", "60"))

    # Chunk size used when relaying non-HTML bodies.
    STREAM_CHUNK_SIZE: int = int(os.environ.get("STREAM_CHUNK_SIZE", "8192"))

    DEFAULT_USER_AGENT: str = os.environ.get("DEFAULT_USER_AGENT", "mini-proxy")
    DEFAULT_ACCEPT: str = os.environ.get("DEFAULT_ACCEPT", "*/*")


class DevelopmentConfig(Config):
    """Development-oriented overrides."""

    DEBUG: bool = True
    TESTING: bool = False


class TestingConfig(Config):
    """
    Test-suite overrides.

    The access gate is off unless ``TEST_PROXY_KEY`` is set, and the
    timeout is reduced so tests that simulate slow upstreams finish
    quickly.
    """

    DEBUG: bool = True
    TESTING: bool = True
    PROXY_KEY: str = os.environ.get("TEST_PROXY_KEY", "")
    PROXY_TIMEOUT: float = float(os.environ.get("TEST_PROXY_TIMEOUT", "1"))


class ProductionConfig(Config):
    """
    Production-hardened overrides.

    Disables debug mode and testing flags.  All other values are
    expected to come from environment variables set at deployment.
    """

    DEBUG: bool = False
    TESTING: bool = False


# Lookup table mapping environment name strings to their config classes.
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Return the configuration class for the given environment.

    Args:
        env: One of ``"development"``, ``"testing"``, or
            ``"production"``.  When *None*, the ``FLASK_ENV``
            environment variable is consulted, falling back to
            ``"development"`` if unset.

    Returns:
        The ``Config`` subclass matching the requested environment,
        or ``DevelopmentConfig`` if the key is unrecognised.
    """
    if env is None:
        env = os.environ.get("FLASK_ENV", "development")
    return config.get(env, config["default"])
