"""
Shared pytest fixtures for the gateway test suite.

Provides the Flask app and test client (open and key-gated variants)
plus a configurable fake upstream.  The fake replaces the outbound
``requests.request`` call so no test ever reaches the network, while
still recording exactly what the gateway asked for.
"""

from __future__ import annotations

import os

import pytest

os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_PROXY_KEY"] = ""
os.environ["TEST_PROXY_TIMEOUT"] = "1"

from proxy_app import create_app
from tests.helpers import TEST_PROXY_KEY


@pytest.fixture(scope="session")
def app():
    """Gateway app with the access gate disabled."""
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture(scope="session")
def keyed_app():
    """Gateway app that requires ``TEST_PROXY_KEY`` on every request."""
    application = create_app("testing", overrides={"PROXY_KEY": TEST_PROXY_KEY})
    yield application


@pytest.fixture(scope="function")
def keyed_client(keyed_app):
    with keyed_app.test_client() as test_client:
        yield test_client


@pytest.fixture
def upstream(monkeypatch):
    """
    Install a fake upstream and capture the outbound request.

    Usage::

        captured = upstream(FakeUpstreamResponse(...))
        client.get("/proxy?url=...")
        captured["url"]

    Passing an exception instance makes the outbound call raise it.
    """

    def _install(result):
        captured: dict = {"calls": 0}

        def _fake_request(**kwargs):
            captured["calls"] += 1
            captured.update(kwargs)
            if isinstance(result, BaseException):
                raise result
            return result

        monkeypatch.setattr("proxy_app.orchestrator.requests.request", _fake_request)
        return captured

    return _install
