"""
Test suite for the Mini Proxy gateway.

This package contains:
- unit/: single-module tests (resolver, rewriter, streaming helpers, gate)
- integration/: requests through the Flask test client with a faked upstream
"""
