"""
Integration tests for the gateway routes.

Tests use the Flask test client with ``requests.request`` replaced by a
fake upstream, and cover:
- HTML rewriting end to end
- Byte-exact pass-through of non-HTML bodies
- Error handling and the access-key gate
"""
