"""
Routes package for the gateway.

This package contains route blueprints:
- views: home form and liveness probe
- proxy: the ``/proxy`` fetch-and-rewrite endpoint
"""
