"""
HTTP surface for the commerce session engine.

This package provides a single FastAPI application that exposes:
- Session endpoints to sign in and out
- The identity-scoped cart
- The local notification list
- Order status intake for the watcher
"""

from api.main import app

__all__ = ["app"]
