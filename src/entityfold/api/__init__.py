"""HTTP surface for duplicate cleanup."""

from __future__ import annotations

from .app import API_PREFIX, create_app

__all__ = ["API_PREFIX", "create_app"]
