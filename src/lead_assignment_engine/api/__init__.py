"""HTTP API for lead assignment."""

from .main import create_app

__all__ = ["create_app"]
