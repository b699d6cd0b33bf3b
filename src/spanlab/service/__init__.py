"""FastAPI service for span extraction."""

from spanlab.service.app import app, create_app

__all__ = ["app", "create_app"]
