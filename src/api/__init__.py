"""HTTP API surface for UI / CLI collaborators."""

from src.api.app import create_app, start_api

__all__ = ["create_app", "start_api"]
