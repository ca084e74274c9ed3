"""Solidclaw HTTP API."""

from solidclaw.api.app import create_app

__all__ = ["create_app"]
