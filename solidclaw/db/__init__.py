"""Database connection management for Solidclaw."""

from solidclaw.db.connection import create_pool, get_connection

__all__ = ["create_pool", "get_connection"]
