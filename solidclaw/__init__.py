"""Solidclaw: encrypted credential broker with device-code auth and env injection."""

__version__ = "0.1.0"
