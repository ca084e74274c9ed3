"""Audit logging for Solidclaw."""

from solidclaw.audit.logger import log_event, query_log

__all__ = ["log_event", "query_log"]
