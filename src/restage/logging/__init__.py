"""Structured logging utilities."""

from .audit import JsonlAuditLogger, RunEvent, new_run_id, summarize_command, utc_timestamp

__all__ = ["JsonlAuditLogger", "RunEvent", "new_run_id", "summarize_command", "utc_timestamp"]
