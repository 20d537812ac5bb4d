"""Utility helpers."""

from cache_populator.utils.redaction import redact_url, sanitize_log_message

__all__ = ["redact_url", "sanitize_log_message"]
