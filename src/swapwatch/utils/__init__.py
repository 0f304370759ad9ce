"""Shared utilities."""

from .logger import get_logger, set_trace_id

__all__ = ["get_logger", "set_trace_id"]
