"""Utility functions and helpers."""

from socks5_gateway.core.utils.utils import format_bytes, format_duration

__all__ = ["format_bytes", "format_duration"]
