"""
Core Utilities Package

Modules:
    - time: Millisecond timestamp helpers for signing and kline parsing
"""

from core.utils.time import to_utc_datetime, current_utc_timestamp

__all__ = ["to_utc_datetime", "current_utc_timestamp"]
