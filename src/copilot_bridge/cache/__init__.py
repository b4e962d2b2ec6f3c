"""Disk-based token caching for copilot-bridge.

This package provides :class:`TokenCache`, an expiring key/value store on
top of :mod:`diskcache` with delete-before-write semantics and reads that
never raise.
"""

from copilot_bridge.cache.cache import TokenCache

__all__ = ["TokenCache"]
