"""
Service layer infrastructure around the correlation engine.

Provides:
- SignalDedupGuard: TTL store suppressing repeat alerts across cycles
"""

from worldpulse.services.dedup_guard import DedupGuardStats, SignalDedupGuard

__all__ = [
    "SignalDedupGuard",
    "DedupGuardStats",
]
