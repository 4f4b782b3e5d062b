"""Storage module for RangeKV."""

from .pending_log import EntryState, LogEntry, PendingLog
from .store import KVStore

__all__ = ["EntryState", "KVStore", "LogEntry", "PendingLog"]
