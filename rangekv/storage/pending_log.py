"""
Pending Log Module

Per-node record of writes that were proposed by a range leader but have
not been applied to the local store yet.

Each entry is identified by (range_id, seq), where seq is the sequence
number the range leader assigned at proposal time. Matching on that
identity rather than on the command alone keeps two structurally equal
commands queued back to back apart.

Resolved entries are not kept. Per range the log remembers the highest
applied seq (the applied mark) and the discarded seqs above it; every
seq at or below the mark is closed to new appends.
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from ..protocol.commands import Command


class EntryState(Enum):
    """Lifecycle of a log entry on one node."""
    PENDING = "pending"
    APPLIED = "applied"
    DISCARDED = "discarded"
    # Left the log below the applied mark; no longer tracked individually
    SETTLED = "settled"
    UNKNOWN = "unknown"


@dataclass
class LogEntry:
    """A proposed command awaiting application."""
    range_id: int
    seq: int
    command: Command
    state: EntryState = EntryState.PENDING


class PendingLog:
    """
    Ordered sequence of proposed-but-unapplied commands.

    Entries keep their append order. An entry leaves the log either by
    being applied (complete) or by being dropped after an aborted
    proposal (discard); the log remembers which, so callers can tell a
    committed entry from one whose apply was never confirmed.
    """

    def __init__(self):
        self._entries: "OrderedDict[Tuple[int, int], LogEntry]" = OrderedDict()
        self._last_applied: Dict[int, int] = {}
        self._discarded: Dict[int, Set[int]] = {}

    def last_applied(self, range_id: int) -> int:
        """Highest seq applied for ``range_id`` (0 if none)."""
        return self._last_applied.get(range_id, 0)

    def append(self, range_id: int, seq: int, command: Command) -> bool:
        """
        Append a proposed command.

        Re-appending the same (range_id, seq, command) is a no-op so a
        repeated proposal message does not queue the command twice.

        Returns:
            True if the entry is in the log, False if the identity is
            already taken by a different command or was already resolved
        """
        ident = (range_id, seq)
        existing = self._entries.get(ident)
        if existing is not None:
            return existing.command == command
        if self.state_of(range_id, seq) != EntryState.UNKNOWN:
            return False

        self._entries[ident] = LogEntry(range_id, seq, command)
        return True

    def match(self, range_id: int, seq: int, command: Command) -> Optional[LogEntry]:
        """
        Find the pending entry for (range_id, seq).

        Returns:
            The entry if present and its command equals ``command``,
            None otherwise
        """
        entry = self._entries.get((range_id, seq))
        if entry is None or entry.command != command:
            return None
        return entry

    def complete(self, range_id: int, seq: int) -> Optional[LogEntry]:
        """Remove an entry whose command was applied to the store."""
        entry = self._entries.pop((range_id, seq), None)
        if entry is None:
            return None

        entry.state = EntryState.APPLIED
        if seq > self.last_applied(range_id):
            self._last_applied[range_id] = seq
            discarded = self._discarded.get(range_id)
            if discarded:
                discarded.difference_update([s for s in discarded if s <= seq])
        return entry

    def discard(self, range_id: int, seq: int) -> Optional[LogEntry]:
        """Remove an entry whose proposal was aborted."""
        entry = self._entries.pop((range_id, seq), None)
        if entry is None:
            return None

        entry.state = EntryState.DISCARDED
        if seq > self.last_applied(range_id):
            self._discarded.setdefault(range_id, set()).add(seq)
        return entry

    def state_of(self, range_id: int, seq: int) -> EntryState:
        if (range_id, seq) in self._entries:
            return EntryState.PENDING
        if seq in self._discarded.get(range_id, ()):
            return EntryState.DISCARDED

        mark = self.last_applied(range_id)
        if seq == mark and mark > 0:
            return EntryState.APPLIED
        if seq < mark:
            return EntryState.SETTLED
        return EntryState.UNKNOWN

    def pending(self, range_id: Optional[int] = None) -> List[LogEntry]:
        """Pending entries in append order, optionally for one range."""
        return [
            entry for entry in self._entries.values()
            if range_id is None or entry.range_id == range_id
        ]

    def get_stats(self) -> dict:
        return {
            "pending": len(self._entries),
            "discarded_tracked": sum(len(seqs) for seqs in self._discarded.values()),
            "last_applied": dict(self._last_applied),
        }

    def __len__(self) -> int:
        return len(self._entries)
