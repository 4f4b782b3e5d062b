"""
Range Table Module

Defines range descriptors and the ordered, read-only table every node
uses to find the range that owns a key.
"""

import bisect
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, Optional, Tuple


@dataclass(frozen=True)
class RangeDescriptor:
    """
    Bounds and replica assignment of one range.

    Attributes:
        id: Range identifier
        start: First key of the range
        end: Last key of the range (inclusive)
        leader_id: Node that coordinates replication for the range
        leaseholder_id: Node that serves reads and accepts client writes
        replica_ids: Every node holding a copy, leader and leaseholder included
    """
    id: int
    start: int
    end: int
    leader_id: int
    leaseholder_id: int
    replica_ids: FrozenSet[int]

    def __post_init__(self):
        if self.start > self.end:
            raise ValueError(f"Range {self.id}: start {self.start} > end {self.end}")
        if self.leader_id not in self.replica_ids:
            raise ValueError(f"Range {self.id}: leader {self.leader_id} is not a replica")
        if self.leaseholder_id not in self.replica_ids:
            raise ValueError(f"Range {self.id}: leaseholder {self.leaseholder_id} is not a replica")

    def contains(self, key: int) -> bool:
        return self.start <= key <= self.end

    @property
    def quorum(self) -> int:
        """Strict majority of the replica set."""
        return len(self.replica_ids) // 2 + 1


class RangeTable:
    """
    Immutable collection of RangeDescriptors ordered by start key.

    The table refuses to build unless its descriptors are pairwise
    disjoint and cover [0, max_key] without gaps.

    Usage:
        table = RangeTable(descriptors, max_key=100)
        descriptor = table.lookup(42)
    """

    def __init__(self, descriptors: Iterable[RangeDescriptor], max_key: int):
        ordered = tuple(sorted(descriptors, key=lambda d: d.start))
        self._check_coverage(ordered, max_key)

        self.max_key = max_key
        self._descriptors: Tuple[RangeDescriptor, ...] = ordered
        self._starts: Tuple[int, ...] = tuple(d.start for d in ordered)

    @staticmethod
    def _check_coverage(ordered: Tuple[RangeDescriptor, ...], max_key: int) -> None:
        if not ordered:
            raise ValueError("Range table must contain at least one range")

        expected_start = 0
        for descriptor in ordered:
            if descriptor.start != expected_start:
                raise ValueError(
                    f"Range {descriptor.id} starts at {descriptor.start}, expected {expected_start}"
                )
            expected_start = descriptor.end + 1

        if ordered[-1].end != max_key:
            raise ValueError(f"Ranges end at {ordered[-1].end}, expected {max_key}")

    def lookup(self, key: int) -> Optional[RangeDescriptor]:
        """
        Find the range whose interval contains ``key``.

        Floor search on start keys, then a bounds check on the match.

        Returns:
            The owning descriptor, or None if no range covers the key
        """
        index = bisect.bisect_right(self._starts, key) - 1
        if index < 0:
            return None

        descriptor = self._descriptors[index]
        if key > descriptor.end:
            return None
        return descriptor

    def get(self, range_id: int) -> Optional[RangeDescriptor]:
        for descriptor in self._descriptors:
            if descriptor.id == range_id:
                return descriptor
        return None

    def __iter__(self) -> Iterator[RangeDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __repr__(self) -> str:
        return f"RangeTable(ranges={len(self._descriptors)}, max_key={self.max_key})"
