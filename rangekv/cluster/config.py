"""
Cluster Configuration Module

Bootstrap parameters for a simulated cluster and the static range
assignment derived from them.

Range Layout:
- The keyspace is the closed interval [0, max_key], i.e. max_key + 1 keys
- It is split into 2 * node_count contiguous ranges of equal size
- The last range absorbs any remainder

Replica Assignment (per range):
- Leader: a node drawn from the seeded random generator
- Leaseholder: the leader's successor (or the leader itself when
  colocate_leaseholder is set)
- Remaining replicas: consecutive successors, wrapping around node ids
"""

import random
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

from ..config.settings import settings
from .ranges import RangeDescriptor, RangeTable


MIN_NODES = 3
MIN_REPLICATION_FACTOR = 3
RANGES_PER_NODE = 2


@dataclass
class ClusterConfig:
    """
    Explicit configuration handed to the Cluster constructor.

    Attributes:
        node_count: Number of nodes (>= 3)
        replication_factor: Replicas per range (3 <= rf <= node_count)
        max_key: Largest valid key
        seed: Seed for the placement generator (None = nondeterministic)
        colocate_leaseholder: Place the leaseholder on the leader node
        request_timeout: Seconds an inter-node request may take
        max_hops: Bound on forwarding hops for a single client command
    """
    node_count: int = field(default_factory=lambda: settings.NODE_COUNT)
    replication_factor: int = field(default_factory=lambda: settings.REPLICATION_FACTOR)
    max_key: int = field(default_factory=lambda: settings.MAX_KEY)
    seed: Optional[int] = field(default_factory=lambda: settings.SEED)
    colocate_leaseholder: bool = field(default_factory=lambda: settings.COLOCATE_LEASEHOLDER)
    request_timeout: float = field(default_factory=lambda: settings.REQUEST_TIMEOUT)
    max_hops: int = field(default_factory=lambda: settings.MAX_HOPS)

    def __post_init__(self):
        if self.node_count < MIN_NODES:
            raise ValueError(f"node_count must be >= {MIN_NODES}, got {self.node_count}")
        if self.replication_factor < MIN_REPLICATION_FACTOR:
            raise ValueError(
                f"replication_factor must be >= {MIN_REPLICATION_FACTOR}, got {self.replication_factor}"
            )
        if self.replication_factor > self.node_count:
            raise ValueError(
                f"replication_factor ({self.replication_factor}) exceeds node_count ({self.node_count})"
            )
        if self.keyspace_size < self.range_count:
            raise ValueError(
                f"max_key ({self.max_key}) leaves {self.keyspace_size} keys for {self.range_count} non-empty ranges"
            )
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.max_hops < 1:
            raise ValueError("max_hops must be >= 1")

    @classmethod
    def from_settings(cls, **overrides) -> "ClusterConfig":
        """Build a config from the current settings, with keyword overrides."""
        values = {
            "node_count": settings.NODE_COUNT,
            "replication_factor": settings.REPLICATION_FACTOR,
            "max_key": settings.MAX_KEY,
            "seed": settings.SEED,
            "colocate_leaseholder": settings.COLOCATE_LEASEHOLDER,
            "request_timeout": settings.REQUEST_TIMEOUT,
            "max_hops": settings.MAX_HOPS,
        }
        values.update(overrides)
        return cls(**values)

    @property
    def range_count(self) -> int:
        return self.node_count * RANGES_PER_NODE

    @property
    def keyspace_size(self) -> int:
        return self.max_key + 1

    @property
    def node_ids(self) -> List[int]:
        return list(range(self.node_count))


def _successor(node_id: int, node_count: int, steps: int = 1) -> int:
    return (node_id + steps) % node_count


def assign_replicas(leader_id: int, config: ClusterConfig) -> Tuple[int, FrozenSet[int]]:
    """Return (leaseholder_id, replica_ids) for a range led by ``leader_id``."""
    n = config.node_count
    leaseholder_id = leader_id if config.colocate_leaseholder else _successor(leader_id, n)

    replicas = {leader_id, leaseholder_id}
    next_id = _successor(leaseholder_id, n)
    while len(replicas) < config.replication_factor:
        replicas.add(next_id)
        next_id = _successor(next_id, n)

    return leaseholder_id, frozenset(replicas)


def build_range_table(config: ClusterConfig) -> RangeTable:
    """
    Partition [0, max_key] and assign replicas to every range.

    Args:
        config: Validated cluster configuration

    Returns:
        The finished, immutable RangeTable
    """
    rng = random.Random(config.seed)
    total = config.range_count
    size = config.keyspace_size // total

    descriptors = []
    for range_id in range(total):
        start = range_id * size
        end = config.max_key if range_id == total - 1 else (range_id + 1) * size - 1

        leader_id = rng.randrange(config.node_count)
        leaseholder_id, replica_ids = assign_replicas(leader_id, config)
        descriptors.append(RangeDescriptor(
            id=range_id,
            start=start,
            end=end,
            leader_id=leader_id,
            leaseholder_id=leaseholder_id,
            replica_ids=replica_ids,
        ))

    return RangeTable(descriptors, max_key=config.max_key)
