"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio

from rangekv.client import ClusterClient
from rangekv.cluster.cluster import Cluster
from rangekv.cluster.config import ClusterConfig
from rangekv.cluster.events import RecordingObserver
from rangekv.protocol.parser import ProtocolParser
from rangekv.storage.pending_log import PendingLog
from rangekv.storage.store import KVStore


# ============================================================================
# Storage Fixtures
# ============================================================================

@pytest.fixture
def store() -> KVStore:
    """Create a fresh, empty KVStore."""
    return KVStore()


@pytest.fixture
def pending_log() -> PendingLog:
    """Create a fresh, empty PendingLog."""
    return PendingLog()


# ============================================================================
# Protocol Fixtures
# ============================================================================

@pytest.fixture
def parser() -> ProtocolParser:
    """Create a ProtocolParser instance."""
    return ProtocolParser()


# ============================================================================
# Cluster Fixtures
# ============================================================================

@pytest.fixture
def config() -> ClusterConfig:
    """Five nodes, replication factor 3, keys 0..100, fixed seed."""
    return ClusterConfig(
        node_count=5,
        replication_factor=3,
        max_key=100,
        seed=1234,
        request_timeout=0.05,
    )


@pytest.fixture
def recorder() -> RecordingObserver:
    """Observer that keeps every protocol event."""
    return RecordingObserver()


@pytest_asyncio.fixture
async def cluster(config: ClusterConfig, recorder: RecordingObserver) -> AsyncGenerator[Cluster, None]:
    """
    Create and start a cluster for testing.

    This fixture:
    1. Bootstraps a cluster from the ``config`` fixture
    2. Starts every node's serving task
    3. Yields the cluster for testing
    4. Stops the nodes after the test
    """
    instance = Cluster(config, observer=recorder)
    await instance.start()

    yield instance

    await instance.stop()


@pytest.fixture
def client(cluster: Cluster) -> ClusterClient:
    """Client entering the cluster at seeded random nodes."""
    return ClusterClient(cluster)


def plain_replica(descriptor) -> int:
    """A replica of the range that is neither its leader nor its leaseholder."""
    others = descriptor.replica_ids - {descriptor.leader_id, descriptor.leaseholder_id}
    return min(others)


def non_replica(cluster: Cluster, descriptor) -> int:
    """A node that holds no copy of the range."""
    return min(set(cluster.config.node_ids) - descriptor.replica_ids)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
