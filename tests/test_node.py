"""
Tests for Node authority checks and the forwarding hop guard

Run with: python -m pytest tests/test_node.py -v
"""

import pytest

from rangekv.cluster.cluster import Cluster
from rangekv.cluster.events import EventKind, RecordingObserver
from rangekv.cluster.node import Node
from rangekv.cluster.ranges import RangeDescriptor, RangeTable
from rangekv.cluster.transport import Message, MessageType, Transport
from rangekv.protocol.commands import Command, ErrorCode
from rangekv.storage.pending_log import EntryState
from tests.conftest import non_replica, plain_replica


async def send(cluster: Cluster, node_id: int, message_type: MessageType, command: Command, range_id: int, seq: int):
    message = Message(message_type, command, sender=None, range_id=range_id, seq=seq)
    return await cluster.transport.request(node_id, message, timeout=1.0)


@pytest.mark.asyncio
class TestLeaderAuthority:
    """Only the range leader may run the protocol."""

    async def test_non_leader_rejects_process(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        for node in cluster.nodes:
            if node.id == descriptor.leader_id:
                continue
            response = await node.process_command(Command.create(5, 1), descriptor.id)
            assert response.error == ErrorCode.AUTHORIZATION
            assert not node.store.contains(5)

    async def test_process_message_to_non_leader(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        response = await send(
            cluster, descriptor.leaseholder_id, MessageType.PROCESS, Command.create(5, 1), descriptor.id, None,
        )
        assert response.error == ErrorCode.AUTHORIZATION

    async def test_key_outside_range(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        leader = cluster.node(descriptor.leader_id)
        response = await leader.process_command(Command.create(descriptor.end + 1, 1), descriptor.id)
        assert response.error == ErrorCode.ROUTING

    async def test_unknown_range(self, cluster: Cluster):
        response = await cluster.node(0).process_command(Command.create(5, 1), 999)
        assert response.error == ErrorCode.ROUTING


@pytest.mark.asyncio
class TestApplyGuards:
    """Apply requires a matching pending entry on a replica of the range."""

    async def test_apply_without_pending_entry(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        replica = plain_replica(descriptor)

        response = await send(cluster, replica, MessageType.APPLY, Command.create(5, 1), descriptor.id, 1)
        assert response.error == ErrorCode.CONSISTENCY
        assert not cluster.node(replica).store.contains(5)

    async def test_apply_with_mismatched_command(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        replica = plain_replica(descriptor)

        assert (await send(cluster, replica, MessageType.APPEND, Command.create(5, 1), descriptor.id, 1)).is_ok
        response = await send(cluster, replica, MessageType.APPLY, Command.create(5, 2), descriptor.id, 1)

        assert response.error == ErrorCode.CONSISTENCY
        assert cluster.node(replica).log.state_of(descriptor.id, 1) == EntryState.PENDING
        assert not cluster.node(replica).store.contains(5)

    async def test_apply_on_non_replica(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        outsider = non_replica(cluster, descriptor)

        response = await send(cluster, outsider, MessageType.APPEND, Command.create(5, 1), descriptor.id, 1)
        assert response.error == ErrorCode.AUTHORIZATION
        response = await send(cluster, outsider, MessageType.APPLY, Command.create(5, 1), descriptor.id, 1)
        assert response.error == ErrorCode.AUTHORIZATION
        assert len(cluster.node(outsider).log) == 0

    async def test_append_key_outside_range(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        replica = plain_replica(descriptor)
        command = Command.create(descriptor.end + 1, 1)

        response = await send(cluster, replica, MessageType.APPEND, command, descriptor.id, 1)
        assert response.error == ErrorCode.ROUTING

    async def test_equal_commands_apply_by_sequence(self, cluster: Cluster):
        descriptor = cluster.range_for(5)
        replica = plain_replica(descriptor)
        node = cluster.node(replica)
        command = Command.create(5, 1)

        await send(cluster, replica, MessageType.APPEND, command, descriptor.id, 1)
        await send(cluster, replica, MessageType.APPEND, command, descriptor.id, 2)
        assert (await send(cluster, replica, MessageType.APPLY, command, descriptor.id, 2)).is_ok

        assert node.log.state_of(descriptor.id, 1) == EntryState.PENDING
        assert node.log.state_of(descriptor.id, 2) == EntryState.APPLIED
        assert node.store.read(5).value == 1

    async def test_unknown_range_message(self, cluster: Cluster):
        response = await send(cluster, 0, MessageType.APPEND, Command.create(5, 1), 999, 1)
        assert response.error == ErrorCode.ROUTING


def _table(leaseholder_id: int) -> RangeTable:
    descriptors = [
        RangeDescriptor(
            id=0, start=0, end=9, leader_id=2, leaseholder_id=leaseholder_id,
            replica_ids=frozenset({0, 1, 2}),
        ),
        RangeDescriptor(
            id=1, start=10, end=20, leader_id=2, leaseholder_id=2,
            replica_ids=frozenset({0, 1, 2}),
        ),
    ]
    return RangeTable(descriptors, max_key=20)


@pytest.mark.asyncio
class TestHopGuard:
    """Divergent tables cannot make a command bounce forever."""

    async def test_forwarding_loop_is_bounded(self):
        transport = Transport()
        recorder = RecordingObserver()
        # Nodes 0 and 1 each believe the other holds the lease on range 0
        tables = {0: _table(1), 1: _table(0), 2: _table(1)}
        nodes = [
            Node(node_id, tables[node_id], transport, request_timeout=0.05, max_hops=3, observer=recorder)
            for node_id in range(3)
        ]
        for node in nodes:
            node.assign_peers(range(3))
            node.start()

        try:
            response = await nodes[0].send_command(Command.create(5, 1))
        finally:
            for node in nodes:
                await node.stop()

        assert response.error == ErrorCode.ROUTING
        # Hops 1..3 are accepted, the fourth forward is refused
        assert len(recorder.of_kind(EventKind.FORWARDED)) == 4
        assert all(not node.store.contains(5) for node in nodes)

    async def test_consistent_tables_route_normally(self):
        transport = Transport()
        nodes = [
            Node(node_id, _table(1), transport, request_timeout=0.05, max_hops=3, observer=RecordingObserver())
            for node_id in range(3)
        ]
        for node in nodes:
            node.assign_peers(range(3))
            node.start()

        try:
            assert (await nodes[0].send_command(Command.create(5, 1))).is_ok
            assert (await nodes[2].send_command(Command.read(5))).value == 1
        finally:
            for node in nodes:
                await node.stop()

        assert all(node.store.read(5).value == 1 for node in nodes)
