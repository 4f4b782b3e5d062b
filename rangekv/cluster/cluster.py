"""
Cluster Module

Bootstraps a simulated cluster: builds the range table from a
ClusterConfig, creates every node with the same table, wires the peer
directory and manages the nodes' serving tasks.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from ..protocol.commands import Command, Response
from .config import ClusterConfig, build_range_table
from .events import EventObserver, LoggingObserver
from .node import Node
from .ranges import RangeDescriptor, RangeTable
from .transport import Message, MessageType, Transport

logger = logging.getLogger(__name__)


class Cluster:
    """
    A fixed set of nodes sharing one range table.

    Usage:
        async with Cluster(ClusterConfig(node_count=5, seed=7)) as cluster:
            response = await cluster.submit(Command.create(1, 223), via=0)

    Attributes:
        config: The bootstrap configuration
        range_table: The immutable range table every node holds
        transport: The channel connecting the nodes
        nodes: Nodes indexed by id
    """

    def __init__(self, config: ClusterConfig = None, observer: EventObserver = None):
        """
        Build the range table and every node.

        Args:
            config: Bootstrap configuration (defaults from settings)
            observer: Receiver of protocol events for every node

        Raises:
            ValueError: If the configuration violates its constraints
        """
        self.config = config if config is not None else ClusterConfig()
        self.observer = observer if observer is not None else LoggingObserver()
        self.range_table: RangeTable = build_range_table(self.config)
        self.transport = Transport()

        self.nodes: List[Node] = [
            Node(
                node_id,
                self.range_table,
                self.transport,
                request_timeout=self.config.request_timeout,
                max_hops=self.config.max_hops,
                observer=self.observer,
            )
            for node_id in self.config.node_ids
        ]
        # Peer directory is wired only once every node exists
        for node in self.nodes:
            node.assign_peers(self.config.node_ids)

        self._running = False
        logger.info(
            f"Cluster bootstrapped: {self.config.node_count} nodes, "
            f"{len(self.range_table)} ranges, replication factor {self.config.replication_factor}"
        )
        for descriptor in self.range_table:
            logger.debug(
                f"Range {descriptor.id} [{descriptor.start}, {descriptor.end}] "
                f"leader={descriptor.leader_id} leaseholder={descriptor.leaseholder_id} "
                f"replicas={sorted(descriptor.replica_ids)}"
            )

    async def start(self) -> None:
        """Start every node's serving task."""
        if self._running:
            return
        for node in self.nodes:
            node.start()
        self._running = True

    async def stop(self) -> None:
        """Stop every node."""
        if not self._running:
            return
        await asyncio.gather(*(node.stop() for node in self.nodes))
        self._running = False

    def is_running(self) -> bool:
        return self._running

    async def __aenter__(self) -> "Cluster":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def node(self, node_id: int) -> Node:
        if not 0 <= node_id < len(self.nodes):
            raise ValueError(f"Unknown node_id: {node_id}")
        return self.nodes[node_id]

    def range_for(self, key: int) -> Optional[RangeDescriptor]:
        return self.range_table.lookup(key)

    def client_timeout(self) -> float:
        """Upper bound a client waits for one command, covering every hop."""
        return self.config.request_timeout * 4 * (self.config.max_hops + 2)

    async def submit(self, command: Command, via: int) -> Response:
        """
        Hand a command to node ``via`` as a client would.

        Raises:
            RuntimeError: If the cluster is not running
            ValueError: If ``via`` is not a node of this cluster
        """
        if not self._running:
            raise RuntimeError("Cluster is not running")
        self.node(via)
        message = Message(MessageType.CLIENT_COMMAND, command)
        return await self.transport.request(via, message, timeout=self.client_timeout())

    def snapshot(self) -> Dict[int, dict]:
        """Per-node store contents and pending entries."""
        return {node.id: node.snapshot() for node in self.nodes}

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "ranges": len(self.range_table),
            "transport": self.transport.get_stats(),
            "nodes": [node.get_stats() for node in self.nodes],
        }
