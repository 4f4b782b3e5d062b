"""
Node Module

A simulated cluster node. Each node owns its store and pending log and is
reachable only through its transport inbox, which it serves from its own
task (actor style). Routing state is the read-only RangeTable shared by
every node.

Command path:
    entry node -> leaseholder -> leader -> replicas

- Any node looks the key up and forwards to the range's leaseholder
- The leaseholder forwards every command to the leader
- The leader answers reads from its own store, which is part of every
  quorum, and runs replicate-then-commit across the replica set for writes
"""

import asyncio
import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Set, Tuple

from ..config.settings import settings
from ..protocol.commands import Command, ErrorCode, Response
from ..storage.pending_log import PendingLog
from ..storage.store import KVStore
from .events import EventKind, EventObserver, LoggingObserver, ProtocolEvent
from .ranges import RangeDescriptor, RangeTable
from .transport import Envelope, Message, MessageType, Transport

logger = logging.getLogger(__name__)

# Replication round trips a leader may spend on one write (append, apply, discard)
PROTOCOL_ROUNDS = 3

_COORDINATOR_MESSAGES = frozenset({MessageType.CLIENT_COMMAND, MessageType.PROCESS})


class Node:
    """
    One member of the cluster.

    Attributes:
        id: Node identifier (index into the cluster's node list)
        range_table: Shared, read-only range table
        store: Local ordered key-value store
        log: Local pending log
    """

    def __init__(
            self,
            node_id: int,
            range_table: RangeTable,
            transport: Transport,
            request_timeout: float = None,
            max_hops: int = None,
            observer: EventObserver = None,
    ):
        """
        Initialize a node and register its inbox.

        Args:
            node_id: Identifier of this node
            range_table: The cluster's range table
            transport: Channel to reach peers
            request_timeout: Seconds to wait on a replication request
            max_hops: Bound on forwarding hops per client command
            observer: Receiver of protocol events
        """
        self.id = node_id
        self.range_table = range_table
        self.transport = transport
        self.request_timeout = request_timeout if request_timeout is not None else settings.REQUEST_TIMEOUT
        self.max_hops = max_hops if max_hops is not None else settings.MAX_HOPS
        self.observer = observer if observer is not None else LoggingObserver()

        self.store = KVStore()
        self.log = PendingLog()

        self._inbox = transport.register(node_id)
        self._peers: FrozenSet[int] = frozenset()
        self._range_locks: Dict[int, asyncio.Lock] = {}
        self._next_seq: Dict[int, int] = {}

        self._task: Optional[asyncio.Task] = None
        self._workers: Set[asyncio.Task] = set()
        self._handled = 0

    def assign_peers(self, node_ids: Iterable[int]) -> None:
        """Record the ids of every other node. Called once at bootstrap."""
        self._peers = frozenset(node_id for node_id in node_ids if node_id != self.id)

    @property
    def peers(self) -> FrozenSet[int]:
        return self._peers

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start serving the inbox. Must be called from a running loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._serve(), name=f"node-{self.id}")

    async def stop(self) -> None:
        """Stop serving and cancel in-flight coordinator work."""
        tasks = list(self._workers)
        if self._task is not None:
            tasks.append(self._task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._task = None
        self._workers.clear()

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _serve(self) -> None:
        """
        Inbox loop.

        Local-state requests (append, apply, discard) are answered inline,
        so they never interleave with each other. Routing and leader work
        may wait on peers, so each runs in its own task.
        """
        while True:
            envelope = await self._inbox.get()
            self._handled += 1
            message = envelope.message

            if message.type in _COORDINATOR_MESSAGES:
                worker = asyncio.create_task(self._coordinate(envelope))
                self._workers.add(worker)
                worker.add_done_callback(self._workers.discard)
            else:
                envelope.resolve(self._handle_local(message))

    async def _coordinate(self, envelope: Envelope) -> None:
        message = envelope.message
        try:
            if message.type == MessageType.CLIENT_COMMAND:
                response = await self.send_command(message.command, hops=message.hops)
            else:
                response = await self.process_command(message.command, message.range_id, hops=message.hops)
        except Exception as exc:  # Log unexpected errors but keep the node alive
            # The requester observes a timeout
            logger.exception(f"Node {self.id} failed handling {message.type.name} key={message.command.key}: {exc}")
            return
        envelope.resolve(response)

    def _handle_local(self, message: Message) -> Response:
        descriptor = self.range_table.get(message.range_id)
        if descriptor is None:
            return Response.routing(f"unknown range {message.range_id}")

        if message.type == MessageType.APPEND:
            return self._append(descriptor, message.seq, message.command)
        if message.type == MessageType.APPLY:
            return self._apply(descriptor, message.seq, message.command)
        if message.type == MessageType.DISCARD:
            self.log.discard(descriptor.id, message.seq)
            return Response.ok(message="discarded")

        return Response.routing(f"unexpected message {message.type.name}")

    # ------------------------------------------------------------------
    # Routing and forwarding
    # ------------------------------------------------------------------

    async def send_command(self, command: Command, hops: int = 0) -> Response:
        """
        Route a client command from this node.

        Args:
            command: The command to execute
            hops: Forwarding hops already taken

        Returns:
            The outcome of the command
        """
        if hops == 0:
            self._emit(EventKind.RECEIVED, command)

        if hops > self.max_hops:
            response = Response.routing(f"forwarding exceeded {self.max_hops} hops for key {command.key}")
            self._emit(EventKind.FAILED, command, error=response.error, message=response.message)
            return response

        descriptor = self.range_table.lookup(command.key)
        if descriptor is None:
            logger.error(f"Node {self.id}: no range covers key {command.key}")
            response = Response.routing(f"no range covers key {command.key}")
        elif descriptor.leaseholder_id != self.id:
            response = await self._forward(
                descriptor.leaseholder_id,
                Message(MessageType.CLIENT_COMMAND, command, sender=self.id, hops=hops + 1),
                descriptor,
            )
        elif descriptor.leader_id == self.id:
            response = await self.process_command(command, descriptor.id, hops=hops)
        else:
            response = await self._forward(
                descriptor.leader_id,
                Message(MessageType.PROCESS, command, sender=self.id, range_id=descriptor.id, hops=hops + 1),
                descriptor,
            )

        if hops == 0 and not response.is_ok:
            self._emit(
                EventKind.FAILED, command,
                range_id=descriptor.id if descriptor else None,
                error=response.error,
                message=response.message,
            )
        return response

    async def _forward(self, target: int, message: Message, descriptor: RangeDescriptor) -> Response:
        self._emit(EventKind.FORWARDED, message.command, range_id=descriptor.id, target_id=target)
        logger.debug(f"Node {self.id} forwarding {message.type.name} key={message.command.key} to node {target}")
        return await self.transport.request(target, message, timeout=self._forward_timeout(message.hops))

    def _forward_timeout(self, hops: int) -> float:
        """Budget for a forwarded request; covers every downstream hop and the leader's rounds."""
        remaining = max(1, self.max_hops - hops + 1)
        return self.request_timeout * (PROTOCOL_ROUNDS + 1) * remaining

    # ------------------------------------------------------------------
    # Replicate-then-commit (leader only)
    # ------------------------------------------------------------------

    async def process_command(self, command: Command, range_id: int, hops: int = 0) -> Response:
        """
        Execute a command as the leader of ``range_id``.

        Reads are answered from the local store. Writes are appended to a
        majority of the replica set, applied locally, then applied on the
        replicas that acknowledged the append. Writes to one range are
        serialized.
        """
        descriptor = self.range_table.get(range_id)
        if descriptor is None or not descriptor.contains(command.key):
            return Response.routing(f"key {command.key} is not in range {range_id}")
        if hops > self.max_hops:
            return Response.routing(f"forwarding exceeded {self.max_hops} hops for key {command.key}")
        if descriptor.leader_id != self.id:
            logger.warning(f"Node {self.id} asked to lead range {range_id} (leader is {descriptor.leader_id})")
            return Response.authorization(f"node {self.id} is not the leader of range {range_id}")

        if not command.is_write:
            return self.store.read(command.key)

        async with self._lock_for(range_id):
            return await self._replicate(command, descriptor)

    def _lock_for(self, range_id: int) -> asyncio.Lock:
        lock = self._range_locks.get(range_id)
        if lock is None:
            lock = self._range_locks[range_id] = asyncio.Lock()
        return lock

    def _next_sequence(self, range_id: int) -> int:
        seq = self._next_seq.get(range_id, 0) + 1
        self._next_seq[range_id] = seq
        return seq

    async def _replicate(self, command: Command, descriptor: RangeDescriptor) -> Response:
        seq = self._next_sequence(descriptor.id)
        self.log.append(descriptor.id, seq, command)
        self._emit(EventKind.PROPOSED, command, range_id=descriptor.id, seq=seq)

        followers = sorted(descriptor.replica_ids - {self.id})
        appended = await self._broadcast(
            followers,
            Message(MessageType.APPEND, command, sender=self.id, range_id=descriptor.id, seq=seq),
        )
        acked = [peer for peer, response in appended if response.is_ok]

        if len(acked) + 1 < descriptor.quorum:
            response = self._first_failure(appended) or Response.timeout("replication quorum not reached")
            if response.error == ErrorCode.TIMEOUT:
                response = Response.timeout(
                    f"replication quorum not reached for range {descriptor.id} "
                    f"({len(acked) + 1}/{descriptor.quorum} acks)"
                )
            await self._abort(descriptor, seq, command, followers, response)
            return response

        result = self._apply(descriptor, seq, command)
        if not result.is_ok:
            await self._abort(descriptor, seq, command, acked, result)
            return result

        applied = await self._broadcast(
            acked,
            Message(MessageType.APPLY, command, sender=self.id, range_id=descriptor.id, seq=seq),
        )

        # Replicas that already applied are not rolled back
        failure = self._first_failure(applied, definite_only=True)
        confirmed = 1 + sum(1 for _, response in applied if response.is_ok)
        if failure is None and confirmed < descriptor.quorum:
            failure = Response.timeout(
                f"commit not confirmed by a quorum of range {descriptor.id} "
                f"({confirmed}/{descriptor.quorum})"
            )
        if failure is not None:
            self._emit(
                EventKind.FAILED, command,
                range_id=descriptor.id, seq=seq, error=failure.error, message=failure.message,
            )
            return failure

        self._emit(EventKind.COMMITTED, command, range_id=descriptor.id, seq=seq)
        return result

    async def _broadcast(self, peers: List[int], message: Message) -> List[Tuple[int, Response]]:
        responses = await asyncio.gather(
            *(self.transport.request(peer, message, timeout=self.request_timeout) for peer in peers)
        )
        return list(zip(peers, responses))

    @staticmethod
    def _first_failure(
            responses: List[Tuple[int, Response]],
            definite_only: bool = False,
    ) -> Optional[Response]:
        """First non-timeout failure, else (unless definite_only) the first timeout."""
        failures = [response for _, response in responses if not response.is_ok]
        for response in failures:
            if response.error != ErrorCode.TIMEOUT:
                return response
        if failures and not definite_only:
            return failures[0]
        return None

    async def _abort(
            self,
            descriptor: RangeDescriptor,
            seq: int,
            command: Command,
            peers: List[int],
            reason: Response,
    ) -> None:
        """Drop an unapplied proposal here and on ``peers``."""
        self.log.discard(descriptor.id, seq)
        if peers:
            await self._broadcast(
                peers,
                Message(MessageType.DISCARD, command, sender=self.id, range_id=descriptor.id, seq=seq),
            )
        self._emit(
            EventKind.ABORTED, command,
            range_id=descriptor.id, seq=seq, error=reason.error, message=reason.message,
        )

    # ------------------------------------------------------------------
    # Local state machine
    # ------------------------------------------------------------------

    def _check_replica(self, descriptor: RangeDescriptor, command: Command) -> Optional[Response]:
        if self.id not in descriptor.replica_ids:
            return Response.authorization(f"node {self.id} is not a replica of range {descriptor.id}")
        if not descriptor.contains(command.key):
            return Response.routing(f"key {command.key} is not in range {descriptor.id}")
        return None

    def _append(self, descriptor: RangeDescriptor, seq: int, command: Command) -> Response:
        rejected = self._check_replica(descriptor, command)
        if rejected is not None:
            return rejected

        if not self.log.append(descriptor.id, seq, command):
            return Response.consistency(
                f"node {self.id} cannot append range {descriptor.id} seq {seq}: identity already used"
            )
        logger.debug(f"Node {self.id} appended range={descriptor.id} seq={seq} {command.type.name} key={command.key}")
        return Response.ok(message="appended")

    def _apply(self, descriptor: RangeDescriptor, seq: int, command: Command) -> Response:
        """
        Apply a pending write to the local store.

        The matching entry leaves the log whatever the store answers: on
        success it is marked applied, on a state-machine failure it is
        discarded. Without a matching entry the store is not touched.
        """
        rejected = self._check_replica(descriptor, command)
        if rejected is not None:
            return rejected

        if self.log.match(descriptor.id, seq, command) is None:
            return Response.consistency(
                f"node {self.id} has no pending entry for range {descriptor.id} seq {seq}"
            )

        result = self.store.execute(command)
        if result.is_ok:
            self.log.complete(descriptor.id, seq)
            logger.debug(f"Node {self.id} applied range={descriptor.id} seq={seq} {command.type.name} key={command.key}")
        else:
            self.log.discard(descriptor.id, seq)
        return result

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def _emit(self, kind: EventKind, command: Command, **fields) -> None:
        self.observer.notify(ProtocolEvent(kind=kind, node_id=self.id, command=command, **fields))

    def snapshot(self) -> dict:
        """Store contents and pending entries of this node."""
        return {
            "id": self.id,
            "store": dict(self.store.items()),
            "pending": [
                {
                    "range_id": entry.range_id,
                    "seq": entry.seq,
                    "type": entry.command.type.name,
                    "key": entry.command.key,
                    "value": entry.command.value,
                }
                for entry in self.log.pending()
            ],
        }

    def get_stats(self) -> dict:
        return {
            "id": self.id,
            "running": self.is_running(),
            "messages_handled": self._handled,
            "pending_entries": len(self.log),
            "log_stats": self.log.get_stats(),
            "store_stats": self.store.get_stats(),
        }

    def __repr__(self) -> str:
        return f"Node(id={self.id}, keys={self.store.size()}, pending={len(self.log)})"
