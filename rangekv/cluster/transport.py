"""
In-Process Transport Module

Reliable request/response channel between simulated nodes. Each node
owns an inbox queue; a request puts an envelope in the target's inbox
and waits, with a timeout, for the target to resolve the reply future.

Fault injection:
- isolate(node_id): requests to the node are dropped and time out
- set_delay(node_id, seconds): requests are delivered late
- heal(node_id): clears both
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Optional, Set

from ..protocol.commands import Command, Response

logger = logging.getLogger(__name__)


class MessageType(Enum):
    """Kinds of inter-node requests."""
    CLIENT_COMMAND = auto()   # route a client command (entry node or forwarded)
    PROCESS = auto()          # leaseholder -> leader: run the command for a range
    APPEND = auto()           # leader -> replica: append to the pending log
    APPLY = auto()            # leader -> replica: apply a pending entry
    DISCARD = auto()          # leader -> replica: drop an aborted entry


@dataclass(frozen=True)
class Message:
    """
    A request sent to a node.

    Attributes:
        type: What the receiver is asked to do
        command: The command concerned
        sender: Node id of the sender (None for clients)
        range_id: Range the request concerns (protocol messages)
        seq: Sequence number assigned by the range leader
        hops: Forwarding hops taken so far
    """
    type: MessageType
    command: Command
    sender: Optional[int] = None
    range_id: Optional[int] = None
    seq: Optional[int] = None
    hops: int = 0


@dataclass
class Envelope:
    """A message in flight together with the future awaiting its reply."""
    message: Message
    reply: asyncio.Future

    def resolve(self, response: Response) -> None:
        # The caller may already have given up on this request
        if not self.reply.done():
            self.reply.set_result(response)


class Transport:
    """
    Message channel connecting every node of a cluster.

    Usage:
        transport = Transport()
        inbox = transport.register(node_id)
        response = await transport.request(node_id, message, timeout=1.0)
    """

    def __init__(self):
        self._inboxes: Dict[int, asyncio.Queue] = {}
        self._isolated: Set[int] = set()
        self._delays: Dict[int, float] = {}
        self._sent = 0
        self._timeouts = 0

    def register(self, node_id: int) -> asyncio.Queue:
        """Create the inbox for a node and return it."""
        if node_id in self._inboxes:
            raise ValueError(f"Node {node_id} already registered")
        inbox: asyncio.Queue = asyncio.Queue()
        self._inboxes[node_id] = inbox
        return inbox

    def isolate(self, node_id: int) -> None:
        self._check_known(node_id)
        self._isolated.add(node_id)
        logger.info(f"Node {node_id} isolated")

    def set_delay(self, node_id: int, seconds: float) -> None:
        self._check_known(node_id)
        self._delays[node_id] = seconds

    def heal(self, node_id: int) -> None:
        self._isolated.discard(node_id)
        self._delays.pop(node_id, None)
        logger.info(f"Node {node_id} healed")

    def _check_known(self, node_id: int) -> None:
        if node_id not in self._inboxes:
            raise ValueError(f"Unknown node_id: {node_id}")

    async def request(self, target: int, message: Message, timeout: float) -> Response:
        """
        Send a message and wait for the reply.

        Args:
            target: Receiving node id
            message: The request
            timeout: Seconds to wait for the reply

        Returns:
            The receiver's Response, or a TIMEOUT response if no reply
            arrived in time. A timed-out request may still be executed
            by the receiver later.
        """
        self._check_known(target)
        loop = asyncio.get_running_loop()
        envelope = Envelope(message=message, reply=loop.create_future())
        self._sent += 1

        if target in self._isolated:
            logger.debug(f"Dropping {message.type.name} to isolated node {target}")
        elif self._delays.get(target):
            loop.call_later(self._delays[target], self._inboxes[target].put_nowait, envelope)
        else:
            self._inboxes[target].put_nowait(envelope)

        try:
            return await asyncio.wait_for(envelope.reply, timeout=timeout)
        except asyncio.TimeoutError:
            self._timeouts += 1
            logger.warning(f"Timeout waiting for node {target} ({message.type.name} key={message.command.key})")
            return Response.timeout(f"node {target} did not answer {message.type.name} in {timeout}s")

    def get_stats(self) -> dict:
        return {
            "nodes": len(self._inboxes),
            "requests_sent": self._sent,
            "timeouts": self._timeouts,
            "isolated": sorted(self._isolated),
        }
