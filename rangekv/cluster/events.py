"""
Protocol Events Module

Structured events emitted by nodes as a command moves through routing,
proposal and commit. Nodes report to an injectable observer so the
protocol code stays free of presentation concerns.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..protocol.commands import Command, ErrorCode

logger = logging.getLogger(__name__)


class EventKind(Enum):
    RECEIVED = "received"
    FORWARDED = "forwarded"
    PROPOSED = "proposed"
    COMMITTED = "committed"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class ProtocolEvent:
    """
    One step of a command's life on one node.

    Attributes:
        kind: What happened
        node_id: Node reporting the event
        command: The command concerned
        range_id: Owning range, once known
        seq: Sequence number, once proposed
        target_id: Destination node for FORWARDED events
        error: Failure kind for ABORTED/FAILED events
        message: Free-form detail
    """
    kind: EventKind
    node_id: int
    command: Command
    range_id: Optional[int] = None
    seq: Optional[int] = None
    target_id: Optional[int] = None
    error: Optional[ErrorCode] = None
    message: str = ""


class EventObserver:
    """Base observer; ignores every event."""

    def notify(self, event: ProtocolEvent) -> None:
        pass


class LoggingObserver(EventObserver):
    """Writes events to the module logger."""

    def notify(self, event: ProtocolEvent) -> None:
        command = event.command
        text = (
            f"node={event.node_id} {event.kind.value} {command.type.name} key={command.key}"
            f" range={event.range_id} seq={event.seq}"
        )
        if event.target_id is not None:
            text += f" to={event.target_id}"

        if event.kind in (EventKind.FAILED, EventKind.ABORTED):
            logger.warning(f"{text} error={event.error.value if event.error else None} {event.message}")
        else:
            logger.debug(text)


class RecordingObserver(EventObserver):
    """Keeps every event in memory, in emission order."""

    def __init__(self):
        self.events: List[ProtocolEvent] = []

    def notify(self, event: ProtocolEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: EventKind) -> List[ProtocolEvent]:
        return [event for event in self.events if event.kind == kind]

    def clear(self) -> None:
        self.events.clear()
