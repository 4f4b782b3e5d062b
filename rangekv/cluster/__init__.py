"""
Cluster module for RangeKV.

This module provides:
- Range descriptors and the range table
- Bootstrap configuration and static replica placement
- The in-process transport between nodes
- Nodes: routing, forwarding and replicate-then-commit
- Protocol events and observers
"""

from .cluster import Cluster
from .config import ClusterConfig, build_range_table
from .events import EventKind, EventObserver, LoggingObserver, ProtocolEvent, RecordingObserver
from .node import Node
from .ranges import RangeDescriptor, RangeTable
from .transport import Message, MessageType, Transport

__all__ = [
    "Cluster",
    "ClusterConfig",
    "EventKind",
    "EventObserver",
    "LoggingObserver",
    "Message",
    "MessageType",
    "Node",
    "ProtocolEvent",
    "RangeDescriptor",
    "RangeTable",
    "RecordingObserver",
    "Transport",
    "build_range_table",
]
