"""
RangeKV: Range-Partitioned Replicated Key-Value Store

An in-process simulation of the routing and replication core of a
sharded key-value store, built with Python asyncio. The keyspace is split
into contiguous ranges, each replicated across a fixed set of nodes.
"""

__version__ = "1.0.0"
