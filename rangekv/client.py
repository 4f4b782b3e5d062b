"""
Client Module

In-process client API of the cluster. Arguments are checked against the
key and value domain before anything is routed; a rejected call never
reaches a node.
"""

import logging
import random
from typing import Optional

from .cluster.cluster import Cluster
from .protocol.commands import Command, Response

logger = logging.getLogger(__name__)


class ClusterClient:
    """
    Issues Insert/Get/Update/Remove against a running cluster.

    Each call enters the cluster at a random node unless ``via`` names
    one; the entry node routes it from there.

    Usage:
        client = ClusterClient(cluster)
        await client.insert(1, 223)
        response = await client.get(1)   # response.value == 223
    """

    def __init__(self, cluster: Cluster, rng: random.Random = None):
        self.cluster = cluster
        self._rng = rng if rng is not None else random.Random(cluster.config.seed)

    @property
    def max_key(self) -> int:
        return self.cluster.config.max_key

    async def insert(self, key: int, value: int, via: Optional[int] = None) -> Response:
        """Create ``key`` with ``value``; fails ALREADY_EXISTS if present."""
        return await self._submit(Command.create(key, value), via)

    async def get(self, key: int, via: Optional[int] = None) -> Response:
        """Read ``key``; the value is in ``response.value``."""
        return await self._submit(Command.read(key), via)

    async def update(self, key: int, value: int, via: Optional[int] = None) -> Response:
        """Overwrite an existing key; fails NOT_FOUND if absent."""
        return await self._submit(Command.update(key, value), via)

    async def remove(self, key: int, via: Optional[int] = None) -> Response:
        """Delete an existing key; fails NOT_FOUND if absent."""
        return await self._submit(Command.delete(key), via)

    def validate(self, command: Command) -> Optional[Response]:
        """Return a VALIDATION response if the command is out of domain."""
        if isinstance(command.key, bool) or not isinstance(command.key, int):
            return Response.validation(f"key must be an integer, got {command.key!r}")
        if not 0 <= command.key <= self.max_key:
            return Response.validation(f"key {command.key} outside [0, {self.max_key}]")
        if command.is_write:
            if isinstance(command.value, bool) or not isinstance(command.value, int):
                return Response.validation(f"value must be an integer, got {command.value!r}")
            if command.value < 0:
                return Response.validation(f"value {command.value} must be non-negative")
        return None

    async def _submit(self, command: Command, via: Optional[int]) -> Response:
        rejected = self.validate(command)
        if rejected is not None:
            logger.warning(f"Rejected {command.type.name} key={command.key}: {rejected.message}")
            return rejected

        entry = via if via is not None else self._rng.randrange(len(self.cluster.nodes))
        response = await self.cluster.submit(command, via=entry)
        if not response.is_ok:
            logger.warning(
                f"{command.type.name} key={command.key} failed via node {entry}: "
                f"{response.error.value if response.error else ''} {response.message}"
            )
        return response
