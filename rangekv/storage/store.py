"""
Key-Value Store Module

This module implements the per-node ordered key-value map and the four
deterministic operations of the local state machine.
"""

import bisect
from typing import Any, Dict, Iterator, List, Tuple

from ..protocol.commands import Command, CommandType, Response


class KVStore:
    """
    Ordered in-memory key-value map owned by a single node.

    Keys are kept sorted so the store can be scanned in key order, the
    way an LSM-backed engine would expose it. Lookups are O(1) average;
    inserts and deletes pay O(n) for the sorted key index.

    Every operation returns a Response. Failed operations never mutate
    the store.
    """

    def __init__(self):
        """Initialize an empty store."""
        self._data: Dict[int, int] = {}
        self._keys: List[int] = []

    def create(self, key: int, value: int) -> Response:
        """
        Insert a new key.

        Returns:
            OK on success, ALREADY_EXISTS if the key is present
        """
        if key in self._data:
            return Response.key_exists(key)

        bisect.insort(self._keys, key)
        self._data[key] = value
        return Response.ok()

    def read(self, key: int) -> Response:
        """
        Read the value for a key.

        Returns:
            OK with the value, NOT_FOUND if the key is absent
        """
        if key not in self._data:
            return Response.key_not_found(key)
        return Response.value_response(self._data[key])

    def update(self, key: int, value: int) -> Response:
        """
        Overwrite the value of an existing key.

        Returns:
            OK on success, NOT_FOUND if the key is absent
        """
        if key not in self._data:
            return Response.key_not_found(key)

        self._data[key] = value
        return Response.ok()

    def delete(self, key: int) -> Response:
        """
        Remove an existing key.

        Returns:
            OK on success, NOT_FOUND if the key is absent
        """
        if key not in self._data:
            return Response.key_not_found(key)

        del self._data[key]
        index = bisect.bisect_left(self._keys, key)
        del self._keys[index]
        return Response.ok()

    def execute(self, command: Command) -> Response:
        """Dispatch a command to the matching operation."""
        if command.type == CommandType.CREATE:
            return self.create(command.key, command.value)
        if command.type == CommandType.READ:
            return self.read(command.key)
        if command.type == CommandType.UPDATE:
            return self.update(command.key, command.value)
        if command.type == CommandType.DELETE:
            return self.delete(command.key)
        return Response.validation(f"unsupported command type: {command.type}")

    def contains(self, key: int) -> bool:
        return key in self._data

    def items(self) -> Iterator[Tuple[int, int]]:
        """Iterate over (key, value) pairs in key order."""
        for key in self._keys:
            yield key, self._data[key]

    def scan(self, start: int, end: int) -> List[Tuple[int, int]]:
        """Return the pairs whose key lies in the closed interval [start, end]."""
        lo = bisect.bisect_left(self._keys, start)
        hi = bisect.bisect_right(self._keys, end)
        return [(key, self._data[key]) for key in self._keys[lo:hi]]

    def size(self) -> int:
        return len(self._data)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing total_keys, min_key and max_key
        """
        return {
            "total_keys": len(self._keys),
            "min_key": self._keys[0] if self._keys else None,
            "max_key": self._keys[-1] if self._keys else None,
        }
