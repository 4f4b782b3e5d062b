"""
Protocol Command and Response Definitions

This module defines the data structures exchanged between clients and nodes
and between nodes themselves. Every outcome, successful or not, is carried
as a Response value; failures never travel as exceptions.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CommandType(Enum):
    """Enumeration of state machine operations."""
    CREATE = auto()
    READ = auto()
    UPDATE = auto()
    DELETE = auto()


WRITE_TYPES = frozenset({CommandType.CREATE, CommandType.UPDATE, CommandType.DELETE})


class ResponseStatus(Enum):
    """Enumeration of response statuses."""
    OK = "OK"
    ERROR = "ERROR"


class ErrorCode(Enum):
    """Kinds of failure a client operation can end with."""
    VALIDATION = "validation"
    ROUTING = "routing"
    AUTHORIZATION = "authorization"
    CONSISTENCY = "consistency"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Command:
    """
    A single change (or read) against the key-value store.

    Commands are plain values: two commands with the same type, key and
    value compare equal. The replication log pairs each proposed command
    with a sequence number so equal commands can still be told apart.

    Attributes:
        type: CREATE, READ, UPDATE or DELETE
        key: The integer key the command targets
        value: The value for CREATE/UPDATE (ignored otherwise)
    """
    type: CommandType
    key: int
    value: int = 0

    @property
    def is_write(self) -> bool:
        """True for commands that go through replication."""
        return self.type in WRITE_TYPES

    @classmethod
    def create(cls, key: int, value: int) -> "Command":
        return cls(CommandType.CREATE, key, value)

    @classmethod
    def read(cls, key: int) -> "Command":
        return cls(CommandType.READ, key)

    @classmethod
    def update(cls, key: int, value: int) -> "Command":
        return cls(CommandType.UPDATE, key, value)

    @classmethod
    def delete(cls, key: int) -> "Command":
        return cls(CommandType.DELETE, key)


@dataclass
class Response:
    """
    Represents the outcome of an operation.

    Attributes:
        status: OK or ERROR
        message: Short description of the outcome
        value: The value returned (for READ operations)
        error: The failure kind when status is ERROR
    """
    status: ResponseStatus
    message: str = ""
    value: Optional[int] = None
    error: Optional[ErrorCode] = None

    @property
    def is_ok(self) -> bool:
        return self.status == ResponseStatus.OK

    @classmethod
    def ok(cls, message: str = "", value: Optional[int] = None) -> "Response":
        """Create a successful response."""
        return cls(status=ResponseStatus.OK, message=message, value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str) -> "Response":
        """Create an error response of the given kind."""
        return cls(status=ResponseStatus.ERROR, message=message, error=error)

    @classmethod
    def value_response(cls, value: int) -> "Response":
        """Create a READ response with a value."""
        return cls.ok(value=value)

    @classmethod
    def key_not_found(cls, key: int) -> "Response":
        return cls.failure(ErrorCode.NOT_FOUND, f"key {key} not found")

    @classmethod
    def key_exists(cls, key: int) -> "Response":
        return cls.failure(ErrorCode.ALREADY_EXISTS, f"key {key} already exists")

    @classmethod
    def validation(cls, message: str) -> "Response":
        return cls.failure(ErrorCode.VALIDATION, message)

    @classmethod
    def routing(cls, message: str) -> "Response":
        return cls.failure(ErrorCode.ROUTING, message)

    @classmethod
    def authorization(cls, message: str) -> "Response":
        return cls.failure(ErrorCode.AUTHORIZATION, message)

    @classmethod
    def consistency(cls, message: str) -> "Response":
        return cls.failure(ErrorCode.CONSISTENCY, message)

    @classmethod
    def timeout(cls, message: str) -> "Response":
        return cls.failure(ErrorCode.TIMEOUT, message)
