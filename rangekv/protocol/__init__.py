"""Protocol module for RangeKV."""

from .commands import Command, CommandType, ErrorCode, Response, ResponseStatus
from .parser import ProtocolParser, TextRequest

__all__ = [
    "Command",
    "CommandType",
    "ErrorCode",
    "ProtocolParser",
    "Response",
    "ResponseStatus",
    "TextRequest",
]
