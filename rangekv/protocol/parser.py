"""
Protocol Parser Module

Parses the line-oriented text commands accepted by the command-line
simulator and formats Responses back into protocol strings.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from .commands import Response


class RequestType(Enum):
    """Enumeration of text-level requests."""
    INSERT = auto()
    GET = auto()
    UPDATE = auto()
    REMOVE = auto()
    DUMP = auto()
    QUIT = auto()
    UNKNOWN = auto()


# Number of integer arguments each request takes
_ARITY = {
    RequestType.INSERT: 2,
    RequestType.GET: 1,
    RequestType.UPDATE: 2,
    RequestType.REMOVE: 1,
    RequestType.DUMP: 0,
    RequestType.QUIT: 0,
}


@dataclass
class TextRequest:
    """
    A parsed text request.

    Attributes:
        type: The request type (UNKNOWN for malformed input)
        key: The key argument, if any
        value: The value argument for INSERT/UPDATE
        raw: The original raw line
    """
    type: RequestType
    key: Optional[int] = None
    value: Optional[int] = None
    raw: str = ""

    @property
    def is_valid(self) -> bool:
        return self.type != RequestType.UNKNOWN


class ProtocolParser:
    """
    Parser for the RangeKV text protocol.

    Protocol Format:
        Request:  <COMMAND> [ARGS...]\n
        Response: <STATUS> [DATA]\n

    Commands:
        INSERT <key> <value>  -> OK | ERROR <code> <message>
        GET <key>             -> OK <value> | ERROR <code> <message>
        UPDATE <key> <value>  -> OK | ERROR <code> <message>
        REMOVE <key>          -> OK | ERROR <code> <message>
        DUMP                  -> (cluster snapshot)
        QUIT                  -> (session closed)

    Keys and values must be integers. Range checks are left to the
    client, which rejects out-of-domain input before routing.
    """

    def parse_request(self, data: str) -> TextRequest:
        """
        Parse a raw request line into a TextRequest.

        Examples:
            >>> parser = ProtocolParser()
            >>> req = parser.parse_request("insert 1 223")
            >>> req.type == RequestType.INSERT, req.key, req.value
            (True, 1, 223)
        """
        raw = data.strip()
        if not raw:
            return TextRequest(type=RequestType.UNKNOWN, raw=raw)

        parts = raw.split()
        try:
            request_type = RequestType[parts[0].upper()]
        except KeyError:
            return TextRequest(type=RequestType.UNKNOWN, raw=raw)

        if request_type == RequestType.UNKNOWN or len(parts) - 1 != _ARITY[request_type]:
            return TextRequest(type=RequestType.UNKNOWN, raw=raw)

        args = self._parse_ints(parts[1:])
        if args is None:
            return TextRequest(type=RequestType.UNKNOWN, raw=raw)

        key = args[0] if args else None
        value = args[1] if len(args) > 1 else None
        return TextRequest(type=request_type, key=key, value=value, raw=raw)

    @staticmethod
    def _parse_ints(parts: List[str]) -> Optional[List[int]]:
        try:
            return [int(part) for part in parts]
        except ValueError:
            return None

    def format_response(self, response: Response) -> str:
        """
        Format a Response object into a protocol string.

        Examples:
            >>> parser = ProtocolParser()
            >>> parser.format_response(Response.ok())
            'OK\\n'
            >>> parser.format_response(Response.value_response(223))
            'OK 223\\n'
            >>> parser.format_response(Response.key_not_found(7))
            'ERROR not_found key 7 not found\\n'
        """
        prefix = response.status.value

        if response.is_ok:
            body = str(response.value) if response.value is not None else response.message
        else:
            code = response.error.value if response.error else ""
            body = f"{code} {response.message}".strip()

        if body:
            return f"{prefix} {body}\n"
        return f"{prefix}\n"
