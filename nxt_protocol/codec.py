"""
Payload codec.

Converts typed commands and replies to and from payload bytes using the
layouts declared in :mod:`nxt_protocol.catalog`. Framing (the 2-byte
length header) is handled by :mod:`nxt_protocol.frame`.

Payload layout:
    [kind | no-reply flag][opcode][fields...]           (command)
    [0x02][opcode][status][fields...]                   (reply)
"""

from typing import Iterable, Union

from .catalog import entry_for
from .commands import Command, COMMAND_TYPES
from .constants import CommandKind, Opcode, KIND_MASK, NO_REPLY_FLAG
from .exceptions import MalformedResponseError
from .fields import Field
from .responses import Response, response_type

REPLY_HEADER_SIZE = 3
COMMAND_HEADER_SIZE = 2


def _buffer_size(declared: int, fields: Iterable[Field]) -> int:
    return max([declared] + [f.end for f in fields])


def _as_opcode(opcode: int) -> Union[Opcode, int]:
    try:
        return Opcode(opcode)
    except ValueError:
        return opcode


def encode(command: Command) -> bytes:
    """
    Encode a command into its payload.

    Args:
        command: Command to encode

    Returns:
        Payload bytes (without the length header)

    Raises:
        EncodeError: If a field value does not fit its declared layout
    """
    entry = command.entry
    buf = bytearray(_buffer_size(entry.request_length, entry.request_fields))
    buf[0] = entry.kind | (0 if command.wants_response else NO_REPLY_FLAG)
    buf[1] = command.opcode
    for f in entry.request_fields:
        f.pack(buf, command, opcode=command.opcode)
    return bytes(buf)


def decode(opcode: int, payload: bytes) -> Response:
    """
    Decode a reply payload.

    The catalog reply length is advisory: a short payload decodes with the
    missing fields set to their absent values.

    Args:
        opcode: Opcode of the command this payload answers
        payload: Reply payload (without the length header)

    Returns:
        Typed response for the opcode

    Raises:
        MalformedResponseError: If the payload is shorter than 3 bytes or
            is not marked as a reply
    """
    payload = bytes(payload)
    if len(payload) < REPLY_HEADER_SIZE:
        raise MalformedResponseError(
            f"Reply too short: {len(payload)} bytes", opcode=opcode
        )
    if payload[0] & KIND_MASK != CommandKind.REPLY:
        raise MalformedResponseError(
            f"Not a reply (type byte 0x{payload[0]:02X})", opcode=opcode
        )

    values = {}
    entry = entry_for(opcode)
    if entry is not None:
        for f in entry.response_fields:
            values.update(f.unpack(payload))

    cls = response_type(opcode)
    return cls(opcode=_as_opcode(opcode), status=payload[2], raw=payload, **values)


def encode_reply(response: Response) -> bytes:
    """
    Encode a reply payload, as the brick would send it.

    Replies with a failure status carry the 3-byte header only.

    Raises:
        EncodeError: If a field value does not fit its declared layout
    """
    entry = entry_for(response.opcode)
    fields = entry.response_fields if entry is not None and response.success else ()
    declared = entry.response_length if entry is not None and response.success else None
    buf = bytearray(_buffer_size(declared or REPLY_HEADER_SIZE, fields))
    buf[0] = CommandKind.REPLY
    buf[1] = response.opcode
    buf[2] = int(response.status)
    for f in fields:
        f.pack(buf, response, opcode=response.opcode)
    return bytes(buf)


def decode_command(payload: bytes) -> Command:
    """
    Decode a command payload back into its typed command.

    Raises:
        MalformedResponseError: If the payload is too short, has a reply
            kind, or names an opcode the catalog does not know
    """
    payload = bytes(payload)
    if len(payload) < COMMAND_HEADER_SIZE:
        raise MalformedResponseError(f"Command too short: {len(payload)} bytes")

    opcode = payload[1]
    cls = COMMAND_TYPES.get(opcode)
    if cls is None:
        raise MalformedResponseError(f"Unknown command opcode 0x{opcode:02X}")
    entry = entry_for(opcode)
    if payload[0] & KIND_MASK != entry.kind:
        raise MalformedResponseError(
            f"Unexpected command type byte 0x{payload[0]:02X}", opcode=opcode
        )

    values = {}
    for f in entry.request_fields:
        values.update(f.unpack(payload))
    wants_response = not payload[0] & NO_REPLY_FLAG
    return cls(wants_response=wants_response, **values)
