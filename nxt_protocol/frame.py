"""
Frame parsing and building.

Frame Format: [LEN_LO][LEN_HI][PAYLOAD...]
- LEN: Payload length, u16 little-endian (1-64)
- PAYLOAD: [TYPE][OPCODE][...]
    TYPE bits 0-1: 0x00 direct, 0x01 system, 0x02 reply
    TYPE bit 7: set when no reply is requested

The length header is the only framing: there is no start marker and no
checksum, so a bad header leaves the stream unrecoverable.
"""

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .codec import encode
from .commands import Command
from .constants import HEADER_SIZE, MAX_PAYLOAD, KIND_MASK, NO_REPLY_FLAG, CommandKind


class ParseResult(Enum):
    """Frame parse result codes."""
    OK = 0
    INCOMPLETE = 1
    FORMAT_ERROR = 2


@dataclass
class Frame:
    """One length-delimited packet."""
    payload: bytes = field(default_factory=bytes)

    def __post_init__(self):
        if isinstance(self.payload, (list, tuple, bytearray)):
            self.payload = bytes(self.payload)
        if len(self.payload) > MAX_PAYLOAD:
            raise ValueError(f"Payload exceeds maximum size ({MAX_PAYLOAD})")

    @property
    def kind(self) -> Optional[int]:
        if not self.payload:
            return None
        return self.payload[0] & KIND_MASK

    @property
    def opcode(self) -> Optional[int]:
        if len(self.payload) < 2:
            return None
        return self.payload[1]

    @property
    def is_reply(self) -> bool:
        return self.kind == CommandKind.REPLY

    @property
    def wants_reply(self) -> bool:
        return bool(self.payload) and not self.payload[0] & NO_REPLY_FLAG


class FrameBuilder:
    """Builds frames for transmission."""

    @staticmethod
    def build(payload: bytes) -> bytes:
        """
        Prefix a payload with its length header.

        Args:
            payload: Command or reply payload (1-64 bytes)

        Returns:
            Complete frame bytes ready for transmission
        """
        if not 0 < len(payload) <= MAX_PAYLOAD:
            raise ValueError(f"Payload length {len(payload)} outside 1..{MAX_PAYLOAD}")
        return struct.pack("<H", len(payload)) + bytes(payload)

    @staticmethod
    def build_command(command: Command) -> bytes:
        """Encode and frame a command."""
        return FrameBuilder.build(encode(command))


class FrameParser:
    """Parses frames from byte stream."""

    def __init__(self):
        self._buffer = bytearray()

    def feed(self, data: bytes) -> None:
        """Add data to parse buffer."""
        self._buffer.extend(data)

    def parse(self) -> Tuple[ParseResult, Optional[Frame], int]:
        """
        Attempt to parse a frame from the buffer.

        Returns:
            Tuple of (result, frame, consumed_bytes)
            - result: ParseResult indicating success or error type
            - frame: Parsed Frame object if successful, None otherwise
            - consumed_bytes: Number of bytes consumed from buffer
        """
        if len(self._buffer) < HEADER_SIZE:
            return (ParseResult.INCOMPLETE, None, 0)

        payload_len = struct.unpack_from("<H", self._buffer, 0)[0]
        if payload_len == 0 or payload_len > MAX_PAYLOAD:
            self._buffer = self._buffer[HEADER_SIZE:]
            return (ParseResult.FORMAT_ERROR, None, HEADER_SIZE)

        expected_size = HEADER_SIZE + payload_len
        if len(self._buffer) < expected_size:
            return (ParseResult.INCOMPLETE, None, 0)

        payload = bytes(self._buffer[HEADER_SIZE:expected_size])
        self._buffer = self._buffer[expected_size:]
        return (ParseResult.OK, Frame(payload), expected_size)

    def clear(self) -> None:
        """Clear parse buffer."""
        self._buffer = bytearray()

    @property
    def buffer_size(self) -> int:
        """Get current buffer size."""
        return len(self._buffer)
