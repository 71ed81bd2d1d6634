"""
NXT Protocol - Python implementation of the NXT brick communication protocol.

This package provides:
- Protocol constants, opcodes and status codes
- Command catalog and payload codec
- Frame parsing and building
- Serial transport layer and request/reply session
- Low-speed (I2C) bus controller
- Command sequencer
- High-level protocol client
"""

from .constants import (
    HEADER_SIZE, MAX_PAYLOAD, LS_MAX_DATA, DEFAULT_I2C_ADDRESS,
    CommandKind, Opcode, ErrorCode, HostError, InputPort, OutputPort, SensorType,
    SensorMode, OutputMode, RegulationMode, RunState, UltrasonicRegister,
)
from .exceptions import (
    NxtProtocolError, ConnectionError, NotConnectedError, EncodeError,
    MalformedResponseError, TransportError, BusyError, TimeoutError,
    ProtocolViolationError, LinkError, DeviceError, DeviceNotRespondingError,
)
from .catalog import CATALOG, OpcodeEntry, ResponsePolicy, entry_for
from . import commands, responses
from .commands import Command, COMMAND_TYPES
from .responses import Response, RESPONSE_TYPES
from .codec import encode, decode, encode_reply, decode_command
from .frame import Frame, FrameBuilder, FrameParser, ParseResult
from .transport import SerialTransport
from .session import Session, SessionState, open_session, close_session, execute
from .lowspeed import LowSpeedController, LowSpeedState, SensorInfo
from .sequence import CommandSequence, CommandSequencer
from .client import NxtClient, FirmwareVersion, DeviceInfo

__version__ = "1.0.0"
__all__ = [
    # Constants
    "HEADER_SIZE", "MAX_PAYLOAD", "LS_MAX_DATA", "DEFAULT_I2C_ADDRESS",
    "CommandKind", "Opcode", "ErrorCode", "HostError", "InputPort", "OutputPort",
    "SensorType", "SensorMode", "OutputMode", "RegulationMode", "RunState",
    "UltrasonicRegister",
    # Exceptions
    "NxtProtocolError", "ConnectionError", "NotConnectedError", "EncodeError",
    "MalformedResponseError", "TransportError", "BusyError", "TimeoutError",
    "ProtocolViolationError", "LinkError", "DeviceError",
    "DeviceNotRespondingError",
    # Catalog
    "CATALOG", "OpcodeEntry", "ResponsePolicy", "entry_for",
    # Commands and responses (one class per opcode in the submodules)
    "commands", "responses",
    "Command", "COMMAND_TYPES", "Response", "RESPONSE_TYPES",
    # Codec
    "encode", "decode", "encode_reply", "decode_command",
    # Frame
    "Frame", "FrameBuilder", "FrameParser", "ParseResult",
    # Transport and session
    "SerialTransport", "Session", "SessionState",
    "open_session", "close_session", "execute",
    # Low-speed bus
    "LowSpeedController", "LowSpeedState", "SensorInfo",
    # Sequencer
    "CommandSequence", "CommandSequencer",
    # Client
    "NxtClient", "FirmwareVersion", "DeviceInfo",
]
