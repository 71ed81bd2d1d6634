"""
Command catalog: kind, response policy and byte layout of every opcode.

Offsets are absolute payload offsets. Requests start their fields at
byte 2 (after kind and opcode); replies start theirs at byte 3 (after
kind, opcode and status).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from .constants import (
    CommandKind, Opcode, InputPort, OutputPort, SensorType, SensorMode,
    OutputMode, RegulationMode, RunState,
    LS_MAX_DATA, MAX_MESSAGE_SIZE, INBOX_COUNT, REMOTE_INBOX_COUNT,
)
from .fields import Field, BoolField, StrField, BytesField, VarBytesField

FILENAME_WIDTH = 20
MAX_TRY_COUNT = 20

_INPUT_PORTS = range(len(InputPort))
_OUTPUT_PORTS = (OutputPort.A, OutputPort.B, OutputPort.C, OutputPort.ALL)


class ResponsePolicy(Enum):
    """Whether a reply is mandatory for an opcode."""
    REQUIRED = "required"
    OPTIONAL = "optional"


@dataclass(frozen=True)
class OpcodeEntry:
    """Catalog entry for one opcode."""
    opcode: Opcode
    kind: CommandKind
    policy: ResponsePolicy
    request_length: int
    response_length: Optional[int]
    request_fields: Tuple[Field, ...] = ()
    response_fields: Tuple[Field, ...] = ()

    @property
    def response_required(self) -> bool:
        return self.policy is ResponsePolicy.REQUIRED


CATALOG: Dict[int, OpcodeEntry] = {}


def _add(opcode: Opcode, kind: CommandKind, policy: ResponsePolicy,
         request_length: int, response_length: Optional[int],
         request=(), response=()) -> None:
    CATALOG[opcode] = OpcodeEntry(
        opcode, kind, policy, request_length, response_length,
        tuple(request), tuple(response)
    )


def entry_for(opcode: int) -> Optional[OpcodeEntry]:
    """Look up the catalog entry for an opcode (None if unknown)."""
    return CATALOG.get(opcode)


def _direct(opcode, policy, request_length, response_length, request=(), response=()):
    _add(opcode, CommandKind.DIRECT, policy, request_length, response_length, request, response)


def _system(opcode, request_length, response_length, request=(), response=()):
    _add(opcode, CommandKind.SYSTEM, ResponsePolicy.REQUIRED,
         request_length, response_length, request, response)


REQ = ResponsePolicy.REQUIRED
OPT = ResponsePolicy.OPTIONAL


def _input_port(offset: int = 2) -> Field:
    return Field("port", offset, enum=InputPort, valid=_INPUT_PORTS)


def _output_port(offset: int = 2) -> Field:
    return Field("port", offset, enum=OutputPort, valid=_OUTPUT_PORTS)


# ---------------------------------------------------------------------------
# Direct commands
# ---------------------------------------------------------------------------

_direct(Opcode.START_PROGRAM, OPT, 22, 3,
        request=[StrField("filename", 2, FILENAME_WIDTH)])

_direct(Opcode.STOP_PROGRAM, OPT, 2, 3)

_direct(Opcode.PLAY_SOUND_FILE, OPT, 23, 3,
        request=[BoolField("loop", 2), StrField("filename", 3, FILENAME_WIDTH)])

_direct(Opcode.PLAY_TONE, OPT, 6, 3,
        request=[Field("frequency", 2, "H"), Field("duration", 4, "H")])

_direct(Opcode.SET_OUTPUT_STATE, OPT, 12, 3, request=[
    _output_port(),
    Field("power", 3, "b", valid=range(-100, 101)),
    Field("mode", 4, enum=OutputMode),
    Field("regulation", 5, enum=RegulationMode),
    Field("turn_ratio", 6, "b", valid=range(-100, 101)),
    Field("run_state", 7, enum=RunState),
    Field("tacho_limit", 8, "I"),
])

_direct(Opcode.SET_INPUT_MODE, OPT, 5, 3, request=[
    _input_port(),
    Field("sensor_type", 3, enum=SensorType),
    Field("sensor_mode", 4, enum=SensorMode),
])

_direct(Opcode.GET_OUTPUT_STATE, REQ, 3, 25,
        request=[Field("port", 2, enum=OutputPort, valid=range(3))],
        response=[
            Field("port", 3, enum=OutputPort),
            Field("power", 4, "b"),
            Field("mode", 5, enum=OutputMode),
            Field("regulation", 6, enum=RegulationMode),
            Field("turn_ratio", 7, "b"),
            Field("run_state", 8, enum=RunState),
            Field("tacho_limit", 9, "I"),
            Field("tacho_count", 13, "i"),
            Field("block_tacho_count", 17, "i"),
            Field("rotation_count", 21, "i"),
        ])

_direct(Opcode.GET_INPUT_VALUES, REQ, 3, 16,
        request=[_input_port()],
        response=[
            Field("port", 3, enum=InputPort),
            BoolField("valid", 4),
            BoolField("calibrated", 5),
            Field("sensor_type", 6, enum=SensorType),
            Field("sensor_mode", 7, enum=SensorMode),
            Field("raw_value", 8, "H"),
            Field("normalized_value", 10, "H"),
            Field("scaled_value", 12, "h"),
            Field("calibrated_value", 14, "h"),
        ])

_direct(Opcode.RESET_INPUT_SCALED_VALUE, OPT, 3, 3, request=[_input_port()])

_direct(Opcode.MESSAGE_WRITE, OPT, 4, 3, request=[
    Field("inbox", 2, valid=range(INBOX_COUNT)),
    VarBytesField("message", 4, MAX_MESSAGE_SIZE, count_offset=3, terminated=True),
])

_direct(Opcode.RESET_MOTOR_POSITION, OPT, 4, 3,
        request=[Field("port", 2, enum=OutputPort, valid=range(3)), BoolField("relative", 3)])

_direct(Opcode.GET_BATTERY_LEVEL, REQ, 2, 5,
        response=[Field("millivolts", 3, "H")])

_direct(Opcode.STOP_SOUND_PLAYBACK, OPT, 2, 3)

_direct(Opcode.KEEP_ALIVE, OPT, 2, 7,
        response=[Field("sleep_time_limit", 3, "I")])

_direct(Opcode.LS_GET_STATUS, REQ, 3, 4,
        request=[_input_port()],
        response=[Field("bytes_ready", 3)])

_direct(Opcode.LS_WRITE, OPT, 5, 3, request=[
    _input_port(),
    VarBytesField("tx_data", 5, LS_MAX_DATA, count_offset=3),
    Field("rx_length", 4, valid=range(LS_MAX_DATA + 1)),
])

_direct(Opcode.LS_READ, REQ, 3, 20,
        request=[_input_port()],
        response=[VarBytesField("rx_data", 4, LS_MAX_DATA, count_offset=3,
                                count_name="bytes_read", window=LS_MAX_DATA)])

_direct(Opcode.GET_CURRENT_PROGRAM_NAME, REQ, 2, 23,
        response=[StrField("filename", 3, FILENAME_WIDTH)])

_direct(Opcode.MESSAGE_READ, REQ, 5, 64,
        request=[
            Field("remote_inbox", 2, valid=range(REMOTE_INBOX_COUNT)),
            Field("local_inbox", 3, valid=range(INBOX_COUNT)),
            BoolField("remove", 4),
        ],
        response=[
            Field("local_inbox", 3),
            VarBytesField("message", 5, MAX_MESSAGE_SIZE, count_offset=4,
                          count_name="message_size", window=MAX_MESSAGE_SIZE + 1,
                          terminated=True),
        ])

# ---------------------------------------------------------------------------
# System commands
# ---------------------------------------------------------------------------

_FILENAME = StrField("filename", 2, FILENAME_WIDTH)
_FILE_SIZE = Field("file_size", 22, "I")
_HANDLE = Field("handle", 2)
_REPLY_HANDLE = Field("handle", 3)

_system(Opcode.OPEN_READ, 22, 8, request=[_FILENAME],
        response=[_REPLY_HANDLE, Field("file_size", 4, "I")])

_system(Opcode.OPEN_WRITE, 26, 4, request=[_FILENAME, _FILE_SIZE],
        response=[_REPLY_HANDLE])

_system(Opcode.READ, 5, None,
        request=[_HANDLE, Field("bytes_to_read", 3, "H")],
        response=[_REPLY_HANDLE,
                  VarBytesField("data", 6, 58, count_offset=4, count_fmt="H",
                                count_name="bytes_read")])

_system(Opcode.WRITE, 3, 6,
        request=[_HANDLE, VarBytesField("data", 3, 61)],
        response=[_REPLY_HANDLE, Field("bytes_written", 4, "H")])

_system(Opcode.CLOSE, 3, 4, request=[_HANDLE], response=[_REPLY_HANDLE])

_system(Opcode.DELETE, 22, 23, request=[_FILENAME],
        response=[StrField("filename", 3, FILENAME_WIDTH)])

_FIND_REPLY = [
    _REPLY_HANDLE,
    StrField("filename", 4, FILENAME_WIDTH),
    Field("file_size", 24, "I"),
]

_system(Opcode.FIND_FIRST, 22, 28, request=[_FILENAME], response=_FIND_REPLY)

_system(Opcode.FIND_NEXT, 3, 28, request=[_HANDLE], response=_FIND_REPLY)

_system(Opcode.GET_FIRMWARE_VERSION, 2, 7, response=[
    Field("protocol_minor", 3),
    Field("protocol_major", 4),
    Field("firmware_minor", 5),
    Field("firmware_major", 6),
])

_system(Opcode.OPEN_WRITE_LINEAR, 26, 4, request=[_FILENAME, _FILE_SIZE],
        response=[_REPLY_HANDLE])

_system(Opcode.OPEN_READ_LINEAR, 22, 7, request=[_FILENAME],
        response=[Field("pointer", 3, "I")])

_system(Opcode.OPEN_WRITE_DATA, 26, 4, request=[_FILENAME, _FILE_SIZE],
        response=[_REPLY_HANDLE])

_system(Opcode.OPEN_APPEND_DATA, 22, 8, request=[_FILENAME],
        response=[_REPLY_HANDLE, Field("available_size", 4, "I")])

_MODULE_REPLY = [
    _REPLY_HANDLE,
    StrField("module_name", 4, FILENAME_WIDTH),
    Field("module_id", 24, "I"),
    Field("module_size", 28, "I"),
    Field("io_map_size", 32, "H"),
]

_system(Opcode.REQUEST_FIRST_MODULE, 22, 34,
        request=[StrField("module_name", 2, FILENAME_WIDTH)], response=_MODULE_REPLY)

_system(Opcode.REQUEST_NEXT_MODULE, 3, 34, request=[_HANDLE], response=_MODULE_REPLY)

_system(Opcode.CLOSE_MODULE_HANDLE, 3, 4, request=[_HANDLE], response=[_REPLY_HANDLE])

_system(Opcode.READ_IO_MAP, 10, None,
        request=[Field("module_id", 2, "I"), Field("offset", 6, "H"),
                 Field("bytes_to_read", 8, "H")],
        response=[Field("module_id", 3, "I"),
                  VarBytesField("data", 9, 55, count_offset=7, count_fmt="H",
                                count_name="bytes_read")])

_system(Opcode.WRITE_IO_MAP, 10, 9,
        request=[Field("module_id", 2, "I"), Field("offset", 6, "H"),
                 VarBytesField("data", 10, 54, count_offset=8, count_fmt="H")],
        response=[Field("module_id", 3, "I"), Field("bytes_written", 7, "H")])

_system(Opcode.BOOT_COMMAND, 21, 7,
        request=[StrField("signature", 2, 19)],
        response=[StrField("message", 3, 4)])

_system(Opcode.SET_BRICK_NAME, 18, 3, request=[StrField("name", 2, 16)])

_system(Opcode.GET_DEVICE_INFO, 2, 33, response=[
    StrField("brick_name", 3, 15),
    BytesField("bluetooth_address", 18, 7),
    Field("signal_strength", 25, "I"),
    Field("free_flash", 29, "I"),
])

_system(Opcode.DELETE_USER_FLASH, 2, 3)

_system(Opcode.POLL_COMMAND_LENGTH, 3, 5,
        request=[Field("buffer_number", 2)],
        response=[Field("buffer_number", 3), Field("command_length", 4)])

_system(Opcode.POLL_COMMAND, 4, 64,
        request=[Field("buffer_number", 2), Field("command_length", 3)],
        response=[Field("buffer_number", 3),
                  VarBytesField("command", 5, 59, count_offset=4,
                                count_name="command_length")])

_system(Opcode.BLUETOOTH_FACTORY_RESET, 2, 3)
