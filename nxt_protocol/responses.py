"""
Typed replies.

Every reply carries the echoed ``opcode`` and the ``status`` byte. Field
values are only meaningful when ``status`` is SUCCESS. Fields that were
missing from a short reply hold their absent value (-1, "", b"", False
or None).
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Type, Union

from .catalog import CATALOG, OpcodeEntry
from .constants import (
    Opcode, CommandKind, ErrorCode, InputPort, OutputPort, SensorType,
    SensorMode, OutputMode, RegulationMode, RunState,
)
from .exceptions import DeviceError

RESPONSE_TYPES: Dict[int, Type["Response"]] = {}


def register(*opcodes: Opcode):
    """Class decorator: map one or more opcodes to a response class."""
    def wrap(cls):
        for opcode in opcodes:
            RESPONSE_TYPES[opcode] = cls
        return cls
    return wrap


@dataclass
class Response:
    """Reply without payload fields (status only)."""
    opcode: int
    status: Union[ErrorCode, int] = ErrorCode.SUCCESS
    raw: bytes = field(default=b"", compare=False, repr=False)
    synthetic: bool = field(default=False, compare=False)

    def __post_init__(self):
        self.status = ErrorCode.coerce(self.status)

    @property
    def kind(self) -> CommandKind:
        return CommandKind.REPLY

    @property
    def entry(self) -> Optional[OpcodeEntry]:
        return CATALOG.get(self.opcode)

    @property
    def success(self) -> bool:
        return self.status == ErrorCode.SUCCESS

    @property
    def error_name(self) -> str:
        return ErrorCode.name_of(self.status)

    def raise_for_status(self) -> "Response":
        """
        Raise DeviceError if the brick reported a failure.

        Returns:
            The response itself, for chaining
        """
        if not self.success:
            raise DeviceError(self.status, opcode=self.opcode)
        return self


# ---------------------------------------------------------------------------
# Direct command replies
# ---------------------------------------------------------------------------

@register(Opcode.GET_OUTPUT_STATE)
@dataclass
class GetOutputStateResponse(Response):
    opcode: int = Opcode.GET_OUTPUT_STATE
    port: Optional[OutputPort] = None
    power: int = -1
    mode: Optional[OutputMode] = None
    regulation: Optional[RegulationMode] = None
    turn_ratio: int = -1
    run_state: Optional[RunState] = None
    tacho_limit: int = -1
    tacho_count: int = -1
    block_tacho_count: int = -1
    rotation_count: int = -1


@register(Opcode.GET_INPUT_VALUES)
@dataclass
class GetInputValuesResponse(Response):
    opcode: int = Opcode.GET_INPUT_VALUES
    port: Optional[InputPort] = None
    valid: bool = False
    calibrated: bool = False
    sensor_type: Optional[SensorType] = None
    sensor_mode: Optional[SensorMode] = None
    raw_value: int = -1
    normalized_value: int = -1
    scaled_value: int = -1
    calibrated_value: int = -1


@register(Opcode.GET_BATTERY_LEVEL)
@dataclass
class GetBatteryLevelResponse(Response):
    opcode: int = Opcode.GET_BATTERY_LEVEL
    millivolts: int = -1

    @property
    def voltage(self) -> float:
        """Battery voltage in volts."""
        return self.millivolts / 1000.0


@register(Opcode.KEEP_ALIVE)
@dataclass
class KeepAliveResponse(Response):
    """``sleep_time_limit`` is in milliseconds."""
    opcode: int = Opcode.KEEP_ALIVE
    sleep_time_limit: int = -1


@register(Opcode.LS_GET_STATUS)
@dataclass
class LSGetStatusResponse(Response):
    opcode: int = Opcode.LS_GET_STATUS
    bytes_ready: int = -1


@register(Opcode.LS_READ)
@dataclass
class LSReadResponse(Response):
    """``rx_data`` holds the first ``bytes_read`` bytes of the 16-byte window."""
    opcode: int = Opcode.LS_READ
    bytes_read: int = -1
    rx_data: bytes = b""


@register(Opcode.GET_CURRENT_PROGRAM_NAME)
@dataclass
class GetCurrentProgramNameResponse(Response):
    opcode: int = Opcode.GET_CURRENT_PROGRAM_NAME
    filename: str = ""


@register(Opcode.MESSAGE_READ)
@dataclass
class MessageReadResponse(Response):
    opcode: int = Opcode.MESSAGE_READ
    local_inbox: int = -1
    message_size: int = -1
    message: bytes = b""

    @property
    def text(self) -> str:
        """Message decoded as ASCII, cut at the first NUL."""
        return self.message.split(b"\0", 1)[0].decode("ascii", errors="replace")


# ---------------------------------------------------------------------------
# System command replies
# ---------------------------------------------------------------------------

@register(Opcode.OPEN_WRITE, Opcode.OPEN_WRITE_LINEAR, Opcode.OPEN_WRITE_DATA,
          Opcode.CLOSE, Opcode.CLOSE_MODULE_HANDLE)
@dataclass
class HandleResponse(Response):
    """Reply that only carries a file or module handle."""
    handle: int = -1


@register(Opcode.OPEN_READ)
@dataclass
class OpenReadResponse(Response):
    opcode: int = Opcode.OPEN_READ
    handle: int = -1
    file_size: int = -1


@register(Opcode.READ)
@dataclass
class ReadResponse(Response):
    opcode: int = Opcode.READ
    handle: int = -1
    bytes_read: int = -1
    data: bytes = b""


@register(Opcode.WRITE)
@dataclass
class WriteResponse(Response):
    opcode: int = Opcode.WRITE
    handle: int = -1
    bytes_written: int = -1


@register(Opcode.DELETE)
@dataclass
class DeleteResponse(Response):
    opcode: int = Opcode.DELETE
    filename: str = ""


@register(Opcode.FIND_FIRST, Opcode.FIND_NEXT)
@dataclass
class FindFileResponse(Response):
    handle: int = -1
    filename: str = ""
    file_size: int = -1


@register(Opcode.GET_FIRMWARE_VERSION)
@dataclass
class GetFirmwareVersionResponse(Response):
    opcode: int = Opcode.GET_FIRMWARE_VERSION
    protocol_minor: int = -1
    protocol_major: int = -1
    firmware_minor: int = -1
    firmware_major: int = -1

    @property
    def protocol_version(self) -> str:
        return f"{self.protocol_major}.{self.protocol_minor}"

    @property
    def firmware_version(self) -> str:
        return f"{self.firmware_major}.{self.firmware_minor:02d}"


@register(Opcode.OPEN_READ_LINEAR)
@dataclass
class OpenReadLinearResponse(Response):
    opcode: int = Opcode.OPEN_READ_LINEAR
    pointer: int = -1


@register(Opcode.OPEN_APPEND_DATA)
@dataclass
class OpenAppendDataResponse(Response):
    opcode: int = Opcode.OPEN_APPEND_DATA
    handle: int = -1
    available_size: int = -1


@register(Opcode.REQUEST_FIRST_MODULE, Opcode.REQUEST_NEXT_MODULE)
@dataclass
class ModuleResponse(Response):
    handle: int = -1
    module_name: str = ""
    module_id: int = -1
    module_size: int = -1
    io_map_size: int = -1


@register(Opcode.READ_IO_MAP)
@dataclass
class ReadIOMapResponse(Response):
    opcode: int = Opcode.READ_IO_MAP
    module_id: int = -1
    bytes_read: int = -1
    data: bytes = b""


@register(Opcode.WRITE_IO_MAP)
@dataclass
class WriteIOMapResponse(Response):
    opcode: int = Opcode.WRITE_IO_MAP
    module_id: int = -1
    bytes_written: int = -1


@register(Opcode.BOOT_COMMAND)
@dataclass
class BootCommandResponse(Response):
    """``message`` is "Yes" when the brick accepted the boot request."""
    opcode: int = Opcode.BOOT_COMMAND
    message: str = ""


@register(Opcode.GET_DEVICE_INFO)
@dataclass
class GetDeviceInfoResponse(Response):
    opcode: int = Opcode.GET_DEVICE_INFO
    brick_name: str = ""
    bluetooth_address: bytes = b""
    signal_strength: int = -1
    free_flash: int = -1

    @property
    def bluetooth_address_str(self) -> str:
        """Bluetooth address as ``00:16:53:xx:xx:xx``."""
        return ":".join(f"{b:02X}" for b in self.bluetooth_address[:6])


@register(Opcode.POLL_COMMAND_LENGTH)
@dataclass
class PollCommandLengthResponse(Response):
    opcode: int = Opcode.POLL_COMMAND_LENGTH
    buffer_number: int = -1
    command_length: int = -1


@register(Opcode.POLL_COMMAND)
@dataclass
class PollCommandResponse(Response):
    opcode: int = Opcode.POLL_COMMAND
    buffer_number: int = -1
    command_length: int = -1
    command: bytes = b""


def response_type(opcode: int) -> Type[Response]:
    """Response class for an opcode (plain Response when it has no fields)."""
    return RESPONSE_TYPES.get(opcode, Response)
