"""
Typed commands.

Each opcode has one dataclass. Shared attributes (``wants_response`` and
``try_count``) live on :class:`Command` and are keyword-only; assignment
keeps them consistent:

* ``try_count`` is clamped to 1..20
* ``try_count > 1`` forces ``wants_response = True``
* ``wants_response = False`` resets ``try_count`` to 1
* opcodes whose reply is mandatory always want a response
"""

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional, Type

from .catalog import CATALOG, MAX_TRY_COUNT, OpcodeEntry
from .constants import (
    Opcode, CommandKind, InputPort, OutputPort, SensorType, SensorMode,
    OutputMode, RegulationMode, RunState, BOOT_SIGNATURE,
)

COMMAND_TYPES: Dict[int, Type["Command"]] = {}


def register(cls):
    """Class decorator: map the class opcode to the class."""
    COMMAND_TYPES[cls.opcode] = cls
    return cls


@dataclass
class Command:
    """Base class for all commands sent to the brick."""
    opcode: ClassVar[Opcode]

    wants_response: Optional[bool] = field(default=None, kw_only=True)
    try_count: int = field(default=1, kw_only=True)

    def __setattr__(self, name, value):
        if name == "wants_response":
            if self.entry.response_required:
                value = True
            value = bool(value)
            if not value:
                object.__setattr__(self, "try_count", 1)
        elif name == "try_count":
            value = max(1, min(MAX_TRY_COUNT, int(value)))
            if value > 1:
                object.__setattr__(self, "wants_response", True)
        object.__setattr__(self, name, value)

    @property
    def entry(self) -> OpcodeEntry:
        return CATALOG[self.opcode]

    @property
    def kind(self) -> CommandKind:
        return self.entry.kind


# ---------------------------------------------------------------------------
# Direct commands
# ---------------------------------------------------------------------------

@register
@dataclass
class StartProgram(Command):
    opcode: ClassVar[Opcode] = Opcode.START_PROGRAM
    filename: str = ""


@register
@dataclass
class StopProgram(Command):
    opcode: ClassVar[Opcode] = Opcode.STOP_PROGRAM


@register
@dataclass
class PlaySoundFile(Command):
    opcode: ClassVar[Opcode] = Opcode.PLAY_SOUND_FILE
    filename: str = ""
    loop: bool = False


@register
@dataclass
class PlayTone(Command):
    """Play a tone; frequency in Hz (200-14000), duration in ms."""
    opcode: ClassVar[Opcode] = Opcode.PLAY_TONE
    frequency: int = 440
    duration: int = 100


@register
@dataclass
class SetOutputState(Command):
    """Drive a motor port. ``power`` and ``turn_ratio`` range -100..100."""
    opcode: ClassVar[Opcode] = Opcode.SET_OUTPUT_STATE
    port: OutputPort = OutputPort.A
    power: int = 0
    mode: OutputMode = OutputMode.NONE
    regulation: RegulationMode = RegulationMode.IDLE
    turn_ratio: int = 0
    run_state: RunState = RunState.IDLE
    tacho_limit: int = 0


@register
@dataclass
class SetInputMode(Command):
    opcode: ClassVar[Opcode] = Opcode.SET_INPUT_MODE
    port: InputPort = InputPort.SENSOR_1
    sensor_type: SensorType = SensorType.NO_SENSOR
    sensor_mode: SensorMode = SensorMode.RAW


@register
@dataclass
class GetOutputState(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_OUTPUT_STATE
    port: OutputPort = OutputPort.A


@register
@dataclass
class GetInputValues(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_INPUT_VALUES
    port: InputPort = InputPort.SENSOR_1


@register
@dataclass
class ResetInputScaledValue(Command):
    opcode: ClassVar[Opcode] = Opcode.RESET_INPUT_SCALED_VALUE
    port: InputPort = InputPort.SENSOR_1


@register
@dataclass
class MessageWrite(Command):
    """Write up to 58 bytes to a mailbox (0-9); a NUL terminator is appended."""
    opcode: ClassVar[Opcode] = Opcode.MESSAGE_WRITE
    inbox: int = 0
    message: bytes = b""


@register
@dataclass
class ResetMotorPosition(Command):
    opcode: ClassVar[Opcode] = Opcode.RESET_MOTOR_POSITION
    port: OutputPort = OutputPort.A
    relative: bool = False


@register
@dataclass
class GetBatteryLevel(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_BATTERY_LEVEL


@register
@dataclass
class StopSoundPlayback(Command):
    opcode: ClassVar[Opcode] = Opcode.STOP_SOUND_PLAYBACK


@register
@dataclass
class KeepAlive(Command):
    opcode: ClassVar[Opcode] = Opcode.KEEP_ALIVE


@register
@dataclass
class LSGetStatus(Command):
    opcode: ClassVar[Opcode] = Opcode.LS_GET_STATUS
    port: InputPort = InputPort.SENSOR_1


@register
@dataclass
class LSWrite(Command):
    """
    Low-speed bus write.

    ``tx_data`` is the complete bus transmission, secondary address
    included (at most 16 bytes). ``rx_length`` is how many bytes the
    device is expected to answer with (0-16).
    """
    opcode: ClassVar[Opcode] = Opcode.LS_WRITE
    port: InputPort = InputPort.SENSOR_1
    tx_data: bytes = b""
    rx_length: int = 0


@register
@dataclass
class LSRead(Command):
    opcode: ClassVar[Opcode] = Opcode.LS_READ
    port: InputPort = InputPort.SENSOR_1


@register
@dataclass
class GetCurrentProgramName(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_CURRENT_PROGRAM_NAME


@register
@dataclass
class MessageRead(Command):
    """Read from remote inbox (0-19) into local inbox (0-9)."""
    opcode: ClassVar[Opcode] = Opcode.MESSAGE_READ
    remote_inbox: int = 0
    local_inbox: int = 0
    remove: bool = True


# ---------------------------------------------------------------------------
# System commands
# ---------------------------------------------------------------------------

@register
@dataclass
class OpenRead(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_READ
    filename: str = ""


@register
@dataclass
class OpenWrite(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_WRITE
    filename: str = ""
    file_size: int = 0


@register
@dataclass
class Read(Command):
    opcode: ClassVar[Opcode] = Opcode.READ
    handle: int = 0
    bytes_to_read: int = 0


@register
@dataclass
class Write(Command):
    opcode: ClassVar[Opcode] = Opcode.WRITE
    handle: int = 0
    data: bytes = b""


@register
@dataclass
class Close(Command):
    opcode: ClassVar[Opcode] = Opcode.CLOSE
    handle: int = 0


@register
@dataclass
class Delete(Command):
    opcode: ClassVar[Opcode] = Opcode.DELETE
    filename: str = ""


@register
@dataclass
class FindFirst(Command):
    """Start a file search; wildcards such as ``*.rxe`` are accepted."""
    opcode: ClassVar[Opcode] = Opcode.FIND_FIRST
    filename: str = "*.*"


@register
@dataclass
class FindNext(Command):
    opcode: ClassVar[Opcode] = Opcode.FIND_NEXT
    handle: int = 0


@register
@dataclass
class GetFirmwareVersion(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_FIRMWARE_VERSION


@register
@dataclass
class OpenWriteLinear(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_WRITE_LINEAR
    filename: str = ""
    file_size: int = 0


@register
@dataclass
class OpenReadLinear(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_READ_LINEAR
    filename: str = ""


@register
@dataclass
class OpenWriteData(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_WRITE_DATA
    filename: str = ""
    file_size: int = 0


@register
@dataclass
class OpenAppendData(Command):
    opcode: ClassVar[Opcode] = Opcode.OPEN_APPEND_DATA
    filename: str = ""


@register
@dataclass
class RequestFirstModule(Command):
    opcode: ClassVar[Opcode] = Opcode.REQUEST_FIRST_MODULE
    module_name: str = "*.*"


@register
@dataclass
class RequestNextModule(Command):
    opcode: ClassVar[Opcode] = Opcode.REQUEST_NEXT_MODULE
    handle: int = 0


@register
@dataclass
class CloseModuleHandle(Command):
    opcode: ClassVar[Opcode] = Opcode.CLOSE_MODULE_HANDLE
    handle: int = 0


@register
@dataclass
class ReadIOMap(Command):
    opcode: ClassVar[Opcode] = Opcode.READ_IO_MAP
    module_id: int = 0
    offset: int = 0
    bytes_to_read: int = 0


@register
@dataclass
class WriteIOMap(Command):
    opcode: ClassVar[Opcode] = Opcode.WRITE_IO_MAP
    module_id: int = 0
    offset: int = 0
    data: bytes = b""


@register
@dataclass
class BootCommand(Command):
    """Put the brick into firmware download mode. USB only."""
    opcode: ClassVar[Opcode] = Opcode.BOOT_COMMAND
    signature: str = BOOT_SIGNATURE


@register
@dataclass
class SetBrickName(Command):
    opcode: ClassVar[Opcode] = Opcode.SET_BRICK_NAME
    name: str = ""


@register
@dataclass
class GetDeviceInfo(Command):
    opcode: ClassVar[Opcode] = Opcode.GET_DEVICE_INFO


@register
@dataclass
class DeleteUserFlash(Command):
    opcode: ClassVar[Opcode] = Opcode.DELETE_USER_FLASH


@register
@dataclass
class PollCommandLength(Command):
    """Buffer 0x00 is the poll buffer, 0x01 the high-speed buffer."""
    opcode: ClassVar[Opcode] = Opcode.POLL_COMMAND_LENGTH
    buffer_number: int = 0


@register
@dataclass
class PollCommand(Command):
    opcode: ClassVar[Opcode] = Opcode.POLL_COMMAND
    buffer_number: int = 0
    command_length: int = 0


@register
@dataclass
class BluetoothFactoryReset(Command):
    """Reset Bluetooth settings to factory defaults. USB only."""
    opcode: ClassVar[Opcode] = Opcode.BLUETOOTH_FACTORY_RESET
