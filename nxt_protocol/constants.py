"""
Protocol constants matching the brick firmware.

Reference: LEGO MINDSTORMS NXT Bluetooth Developer Kit, appendix 1 and 2.
"""

from enum import IntEnum, IntFlag

# Wire framing
HEADER_SIZE = 2
MAX_PAYLOAD = 64

# Payload byte 0
KIND_MASK = 0x03
NO_REPLY_FLAG = 0x80

# Low-speed (I2C) bus
LS_MAX_DATA = 16
LS_HEADER_SIZE = 5
DEFAULT_I2C_ADDRESS = 0x02

# Mailboxes
MAX_MESSAGE_SIZE = 58
INBOX_COUNT = 10
REMOTE_INBOX_COUNT = 20

BOOT_SIGNATURE = "Let's dance: SAMBA"


class CommandKind(IntEnum):
    """Command kind, bits 0-1 of payload byte 0."""
    DIRECT = 0x00
    SYSTEM = 0x01
    REPLY = 0x02


class Opcode(IntEnum):
    """Command codes (byte 1 of every command and reply)."""
    # Direct commands
    START_PROGRAM = 0x00
    STOP_PROGRAM = 0x01
    PLAY_SOUND_FILE = 0x02
    PLAY_TONE = 0x03
    SET_OUTPUT_STATE = 0x04
    SET_INPUT_MODE = 0x05
    GET_OUTPUT_STATE = 0x06
    GET_INPUT_VALUES = 0x07
    RESET_INPUT_SCALED_VALUE = 0x08
    MESSAGE_WRITE = 0x09
    RESET_MOTOR_POSITION = 0x0A
    GET_BATTERY_LEVEL = 0x0B
    STOP_SOUND_PLAYBACK = 0x0C
    KEEP_ALIVE = 0x0D
    LS_GET_STATUS = 0x0E
    LS_WRITE = 0x0F
    LS_READ = 0x10
    GET_CURRENT_PROGRAM_NAME = 0x11
    MESSAGE_READ = 0x13

    # System commands
    OPEN_READ = 0x80
    OPEN_WRITE = 0x81
    READ = 0x82
    WRITE = 0x83
    CLOSE = 0x84
    DELETE = 0x85
    FIND_FIRST = 0x86
    FIND_NEXT = 0x87
    GET_FIRMWARE_VERSION = 0x88
    OPEN_WRITE_LINEAR = 0x89
    OPEN_READ_LINEAR = 0x8A
    OPEN_WRITE_DATA = 0x8B
    OPEN_APPEND_DATA = 0x8C
    REQUEST_FIRST_MODULE = 0x90
    REQUEST_NEXT_MODULE = 0x91
    CLOSE_MODULE_HANDLE = 0x92
    READ_IO_MAP = 0x94
    WRITE_IO_MAP = 0x95
    BOOT_COMMAND = 0x97
    SET_BRICK_NAME = 0x98
    GET_DEVICE_INFO = 0x9B
    DELETE_USER_FLASH = 0xA0
    POLL_COMMAND_LENGTH = 0xA1
    POLL_COMMAND = 0xA2
    BLUETOOTH_FACTORY_RESET = 0xA4

    @classmethod
    def name_of(cls, opcode: int) -> str:
        """Get opcode name from code."""
        try:
            return cls(opcode).name
        except ValueError:
            return f"Unknown(0x{opcode:02X})"


class ErrorCode(IntEnum):
    """Status byte of a reply (payload offset 2)."""
    SUCCESS = 0x00
    UNKNOWN_STATUS = 0x01
    EXCEPTION = 0x02
    PENDING_COMMUNICATION = 0x20
    MAILBOX_QUEUE_EMPTY = 0x40
    NO_MORE_HANDLES = 0x81
    NO_SPACE = 0x82
    NO_MORE_FILES = 0x83
    END_OF_FILE_EXPECTED = 0x84
    END_OF_FILE = 0x85
    NOT_A_LINEAR_FILE = 0x86
    FILE_NOT_FOUND = 0x87
    HANDLE_ALREADY_CLOSED = 0x88
    NO_LINEAR_SPACE = 0x89
    UNDEFINED_ERROR = 0x8A
    FILE_IS_BUSY = 0x8B
    NO_WRITE_BUFFERS = 0x8C
    APPEND_NOT_POSSIBLE = 0x8D
    FILE_IS_FULL = 0x8E
    FILE_EXISTS = 0x8F
    MODULE_NOT_FOUND = 0x90
    OUT_OF_BOUNDARY = 0x91
    ILLEGAL_FILE_NAME = 0x92
    ILLEGAL_HANDLE = 0x93
    REQUEST_FAILED_FILE_NOT_FOUND = 0xBD
    UNKNOWN_COMMAND_OPCODE = 0xBE
    INSANE_PACKET = 0xBF
    DATA_OUT_OF_RANGE = 0xC0
    COMMUNICATION_BUS_ERROR = 0xDD
    NO_FREE_COMMUNICATION_BUFFER = 0xDE
    CHANNEL_NOT_VALID = 0xDF
    CHANNEL_NOT_CONFIGURED_OR_BUSY = 0xE0
    NO_ACTIVE_PROGRAM = 0xEC
    ILLEGAL_SIZE = 0xED
    ILLEGAL_MAILBOX_QUEUE = 0xEE
    INVALID_FIELD_ACCESS = 0xEF
    BAD_INPUT_OUTPUT = 0xF0
    INSUFFICIENT_MEMORY = 0xFB
    BAD_ARGUMENTS = 0xFF

    @classmethod
    def name_of(cls, error: int) -> str:
        """Get error name from code."""
        try:
            return cls(error).name
        except ValueError:
            return f"Unknown(0x{error:02X})"

    @classmethod
    def describe(cls, error: int) -> str:
        """Human readable message for a status byte."""
        return _ERROR_MESSAGES.get(error, f"Unknown error code: {error}")

    @classmethod
    def coerce(cls, error: int):
        """Return the enum member for a status byte, or the raw int if unknown."""
        try:
            return cls(error)
        except ValueError:
            return error

    @property
    def is_retryable(self) -> bool:
        """True for the transient pending/busy conditions."""
        return self in _RETRYABLE


_RETRYABLE = frozenset({
    ErrorCode.PENDING_COMMUNICATION,
    ErrorCode.FILE_IS_BUSY,
    ErrorCode.CHANNEL_NOT_CONFIGURED_OR_BUSY,
})

_ERROR_MESSAGES = {
    ErrorCode.SUCCESS: "Success",
    ErrorCode.UNKNOWN_STATUS: "Unknown status",
    ErrorCode.EXCEPTION: "Exception",
    ErrorCode.PENDING_COMMUNICATION: "Pending communication transaction in progress",
    ErrorCode.MAILBOX_QUEUE_EMPTY: "Specified mailbox queue is empty",
    ErrorCode.NO_MORE_HANDLES: "No more handles",
    ErrorCode.NO_SPACE: "No space",
    ErrorCode.NO_MORE_FILES: "No more files",
    ErrorCode.END_OF_FILE_EXPECTED: "End of file expected",
    ErrorCode.END_OF_FILE: "End of file",
    ErrorCode.NOT_A_LINEAR_FILE: "Not a linear file",
    ErrorCode.FILE_NOT_FOUND: "File not found",
    ErrorCode.HANDLE_ALREADY_CLOSED: "Handle already closed",
    ErrorCode.NO_LINEAR_SPACE: "No linear space",
    ErrorCode.UNDEFINED_ERROR: "Undefined error",
    ErrorCode.FILE_IS_BUSY: "File is busy",
    ErrorCode.NO_WRITE_BUFFERS: "No write buffers",
    ErrorCode.APPEND_NOT_POSSIBLE: "Append not possible",
    ErrorCode.FILE_IS_FULL: "File is full",
    ErrorCode.FILE_EXISTS: "File exists",
    ErrorCode.MODULE_NOT_FOUND: "Module not found",
    ErrorCode.OUT_OF_BOUNDARY: "Out of boundary",
    ErrorCode.ILLEGAL_FILE_NAME: "Illegal file name",
    ErrorCode.ILLEGAL_HANDLE: "Illegal handle",
    ErrorCode.REQUEST_FAILED_FILE_NOT_FOUND: "Request failed (i.e. specified file not found)",
    ErrorCode.UNKNOWN_COMMAND_OPCODE: "Unknown command opcode",
    ErrorCode.INSANE_PACKET: "Insane packet",
    ErrorCode.DATA_OUT_OF_RANGE: "Data contains out-of-range values",
    ErrorCode.COMMUNICATION_BUS_ERROR: "Communication bus error",
    ErrorCode.NO_FREE_COMMUNICATION_BUFFER: "No free memory in communication buffer",
    ErrorCode.CHANNEL_NOT_VALID: "Specified channel/connection is not valid",
    ErrorCode.CHANNEL_NOT_CONFIGURED_OR_BUSY: "Specified channel/connection not configured or busy",
    ErrorCode.NO_ACTIVE_PROGRAM: "No active program",
    ErrorCode.ILLEGAL_SIZE: "Illegal size specified",
    ErrorCode.ILLEGAL_MAILBOX_QUEUE: "Illegal mailbox queue ID specified",
    ErrorCode.INVALID_FIELD_ACCESS: "Attempted to access invalid field of a structure",
    ErrorCode.BAD_INPUT_OUTPUT: "Bad input or output specified",
    ErrorCode.INSUFFICIENT_MEMORY: "Insufficient memory available",
    ErrorCode.BAD_ARGUMENTS: "Bad arguments",
}


class HostError(IntEnum):
    """Codes for failures detected on the host side (above the status byte range)."""
    CONNECTION = 0x100
    NOT_CONNECTED = 0x101
    ENCODE = 0x102
    MALFORMED_RESPONSE = 0x103
    TRANSPORT = 0x110
    BUSY = 0x111
    TIMEOUT = 0x112
    PROTOCOL_VIOLATION = 0x113
    LINK = 0x114


class InputPort(IntEnum):
    """Sensor ports, numbered from 0 on the wire."""
    SENSOR_1 = 0x00
    SENSOR_2 = 0x01
    SENSOR_3 = 0x02
    SENSOR_4 = 0x03


class OutputPort(IntEnum):
    """Motor ports."""
    A = 0x00
    B = 0x01
    C = 0x02
    ALL = 0xFF


class SensorType(IntEnum):
    """Sensor types for SET_INPUT_MODE / GET_INPUT_VALUES."""
    NO_SENSOR = 0x00
    SWITCH = 0x01
    TEMPERATURE = 0x02
    REFLECTION = 0x03
    ANGLE = 0x04
    LIGHT_ACTIVE = 0x05
    LIGHT_INACTIVE = 0x06
    SOUND_DB = 0x07
    SOUND_DBA = 0x08
    CUSTOM = 0x09
    LOW_SPEED = 0x0A
    LOW_SPEED_9V = 0x0B
    HIGH_SPEED = 0x0C
    COLOR_FULL = 0x0D
    COLOR_RED = 0x0E
    COLOR_GREEN = 0x0F
    COLOR_BLUE = 0x10
    COLOR_NONE = 0x11


class SensorMode(IntEnum):
    """Sensor value modes (upper three bits of the mode byte)."""
    RAW = 0x00
    BOOLEAN = 0x20
    TRANSITION_COUNT = 0x40
    PERIOD_COUNTER = 0x60
    PERCENT_FULL_SCALE = 0x80
    CELSIUS = 0xA0
    FAHRENHEIT = 0xC0
    ANGLE_STEPS = 0xE0


SENSOR_MODE_MASK = 0xE0
SENSOR_SLOPE_MASK = 0x1F


class OutputMode(IntFlag):
    """Motor output mode bits."""
    NONE = 0x00
    MOTOR_ON = 0x01
    BRAKE = 0x02
    REGULATED = 0x04


class RegulationMode(IntEnum):
    """Motor regulation modes."""
    IDLE = 0x00
    MOTOR_SPEED = 0x01
    MOTOR_SYNC = 0x02


class RunState(IntEnum):
    """Motor run states."""
    IDLE = 0x00
    RAMP_UP = 0x10
    RUNNING = 0x20
    RAMP_DOWN = 0x40


class UltrasonicRegister(IntEnum):
    """Registers of the ultrasonic rangefinder on the low-speed bus."""
    FACTORY_ZERO = 0x11
    CONTINUOUS_MEASUREMENT_INTERVAL = 0x40
    COMMAND_STATE = 0x41
    MEASUREMENT_1 = 0x42


SENSOR_INFO_REGISTER = 0x08
SENSOR_INFO_LENGTH = 16
