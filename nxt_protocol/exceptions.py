"""
Custom exceptions for the NXT protocol.

Every exception carries a numeric ``code`` and the offending ``opcode``
(when known) so callers can log or display errors without parsing messages.
Brick failures use the reply status byte as code; failures detected on the
host use :class:`HostError` values.
"""

from typing import Optional

from .constants import ErrorCode, HostError, Opcode


class NxtProtocolError(Exception):
    """Base exception for NXT protocol errors."""

    default_code: Optional[int] = None

    def __init__(self, message: str, code: Optional[int] = None,
                 opcode: Optional[int] = None):
        self.code = self.default_code if code is None else code
        self.opcode = opcode
        if opcode is not None:
            message = f"{message} [opcode={Opcode.name_of(opcode)}]"
        super().__init__(message)


class ConnectionError(NxtProtocolError):
    """Serial connection error (port unavailable or already open)."""
    default_code = HostError.CONNECTION


class NotConnectedError(ConnectionError):
    """Session is not open, or was torn down after a fatal error."""
    default_code = HostError.NOT_CONNECTED


class EncodeError(NxtProtocolError):
    """A command field value does not fit its declared width or range."""
    default_code = HostError.ENCODE

    def __init__(self, field: str, value, reason: str, opcode: Optional[int] = None):
        self.field = field
        self.value = value
        super().__init__(f"Cannot encode {field}={value!r}: {reason}", opcode=opcode)


class MalformedResponseError(NxtProtocolError):
    """Payload is too short, of the wrong kind, or names an unknown opcode."""
    default_code = HostError.MALFORMED_RESPONSE


class TransportError(NxtProtocolError):
    """Base class for transport-level failures."""
    default_code = HostError.TRANSPORT


class BusyError(TransportError):
    """A request is already in flight on this session."""
    default_code = HostError.BUSY


class TimeoutError(TransportError):
    """Response timeout error."""
    default_code = HostError.TIMEOUT

    def __init__(self, timeout: float, opcode: Optional[int] = None):
        self.timeout = timeout
        super().__init__(f"No response within {timeout}s", opcode=opcode)


class ProtocolViolationError(TransportError):
    """Unexpected frame received; framing is assumed desynchronized."""
    default_code = HostError.PROTOCOL_VIOLATION


class LinkError(TransportError):
    """Serial read/write failure."""
    default_code = HostError.LINK


class DeviceError(NxtProtocolError):
    """Brick returned a well-formed reply with a nonzero status."""

    def __init__(self, error_code: int, opcode: Optional[int] = None):
        self.error_code = ErrorCode.coerce(error_code)
        self.error_name = ErrorCode.name_of(error_code)
        super().__init__(
            f"Device error: {self.error_name} (0x{error_code:02X}) - "
            f"{ErrorCode.describe(error_code)}",
            code=error_code,
            opcode=opcode,
        )


class DeviceNotRespondingError(DeviceError):
    """Low-speed device did not report data within the poll bound."""

    def __init__(self, port: int, polls: int, opcode: Optional[int] = None):
        self.port = port
        self.polls = polls
        NxtProtocolError.__init__(
            self,
            f"Low-speed device on port {port} not ready after {polls} polls",
            code=ErrorCode.PENDING_COMMUNICATION,
            opcode=opcode,
        )
        self.error_code = ErrorCode.PENDING_COMMUNICATION
        self.error_name = ErrorCode.PENDING_COMMUNICATION.name
