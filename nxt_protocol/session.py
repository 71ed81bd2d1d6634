"""
Transport session: one command in flight, reply correlation, timeouts.

State machine::

    IDLE -> SENDING -> AWAITING_REPLY -> IDLE
                              |-> FAILED -> IDLE      (timeout, malformed reply)
    any  -> CLOSED                                     (protocol violation, I/O failure, close)

The session never retries; see :class:`nxt_protocol.client.NxtClient`.
"""

import time
import logging
import threading
from enum import Enum
from typing import Optional

from .commands import Command
from .codec import decode
from .constants import CommandKind, Opcode
from .exceptions import (
    NotConnectedError, BusyError, TimeoutError, ProtocolViolationError,
    LinkError, MalformedResponseError,
)
from .frame import Frame, FrameBuilder, FrameParser, ParseResult
from .responses import Response, response_type
from .transport import SerialTransport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states."""
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_REPLY = "awaiting_reply"
    FAILED = "failed"
    CLOSED = "closed"


class Session:
    """Request/reply session over one serial transport."""

    def __init__(
        self,
        transport: SerialTransport,
        response_timeout: float = 1.5,
        poll_timeout: float = 0.1
    ):
        """
        Initialize session.

        Args:
            transport: Transport instance (opened or not)
            response_timeout: Default reply timeout in seconds
            poll_timeout: Wait per receive call while awaiting a reply
        """
        self.transport = transport
        self.response_timeout = response_timeout
        self.poll_timeout = poll_timeout
        self.state = SessionState.IDLE if transport.is_open else SessionState.CLOSED
        self.last_opcode: Optional[int] = None
        self._parser = FrameParser()
        self._lock = threading.Lock()

    def open(self) -> None:
        """Open the underlying transport if needed."""
        if not self.transport.is_open:
            self.transport.open()
        self._parser.clear()
        self.state = SessionState.IDLE

    def close(self) -> None:
        """Close the session and its transport."""
        self.transport.close()
        self.state = SessionState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED and self.transport.is_open

    def execute(self, command: Command, timeout: Optional[float] = None) -> Response:
        """
        Send a command and, if it wants one, wait for its reply.

        Args:
            command: Command to send
            timeout: Reply timeout in seconds (None uses default)

        Returns:
            Decoded response, or a synthetic SUCCESS response when the
            command does not want a reply

        Raises:
            NotConnectedError: If the session is closed
            BusyError: If another command is in flight
            EncodeError: If the command cannot be encoded
            TimeoutError: If no reply arrives in time (session stays usable)
            ProtocolViolationError: If an unexpected frame arrives (session closes)
            MalformedResponseError: If the reply cannot be decoded
            LinkError: If the serial port fails (session closes)
        """
        if not self.is_open:
            raise NotConnectedError("Session is closed", opcode=command.opcode)

        if not self._lock.acquire(blocking=False):
            raise BusyError("Another command is in flight", opcode=command.opcode)
        try:
            if self.transport.out_waiting:
                raise BusyError("Serial output buffer not drained", opcode=command.opcode)
            return self._execute(command, timeout)
        finally:
            self._lock.release()

    def _execute(self, command: Command, timeout: Optional[float]) -> Response:
        opcode = command.opcode
        frame_data = FrameBuilder.build_command(command)

        self.state = SessionState.SENDING
        try:
            self._parser.clear()
            self.transport.flush()
            logger.debug(f"Sending {Opcode.name_of(opcode)}: {frame_data.hex(' ')}")
            self.transport.send(frame_data)
        except LinkError:
            self._teardown()
            raise
        self.last_opcode = opcode

        if not command.wants_response:
            self.state = SessionState.IDLE
            return response_type(opcode)(opcode=opcode, synthetic=True)

        self.state = SessionState.AWAITING_REPLY
        timeout = self.response_timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                data = self.transport.receive(timeout=min(self.poll_timeout, remaining))
            except LinkError:
                self._teardown()
                raise
            if not data:
                continue

            self._parser.feed(data)
            result, frame, _ = self._parser.parse()
            if result == ParseResult.OK:
                return self._accept(command, frame)
            if result == ParseResult.FORMAT_ERROR:
                self._violation("Impossible frame length header", opcode)

        self.state = SessionState.FAILED
        logger.warning(f"Timeout waiting for {Opcode.name_of(opcode)} reply ({timeout}s)")
        self.state = SessionState.IDLE
        raise TimeoutError(timeout, opcode=opcode)

    def _accept(self, command: Command, frame: Frame) -> Response:
        if frame.kind != CommandKind.REPLY:
            self._violation(f"Expected a reply, got type byte 0x{frame.payload[0]:02X}", command.opcode)
        if frame.opcode != command.opcode:
            received = "none" if frame.opcode is None else Opcode.name_of(frame.opcode)
            self._violation(f"Reply opcode mismatch (got {received})", command.opcode)

        try:
            response = decode(command.opcode, frame.payload)
        except MalformedResponseError:
            self.state = SessionState.FAILED
            self.state = SessionState.IDLE
            raise

        logger.debug(f"Received {Opcode.name_of(command.opcode)} reply: "
                     f"status={response.error_name}")
        self.state = SessionState.IDLE
        return response

    def _violation(self, message: str, opcode: int) -> None:
        logger.error(f"Protocol violation: {message}; closing {self.transport.port}")
        self._teardown()
        raise ProtocolViolationError(message, opcode=opcode)

    def _teardown(self) -> None:
        self._parser.clear()
        self.transport.close()
        self.state = SessionState.CLOSED

    def __enter__(self) -> 'Session':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Session({self.transport!r}, {self.state.value})"


def open_session(
    port: str,
    baudrate: int = 115200,
    timeout: float = 1.5,
    read_timeout: float = 0.1
) -> Session:
    """
    Open a serial port and return a session bound to it.

    Raises:
        ConnectionError: If the port cannot be opened
    """
    transport = SerialTransport(port, baudrate, timeout=timeout, read_timeout=read_timeout)
    transport.open()
    return Session(transport, response_timeout=timeout)


def close_session(session: Session) -> None:
    """Close a session and release its port."""
    session.close()


def execute(session: Session, command: Command, timeout: Optional[float] = None) -> Response:
    """Execute one command on a session. See :meth:`Session.execute`."""
    return session.execute(command, timeout)
