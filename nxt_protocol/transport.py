"""
Serial transport layer.

Owns the serial port. A background thread reads the port and hands the
received chunks to the caller thread through a queue.
"""

import serial
import threading
import logging
from typing import Optional
from queue import Queue, Empty

from .exceptions import ConnectionError, NotConnectedError, LinkError

logger = logging.getLogger(__name__)


class SerialTransport:
    """Serial communication transport layer."""

    def __init__(
        self,
        port: str,
        baudrate: int = 115200,
        timeout: float = 1.5,
        read_timeout: float = 0.1
    ):
        """
        Initialize serial transport.

        Args:
            port: Serial port name (e.g., '/dev/rfcomm0' or 'COM5')
            baudrate: Baud rate (default: 115200)
            timeout: Default receive timeout in seconds
            read_timeout: Internal read timeout for background thread
        """
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.read_timeout = read_timeout
        self._serial: Optional[serial.Serial] = None
        self._rx_queue: Queue = Queue()
        self._rx_thread: Optional[threading.Thread] = None
        self._rx_error: Optional[Exception] = None
        self._running = False

    def open(self) -> None:
        """Open serial port and start receive thread."""
        if self.is_open:
            raise ConnectionError(f"{self.port} is already open")

        try:
            self._serial = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.read_timeout
            )
            logger.info(f"Opened serial port {self.port} at {self.baudrate} bps")

            self._rx_error = None
            self._running = True
            self._rx_thread = threading.Thread(target=self._rx_loop, daemon=True)
            self._rx_thread.start()

        except serial.SerialException as e:
            raise ConnectionError(f"Failed to open {self.port}: {e}") from e

    def close(self) -> None:
        """Close serial port and stop receive thread."""
        self._running = False

        if self._rx_thread:
            self._rx_thread.join(timeout=1.0)
            self._rx_thread = None

        if self._serial:
            try:
                self._serial.close()
            except Exception:
                pass
            self._serial = None
            logger.info(f"Closed serial port {self.port}")

    def send(self, data: bytes) -> int:
        """
        Send data over serial port.

        Args:
            data: Bytes to send

        Returns:
            Number of bytes sent

        Raises:
            NotConnectedError: If port is not open
            LinkError: If the write fails
        """
        if not self.is_open:
            raise NotConnectedError("Serial port not open")

        try:
            count = self._serial.write(data)
            logger.debug(f"TX ({count} bytes): {data.hex(' ')}")
            return count
        except serial.SerialException as e:
            raise LinkError(f"Send failed: {e}") from e

    def receive(self, timeout: Optional[float] = None) -> bytes:
        """
        Receive data from queue.

        Args:
            timeout: Timeout in seconds (None uses default)

        Returns:
            Received bytes (empty if timeout)

        Raises:
            LinkError: If the receive thread stopped on a read failure
        """
        try:
            return self._rx_queue.get(timeout=self.timeout if timeout is None else timeout)
        except Empty:
            if self._rx_error is not None:
                raise LinkError(f"Receive failed: {self._rx_error}") from self._rx_error
            return b''

    def receive_all(self) -> bytes:
        """Receive all available data from queue."""
        data = bytearray()
        while True:
            try:
                data.extend(self._rx_queue.get_nowait())
            except Empty:
                break
        return bytes(data)

    def flush(self) -> int:
        """
        Discard unread input (receive queue and serial input buffer).

        Returns:
            Number of queued bytes discarded
        """
        discarded = len(self.receive_all())

        if self._serial and self._serial.is_open:
            try:
                self._serial.reset_input_buffer()
            except serial.SerialException as e:
                raise LinkError(f"Flush failed: {e}") from e

        if discarded:
            logger.warning(f"Discarded {discarded} stale bytes from {self.port}")
        return discarded

    def _rx_loop(self) -> None:
        """Background receive thread."""
        while self._running and self._serial and self._serial.is_open:
            try:
                data = self._serial.read(256)
                if data:
                    logger.debug(f"RX ({len(data)} bytes): {data.hex(' ')}")
                    self._rx_queue.put(data)
            except serial.SerialException as e:
                if self._running:
                    logger.error(f"RX error on {self.port}: {e}")
                    self._rx_error = e
                break
            except Exception as e:
                logger.error(f"RX error: {e}")
                self._rx_error = e
                break

    @property
    def out_waiting(self) -> int:
        """Bytes still queued in the serial output buffer."""
        if not self.is_open:
            return 0
        try:
            return self._serial.out_waiting
        except (serial.SerialException, OSError, NotImplementedError):
            return 0

    @property
    def is_open(self) -> bool:
        """Check if port is open."""
        return self._serial is not None and self._serial.is_open

    def __enter__(self) -> 'SerialTransport':
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        status = "open" if self.is_open else "closed"
        return f"SerialTransport({self.port}, {self.baudrate}, {status})"
