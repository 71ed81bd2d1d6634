"""
Low-speed (I2C) bus controller.

A low-speed transaction is three round trips on the session:

1. LS_WRITE with ``[address] + data`` and the expected answer length
2. LS_GET_STATUS until the device reports enough bytes ready
3. LS_READ to fetch them

Only one transaction per port can be outstanding on the brick.
"""

import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .commands import LSWrite, LSGetStatus, LSRead
from .constants import (
    ErrorCode, InputPort, Opcode, UltrasonicRegister,
    DEFAULT_I2C_ADDRESS, LS_MAX_DATA, SENSOR_INFO_REGISTER, SENSOR_INFO_LENGTH,
)
from .exceptions import DeviceError, DeviceNotRespondingError, EncodeError
from .fields import unpack_string
from .session import Session

logger = logging.getLogger(__name__)


def _byte(name: str, value: int) -> bytes:
    if not 0 <= value <= 0xFF:
        raise EncodeError(name, value, "does not fit in one byte", opcode=Opcode.LS_WRITE)
    return bytes([value])


class LowSpeedState(Enum):
    """Controller transaction states."""
    IDLE = "idle"
    WRITTEN = "written"
    POLLING = "polling"
    READY = "ready"
    READ = "read"


@dataclass
class SensorInfo:
    """Identification strings of a digital sensor."""
    manufacturer: str
    sensor_type: str


class LowSpeedController:
    """Runs write/poll/read transactions against a low-speed device."""

    def __init__(
        self,
        session: Session,
        max_polls: int = 10,
        poll_interval: float = 0.01,
        deadline: Optional[float] = None
    ):
        """
        Args:
            session: Open session
            max_polls: Maximum LS_GET_STATUS polls per transaction
            poll_interval: Sleep between polls in seconds
            deadline: Optional overall polling limit in seconds
        """
        self.session = session
        self.max_polls = max_polls
        self.poll_interval = poll_interval
        self.deadline = deadline
        self.state = LowSpeedState.IDLE

    def transact(
        self,
        port: InputPort,
        data: bytes,
        rx_length: int,
        address: int = DEFAULT_I2C_ADDRESS
    ) -> bytes:
        """
        Write to a device and read its answer.

        Args:
            port: Sensor port the device is plugged into
            data: Bytes to send after the address byte (at most 15)
            rx_length: Number of bytes to read back (0-16)
            address: Device bus address

        Returns:
            The bytes read (empty when rx_length is 0)

        Raises:
            EncodeError: If address, data or rx_length do not fit the bus limits
            DeviceError: If the brick reports a failure status
            DeviceNotRespondingError: If the device is not ready in time
        """
        try:
            self._write(port, _byte("address", address) + bytes(data), rx_length)
            if rx_length == 0:
                return b""
            self._poll(port, rx_length)
            return self._read(port)
        finally:
            self.state = LowSpeedState.IDLE

    def _write(self, port: InputPort, tx_data: bytes, rx_length: int) -> None:
        response = self.session.execute(
            LSWrite(port=port, tx_data=tx_data, rx_length=rx_length, wants_response=True)
        )
        response.raise_for_status()
        self.state = LowSpeedState.WRITTEN
        logger.debug(f"LS write on port {int(port) + 1}: {tx_data.hex(' ')} (rx {rx_length})")

    def _poll(self, port: InputPort, rx_length: int) -> None:
        self.state = LowSpeedState.POLLING
        limit = None if self.deadline is None else time.monotonic() + self.deadline
        polls = 0

        while polls < self.max_polls:
            if limit is not None and time.monotonic() > limit:
                break
            polls += 1
            response = self.session.execute(LSGetStatus(port=port))

            if response.status == ErrorCode.PENDING_COMMUNICATION:
                logger.debug(f"LS port {int(port) + 1} pending (poll {polls})")
            elif not response.success:
                raise DeviceError(response.status, opcode=Opcode.LS_GET_STATUS)
            elif response.bytes_ready >= rx_length:
                self.state = LowSpeedState.READY
                return

            if polls < self.max_polls:
                time.sleep(self.poll_interval)

        logger.warning(f"LS device on port {int(port) + 1} not ready after {polls} polls")
        raise DeviceNotRespondingError(int(port), polls, opcode=Opcode.LS_GET_STATUS)

    def _read(self, port: InputPort) -> bytes:
        response = self.session.execute(LSRead(port=port))
        response.raise_for_status()
        self.state = LowSpeedState.READ
        return response.rx_data[:max(response.bytes_read, 0)]

    def read_register(
        self,
        port: InputPort,
        register: int,
        length: int = 1,
        address: int = DEFAULT_I2C_ADDRESS
    ) -> bytes:
        """Read ``length`` bytes starting at a device register."""
        return self.transact(port, _byte("register", register), length, address)

    def write_register(
        self,
        port: InputPort,
        register: int,
        value: bytes,
        address: int = DEFAULT_I2C_ADDRESS
    ) -> None:
        """Write bytes starting at a device register."""
        if len(value) > LS_MAX_DATA - 2:
            raise EncodeError("value", bytes(value),
                              f"register write limited to {LS_MAX_DATA - 2} bytes",
                              opcode=Opcode.LS_WRITE)
        self.transact(port, _byte("register", register) + bytes(value), 0, address)

    def read_sensor_info(self, port: InputPort, address: int = DEFAULT_I2C_ADDRESS) -> SensorInfo:
        """Read the manufacturer and sensor type strings of a digital sensor."""
        data = self.read_register(port, SENSOR_INFO_REGISTER, SENSOR_INFO_LENGTH, address)
        info = SensorInfo(unpack_string(data[:8]), unpack_string(data[8:16]))
        logger.info(f"Sensor on port {int(port) + 1}: {info.manufacturer} {info.sensor_type}")
        return info

    def read_ultrasonic(
        self,
        port: InputPort,
        register: UltrasonicRegister = UltrasonicRegister.MEASUREMENT_1
    ) -> int:
        """
        Read one byte register of the ultrasonic sensor.

        Returns:
            Register value (distance in cm for the measurement registers)
        """
        data = self.read_register(port, register, 1)
        if not data:
            raise DeviceError(ErrorCode.COMMUNICATION_BUS_ERROR, opcode=Opcode.LS_READ)
        return data[0]
