"""
High-level protocol client.

Provides a simple API for talking to the brick on top of a session:
resubmission on transient failures and typed convenience calls.
"""

import time
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .commands import (
    Command, GetFirmwareVersion, GetDeviceInfo, GetBatteryLevel, KeepAlive,
    GetCurrentProgramName, SetBrickName, PlayTone, GetInputValues, SetInputMode,
    GetOutputState, SetOutputState, MessageWrite, MessageRead, StartProgram,
    StopProgram,
)
from .constants import (
    ErrorCode, Opcode, InputPort, OutputPort, SensorType, SensorMode,
    OutputMode, RegulationMode, RunState, UltrasonicRegister,
)
from .exceptions import TimeoutError
from .lowspeed import LowSpeedController, SensorInfo
from .responses import Response, GetInputValuesResponse, GetOutputStateResponse
from .session import Session

logger = logging.getLogger(__name__)

MAX_BRICK_NAME = 15


@dataclass
class FirmwareVersion:
    """Protocol and firmware versions reported by the brick."""
    protocol_major: int
    protocol_minor: int
    firmware_major: int
    firmware_minor: int

    @property
    def protocol(self) -> str:
        return f"{self.protocol_major}.{self.protocol_minor}"

    @property
    def firmware(self) -> str:
        return f"{self.firmware_major}.{self.firmware_minor:02d}"

    def __str__(self) -> str:
        return f"firmware {self.firmware}, protocol {self.protocol}"


@dataclass
class DeviceInfo:
    """Brick identity and radio status."""
    name: str
    bluetooth_address: str
    signal_strength: int
    free_flash: int


def _is_retryable(status: Union[ErrorCode, int]) -> bool:
    return isinstance(status, ErrorCode) and status.is_retryable


class NxtClient:
    """High-level client for the brick protocol."""

    def __init__(
        self,
        session: Session,
        retry_delay: float = 0.05,
        max_polls: int = 10,
        poll_interval: float = 0.01
    ):
        """
        Initialize client.

        Args:
            session: Open session
            retry_delay: Pause between resubmissions in seconds
            max_polls: Low-speed status polls per transaction
            poll_interval: Pause between low-speed polls in seconds
        """
        self.session = session
        self.retry_delay = retry_delay
        self.lowspeed = LowSpeedController(session, max_polls=max_polls,
                                           poll_interval=poll_interval)

    def submit(self, command: Command, timeout: Optional[float] = None) -> Response:
        """
        Execute a command, resubmitting up to ``command.try_count`` times.

        A resubmission happens on TimeoutError or on a retryable status.
        The last response is returned whatever its status.

        Raises:
            TimeoutError: If every attempt timed out
        """
        attempts = command.try_count
        name = Opcode.name_of(command.opcode)

        for attempt in range(1, attempts + 1):
            try:
                response = self.session.execute(command, timeout)
            except TimeoutError:
                if attempt >= attempts:
                    raise
                logger.warning(f"Timeout on {name} attempt {attempt}/{attempts}")
            else:
                if response.success or attempt >= attempts or not _is_retryable(response.status):
                    return response
                logger.warning(f"{name} returned {response.error_name} "
                               f"on attempt {attempt}/{attempts}")
            time.sleep(self.retry_delay)

    def request(self, command: Command, timeout: Optional[float] = None) -> Response:
        """
        Execute a command and require a SUCCESS status.

        Raises:
            DeviceError: If the final status is not SUCCESS
            TimeoutError: If every attempt timed out
        """
        return self.submit(command, timeout).raise_for_status()

    # -------------------------------------------------------------------------
    # Brick information
    # -------------------------------------------------------------------------

    def get_version(self) -> FirmwareVersion:
        """Query firmware and protocol versions."""
        r = self.request(GetFirmwareVersion())
        version = FirmwareVersion(r.protocol_major, r.protocol_minor,
                                  r.firmware_major, r.firmware_minor)
        logger.info(f"Brick version: {version}")
        return version

    def get_device_info(self) -> DeviceInfo:
        """Query brick name, Bluetooth address, signal strength and free flash."""
        r = self.request(GetDeviceInfo())
        info = DeviceInfo(r.brick_name, r.bluetooth_address_str,
                          r.signal_strength, r.free_flash)
        logger.info(f"Device info: {info.name} ({info.bluetooth_address}), "
                    f"{info.free_flash} bytes free")
        return info

    def get_battery_level(self) -> int:
        """
        Read the battery level.

        Returns:
            Battery voltage in millivolts
        """
        r = self.request(GetBatteryLevel())
        logger.info(f"Battery level: {r.voltage:.3f} V")
        return r.millivolts

    def keep_alive(self) -> int:
        """
        Reset the brick sleep timer.

        Returns:
            Current sleep time limit in milliseconds
        """
        return self.request(KeepAlive(wants_response=True)).sleep_time_limit

    def get_current_program_name(self) -> Optional[str]:
        """Name of the running program, or None when no program runs."""
        r = self.submit(GetCurrentProgramName())
        if r.status == ErrorCode.NO_ACTIVE_PROGRAM:
            return None
        return r.raise_for_status().filename

    def set_brick_name(self, name: str) -> None:
        """
        Rename the brick.

        Raises:
            ValueError: If the name is empty or longer than 15 characters
        """
        if not 0 < len(name) <= MAX_BRICK_NAME:
            raise ValueError(f"Brick name must be 1..{MAX_BRICK_NAME} characters")
        self.request(SetBrickName(name=name))
        logger.info(f"Brick renamed to {name!r}")

    # -------------------------------------------------------------------------
    # Programs and sound
    # -------------------------------------------------------------------------

    def start_program(self, filename: str) -> None:
        self.request(StartProgram(filename=filename, wants_response=True))

    def stop_program(self) -> bool:
        """Stop the running program. Returns False when none was running."""
        r = self.submit(StopProgram(wants_response=True))
        if r.status == ErrorCode.NO_ACTIVE_PROGRAM:
            return False
        r.raise_for_status()
        return True

    def play_tone(self, frequency: int, duration: int, wants_response: bool = False) -> None:
        """Play a tone (Hz, ms)."""
        self.request(PlayTone(frequency=frequency, duration=duration,
                              wants_response=wants_response))

    # -------------------------------------------------------------------------
    # Sensors and motors
    # -------------------------------------------------------------------------

    def get_input_values(self, port: InputPort) -> GetInputValuesResponse:
        return self.request(GetInputValues(port=port))

    def set_input_mode(
        self,
        port: InputPort,
        sensor_type: SensorType,
        sensor_mode: SensorMode = SensorMode.RAW,
        wants_response: bool = True
    ) -> None:
        self.request(SetInputMode(port=port, sensor_type=sensor_type,
                                  sensor_mode=sensor_mode, wants_response=wants_response))

    def get_output_state(self, port: OutputPort) -> GetOutputStateResponse:
        return self.request(GetOutputState(port=port))

    def set_output_state(
        self,
        port: OutputPort,
        power: int,
        mode: OutputMode = OutputMode.MOTOR_ON | OutputMode.REGULATED,
        regulation: RegulationMode = RegulationMode.MOTOR_SPEED,
        turn_ratio: int = 0,
        run_state: RunState = RunState.RUNNING,
        tacho_limit: int = 0,
        wants_response: bool = True
    ) -> None:
        """
        Drive a motor.

        Args:
            port: Motor port (or OutputPort.ALL)
            power: -100..100
            mode: Output mode flags
            regulation: Regulation mode
            turn_ratio: -100..100, used with MOTOR_SYNC
            run_state: Run state
            tacho_limit: Degrees to run, 0 = forever
            wants_response: Ask the brick to confirm
        """
        self.request(SetOutputState(
            port=port, power=power, mode=mode, regulation=regulation,
            turn_ratio=turn_ratio, run_state=run_state, tacho_limit=tacho_limit,
            wants_response=wants_response,
        ))

    # -------------------------------------------------------------------------
    # Mailboxes
    # -------------------------------------------------------------------------

    def message_write(self, inbox: int, message: Union[str, bytes]) -> None:
        """Write a message (at most 58 bytes) to a mailbox on the brick."""
        if isinstance(message, str):
            message = message.encode("ascii")
        self.request(MessageWrite(inbox=inbox, message=message, wants_response=True))

    def message_read(
        self,
        remote_inbox: int,
        local_inbox: int = 0,
        remove: bool = True
    ) -> Optional[bytes]:
        """Read a message from a mailbox; None when the mailbox is empty."""
        r = self.submit(MessageRead(remote_inbox=remote_inbox, local_inbox=local_inbox,
                                    remove=remove))
        if r.status == ErrorCode.MAILBOX_QUEUE_EMPTY:
            return None
        return r.raise_for_status().message

    # -------------------------------------------------------------------------
    # Low-speed devices
    # -------------------------------------------------------------------------

    def read_sensor_info(self, port: InputPort) -> SensorInfo:
        return self.lowspeed.read_sensor_info(port)

    def read_ultrasonic(
        self,
        port: InputPort,
        register: UltrasonicRegister = UltrasonicRegister.MEASUREMENT_1
    ) -> int:
        """Read the ultrasonic sensor (distance in cm by default)."""
        return self.lowspeed.read_ultrasonic(port, register)

    def __repr__(self) -> str:
        return f"NxtClient({self.session!r})"
