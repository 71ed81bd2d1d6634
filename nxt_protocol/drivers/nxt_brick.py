"""
NXT Brick Driver Module

Async driver wrapping the blocking client. The base class owns the serial
session; this driver attaches an NxtClient to it and verifies the link
with GET_FIRMWARE_VERSION.
"""

import logging
from typing import Any, Dict, List, Optional

from .base import BaseDriver
from ..client import NxtClient, FirmwareVersion
from ..constants import InputPort, UltrasonicRegister
from ..exceptions import NotConnectedError
from ..responses import Response
from ..sequence import CommandSequence, CommandSequencer
from ..session import Session

logger = logging.getLogger(__name__)


class NxtBrickDriver(BaseDriver):
    """
    Driver for one brick reached over a serial port.

    Attributes:
        max_polls: Low-speed status polls per transaction
        poll_interval: Pause between low-speed polls in seconds
    """

    def __init__(
        self,
        name: str = "NxtBrickDriver",
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize brick driver.

        Args:
            name: Driver name
            config: Base driver keys plus:
                - max_polls: Low-speed status polls (default: 10)
                - poll_interval: Low-speed poll pause (default: 0.01)
        """
        super().__init__(name=name, config=config)

        self.max_polls: int = self.config.get("max_polls", 10)
        self.poll_interval: float = self.config.get("poll_interval", 0.01)

        self._client: Optional[NxtClient] = None
        self._version: Optional[FirmwareVersion] = None

    def _attach(self, session: Session) -> None:
        self._client = NxtClient(
            session,
            max_polls=self.max_polls,
            poll_interval=self.poll_interval
        )

    def _verify(self) -> None:
        self._version = self._require_client().get_version()
        logger.info(f"Brick on {self.port}: {self._version}")

    def _detach(self) -> None:
        self._client = None

    async def identify(self) -> str:
        if self._version:
            return f"LEGO,NXT,FW-{self._version.firmware},PROTO-{self._version.protocol}"
        return "LEGO,NXT,Unknown"

    # === Brick Methods ===

    async def get_battery_level(self) -> int:
        """Battery voltage in millivolts."""
        client = self._require_client()
        return await self._run_sync(client.get_battery_level)

    async def get_device_info(self) -> Dict[str, Any]:
        """
        Get brick name, Bluetooth address, signal strength and free flash.

        Returns:
            Dict with device information
        """
        client = self._require_client()
        info = await self._run_sync(client.get_device_info)
        return {
            "name": info.name,
            "bluetooth_address": info.bluetooth_address,
            "signal_strength": info.signal_strength,
            "free_flash": info.free_flash,
        }

    async def read_ultrasonic(
        self,
        port: InputPort,
        register: UltrasonicRegister = UltrasonicRegister.MEASUREMENT_1
    ) -> int:
        """Read the ultrasonic sensor on a port (distance in cm by default)."""
        client = self._require_client()
        return await self._run_sync(client.read_ultrasonic, port, register)

    async def run_sequence(
        self,
        sequence: CommandSequence,
        cycles: Optional[int] = None
    ) -> List[List[Optional[Response]]]:
        """
        Run a command sequence on the brick.

        Args:
            sequence: Commands to replay
            cycles: Number of cycles when polling is enabled (None = 1)

        Returns:
            One response list per cycle, one slot per command
        """
        sequencer = CommandSequencer(self._require_session())
        if cycles is None:
            cycles = 1
        return await self._run_sync(sequencer.run, sequence, cycles=cycles)

    def _require_client(self) -> NxtClient:
        if not self._client:
            raise NotConnectedError("Not connected to brick")
        return self._client
