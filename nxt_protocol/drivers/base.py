"""
Base Driver Module

Async driver owning one serial session. Subclasses build their protocol
objects on the session and say how to check the device answers; the base
class opens, verifies, tears down and runs blocking calls off the event loop.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..exceptions import NotConnectedError
from ..session import Session
from ..transport import SerialTransport

logger = logging.getLogger(__name__)


class BaseDriver(ABC):
    """
    Abstract serial-session driver.

    Attributes:
        name: Driver identifier name
        config: Configuration dictionary
        port: Serial port path
        baudrate: Communication speed
        timeout: Reply timeout in seconds
        read_timeout: Receive thread read timeout in seconds
    """

    def __init__(
        self,
        name: str = "BaseDriver",
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize driver.

        Args:
            name: Driver identifier name
            config: Configuration with keys:
                - port: Serial port (default: "/dev/rfcomm0")
                - baudrate: Baud rate (default: 115200)
                - timeout: Reply timeout (default: 1.5)
                - read_timeout: Receive thread read timeout (default: 0.1)
        """
        self.name = name
        self.config = config or {}

        self.port: str = self.config.get("port", "/dev/rfcomm0")
        self.baudrate: int = self.config.get("baudrate", 115200)
        self.timeout: float = self.config.get("timeout", 1.5)
        self.read_timeout: float = self.config.get("read_timeout", 0.1)

        self._session: Optional[Session] = None
        self._verified = False

    # === Hooks ===

    @abstractmethod
    def _attach(self, session: Session) -> None:
        """Build protocol objects on a freshly opened session."""
        ...

    @abstractmethod
    def _verify(self) -> None:
        """Blocking round trip proving the device answers. Runs in the executor."""
        ...

    def _detach(self) -> None:
        """Drop what ``_attach`` built."""

    @abstractmethod
    async def identify(self) -> str:
        ...

    # === Lifecycle ===

    def _make_transport(self) -> SerialTransport:
        return SerialTransport(
            port=self.port,
            baudrate=self.baudrate,
            timeout=self.timeout,
            read_timeout=self.read_timeout
        )

    async def connect(self) -> bool:
        """
        Open the session, attach and verify the device.

        Returns:
            bool: True if the device answered
        """
        try:
            logger.info(f"{self.name}: connecting on {self.port} at {self.baudrate} bps")

            transport = self._make_transport()
            transport.open()
            self._session = Session(transport, response_timeout=self.timeout)
            self._attach(self._session)
            await self._run_sync(self._verify)

            self._verified = True
            logger.info(f"{self.name}: connected")
            return True

        except Exception as e:
            logger.error(f"{self.name}: failed to connect: {e}")
            await self.disconnect()
            return False

    async def disconnect(self) -> None:
        """Close the session and release the port."""
        if self._session:
            try:
                self._session.close()
            except Exception:
                pass
            self._session = None

        self._detach()
        self._verified = False
        logger.info(f"{self.name}: disconnected")

    async def reset(self) -> None:
        """Re-verify the link on the open session."""
        self._require_session()
        await self._run_sync(self._verify)
        logger.info(f"{self.name}: link verified")

    async def is_connected(self) -> bool:
        """True while verified and the session has not been torn down."""
        return self._verified and self._session is not None and self._session.is_open

    # === Helpers ===

    def _require_session(self) -> Session:
        if self._session is None or not self._session.is_open:
            raise NotConnectedError(f"{self.name} is not connected")
        return self._session

    async def _run_sync(self, func, *args, **kwargs) -> Any:
        """Run a blocking call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: func(*args, **kwargs))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r}, {self.port}, verified={self._verified})"
