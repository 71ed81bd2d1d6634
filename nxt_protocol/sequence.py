"""
Command sequencer.

Replays an ordered batch of commands once, or periodically while polling
is enabled. A failing command either aborts the rest of the cycle or is
skipped, depending on ``continue_on_error``; later cycles run regardless.
"""

import time
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from .client import NxtClient
from .commands import Command
from .constants import Opcode
from .exceptions import TimeoutError
from .responses import Response
from .session import Session

logger = logging.getLogger(__name__)

EMA_WEIGHT = 0.2


@dataclass
class CommandSequence:
    """
    Ordered batch of commands.

    Attributes:
        commands: Commands executed in order each cycle
        poll_interval_ms: Period between cycle starts; negative disables polling
        continue_on_error: Skip failing commands instead of aborting the cycle
    """
    commands: List[Command] = field(default_factory=list)
    poll_interval_ms: int = -1
    continue_on_error: bool = False

    @property
    def polling_enabled(self) -> bool:
        return self.poll_interval_ms >= 0


class CommandSequencer:
    """Runs command sequences on a session."""

    def __init__(self, session: Session, retry_delay: float = 0.05):
        self.client = NxtClient(session, retry_delay=retry_delay)
        self.average_polling_frequency: Optional[float] = None
        self._last_cycle_start: Optional[float] = None

    def run_once(self, sequence: CommandSequence) -> List[Optional[Response]]:
        """
        Execute every command of the sequence once.

        Returns:
            One slot per command, in command order: the response, or None
            for a command that timed out or was not reached because the
            cycle was aborted.
        """
        responses: List[Optional[Response]] = [None] * len(sequence.commands)

        for index, command in enumerate(sequence.commands):
            name = Opcode.name_of(command.opcode)
            try:
                response = self.client.submit(command)
            except TimeoutError as e:
                failure = str(e)
            else:
                responses[index] = response
                if response.success:
                    continue
                failure = response.error_name

            if not sequence.continue_on_error:
                logger.warning(f"Step {index + 1} ({name}) failed: {failure}; "
                               f"aborting cycle")
                break
            logger.warning(f"Step {index + 1} ({name}) failed: {failure}; skipping")

        return responses

    def run(
        self,
        sequence: CommandSequence,
        cycles: Optional[int] = None,
        stop_event: Optional[threading.Event] = None
    ) -> List[List[Optional[Response]]]:
        """
        Execute the sequence repeatedly.

        Runs a single cycle when polling is disabled. Otherwise cycles start
        every ``poll_interval_ms`` until ``cycles`` have run or
        ``stop_event`` is set; with neither given it runs forever.

        Returns:
            One response list per completed cycle
        """
        if not sequence.polling_enabled:
            cycles = 1
        interval = max(sequence.poll_interval_ms, 0) / 1000.0
        results: List[List[Optional[Response]]] = []
        self._last_cycle_start = None

        while cycles is None or len(results) < cycles:
            if stop_event is not None and stop_event.is_set():
                break

            started = time.monotonic()
            self._track_cycle(started)
            results.append(self.run_once(sequence))

            if cycles is not None and len(results) >= cycles:
                break
            delay = interval - (time.monotonic() - started)
            if delay > 0:
                if stop_event is not None:
                    if stop_event.wait(delay):
                        break
                else:
                    time.sleep(delay)

        logger.info(f"Sequence finished after {len(results)} cycle(s)")
        return results

    def _track_cycle(self, started: float) -> None:
        if self._last_cycle_start is not None:
            elapsed_ms = (started - self._last_cycle_start) * 1000.0
            if self.average_polling_frequency is None:
                self.average_polling_frequency = elapsed_ms
            else:
                self.average_polling_frequency += EMA_WEIGHT * (
                    elapsed_ms - self.average_polling_frequency
                )
        self._last_cycle_start = started
