# pipeline/alert_sinks.py

import math
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from obstacle_alert.fusion.fusion_engine import FusionResult

logger = logging.getLogger(__name__)

NO_DEPTH_MESSAGE = "Depth data unavailable"


@dataclass(frozen=True)
class AlertEvent:
    """One alert decision handed to the alert sinks."""

    frame_id: int
    timestamp: float
    result: Optional[FusionResult]
    message: str

    @property
    def danger(self) -> bool:
        return self.result is not None and self.result.danger


def format_alert_message(result: Optional[FusionResult]) -> str:
    """
    Turn a fusion result into the text shown or spoken to the user.

    Args:
        result: Fusion result, or None when the frame had no depth data

    Returns:
        Human-readable message
    """
    if result is None:
        return NO_DEPTH_MESSAGE
    if not result.obstacle_found:
        return "No obstacle detected"
    if result.danger:
        return f"Warning: {result.label} {result.distance_meters:.1f} m ahead!"
    return f"Path clear ({result.distance_meters:.1f} m)"


class AlertSink(ABC):
    """
    Abstract base class for consumers of alert events.

    Sinks are responsible for their own debouncing and display.
    """

    @abstractmethod
    def handle(self, event: AlertEvent) -> None:
        """Consume one alert event."""
        pass

    def close(self) -> None:
        """Release resources."""
        pass


class LoggingAlertSink(AlertSink):
    """
    Logs alert events, suppressing repeats of the same warning.

    A danger event for a label is logged at most once per ``cooldown``
    seconds. Transitions back to a clear path are always logged.
    """

    def __init__(self, cooldown: float = 2.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the sink.

        Args:
            cooldown: Seconds between two warnings for the same label
            clock: Time source, replaceable in tests
        """
        self.cooldown = cooldown
        self.clock = clock
        self.last_warning: Dict[str, float] = {}
        self.was_danger = False
        self.suppressed = 0

    def _should_warn(self, label: str) -> bool:
        now = self.clock()
        last = self.last_warning.get(label, -math.inf)
        if now - last >= self.cooldown:
            self.last_warning[label] = now
            return True
        return False

    def handle(self, event: AlertEvent) -> None:
        if event.danger:
            if self._should_warn(event.result.label):
                logger.warning(f"[frame {event.frame_id}] {event.message}")
            else:
                self.suppressed += 1
            self.was_danger = True
            return

        if self.was_danger:
            logger.info(f"[frame {event.frame_id}] {event.message}")
            self.last_warning.clear()
        else:
            logger.debug(f"[frame {event.frame_id}] {event.message}")
        self.was_danger = False


class CallbackAlertSink(AlertSink):
    """Forwards every event to a callable."""

    def __init__(self, callback: Callable[[AlertEvent], None]):
        self.callback = callback

    def handle(self, event: AlertEvent) -> None:
        self.callback(event)
