"""Position triggers: callbacks bound to a playback position threshold."""

from dataclasses import dataclass
from typing import Callable

from .settings import MICROS_PER_MS

TriggerHandler = Callable[[float], None]


@dataclass
class PositionTrigger:
    """A re-armable callback fired once per upward crossing of position_ms.

    `fired` latches when the handler runs and is cleared only when a
    sample falls back below the target (seek back or loop restart).
    """

    position_ms: float
    handler: TriggerHandler
    fired: bool = False

    def evaluate(self, sampled_ms: float) -> bool:
        """Check one sampled position (milliseconds) against the target.

        Returns:
            True if the handler was invoked for this sample
        """
        if sampled_ms >= self.position_ms and not self.fired:
            self.fired = True
            self.handler(sampled_ms)
            return True
        if sampled_ms < self.position_ms and self.fired:
            self.fired = False
        return False


def micros_to_ms(value: float) -> float:
    """Convert a control-channel position (microseconds) to milliseconds."""
    return value / MICROS_PER_MS
