"""
Progress sampler: periodic position/duration polling.

Each tick queries position, then duration (never concurrently), runs the
position triggers and reports a ProgressSample. A tick that comes due
while the previous sample is still in flight is skipped.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from .exceptions import CommandError
from .remote import RemoteControl
from .triggers import PositionTrigger, micros_to_ms


@dataclass(frozen=True)
class ProgressSample:
    """Raw channel position and duration (microseconds) and their ratio."""

    position: float
    duration: float
    progress: float

    @classmethod
    def from_raw(cls, position: float, duration: float) -> "ProgressSample":
        # Duration reads 0 until the player has parsed the stream
        progress = position / duration if duration > 0 else 0.0
        return cls(position=position, duration=duration, progress=progress)


class ProgressSampler:
    """Samples playback progress on a fixed interval until stopped."""

    def __init__(
        self,
        remote: RemoteControl,
        dbus_id: str,
        interval_ms: int,
        triggers: list[PositionTrigger],
        on_progress: Callable[[ProgressSample], None],
        on_error: Callable[[Exception], None],
    ):
        self.remote = remote
        self.dbus_id = dbus_id
        self.interval_ms = interval_ms
        self.triggers = triggers
        self.on_progress = on_progress
        self.on_error = on_error
        self.disabled = False
        self._timer: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        """Schedule periodic ticks on the running event loop."""
        if self._timer is not None:
            return
        self.disabled = False
        self._timer = asyncio.create_task(self._run())
        logger.debug(f"Progress sampling every {self.interval_ms}ms")

    def stop(self) -> None:
        """Disable sampling. An in-flight sample finishes but reports nothing."""
        self.disabled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def cancel(self) -> None:
        """Stop sampling and cancel any in-flight sample."""
        self.stop()
        if self.in_flight:
            self._current.cancel()

    async def _run(self) -> None:
        while not self.disabled:
            await asyncio.sleep(self.interval_ms / 1000)
            if self.in_flight:
                logger.debug("Previous sample still in flight, skipping tick")
                continue
            self._current = asyncio.create_task(self.tick())
            self._current.add_done_callback(self._tick_done)

    def _tick_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.opt(exception=exc).error(f"Progress sample failed: {exc}")
        if not self.disabled:
            self.on_error(exc)

    async def tick(self) -> Optional[ProgressSample]:
        """Take one sample, run the triggers and report progress.

        Returns:
            The sample, or None if sampling is disabled or the query failed
        """
        if self.disabled:
            return None

        try:
            position = await self.remote.get_float(self.dbus_id, "Position")
            duration = await self.remote.get_float(self.dbus_id, "Duration")
        except CommandError as e:
            if self.disabled:
                logger.debug(f"Ignoring sample error after stop: {e}")
            else:
                self.on_error(e)
            return None

        if self.disabled:
            logger.debug("Discarding sample that completed after stop")
            return None

        position_ms = micros_to_ms(position)
        for trigger in list(self.triggers):
            try:
                if trigger.evaluate(position_ms):
                    logger.debug(f"Trigger at {trigger.position_ms}ms fired at {position_ms}ms")
            except Exception as e:
                logger.exception(f"Position trigger at {trigger.position_ms}ms failed")
                self.on_error(e)

        sample = ProgressSample.from_raw(position, duration)
        self.on_progress(sample)
        return sample
