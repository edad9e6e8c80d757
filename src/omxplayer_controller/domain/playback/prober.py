"""Control readiness probing after the player process has been launched."""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from . import settings as defaults
from .exceptions import CommandError, ControlTimeoutError
from .remote import RemoteControl


@dataclass(frozen=True)
class ProbeResult:
    """Status reported by the first successful query, and how many tries it took."""

    result: Any
    attempts: int


async def wait_for_control(
    remote: RemoteControl,
    dbus_id: str,
    interval_ms: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> ProbeResult:
    """Poll the status query on a fixed period until the channel answers.

    Failures are expected while the player initializes and are ignored
    until the attempt count exceeds max_attempts.

    Args:
        remote: Remote control client
        dbus_id: Control channel identifier
        interval_ms: Period between attempts (default CONTROL_CHECK_INTERVAL_MS)
        max_attempts: Retry budget (default CONTROL_CHECK_MAX_ATTEMPTS)

    Returns:
        ProbeResult for the first successful query

    Raises:
        ControlTimeoutError: Once a query fails with attempts > max_attempts
    """
    if interval_ms is None:
        interval_ms = defaults.CONTROL_CHECK_INTERVAL_MS
    if max_attempts is None:
        max_attempts = defaults.CONTROL_CHECK_MAX_ATTEMPTS

    loop = asyncio.get_running_loop()
    period = interval_ms / 1000
    # Attempts start one period apart; one that overran is followed at once
    next_attempt = loop.time() + period
    attempts = 0
    while True:
        await asyncio.sleep(max(0.0, next_attempt - loop.time()))
        attempts += 1
        try:
            result = await remote.get_play_status(dbus_id)
        except CommandError as e:
            if attempts > max_attempts:
                logger.warning(f"Control channel {dbus_id} not ready after {attempts} attempts")
                raise ControlTimeoutError(attempts, e) from e
            logger.debug(f"Control channel {dbus_id} not ready (attempt {attempts}): {e}")
            next_attempt = max(next_attempt + period, loop.time())
            continue

        logger.info(f"Control channel {dbus_id} ready after {attempts} attempts: {result}")
        return ProbeResult(result=result, attempts=attempts)
