"""
omxplayer process launcher.

The player reads its stdin from a named FIFO. Opening the FIFO for
writing and delivering a sentinel byte is the liveness signal: if no
reader shows up within the launch timeout, the launch failed.
"""

import asyncio
import errno
import os
import shlex
import signal
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .exceptions import LaunchError, ProcessClosedError
from .settings import PlaybackSettings

PLAYER_BINARY = "omxplayer"

# Byte delivered into the conduit to unblock the player's stdin read
SENTINEL = b"."

# How long to wait for the player to open its end of the conduit
LAUNCH_TIMEOUT = 5.0

CONDUIT_POLL_INTERVAL = 0.05

# Grace period between SIGTERM and SIGKILL when tearing a player down
TERMINATE_TIMEOUT = 2.0


@dataclass(frozen=True)
class LaunchResult:
    """Outcome of a launch request."""

    command: str
    test_mode_only: bool


@dataclass(frozen=True)
class ProcessExit:
    """Exit details of a terminated player process."""

    returncode: Optional[int]
    stdout: str
    stderr: str
    error: Optional[ProcessClosedError] = None


def settings_to_args(file_path: str, settings: PlaybackSettings) -> list[str]:
    """Build omxplayer arguments from settings. Order is for readability only."""
    args = [shlex.quote(file_path), "-o", settings.audio_output.value]
    if not settings.no_background_color:
        args.append(f"-b{settings.background_color}")
    args += ["--dbus_name", settings.dbus_id]
    if settings.loop:
        args.append("--loop")
    args += ["--layer", str(settings.layer)]
    return args


def get_conduit_path(layer: int, conduit_dir: Optional[Path] = None) -> Path:
    """Get the FIFO path used for a display layer."""
    base = conduit_dir or Path(tempfile.gettempdir())
    return base / f"omxpipe{layer}"


def build_command(
    file_path: str,
    settings: PlaybackSettings,
    conduit_dir: Optional[Path] = None,
    binary: str = PLAYER_BINARY,
) -> str:
    """Build the full shell command, including the stdin redirect."""
    conduit = get_conduit_path(settings.layer, conduit_dir)
    args = " ".join(settings_to_args(file_path, settings))
    return f"{binary} {args} < {shlex.quote(str(conduit))}"


def ensure_conduit(path: Path) -> None:
    """Create the FIFO. An existing FIFO is reused."""
    try:
        os.mkfifo(path)
        logger.debug(f"Created conduit: {path}")
    except FileExistsError:
        logger.debug(f"Reusing existing conduit: {path}")


async def deliver_sentinel(path: Path, timeout: float = LAUNCH_TIMEOUT) -> None:
    """Write the sentinel into the FIFO once a reader has opened it.

    Non-blocking open fails with ENXIO until the player opens its end, so
    poll until the deadline instead of blocking the event loop.

    Raises:
        OSError: If the FIFO cannot be written
        TimeoutError: If no reader appeared before the deadline
    """
    deadline = time.monotonic() + timeout
    while True:
        try:
            fd = os.open(path, os.O_WRONLY | os.O_NONBLOCK)
        except OSError as e:
            if e.errno != errno.ENXIO:
                raise
            if time.monotonic() >= deadline:
                raise TimeoutError(f"No reader opened {path} within {timeout}s") from e
            await asyncio.sleep(CONDUIT_POLL_INTERVAL)
            continue
        try:
            os.write(fd, SENTINEL)
        finally:
            os.close(fd)
        return


class ProcessLauncher:
    """Starts omxplayer and reports its exit through a callback."""

    def __init__(
        self,
        conduit_dir: Optional[Path] = None,
        binary: str = PLAYER_BINARY,
        launch_timeout: float = LAUNCH_TIMEOUT,
    ):
        self.conduit_dir = conduit_dir
        self.binary = binary
        self.launch_timeout = launch_timeout
        self.process: Optional[asyncio.subprocess.Process] = None
        self.watcher: Optional[asyncio.Task] = None

    def build_command(self, file_path: str, settings: PlaybackSettings) -> str:
        return build_command(file_path, settings, self.conduit_dir, self.binary)

    async def launch(
        self,
        file_path: str,
        settings: PlaybackSettings,
        on_exit: Callable[[ProcessExit], None],
    ) -> LaunchResult:
        """Start the player for an absolute file path.

        Args:
            file_path: Absolute path of the media file
            settings: Effective playback settings
            on_exit: Called with ProcessExit when the process terminates

        Returns:
            LaunchResult with the command that was (or would be) run

        Raises:
            LaunchError: If the conduit cannot be created or written, or
                the shell cannot be started
        """
        command = self.build_command(file_path, settings)

        if settings.test_mode_only:
            logger.debug(f"Test mode, not launching: {command}")
            return LaunchResult(command=command, test_mode_only=True)

        conduit = get_conduit_path(settings.layer, self.conduit_dir)
        logger.info(f"Launching player: {command}")

        try:
            ensure_conduit(conduit)
            self.process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Own process group, so the shell and omxplayer are signalled together
                start_new_session=True,
            )
        except OSError as e:
            logger.error(f"Failed to start player: {e}")
            raise LaunchError(command, f"Failed to start player: {e}") from e

        self.watcher = asyncio.create_task(self._watch(self.process, on_exit))

        try:
            await deliver_sentinel(conduit, self.launch_timeout)
        except (OSError, TimeoutError) as e:
            logger.error(f"Failed to write to conduit {conduit}: {e}")
            await self.terminate()
            raise LaunchError(command, f"Failed to write to conduit: {e}") from e

        return LaunchResult(command=command, test_mode_only=False)

    async def _watch(
        self,
        process: asyncio.subprocess.Process,
        on_exit: Callable[[ProcessExit], None],
    ) -> None:
        """Wait for the process to terminate and report how it exited."""
        stdout, stderr = await process.communicate()
        out = stdout.decode("utf-8", errors="replace") if stdout else ""
        err = stderr.decode("utf-8", errors="replace") if stderr else ""

        error = None
        if process.returncode != 0:
            error = ProcessClosedError(process.returncode, err)
            logger.warning(f"Player exited with status {process.returncode}")
        else:
            logger.info("Player exited")

        on_exit(ProcessExit(returncode=process.returncode, stdout=out, stderr=err, error=error))

    def cancel(self) -> None:
        """Stop watching the process. Does not signal it."""
        if self.watcher is not None and not self.watcher.done():
            self.watcher.cancel()

    async def terminate(self, timeout: float = TERMINATE_TIMEOUT) -> None:
        """Stop watching the process and end it if it is still running.

        The exit callback is not invoked for a process ended this way.
        """
        self.cancel()
        process = self.process
        if process is None or process.returncode is not None:
            return

        logger.info(f"Terminating player process group {process.pid}")
        if not self._signal(process, signal.SIGTERM):
            return
        try:
            await asyncio.wait_for(process.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Player did not exit within {timeout}s, killing it")
            if self._signal(process, signal.SIGKILL):
                await process.wait()

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, sig: int) -> bool:
        try:
            os.killpg(process.pid, sig)
        except ProcessLookupError:
            return False
        return True
