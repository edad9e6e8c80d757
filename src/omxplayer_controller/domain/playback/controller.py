"""
Playback controller for a single omxplayer session.

Public operations settle as soon as the player accepts them; everything
that happens afterwards (control readiness, sampling, command results)
is reported through events:

    opened, ready, paused, resumed, stopped, progress, closed, error

Commands return the asyncio.Task running them, so callers may await it,
but failures are delivered to `error` listeners rather than raised.
"""

import asyncio
import errno
import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional

from loguru import logger
from pyee.asyncio import AsyncIOEventEmitter

from omxplayer_controller.core.config import PlayerConfig

from .exceptions import CommandError, ControlTimeoutError, LaunchError, PlayerStateError
from .launcher import ProcessExit, ProcessLauncher
from .prober import wait_for_control
from .remote import DBusRemoteControl, RemoteControl
from .sampler import ProgressSample, ProgressSampler
from .settings import PlaybackSettings, build_settings
from .triggers import PositionTrigger, TriggerHandler


class ControllerState(Enum):
    """Lifecycle of a playback session."""

    UNOPENED = "unopened"
    LAUNCHING = "launching"
    AWAITING_CONTROL = "awaiting_control"
    READY = "ready"
    SIMULATED = "simulated"
    STOPPED = "stopped"
    CLOSED = "closed"
    ERRORED = "errored"


# States in which a player process is live and open() is refused
ACTIVE_STATES = frozenset(
    {ControllerState.LAUNCHING, ControllerState.AWAITING_CONTROL, ControllerState.READY}
)


@dataclass(frozen=True)
class OpenResult:
    """Result of open(), also carried by the `opened` event."""

    file_path: str
    command: str
    playing: bool


class PlaybackController(AsyncIOEventEmitter):
    """Controls one omxplayer process through its D-Bus control channel."""

    def __init__(
        self,
        file: str,
        options: Optional[Mapping[str, Any]] = None,
        *,
        remote: Optional[RemoteControl] = None,
        launcher: Optional[ProcessLauncher] = None,
    ):
        """
        Args:
            file: Media file to play (relative paths resolve against the cwd)
            options: Overrides for layer, dbus_id, audio_output,
                background_color, no_background_color and loop
            remote: Control channel client (default: DBusRemoteControl)
            launcher: Process launcher (default: ProcessLauncher)

        Raises:
            ValueError: If options contain unknown keys or invalid values
        """
        super().__init__()
        self.file = file
        self._settings = build_settings(options)
        self._remote = remote or DBusRemoteControl()
        self._launcher = launcher or ProcessLauncher()
        self._triggers: list[PositionTrigger] = []
        self._sampler: Optional[ProgressSampler] = None
        self._probe: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()
        self._state = ControllerState.UNOPENED
        # Incremented per open(); exits of earlier processes are ignored
        self._session = 0

    @classmethod
    def from_config(
        cls, file: str, config: PlayerConfig, **kwargs: Any
    ) -> "PlaybackController":
        """Build a controller from the [player] config section."""
        config.validate()
        return cls(file, config.to_options(), **kwargs)

    @property
    def state(self) -> ControllerState:
        return self._state

    def get_settings(self) -> PlaybackSettings:
        return self._settings

    def enable_test_mode(self) -> None:
        """Make later launches synthetic: no process, conduit or control channel I/O."""
        self._settings = replace(self._settings, test_mode_only=True)
        logger.debug("Test mode enabled")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self, wait_on_black: bool = False) -> OpenResult:
        """Launch the player for this controller's file.

        Returns once the process has accepted its input. Control readiness
        is probed in the background and reported via `ready` or `error`.

        Raises:
            FileNotFoundError: If the media file does not exist
            LaunchError: If the process or its conduit could not be set up
            PlayerStateError: If a session is already active
        """
        if self._state in ACTIVE_STATES:
            raise PlayerStateError(f"Cannot open while {self._state.value}")

        file_path = os.path.abspath(self.file)
        if not os.path.exists(file_path):
            logger.error(f"Media file not found: {file_path}")
            raise FileNotFoundError(errno.ENOENT, "Media file not found", file_path)

        self._session += 1
        session = self._session
        self._state = ControllerState.LAUNCHING
        try:
            launch = await self._launcher.launch(
                file_path,
                self._settings,
                lambda exit_info: self._handle_exit(session, exit_info),
            )
        except LaunchError:
            self._state = ControllerState.ERRORED
            raise

        result = OpenResult(
            file_path=file_path, command=launch.command, playing=not wait_on_black
        )
        if launch.test_mode_only:
            self._state = ControllerState.SIMULATED
        else:
            self._state = ControllerState.AWAITING_CONTROL
        logger.info(f"Opened {file_path} (playing={result.playing})")
        self.emit("opened", result)

        if launch.test_mode_only:
            logger.debug("Test mode, skipping control readiness probe")
        else:
            self._probe = self._spawn(self._await_control())

        return result

    async def _await_control(self) -> None:
        try:
            probe = await wait_for_control(self._remote, self._settings.dbus_id)
        except ControlTimeoutError as e:
            self._state = ControllerState.ERRORED
            self._emit_error(e)
            return
        except Exception as e:
            logger.exception("Control readiness probe failed")
            self._state = ControllerState.ERRORED
            self._emit_error(e)
            return

        self._state = ControllerState.READY
        self.emit("ready", probe)
        self._start_sampling()

    def _handle_exit(self, session: int, exit_info: ProcessExit) -> None:
        if session != self._session:
            logger.debug(f"Ignoring exit of an earlier player process: {exit_info.returncode}")
            return
        self._stop_sampling()
        self._cancel_probe()
        self._state = ControllerState.CLOSED
        self.emit("closed", exit_info)

    async def aclose(self) -> None:
        """Stop sampling, cancel background work and terminate the player.

        No remote commands are sent and no `closed` event follows.
        """
        if self._sampler is not None:
            self._sampler.cancel()
        self._cancel_probe()
        await self._launcher.terminate()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if isinstance(self._remote, DBusRemoteControl):
            self._remote.close()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def seek_absolute(
        self, position_ms: float, callback: Optional[Callable[[], None]] = None
    ) -> asyncio.Task:
        dbus_id = self._settings.dbus_id
        return self._command(
            "seek", lambda: self._remote.set_position(dbus_id, position_ms), callback
        )

    def pause(self, callback: Optional[Callable[[], None]] = None) -> asyncio.Task:
        dbus_id = self._settings.dbus_id
        return self._command("pause", lambda: self._remote.pause(dbus_id), callback, "paused")

    def resume(self, callback: Optional[Callable[[], None]] = None) -> asyncio.Task:
        dbus_id = self._settings.dbus_id
        return self._command(
            "resume", lambda: self._remote.resume(dbus_id), callback, "resumed"
        )

    def stop(self, callback: Optional[Callable[[], None]] = None) -> asyncio.Task:
        """Stop playback. Sampling is disabled before the command is sent."""
        self._stop_sampling()
        self._cancel_probe()
        dbus_id = self._settings.dbus_id

        def on_stopped() -> None:
            # The process may already have exited in response to Stop
            if self._state is not ControllerState.CLOSED:
                self._state = ControllerState.STOPPED
            if callback:
                callback()

        return self._command("stop", lambda: self._remote.stop(dbus_id), on_stopped, "stopped")

    def register_position_trigger(self, position_ms: float, handler: TriggerHandler) -> None:
        """Call handler(position_ms) each time playback crosses position_ms upwards."""
        self._triggers.append(PositionTrigger(position_ms=position_ms, handler=handler))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _command(
        self,
        name: str,
        call: Callable[[], Awaitable[None]],
        callback: Optional[Callable[[], None]],
        event: Optional[str] = None,
    ) -> asyncio.Task:
        async def run() -> None:
            try:
                await call()
            except CommandError as e:
                logger.warning(f"Command {name} failed: {e}")
                self._emit_error(e)
                return
            logger.debug(f"Command {name} succeeded")
            if callback:
                callback()
            if event:
                self.emit(event)

        return self._spawn(run())

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error(f"Background task failed: {exc}")
            self._emit_error(exc)

    def _start_sampling(self) -> None:
        self._sampler = ProgressSampler(
            remote=self._remote,
            dbus_id=self._settings.dbus_id,
            interval_ms=self._settings.progress_interval_ms,
            triggers=self._triggers,
            on_progress=self._emit_progress,
            on_error=self._emit_error,
        )
        self._sampler.start()

    def _stop_sampling(self) -> None:
        if self._sampler is not None:
            self._sampler.stop()

    def _cancel_probe(self) -> None:
        if self._probe is not None and not self._probe.done():
            self._probe.cancel()
        self._probe = None

    def _emit_progress(self, sample: ProgressSample) -> None:
        self.emit("progress", sample)

    def _emit_error(self, error: BaseException) -> None:
        # pyee raises when `error` has no listeners; keep that out of the event loop
        if self.listeners("error"):
            self.emit("error", error)
        else:
            logger.error(f"Unhandled player error: {error}")
