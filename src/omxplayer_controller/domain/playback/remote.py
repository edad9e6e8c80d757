"""
D-Bus remote control client for a running omxplayer instance.

omxplayer registers `org.mpris.MediaPlayer2.<name>` on its own session
bus and writes that bus address to /tmp/omxplayerdbus.<user>. Every
command is a coroutine that raises CommandError on any failure.
"""

import asyncio
import getpass
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from dbus_next import Message, MessageType
from dbus_next.aio.message_bus import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import (
    AuthError,
    DBusError,
    InvalidAddressError,
    InvalidBusNameError,
    InvalidMemberNameError,
    InvalidSignatureError,
    SignatureBodyMismatchError,
)
from loguru import logger

from .exceptions import CommandError
from .settings import MICROS_PER_MS

OBJECT_PATH = "/org/mpris/MediaPlayer2"
PROPERTIES_INTERFACE = "org.freedesktop.DBus.Properties"
PLAYER_INTERFACE = "org.mpris.MediaPlayer2.Player"

# SetPosition takes a track id object path that omxplayer ignores
UNUSED_TRACK_PATH = "/not/used"


class RemoteControl(Protocol):
    """Commands the controller can send to the running player."""

    async def get_float(self, dbus_id: str, prop: str) -> float: ...

    async def get_play_status(self, dbus_id: str) -> str: ...

    async def set_position(self, dbus_id: str, position_ms: float) -> None: ...

    async def pause(self, dbus_id: str) -> None: ...

    async def resume(self, dbus_id: str) -> None: ...

    async def stop(self, dbus_id: str) -> None: ...


def get_bus_address_path() -> Path:
    """Get the file where omxplayer publishes its D-Bus address."""
    return Path(tempfile.gettempdir()) / f"omxplayerdbus.{getpass.getuser()}"


def read_bus_address(path: Optional[Path] = None) -> Optional[str]:
    """Read omxplayer's bus address, or None if it has not been written yet."""
    address_file = path or get_bus_address_path()
    try:
        address = address_file.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return address or None


class DBusRemoteControl:
    """RemoteControl implementation backed by dbus-next.

    The bus connection is opened lazily and dropped after a failed call,
    so a later call reconnects (a fresh omxplayer may publish a new bus).
    """

    def __init__(self, bus_address: Optional[str] = None, timeout: float = 2.0):
        self._bus_address = bus_address
        self._timeout = timeout
        self._bus: Optional[MessageBus] = None

    async def _connect(self) -> MessageBus:
        if self._bus is not None and self._bus.connected:
            return self._bus

        address = self._bus_address or read_bus_address()
        if address:
            logger.debug(f"Connecting to omxplayer bus: {address}")
            bus = MessageBus(bus_address=address)
        else:
            logger.debug("No omxplayer bus address published, using session bus")
            bus = MessageBus(bus_type=BusType.SESSION)

        self._bus = await bus.connect()
        return self._bus

    def _drop_connection(self) -> None:
        if self._bus is not None:
            self._bus.disconnect()
            self._bus = None

    async def _call(
        self,
        dbus_id: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Optional[list[Any]] = None,
    ) -> list[Any]:
        try:
            message = Message(
                destination=dbus_id,
                path=OBJECT_PATH,
                interface=interface,
                member=member,
                signature=signature,
                body=body or [],
            )
        except (
            InvalidBusNameError,
            InvalidMemberNameError,
            InvalidSignatureError,
            SignatureBodyMismatchError,
        ) as e:
            raise CommandError(member, e) from e

        try:
            bus = await self._connect()
            reply = await asyncio.wait_for(bus.call(message), self._timeout)
        except (AuthError, DBusError, InvalidAddressError, OSError, asyncio.TimeoutError) as e:
            self._drop_connection()
            raise CommandError(member, e) from e

        if reply is None:
            raise CommandError(member, "no reply")
        if reply.message_type == MessageType.ERROR:
            raise CommandError(member, f"{reply.error_name}: {reply.body}")
        return reply.body

    async def get_float(self, dbus_id: str, prop: str) -> float:
        body = await self._call(dbus_id, PROPERTIES_INTERFACE, prop)
        try:
            return float(body[0])
        except (IndexError, TypeError, ValueError) as e:
            raise CommandError(prop, f"unexpected reply {body!r}") from e

    async def get_play_status(self, dbus_id: str) -> str:
        body = await self._call(dbus_id, PROPERTIES_INTERFACE, "PlaybackStatus")
        if not body:
            raise CommandError("PlaybackStatus", "empty reply")
        return str(body[0])

    async def set_position(self, dbus_id: str, position_ms: float) -> None:
        await self._call(
            dbus_id,
            PLAYER_INTERFACE,
            "SetPosition",
            "ox",
            [UNUSED_TRACK_PATH, int(position_ms * MICROS_PER_MS)],
        )

    async def pause(self, dbus_id: str) -> None:
        await self._call(dbus_id, PLAYER_INTERFACE, "Pause")

    async def resume(self, dbus_id: str) -> None:
        await self._call(dbus_id, PLAYER_INTERFACE, "Play")

    async def stop(self, dbus_id: str) -> None:
        await self._call(dbus_id, PLAYER_INTERFACE, "Stop")

    def close(self) -> None:
        """Disconnect from the bus if connected."""
        self._drop_connection()
