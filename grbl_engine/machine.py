#!/usr/bin/env python3
# GRBL Engine (GRBL-HAL machine control engine)
# Copyright (C) 2026 Bob Kolbasowski
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Public interface to a GRBL-HAL controller.

``GrblMachine`` owns the connection, runs the status poller, and exposes
connect, disconnect, jog, home, unlock, probe_z, run_file, send_realtime,
get_status, subscribe_status and set_motion_config. Every operation that
touches the wire is one exclusive exchange on the blocking I/O pool.

Example:
    async with await GrblMachine.connect("/dev/ttyUSB0") as machine:
        await machine.home()
        result = await machine.run_file("part.nc")
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Optional

from .broadcast import Broadcast, Subscription
from .commands import GrblCommand, Home, Jog, ProbeZ, RealtimeCommand, Unlock
from .connection import Connection, SharedConnection, list_ports
from .gcode import clean_program
from .motion import MotionConfig, translate_lines
from .poller import StatusCell, StatusPoller
from .status import MachineStatus
from .streamer import (
    ProgressCallback,
    StreamResult,
    await_pending_acks,
    error_for_reply,
    send_and_await_ack,
    send_and_read_reply,
    stream_lines,
)
from .utils.config import Settings
from .utils.constants import BAUD_DEFAULT
from .utils.exceptions import GcodeFileError, GrblNotConnectedException
from .utils.grbl_errors import is_ok

logger = logging.getLogger(__name__)

__all__ = ["GrblMachine", "list_ports"]


def _send_owing_ack(conn: Connection, line: str) -> None:
    conn.send_line(line)
    conn.pending_acks += 1


def _send_byte(conn: Connection, value: int) -> None:
    conn.send_byte(value)


def _read_program(path: str) -> list[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError as e:
        raise GcodeFileError(f"Failed to read {path}: {e}") from e


class GrblMachine:
    """Connected controller handle.

    Lifecycle: ``connect``/``attach`` start the poller; ``disconnect`` (or
    leaving ``async with``, or dropping the handle) stops it.
    """

    def __init__(self, connection: Connection, settings: Optional[Settings] = None):
        self.settings = settings if settings is not None else Settings()
        self._shared = SharedConnection(connection, workers=self.settings.get("io_workers"))
        self._cell = StatusCell(MachineStatus.idle())
        self._broadcast: Broadcast[MachineStatus] = Broadcast(
            self.settings.get("status_broadcast_capacity")
        )
        self._poller = StatusPoller(
            self._shared,
            self._cell,
            self._broadcast,
            period=self.settings.get("status_poll_interval"),
            read_timeout=self.settings.get("status_read_timeout"),
        )
        self._motion_config = MotionConfig.from_settings(self.settings)
        self._connected = False

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    @classmethod
    async def connect(
        cls,
        port_name: str,
        *,
        baud: int = BAUD_DEFAULT,
        settings: Optional[Settings] = None,
    ) -> "GrblMachine":
        """Open ``port_name`` and start polling.

        Raises:
            SerialConnectionError: If the port cannot be opened (nothing is left running)
        """
        loop = asyncio.get_running_loop()
        connection = await loop.run_in_executor(None, Connection.open, port_name, baud)
        machine = cls.attach(connection, settings=settings)
        logger.info(f"GrblMachine connected to {port_name}")
        return machine

    @classmethod
    def attach(cls, connection: Connection, *, settings: Optional[Settings] = None) -> "GrblMachine":
        """Take ownership of an open connection and start the poller."""
        machine = cls(connection, settings)
        machine._poller.start()
        machine._connected = True
        return machine

    async def disconnect(self) -> None:
        """Stop the poller and close the port. Idempotent."""
        if not self._connected:
            return
        self._connected = False
        await self._poller.stop()
        self._broadcast.close()
        await self._shared.close()
        logger.info(f"GrblMachine disconnected from {self._shared.name}")

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def port_name(self) -> str:
        return self._shared.name

    async def __aenter__(self) -> "GrblMachine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        await self.disconnect()
        return False

    def __del__(self) -> None:
        poller = getattr(self, "_poller", None)
        if poller is None or not poller.running:
            return
        try:
            task_loop = poller._task.get_loop()  # type: ignore[union-attr]
            if not task_loop.is_closed():
                task_loop.call_soon_threadsafe(poller.cancel)
        except RuntimeError:
            pass

    def _require_connected(self) -> None:
        if not self._connected:
            raise GrblNotConnectedException("Not connected")

    # ========================================================================
    # COMMANDS
    # ========================================================================

    async def send_command(self, command: GrblCommand) -> None:
        """Send one line command and wait for its acknowledgement.

        ``$H`` is the exception: its ``ok`` only comes once homing finishes,
        so it is left owed and settled by a later exchange.

        Raises:
            GrblErrorException: If the controller answers ``error:N``
            GrblAlarmException: If the controller answers ``ALARM:N``
            SerialTimeoutError: If no acknowledgement arrives in time
        """
        self._require_connected()
        line = command.to_line()
        if isinstance(command, Home):
            await self._shared.exchange(_send_owing_ack, line)
            logger.debug(f"Sent {line}")
            return
        reply = await self._shared.exchange(
            send_and_await_ack,
            line,
            self.settings.get("line_response_timeout"),
        )
        if not is_ok(reply):
            error = error_for_reply(reply, line)
            logger.error(f"{line} rejected: {error}")
            raise error
        logger.debug(f"Sent {line}")

    async def jog(self, gcode: str) -> None:
        """Send ``$J=<gcode>``, e.g. ``jog("G21G91X10F500")``."""
        await self.send_command(Jog(gcode))

    async def home(self) -> None:
        await self.send_command(Home())

    async def unlock(self) -> None:
        await self.send_command(Unlock())

    async def probe_z(self, distance_mm: float, feed_mm_min: float) -> str:
        """Probe toward negative Z and return the controller's reply line.

        Status reports arriving first are skipped. The reply is not
        interpreted; whether the probe triggered is up to the caller.

        Raises:
            SerialTimeoutError: If no reply arrives in time
            SerialWriteError: If the probe line cannot be sent
        """
        self._require_connected()
        line = ProbeZ(distance_mm, feed_mm_min).to_line()
        reply = await self._shared.exchange(
            send_and_read_reply,
            line,
            self.settings.get("probe_response_timeout"),
        )
        logger.info(f"Probe reply: {reply}")
        return reply

    async def send_realtime(self, command: RealtimeCommand) -> None:
        self._require_connected()
        await self._shared.exchange(_send_byte, command.as_byte())
        logger.debug(f"Sent realtime {command.name}")

    async def run_file(
        self,
        path: str | os.PathLike,
        *,
        on_progress: Optional[ProgressCallback] = None,
    ) -> StreamResult:
        """Translate and stream a g-code file.

        The motion config is snapshotted at the start of the run.

        Raises:
            GcodeFileError: If the file cannot be read
            MotionTranslationError: If the program cannot be translated
            SerialTimeoutError: If a line is not acknowledged in time, or an
                earlier $H has not finished within ``home_response_timeout``
        """
        self._require_connected()
        config = self._motion_config.copy()
        path = os.fspath(path)
        raw_lines = await self._shared.run_blocking(_read_program, path)
        lines = clean_program(translate_lines(raw_lines, config))
        await self._shared.exchange(await_pending_acks, self.settings.get("home_response_timeout"))
        logger.info(f"Running {path} ({len(lines)} lines)")
        return await stream_lines(
            self._shared,
            self._cell,
            lines,
            self.settings.get("line_response_timeout"),
            hold_poll_interval=self.settings.get("hold_poll_interval"),
            on_progress=on_progress,
        )

    # ========================================================================
    # STATUS & CONFIG
    # ========================================================================

    def get_status(self) -> MachineStatus:
        return self._cell.get()

    def subscribe_status(self) -> Subscription[MachineStatus]:
        return self._broadcast.subscribe()

    @property
    def motion_config(self) -> MotionConfig:
        return self._motion_config.copy()

    def set_motion_config(self, config: MotionConfig) -> None:
        """Applies to later ``run_file`` calls, never to a run in progress."""
        self._motion_config = config.copy()
        logger.info(
            f"Motion config set: y_limit={config.y_limit} bed_axis={config.bed_axis}"
        )

    def __repr__(self) -> str:
        state: Any = "disconnected"
        if self._connected:
            state = self._cell.get().state.value
        return f"<GrblMachine {self._shared.name} {state}>"
