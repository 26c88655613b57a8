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

"""Background status polling.

The poller sends the ``?`` realtime query at a fixed period, reads the status
report under a bounded timeout, and publishes the parsed snapshot. A timeout
or an unparseable report skips the cycle; the loop only ends when stopped.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Optional

from .broadcast import Broadcast
from .connection import Connection, SharedConnection
from .status import MachineStatus, Position, is_status_report, parse_status_report
from .utils.constants import (
    RT_STATUS,
    STATUS_POLL_DEFAULT,
    STATUS_READ_TIMEOUT,
)
from .utils.exceptions import (
    GrblNotConnectedException,
    SerialException,
    SerialTimeoutError,
    StatusParseError,
)
from .utils.grbl_errors import annotate_grbl_message, is_ack, is_ok
from .utils.validation import validate_interval

logger = logging.getLogger(__name__)


class StatusCell:
    """Holds the current ``MachineStatus``.

    Guarded separately from the connection so status can be read while a
    command is in flight. Written only by the poller.
    """

    def __init__(self, initial: MachineStatus):
        self._lock = threading.Lock()
        self._value = initial

    def get(self) -> MachineStatus:
        with self._lock:
            return self._value

    def set(self, status: MachineStatus) -> None:
        with self._lock:
            self._value = status


def settle_pending_ack(conn: Connection, line: str) -> bool:
    """Count ``line`` against a reply still owed to an earlier command.

    Returns True when the line was consumed that way.
    """
    if not conn.pending_acks or not is_ack(line):
        return False
    conn.pending_acks -= 1
    if is_ok(line):
        logger.debug(f"Late acknowledgement: {line}")
    else:
        logger.warning(f"Late reply to an earlier command: {annotate_grbl_message(line)}")
    return True


def query_status(conn: Connection, timeout: float) -> str:
    """Send ``?`` and return the first status report line.

    Other lines that arrive in the window are dropped, after settling any
    reply owed to an earlier command (the ``ok`` for ``$H`` usually arrives
    here). Runs on the I/O pool with the connection guard held.
    """
    deadline = time.monotonic() + timeout
    conn.send_byte(RT_STATUS)
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SerialTimeoutError(timeout)
        line = conn.read_line(remaining)
        if is_status_report(line):
            return line
        if not settle_pending_ack(conn, line) and line:
            logger.debug(f"Ignoring non-status line during poll: {line}")


class StatusPoller:
    """Periodic status query task bound to one connection.

    Not restartable: a new connection gets a new poller.
    """

    def __init__(
        self,
        shared: SharedConnection,
        cell: StatusCell,
        broadcast: Broadcast[MachineStatus],
        *,
        period: float = STATUS_POLL_DEFAULT,
        read_timeout: float = STATUS_READ_TIMEOUT,
    ):
        self._shared = shared
        self._cell = cell
        self._broadcast = broadcast
        self.period = validate_interval(period, 0.001)
        self.read_timeout = validate_interval(read_timeout, 0.001, self.period)
        self._task: Optional[asyncio.Task] = None
        self._last_work_offset: Optional[Position] = None
        self.cycles = 0
        self.skipped = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("Status poller cannot be restarted")
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"status-poller-{self._shared.name}"
        )

    def cancel(self) -> None:
        """Abort the loop without waiting (usable outside a coroutine)."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def stop(self) -> None:
        """Abort the loop and wait for it to finish. Idempotent."""
        if self._task is None:
            return
        self.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        logger.debug(f"Status poller started ({self.period:g}s period)")
        try:
            while True:
                started = loop.time()
                await self._poll_once()
                elapsed = loop.time() - started
                await asyncio.sleep(max(0.0, self.period - elapsed))
        finally:
            logger.debug("Status poller stopped")

    async def _poll_once(self) -> bool:
        self.cycles += 1
        try:
            line = await self._shared.exchange(query_status, self.read_timeout)
            status = parse_status_report(line, self._last_work_offset)
        except SerialTimeoutError:
            logger.debug("Status poll timed out")
            self.skipped += 1
            return False
        except StatusParseError as e:
            logger.debug(f"Skipping malformed status report: {e} ({e.line!r})")
            self.skipped += 1
            return False
        except GrblNotConnectedException:
            self.skipped += 1
            return False
        except SerialException as e:
            logger.warning(f"Status query error: {e}")
            self.skipped += 1
            return False
        except Exception as e:
            logger.error(f"Status poll error: {e}", exc_info=True)
            self.skipped += 1
            return False

        self._last_work_offset = status.work_offset
        self._cell.set(status)
        self._broadcast.publish(status)
        return True
