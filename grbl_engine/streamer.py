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

"""Flow-controlled g-code streaming.

One line is in flight at a time: a line is sent and its ``ok`` awaited before
the next goes out. Before every send the streamer consults the status cell
the poller maintains; while the machine reports Hold (or Door) nothing is
sent, and sending picks up at the next unsent line once the machine is Idle
or Run again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .connection import Connection, SharedConnection
from .gcode import clean_gcode_line
from .poller import StatusCell, settle_pending_ack
from .status import RESUME_STATES, is_status_report
from .utils.constants import HOLD_POLL_INTERVAL, LINE_RESPONSE_TIMEOUT
from .utils.exceptions import GrblAlarmException, GrblErrorException, SerialTimeoutError
from .utils.grbl_errors import annotate_grbl_message, is_ack, is_ok, parse_alarm_code, parse_error_code

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]


@dataclass(frozen=True)
class StreamResult:
    """Outcome of a run: lines acknowledged and the error that stopped it."""
    lines_acked: int
    error: Optional[GrblErrorException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def await_pending_acks(conn: Connection, timeout: float) -> None:
    """Read until every reply owed to an earlier command has arrived.

    Raises:
        SerialTimeoutError: If they do not all arrive within ``timeout``
    """
    deadline = time.monotonic() + timeout
    while conn.pending_acks:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SerialTimeoutError(timeout)
        settle_pending_ack(conn, conn.read_line(remaining).strip())


def _read_reply(conn: Connection, deadline: float, timeout: float, wanted: Callable[[str], bool]) -> str:
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SerialTimeoutError(timeout)
        reply = conn.read_line(remaining).strip()
        if wanted(reply):
            return reply
        if reply and not is_status_report(reply):
            logger.debug(f"Ignoring message while awaiting reply: {reply}")


def _send_fresh(conn: Connection, line: str, timeout: float) -> float:
    deadline = time.monotonic() + timeout
    await_pending_acks(conn, timeout)
    conn.discard_input()
    conn.send_line(line)
    return deadline


def send_and_await_ack(conn: Connection, line: str, timeout: float) -> str:
    """Send one line and return the ``ok``/``error:N``/``ALARM:N`` reply.

    Replies still owed to earlier commands are read first and anything else
    left in the receive buffer is dropped, so the reply belongs to ``line``.
    Status reports and informational messages arriving first are skipped.
    Runs on the I/O pool with the connection guard held.

    Raises:
        SerialTimeoutError: If no acknowledgement arrives within ``timeout``
    """
    deadline = _send_fresh(conn, line, timeout)
    try:
        return _read_reply(conn, deadline, timeout, is_ack)
    except SerialTimeoutError:
        conn.pending_acks += 1
        raise


def send_and_read_reply(conn: Connection, line: str, timeout: float) -> str:
    """Send one line and return its first reply that is not a status report.

    When that reply is not itself the acknowledgement (``[PRB:...]`` before
    ``ok``), the acknowledgement is left owed and settled by the next exchange.

    Raises:
        SerialTimeoutError: If no reply arrives within ``timeout``
    """
    deadline = _send_fresh(conn, line, timeout)
    try:
        reply = _read_reply(conn, deadline, timeout, lambda r: bool(r) and not is_status_report(r))
    except SerialTimeoutError:
        conn.pending_acks += 1
        raise
    if not is_ack(reply):
        conn.pending_acks += 1
    return reply


def error_for_reply(reply: str, line: str) -> GrblErrorException:
    message = annotate_grbl_message(reply)
    alarm_code = parse_alarm_code(reply)
    if alarm_code is not None:
        return GrblAlarmException(message, alarm_code=alarm_code, line=line)
    return GrblErrorException(message, error_code=parse_error_code(reply), line=line)


async def _wait_while_held(cell: StatusCell, poll_interval: float) -> None:
    status = cell.get()
    if not status.is_hold:
        return
    logger.info(f"Machine in {status.state.value}; streaming paused")
    while cell.get().state not in RESUME_STATES:
        await asyncio.sleep(poll_interval)
    logger.info(f"Machine {cell.get().state.value}; streaming resumed")


async def stream_lines(
    shared: SharedConnection,
    cell: StatusCell,
    lines: Iterable[str],
    response_timeout: float = LINE_RESPONSE_TIMEOUT,
    *,
    hold_poll_interval: float = HOLD_POLL_INTERVAL,
    on_progress: Optional[ProgressCallback] = None,
) -> StreamResult:
    """Stream ``lines`` with per-line acknowledgement.

    Blank and comment-only lines are skipped. Stops at the first ``error:N`` or ``ALARM:N``
    and returns the partial count with that error.

    Raises:
        SerialTimeoutError: If a line is not acknowledged in time
        SerialException: On write/read failure
    """
    acked = 0
    for raw in lines:
        line = clean_gcode_line(raw)
        if not line:
            continue
        await _wait_while_held(cell, hold_poll_interval)
        try:
            reply = await shared.exchange(send_and_await_ack, line, response_timeout)
        except SerialTimeoutError:
            logger.error(f"No acknowledgement for line {acked + 1} ({line}) within {response_timeout:g}s")
            raise
        if not is_ok(reply):
            error = error_for_reply(reply, line)
            logger.error(f"Stream stopped at line {acked + 1}: {error} | {line}")
            return StreamResult(acked, error)
        acked += 1
        if on_progress is not None:
            on_progress(acked, line)

    logger.info(f"Streaming complete ({acked} lines)")
    return StreamResult(acked)
