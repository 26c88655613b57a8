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

"""Machine status model and status-report parsing.

GRBL-HAL answers the ``?`` realtime query with a single line such as::

    <Idle|MPos:10.000,0.000,-2.500|Bf:35,1023|FS:0,0|WCO:0.000,0.000,-5.000>

The first field is the machine state (optionally ``State:sub``); the rest are
``Name:value`` fields. Only the fields the engine uses are decoded, unknown
fields are ignored.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from .utils.exceptions import StatusParseError


class MachineState(enum.Enum):
    IDLE = "Idle"
    RUN = "Run"
    HOLD = "Hold"
    JOG = "Jog"
    HOME = "Home"
    ALARM = "Alarm"
    DOOR = "Door"
    CHECK = "Check"
    SLEEP = "Sleep"

    @classmethod
    def parse(cls, text: str) -> "MachineState":
        for state in cls:
            if state.value.lower() == text.lower():
                return state
        raise StatusParseError(f"Unknown machine state: {text!r}")


# Streaming is suspended in these states until the machine is Idle or Run again.
HOLD_STATES = frozenset({MachineState.HOLD, MachineState.DOOR})
RESUME_STATES = frozenset({MachineState.IDLE, MachineState.RUN})


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    a: Optional[float] = None

    def __add__(self, other: "Position") -> "Position":
        return Position(
            self.x + other.x,
            self.y + other.y,
            self.z + other.z,
            _add_optional(self.a, other.a),
        )

    def __sub__(self, other: "Position") -> "Position":
        return Position(
            self.x - other.x,
            self.y - other.y,
            self.z - other.z,
            _add_optional(self.a, None if other.a is None else -other.a),
        )


def _add_optional(a: Optional[float], b: Optional[float]) -> Optional[float]:
    if a is None:
        return None
    return a + (b or 0.0)


@dataclass(frozen=True)
class Overrides:
    feed: int = 100
    rapid: int = 100
    spindle: int = 100


@dataclass(frozen=True)
class MachineStatus:
    """Immutable status snapshot; replaced wholesale on every poll."""
    state: MachineState
    work_position: Position = field(default_factory=Position)
    machine_position: Position = field(default_factory=Position)
    feed_rate: float = 0.0
    spindle_speed: float = 0.0
    sub_state: Optional[int] = None
    work_offset: Optional[Position] = None
    planner_blocks_free: Optional[int] = None
    rx_bytes_free: Optional[int] = None
    overrides: Optional[Overrides] = None
    pins: str = ""

    @classmethod
    def idle(cls) -> "MachineStatus":
        return cls(state=MachineState.IDLE)

    @property
    def is_hold(self) -> bool:
        return self.state in HOLD_STATES


def is_status_report(line: str) -> bool:
    line = line.strip()
    return line.startswith("<") and line.endswith(">")


def _parse_floats(name: str, value: str) -> list[float]:
    try:
        return [float(v) for v in value.split(",")]
    except ValueError:
        raise StatusParseError(f"Malformed {name} field: {value!r}")


def _parse_position(name: str, value: str) -> Position:
    values = _parse_floats(name, value)
    if len(values) < 3:
        raise StatusParseError(f"{name} needs at least 3 axes: {value!r}")
    return Position(values[0], values[1], values[2], values[3] if len(values) > 3 else None)


def _parse_ints(name: str, value: str, count: int) -> list[int]:
    try:
        values = [int(v) for v in value.split(",")]
    except ValueError:
        raise StatusParseError(f"Malformed {name} field: {value!r}")
    if len(values) < count:
        raise StatusParseError(f"{name} needs {count} values: {value!r}")
    return values


def parse_status_report(line: str, last_work_offset: Optional[Position] = None) -> MachineStatus:
    """Parse a ``<State|...>`` status report.

    ``last_work_offset`` is the most recent WCO seen; GRBL only sends WCO every
    few reports, so it is needed to derive WPos from MPos (or the reverse).

    Raises:
        StatusParseError: For anything that is not a complete status report
    """
    text = line.strip()
    if not is_status_report(text):
        raise StatusParseError("Not a status report", line)

    parts = text[1:-1].split("|")
    state_text, _, sub_text = parts[0].partition(":")
    try:
        state = MachineState.parse(state_text)
    except StatusParseError as e:
        raise StatusParseError(str(e), line)
    sub_state = None
    if sub_text:
        try:
            sub_state = int(sub_text)
        except ValueError:
            raise StatusParseError(f"Malformed sub-state: {sub_text!r}", line)

    mpos = wpos = None
    wco = None
    feed = 0.0
    speed = 0.0
    planner = rx = None
    overrides = None
    pins = ""

    try:
        for part in parts[1:]:
            name, sep, value = part.partition(":")
            if not sep:
                continue
            if name == "MPos":
                mpos = _parse_position(name, value)
            elif name == "WPos":
                wpos = _parse_position(name, value)
            elif name == "WCO":
                wco = _parse_position(name, value)
            elif name == "FS":
                values = _parse_floats(name, value)
                feed = values[0]
                if len(values) > 1:
                    speed = values[1]
            elif name == "F":
                feed = _parse_floats(name, value)[0]
            elif name == "Bf":
                planner, rx = _parse_ints(name, value, 2)[:2]
            elif name == "Ov":
                ov = _parse_ints(name, value, 3)
                overrides = Overrides(ov[0], ov[1], ov[2])
            elif name == "Pn":
                pins = value
    except StatusParseError as e:
        raise StatusParseError(str(e), line)

    offset = wco if wco is not None else last_work_offset
    if mpos is None:
        if wpos is None:
            raise StatusParseError("Status report has no position", line)
        mpos = wpos + offset if offset is not None else wpos
    elif wpos is None:
        wpos = mpos - offset if offset is not None else mpos

    return MachineStatus(
        state=state,
        work_position=wpos,
        machine_position=mpos,
        feed_rate=feed,
        spindle_speed=speed,
        sub_state=sub_state,
        work_offset=offset,
        planner_blocks_free=planner,
        rx_bytes_free=rx,
        overrides=overrides,
        pins=pins,
    )
