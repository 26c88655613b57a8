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

"""GRBL-HAL command encoding.

Line commands serialize to a text line (the connection appends CRLF);
realtime commands are single control bytes sent without a terminator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from .utils import constants as c
from .utils.validation import validate_command_line, validate_distance, validate_feed_rate


class GrblCommand:
    """Base class for line-based commands."""

    def to_line(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.to_line()


@dataclass(frozen=True)
class Jog(GrblCommand):
    """``$J=`` followed by a caller-supplied jog fragment, e.g. ``G21G91X10F500``."""
    gcode: str

    def to_line(self) -> str:
        return f"{c.CMD_JOG_PREFIX}{validate_command_line(self.gcode.strip())}"


@dataclass(frozen=True)
class Home(GrblCommand):
    def to_line(self) -> str:
        return c.CMD_HOME


@dataclass(frozen=True)
class Unlock(GrblCommand):
    def to_line(self) -> str:
        return c.CMD_UNLOCK


@dataclass(frozen=True)
class ProbeZ(GrblCommand):
    """Straight probe toward negative Z: ``G38.2 Z-<distance> F<feed>``."""
    distance: float
    feed: float

    def to_line(self) -> str:
        distance = validate_distance(self.distance)
        feed = validate_feed_rate(self.feed)
        d = c.PROBE_DECIMALS
        return f"{c.CMD_PROBE} Z-{distance:.{d}f} F{feed:.{d}f}"


@dataclass(frozen=True)
class RawLine(GrblCommand):
    """An arbitrary single line passed through unchanged."""
    text: str

    def to_line(self) -> str:
        return validate_command_line(self.text.strip())


class RealtimeCommand(enum.Enum):
    """Single-byte commands processed by the controller immediately."""

    STATUS_REPORT = c.RT_STATUS
    FEED_HOLD = c.RT_HOLD
    CYCLE_START = c.RT_RESUME
    SOFT_RESET = c.RT_RESET
    SAFETY_DOOR = c.RT_SAFETY_DOOR
    JOG_CANCEL = c.RT_JOG_CANCEL
    FEED_OVR_RESET = c.RT_FO_RESET
    FEED_OVR_COARSE_PLUS = c.RT_FO_PLUS_10
    FEED_OVR_COARSE_MINUS = c.RT_FO_MINUS_10
    FEED_OVR_FINE_PLUS = c.RT_FO_PLUS_1
    FEED_OVR_FINE_MINUS = c.RT_FO_MINUS_1
    RAPID_OVR_RESET = c.RT_RO_RESET
    RAPID_OVR_MEDIUM = c.RT_RO_50
    RAPID_OVR_LOW = c.RT_RO_25
    SPINDLE_OVR_RESET = c.RT_SO_RESET
    SPINDLE_OVR_COARSE_PLUS = c.RT_SO_PLUS_10
    SPINDLE_OVR_COARSE_MINUS = c.RT_SO_MINUS_10
    SPINDLE_OVR_FINE_PLUS = c.RT_SO_PLUS_1
    SPINDLE_OVR_FINE_MINUS = c.RT_SO_MINUS_1
    SPINDLE_OVR_STOP = c.RT_SO_STOP
    COOLANT_FLOOD_TOGGLE = c.RT_FLOOD_TOGGLE
    COOLANT_MIST_TOGGLE = c.RT_MIST_TOGGLE

    def as_byte(self) -> int:
        return self.value

    def to_bytes(self) -> bytes:
        return bytes([self.value])
