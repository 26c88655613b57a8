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

"""GRBL-HAL response codes and their descriptions."""

from __future__ import annotations

import re

GRBL_ERROR_CODES: dict[int, str] = {
    1: "Expected command letter.",
    2: "Bad number format.",
    3: "Invalid '$' statement.",
    4: "Negative value.",
    5: "Homing not enabled.",
    6: "Step pulse too short.",
    7: "Settings read failed, defaults restored.",
    8: "'$' command requires Idle.",
    9: "G-code locked out during alarm or jog.",
    10: "Soft limits require homing.",
    11: "Line overflow.",
    12: "Step rate too high.",
    13: "Safety door open.",
    14: "Startup line too long.",
    15: "Jog target exceeds travel.",
    16: "Invalid jog command.",
    17: "Laser mode requires PWM output.",
    18: "Reset asserted.",
    19: "Non-positive value.",
    20: "Unsupported or invalid g-code.",
    21: "Modal group violation.",
    22: "Undefined feed rate.",
    23: "Integer value required.",
    24: "More than one command requiring axis words.",
    25: "Repeated g-code word.",
    26: "Axis words missing.",
    27: "Invalid line number.",
    28: "Value word missing.",
    29: "Work coordinate system not supported.",
    30: "G53 only allowed with G0 and G1.",
    31: "Unused axis words.",
    32: "Arc requires in-plane axis words.",
    33: "Invalid motion target.",
    34: "Invalid arc radius.",
    35: "Arc requires in-plane offset words.",
    36: "Unused value words.",
    37: "Tool length offset not on tool length axis.",
    38: "Tool number exceeds maximum.",
    39: "Value out of range.",
    40: "Coolant command not supported while spindle runs.",
    41: "Spindle must be stopped.",
    42: "Spindle must be running.",
    43: "Spindle direction not supported.",
    44: "Unexpected end of file.",
    45: "Too many parameters.",
    46: "Invalid parameter name.",
    47: "Authentication required.",
    48: "Access denied.",
    49: "Not allowed while in critical state.",
    50: "Flow control violation.",
    60: "SD card mount failed.",
    61: "SD card file open failed.",
    62: "SD card directory listing failed.",
    63: "SD card directory not found.",
    64: "SD card file empty.",
    70: "Bluetooth initialisation failed.",
}

GRBL_ALARM_CODES: dict[int, str] = {
    1: "Hard limit triggered; re-home recommended.",
    2: "Soft limit: target exceeds travel.",
    3: "Reset while in motion; re-home recommended.",
    4: "Probe fail: probe not in expected initial state.",
    5: "Probe fail: no contact within programmed travel.",
    6: "Homing fail: homing cycle reset.",
    7: "Homing fail: safety door opened.",
    8: "Homing fail: pull-off failed to clear switch.",
    9: "Homing fail: switch not found.",
    10: "E-stop asserted.",
    11: "Homing required.",
    12: "Limit switch engaged.",
    13: "Probe protection triggered.",
    14: "Spindle at speed timeout.",
    15: "Homing fail: second switch of ganged axis not found.",
    16: "Power on self test failed.",
    17: "Motor fault.",
}

_ERROR_CODE_PAT = re.compile(r"^error:(\d+)", re.IGNORECASE)
_ALARM_CODE_PAT = re.compile(r"^ALARM:(\d+)", re.IGNORECASE)


def parse_error_code(line: str) -> int | None:
    """Return N for an ``error:N`` response, else None."""
    match = _ERROR_CODE_PAT.match(line.strip())
    if not match:
        return None
    return int(match.group(1))


def parse_alarm_code(line: str) -> int | None:
    """Return N for an ``ALARM:N`` response, else None."""
    match = _ALARM_CODE_PAT.match(line.strip())
    if not match:
        return None
    return int(match.group(1))


def is_ok(line: str) -> bool:
    return line.strip().lower() == "ok"


def is_ack(line: str) -> bool:
    """True for any reply that completes a line: ``ok``, ``error:N`` or ``ALARM:N``."""
    return is_ok(line) or parse_error_code(line) is not None or parse_alarm_code(line) is not None


def get_grbl_error_description(code: int) -> str | None:
    return GRBL_ERROR_CODES.get(code)


def get_grbl_alarm_description(code: int) -> str | None:
    return GRBL_ALARM_CODES.get(code)


def annotate_grbl_message(line: str) -> str:
    """Append the description for an error/alarm response, if known."""
    code = parse_error_code(line)
    if code is not None:
        desc = get_grbl_error_description(code)
    else:
        code = parse_alarm_code(line)
        desc = get_grbl_alarm_description(code) if code is not None else None
    if not desc:
        return line
    return f"{line} ({desc})"
