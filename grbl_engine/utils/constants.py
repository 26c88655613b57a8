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

"""Constants and configuration values for GRBL Engine.

This module centralizes all magic numbers, default values, and protocol
constants used throughout the engine.
"""

# ============================================================================
# SERIAL COMMUNICATION CONSTANTS
# ============================================================================

BAUD_DEFAULT = 115200
"""Baud rate for GRBL-HAL serial communication (8N1)."""

VALID_BAUD_RATES = (9600, 19200, 38400, 57600, 115200, 230400, 250000, 500000, 921600)
"""Baud rates accepted by validation."""

SERIAL_TIMEOUT = 0.1
"""Default per-read timeout (seconds) applied when the port is opened."""

SERIAL_WRITE_TIMEOUT = 1.0
"""Write timeout (seconds) for the serial port."""

LINE_TERMINATOR = b"\r\n"
"""GRBL expects CRLF after every line command."""

IO_WORKERS_DEFAULT = 4
"""Threads in the blocking I/O pool."""

IO_THREAD_PREFIX = "GRBL-IO"
"""Thread name prefix for the blocking I/O pool."""

# ============================================================================
# STATUS POLLING
# ============================================================================

STATUS_POLL_DEFAULT = 0.2
"""Default interval (seconds) between status queries."""

STATUS_READ_TIMEOUT = 0.15
"""Bounded wait (seconds) for a status report; shorter than the poll period."""

STATUS_POLL_INTERVAL_MIN = 0.05
"""Minimum allowed status poll interval (seconds)."""

STATUS_BROADCAST_CAPACITY = 16
"""Per-subscriber backlog of the status broadcast."""

# ============================================================================
# STREAMING
# ============================================================================

LINE_RESPONSE_TIMEOUT = 30.0
"""Wait (seconds) for ok/error after a streamed line."""

PROBE_RESPONSE_TIMEOUT = 60.0
"""Wait (seconds) for the response to a probe cycle."""

HOME_RESPONSE_TIMEOUT = 120.0
"""Wait (seconds) for the ok that ends a homing cycle before streaming starts."""

HOLD_POLL_INTERVAL = 0.05
"""How often (seconds) the streamer rechecks status while held."""

PROBE_DECIMALS = 4
"""Fixed decimal places used when formatting probe words."""

# ============================================================================
# GRBL REAL-TIME COMMAND BYTES
# ============================================================================

RT_STATUS = 0x3F  # ?
RT_HOLD = 0x21  # !
RT_RESUME = 0x7E  # ~
RT_RESET = 0x18  # Ctrl-X
RT_SAFETY_DOOR = 0x84
RT_JOG_CANCEL = 0x85

# Feed override commands
RT_FO_RESET = 0x90
RT_FO_PLUS_10 = 0x91
RT_FO_MINUS_10 = 0x92
RT_FO_PLUS_1 = 0x93
RT_FO_MINUS_1 = 0x94

# Rapid override commands
RT_RO_RESET = 0x95
RT_RO_50 = 0x96
RT_RO_25 = 0x97

# Spindle override commands
RT_SO_RESET = 0x99
RT_SO_PLUS_10 = 0x9A
RT_SO_MINUS_10 = 0x9B
RT_SO_PLUS_1 = 0x9C
RT_SO_MINUS_1 = 0x9D
RT_SO_STOP = 0x9E

# Coolant toggles
RT_FLOOD_TOGGLE = 0xA0
RT_MIST_TOGGLE = 0xA1

# ============================================================================
# LINE COMMANDS
# ============================================================================

CMD_JOG_PREFIX = "$J="
CMD_HOME = "$H"
CMD_UNLOCK = "$X"
CMD_PROBE = "G38.2"

# ============================================================================
# MOTION TRANSLATION
# ============================================================================

BED_AXIS_DEFAULT = "A"
"""Auxiliary axis that absorbs Y travel beyond the gantry limit."""

BED_AXIS_CHOICES = ("A", "B", "C", "U", "V", "W")
"""Axis letters that may be designated as the bed axis."""

TRANSLATE_DECIMALS = 4
"""Decimal places used for rewritten axis words."""

INCH_TO_MM = 25.4

# ============================================================================
# FILE OPERATIONS
# ============================================================================

SETTINGS_FILENAME = "grbl_engine_settings.json"
SETTINGS_BACKUP_SUFFIX = ".bak"
SETTINGS_TEMP_SUFFIX = ".tmp"
SETTINGS_DIR_ENV = "GRBL_ENGINE_CONFIG_DIR"
SETTINGS_DIRNAME = "GrblEngine"
