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

"""Custom exceptions for GRBL Engine.

One exception class per failure class, each carrying only the data needed to
act on it (port name, timeout, controller error code).
"""

from typing import Any, Optional


class GrblEngineException(Exception):
    """Base exception for all GRBL Engine errors."""
    pass


# ============================================================================
# SERIAL COMMUNICATION EXCEPTIONS
# ============================================================================

class SerialException(GrblEngineException):
    """Base exception for serial communication errors."""
    pass


class SerialConnectionError(SerialException):
    """Failed to open the serial port."""

    def __init__(self, port: str, cause: Optional[BaseException] = None):
        self.port = port
        self.cause = cause
        message = f"Failed to open port {port}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class SerialTimeoutError(SerialException):
    """No complete response arrived within the timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Read timeout after {timeout:g}s")


class SerialWriteError(SerialException):
    """Failed to write data to serial port."""
    pass


class SerialReadError(SerialException):
    """Failed to read data from serial port."""
    pass


# ============================================================================
# GRBL EXCEPTIONS
# ============================================================================

class GrblException(GrblEngineException):
    """Base exception for GRBL-related errors."""
    pass


class GrblNotConnectedException(GrblException):
    """Attempted operation while not connected to GRBL."""
    pass


class GrblErrorException(GrblException):
    """GRBL rejected a line with ``error:N`` (or raised an alarm)."""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        line: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.line = line


class GrblAlarmException(GrblErrorException):
    """GRBL entered alarm state while a line was in flight."""

    def __init__(
        self,
        message: str,
        alarm_code: Optional[int] = None,
        line: Optional[str] = None,
    ):
        super().__init__(message, line=line)
        self.alarm_code = alarm_code


# ============================================================================
# PROTOCOL EXCEPTIONS
# ============================================================================

class ProtocolException(GrblEngineException):
    """Base exception for wire-format errors."""
    pass


class StatusParseError(ProtocolException):
    """A line could not be parsed as a status report."""

    def __init__(self, message: str, line: Optional[str] = None):
        super().__init__(message)
        self.line = line


# ============================================================================
# G-CODE EXCEPTIONS
# ============================================================================

class GcodeException(GrblEngineException):
    """Base exception for G-code related errors."""
    pass


class MotionTranslationError(GcodeException):
    """A program cannot be translated onto the bed axis."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        if line_number is not None:
            message = f"Line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number


class GcodeFileError(GcodeException):
    """Error reading a G-code file."""
    pass


# ============================================================================
# SETTINGS EXCEPTIONS
# ============================================================================

class SettingsException(GrblEngineException):
    """Base exception for settings errors."""
    pass


class SettingsLoadError(SettingsException):
    """Failed to load settings file."""
    pass


class SettingsSaveError(SettingsException):
    """Failed to save settings file."""
    pass


class SettingsValidationError(SettingsException):
    """Settings validation failed."""
    pass


# ============================================================================
# VALIDATION EXCEPTIONS
# ============================================================================

class ValidationException(GrblEngineException):
    """Base exception for validation errors."""
    pass


class InvalidParameterError(ValidationException):
    """Invalid parameter value."""

    def __init__(self, parameter_name: str, value: Any, reason: Optional[str] = None):
        self.parameter_name = parameter_name
        self.value = value
        self.reason = reason

        message = f"Invalid value for '{parameter_name}': {value}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class InvalidRangeError(ValidationException):
    """Value out of valid range."""

    def __init__(self, value, min_val, max_val):
        self.value = value
        self.min_val = min_val
        self.max_val = max_val

        message = f"Value {value} out of range [{min_val}, {max_val}]"
        super().__init__(message)
