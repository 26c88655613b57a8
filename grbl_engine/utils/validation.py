"""Validation utilities for GRBL Engine.

This module provides validation functions for caller-supplied values before
they are turned into wire commands.
"""

from typing import Optional

from .constants import BED_AXIS_CHOICES, VALID_BAUD_RATES
from .exceptions import InvalidParameterError, InvalidRangeError


def validate_port_name(port: str) -> str:
    """Validate serial port name.

    Args:
        port: Serial port name (e.g., "COM3" or "/dev/ttyUSB0")

    Returns:
        The validated port name

    Raises:
        InvalidParameterError: If port name is invalid
    """
    if not port or not isinstance(port, str):
        raise InvalidParameterError("port", port, "must be non-empty string")

    port = port.strip()
    if not port:
        raise InvalidParameterError("port", port, "must be non-empty")

    return port


def validate_baud_rate(baud: int) -> int:
    """Validate baud rate.

    Args:
        baud: Baud rate

    Returns:
        The validated baud rate

    Raises:
        InvalidParameterError: If baud rate is not supported
    """
    try:
        baud = int(baud)
    except (TypeError, ValueError):
        raise InvalidParameterError("baud_rate", baud, "must be an integer")

    if baud not in VALID_BAUD_RATES:
        raise InvalidParameterError("baud_rate", baud, "unsupported baud rate")

    return baud


def validate_feed_rate(feed: float) -> float:
    """Validate feed rate value.

    Args:
        feed: Feed rate in mm/min

    Returns:
        The validated feed rate

    Raises:
        InvalidParameterError: If feed rate is invalid
    """
    try:
        feed = float(feed)
    except (TypeError, ValueError):
        raise InvalidParameterError("feed_rate", feed, "must be numeric")

    if feed <= 0:
        raise InvalidParameterError("feed_rate", feed, "must be positive")

    return feed


def validate_distance(distance: float, name: str = "distance") -> float:
    """Validate a positive travel distance in mm."""
    try:
        distance = float(distance)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, distance, "must be numeric")

    if distance <= 0:
        raise InvalidParameterError(name, distance, "must be positive")

    return distance


def validate_interval(
    interval: float,
    min_val: float = 0.0,
    max_val: Optional[float] = None
) -> float:
    """Validate time interval.

    Args:
        interval: Time interval in seconds
        min_val: Minimum allowed value
        max_val: Maximum allowed value (optional)

    Returns:
        The validated interval

    Raises:
        InvalidParameterError: If interval is not numeric
        InvalidRangeError: If interval is out of range
    """
    try:
        interval = float(interval)
    except (TypeError, ValueError):
        raise InvalidParameterError("interval", interval, "must be numeric")

    if interval < min_val:
        raise InvalidRangeError(interval, min_val, max_val if max_val is not None else "inf")

    if max_val is not None and interval > max_val:
        raise InvalidRangeError(interval, min_val, max_val)

    return interval


def validate_axis_letter(axis: str) -> str:
    """Validate the letter of the bed extension axis."""
    if not isinstance(axis, str) or not axis.strip():
        raise InvalidParameterError("bed_axis", axis, "must be an axis letter")

    axis = axis.strip().upper()
    if axis not in BED_AXIS_CHOICES:
        raise InvalidParameterError(
            "bed_axis",
            axis,
            f"must be one of {', '.join(BED_AXIS_CHOICES)}",
        )
    return axis


def validate_command_line(line: str) -> str:
    """Validate a single command line (no embedded newlines)."""
    if not isinstance(line, str):
        raise InvalidParameterError("line", line, "must be a string")
    if "\n" in line or "\r" in line:
        raise InvalidParameterError("line", line, "must not contain line breaks")
    return line
