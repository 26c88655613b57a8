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

"""Serial link ownership for GRBL-HAL controllers.

``Connection`` owns one open pyserial port and performs the actual reads and
writes. ``SharedConnection`` is the single handle the poller, streamer and
controller share: it serializes access with one lock and runs each blocking
exchange on a small thread pool so the asyncio loop never blocks on the wire.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import serial
from serial.tools import list_ports as serial_list_ports

from .utils.constants import (
    BAUD_DEFAULT,
    IO_THREAD_PREFIX,
    IO_WORKERS_DEFAULT,
    LINE_TERMINATOR,
    SERIAL_TIMEOUT,
    SERIAL_WRITE_TIMEOUT,
)
from .utils.exceptions import (
    GrblNotConnectedException,
    SerialConnectionError,
    SerialException,
    SerialReadError,
    SerialTimeoutError,
    SerialWriteError,
)
from .utils.logging_config import SERIAL_LOGGER_NAME
from .utils.validation import validate_baud_rate, validate_command_line, validate_port_name

logger = logging.getLogger(__name__)
wire_logger = logging.getLogger(SERIAL_LOGGER_NAME)

T = TypeVar("T")


@dataclass(frozen=True)
class PortInfo:
    """A discovered serial device: system name and display title."""
    name: str
    title: str


def _port_title(port: Any) -> str:
    name = port.device
    vid = getattr(port, "vid", None)
    pid = getattr(port, "pid", None)
    if vid is not None and pid is not None:
        title = f"{name} (USB {vid:04X}:{pid:04X})"
        hints = [h for h in (getattr(port, "manufacturer", None), getattr(port, "product", None)) if h]
        if hints:
            title += f" {' '.join(hints)}"
        return title
    subsystem = (getattr(port, "subsystem", None) or "").lower()
    hwid = (getattr(port, "hwid", None) or "").lower()
    description = (getattr(port, "description", None) or "").lower()
    if subsystem == "pci" or hwid.startswith("pci"):
        return f"{name} (PCI)"
    if "bluetooth" in hwid or "bluetooth" in description or "rfcomm" in name.lower():
        return f"{name} (Bluetooth)"
    return name


def list_ports() -> list[PortInfo]:
    """Enumerate available serial ports.

    Raises:
        SerialException: If the platform port listing fails
    """
    try:
        ports = serial_list_ports.comports()
    except (OSError, serial.SerialException) as e:
        raise SerialException(f"Failed to list serial ports: {e}")
    return [PortInfo(name=p.device, title=_port_title(p)) for p in sorted(ports, key=lambda p: p.device)]


class Connection:
    """An open serial link to a GRBL-HAL controller.

    Not thread-safe on its own; callers go through ``SharedConnection``.
    """

    def __init__(self, ser: Any, name: str, baud: int = BAUD_DEFAULT):
        self.ser = ser
        self.name = name
        self.baud = baud
        # replies still owed for lines sent without waiting for them
        self.pending_acks = 0

    @classmethod
    def open(cls, name: str, baud: int = BAUD_DEFAULT) -> "Connection":
        """Open the named port at 8 data bits, 1 stop bit, no parity.

        Raises:
            SerialConnectionError: If the device is missing, busy or not permitted
        """
        name = validate_port_name(name)
        baud = validate_baud_rate(baud)
        try:
            ser = serial.Serial(
                name,
                baudrate=baud,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=SERIAL_TIMEOUT,
                write_timeout=SERIAL_WRITE_TIMEOUT,
            )
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error(f"Failed to open {name}: {e}")
            raise SerialConnectionError(name, e) from e
        logger.info(f"Opened {name} at {baud} baud")
        return cls(ser, name, baud)

    @property
    def is_open(self) -> bool:
        return self.ser is not None and bool(self.ser.is_open)

    def _write(self, payload: bytes) -> None:
        if not self.is_open:
            raise SerialWriteError(f"Port {self.name} is not open")
        try:
            total = 0
            length = len(payload)
            while total < length:
                written = self.ser.write(payload[total:])
                if written is None:
                    written = length - total
                if written <= 0:
                    raise serial.SerialTimeoutException("Write returned 0 bytes")
                total += written
            self.ser.flush()
        except serial.SerialTimeoutException as e:
            raise SerialWriteError(f"Write timeout on {self.name}: {e}") from e
        except (serial.SerialException, OSError) as e:
            raise SerialWriteError(f"Serial write error on {self.name}: {e}") from e

    def send_line(self, text: str) -> None:
        """Write ``text`` followed by CRLF and flush."""
        text = validate_command_line(text)
        self._write(text.encode("utf-8") + LINE_TERMINATOR)
        wire_logger.debug(f"TX {text}")

    def send_byte(self, value: int | bytes) -> None:
        """Write a single unterminated byte (realtime command)."""
        if isinstance(value, (bytes, bytearray)):
            if len(value) != 1:
                raise ValueError(f"Expected a single byte, got {len(value)}")
            payload = bytes(value)
        else:
            payload = bytes([value])
        self._write(payload)
        wire_logger.debug(f"TX 0x{payload[0]:02X}")

    def discard_input(self) -> None:
        """Drop whatever the controller sent that nobody has read."""
        try:
            self.ser.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            raise SerialReadError(f"Serial read error on {self.name}: {e}") from e

    def read_line(self, timeout: float) -> str:
        """Read one line, stripping CR and LF.

        Raises:
            SerialTimeoutError: If no LF arrives within ``timeout`` seconds
            SerialReadError: If the port fails
        """
        if not self.is_open:
            raise SerialReadError(f"Port {self.name} is not open")
        deadline = time.monotonic() + timeout
        buf = bytearray()
        try:
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise SerialTimeoutError(timeout)
                # a read from an empty buffer blocks for up to ser.timeout
                if not self.ser.in_waiting:
                    self.ser.timeout = remaining
                chunk = self.ser.read(1)
                if not chunk:
                    raise SerialTimeoutError(timeout)
                byte = chunk[0]
                if byte == 0x0A:
                    break
                if byte != 0x0D:
                    buf.append(byte)
        except (serial.SerialException, OSError) as e:
            raise SerialReadError(f"Serial read error on {self.name}: {e}") from e
        line = buf.decode("utf-8", errors="replace")
        wire_logger.debug(f"RX {line}")
        return line

    def close(self) -> None:
        if self.ser is None:
            return
        try:
            self.ser.close()
            logger.info(f"Serial port {self.name} closed")
        except (serial.SerialException, OSError) as e:
            logger.error(f"Error closing serial port {self.name}: {e}")


class SharedConnection:
    """The one handle to a ``Connection`` shared between concurrent tasks.

    Every exchange holds the guard for its full duration, so no two byte
    sequences ever interleave on the wire.
    """

    def __init__(self, connection: Connection, *, workers: int = IO_WORKERS_DEFAULT):
        self._connection = connection
        self._guard = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix=IO_THREAD_PREFIX,
        )
        self._closed = False

    @property
    def name(self) -> str:
        return self._connection.name

    @property
    def closed(self) -> bool:
        return self._closed

    def _run_locked(self, fn: Callable[..., T], args: tuple) -> T:
        with self._guard:
            if self._closed:
                raise GrblNotConnectedException(f"Connection {self.name} is closed")
            return fn(self._connection, *args)

    async def exchange(self, fn: Callable[..., T], *args: Any) -> T:
        """Run ``fn(connection, *args)`` on the I/O pool under the guard."""
        if self._closed:
            raise GrblNotConnectedException(f"Connection {self.name} is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._run_locked, fn, args)

    async def run_blocking(self, fn: Callable[..., T], *args: Any) -> T:
        """Run blocking work that does not touch the wire (e.g. file reads)."""
        if self._closed:
            raise GrblNotConnectedException(f"Connection {self.name} is closed")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def _close_locked(self) -> None:
        with self._guard:
            if self._closed:
                return
            self._closed = True
            self._connection.close()

    async def close(self) -> None:
        """Close the port once any in-flight exchange finishes. Idempotent."""
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(self._executor, self._close_locked)
        self._executor.shutdown(wait=False)
