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

"""Structured logging setup for GRBL Engine.

Three rotating files live in the log directory: ``grbl_engine.log`` (all
engine records), ``errors.log`` (warnings and up) and ``serial.log`` (raw
TX/RX traffic from the ``grbl_engine.serial`` logger only).
"""

from __future__ import annotations

import logging
import logging.handlers
import tempfile
from pathlib import Path
from typing import NamedTuple

from .config import get_settings_path

APP_LOGGER_NAME = "grbl_engine"
SERIAL_LOGGER_NAME = f"{APP_LOGGER_NAME}.serial"
LOG_DIRNAME = "logs"

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
APP_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
ERROR_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d\n%(message)s\n"
WIRE_FORMAT = "%(asctime)s.%(msecs)03d %(message)s"


class _LogFile(NamedTuple):
    handler_name: str
    filename: str
    level: int
    fmt: str
    max_bytes: int
    backups: int


_APP_FILES = (
    _LogFile("grbl_engine_app_file", "grbl_engine.log", logging.DEBUG, APP_FORMAT, 10_000_000, 5),
    _LogFile("grbl_engine_error_file", "errors.log", logging.WARNING, ERROR_FORMAT, 2_000_000, 5),
)
_WIRE_FILE = _LogFile("grbl_engine_serial_file", "serial.log", logging.DEBUG, WIRE_FORMAT, 5_000_000, 3)


def _has_handler(logger: logging.Logger, name: str) -> bool:
    return any(h.get_name() == name for h in logger.handlers)


def _attach_file(logger: logging.Logger, log_dir: Path, spec: _LogFile) -> None:
    if _has_handler(logger, spec.handler_name):
        return
    handler = logging.handlers.RotatingFileHandler(
        log_dir / spec.filename,
        maxBytes=spec.max_bytes,
        backupCount=spec.backups,
        encoding="utf-8",
    )
    handler.setLevel(spec.level)
    handler.setFormatter(logging.Formatter(spec.fmt, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.set_name(spec.handler_name)
    logger.addHandler(handler)


def get_log_dir() -> Path:
    """Log directory beside the settings file, or a temp dir if that fails."""
    log_dir = Path(get_settings_path()).parent / LOG_DIRNAME
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_dir = Path(tempfile.gettempdir()) / "grbl_engine_logs"
        log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def setup_logging(console_level: int = logging.INFO, log_dir: Path | None = None) -> logging.Logger:
    """Install the console handler and the rotating log files.

    Handlers are named, so calling this again does not duplicate output.
    """
    if log_dir is None:
        log_dir = get_log_dir()

    engine_logger = logging.getLogger(APP_LOGGER_NAME)
    engine_logger.setLevel(logging.DEBUG)
    engine_logger.propagate = False

    if not _has_handler(engine_logger, "grbl_engine_console"):
        console = logging.StreamHandler()
        console.setLevel(console_level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
        console.set_name("grbl_engine_console")
        engine_logger.addHandler(console)

    for spec in _APP_FILES:
        _attach_file(engine_logger, log_dir, spec)

    # wire traffic is kept out of the console and the engine log
    wire_logger = logging.getLogger(SERIAL_LOGGER_NAME)
    wire_logger.setLevel(logging.DEBUG)
    wire_logger.propagate = False
    _attach_file(wire_logger, log_dir, _WIRE_FILE)

    return engine_logger
