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

"""Command-line entry for GRBL Engine.

    python -m grbl_engine ports
    python -m grbl_engine status --port /dev/ttyUSB0
    python -m grbl_engine run part.nc --port /dev/ttyUSB0 --y-limit 600
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import __version__
from .machine import GrblMachine, list_ports
from .motion import MotionConfig
from .status import MachineStatus
from .utils.config import Settings
from .utils.constants import BED_AXIS_CHOICES
from .utils.exceptions import GrblEngineException
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

STATUS_WAIT_TIMEOUT = 2.0


def format_status(status: MachineStatus) -> str:
    state = status.state.value
    if status.sub_state is not None:
        state = f"{state}:{status.sub_state}"
    wpos = status.work_position
    mpos = status.machine_position
    return (
        f"{state}  "
        f"WPos X{wpos.x:.3f} Y{wpos.y:.3f} Z{wpos.z:.3f}  "
        f"MPos X{mpos.x:.3f} Y{mpos.y:.3f} Z{mpos.z:.3f}  "
        f"F{status.feed_rate:g} S{status.spindle_speed:g}"
    )


def _resolve_port(args: argparse.Namespace, settings: Settings) -> str:
    port = args.port or settings.get("last_port")
    if not port:
        raise SystemExit("No port given and no last_port in settings (use --port)")
    return port


def cmd_ports(args: argparse.Namespace, settings: Settings) -> int:
    ports = list_ports()
    if not ports:
        print("No serial ports found")
        return 1
    for port in ports:
        print(port.title)
    return 0


async def _read_status(port: str, baud: int, settings: Settings) -> MachineStatus:
    async with await GrblMachine.connect(port, baud=baud, settings=settings) as machine:
        sub = machine.subscribe_status()
        try:
            status = await asyncio.wait_for(sub.get(), STATUS_WAIT_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("No status report received; showing last known status")
            status = None
        finally:
            sub.close()
        return status if status is not None else machine.get_status()


def cmd_status(args: argparse.Namespace, settings: Settings) -> int:
    port = _resolve_port(args, settings)
    status = asyncio.run(_read_status(port, args.baud or settings.get("baud_rate"), settings))
    print(format_status(status))
    return 0


async def _run_file(args: argparse.Namespace, port: str, settings: Settings) -> int:
    baud = args.baud or settings.get("baud_rate")
    async with await GrblMachine.connect(port, baud=baud, settings=settings) as machine:
        if args.y_limit is not None or args.bed_axis is not None:
            current = machine.motion_config
            machine.set_motion_config(
                MotionConfig(
                    y_limit=args.y_limit if args.y_limit is not None else current.y_limit,
                    bed_axis=args.bed_axis or current.bed_axis,
                )
            )

        def progress(count: int, line: str) -> None:
            if not args.quiet:
                print(f"{count:>6}  {line}")

        result = await machine.run_file(args.file, on_progress=progress)

    if result.ok:
        print(f"Done: {result.lines_acked} lines")
        return 0
    print(f"Stopped after {result.lines_acked} lines: {result.error}", file=sys.stderr)
    return 2


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    port = _resolve_port(args, settings)
    code = asyncio.run(_run_file(args, port, settings))
    settings.set("last_port", port)
    try:
        settings.save()
    except GrblEngineException as e:
        logger.warning(f"Could not save settings: {e}")
    return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grbl_engine",
        description="GRBL-HAL machine control engine",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--settings", metavar="PATH", help="Settings file (default: per-user config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to the console")

    sub = parser.add_subparsers(dest="command", required=True)

    ports = sub.add_parser("ports", help="List serial ports")
    ports.set_defaults(func=cmd_ports)

    def add_port_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--port", "-p", help="Serial port (default: last used)")
        p.add_argument("--baud", "-b", type=int, help="Baud rate (default: from settings)")

    status = sub.add_parser("status", help="Print one status report")
    add_port_args(status)
    status.set_defaults(func=cmd_status)

    run = sub.add_parser("run", help="Stream a g-code file")
    run.add_argument("file", help="G-code file")
    add_port_args(run)
    run.add_argument("--y-limit", type=float, help="Gantry Y limit in mm (enables bed translation)")
    run.add_argument("--bed-axis", choices=BED_AXIS_CHOICES, type=str.upper, help="Bed extension axis")
    run.add_argument("--quiet", "-q", action="store_true", help="Do not print each acknowledged line")
    run.set_defaults(func=cmd_run)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    settings = Settings(args.settings)
    try:
        settings.load()
        settings.validate()
    except GrblEngineException as e:
        logger.error(f"Settings error, using defaults: {e}")
        settings.reset_to_defaults()

    try:
        return args.func(args, settings)
    except GrblEngineException as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
