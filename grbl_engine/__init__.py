"""GRBL Engine - GRBL-HAL machine control engine.

Serial connection, status polling, flow-controlled streaming and bed
extension motion translation for GRBL-HAL CNC controllers.
"""

__version__ = "0.1.0"
__author__ = "Bob Kolbasowski"

from .commands import RealtimeCommand
from .connection import Connection, PortInfo, list_ports
from .machine import GrblMachine
from .motion import MotionConfig, translate_lines
from .profiles import MachineProfile
from .status import MachineState, MachineStatus, Position
from .streamer import StreamResult
from .utils import Settings

__all__ = [
    "Connection",
    "GrblMachine",
    "MachineProfile",
    "MachineState",
    "MachineStatus",
    "MotionConfig",
    "PortInfo",
    "Position",
    "RealtimeCommand",
    "Settings",
    "StreamResult",
    "list_ports",
    "translate_lines",
]
