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

"""Per-machine configuration: work area, steps/mm and an optional tool library.

Profiles are static data used for bounds checks and tool length offsets. They
serialize to plain JSON objects.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .status import Position
from .utils.exceptions import SettingsLoadError, SettingsSaveError, SettingsValidationError

logger = logging.getLogger(__name__)

# 24 in per axis
PROVERXL_4030_TRAVEL_MM = 609.6
DEFAULT_STEPS_PER_MM = 80.0


@dataclass(frozen=True)
class WorkArea:
    """Work envelope in mm."""
    x_mm: float
    y_mm: float
    z_mm: float


@dataclass(frozen=True)
class StepsPerMm:
    x: float = DEFAULT_STEPS_PER_MM
    y: float = DEFAULT_STEPS_PER_MM
    z: float = DEFAULT_STEPS_PER_MM
    # bed extension axis, when fitted
    a: Optional[float] = None


@dataclass(frozen=True)
class ToolEntry:
    number: int
    description: str
    length_offset_mm: Optional[float] = None


@dataclass
class MachineProfile:
    name: str
    work_area: WorkArea
    steps_per_mm: StepsPerMm = field(default_factory=StepsPerMm)
    tools: List[ToolEntry] = field(default_factory=list)

    @classmethod
    def proverxl_4030(cls) -> "MachineProfile":
        """PROVerXL 4030: 24 x 24 in bed, 24 in Z."""
        travel = PROVERXL_4030_TRAVEL_MM
        return cls(name="PROVerXL 4030", work_area=WorkArea(travel, travel, travel))

    def tool(self, number: int) -> Optional[ToolEntry]:
        for entry in self.tools:
            if entry.number == number:
                return entry
        return None

    def contains(self, position: Position) -> bool:
        """True if ``position`` (machine coordinates, mm) lies in the envelope.

        GRBL machine coordinates run negative from the home corner, so each
        axis is checked by magnitude.
        """
        area = self.work_area
        return (
            abs(position.x) <= area.x_mm
            and abs(position.y) <= area.y_mm
            and abs(position.z) <= area.z_mm
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MachineProfile":
        """Build a profile from a JSON object.

        Raises:
            SettingsValidationError: If a required field is missing or malformed
        """
        try:
            area = data["work_area"]
            steps = data.get("steps_per_mm") or {}
            return cls(
                name=str(data["name"]),
                work_area=WorkArea(
                    float(area["x_mm"]), float(area["y_mm"]), float(area["z_mm"])
                ),
                steps_per_mm=StepsPerMm(**steps),
                tools=[
                    ToolEntry(
                        number=int(t["number"]),
                        description=str(t.get("description", "")),
                        length_offset_mm=t.get("length_offset_mm"),
                    )
                    for t in data.get("tools", [])
                ],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SettingsValidationError(f"Invalid machine profile: {e}")


def load_profile(path: str | Path) -> MachineProfile:
    """Read a profile from a JSON file.

    Raises:
        SettingsLoadError: If the file cannot be read or is not valid JSON
        SettingsValidationError: If the JSON does not describe a profile
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SettingsLoadError(f"Invalid JSON in profile {path}: {e}")
    except OSError as e:
        raise SettingsLoadError(f"Failed to read profile {path}: {e}")
    if not isinstance(data, dict):
        raise SettingsValidationError("Machine profile must be a JSON object")
    profile = MachineProfile.from_dict(data)
    logger.info(f"Loaded machine profile '{profile.name}'")
    return profile


def save_profile(profile: MachineProfile, path: str | Path) -> None:
    """Raises SettingsSaveError on failure."""
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(profile.to_dict(), f, indent=2)
    except OSError as e:
        raise SettingsSaveError(f"Failed to save profile {path}: {e}")
