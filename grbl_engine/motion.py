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

"""Bed extension motion translation.

Machines with an extending bed have a gantry whose Y travel stops at a fixed
limit; travel beyond it is made up by moving the bed on an auxiliary axis.
``translate_lines`` rewrites linear moves whose Y target passes the limit so
the gantry stops at the limit and the excess goes onto the bed axis, then
brings the bed back to zero when the program returns below the limit.

Lines that need no change are returned exactly as given, so a program that
never crosses the limit comes back unchanged.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .gcode import WORD_PAT, clean_gcode_line, collect_g_codes, format_float
from .utils.constants import BED_AXIS_DEFAULT, INCH_TO_MM, TRANSLATE_DECIMALS
from .utils.exceptions import InvalidParameterError, MotionTranslationError
from .utils.validation import validate_axis_letter

_EPS = 1e-9
_NON_MODAL_AXIS_CODES = (10.0, 28.0, 30.0, 53.0, 92.0)
_MOTION_CODES = (0.0, 1.0, 2.0, 3.0, 38.2, 38.3, 38.4, 38.5, 80.0)


@dataclass
class MotionConfig:
    """Gantry Y limit (mm) and the axis that absorbs travel beyond it.

    ``y_limit=None`` disables translation.
    """
    y_limit: Optional[float] = None
    bed_axis: str = BED_AXIS_DEFAULT

    def __post_init__(self) -> None:
        if self.y_limit is not None:
            try:
                self.y_limit = float(self.y_limit)
            except (TypeError, ValueError):
                raise InvalidParameterError("y_limit", self.y_limit, "must be numeric")
            if self.y_limit <= 0:
                raise InvalidParameterError("y_limit", self.y_limit, "must be positive")
        self.bed_axis = validate_axis_letter(self.bed_axis)

    @property
    def enabled(self) -> bool:
        return self.y_limit is not None

    def copy(self) -> "MotionConfig":
        return copy.copy(self)

    @classmethod
    def from_settings(cls, settings: Any) -> "MotionConfig":
        return cls(
            y_limit=settings.get("motion.y_limit"),
            bed_axis=settings.get("motion.bed_axis", BED_AXIS_DEFAULT),
        )


class _TranslateState:
    def __init__(self) -> None:
        self.units = 1.0
        self.absolute = True
        self.motion = 0.0
        self.y = 0.0
        self.gantry = 0.0
        self.bed = 0.0


def _rewrite_y(clean: str, y_text: str, bed_word: str) -> str:
    for match in WORD_PAT.finditer(clean):
        if match.group(1) == "Y":
            return f"{clean[:match.start()]}Y{y_text}{bed_word}{clean[match.end():]}"
    return clean


def _translate_line(
    raw: str,
    line_number: int,
    state: _TranslateState,
    limit: float,
    axis: str,
) -> str:
    clean = clean_gcode_line(raw).upper()
    if not clean:
        return raw
    words = WORD_PAT.findall(clean)
    if not words:
        return raw
    if any(w == axis for w, _ in words):
        raise MotionTranslationError(
            f"Program already drives bed axis {axis}", line_number
        )

    g_codes = collect_g_codes(words)
    if 20.0 in g_codes:
        state.units = INCH_TO_MM
    if 21.0 in g_codes:
        state.units = 1.0
    if 90.0 in g_codes:
        state.absolute = True
    if 91.0 in g_codes:
        state.absolute = False
    for code in _MOTION_CODES:
        if code in g_codes:
            state.motion = code

    y_values = [float(v) for w, v in words if w == "Y"]
    non_modal = [code for code in _NON_MODAL_AXIS_CODES if code in g_codes]
    if non_modal:
        if abs(state.bed) > _EPS:
            raise MotionTranslationError(
                f"G{format_float(non_modal[0], 1)} is not supported while the bed is extended",
                line_number,
            )
        if 92.0 in g_codes and y_values:
            state.y = state.gantry = y_values[0] * state.units
        return raw

    if not y_values:
        if state.motion in (2.0, 3.0) and abs(state.bed) > _EPS:
            raise MotionTranslationError(
                "Arcs are not supported while the bed is extended", line_number
            )
        return raw

    value = y_values[0] * state.units
    target = value if state.absolute else state.y + value
    gantry = min(target, limit)
    bed = target - gantry
    if bed < _EPS:
        bed = 0.0

    if bed == 0.0 and abs(state.bed) <= _EPS:
        state.y = state.gantry = target
        state.bed = 0.0
        return raw

    if state.motion not in (0.0, 1.0):
        raise MotionTranslationError(
            f"Only G0/G1 moves can cross the Y limit ({format_float(limit, TRANSLATE_DECIMALS)} mm)",
            line_number,
        )

    if state.absolute:
        y_out = gantry / state.units
        bed_out = bed / state.units
    else:
        y_out = (gantry - state.gantry) / state.units
        bed_out = (bed - state.bed) / state.units

    bed_word = ""
    if state.absolute or abs(bed_out) > _EPS:
        bed_word = f" {axis}{format_float(bed_out, TRANSLATE_DECIMALS)}"
    rewritten = _rewrite_y(clean, format_float(y_out, TRANSLATE_DECIMALS), bed_word)

    state.y = target
    state.gantry = gantry
    state.bed = bed
    return rewritten


def translate_lines(lines: Iterable[str], config: MotionConfig) -> list[str]:
    """Rewrite Y moves past the gantry limit onto the bed axis.

    Preserves line count and order; non-motion lines are untouched.

    Raises:
        MotionTranslationError: For moves that cannot be split (arcs, probes,
            coordinate-setting commands while the bed is extended) or programs
            that already use the bed axis letter
    """
    lines = list(lines)
    if config.y_limit is None:
        return lines

    state = _TranslateState()
    limit = config.y_limit
    axis = config.bed_axis
    return [
        _translate_line(raw, index + 1, state, limit, axis)
        for index, raw in enumerate(lines)
    ]
