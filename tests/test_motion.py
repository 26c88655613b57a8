"""
Test bed extension motion translation.
"""

import pytest

from grbl_engine.gcode import clean_gcode_line, clean_program, format_float
from grbl_engine.motion import MotionConfig, translate_lines
from grbl_engine.utils.exceptions import InvalidParameterError, MotionTranslationError


PROGRAM = [
    "%",
    "(bed extension test)",
    "G21",
    "G90",
    "G0 X0 Y0",
    "G1 Y700 F1000 ; past the gantry",
    "G1 X10",
    "G1 Y100",
    "M30",
]


class TestMotionConfig:
    """Test motion configuration"""

    def test_defaults_disable_translation(self):
        config = MotionConfig()
        assert not config.enabled
        assert config.bed_axis == "A"

    def test_axis_letter_normalized(self):
        assert MotionConfig(y_limit=600, bed_axis="b").bed_axis == "B"

    @pytest.mark.parametrize("kwargs", [{"y_limit": 0}, {"y_limit": -1}, {"bed_axis": "Z"}])
    def test_invalid_values(self, kwargs):
        with pytest.raises(InvalidParameterError):
            MotionConfig(**kwargs)

    def test_from_settings(self, settings):
        settings.set("motion.y_limit", 450.0)
        settings.set("motion.bed_axis", "B")
        config = MotionConfig.from_settings(settings)
        assert config.y_limit == 450.0
        assert config.bed_axis == "B"

    def test_copy_is_independent(self):
        config = MotionConfig(y_limit=600)
        snapshot = config.copy()
        config.y_limit = 300.0
        assert snapshot.y_limit == 600.0


class TestTranslateLines:
    """Test Y limit rewriting"""

    def test_disabled_returns_lines_unchanged(self):
        assert translate_lines(PROGRAM, MotionConfig()) == PROGRAM

    def test_program_below_limit_unchanged(self):
        lines = ["G90", "G0 Y10", "G1 Y599.9 F500", "G2 X5 Y5 I1 J1"]
        assert translate_lines(lines, MotionConfig(y_limit=600)) == lines

    def test_translating_twice_matches_translating_once(self):
        lines = ["G21", "G91", "G1 Y300 F800", "G1 Y250", "G90", "G0 Y599", "G2 X5 Y5 I1 J1"]
        config = MotionConfig(y_limit=600)
        once = translate_lines(lines, config)
        assert translate_lines(once, config) == once
        assert once == lines

    def test_absolute_moves_split_onto_bed(self):
        out = translate_lines(PROGRAM, MotionConfig(y_limit=600))
        assert len(out) == len(PROGRAM)
        assert out[5] == "G1 Y600 A100 F1000"
        assert out[7] == "G1 Y100 A0"
        # everything else untouched and in order
        for index in (0, 1, 2, 3, 4, 6, 8):
            assert out[index] == PROGRAM[index]

    def test_relative_moves_use_deltas(self):
        lines = ["G91", "G1 Y400", "G1 Y300", "G1 Y-300"]
        out = translate_lines(lines, MotionConfig(y_limit=600, bed_axis="B"))
        assert out == ["G91", "G1 Y400", "G1 Y200 B100", "G1 Y-200 B-100"]

    def test_inch_program_emits_program_units(self):
        out = translate_lines(["G20", "G90", "G0 Y30"], MotionConfig(y_limit=600))
        assert out[2] == "G0 Y23.622 A6.378"

    def test_modal_motion_without_g_word(self):
        out = translate_lines(["G1 F800", "Y650"], MotionConfig(y_limit=600))
        assert out == ["G1 F800", "Y600 A50"]

    def test_program_using_bed_axis_rejected(self):
        with pytest.raises(MotionTranslationError) as exc_info:
            translate_lines(["G0 Y0", "G0 A5"], MotionConfig(y_limit=600))
        assert exc_info.value.line_number == 2

    def test_arc_across_limit_rejected(self):
        with pytest.raises(MotionTranslationError):
            translate_lines(["G0 Y550", "G2 Y650 X0 I0 J50"], MotionConfig(y_limit=600))

    def test_arc_while_extended_rejected(self):
        with pytest.raises(MotionTranslationError):
            translate_lines(["G0 Y700", "G2 X10 I5 J0"], MotionConfig(y_limit=600))

    def test_coordinate_setting_while_extended_rejected(self):
        with pytest.raises(MotionTranslationError):
            translate_lines(["G0 Y700", "G92 Y0"], MotionConfig(y_limit=600))

    def test_g92_resets_tracked_y(self):
        out = translate_lines(["G92 Y500", "G91", "G1 Y50"], MotionConfig(y_limit=600))
        assert out[2] == "G1 Y50"


class TestGcodeCleaning:
    """Test comment stripping and number formatting"""

    def test_clean_line(self):
        assert clean_gcode_line("G1 X1 (comment) Y2 ; tail") == "G1 X1  Y2"
        assert clean_gcode_line("%") == ""
        assert clean_gcode_line("\ufeffG21") == "G21"

    def test_clean_program_drops_blank_lines(self):
        assert clean_program(PROGRAM) == [
            "G21", "G90", "G0 X0 Y0", "G1 Y700 F1000", "G1 X10", "G1 Y100", "M30",
        ]

    def test_format_float(self):
        assert format_float(600.0, 4) == "600"
        assert format_float(-0.00001, 4) == "0"
        assert format_float(1.23456, 4) == "1.2346"
