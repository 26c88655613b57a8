"""
Test settings persistence, machine profiles and the command-line entry.
"""

import json
from unittest.mock import patch

import pytest

from grbl_engine.cli import build_parser, format_status, main
from grbl_engine.connection import PortInfo
from grbl_engine.profiles import (
    MachineProfile,
    ToolEntry,
    WorkArea,
    load_profile,
    save_profile,
)
from grbl_engine.status import MachineStatus, Position
from grbl_engine.utils.config import DEFAULT_SETTINGS, Settings
from grbl_engine.utils.exceptions import (
    SettingsLoadError,
    SettingsValidationError,
)


class TestSettings:
    """Test settings load / save / validate"""

    def test_missing_file_keeps_defaults(self, tmp_path):
        settings = Settings(str(tmp_path / "none.json"))
        assert settings.load() is False
        assert settings.get("baud_rate") == DEFAULT_SETTINGS["baud_rate"]
        assert settings.validate()

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "settings.json"
        settings = Settings(str(path))
        settings.set("motion.y_limit", 600.0)
        settings.set("last_port", "/dev/ttyUSB0")
        settings.save()

        reloaded = Settings(str(path))
        assert reloaded.load() is True
        assert reloaded.get("motion.y_limit") == 600.0
        assert reloaded.get("motion.bed_axis") == "A"
        assert reloaded.get("last_port") == "/dev/ttyUSB0"

    def test_partial_file_merged_with_defaults(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"motion": {"y_limit": 500}}))
        settings = Settings(str(path))
        settings.load()
        assert settings.get("motion.y_limit") == 500
        assert settings.get("motion.bed_axis") == "A"
        assert settings.get("status_poll_interval") == DEFAULT_SETTINGS["status_poll_interval"]

    def test_save_keeps_backup(self, tmp_path):
        path = tmp_path / "settings.json"
        settings = Settings(str(path))
        settings.save()
        settings.set("baud_rate", 230400)
        settings.save()
        backup = json.loads((tmp_path / "settings.json.bak").read_text())
        assert backup["baud_rate"] == 115200

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")
        with pytest.raises(SettingsLoadError):
            Settings(str(path)).load()

    @pytest.mark.parametrize(
        "key,value",
        [
            ("baud_rate", 1234),
            ("status_read_timeout", 0.5),
            ("motion.y_limit", -10),
            ("motion.bed_axis", "Q"),
            ("io_workers", 0),
        ],
    )
    def test_validation_failures(self, tmp_path, key, value):
        settings = Settings(str(tmp_path / "settings.json"))
        settings.set(key, value)
        with pytest.raises(SettingsValidationError):
            settings.validate()


class TestProfiles:
    """Test machine profiles"""

    def test_proverxl_preset(self):
        profile = MachineProfile.proverxl_4030()
        assert profile.name == "PROVerXL 4030"
        assert profile.work_area == WorkArea(609.6, 609.6, 609.6)
        assert profile.steps_per_mm.x == 80.0
        assert profile.steps_per_mm.a is None
        assert profile.tools == []

    def test_tool_lookup(self):
        profile = MachineProfile.proverxl_4030()
        profile.tools.append(ToolEntry(1, "6mm endmill", 45.2))
        assert profile.tool(1).description == "6mm endmill"
        assert profile.tool(1).length_offset_mm == 45.2
        assert profile.tool(2) is None

    def test_contains(self):
        profile = MachineProfile.proverxl_4030()
        assert profile.contains(Position(-300.0, -600.0, -10.0))
        assert not profile.contains(Position(-300.0, -700.0, -10.0))

    def test_json_file_roundtrip(self, tmp_path):
        profile = MachineProfile.proverxl_4030()
        profile.tools.append(ToolEntry(3, "V-bit"))
        path = tmp_path / "profile.json"
        save_profile(profile, path)
        loaded = load_profile(path)
        assert loaded == profile

    def test_malformed_profile(self):
        with pytest.raises(SettingsValidationError):
            MachineProfile.from_dict({"name": "no area"})


class TestCli:
    """Test argument parsing and output"""

    def test_run_arguments(self):
        args = build_parser().parse_args(
            ["run", "part.nc", "--port", "/dev/ttyUSB0", "--y-limit", "600", "--bed-axis", "b"]
        )
        assert args.file == "part.nc"
        assert args.port == "/dev/ttyUSB0"
        assert args.y_limit == 600.0
        assert args.bed_axis == "B"

    def test_format_status(self):
        status = MachineStatus.idle()
        assert format_status(status).startswith("Idle  WPos X0.000 Y0.000 Z0.000")

    def test_ports_command(self, tmp_path, capsys):
        ports = [PortInfo("/dev/ttyUSB0", "/dev/ttyUSB0 (USB 1A86:7523)")]
        with patch("grbl_engine.cli.list_ports", return_value=ports), \
                patch("grbl_engine.cli.setup_logging"):
            code = main(["--settings", str(tmp_path / "s.json"), "ports"])
        assert code == 0
        assert "/dev/ttyUSB0 (USB 1A86:7523)" in capsys.readouterr().out
