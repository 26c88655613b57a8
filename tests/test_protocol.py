"""
Test command encoding, status-report parsing and response classification.
"""

import pytest

from grbl_engine.commands import Home, Jog, ProbeZ, RawLine, RealtimeCommand, Unlock
from grbl_engine.status import (
    MachineState,
    MachineStatus,
    Overrides,
    Position,
    is_status_report,
    parse_status_report,
)
from grbl_engine.utils.exceptions import InvalidParameterError, StatusParseError
from grbl_engine.utils.grbl_errors import (
    annotate_grbl_message,
    is_ack,
    is_ok,
    parse_alarm_code,
    parse_error_code,
)


class TestCommands:
    """Test line and realtime command encoding"""

    def test_line_commands(self):
        assert Jog("G21G91X10F500").to_line() == "$J=G21G91X10F500"
        assert Home().to_line() == "$H"
        assert Unlock().to_line() == "$X"
        assert str(RawLine("  G0 X1  ")) == "G0 X1"

    def test_probe_z_format(self):
        assert ProbeZ(10.0, 50.0).to_line() == "G38.2 Z-10.0000 F50.0000"
        assert ProbeZ(2.5, 100).to_line() == "G38.2 Z-2.5000 F100.0000"

    @pytest.mark.parametrize("distance,feed", [(0, 50), (-5, 50), (10, 0), (10, "fast")])
    def test_probe_z_rejects_bad_values(self, distance, feed):
        with pytest.raises(InvalidParameterError):
            ProbeZ(distance, feed).to_line()

    def test_jog_rejects_line_breaks(self):
        with pytest.raises(InvalidParameterError):
            Jog("X10\r\nG0 Z-50").to_line()

    def test_realtime_bytes(self):
        assert RealtimeCommand.STATUS_REPORT.to_bytes() == b"?"
        assert RealtimeCommand.FEED_HOLD.to_bytes() == b"!"
        assert RealtimeCommand.CYCLE_START.to_bytes() == b"~"
        assert RealtimeCommand.SOFT_RESET.to_bytes() == b"\x18"
        assert RealtimeCommand.JOG_CANCEL.to_bytes() == b"\x85"
        assert RealtimeCommand.SAFETY_DOOR.to_bytes() == b"\x84"
        assert RealtimeCommand.FEED_OVR_RESET.as_byte() == 0x90


class TestStatusParsing:
    """Test status report decoding"""

    def test_is_status_report(self):
        assert is_status_report("<Idle|MPos:0,0,0>")
        assert not is_status_report("ok")
        assert not is_status_report("[MSG:Caution: Unlocked]")

    def test_idle_with_mpos_and_wco(self):
        status = parse_status_report(
            "<Idle|MPos:10.000,5.000,-2.500|Bf:35,1023|FS:0,0|WCO:1.000,1.000,-5.000>"
        )
        assert status.state == MachineState.IDLE
        assert status.machine_position == Position(10.0, 5.0, -2.5)
        assert status.work_position == Position(9.0, 4.0, 2.5)
        assert status.planner_blocks_free == 35
        assert status.rx_bytes_free == 1023

    def test_wpos_without_offset(self):
        status = parse_status_report("<Run|WPos:1.5,2.5,3.5|FS:1200,18000>")
        assert status.state == MachineState.RUN
        assert status.work_position == Position(1.5, 2.5, 3.5)
        assert status.machine_position == status.work_position
        assert status.feed_rate == 1200
        assert status.spindle_speed == 18000

    def test_last_offset_used_when_wco_absent(self):
        status = parse_status_report(
            "<Jog|MPos:10.000,0.000,0.000|FS:500,0>",
            last_work_offset=Position(2.0, 0.0, 0.0),
        )
        assert status.work_position.x == pytest.approx(8.0)

    def test_hold_sub_state_and_overrides(self):
        status = parse_status_report("<Hold:0|MPos:0,0,0|FS:0,0|Ov:100,50,120|Pn:PZ>")
        assert status.state == MachineState.HOLD
        assert status.sub_state == 0
        assert status.is_hold
        assert status.overrides == Overrides(100, 50, 120)
        assert status.pins == "PZ"

    def test_door_counts_as_hold(self):
        assert parse_status_report("<Door:1|MPos:0,0,0>").is_hold

    def test_four_axis_position(self):
        status = parse_status_report("<Idle|MPos:1,2,3,40|FS:0,0>")
        assert status.machine_position.a == 40.0

    @pytest.mark.parametrize(
        "line",
        [
            "ok",
            "<Idle>",
            "<Idle|MPos:1.0,abc,3.0>",
            "<Idle|MPos:1.0,2.0>",
            "<Flying|MPos:0,0,0>",
            "<Idle|MPos:0,0,0",
            "<Idle|FS:0,0|WCO:1,2,3>",
        ],
    )
    def test_malformed_reports_raise(self, line):
        with pytest.raises(StatusParseError) as exc_info:
            parse_status_report(line)
        assert exc_info.value.line == line

    def test_default_status_is_idle_at_origin(self):
        status = MachineStatus.idle()
        assert status.state == MachineState.IDLE
        assert status.work_position == Position()
        assert not status.is_hold


class TestResponses:
    """Test ok / error / alarm classification"""

    def test_classification(self):
        assert is_ok("ok")
        assert is_ok(" OK ")
        assert not is_ok("error:20")
        assert parse_error_code("error:20") == 20
        assert parse_error_code("ok") is None
        assert parse_alarm_code("ALARM:9") == 9
        assert parse_alarm_code("error:9") is None
        assert is_ack("ok") and is_ack("error:3") and is_ack("ALARM:1")
        assert not is_ack("[PRB:0.000,0.000,-1.000:1]")
        assert not is_ack("<Idle|MPos:0,0,0>")

    def test_annotation(self):
        assert annotate_grbl_message("error:20") == "error:20 (Unsupported or invalid g-code.)"
        assert annotate_grbl_message("ok") == "ok"
