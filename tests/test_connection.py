"""
Test serial connection handling.

Uses FakeSerial and patched pyserial so no hardware is needed.
"""

import asyncio
import threading
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import serial

from grbl_engine.connection import Connection, SharedConnection, list_ports
from grbl_engine.utils.exceptions import (
    GrblNotConnectedException,
    InvalidParameterError,
    SerialConnectionError,
    SerialException,
    SerialReadError,
    SerialTimeoutError,
    SerialWriteError,
)

from conftest import FakeSerial


class TestConnection:
    """Test single-port reads and writes"""

    def test_send_line_appends_crlf(self, connection, fake_serial):
        connection.send_line("G0 X10")
        assert fake_serial.writes == [b"G0 X10\r\n"]

    def test_send_line_rejects_embedded_newline(self, connection, fake_serial):
        with pytest.raises(InvalidParameterError):
            connection.send_line("G0\nX10")
        assert fake_serial.writes == []

    def test_send_byte_has_no_terminator(self, connection, fake_serial):
        connection.send_byte(0x85)
        connection.send_byte(b"?")
        assert fake_serial.writes == [b"\x85", b"?"]

    def test_send_byte_rejects_multiple_bytes(self, connection):
        with pytest.raises(ValueError):
            connection.send_byte(b"??")

    def test_read_line_strips_cr_and_lf(self):
        fake = FakeSerial()
        fake.feed(b"ok\r\nerror:20\r\n")
        conn = Connection(fake, "/dev/ttyFAKE0")
        assert conn.read_line(0.5) == "ok"
        assert conn.read_line(0.5) == "error:20"

    def test_read_line_timeout_never_returns_partial_line(self):
        fake = FakeSerial()
        fake.feed(b"<Idle|MPos:0.000")
        conn = Connection(fake, "/dev/ttyFAKE0")
        with pytest.raises(SerialTimeoutError) as exc_info:
            conn.read_line(0.05)
        assert exc_info.value.timeout == 0.05

    def test_read_line_timeout_is_a_total_bound(self):
        fake = FakeSerial()
        conn = Connection(fake, "/dev/ttyFAKE0")
        # a byte just before the deadline must not restart the wait
        timer = threading.Timer(0.15, fake.feed, [b"o"])
        timer.start()
        started = time.monotonic()
        with pytest.raises(SerialTimeoutError):
            conn.read_line(0.2)
        assert time.monotonic() - started < 0.3
        timer.join()

    def test_discard_input_drops_unread_bytes(self):
        fake = FakeSerial()
        fake.feed(b"ok\r\n<Idle|MPos:0,0,0>\r\n")
        conn = Connection(fake, "/dev/ttyFAKE0")
        conn.discard_input()
        with pytest.raises(SerialTimeoutError):
            conn.read_line(0.02)

    def test_read_line_with_nothing_pending_times_out(self):
        conn = Connection(FakeSerial(), "/dev/ttyFAKE0")
        with pytest.raises(SerialTimeoutError):
            conn.read_line(0.02)

    def test_read_error_is_wrapped(self, connection, fake_serial):
        def broken_read(size=1):
            raise serial.SerialException("device disconnected")

        fake_serial.read = broken_read
        with pytest.raises(SerialReadError):
            connection.read_line(0.1)

    def test_write_error_is_wrapped(self, connection, fake_serial):
        def broken_write(data):
            raise serial.SerialTimeoutException("write timeout")

        fake_serial.write = broken_write
        with pytest.raises(SerialWriteError):
            connection.send_line("$X")

    def test_write_on_closed_port_fails(self, connection):
        connection.close()
        with pytest.raises(SerialWriteError):
            connection.send_line("$H")

    def test_open_failure_carries_port_and_cause(self):
        cause = serial.SerialException("could not open port: busy")
        with patch("grbl_engine.connection.serial.Serial", side_effect=cause):
            with pytest.raises(SerialConnectionError) as exc_info:
                Connection.open("/dev/ttyUSB9")
        assert exc_info.value.port == "/dev/ttyUSB9"
        assert exc_info.value.cause is cause

    def test_open_uses_8n1(self):
        with patch("grbl_engine.connection.serial.Serial") as mock_serial:
            conn = Connection.open("/dev/ttyUSB0", 115200)
        _, kwargs = mock_serial.call_args
        assert kwargs["baudrate"] == 115200
        assert kwargs["bytesize"] == serial.EIGHTBITS
        assert kwargs["parity"] == serial.PARITY_NONE
        assert kwargs["stopbits"] == serial.STOPBITS_ONE
        assert conn.name == "/dev/ttyUSB0"

    def test_open_rejects_unsupported_baud(self):
        with pytest.raises(InvalidParameterError):
            Connection.open("/dev/ttyUSB0", 12345)


def _port(device, **kwargs):
    fields = dict(vid=None, pid=None, manufacturer=None, product=None,
                  subsystem=None, hwid="n/a", description="n/a")
    fields.update(kwargs)
    return SimpleNamespace(device=device, **fields)


class TestListPorts:
    """Test port discovery titles"""

    def test_titles_by_transport(self):
        ports = [
            _port("/dev/ttyUSB0", vid=0x1A86, pid=0x7523, manufacturer="QinHeng"),
            _port("/dev/ttyS4", subsystem="pci", hwid="PCI:0000:00:16.3"),
            _port("/dev/rfcomm0", hwid="BTHENUM"),
            _port("/dev/ttyS0"),
        ]
        with patch("grbl_engine.connection.serial_list_ports.comports", return_value=ports):
            found = {p.name: p.title for p in list_ports()}

        assert found["/dev/ttyUSB0"] == "/dev/ttyUSB0 (USB 1A86:7523) QinHeng"
        assert found["/dev/ttyS4"] == "/dev/ttyS4 (PCI)"
        assert found["/dev/rfcomm0"] == "/dev/rfcomm0 (Bluetooth)"
        assert found["/dev/ttyS0"] == "/dev/ttyS0"

    def test_sorted_by_device(self):
        ports = [_port("/dev/ttyUSB1"), _port("/dev/ttyACM0")]
        with patch("grbl_engine.connection.serial_list_ports.comports", return_value=ports):
            names = [p.name for p in list_ports()]
        assert names == ["/dev/ttyACM0", "/dev/ttyUSB1"]

    def test_discovery_failure_raises(self):
        with patch(
            "grbl_engine.connection.serial_list_ports.comports",
            side_effect=OSError("no sysfs"),
        ):
            with pytest.raises(SerialException):
                list_ports()


class TestSharedConnection:
    """Test exclusive access to the shared link"""

    @pytest.mark.asyncio
    async def test_exchange_runs_off_loop_thread(self, shared):
        loop_thread = threading.get_ident()
        seen = {}

        def probe(conn):
            seen["thread"] = threading.get_ident()
            seen["name"] = threading.current_thread().name
            return conn.name

        assert await shared.exchange(probe) == "/dev/ttyFAKE0"
        assert seen["thread"] != loop_thread
        assert seen["name"].startswith("GRBL-IO")
        await shared.close()

    @pytest.mark.asyncio
    async def test_exchanges_never_overlap(self, shared):
        active = {"now": 0, "max": 0}
        lock = threading.Lock()

        def slow(conn):
            with lock:
                active["now"] += 1
                active["max"] = max(active["max"], active["now"])
            threading.Event().wait(0.01)
            with lock:
                active["now"] -= 1

        await asyncio.gather(*(shared.exchange(slow) for _ in range(8)))
        assert active["max"] == 1
        await shared.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent_and_blocks_exchanges(self, shared, fake_serial):
        await shared.close()
        await shared.close()
        assert shared.closed
        assert not fake_serial.is_open
        with pytest.raises(GrblNotConnectedException):
            await shared.exchange(lambda conn: conn.send_line("$X"))
