"""
Shared test doubles for GRBL Engine.

FakeSerial stands in for ``serial.Serial``: it records every write, answers
through an optional responder callback, and returns ``b""`` when nothing is
queued before its timeout, the same way pyserial does.
"""

import threading

import pytest

from grbl_engine.connection import Connection, SharedConnection
from grbl_engine.utils.config import Settings

IDLE_REPORT = b"<Idle|MPos:0.000,0.000,0.000|FS:0,0>\r\n"


class FakeSerial:
    def __init__(self, responder=None):
        self.is_open = True
        self.timeout = 0.1
        self.writes = []
        self.responder = responder
        self.interleaved = 0
        self._rx = bytearray()
        self._cond = threading.Condition()

    @property
    def written(self):
        return b"".join(self.writes)

    def lines_written(self):
        return [w[:-2].decode() for w in self.writes if w.endswith(b"\r\n")]

    def write(self, data):
        data = bytes(data)
        with self._cond:
            # an unread status reply means a poll exchange is still in flight
            if b"<" in self._rx:
                self.interleaved += 1
            self.writes.append(data)
        if self.responder is not None:
            reply = self.responder(data)
            if reply:
                self.feed(reply)
        return len(data)

    def flush(self):
        pass

    def feed(self, data):
        with self._cond:
            self._rx.extend(data)
            self._cond.notify_all()

    @property
    def in_waiting(self):
        with self._cond:
            return len(self._rx)

    def reset_input_buffer(self):
        with self._cond:
            self._rx.clear()

    def read(self, size=1):
        with self._cond:
            if not self._rx:
                self._cond.wait(self.timeout)
            if not self._rx:
                return b""
            out = bytes(self._rx[:size])
            del self._rx[:size]
            return out

    def close(self):
        self.is_open = False


def grbl_responder(error_on=None, status=IDLE_REPORT):
    """Answer ``?`` with a status report and every line with ``ok``.

    ``error_on`` maps a 1-based line number to the reply sent instead of ok.
    """
    error_on = error_on or {}
    count = {"lines": 0}

    def respond(data):
        if data == b"?":
            return status
        if data.endswith(b"\r\n"):
            count["lines"] += 1
            reply = error_on.get(count["lines"], "ok")
            return reply.encode() + b"\r\n"
        return None

    return respond


@pytest.fixture
def fake_serial():
    return FakeSerial(grbl_responder())


@pytest.fixture
def connection(fake_serial):
    return Connection(fake_serial, "/dev/ttyFAKE0")


@pytest.fixture
def shared(connection):
    return SharedConnection(connection, workers=2)


@pytest.fixture
def settings(tmp_path):
    s = Settings(str(tmp_path / "settings.json"))
    s.set("status_poll_interval", 0.05)
    s.set("status_read_timeout", 0.04)
    s.set("hold_poll_interval", 0.01)
    s.set("line_response_timeout", 1.0)
    s.set("probe_response_timeout", 1.0)
    return s
