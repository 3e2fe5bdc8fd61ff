"""Tests for the meter session against a scripted transport."""

import contextlib
import threading
import time

import pytest

from meter_serial_mcp.models.reading import MeterReading
from meter_serial_mcp.protocol.errors import (
    ChecksumError,
    NumericParseError,
    TransportTimeout,
)
from meter_serial_mcp.protocol.framing import build_frame
from meter_serial_mcp.session import MeterMode, MeterSession

METER_ID = b"/ABC5\\@V9.21\r\n"
ACK = b"\x06"
P0 = bytes([0x01, 0x50, 0x30, 0x03, 0x50 ^ 0x30 ^ 0x03])


def register_reply(value: str) -> bytes:
    """A meter answer carrying ``value`` in parentheses."""
    return build_frame("R1", f"({value})")


class FakeTransport:
    """Records writes and replays scripted responses."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.written: list[bytes] = []
        self.open_count = 0
        self.close_count = 0
        self.is_open = False

    def queue(self, *responses):
        self.responses.extend(responses)

    def open(self):
        self.open_count += 1
        self.is_open = True

    def close(self):
        self.close_count += 1
        self.is_open = False

    def write(self, data):
        self.written.append(bytes(data))
        return len(data)

    def read_frame(self):
        if not self.responses:
            raise TransportTimeout("no scripted response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def transport():
    return FakeTransport([METER_ID])


@pytest.fixture
def meter(transport):
    return MeterSession(transport)


def test_construction_connects_and_identifies(transport, meter):
    """Creating a session opens the link and asks for the meter ID."""
    assert transport.open_count == 1
    assert transport.written == [b"/?!\r\n"]
    assert meter.meter_id == METER_ID.decode("latin-1")
    assert meter.mode is None
    assert meter.logged_in is False


def test_identify_timeout_propagates():
    """A silent meter is reported, not swallowed."""
    with pytest.raises(TransportTimeout):
        MeterSession(FakeTransport())


def test_login_rejected(transport, meter):
    """A P0 answer to the password is a rejection, not an error."""
    transport.queue(P0)
    assert meter.login() is False
    assert meter.logged_in is False
    assert transport.written[-1] == b"\x01P1\x02(00000000)\x03\x61"


def test_login_accepted(transport, meter):
    """A bare ACK accepts the password."""
    transport.queue(ACK)
    assert meter.login() is True
    assert meter.logged_in is True


def test_login_custom_password():
    transport = FakeTransport([METER_ID, ACK])
    meter = MeterSession(transport, password="(12345678)")
    assert meter.login() is True
    assert b"(12345678)" in transport.written[-1]


def test_login_corrupt_answer_raises(transport, meter):
    bad = bytearray(P0)
    bad[-1] ^= 0xFF
    transport.queue(bytes(bad))
    with pytest.raises(ChecksumError):
        meter.login()


def test_logout_does_not_read(transport, meter):
    """Logout only writes the exit frame."""
    transport.queue(ACK)
    meter.login()
    meter.logout()
    assert transport.written[-1] == build_frame("B0")
    assert meter.logged_in is False
    # The queued responses are untouched by logout
    assert transport.responses == []


def test_set_mode_program_confirmed(transport, meter):
    """The meter confirms the mode switch by asking for the password."""
    transport.queue(P0)
    assert meter.set_mode(True) is True
    assert transport.written[-1] == b"\x060:1\r\n"
    assert meter.mode is MeterMode.PROGRAM


def test_set_mode_read(transport, meter):
    transport.queue(P0)
    assert meter.set_mode(False) is True
    assert transport.written[-1] == b"\x060:0\r\n"
    assert meter.mode is MeterMode.READ


def test_set_mode_not_confirmed(transport, meter):
    """Any other answer, including a bare ACK, is a soft failure."""
    transport.queue(ACK, build_frame("B0"))
    assert meter.set_mode(True) is False
    assert meter.set_mode(True) is False
    assert meter.mode is None


def test_read_register_extracts_value(transport, meter):
    transport.queue(build_frame("R1", "00385(1234.56)"))
    assert meter.read_register(0x36) == "1234.56"
    assert transport.written[-1] == build_frame("R1", "00000054()")


def test_read_register_by_name(transport, meter):
    transport.queue(register_reply("2305"))
    assert meter.read_register("voltage") == "2305"
    assert transport.written[-1] == build_frame("R1", "00000000()")


def test_read_register_fallback(transport, meter):
    """A payload without parentheses is returned verbatim."""
    transport.queue(build_frame("R1", "ERR"))
    assert meter.read_register(1) == "ERR"


def test_read_register_without_payload(transport, meter):
    transport.queue(ACK)
    assert meter.read_register(1) == ""


def test_read_register_before_login_is_allowed(transport, meter):
    """No state guard: registers can be read right after identification."""
    transport.queue(register_reply("500"))
    assert meter.get_frequency() == pytest.approx(50.0)


def test_scaled_getters(transport, meter):
    transport.queue(
        register_reply("2305"),
        register_reply("0052"),
        register_reply("00123"),
        register_reply("00050"),
        register_reply("1500"),
    )
    assert meter.get_voltage() == pytest.approx(230.5)
    assert meter.get_current() == pytest.approx(5.2)
    assert meter.get_power() == pytest.approx(1230.0)
    assert meter.get_va() == pytest.approx(500.0)
    assert meter.get_consumption() == pytest.approx(1500)
    payloads = [w[4:14] for w in transport.written[1:]]
    assert payloads == [
        b"00000000()",
        b"00000001()",
        b"00000003()",
        b"00000004()",
        b"00000016()",
    ]


def test_non_numeric_register_raises(transport, meter):
    transport.queue(build_frame("R1", "ERR"))
    with pytest.raises(NumericParseError):
        meter.get_voltage()


def test_read_all(transport, meter):
    transport.queue(
        register_reply("2305"),
        register_reply("0052"),
        register_reply("500"),
        register_reply("00123"),
        register_reply("00050"),
        register_reply("1500"),
    )
    reading = meter.read_all()
    assert isinstance(reading, MeterReading)
    assert reading.voltage == pytest.approx(230.5)
    assert reading.current == pytest.approx(5.2)
    assert reading.frequency == pytest.approx(50.0)
    assert reading.power == pytest.approx(1230.0)
    assert reading.reactive_power == pytest.approx(500.0)
    assert reading.consumption == pytest.approx(1500)
    assert reading.to_dict()["voltage"] == pytest.approx(230.5)


def test_disconnect_resets_state(transport, meter):
    transport.queue(ACK)
    meter.login()
    meter.disconnect()
    assert transport.close_count == 1
    assert meter.logged_in is False
    assert meter.meter_id == "unknown"


def test_reconnect_reopens(transport, meter):
    meter.disconnect()
    meter.reconnect()
    assert transport.open_count == 2
    assert transport.is_open


def test_context_manager_disconnects(transport):
    with MeterSession(transport) as meter:
        assert meter.meter_id
    assert transport.close_count == 1


class SlowTracingTransport(FakeTransport):
    """Logs writes and reads, pausing mid-exchange so other callers can run."""

    def __init__(self, events):
        super().__init__()
        self.events = events

    def write(self, data):
        self.events.append("w")
        time.sleep(0.01)
        return super().write(data)

    def read_frame(self):
        self.events.append("r")
        return register_reply("2305")


def _read_voltage_concurrently(meter, callers=8):
    barrier = threading.Barrier(callers)

    def worker():
        barrier.wait()
        meter.get_voltage()

    threads = [threading.Thread(target=worker) for _ in range(callers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_exchanges_are_serialized():
    """Concurrent callers never interleave a write with another's read."""
    events = []
    meter = MeterSession(SlowTracingTransport(events))
    events.clear()

    _read_voltage_concurrently(meter)

    assert events == ["w", "r"] * 8


def test_exchanges_interleave_without_session_lock():
    """The tracing transport does see overlap once the lock is gone."""
    events = []
    meter = MeterSession(SlowTracingTransport(events))
    meter._lock = contextlib.nullcontext()
    events.clear()

    _read_voltage_concurrently(meter)

    assert sorted(events) == ["r"] * 8 + ["w"] * 8
    assert events != ["w", "r"] * 8
