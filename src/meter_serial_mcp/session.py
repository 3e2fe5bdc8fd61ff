"""Request/response session with one meter.

The protocol is half-duplex over a single line, so every exchange holds
the session lock from the first written byte until the response has been
read. The session does not enforce call order: registers can be read
before login or a mode switch, exactly as the meter allows.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum

from .models.reading import MeterReading
from .protocol.commands import (
    DEFAULT_PASSWORD,
    Header,
    Register,
    build_identify,
    build_login,
    build_logout,
    build_read_register,
    build_set_mode,
    resolve_register,
)
from .protocol.framing import ENCODING, Response, parse_frame
from .protocol.parser import extract_value, scale_register
from .transport.serial_connection import Transport

logger = logging.getLogger(__name__)

UNKNOWN_METER_ID = "unknown"


class MeterMode(str, Enum):
    READ = "read"
    PROGRAM = "program"


class MeterSession:
    """A connected meter.

    Constructing a session opens the transport and identifies the meter.

    Usage::

        with MeterSession(SerialConnection("/dev/ttyUSB0")) as meter:
            meter.set_mode(program=True)
            if meter.login():
                print(meter.get_voltage())
            meter.logout()
    """

    def __init__(self, transport: Transport, password: str = DEFAULT_PASSWORD) -> None:
        self._transport = transport
        self._password = password
        self._lock = threading.RLock()

        self.meter_id: str = UNKNOWN_METER_ID
        self.mode: MeterMode | None = None
        self.logged_in = False

        self.connect()
        self.identify()

    def __enter__(self) -> MeterSession:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.disconnect()
        return False

    @property
    def transport(self) -> Transport:
        return self._transport

    # ─── Connection ──────────────────────────────────────────────────

    def connect(self) -> None:
        """(Re)open the transport. Any open connection is closed first."""
        with self._lock:
            self._transport.open()
            self.mode = None
            self.logged_in = False

    reconnect = connect

    def disconnect(self) -> None:
        """Close the transport and forget the session state."""
        with self._lock:
            self._transport.close()
            self.meter_id = UNKNOWN_METER_ID
            self.mode = None
            self.logged_in = False
            logger.info("Disconnected from meter")

    # ─── Wire exchanges ──────────────────────────────────────────────

    def _exchange(self, request: bytes) -> bytes:
        with self._lock:
            self._transport.write(request)
            return self._transport.read_frame()

    def _request(self, request: bytes) -> Response:
        return parse_frame(self._exchange(request))

    def identify(self) -> str:
        """Ask the meter for its identification string."""
        with self._lock:
            raw = self._exchange(build_identify())
            self.meter_id = raw.decode(ENCODING)
            logger.info("Meter identified as %r", self.meter_id)
            return self.meter_id

    def set_mode(self, program: bool) -> bool:
        """Switch between read and programming mode.

        Returns:
            ``True`` if the meter answered with a password request,
            which is how it confirms the switch.
        """
        with self._lock:
            res = self._request(build_set_mode(program))
            ok = res.header == Header.REQUIRES_PASSWORD
            mode = MeterMode.PROGRAM if program else MeterMode.READ
            if ok:
                self.mode = mode
                logger.info("Meter switched to %s mode", mode.value)
            else:
                logger.warning(
                    "Meter did not confirm %s mode (header=%r)", mode.value, res.header
                )
            return ok

    def login(self) -> bool:
        """Send the password.

        Returns:
            ``True`` if the meter acknowledged the password. A rejection is
            not an error; callers must check the result.
        """
        with self._lock:
            res = self._request(build_login(self._password))
            if res.ack:
                self.logged_in = True
                logger.info("Login accepted")
            else:
                logger.warning("Meter did not accept password (header=%r)", res.header)
            return res.ack

    def logout(self) -> None:
        """Tell the meter to drop the password.

        The meter's answer, if any, is not read, so a failed logout goes
        unnoticed.
        """
        with self._lock:
            self._transport.write(build_logout())
            self.logged_in = False

    def read_register(self, register: int | str) -> str:
        """Read a register and return the text between its parentheses.

        Args:
            register: Register code, or a name from :class:`Register`.

        Returns:
            The value text, or the whole payload if it has no parentheses.
        """
        number = resolve_register(register)
        with self._lock:
            res = self._request(build_read_register(number))
        if res.payload is None:
            logger.warning("Register %d response has no payload: %r", number, res)
            return ""
        return extract_value(res.payload)

    def _read_scaled(self, register: Register) -> float:
        with self._lock:
            return scale_register(register, self.read_register(register))

    # ─── Register interpretation ─────────────────────────────────────

    def get_voltage(self) -> float:
        """Voltage in V."""
        return self._read_scaled(Register.VOLTAGE)

    def get_current(self) -> float:
        """Current in A."""
        return self._read_scaled(Register.CURRENT)

    def get_frequency(self) -> float:
        """Frequency in Hz."""
        return self._read_scaled(Register.FREQUENCY)

    def get_power(self) -> float:
        """Active power in W."""
        return self._read_scaled(Register.ACTIVE_POWER)

    def get_va(self) -> float:
        """Reactive power in var."""
        return self._read_scaled(Register.REACTIVE_POWER)

    def get_consumption(self) -> float:
        """Total energy as reported by the meter."""
        return self._read_scaled(Register.TOTAL_ENERGY)

    def read_all(self) -> MeterReading:
        """Read every scaled register in one locked pass."""
        with self._lock:
            return MeterReading(
                voltage=self.get_voltage(),
                current=self.get_current(),
                frequency=self.get_frequency(),
                power=self.get_power(),
                reactive_power=self.get_va(),
                consumption=self.get_consumption(),
            )
