"""Serial connection to the meter's optical/RS-485 interface.

The meter never announces the length of a response, so the end of a
response is detected by silence: bytes are read one at a time and the
first read timeout after at least one byte closes the frame. The
inter-byte timeout is therefore load-bearing. If it is shorter than the
pauses a slow meter makes mid-response, frames are cut short and fail to
parse. Tune ``LinkSettings.read_timeout`` to the link, not the other way
around.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

import serial

from ..protocol.errors import TransportTimeout

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
READ_TIMEOUT_S = 0.1
RESPONSE_TIMEOUT_S = 2.0


@dataclass
class LinkSettings:
    """Line configuration. The defaults are what the meter expects."""

    baudrate: int = 9600
    bytesize: int = serial.SEVENBITS
    parity: str = serial.PARITY_EVEN
    stopbits: float = serial.STOPBITS_ONE
    read_timeout: float = READ_TIMEOUT_S


class Transport(Protocol):
    """What :class:`~meter_serial_mcp.session.MeterSession` needs from a link."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def write(self, data: bytes) -> int: ...

    def read_frame(self) -> bytes: ...


def collect_frame(
    read_byte: Callable[[], int | None],
    response_timeout: float | None = RESPONSE_TIMEOUT_S,
    clock: Callable[[], float] = time.monotonic,
) -> bytes:
    """Read bytes until the line goes quiet after at least one byte.

    Args:
        read_byte: Returns the next byte, or ``None`` when a read timed out.
        response_timeout: Seconds to wait for the first byte. ``None``
            waits forever.
        clock: Monotonic time source.

    Returns:
        The bytes collected for one response.

    Raises:
        TransportTimeout: No byte arrived within ``response_timeout``.
    """
    buffer = bytearray()
    deadline = None if response_timeout is None else clock() + response_timeout
    while True:
        byte = read_byte()
        if byte is not None:
            buffer.append(byte)
            continue
        if buffer:
            return bytes(buffer)
        if deadline is not None and clock() >= deadline:
            raise TransportTimeout(
                f"No response from meter within {response_timeout:.2f}s"
            )


class SerialConnection:
    """Manages the serial line to the meter.

    Usage::

        conn = SerialConnection("/dev/ttyUSB0")
        conn.open()
        conn.write(frame_bytes)
        response = conn.read_frame()
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        settings: LinkSettings | None = None,
        response_timeout: float | None = RESPONSE_TIMEOUT_S,
    ) -> None:
        self._port = port
        self._settings = settings or LinkSettings()
        self._response_timeout = response_timeout
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def settings(self) -> LinkSettings:
        return self._settings

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self) -> None:
        """Open the serial port, closing a previously open one first.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        self.close()
        s = self._settings
        try:
            self._serial = serial.Serial(
                port=self._port,
                baudrate=s.baudrate,
                bytesize=s.bytesize,
                parity=s.parity,
                stopbits=s.stopbits,
                timeout=s.read_timeout,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open serial port {self._port} "
                f"({s.baudrate} {s.bytesize}{s.parity}{s.stopbits}): {e}"
            ) from e

        logger.info(
            "Opened %s at %d baud %d%s%s",
            self._port, s.baudrate, s.bytesize, s.parity, s.stopbits,
        )

    def close(self) -> None:
        """Close the serial port. Safe to call when already closed."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def _require_open(self) -> serial.Serial:
        if not self.connected:
            raise ConnectionError(f"Serial port {self._port} is not open")
        return self._serial

    def write(self, data: bytes) -> int:
        """Write raw bytes and wait until they are sent.

        Raises:
            ConnectionError: If not connected.
        """
        port = self._require_open()
        logger.debug(">>> %s", data.hex(" "))
        written = port.write(data)
        port.flush()
        return written

    def read_byte(self) -> int | None:
        """Read one byte, or return ``None`` if the read timed out."""
        data = self._require_open().read(1)
        if not data:
            return None
        return data[0]

    def read_frame(self) -> bytes:
        """Read one complete response, delimited by line silence.

        Raises:
            ConnectionError: If not connected.
            TransportTimeout: If the meter did not start answering in time.
        """
        self._require_open()
        data = collect_frame(self.read_byte, self._response_timeout)
        logger.debug("<<< %s", data.hex(" "))
        return data
