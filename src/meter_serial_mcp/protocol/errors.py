"""Exceptions raised while decoding meter responses."""

from __future__ import annotations


class MeterProtocolError(ValueError):
    """Base class for malformed or unexpected meter data."""


class FramingError(MeterProtocolError):
    """A byte that is not a known control character was found."""

    def __init__(self, byte: int, position: int) -> None:
        self.byte = byte
        self.position = position
        super().__init__(
            f"Unknown control character 0x{byte:02X} ({chr(byte)!r}) "
            f"at position {position}"
        )


class LengthMismatchError(MeterProtocolError):
    """ETX was not followed by exactly one check byte at the end."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Length of response wrong. Expected {expected} but got {actual}"
        )


class ChecksumError(MeterProtocolError):
    """The transmitted check byte does not match the computed one."""

    def __init__(self, expected: int, calculated: int) -> None:
        self.expected = expected
        self.calculated = calculated
        super().__init__(
            f"Checksum does not match: received 0x{expected:02X} "
            f"but calculated 0x{calculated:02X}"
        )


class OrderingError(MeterProtocolError):
    """ACK appeared somewhere other than the first byte."""

    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__(
            f"ACK received at position {position}, expected only at position 0"
        )


class NumericParseError(MeterProtocolError):
    """A register value could not be read as a decimal number."""

    def __init__(self, raw_text: str) -> None:
        self.raw_text = raw_text
        super().__init__(f"Register value is not a decimal number: {raw_text!r}")


class TransportTimeout(TimeoutError):
    """No byte arrived from the meter before the response deadline."""
