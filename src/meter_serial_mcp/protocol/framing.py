"""Message frame builder and parser for the meter's serial protocol.

Frame layout::

    +-----+-------------+-----+--------------+-----+----------+
    | SOH |   Header    | STX |   Payload    | ETX | Checksum |
    | 01  | e.g. "R1"   | 02  | (optional)   | 03  |  1 byte  |
    +-----+-------------+-----+--------------+-----+----------+

- STX and the payload are omitted together when there is no payload.
- Checksum: XOR of every byte after SOH up to and including ETX.
- A bare ACK (0x06) is sent by the meter instead of a frame to confirm
  simple requests.

Raw commands (identification, mode switch) are not framed at all: the
command text is followed by CRLF and carries no checksum.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.checksum import checksum
from .errors import ChecksumError, FramingError, LengthMismatchError, OrderingError

SOH = 0x01  # start of header
STX = 0x02  # start of text
ETX = 0x03  # end of text
ACK = 0x06
CRLF = b"\r\n"

# Header/payload text ends at the first byte below this value
TEXT_THRESHOLD = 0x10

# Protocol text is 7-bit ASCII; latin-1 keeps a strict byte-per-char mapping
ENCODING = "latin-1"


@dataclass
class Response:
    """A parsed meter response."""

    header: str | None = None
    payload: str | None = None
    ack: bool = False

    def __repr__(self) -> str:
        return (
            f"Response(header={self.header!r}, payload={self.payload!r}, "
            f"ack={self.ack})"
        )


def _to_bytes(text: str | bytes) -> bytes:
    if isinstance(text, bytes):
        return text
    return text.encode(ENCODING)


def build_frame(header: str, payload: str | None = None) -> bytes:
    """Build a checksummed frame.

    Args:
        header: Two-character header token, e.g. ``"P1"``.
        payload: Optional payload text. ``None`` omits STX and payload.

    Returns:
        The complete frame, including the trailing checksum byte.
    """
    body = bytes([SOH]) + _to_bytes(header)
    if payload is not None:
        body += bytes([STX]) + _to_bytes(payload)
    body += bytes([ETX])
    # SOH is excluded from the checksum
    return body + bytes([checksum(body, 1)])


def build_raw_command(command: str | bytes) -> bytes:
    """Build an unframed command terminated by CRLF."""
    return _to_bytes(command) + CRLF


def _read_text(data: bytes, offset: int) -> tuple[str, int]:
    """Collect text from ``offset`` until a control byte or the end.

    Returns the text and the position of the terminating byte.
    """
    end = offset
    while end < len(data) and data[end] >= TEXT_THRESHOLD:
        end += 1
    return data[offset:end].decode(ENCODING), end


def parse_frame(data: bytes) -> Response:
    """Parse a raw response buffer into a :class:`Response`.

    Args:
        data: Every byte collected for one response.

    Returns:
        A ``Response`` with the fields found in the buffer. An empty
        buffer yields an empty ``Response``.

    Raises:
        FramingError: An unknown control character was encountered.
        LengthMismatchError: ETX is not followed by exactly one check byte.
        ChecksumError: The check byte does not match.
        OrderingError: ACK is not the first byte.
    """
    res = Response()
    pos = 0
    while pos < len(data):
        byte = data[pos]
        if byte == SOH:
            res.header, pos = _read_text(data, pos + 1)
        elif byte == STX:
            res.payload, pos = _read_text(data, pos + 1)
        elif byte == ETX:
            pos += 1
            if pos != len(data) - 1:
                raise LengthMismatchError(expected=pos + 1, actual=len(data))
            received = data[pos]
            calculated = checksum(data, 1, pos)
            if received != calculated:
                raise ChecksumError(expected=received, calculated=calculated)
            pos += 1
        elif byte == ACK:
            if pos != 0:
                raise OrderingError(pos)
            res.ack = True
            pos += 1
        else:
            raise FramingError(byte, pos)
    return res
