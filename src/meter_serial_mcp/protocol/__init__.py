"""Protocol layer: message framing, checksum, command builders, and value decoding."""

from .framing import Response, build_frame, build_raw_command, parse_frame
from .commands import Header, Register
from .errors import (
    ChecksumError,
    FramingError,
    LengthMismatchError,
    MeterProtocolError,
    NumericParseError,
    OrderingError,
    TransportTimeout,
)
