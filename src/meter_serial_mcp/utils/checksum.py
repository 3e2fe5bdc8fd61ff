"""XOR block check character used by the meter frames."""

from __future__ import annotations


def checksum(data: bytes, offset: int = 0, length: int | None = None) -> int:
    """XOR-fold ``data[offset:length]`` into a single byte.

    Note that ``length`` is an end index, not a count: a frame is checked
    with ``checksum(frame, 1, len(frame) - 1)`` to skip the leading SOH and
    the trailing check byte.

    Args:
        data: Raw bytes.
        offset: First index included in the fold.
        length: End index (exclusive). Defaults to ``len(data)``.

    Returns:
        The check byte (0-255).
    """
    if length is None:
        length = len(data)
    cc = 0
    for i in range(offset, length):
        cc ^= data[i]
    return cc
