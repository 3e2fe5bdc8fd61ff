"""Header tokens, command texts, register codes and request builders.

Framed requests carry a two-character header token identifying the
request type. Identification and mode switching are sent as raw,
CRLF-terminated commands instead.
"""

from __future__ import annotations

from enum import IntEnum

from .framing import ACK, build_frame, build_raw_command

DEFAULT_PASSWORD = "(00000000)"


class Header:
    """Two-character header tokens."""

    PASSWORD = "P1"
    EXIT = "B0"
    REQUIRES_PASSWORD = "P0"
    READ_REGISTER = "R1"


class CommandText:
    """Raw command texts."""

    DEVICE_ID = "/?!"
    MODE_READ = "0:0"
    MODE_PROGRAM = "0:1"


class Register(IntEnum):
    """Meter register codes."""

    VOLTAGE = 0
    CURRENT = 1
    FREQUENCY = 2
    ACTIVE_POWER = 3
    REACTIVE_POWER = 4
    TOTAL_ENERGY = 0x10
    TEMPERATURE = 0x32
    METER_ID = 0x36
    PASSWORD = 0x37


# Mapping from human-readable register names to codes
REGISTER_NAME_MAP: dict[str, Register] = {
    reg.name.lower(): reg for reg in Register
}


def resolve_register(register: int | str) -> int:
    """Turn a register name or number into its numeric code.

    Unknown numbers are passed through unchanged so that registers
    outside :class:`Register` can still be read.
    """
    if isinstance(register, str):
        key = register.strip().lower()
        if key in REGISTER_NAME_MAP:
            return int(REGISTER_NAME_MAP[key])
        try:
            register = int(key, 0)
        except ValueError:
            raise ValueError(
                f"Unknown register '{register}'. Valid: {list(REGISTER_NAME_MAP)}"
            ) from None
    if not 0 <= register <= 99_999_999:
        raise ValueError(f"Register number must be 0-99999999, got {register}")
    return int(register)


def build_identify() -> bytes:
    """Build the device identification request ``/?!``."""
    return build_raw_command(CommandText.DEVICE_ID)


def build_login(password: str = DEFAULT_PASSWORD) -> bytes:
    """Build a password frame.

    Args:
        password: Password payload including its parentheses.
    """
    return build_frame(Header.PASSWORD, password)


def build_logout() -> bytes:
    """Build the exit frame (no payload)."""
    return build_frame(Header.EXIT)


def build_set_mode(program: bool) -> bytes:
    """Build the ACK-prefixed mode switch command.

    Args:
        program: ``True`` for programming mode, ``False`` for read mode.
    """
    text = CommandText.MODE_PROGRAM if program else CommandText.MODE_READ
    return build_raw_command(bytes([ACK]) + text.encode("ascii"))


def build_read_register(register: int) -> bytes:
    """Build a register read frame, e.g. register 3 -> ``00000003()``."""
    return build_frame(Header.READ_REGISTER, f"{register:08d}()")
