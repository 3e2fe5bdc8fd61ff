"""Decoding of register values returned by the meter."""

from __future__ import annotations

import re
from dataclasses import dataclass

from .commands import Register
from .errors import NumericParseError

_VALUE_RE = re.compile(r"\(([^)]*)\)")
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


@dataclass(frozen=True)
class RegisterScale:
    """How a register's text becomes a value in base units."""

    decimal_places: int
    multiplier: float = 1.0
    unit: str = ""


# kW and kvar registers are converted to W and var
REGISTER_SCALES: dict[Register, RegisterScale] = {
    Register.VOLTAGE: RegisterScale(1, unit="V"),
    Register.CURRENT: RegisterScale(1, unit="A"),
    Register.FREQUENCY: RegisterScale(1, unit="Hz"),
    Register.ACTIVE_POWER: RegisterScale(2, 1000.0, unit="W"),
    Register.REACTIVE_POWER: RegisterScale(2, 1000.0, unit="var"),
    Register.TOTAL_ENERGY: RegisterScale(0, unit="kWh"),
}


def extract_value(payload: str) -> str:
    """Return the text between the first pair of parentheses.

    ``"00385(1234.56)"`` gives ``"1234.56"``. Payloads without
    parentheses are returned unchanged.
    """
    match = _VALUE_RE.search(payload)
    if match:
        return match.group(1)
    return payload


def read_numeric(raw_text: str, decimal_places: int) -> float:
    """Parse a decimal register value and shift it by ``decimal_places``.

    Only plain signed decimals are accepted; exponent forms such as
    ``"1.5E3"`` are rejected.

    Raises:
        NumericParseError: ``raw_text`` is not a decimal number.
    """
    text = raw_text.strip()
    if not _DECIMAL_RE.fullmatch(text):
        raise NumericParseError(raw_text)
    value = float(text)
    if decimal_places > 0:
        return value / 10 ** decimal_places
    return value


def scale_register(register: Register, raw_text: str) -> float:
    """Convert a register's raw text into base units.

    Raises:
        KeyError: The register has no numeric scaling.
        NumericParseError: ``raw_text`` is not a decimal number.
    """
    scale = REGISTER_SCALES[register]
    value = read_numeric(raw_text, scale.decimal_places)
    if scale.multiplier != 1.0:
        value *= scale.multiplier
    return value
