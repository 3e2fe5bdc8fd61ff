"""Snapshot of the meter's instantaneous values."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class MeterReading:
    """One set of scaled register values, in base units."""

    voltage: float
    current: float
    frequency: float
    power: float
    reactive_power: float
    consumption: float

    def to_dict(self) -> dict:
        return asdict(self)
