"""Data models for meter readings."""

from .reading import MeterReading
