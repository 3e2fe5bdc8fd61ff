"""Serial client and MCP server for IEC 62056-21 style energy meters."""

from .session import MeterMode, MeterSession
from .transport.serial_connection import LinkSettings, SerialConnection

__version__ = "0.1.0"
