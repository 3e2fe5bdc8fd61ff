"""Physical links to the meter."""

from .serial_connection import LinkSettings, SerialConnection, Transport, collect_frame
