"""MCP server entry point for IEC 62056-21 style energy meters.

Exposes the meter session as tools and resources via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .config import MeterConfig
from .protocol.commands import Register
from .protocol.errors import MeterProtocolError, TransportTimeout
from .protocol.parser import REGISTER_SCALES
from .session import MeterSession
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "meter-serial",
    instructions="MCP server for reading IEC 62056-21 style energy meters over a serial line",
)

# Global session state
_session: MeterSession | None = None

_METER_ERRORS = (MeterProtocolError, TransportTimeout, ConnectionError)


def _get_session() -> MeterSession:
    """Get the active session, raising if not connected."""
    if _session is None:
        raise RuntimeError(
            "Not connected to a meter. Use the 'connect' tool first."
        )
    return _session


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str | None = None) -> dict[str, Any]:
    """Open the serial line to the meter and read its identification.

    Args:
        port: Serial device, e.g. /dev/ttyUSB0. Defaults to METER_SERIAL_PORT.
    """
    global _session
    if _session is not None:
        return {
            "connected": True,
            "message": "Already connected",
            "meter_id": _session.meter_id.strip(),
        }

    config = MeterConfig.from_env()
    transport = SerialConnection(
        port or config.port,
        settings=config.link,
        response_timeout=config.response_timeout,
    )
    try:
        _session = MeterSession(transport, password=config.password)
    except _METER_ERRORS as e:
        transport.close()
        return {"connected": False, "error": str(e)}

    return {
        "connected": True,
        "port": transport.port,
        "meter_id": _session.meter_id.strip(),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial line to the meter."""
    global _session
    if _session is None:
        return {"disconnected": True}
    _session.disconnect()
    _session = None
    return {"disconnected": True}


@mcp.tool()
def get_meter_info() -> dict[str, Any]:
    """Report the meter identification and the session state."""
    session = _get_session()
    return {
        "meter_id": session.meter_id.strip(),
        "mode": session.mode.value if session.mode else None,
        "logged_in": session.logged_in,
    }


# ─── SESSION TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def set_mode(program: bool) -> dict[str, Any]:
    """Switch the meter to programming mode (True) or read mode (False)."""
    session = _get_session()
    try:
        confirmed = session.set_mode(program)
    except _METER_ERRORS as e:
        return {"error": str(e)}
    return {"confirmed": confirmed, "mode": "program" if program else "read"}


@mcp.tool()
def login() -> dict[str, Any]:
    """Send the configured password. Usually preceded by set_mode(True)."""
    session = _get_session()
    try:
        accepted = session.login()
    except _METER_ERRORS as e:
        return {"error": str(e)}
    return {"logged_in": accepted}


@mcp.tool()
def logout() -> dict[str, Any]:
    """Tell the meter to drop the password. The meter's reply is not checked."""
    session = _get_session()
    try:
        session.logout()
    except _METER_ERRORS as e:
        return {"error": str(e)}
    return {"logged_in": False}


# ─── READING TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def read_register(register: str) -> dict[str, Any]:
    """Read the raw text of a register.

    Args:
        register: Register name (e.g. "voltage", "meter_id") or number.
    """
    session = _get_session()
    try:
        value = session.read_register(register)
    except (ValueError, *_METER_ERRORS) as e:
        return {"error": str(e)}
    return {"register": register, "value": value}


@mcp.tool()
def get_readings() -> dict[str, Any]:
    """Read voltage, current, frequency, active and reactive power and consumption."""
    session = _get_session()
    try:
        reading = session.read_all()
    except _METER_ERRORS as e:
        return {"error": str(e)}
    return reading.to_dict()


# ─── RESOURCES ───────────────────────────────────────────────────────

@mcp.resource("meter://registers")
def register_catalog() -> dict[str, Any]:
    """Known register codes with their scaling."""
    catalog = {}
    for reg in Register:
        entry: dict[str, Any] = {"code": int(reg)}
        scale = REGISTER_SCALES.get(reg)
        if scale:
            entry.update(
                decimal_places=scale.decimal_places,
                multiplier=scale.multiplier,
                unit=scale.unit,
            )
        catalog[reg.name.lower()] = entry
    return catalog


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    config = MeterConfig.from_env()
    logging.basicConfig(level=config.log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
