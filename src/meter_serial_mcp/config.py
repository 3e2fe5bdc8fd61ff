"""Runtime configuration, read from ``METER_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from .protocol.commands import DEFAULT_PASSWORD
from .transport.serial_connection import (
    DEFAULT_PORT,
    RESPONSE_TIMEOUT_S,
    LinkSettings,
)

ENV_PREFIX = "METER_"


def _env_number(name: str, default: float, cast=float):
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"{ENV_PREFIX}{name} must be a number, got {raw!r}"
        ) from None


@dataclass
class MeterConfig:
    """Everything needed to open a session."""

    port: str = DEFAULT_PORT
    link: LinkSettings = field(default_factory=LinkSettings)
    response_timeout: float = RESPONSE_TIMEOUT_S
    password: str = DEFAULT_PASSWORD
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> MeterConfig:
        """Build a config from the environment, falling back to defaults.

        Recognised variables: ``METER_SERIAL_PORT``, ``METER_BAUDRATE``,
        ``METER_READ_TIMEOUT``, ``METER_RESPONSE_TIMEOUT``,
        ``METER_PASSWORD`` and ``METER_LOG_LEVEL``.

        Raises:
            ValueError: A numeric variable does not parse.
        """
        link = LinkSettings(
            baudrate=_env_number("BAUDRATE", LinkSettings.baudrate, int),
            read_timeout=_env_number("READ_TIMEOUT", LinkSettings.read_timeout),
        )
        return cls(
            port=os.environ.get(ENV_PREFIX + "SERIAL_PORT", DEFAULT_PORT),
            link=link,
            response_timeout=_env_number("RESPONSE_TIMEOUT", RESPONSE_TIMEOUT_S),
            password=os.environ.get(ENV_PREFIX + "PASSWORD", DEFAULT_PASSWORD),
            log_level=os.environ.get(ENV_PREFIX + "LOG_LEVEL", "INFO").upper(),
        )
