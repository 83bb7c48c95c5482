"""Defaults shared across the sslfactory package."""

from __future__ import annotations

import ssl
from typing import Final

DEFAULT_TLS_PROTOCOL: Final[ssl.TLSVersion] = ssl.TLSVersion.TLSv1_2
DEFAULT_TLS_PROTOCOL_NAME: Final[str] = "TLSv1.2"

# 0 disables the connect deadline.
DEFAULT_CONNECT_TIMEOUT: Final[float] = 0.0

DEFAULT_CHECK_HOSTNAME: Final[bool] = True
DEFAULT_DEBUG_LOGGING: Final[bool] = False

MIN_PORT: Final[int] = 1
MAX_PORT: Final[int] = 65535

CONFIG_SECTION: Final[str] = "sslfactory"

TLS_PROTOCOL_NAMES: Final[dict[str, ssl.TLSVersion]] = {
    "TLSv1": ssl.TLSVersion.TLSv1,
    "TLSv1.1": ssl.TLSVersion.TLSv1_1,
    "TLSv1.2": ssl.TLSVersion.TLSv1_2,
    "TLSv1.3": ssl.TLSVersion.TLSv1_3,
}

UNKNOWN_AUTH_TYPE: Final[str] = "UNKNOWN"
