"""Settings for building a socket factory from configuration.

Configuration comes from a mapping or from a TOML file, either flat or under
an ``[sslfactory]`` table. Unknown keys are rejected.
"""

from __future__ import annotations

import logging
import ssl
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Any, Literal

import msgspec

from ..connector import ConnectionParams
from ..const import (
    CONFIG_SECTION,
    DEFAULT_CHECK_HOSTNAME,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_DEBUG_LOGGING,
    DEFAULT_TLS_PROTOCOL_NAME,
    TLS_PROTOCOL_NAMES,
)
from ..errors import ConfigurationError
from ..material import IdentityMaterial, TrustMaterial

logger = logging.getLogger(__name__)

ProtocolName = Literal["TLSv1", "TLSv1.1", "TLSv1.2", "TLSv1.3"]


class FactoryConfig(msgspec.Struct, frozen=True, kw_only=True, forbid_unknown_fields=True):
    """Strongly typed socket factory configuration."""

    cafile: str | None = None
    cadata: str | None = None
    certfile: str | None = None
    keyfile: str | None = None
    key_password: str | None = None
    protocol: ProtocolName = DEFAULT_TLS_PROTOCOL_NAME
    check_hostname: bool = DEFAULT_CHECK_HOSTNAME
    connect_timeout: Annotated[float, msgspec.Meta(ge=0)] = DEFAULT_CONNECT_TIMEOUT
    so_timeout: Annotated[float, msgspec.Meta(gt=0)] | None = None
    debug_logging: bool = DEFAULT_DEBUG_LOGGING

    @property
    def tls_protocol(self) -> ssl.TLSVersion:
        return TLS_PROTOCOL_NAMES[self.protocol]

    def trust_material(self) -> TrustMaterial | None:
        if not self.cafile and not self.cadata:
            return None
        return TrustMaterial(cafile=self.cafile, cadata=self.cadata)

    def identity_material(self) -> IdentityMaterial | None:
        if not self.certfile:
            if self.keyfile:
                raise ConfigurationError("keyfile requires certfile")
            return None
        return IdentityMaterial(self.certfile, self.keyfile, self.key_password)

    def connection_params(self) -> ConnectionParams:
        return ConnectionParams(connect_timeout=self.connect_timeout, so_timeout=self.so_timeout)


def config_from_mapping(raw: Mapping[str, Any]) -> FactoryConfig:
    """Validate ``raw`` into a :class:`FactoryConfig`."""
    try:
        config = msgspec.convert(dict(raw), FactoryConfig)
    except msgspec.ValidationError as exc:
        raise ConfigurationError(f"Invalid sslfactory configuration: {exc}") from exc

    if not config.check_hostname:
        logger.warning("TLS host name checking is disabled; any certificate from a trusted CA is accepted.")
    identity = config.identity_material()
    if config.trust_material() is None and identity is None:
        raise ConfigurationError("Configuration must provide trust material (cafile/cadata) or identity material (certfile)")
    return config


def load_factory_config(path: str | Path) -> FactoryConfig:
    """Load a TOML configuration file."""
    path = Path(path)
    try:
        raw = msgspec.toml.decode(path.read_bytes())
    except OSError as exc:
        raise ConfigurationError(f"Cannot read configuration file {path}: {exc}") from exc
    except msgspec.DecodeError as exc:
        raise ConfigurationError(f"Malformed configuration file {path}: {exc}") from exc

    section = raw.get(CONFIG_SECTION, raw)
    if not isinstance(section, dict):
        raise ConfigurationError(f"[{CONFIG_SECTION}] in {path} must be a table")
    logger.debug("Loaded configuration from %s", path)
    return config_from_mapping(section)


__all__ = ["FactoryConfig", "config_from_mapping", "load_factory_config"]
