"""Secure socket factory facade.

``AuthSSLSocketFactory`` builds its TLS context once and hands out client
sockets through the entry points an HTTP transport expects from a secure
socket factory. Trust and identity handling live entirely in the context.
"""

from __future__ import annotations

import logging
import socket
import ssl
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from . import connector
from .connector import ConnectionParams, ConnectionRequest
from .const import DEFAULT_CHECK_HOSTNAME, DEFAULT_TLS_PROTOCOL
from .context import TLSContext, build_tls_context
from .errors import ArgumentError, ConfigurationError, InitializationError
from .material import TrustMaterial
from .trust import TrustObserver
from .validation import X509ChainValidator

if TYPE_CHECKING:
    from .config.settings import FactoryConfig

logger = logging.getLogger("sslfactory.factory")


class AuthSSLSocketFactory:
    """Create TLS client sockets with custom trust and optional client auth.

    Either identity providers or trust providers must be given, otherwise
    construction fails with :class:`~sslfactory.errors.ConfigurationError`.

    Only chain validators are wrapped in a
    :class:`~sslfactory.trust.TrustDelegate`, so ``observer`` sees no events
    when every trust provider merely installs anchors (for example a bare
    :class:`~sslfactory.material.TrustMaterial`). Use :meth:`from_truststore`
    to get per-certificate diagnostics for a truststore.
    """

    def __init__(
        self,
        identity_providers: Iterable[Any] | None = (),
        trust_providers: Iterable[Any] | None = (),
        *,
        protocol: ssl.TLSVersion | str = DEFAULT_TLS_PROTOCOL,
        check_hostname: bool = DEFAULT_CHECK_HOSTNAME,
        observer: TrustObserver | None = None,
    ) -> None:
        self._context = build_tls_context(
            identity_providers,
            trust_providers,
            protocol=protocol,
            check_hostname=check_hostname,
            observer=observer,
        )
        logger.debug("Socket factory ready: %r", self._context)

    @classmethod
    def from_truststore(
        cls,
        truststore: TrustMaterial,
        *,
        identity_providers: Iterable[Any] | None = (),
        protocol: ssl.TLSVersion | str = DEFAULT_TLS_PROTOCOL,
        check_hostname: bool = DEFAULT_CHECK_HOSTNAME,
        observer: TrustObserver | None = None,
    ) -> AuthSSLSocketFactory:
        """Trust exactly the anchors held by ``truststore``.

        The host name check applies to both the engine and the validator.
        """
        try:
            validator = X509ChainValidator(truststore, check_hostname=check_hostname)
        except ConfigurationError as exc:
            raise InitializationError(f"Cannot load truststore: {exc}") from exc
        return cls(
            identity_providers,
            (validator,),
            protocol=protocol,
            check_hostname=check_hostname,
            observer=observer,
        )

    @classmethod
    def from_config(
        cls,
        config: FactoryConfig,
        *,
        observer: TrustObserver | None = None,
    ) -> AuthSSLSocketFactory:
        identity = config.identity_material()
        identities = (identity,) if identity is not None else ()
        trust = config.trust_material()
        if trust is not None:
            return cls.from_truststore(
                trust,
                identity_providers=identities,
                protocol=config.tls_protocol,
                check_hostname=config.check_hostname,
                observer=observer,
            )
        return cls(
            identities,
            (),
            protocol=config.tls_protocol,
            check_hostname=config.check_hostname,
            observer=observer,
        )

    @property
    def context(self) -> TLSContext:
        return self._context

    def create_socket(
        self,
        host: str,
        port: int,
        local_address: str | None = None,
        local_port: int = 0,
    ) -> ssl.SSLSocket:
        """Connect to ``host:port``, optionally from a local address."""
        request = ConnectionRequest(host, port, local_address, local_port)
        return connector.connect(self._context, request)

    def create_timed_socket(
        self,
        host: str,
        port: int,
        local_address: str | None,
        local_port: int,
        params: ConnectionParams | None,
    ) -> ssl.SSLSocket:
        """Connect within ``params.connect_timeout`` seconds (0 = no deadline)."""
        if params is None:
            raise ArgumentError("Parameters may not be None")
        request = ConnectionRequest.with_params(host, port, local_address, local_port, params)
        return connector.connect(self._context, request)

    def upgrade_socket(
        self,
        sock: socket.socket,
        host: str,
        port: int,
        auto_close: bool = True,
    ) -> ssl.SSLSocket:
        """Layer TLS over an existing plaintext connection (proxy tunnels)."""
        return connector.upgrade(self._context, sock, host, port, auto_close)

    def __repr__(self) -> str:
        return f"AuthSSLSocketFactory({self._context!r})"


__all__ = ["AuthSSLSocketFactory"]
