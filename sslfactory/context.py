"""TLS context construction and the trust-enforcing socket class."""

from __future__ import annotations

import logging
import socket
import ssl
from collections.abc import Iterable
from typing import Any

from cryptography import x509

from .const import (
    DEFAULT_CHECK_HOSTNAME,
    DEFAULT_TLS_PROTOCOL,
    TLS_PROTOCOL_NAMES,
    UNKNOWN_AUTH_TYPE,
)
from .errors import CertificateRejected, ConfigurationError, InitializationError
from .metrics import DECISION_ACCEPTED, DECISION_REJECTED, record_trust_decision
from .trust import TrustDelegate, TrustObserver, auth_type_for, is_chain_validator

logger = logging.getLogger("sslfactory.context")

_OPEN_ENDED_VERSIONS = frozenset({ssl.TLSVersion.MINIMUM_SUPPORTED, ssl.TLSVersion.MAXIMUM_SUPPORTED})


class TrustedSSLSocket(ssl.SSLSocket):
    """SSLSocket running chain validators once the engine accepts the peer.

    The engine's own verification happens first; the validators bound with
    :meth:`bind_trust` only get to see chains the engine already accepted.
    I/O before a completed check forces the handshake, so a deferred
    handshake cannot skip the validators.
    """

    _trust_managers: tuple[Any, ...] = ()
    _trust_verified: bool = True

    def bind_trust(self, validators: Iterable[Any]) -> None:
        self._trust_managers = tuple(validators)
        self._trust_verified = not self._trust_managers

    def peer_chain(self) -> tuple[x509.Certificate, ...]:
        """Return the peer chain, leaf first.

        Interpreters without ``get_verified_chain`` only expose the leaf.
        """
        get_verified_chain = getattr(self, "get_verified_chain", None)
        if get_verified_chain is not None:
            chain = get_verified_chain()
            if chain:
                return tuple(x509.load_der_x509_certificate(der) for der in chain)
        leaf = self.getpeercert(binary_form=True)
        if not leaf:
            return ()
        return (x509.load_der_x509_certificate(leaf),)

    def do_handshake(self, block: bool = False) -> None:
        super().do_handshake(block)
        self._verify_peer_chain()

    def read(self, len: int = 1024, buffer: Any = None) -> Any:
        self._require_trusted()
        return super().read(len, buffer)

    def write(self, data: Any) -> int:
        self._require_trusted()
        return super().write(data)

    def send(self, data: Any, flags: int = 0) -> int:
        self._require_trusted()
        return super().send(data, flags)

    def _require_trusted(self) -> None:
        if not self._trust_verified and self._sslobj is not None:
            self.do_handshake()

    def _verify_peer_chain(self) -> None:
        if self._trust_verified:
            return
        chain = self.peer_chain()
        auth_type = auth_type_for(chain[0]) if chain else UNKNOWN_AUTH_TYPE
        try:
            for validator in self._trust_managers:
                validator.check_server_trusted(chain, auth_type, self.server_hostname)
        except CertificateRejected as exc:
            record_trust_decision(DECISION_REJECTED)
            logger.warning("Rejected certificate chain from %s: %s", self.server_hostname, exc.reason)
            raise ssl.SSLCertVerificationError(f"certificate rejected: {exc.reason}") from exc
        record_trust_decision(DECISION_ACCEPTED)
        self._trust_verified = True


class TLSContext:
    """Immutable client TLS configuration shared by every connection."""

    __slots__ = ("_ssl_context", "_protocol", "_trust_managers", "_validators")

    def __init__(
        self,
        ssl_context: ssl.SSLContext,
        protocol: ssl.TLSVersion,
        trust_managers: tuple[Any, ...],
    ) -> None:
        self._ssl_context = ssl_context
        self._protocol = protocol
        self._trust_managers = trust_managers
        self._validators = tuple(manager for manager in trust_managers if is_chain_validator(manager))

    @property
    def protocol(self) -> ssl.TLSVersion:
        return self._protocol

    @property
    def enabled_protocols(self) -> tuple[ssl.TLSVersion, ...]:
        return (self._protocol,)

    @property
    def trust_managers(self) -> tuple[Any, ...]:
        return self._trust_managers

    @property
    def check_hostname(self) -> bool:
        return self._ssl_context.check_hostname

    def wrap(
        self,
        sock: socket.socket,
        server_hostname: str,
        *,
        handshake: bool = True,
    ) -> TrustedSSLSocket:
        """Layer TLS over a connected socket; ``sock`` is consumed."""
        tls_sock = self._ssl_context.wrap_socket(
            sock,
            server_hostname=server_hostname,
            do_handshake_on_connect=False,
        )
        tls_sock.bind_trust(self._validators)
        if handshake:
            try:
                tls_sock.do_handshake()
            except BaseException:
                tls_sock.close()
                raise
        return tls_sock

    def __repr__(self) -> str:
        return f"TLSContext(protocol={self._protocol.name}, trust_managers={len(self._trust_managers)})"


def resolve_protocol(protocol: ssl.TLSVersion | str) -> ssl.TLSVersion:
    """Map a protocol name or version to the single version to pin."""
    if isinstance(protocol, str):
        try:
            protocol = TLS_PROTOCOL_NAMES[protocol]
        except KeyError:
            known = ", ".join(TLS_PROTOCOL_NAMES)
            raise ConfigurationError(f"Unknown TLS protocol {protocol!r}; expected one of {known}") from None
    if not isinstance(protocol, ssl.TLSVersion):
        raise ConfigurationError(f"Invalid TLS protocol {protocol!r}")
    if protocol in _OPEN_ENDED_VERSIONS:
        raise ConfigurationError("The TLS protocol must name exactly one version")
    return protocol


def _installs_anchors(provider: Any) -> bool:
    return callable(getattr(provider, "install", None))


def create_trust_managers(
    trust_providers: Iterable[Any],
    observer: TrustObserver | None = None,
) -> tuple[Any, ...]:
    """Wrap every chain validator in a :class:`TrustDelegate`.

    Providers that only install anchors into the engine are returned as is.
    """
    logger.debug("Initializing trust managers")
    return tuple(
        TrustDelegate(provider, observer) if is_chain_validator(provider) else provider
        for provider in trust_providers
    )


def _create_ssl_context(protocol: ssl.TLSVersion, check_hostname: bool) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = protocol
    context.maximum_version = protocol
    context.check_hostname = check_hostname
    if (context.minimum_version, context.maximum_version) != (protocol, protocol):
        raise ValueError(f"TLS engine cannot pin {protocol.name}")
    return context


def build_tls_context(
    identity_providers: Iterable[Any] | None = (),
    trust_providers: Iterable[Any] | None = (),
    *,
    protocol: ssl.TLSVersion | str = DEFAULT_TLS_PROTOCOL,
    check_hostname: bool = DEFAULT_CHECK_HOSTNAME,
    observer: TrustObserver | None = None,
) -> TLSContext:
    """Build the TLS context shared by all sockets of a factory.

    At least one identity or trust provider is required. Engine failures are
    reported as a single :class:`InitializationError` chained to the cause.
    """
    identities = tuple(identity_providers or ())
    trusts = tuple(trust_providers or ())
    if not identities and not trusts:
        raise ConfigurationError("Either identity material or trust material must be given")

    for provider in identities:
        if not callable(getattr(provider, "install", None)):
            raise ConfigurationError(f"Identity provider {provider!r} cannot install key material")
    for provider in trusts:
        if not (_installs_anchors(provider) or is_chain_validator(provider)):
            raise ConfigurationError(f"Trust provider {provider!r} neither installs anchors nor validates chains")

    pinned = resolve_protocol(protocol)
    trust_managers = create_trust_managers(trusts, observer)

    try:
        ssl_context = _create_ssl_context(pinned, check_hostname)
        for provider in identities:
            provider.install(ssl_context)
        anchors_installed = False
        for provider in trusts:
            if _installs_anchors(provider):
                provider.install(ssl_context)
                anchors_installed = True
        if not anchors_installed:
            ssl_context.load_default_certs(ssl.Purpose.SERVER_AUTH)
    except ssl.SSLError as exc:
        logger.error("Key management exception: %s", exc, exc_info=True)
        raise InitializationError(f"Key management exception: {exc}") from exc
    except OSError as exc:
        logger.error("Cannot read key material: %s", exc, exc_info=True)
        raise InitializationError(f"Cannot read key material: {exc}") from exc
    except ValueError as exc:
        logger.error("Unsupported TLS configuration: %s", exc, exc_info=True)
        raise InitializationError(f"Unsupported TLS configuration: {exc}") from exc

    ssl_context.sslsocket_class = TrustedSSLSocket
    logger.debug(
        "TLS context pinned to %s with %d identity and %d trust provider(s)",
        pinned.name,
        len(identities),
        len(trusts),
    )
    return TLSContext(ssl_context, pinned, trust_managers)


__all__ = [
    "TLSContext",
    "TrustedSSLSocket",
    "build_tls_context",
    "create_trust_managers",
    "resolve_protocol",
]
