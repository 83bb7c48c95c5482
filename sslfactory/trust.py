"""Trust delegate wrapping certificate chain validators.

A chain validator is any object exposing
``check_server_trusted(chain, auth_type, server_hostname)`` that raises
:class:`~sslfactory.errors.CertificateRejected` to refuse a chain. The
:class:`TrustDelegate` adds an observability hook in front of such a
validator without touching its decision.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from .const import UNKNOWN_AUTH_TYPE
from .errors import ConfigurationError

logger = logging.getLogger("sslfactory.trust")


class ChainValidator(Protocol):
    def check_server_trusted(
        self,
        chain: Sequence[x509.Certificate],
        auth_type: str,
        server_hostname: str | None,
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class TrustEvent:
    """Diagnostic record emitted before a validator is consulted."""

    chain: tuple[x509.Certificate, ...]
    auth_type: str
    server_hostname: str | None
    validator: str


TrustObserver = Callable[[TrustEvent], None]


def is_chain_validator(candidate: Any) -> bool:
    return callable(getattr(candidate, "check_server_trusted", None))


def auth_type_for(certificate: x509.Certificate) -> str:
    """Return the public key algorithm name of ``certificate``."""
    key = certificate.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "EC"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "Ed25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "Ed448"
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA"
    return UNKNOWN_AUTH_TYPE


def describe_certificate(certificate: x509.Certificate) -> dict[str, str]:
    return {
        "subject": certificate.subject.rfc4514_string(),
        "issuer": certificate.issuer.rfc4514_string(),
        "serial": f"{certificate.serial_number:X}",
        "not_before": certificate.not_valid_before_utc.isoformat(),
        "not_after": certificate.not_valid_after_utc.isoformat(),
    }


class LoggingTrustObserver:
    """Log every certificate of the presented chain."""

    def __init__(self, log: logging.Logger | None = None, level: int = logging.DEBUG) -> None:
        self._log = log if log is not None else logger
        self._level = level

    def __call__(self, event: TrustEvent) -> None:
        if not self._log.isEnabledFor(self._level):
            return
        self._log.log(
            self._level,
            "Validating %d certificate(s) for %s (auth type %s) with %s",
            len(event.chain),
            event.server_hostname or "<unknown host>",
            event.auth_type,
            event.validator,
        )
        for index, certificate in enumerate(event.chain):
            details = describe_certificate(certificate)
            self._log.log(
                self._level,
                "Server certificate %d: subject=%s issuer=%s serial=%s valid %s..%s",
                index + 1,
                details["subject"],
                details["issuer"],
                details["serial"],
                details["not_before"],
                details["not_after"],
                extra={"certificate": details},
            )


class TrustDelegate:
    """Forward chain validation to a wrapped validator, observing each call."""

    __slots__ = ("_validator", "_observer")

    def __init__(self, validator: ChainValidator | None, observer: TrustObserver | None = None) -> None:
        if validator is None or not is_chain_validator(validator):
            raise ConfigurationError(f"No usable chain validator to delegate to: {validator!r}")
        self._validator = validator
        self._observer: TrustObserver = observer if observer is not None else LoggingTrustObserver()

    @property
    def wrapped(self) -> ChainValidator:
        return self._validator

    def check_server_trusted(
        self,
        chain: Sequence[x509.Certificate],
        auth_type: str,
        server_hostname: str | None = None,
    ) -> None:
        self._notify(
            TrustEvent(
                chain=tuple(chain),
                auth_type=auth_type,
                server_hostname=server_hostname,
                validator=type(self._validator).__name__,
            )
        )
        self._validator.check_server_trusted(chain, auth_type, server_hostname)

    def _notify(self, event: TrustEvent) -> None:
        try:
            self._observer(event)
        except Exception:
            # The decision belongs to the wrapped validator alone.
            logger.exception("Trust observer %r failed", self._observer)

    def __repr__(self) -> str:
        return f"TrustDelegate({self._validator!r})"


__all__ = [
    "ChainValidator",
    "LoggingTrustObserver",
    "TrustDelegate",
    "TrustEvent",
    "TrustObserver",
    "auth_type_for",
    "describe_certificate",
    "is_chain_validator",
]
