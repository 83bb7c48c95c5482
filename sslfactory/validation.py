"""Chain validator backed by a fixed truststore."""

from __future__ import annotations

import ipaddress
import logging
import ssl
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from cryptography import x509
from cryptography.x509.verification import PolicyBuilder, Store, VerificationError

from .const import DEFAULT_CHECK_HOSTNAME
from .errors import CertificateRejected, ConfigurationError
from .material import TrustMaterial

logger = logging.getLogger("sslfactory.validation")

Subject = x509.DNSName | x509.IPAddress


def _subject_for(server_hostname: str) -> Subject:
    try:
        return x509.IPAddress(ipaddress.ip_address(server_hostname))
    except ValueError:
        return x509.DNSName(server_hostname)


def _leaf_names(leaf: x509.Certificate) -> list[Subject]:
    try:
        san = leaf.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return []
    return [name for name in san if isinstance(name, (x509.DNSName, x509.IPAddress))]


def _dns_matches(pattern: str, host: str) -> bool:
    pattern, host = pattern.lower().rstrip("."), host.lower().rstrip(".")
    if pattern.startswith("*."):
        head, _, tail = host.partition(".")
        return bool(head) and tail == pattern[2:]
    return pattern == host


def _name_matches(names: Sequence[Subject], subject: Subject) -> bool:
    for name in names:
        if isinstance(subject, x509.IPAddress):
            if isinstance(name, x509.IPAddress) and name.value == subject.value:
                return True
        elif isinstance(name, x509.DNSName) and _dns_matches(name.value, subject.value):
            return True
    return False


class X509ChainValidator:
    """Accept only chains that build up to one of the truststore anchors.

    The anchors are also installed into the TLS engine, so the engine and
    this validator agree on what is trusted. Chains through a CA are checked
    against the web PKI profile of ``cryptography``. A leaf that is itself in
    the truststore (an imported self-signed server certificate) is trusted
    directly; only its validity window and names are checked.

    With ``check_hostname`` false the chain is verified without binding it to
    the requested host. ``clock`` overrides the validation time and exists
    for tests.
    """

    def __init__(
        self,
        truststore: TrustMaterial,
        *,
        check_hostname: bool = DEFAULT_CHECK_HOSTNAME,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if truststore is None:
            raise ConfigurationError("A truststore is required")
        try:
            anchors = truststore.anchors()
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Cannot read trust anchors: {exc}") from exc
        if not anchors:
            raise ConfigurationError("Truststore holds no certificates")

        self._truststore = truststore
        self._anchors = frozenset(anchors)
        self._store = Store(list(anchors))
        self._check_hostname = check_hostname
        self._clock = clock
        logger.debug("Loaded %d trust anchor(s), host name check %s", len(anchors), check_hostname)

    @property
    def truststore(self) -> TrustMaterial:
        return self._truststore

    @property
    def check_hostname(self) -> bool:
        return self._check_hostname

    def install(self, context: ssl.SSLContext) -> None:
        self._truststore.install(context)

    def check_server_trusted(
        self,
        chain: Sequence[x509.Certificate],
        auth_type: str,
        server_hostname: str | None = None,
    ) -> None:
        if not chain:
            raise CertificateRejected("Empty certificate chain")
        if self._check_hostname and not server_hostname:
            raise CertificateRejected("Server host name is required for chain validation")

        leaf, *rest = chain
        if self._check_hostname:
            subject: Subject | None = _subject_for(server_hostname)
        else:
            # Bind to a name the leaf presents, which leaves only the chain to verify.
            names = _leaf_names(leaf)
            subject = names[0] if names else None
        target = server_hostname or "peer"

        if leaf in self._anchors:
            self._check_anchor_leaf(leaf, subject, target)
            return
        if subject is None:
            raise CertificateRejected(f"Certificate for {target} carries no subjectAltName")

        builder = PolicyBuilder().store(self._store)
        if self._clock is not None:
            builder = builder.time(self._clock())
        verifier = builder.build_server_verifier(subject)

        intermediates = [certificate for certificate in rest if certificate not in self._anchors]
        try:
            verifier.verify(leaf, intermediates)
        except VerificationError as exc:
            raise CertificateRejected(
                f"Certificate chain for {target} ({auth_type}) is not trusted: {exc}"
            ) from exc

    def _check_anchor_leaf(self, leaf: x509.Certificate, subject: Subject | None, target: str) -> None:
        now = self._clock() if self._clock is not None else datetime.now(timezone.utc)
        if not leaf.not_valid_before_utc <= now <= leaf.not_valid_after_utc:
            raise CertificateRejected(f"Trusted certificate for {target} is outside its validity period")
        if self._check_hostname and not _name_matches(_leaf_names(leaf), subject):
            raise CertificateRejected(f"Trusted certificate does not match {target}")

    def __repr__(self) -> str:
        return f"X509ChainValidator(anchors={len(self._anchors)}, check_hostname={self._check_hostname})"


__all__ = ["X509ChainValidator"]
