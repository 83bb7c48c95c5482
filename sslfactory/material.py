"""Key and trust material consumed by the context builder.

Both kinds are capability objects: they know how to install themselves into
an ``ssl.SSLContext`` and are never mutated afterwards.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass, field
from pathlib import Path

from cryptography import x509

from .errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class TrustMaterial:
    """Trust anchors given as a PEM file and/or PEM text."""

    cafile: str | None = None
    cadata: str | None = None

    def __post_init__(self) -> None:
        if not self.cafile and not self.cadata:
            raise ConfigurationError("Trust material requires a CA file or PEM data")
        if self.cafile and not Path(self.cafile).is_file():
            raise ConfigurationError(f"TLS CA file does not exist: {self.cafile}")

    def install(self, context: ssl.SSLContext) -> None:
        context.load_verify_locations(cafile=self.cafile, cadata=self.cadata)

    def anchors(self) -> tuple[x509.Certificate, ...]:
        """Parse the anchor certificates for validators that need them."""
        anchors: list[x509.Certificate] = []
        if self.cafile:
            anchors.extend(x509.load_pem_x509_certificates(Path(self.cafile).read_bytes()))
        if self.cadata:
            anchors.extend(x509.load_pem_x509_certificates(self.cadata.encode("ascii")))
        return tuple(anchors)


@dataclass(frozen=True, slots=True)
class IdentityMaterial:
    """Client certificate chain and private key presented on request."""

    certfile: str
    keyfile: str | None = None
    password: str | bytes | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.certfile:
            raise ConfigurationError("Identity material requires a certificate file")
        for path in (self.certfile, self.keyfile):
            if path and not Path(path).is_file():
                raise ConfigurationError(f"TLS identity file does not exist: {path}")

    def install(self, context: ssl.SSLContext) -> None:
        context.load_cert_chain(self.certfile, self.keyfile, self.password)


__all__ = ["IdentityMaterial", "TrustMaterial"]
