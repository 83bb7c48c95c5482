"""Exception taxonomy for sslfactory.

Construction-time failures derive from :class:`SocketFactoryError` and abort
factory creation. Per-connection failures are ``OSError`` subclasses so that
callers handling socket errors keep working unchanged.
"""

from __future__ import annotations


class SocketFactoryError(Exception):
    """Base class for errors raised while building a socket factory."""


class ConfigurationError(SocketFactoryError):
    """Trust or identity material is missing or unusable."""


class InitializationError(SocketFactoryError):
    """The TLS engine refused to build a context from the given material."""


class ArgumentError(SocketFactoryError, ValueError):
    """A caller passed an invalid argument; no I/O was attempted."""


class UnresolvedHostError(OSError):
    """The remote host name could not be resolved."""


class ConnectTimeoutError(TimeoutError):
    """The connect deadline elapsed before the connection completed."""


class CertificateRejected(Exception):
    """Raised by chain validators to reject a presented certificate chain."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


__all__ = [
    "ArgumentError",
    "CertificateRejected",
    "ConfigurationError",
    "ConnectTimeoutError",
    "InitializationError",
    "SocketFactoryError",
    "UnresolvedHostError",
]
