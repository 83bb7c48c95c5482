"""TLS client socket factory with pluggable certificate trust."""

__version__ = "1.0.0"

from .connector import ConnectionParams, ConnectionRequest
from .context import TLSContext, build_tls_context
from .errors import (
    ArgumentError,
    CertificateRejected,
    ConfigurationError,
    ConnectTimeoutError,
    InitializationError,
    SocketFactoryError,
    UnresolvedHostError,
)
from .factory import AuthSSLSocketFactory
from .material import IdentityMaterial, TrustMaterial
from .trust import LoggingTrustObserver, TrustDelegate, TrustEvent
from .validation import X509ChainValidator

__all__ = [
    "ArgumentError",
    "AuthSSLSocketFactory",
    "CertificateRejected",
    "ConfigurationError",
    "ConnectTimeoutError",
    "ConnectionParams",
    "ConnectionRequest",
    "IdentityMaterial",
    "InitializationError",
    "LoggingTrustObserver",
    "SocketFactoryError",
    "TLSContext",
    "TrustDelegate",
    "TrustEvent",
    "TrustMaterial",
    "UnresolvedHostError",
    "X509ChainValidator",
    "build_tls_context",
]
