"""Connection establishment for TLS client sockets.

Connect deadlines use the socket's native timeout, so no supervising thread
is needed. One deadline covers every address the host resolves to: each
attempt only gets the time left, and a failed attempt is closed before the
next one starts.
"""

from __future__ import annotations

import logging
import socket
import ssl
import time
from dataclasses import dataclass

from .const import DEFAULT_CONNECT_TIMEOUT, MAX_PORT, MIN_PORT
from .context import TLSContext
from .errors import ArgumentError, ConnectTimeoutError, UnresolvedHostError
from .metrics import (
    OUTCOME_CONNECTED,
    OUTCOME_ERROR,
    OUTCOME_TIMEOUT,
    OUTCOME_UNRESOLVED,
    record_connection,
)

logger = logging.getLogger("sslfactory.connector")


@dataclass(frozen=True, slots=True)
class ConnectionParams:
    """Timeouts for one connection, in seconds.

    ``connect_timeout`` of 0 disables the connect deadline. ``so_timeout``
    applies to the handshake and all later I/O; ``None`` blocks.
    """

    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    so_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.connect_timeout < 0:
            raise ArgumentError(f"connect_timeout must be >= 0, got {self.connect_timeout}")
        if self.so_timeout is not None and self.so_timeout <= 0:
            raise ArgumentError(f"so_timeout must be positive, got {self.so_timeout}")


@dataclass(frozen=True, slots=True)
class ConnectionRequest:
    host: str
    port: int
    local_address: str | None = None
    local_port: int = 0
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    so_timeout: float | None = None

    def __post_init__(self) -> None:
        if not self.host:
            raise ArgumentError("Host may not be empty")
        _check_port(self.port, "port")
        if self.local_port:
            _check_port(self.local_port, "local_port")
        if self.connect_timeout < 0:
            raise ArgumentError(f"connect_timeout must be >= 0, got {self.connect_timeout}")

    @classmethod
    def with_params(
        cls,
        host: str,
        port: int,
        local_address: str | None,
        local_port: int,
        params: ConnectionParams,
    ) -> ConnectionRequest:
        return cls(
            host=host,
            port=port,
            local_address=local_address,
            local_port=local_port,
            connect_timeout=params.connect_timeout,
            so_timeout=params.so_timeout,
        )

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    @property
    def source_address(self) -> tuple[str, int] | None:
        if self.local_address is None and not self.local_port:
            return None
        return (self.local_address or "", self.local_port)


def _check_port(port: int, name: str) -> None:
    if isinstance(port, bool) or not isinstance(port, int) or not MIN_PORT <= port <= MAX_PORT:
        raise ArgumentError(f"{name} must be an integer in {MIN_PORT}..{MAX_PORT}, got {port!r}")


def _connect_within_deadline(request: ConnectionRequest) -> socket.socket:
    """Try each resolved address in turn, sharing one deadline between them.

    Name resolution itself is not bounded by the deadline.
    """
    deadline = time.monotonic() + request.connect_timeout
    last_error: OSError | None = None
    for family, socktype, proto, _, sockaddr in socket.getaddrinfo(
        request.host, request.port, 0, socket.SOCK_STREAM
    ):
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            last_error = exc
            continue
        try:
            sock.settimeout(remaining)
            if request.source_address is not None:
                sock.bind(request.source_address)
            sock.connect(sockaddr)
        except OSError as exc:
            sock.close()
            last_error = exc
            continue
        sock.settimeout(None)
        return sock

    if last_error is None or isinstance(last_error, TimeoutError) or time.monotonic() >= deadline:
        raise TimeoutError("timed out") from last_error
    raise last_error


def _open_socket(request: ConnectionRequest) -> socket.socket:
    try:
        if request.connect_timeout:
            return _connect_within_deadline(request)
        return socket.create_connection(request.address, source_address=request.source_address)
    except socket.gaierror as exc:
        record_connection(OUTCOME_UNRESOLVED)
        raise UnresolvedHostError(f"Cannot resolve host {request.host!r}: {exc}") from exc
    except TimeoutError as exc:
        record_connection(OUTCOME_TIMEOUT)
        message = f"Connect to {request.host}:{request.port} timed out"
        if request.connect_timeout:
            message += f" after {request.connect_timeout:.3f}s"
        raise ConnectTimeoutError(message) from exc
    except OSError:
        record_connection(OUTCOME_ERROR)
        raise


def connect(
    context: TLSContext,
    request: ConnectionRequest,
    *,
    handshake: bool = True,
) -> ssl.SSLSocket:
    """Open a TLS client socket for ``request``.

    Raises :class:`UnresolvedHostError`, :class:`ConnectTimeoutError` or
    ``OSError``; trust rejections surface as ``ssl.SSLCertVerificationError``.
    """
    raw = _open_socket(request)
    try:
        raw.settimeout(request.so_timeout)
        tls_sock = context.wrap(raw, request.host, handshake=handshake)
    except BaseException:
        record_connection(OUTCOME_ERROR)
        raw.close()
        raise

    record_connection(OUTCOME_CONNECTED)
    logger.debug(
        "Connected to %s:%d (%s)",
        request.host,
        request.port,
        tls_sock.version() or "handshake pending",
    )
    return tls_sock


def upgrade(
    context: TLSContext,
    sock: socket.socket,
    host: str,
    port: int,
    auto_close: bool = True,
    *,
    handshake: bool = True,
) -> ssl.SSLSocket:
    """Layer TLS over an already connected plaintext socket.

    With ``auto_close`` false the TLS layer owns a duplicate descriptor, so
    closing it leaves ``sock`` usable.
    """
    if sock is None:
        raise ArgumentError("Socket may not be None")
    if sock.fileno() == -1:
        raise ArgumentError("Socket is closed")
    if not host:
        raise ArgumentError("Host may not be empty")

    target = sock if auto_close else sock.dup()
    try:
        tls_sock = context.wrap(target, host, handshake=handshake)
    except BaseException:
        record_connection(OUTCOME_ERROR)
        if not auto_close:
            target.close()
        raise

    record_connection(OUTCOME_CONNECTED)
    logger.debug("Upgraded connection to %s:%d (auto_close=%s)", host, port, auto_close)
    return tls_sock


__all__ = ["ConnectionParams", "ConnectionRequest", "connect", "upgrade"]
