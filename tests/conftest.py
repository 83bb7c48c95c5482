"""Pytest configuration for sslfactory tests.

Builds a throwaway PKI with ``cryptography`` (a trusted CA, an unrelated
"rogue" CA and leaf certificates issued by each) and runs threaded local TLS
servers against it.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import ssl
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

SERVER_HOST = "127.0.0.1"


@dataclass(slots=True)
class IssuedCertificate:
    certificate: x509.Certificate
    key: ec.EllipticCurvePrivateKey
    cert_path: Path
    key_path: Path

    @property
    def pem(self) -> str:
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")


@dataclass(slots=True)
class Pki:
    ca: IssuedCertificate
    server: IssuedCertificate
    client: IssuedCertificate
    rogue_ca: IssuedCertificate
    rogue_server: IssuedCertificate
    self_signed: IssuedCertificate


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _write(directory: Path, stem: str, certificate: x509.Certificate, key: ec.EllipticCurvePrivateKey) -> IssuedCertificate:
    cert_path = directory / f"{stem}.pem"
    key_path = directory / f"{stem}.key"
    cert_path.write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return IssuedCertificate(certificate, key, cert_path, key_path)


def _issue_ca(directory: Path, stem: str, common_name: str) -> IssuedCertificate:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(_name(common_name))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return _write(directory, stem, certificate, key)


def _issue_leaf(
    directory: Path,
    stem: str,
    common_name: str,
    issuer: IssuedCertificate,
    usage: x509.ObjectIdentifier,
) -> IssuedCertificate:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name))
        .issuer_name(issuer.certificate.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=7))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address(SERVER_HOST)),
                ]
            ),
            critical=False,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.key.public_key()),
            critical=False,
        )
        .sign(issuer.key, hashes.SHA256())
    )
    return _write(directory, stem, certificate, key)


def _issue_self_signed(directory: Path, stem: str) -> IssuedCertificate:
    """A server certificate meant to be imported into a truststore as is."""
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(_name("localhost"))
        .issuer_name(_name("localhost"))
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=7))
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName("localhost"),
                    x509.IPAddress(ipaddress.ip_address(SERVER_HOST)),
                ]
            ),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )
    return _write(directory, stem, certificate, key)


@pytest.fixture(scope="session")
def pki(tmp_path_factory: pytest.TempPathFactory) -> Pki:
    directory = tmp_path_factory.mktemp("pki")
    ca = _issue_ca(directory, "ca", "sslfactory test CA")
    rogue_ca = _issue_ca(directory, "rogue-ca", "unrelated CA")
    return Pki(
        ca=ca,
        server=_issue_leaf(directory, "server", "localhost", ca, ExtendedKeyUsageOID.SERVER_AUTH),
        client=_issue_leaf(directory, "client", "sslfactory client", ca, ExtendedKeyUsageOID.CLIENT_AUTH),
        rogue_ca=rogue_ca,
        rogue_server=_issue_leaf(directory, "rogue-server", "localhost", rogue_ca, ExtendedKeyUsageOID.SERVER_AUTH),
        self_signed=_issue_self_signed(directory, "self-signed"),
    )


class EchoTLSServer:
    """Accept TLS connections on localhost and echo the first message."""

    def __init__(self, context: ssl.SSLContext) -> None:
        self._context = context
        self._listener = socket.create_server((SERVER_HOST, 0))
        self._listener.settimeout(0.2)
        self.host = SERVER_HOST
        self.port: int = self._listener.getsockname()[1]
        self.peer_certificates: list[dict | None] = []
        self.errors: list[BaseException] = []
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._serve, name="echo-tls-server", daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                conn, _ = self._listener.accept()
            except TimeoutError:
                continue
            except OSError:
                return
            conn.settimeout(5)
            try:
                with self._context.wrap_socket(conn, server_side=True) as tls_conn:
                    self.peer_certificates.append(tls_conn.getpeercert())
                    data = tls_conn.recv(1024)
                    if data:
                        tls_conn.sendall(data)
            except OSError as exc:
                self.errors.append(exc)
            finally:
                conn.close()

    def close(self) -> None:
        self._stop.set()
        self._listener.close()
        self._thread.join(timeout=5)


def _server_context(leaf: IssuedCertificate, client_ca: IssuedCertificate | None = None) -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.load_cert_chain(str(leaf.cert_path), str(leaf.key_path))
    if client_ca is not None:
        context.verify_mode = ssl.CERT_REQUIRED
        context.load_verify_locations(cafile=str(client_ca.cert_path))
    return context


@pytest.fixture
def tls_server(pki: Pki) -> Iterator[EchoTLSServer]:
    server = EchoTLSServer(_server_context(pki.server))
    yield server
    server.close()


@pytest.fixture
def rogue_tls_server(pki: Pki) -> Iterator[EchoTLSServer]:
    server = EchoTLSServer(_server_context(pki.rogue_server))
    yield server
    server.close()


@pytest.fixture
def self_signed_tls_server(pki: Pki) -> Iterator[EchoTLSServer]:
    server = EchoTLSServer(_server_context(pki.self_signed))
    yield server
    server.close()


@pytest.fixture
def mtls_server(pki: Pki) -> Iterator[EchoTLSServer]:
    server = EchoTLSServer(_server_context(pki.server, client_ca=pki.ca))
    yield server
    server.close()


@pytest.fixture(autouse=True)
def reset_logging_handlers() -> Iterator[None]:
    """Close and remove root handlers installed by configure_logging."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        try:
            handler.close()
        except (OSError, RuntimeError):
            pass
        root.removeHandler(handler)
