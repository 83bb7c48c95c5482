"""Connection probe for sslfactory configurations.

Opens one TLS connection with the configured trust policy, forces the
handshake and prints what was negotiated. Useful to check a private CA or
client certificate setup before handing the factory to an HTTP client.
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import asdict, dataclass
from typing import Any

import msgspec

from sslfactory.config.logging import configure_logging
from sslfactory.config.settings import FactoryConfig, config_from_mapping, load_factory_config
from sslfactory.const import MAX_PORT, MIN_PORT, TLS_PROTOCOL_NAMES
from sslfactory.context import TrustedSSLSocket
from sslfactory.errors import SocketFactoryError
from sslfactory.factory import AuthSSLSocketFactory
from sslfactory.trust import describe_certificate


@dataclass(slots=True)
class ProbeSnapshot:
    host: str
    port: int
    protocol: str
    cipher: str
    cipher_bits: int
    peer_subject: str
    peer_issuer: str
    peer_not_after: str
    chain_length: int

    def render(self) -> str:
        return (
            "[Probe] --- Session ---\n"
            f"peer={self.host}:{self.port}\n"
            f"protocol={self.protocol}\n"
            f"cipher={self.cipher} ({self.cipher_bits} bits)\n"
            f"subject={self.peer_subject}\n"
            f"issuer={self.peer_issuer}\n"
            f"not_after={self.peer_not_after}\n"
            f"chain_length={self.chain_length}"
        )


def build_snapshot(host: str, port: int, sock: TrustedSSLSocket) -> ProbeSnapshot:
    chain = sock.peer_chain()
    cipher = sock.cipher() or ("unknown", "", 0)
    leaf = describe_certificate(chain[0]) if chain else {}
    return ProbeSnapshot(
        host=host,
        port=port,
        protocol=sock.version() or "unknown",
        cipher=cipher[0],
        cipher_bits=int(cipher[2] or 0),
        peer_subject=leaf.get("subject", ""),
        peer_issuer=leaf.get("issuer", ""),
        peer_not_after=leaf.get("not_after", ""),
        chain_length=len(chain),
    )


def _port(value: str) -> int:
    candidate = int(value)
    if not MIN_PORT <= candidate <= MAX_PORT:
        raise argparse.ArgumentTypeError(f"port must be in {MIN_PORT}..{MAX_PORT}")
    return candidate


def _non_negative_float(value: str) -> float:
    candidate = float(value)
    if candidate < 0:
        raise argparse.ArgumentTypeError("value must be >= 0")
    return candidate


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sslfactory-probe",
        description="Open one TLS connection through sslfactory and report the session.",
    )
    parser.add_argument("host", help="Remote host name or IP address")
    parser.add_argument("port", type=_port, help="Remote TCP port")
    parser.add_argument(
        "--config",
        help="TOML configuration file (flat or under an [sslfactory] table)",
    )
    parser.add_argument("--cafile", help="PEM file with the trusted CA certificates")
    parser.add_argument("--certfile", help="PEM client certificate chain")
    parser.add_argument("--keyfile", help="PEM client private key")
    parser.add_argument(
        "--protocol",
        choices=sorted(TLS_PROTOCOL_NAMES),
        help="Pin the TLS protocol version",
    )
    parser.add_argument(
        "--timeout",
        type=_non_negative_float,
        dest="connect_timeout",
        help="Connect deadline in seconds (0 disables it)",
    )
    parser.add_argument(
        "--no-check-hostname",
        action="store_false",
        dest="check_hostname",
        default=None,
        help="Do not match the certificate against the host name",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--json", action="store_true", help="Print the snapshot as JSON")
    return parser


def _load_config(args: argparse.Namespace) -> FactoryConfig:
    raw: dict[str, Any] = {}
    if args.config:
        raw.update(msgspec.structs.asdict(load_factory_config(args.config)))
    overrides = {
        "cafile": args.cafile,
        "certfile": args.certfile,
        "keyfile": args.keyfile,
        "protocol": args.protocol,
        "connect_timeout": args.connect_timeout,
        "check_hostname": args.check_hostname,
    }
    raw.update({key: value for key, value in overrides.items() if value is not None})
    if args.debug:
        raw["debug_logging"] = True
    return config_from_mapping(raw)


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)

    try:
        config = _load_config(args)
        configure_logging(config)
        factory = AuthSSLSocketFactory.from_config(config)
    except SocketFactoryError as exc:
        print(f"[Probe] configuration error: {exc}", file=sys.stderr)
        return 2

    params = config.connection_params()
    try:
        with factory.create_timed_socket(args.host, args.port, None, 0, params) as sock:
            snapshot = build_snapshot(args.host, args.port, sock)
    except OSError as exc:
        print(f"[Probe] connection to {args.host}:{args.port} failed: {exc}", file=sys.stderr)
        return 1

    if args.json:
        print(msgspec.json.encode(asdict(snapshot)).decode("utf-8"))
    else:
        print(snapshot.render())
    return 0


if __name__ == "__main__":
    sys.exit(main())
