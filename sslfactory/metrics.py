"""Prometheus counters for sslfactory connections and trust decisions."""

from __future__ import annotations

from typing import Final

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, generate_latest

OUTCOME_CONNECTED: Final[str] = "connected"
OUTCOME_TIMEOUT: Final[str] = "timeout"
OUTCOME_UNRESOLVED: Final[str] = "unresolved"
OUTCOME_ERROR: Final[str] = "error"

DECISION_ACCEPTED: Final[str] = "accepted"
DECISION_REJECTED: Final[str] = "rejected"

REGISTRY = CollectorRegistry(auto_describe=True)

CONNECTIONS = Counter(
    "sslfactory_connections",
    "TLS client connection attempts by outcome",
    ["outcome"],
    registry=REGISTRY,
)

TRUST_DECISIONS = Counter(
    "sslfactory_trust_decisions",
    "Chain validator decisions taken during TLS handshakes",
    ["decision"],
    registry=REGISTRY,
)


def record_connection(outcome: str) -> None:
    CONNECTIONS.labels(outcome=outcome).inc()


def record_trust_decision(decision: str) -> None:
    TRUST_DECISIONS.labels(decision=decision).inc()


def render_metrics() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST


__all__ = [
    "CONNECTIONS",
    "REGISTRY",
    "TRUST_DECISIONS",
    "record_connection",
    "record_trust_decision",
    "render_metrics",
]
