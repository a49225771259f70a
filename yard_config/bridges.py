"""
Config -> Kernel bridges.

Turn a loaded ``YardConfig`` into the plain values kernel services take.
They live here because ``yard_kernel`` must never import ``yard_config``.

Usage:
    from yard_config import get_active_config
    from yard_config.bridges import build_orchestrator

    config = get_active_config()
    orchestrator = build_orchestrator(config)
"""

from __future__ import annotations

from sqlalchemy.orm import Session, sessionmaker

from yard_config.schema import YardConfig
from yard_kernel.domain.clock import Clock
from yard_kernel.domain.reconciliation import ReconciliationPolicy
from yard_kernel.services.event_publisher import EventPublisher
from yard_kernel.services.yard_orchestrator import YardOrchestrator


def build_reconciliation_policy(config: YardConfig) -> ReconciliationPolicy:
    """Reconciliation policy using the configured discrepancy threshold."""
    return ReconciliationPolicy(config.reconciliation.discrepancy_threshold)


def build_orchestrator(
    config: YardConfig,
    session_factory: sessionmaker[Session] | None = None,
    clock: Clock | None = None,
    publisher: EventPublisher | None = None,
) -> YardOrchestrator:
    """Build a YardOrchestrator whose policies come from ``config``.

    The engine must already be initialized (``init_engine_from_url``) when
    ``session_factory`` is omitted.
    """
    return YardOrchestrator(
        session_factory=session_factory,
        clock=clock,
        reconciliation=build_reconciliation_policy(config),
        publisher=publisher,
    )
