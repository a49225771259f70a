"""
Reconciliation policy -- estimated vs. measured joint counts.

When a load arrives, the manifest extraction (an external collaborator)
produces a measured joint count.  The policy compares it with the estimate
captured at request time.  Measured always wins; a large relative delta
raises an advisory flag for manual follow-up but never blocks the arrival.

    delta   = measured - estimated
    flagged = |delta| / max(estimated, 1) > threshold

Pure, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from yard_kernel.exceptions import InvalidQuantityError

DEFAULT_DISCREPANCY_THRESHOLD = Decimal("0.05")


@dataclass(frozen=True)
class ReconciliationResult:
    """Outcome of comparing a measured quantity against its estimate."""

    estimated: int
    measured: int
    delta: int
    ratio: Decimal
    accepted: bool
    flagged: bool


class ReconciliationPolicy:
    """
    Accept/flag decision for measured quantities.

    Args:
        threshold: relative discrepancy above which a result is flagged
            (0.05 == 5%).  Must be >= 0.
    """

    def __init__(self, threshold: Decimal = DEFAULT_DISCREPANCY_THRESHOLD):
        threshold = Decimal(str(threshold))
        if threshold < 0:
            raise ValueError(f"threshold must be >= 0, got {threshold}")
        self.threshold = threshold

    def reconcile(self, estimated: int, measured: int) -> ReconciliationResult:
        """
        Raises:
            InvalidQuantityError: measured is zero or negative; such a
                quantity can never be committed.
        """
        if isinstance(measured, bool) or not isinstance(measured, int):
            raise InvalidQuantityError(measured, "measured quantity must be an integer")
        if measured <= 0:
            raise InvalidQuantityError(measured, "measured quantity must be greater than zero")

        delta = measured - estimated
        ratio = Decimal(abs(delta)) / Decimal(max(estimated, 1))
        return ReconciliationResult(
            estimated=estimated,
            measured=measured,
            delta=delta,
            ratio=ratio,
            accepted=True,
            flagged=ratio > self.threshold,
        )
