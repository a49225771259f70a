"""Tests for estimate vs. manifest reconciliation."""

from decimal import Decimal

import pytest

from yard_kernel.domain.reconciliation import (
    DEFAULT_DISCREPANCY_THRESHOLD,
    ReconciliationPolicy,
)
from yard_kernel.exceptions import InvalidQuantityError


class TestReconcile:
    policy = ReconciliationPolicy()

    def test_default_threshold(self):
        assert self.policy.threshold == DEFAULT_DISCREPANCY_THRESHOLD == Decimal("0.05")

    def test_exact_match(self):
        result = self.policy.reconcile(100, 100)
        assert result.accepted
        assert not result.flagged
        assert result.delta == 0

    def test_large_shortfall_flagged(self):
        result = self.policy.reconcile(100, 80)
        assert result.accepted
        assert result.flagged
        assert result.delta == -20
        assert result.ratio == Decimal("0.2")

    def test_at_threshold_not_flagged(self):
        assert not self.policy.reconcile(100, 105).flagged

    def test_just_above_threshold_flagged(self):
        assert self.policy.reconcile(100, 106).flagged

    def test_zero_estimate_uses_one_as_denominator(self):
        result = ReconciliationPolicy(Decimal("0.5")).reconcile(0, 1)
        assert result.ratio == Decimal("1")
        assert result.flagged

    @pytest.mark.parametrize("measured", [0, -3])
    def test_non_positive_measured(self, measured):
        with pytest.raises(InvalidQuantityError) as exc:
            self.policy.reconcile(100, measured)
        assert exc.value.quantity == measured

    def test_non_integer_measured(self):
        with pytest.raises(InvalidQuantityError):
            self.policy.reconcile(100, 12.5)


class TestPolicyConstruction:
    def test_custom_threshold(self):
        policy = ReconciliationPolicy(Decimal("0.25"))
        assert not policy.reconcile(100, 80).flagged

    def test_negative_threshold_rejected(self):
        with pytest.raises(ValueError):
            ReconciliationPolicy(Decimal("-0.01"))
