"""
Split planning for partial pickups.

A split carves ``extract`` joints out of a lot into a new lot.  Extracting
the whole quantity is not a split -- that is a full-lot transition the
Lifecycle Engine performs in place.

Pure, zero I/O.  The LotStore applies a plan to persistent rows.
"""

from __future__ import annotations

from dataclasses import dataclass

from yard_kernel.exceptions import InvalidQuantityError


@dataclass(frozen=True)
class SplitPlan:
    """Quantities on either side of a split; they always sum to the original."""

    original_quantity: int
    remainder_quantity: int
    extracted_quantity: int


def plan_split(quantity: int, extract: int) -> SplitPlan:
    """
    Validate and compute a split.

    Raises:
        InvalidQuantityError: unless 0 < extract < quantity.
    """
    if isinstance(extract, bool) or not isinstance(extract, int):
        raise InvalidQuantityError(extract, "split quantity must be an integer")
    if not 0 < extract < quantity:
        raise InvalidQuantityError(
            extract, f"split quantity must be between 1 and {quantity - 1}"
        )
    return SplitPlan(
        original_quantity=quantity,
        remainder_quantity=quantity - extract,
        extracted_quantity=extract,
    )


MAX_REFERENCE_LENGTH = 100


def split_reference(parent_reference: str, ordinal: int) -> str:
    """
    Reference id for the ``ordinal``-th (1-based) lot split from a parent.

    Deeply nested splits keep the ``/<n>`` suffix and drop characters from
    the end of the parent reference so the result fits
    MAX_REFERENCE_LENGTH.  Uniqueness is the caller's concern.
    """
    suffix = f"/{ordinal}"
    return parent_reference[: MAX_REFERENCE_LENGTH - len(suffix)] + suffix
