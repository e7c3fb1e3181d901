"""Global collateralization ratio (GCR) for a position contract.

GCR = total position collateral / total tokens outstanding, with both
amounts first normalized to 18 decimals. The result is an 18-decimal
fixed-point integer (1.5 is returned as 1500000000000000000). All
arithmetic is on Python ints, so nothing is rounded except the final
floor division.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

FIXED_POINT_DECIMALS = 18
FIXED_POINT = 10**FIXED_POINT_DECIMALS

_REQUIRED_FIELDS = (
    "totalTokensOutstanding",
    "totalPositionCollateral",
    "tokenDecimals",
    "collateralDecimals",
)


def convert_decimals(amount: int, from_decimals: int, to_decimals: int) -> int:
    """Rescale an integer amount from one decimal precision to another."""
    if from_decimals == to_decimals:
        return amount
    if from_decimals > to_decimals:
        return amount // 10 ** (from_decimals - to_decimals)
    return amount * 10 ** (to_decimals - from_decimals)


def calc_gcr(state: Mapping[str, Any]) -> int:
    """Compute the GCR of a position as an 18-decimal fixed-point integer.

    Returns 0 when no tokens are outstanding.

    Raises:
        ValueError: If a required field is missing or not an integer amount.
    """
    for name in _REQUIRED_FIELDS:
        if state.get(name) is None:
            raise ValueError(f"requires {name}")

    tokens = int(state["totalTokensOutstanding"])
    collateral = int(state["totalPositionCollateral"])
    if tokens <= 0:
        return 0

    normalized_tokens = convert_decimals(
        tokens, int(state["tokenDecimals"]), FIXED_POINT_DECIMALS
    )
    normalized_collateral = convert_decimals(
        collateral, int(state["collateralDecimals"]), FIXED_POINT_DECIMALS
    )
    return normalized_collateral * FIXED_POINT // normalized_tokens


@dataclass(frozen=True)
class GcrResult:
    """Outcome of a GCR computation: a value or the fault that prevented it."""

    value: int | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: int) -> int:
        return self.value if self.value is not None else default


def try_calc_gcr(state: Mapping[str, Any]) -> GcrResult:
    """calc_gcr() that captures any fault in the result instead of raising."""
    try:
        return GcrResult(value=calc_gcr(state))
    except Exception as e:
        return GcrResult(error=e)
