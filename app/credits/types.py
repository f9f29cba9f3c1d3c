"""
Data types for credits operations.

This module defines dataclasses passed between the credits services,
the webhook handlers and the API views.

Types:
    PricingConfig: Named pricing rates (frozen)
    BalanceChange: Outcome of one balance mutation
    CallCharge: Outcome of billing one call
    CallAllowance: Answer to "may this user place a call?"
    AssistantPurchase: Outcome of buying an assistant
    BalanceSummary / MonthlyUsageSummary: Read-side report shapes

Usage:
    from credits.types import DEFAULT_PRICING, to_money

    cost = to_money(minutes * DEFAULT_PRICING.cost_per_minute_payg)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from credits.models import AssistantUsage, DailyUsage, LedgerEntry

CENTS = Decimal("0.01")

# Largest value the money columns (12 digits, 2 decimal places) can hold
MAX_AMOUNT = Decimal("9999999999.99")


def to_money(value: Any) -> Decimal:
    """
    Convert a number to a Decimal rounded to cents (half up).

    Floats go through str() so 0.07 stays 0.07.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a number: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PricingConfig:
    """
    Named pricing rates in USD.

    Attributes:
        assistant_base_cost: Fee for an assistant beyond the plan quota
        cost_per_minute_payg: Per-minute rate on pay-as-you-go
        cost_per_minute_overage: Per-minute rate beyond a plan's minutes
        minimum_topup_amount: Smallest accepted top-up
        initial_payg_charge: First payment when switching to pay-as-you-go
        payg_initial_credits: Credits granted with the first payment
    """

    assistant_base_cost: Decimal = Decimal("20")
    cost_per_minute_payg: Decimal = Decimal("0.07")
    cost_per_minute_overage: Decimal = Decimal("0.05")
    minimum_topup_amount: Decimal = Decimal("5")
    initial_payg_charge: Decimal = Decimal("25")
    payg_initial_credits: Decimal = Decimal("5")

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> PricingConfig:
        """Build a config from a key/value mapping; absent keys keep defaults."""
        known = {key: Decimal(str(values[key])) for key in cls.keys() if key in values}
        return cls(**known)

    def as_dict(self) -> dict[str, Decimal]:
        return asdict(self)


DEFAULT_PRICING = PricingConfig()


@dataclass
class BalanceChange:
    """
    Outcome of BalanceService.apply_delta.

    Attributes:
        previous_balance: Balance before the change
        new_balance: Balance after the change
        entry: The ledger entry recording the change
        duplicate: True when the correlation id had already been applied
            and nothing was mutated this time
    """

    previous_balance: Decimal
    new_balance: Decimal
    entry: LedgerEntry
    duplicate: bool = False

    @property
    def amount(self) -> Decimal:
        return self.new_balance - self.previous_balance


@dataclass
class CallCharge:
    """Outcome of billing one completed call."""

    call_id: str
    minutes: int
    cost: Decimal
    is_overage: bool = False
    change: BalanceChange | None = None
    duplicate: bool = False


@dataclass
class CallAllowance:
    """
    Whether a user may place a call of the estimated length.

    Attributes:
        can_call: True when the call may go ahead
        reason: Why the call is blocked (empty when allowed)
        estimated_cost: What the call is expected to cost
        upgrade_required: True when only a plan change can unblock it
    """

    can_call: bool
    reason: str = ""
    estimated_cost: Decimal = Decimal("0.00")
    upgrade_required: bool = False


@dataclass
class AssistantPurchase:
    """Outcome of purchasing an assistant."""

    assistant_id: str
    charged: bool
    cost: Decimal
    change: BalanceChange | None = None
    duplicate: bool = False


@dataclass
class BalanceSummary:
    """Balance view shown on the dashboard."""

    balance: Decimal
    plan_type: str
    plan_name: str
    needs_topup: bool
    minimum_balance: Decimal
    is_active: bool
    recent_transactions: list[LedgerEntry] = field(default_factory=list)


@dataclass
class MonthlyUsageSummary:
    """
    Usage report for one calendar month.

    Limits and remaining counts use -1 for unlimited.
    """

    month: str
    total_minutes: int
    total_calls: int
    total_cost: Decimal
    overage_cost: Decimal
    daily_average: float
    top_assistants: list[AssistantUsage] = field(default_factory=list)
    daily: list[DailyUsage] = field(default_factory=list)
    plan_type: str = ""
    minute_limit: int = -1
    call_limit: int = -1
    assistant_limit: int = -1
    minutes_remaining: int = -1
    calls_remaining: int = -1
    assistants_remaining: int = -1
