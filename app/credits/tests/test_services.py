"""
Tests for BalanceService.

This module tests the single mutation path for balances: holder
lookup, credits, debits, idempotent replays and the ledger invariants.
"""

from decimal import Decimal
from unittest import mock

import pytest
from django.db.models.query import QuerySet

from credits.exceptions import (
    ConcurrentBalanceUpdate,
    DuplicateTransaction,
    HolderNotFound,
    InsufficientBalance,
    InvalidAmount,
)
from credits.models import BalanceHolder, EntryType, LedgerEntry, PlanType
from credits.services.balance import BalanceService
from credits.tests.factories import BalanceHolderFactory, UserFactory


class TestHolderLookup:
    """Tests for get_or_create_holder(), get_holder() and get_balance()."""

    def test_get_or_create_creates_inactive_holder_without_plan(self, user):
        holder = BalanceService.get_or_create_holder(user)

        assert holder.plan_type == PlanType.NONE
        assert holder.is_active is False
        assert holder.credit_balance == Decimal("0.00")

    def test_get_or_create_returns_existing(self, holder):
        assert BalanceService.get_or_create_holder(holder.user).pk == holder.pk

    def test_new_holder_uses_configured_minimum_balance(self, user, settings):
        settings.CREDITS_DEFAULT_MINIMUM_BALANCE = "7.50"

        holder = BalanceService.get_or_create_holder(user)

        assert holder.minimum_balance == Decimal("7.50")

    def test_get_holder_raises_when_missing(self, user):
        with pytest.raises(HolderNotFound) as exc_info:
            BalanceService.get_holder(user)

        assert exc_info.value.details["user_id"] == str(user.pk)

    def test_get_balance_without_holder_is_zero(self, user):
        assert BalanceService.get_balance(user) == Decimal("0.00")

    def test_get_balance(self, funded_holder):
        assert BalanceService.get_balance(funded_holder.user) == Decimal("25.00")


class TestCredits:
    """Tests for positive deltas."""

    def test_first_credit_opens_active_payg_holder(self, user):
        change = BalanceService.apply_delta(
            user, "25.00", EntryType.TOPUP, correlation_id="order:1"
        )

        holder = BalanceHolder.objects.get(user=user)
        assert change.previous_balance == Decimal("0.00")
        assert change.new_balance == Decimal("25.00")
        assert holder.credit_balance == Decimal("25.00")
        assert holder.plan_type == PlanType.PAYG
        assert holder.is_active is True
        assert holder.current_period_end is not None

    def test_credit_records_entry_with_references(self, holder):
        change = BalanceService.apply_delta(
            holder.user,
            Decimal("10.00"),
            EntryType.TOPUP,
            description="Top-up",
            correlation_id="order:42",
            related_order_id="42",
            metadata={"source": "test"},
        )

        entry = change.entry
        assert entry.entry_type == EntryType.TOPUP
        assert entry.amount == Decimal("10.00")
        assert entry.balance_before == Decimal("0.00")
        assert entry.balance_after == Decimal("10.00")
        assert entry.related_order_id == "42"
        assert entry.metadata == {"source": "test"}
        assert change.duplicate is False


class TestDebits:
    """Tests for negative deltas."""

    def test_debit_reduces_balance(self, funded_holder):
        change = BalanceService.apply_delta(
            funded_holder.user, "-3.50", EntryType.USAGE, correlation_id="call:1"
        )

        funded_holder.refresh_from_db()
        assert change.new_balance == Decimal("21.50")
        assert funded_holder.credit_balance == Decimal("21.50")
        assert change.entry.amount == Decimal("-3.50")

    def test_debit_to_exactly_zero_is_allowed(self, db):
        holder = BalanceHolderFactory(credit_balance=Decimal("4.00"))

        change = BalanceService.apply_delta(
            holder.user, "-4.00", EntryType.USAGE, correlation_id="call:zero"
        )

        assert change.new_balance == Decimal("0.00")

    def test_over_debit_leaves_no_trace(self, db):
        holder = BalanceHolderFactory(credit_balance=Decimal("2.00"))

        with pytest.raises(InsufficientBalance) as exc_info:
            BalanceService.apply_delta(
                holder.user, "-5.00", EntryType.ADMIN_REMOVE, correlation_id="admin:1"
            )

        holder.refresh_from_db()
        assert holder.credit_balance == Decimal("2.00")
        assert not LedgerEntry.objects.filter(user=holder.user).exists()
        assert exc_info.value.required == Decimal("5.00")
        assert exc_info.value.available == Decimal("2.00")
        assert exc_info.value.to_dict()["error_code"] == "INSUFFICIENT_BALANCE"

    def test_debit_without_holder_is_insufficient(self, user):
        with pytest.raises(InsufficientBalance) as exc_info:
            BalanceService.apply_delta(user, "-1.00", EntryType.USAGE, correlation_id="call:x")

        assert exc_info.value.available == Decimal("0.00")
        assert not BalanceHolder.objects.filter(user=user).exists()


class TestValidation:
    """Tests for rejected arguments."""

    @pytest.mark.parametrize(
        "amount,kind",
        [
            ("5.00", EntryType.USAGE),
            ("-5.00", EntryType.TOPUP),
            ("-5.00", EntryType.REFUND),
            ("5.00", EntryType.ADMIN_REMOVE),
        ],
    )
    def test_wrong_sign_for_kind(self, funded_holder, amount, kind):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(funded_holder.user, amount, kind, correlation_id="c:1")

    def test_zero_amount(self, funded_holder):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(funded_holder.user, 0, EntryType.TOPUP, correlation_id="c:2")

    def test_sub_cent_amount(self, funded_holder):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(
                funded_holder.user, "0.001", EntryType.TOPUP, correlation_id="c:3"
            )

    def test_unknown_kind(self, funded_holder):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(funded_holder.user, "1.00", "bonus", correlation_id="c:4")

    def test_correlation_id_required(self, funded_holder):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(funded_holder.user, "1.00", EntryType.TOPUP)

        assert LedgerEntry.objects.count() == 0

    def test_oversized_amount(self, holder):
        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(holder.user, "1e15", EntryType.TOPUP, correlation_id="c:5")

        holder.refresh_from_db()
        assert holder.credit_balance == Decimal("0.00")

    def test_balance_cannot_outgrow_the_column(self, db):
        holder = BalanceHolderFactory(credit_balance=Decimal("9999999999.00"))

        with pytest.raises(InvalidAmount):
            BalanceService.apply_delta(
                holder.user, "1.00", EntryType.TOPUP, correlation_id="c:6"
            )

        holder.refresh_from_db()
        assert holder.credit_balance == Decimal("9999999999.00")
        assert not LedgerEntry.objects.filter(correlation_id="c:6").exists()


class TestIdempotency:
    """Tests for replays of a correlation id."""

    def test_replay_returns_recorded_change(self, holder):
        first = BalanceService.apply_delta(
            holder.user, "25.00", EntryType.TOPUP, correlation_id="order:7"
        )
        second = BalanceService.apply_delta(
            holder.user, "25.00", EntryType.TOPUP, correlation_id="order:7"
        )

        holder.refresh_from_db()
        assert second.duplicate is True
        assert second.entry.pk == first.entry.pk
        assert second.new_balance == Decimal("25.00")
        assert holder.credit_balance == Decimal("25.00")
        assert LedgerEntry.objects.filter(correlation_id="order:7").count() == 1

    def test_replay_with_different_amount_conflicts(self, holder):
        BalanceService.apply_delta(holder.user, "25.00", EntryType.TOPUP, correlation_id="order:8")

        with pytest.raises(DuplicateTransaction) as exc_info:
            BalanceService.apply_delta(
                holder.user, "30.00", EntryType.TOPUP, correlation_id="order:8"
            )

        holder.refresh_from_db()
        assert holder.credit_balance == Decimal("25.00")
        assert exc_info.value.details["recorded_amount"] == "25.00"

    def test_replay_for_other_user_conflicts(self, holder, other_user):
        BalanceService.apply_delta(holder.user, "25.00", EntryType.TOPUP, correlation_id="order:9")

        with pytest.raises(DuplicateTransaction):
            BalanceService.apply_delta(
                other_user, "25.00", EntryType.TOPUP, correlation_id="order:9"
            )

        assert BalanceService.get_balance(other_user) == Decimal("0.00")

    def test_replay_of_rejected_debit_is_still_rejected(self, db):
        holder = BalanceHolderFactory(credit_balance=Decimal("2.00"))

        for _ in range(2):
            with pytest.raises(InsufficientBalance):
                BalanceService.apply_delta(
                    holder.user, "-5.00", EntryType.USAGE, correlation_id="call:big"
                )


class TestLedgerInvariants:
    """Tests that the ledger always explains the balance."""

    def test_sum_of_entries_equals_balance(self, user):
        deltas = [
            ("25.00", EntryType.TOPUP),
            ("-3.50", EntryType.USAGE),
            ("-0.25", EntryType.USAGE),
            ("10.00", EntryType.ADMIN_ADD),
            ("-20.00", EntryType.ASSISTANT_PURCHASE),
            ("1.75", EntryType.REFUND),
            ("-0.50", EntryType.ADMIN_REMOVE),
        ]
        changes = [
            BalanceService.apply_delta(user, amount, kind, correlation_id=f"seq:{i}")
            for i, (amount, kind) in enumerate(deltas)
        ]

        entries = LedgerEntry.objects.filter(user=user)
        expected = sum(Decimal(amount) for amount, _ in deltas)
        assert BalanceService.get_balance(user) == expected == Decimal("12.50")
        assert sum(entry.amount for entry in entries) == expected
        for entry in entries:
            assert entry.balance_after - entry.balance_before == entry.amount
        for previous, current in zip(changes, changes[1:]):
            assert current.previous_balance == previous.new_balance

    def test_balances_are_isolated_per_user(self, db):
        alice = UserFactory()
        bob = UserFactory()

        BalanceService.apply_delta(alice, "10.00", EntryType.TOPUP, correlation_id="a:1")
        BalanceService.apply_delta(bob, "3.00", EntryType.TOPUP, correlation_id="b:1")
        BalanceService.apply_delta(alice, "-4.00", EntryType.USAGE, correlation_id="a:2")

        assert BalanceService.get_balance(alice) == Decimal("6.00")
        assert BalanceService.get_balance(bob) == Decimal("3.00")


class TestConcurrentSwap:
    """Tests for the compare-and-swap retry limit."""

    def test_gives_up_when_balance_keeps_changing(self, funded_holder):
        with mock.patch.object(QuerySet, "update", return_value=0):
            with pytest.raises(ConcurrentBalanceUpdate):
                BalanceService.apply_delta(
                    funded_holder.user, "-1.00", EntryType.USAGE, correlation_id="call:race"
                )

        assert not LedgerEntry.objects.filter(correlation_id="call:race").exists()
        funded_holder.refresh_from_db()
        assert funded_holder.credit_balance == Decimal("25.00")

    def test_retries_after_losing_a_swap(self, funded_holder):
        original_update = QuerySet.update
        lost = []

        def update(queryset, **kwargs):
            if queryset.model is BalanceHolder and "credit_balance" in kwargs and not lost:
                lost.append(True)
                # Another writer debits 5.00 between our read and our swap
                original_update(
                    BalanceHolder.objects.filter(pk=funded_holder.pk),
                    credit_balance=Decimal("20.00"),
                )
                return 0
            return original_update(queryset, **kwargs)

        with mock.patch.object(QuerySet, "update", autospec=True, side_effect=update):
            change = BalanceService.apply_delta(
                funded_holder.user, "-1.00", EntryType.USAGE, correlation_id="call:retry"
            )

        funded_holder.refresh_from_db()
        assert lost == [True]
        assert change.previous_balance == Decimal("20.00")
        assert change.new_balance == Decimal("19.00")
        assert change.entry.balance_before == Decimal("20.00")
        assert funded_holder.credit_balance == Decimal("19.00")

    def test_concurrent_duplicate_insert_returns_recorded_entry(self, holder):
        first = BalanceService.apply_delta(
            holder.user, "25.00", EntryType.TOPUP, correlation_id="order:race"
        )
        original_first = QuerySet.first
        missed = []

        def first_row(queryset):
            if queryset.model is LedgerEntry and not missed:
                # The other writer's entry is not visible yet when we check
                missed.append(True)
                return None
            return original_first(queryset)

        with mock.patch.object(QuerySet, "first", autospec=True, side_effect=first_row):
            second = BalanceService.apply_delta(
                holder.user, "25.00", EntryType.TOPUP, correlation_id="order:race"
            )

        holder.refresh_from_db()
        assert missed == [True]
        assert second.duplicate is True
        assert second.entry.pk == first.entry.pk
        assert holder.credit_balance == Decimal("25.00")
        assert LedgerEntry.objects.filter(correlation_id="order:race").count() == 1
