"""
Tests for credits models.

Covers derived properties, database constraints and the small helpers
on the usage and webhook models.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction
from django.utils import timezone

from credits.models import (
    UNLIMITED,
    AssistantUsage,
    BalanceHolder,
    DailyUsage,
    EntryType,
    LedgerEntry,
    PlanType,
    PurchasedAssistant,
)
from credits.models.webhook_event import WebhookEventStatus
from credits.tests.factories import (
    BalanceHolderFactory,
    LedgerEntryFactory,
    UsageAggregateFactory,
    WebhookEventFactory,
)


class TestBalanceHolder:
    """Tests for BalanceHolder properties and constraints."""

    def test_defaults_for_new_holder(self, user):
        holder = BalanceHolder.objects.create(user=user)

        assert holder.plan_type == PlanType.NONE
        assert holder.credit_balance == Decimal("0.00")
        assert holder.is_active is False
        assert holder.monthly_minute_limit == UNLIMITED

    def test_needs_topup_at_minimum_balance(self, db):
        holder = BalanceHolderFactory(
            credit_balance=Decimal("5.00"),
            minimum_balance=Decimal("5.00"),
        )

        assert holder.needs_topup is True

    def test_no_topup_needed_above_minimum(self, db):
        holder = BalanceHolderFactory(
            credit_balance=Decimal("5.01"),
            minimum_balance=Decimal("5.00"),
        )

        assert holder.needs_topup is False

    def test_unlimited_remaining_is_minus_one(self, holder):
        assert holder.minutes_remaining == -1
        assert holder.calls_remaining == -1
        assert holder.assistants_remaining == -1
        assert holder.minutes_overage == 0

    def test_remaining_never_negative(self, db):
        holder = BalanceHolderFactory(subscription=True, minutes_used=130, calls_used=60)

        assert holder.minutes_remaining == 0
        assert holder.calls_remaining == 0
        assert holder.minutes_overage == 30

    def test_remaining_within_limit(self, db):
        holder = BalanceHolderFactory(subscription=True, minutes_used=40, assistants_created=1)

        assert holder.minutes_remaining == 60
        assert holder.assistants_remaining == 2

    def test_is_payg(self, holder, db):
        assert holder.is_payg is True
        assert BalanceHolderFactory(trial=True).is_payg is False

    def test_negative_balance_rejected_by_database(self, holder):
        with pytest.raises(IntegrityError), transaction.atomic():
            BalanceHolder.objects.filter(pk=holder.pk).update(credit_balance=Decimal("-1.00"))

    def test_one_holder_per_user(self, holder):
        with pytest.raises(IntegrityError), transaction.atomic():
            BalanceHolder.objects.create(user=holder.user)


class TestLedgerEntry:
    """Tests for LedgerEntry constraints."""

    def test_credit_entry_with_positive_amount(self, db):
        entry = LedgerEntryFactory(entry_type=EntryType.TOPUP, amount=Decimal("10.00"))

        assert entry.is_credit is True
        assert entry.balance_after == Decimal("10.00")

    def test_debit_entry_with_negative_amount(self, db):
        entry = LedgerEntryFactory(
            entry_type=EntryType.USAGE,
            amount=Decimal("-3.50"),
            balance_before=Decimal("25.00"),
        )

        assert entry.is_credit is False
        assert entry.balance_after == Decimal("21.50")

    @pytest.mark.parametrize(
        "entry_type,amount",
        [
            (EntryType.TOPUP, Decimal("-1.00")),
            (EntryType.REFUND, Decimal("0.00")),
            (EntryType.USAGE, Decimal("1.00")),
            (EntryType.ADMIN_REMOVE, Decimal("2.00")),
        ],
    )
    def test_amount_sign_must_match_type(self, db, entry_type, amount):
        with pytest.raises(IntegrityError), transaction.atomic():
            LedgerEntryFactory(
                entry_type=entry_type,
                amount=amount,
                balance_before=Decimal("10.00"),
            )

    def test_correlation_id_is_unique(self, db):
        LedgerEntryFactory(correlation_id="order:1")

        with pytest.raises(IntegrityError), transaction.atomic():
            LedgerEntryFactory(correlation_id="order:1")

    def test_str_includes_type_and_correlation(self, db):
        entry = LedgerEntryFactory(correlation_id="order:abc")

        assert "Top-up" in str(entry)
        assert "order:abc" in str(entry)

    def test_default_ordering_newest_first(self, user):
        older = LedgerEntryFactory(user=user)
        newer = LedgerEntryFactory(user=user)
        LedgerEntry.objects.filter(pk=older.pk).update(
            created_at=timezone.now() - timedelta(hours=1)
        )

        assert list(LedgerEntry.objects.filter(user=user)) == [newer, older]


class TestUsageAggregate:
    """Tests for UsageAggregate helpers."""

    def test_daily_average_without_days_is_zero(self, db):
        aggregate = UsageAggregateFactory(total_minutes_used=0)

        assert aggregate.get_daily_average() == 0

    def test_daily_average_over_days_with_usage(self, db):
        aggregate = UsageAggregateFactory(total_minutes_used=30)
        DailyUsage.objects.create(aggregate=aggregate, date=date(2024, 1, 1), minutes=10)
        DailyUsage.objects.create(aggregate=aggregate, date=date(2024, 1, 5), minutes=20)

        assert aggregate.get_daily_average() == 15

    def test_top_assistants_by_minutes(self, db):
        aggregate = UsageAggregateFactory()
        for assistant_id, minutes in [("a", 5), ("b", 50), ("c", 20)]:
            AssistantUsage.objects.create(
                aggregate=aggregate,
                assistant_id=assistant_id,
                minutes_used=minutes,
            )

        top = aggregate.get_top_assistants(limit=2)

        assert [row.assistant_id for row in top] == ["b", "c"]

    def test_one_aggregate_per_user_and_month(self, db):
        aggregate = UsageAggregateFactory()

        with pytest.raises(IntegrityError), transaction.atomic():
            UsageAggregateFactory(user=aggregate.user, month=aggregate.month)


class TestPurchasedAssistant:
    def test_one_row_per_user_and_assistant(self, user):
        PurchasedAssistant.objects.create(user=user, assistant_id="asst_1")

        with pytest.raises(IntegrityError), transaction.atomic():
            PurchasedAssistant.objects.create(user=user, assistant_id="asst_1")

    def test_same_assistant_id_for_other_users(self, user, other_user):
        PurchasedAssistant.objects.create(user=user, assistant_id="asst_1")
        PurchasedAssistant.objects.create(user=other_user, assistant_id="asst_1")

        assert PurchasedAssistant.objects.count() == 2


class TestWebhookEvent:
    """Tests for WebhookEvent status helpers."""

    def test_mark_processing_counts_attempts(self, db):
        event = WebhookEventFactory()

        event.mark_processing()
        event.mark_processing()

        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 2

    def test_mark_processed_clears_error(self, db):
        event = WebhookEventFactory()
        event.mark_failed("boom")

        event.mark_processed()

        assert event.is_processed is True
        assert event.processed_at is not None
        assert event.error_message is None

    def test_mark_failed(self, db):
        event = WebhookEventFactory()

        event.mark_failed("[INSUFFICIENT_BALANCE] no money")

        assert event.is_failed is True
        assert "INSUFFICIENT_BALANCE" in event.error_message

    def test_data_returns_inner_object(self, db):
        event = WebhookEventFactory(payload={"id": "evt_1", "data": {"order_id": "o1"}})

        assert event.data == {"order_id": "o1"}

    def test_data_tolerates_missing_or_bad_data(self, db):
        assert WebhookEventFactory(payload={"id": "evt_2"}).data == {}
        assert WebhookEventFactory(payload={"id": "evt_3", "data": [1, 2]}).data == {}
