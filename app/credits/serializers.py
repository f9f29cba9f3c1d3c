"""
Serializers for credits API.

Request serializers validate request shape only; business rules
(minimums, permissions, plan transitions) live in the services.

Serializer Groups:
    Ledger: LedgerEntrySerializer, BalanceChangeSerializer
    Reports: BalanceSummarySerializer, MonthlyUsageSerializer,
        CallAllowanceSerializer
    Pricing: PricingConfigSerializer, PricingSettingSerializer,
        PricingUpdateSerializer
    Requests: SelectPlanSerializer, AssistantPurchaseRequestSerializer,
        AdminAdjustmentSerializer, ActivateAccountSerializer,
        RefundSerializer, LedgerFilterSerializer
"""

from __future__ import annotations

from rest_framework import serializers

from credits.models import (
    AssistantUsage,
    DailyUsage,
    EntryType,
    LedgerEntry,
    PricingSetting,
)
from credits.types import PricingConfig

AMOUNT_FIELD_KWARGS = {"max_digits": 12, "decimal_places": 2}


# =============================================================================
# Ledger Serializers
# =============================================================================


class LedgerEntrySerializer(serializers.ModelSerializer):
    """Read-only view of one ledger entry."""

    entry_type_display = serializers.CharField(
        source="get_entry_type_display",
        read_only=True,
    )

    class Meta:
        model = LedgerEntry
        fields = [
            "id",
            "entry_type",
            "entry_type_display",
            "amount",
            "description",
            "balance_before",
            "balance_after",
            "correlation_id",
            "related_order_id",
            "related_call_id",
            "related_assistant_id",
            "created_at",
        ]
        read_only_fields = fields


class AdminLedgerEntrySerializer(LedgerEntrySerializer):
    """Ledger entry with its owner, for operator listings."""

    user_id = serializers.IntegerField(read_only=True)
    username = serializers.CharField(source="user.get_username", read_only=True)

    class Meta(LedgerEntrySerializer.Meta):
        fields = [*LedgerEntrySerializer.Meta.fields, "user_id", "username"]
        read_only_fields = fields


class BalanceChangeSerializer(serializers.Serializer):
    """Outcome of a balance mutation."""

    previous_balance = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    new_balance = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    duplicate = serializers.BooleanField()
    entry = LedgerEntrySerializer()


# =============================================================================
# Report Serializers
# =============================================================================


class BalanceSummarySerializer(serializers.Serializer):
    balance = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    plan_type = serializers.CharField()
    plan_name = serializers.CharField()
    needs_topup = serializers.BooleanField()
    minimum_balance = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    is_active = serializers.BooleanField()
    recent_transactions = LedgerEntrySerializer(many=True)


class AssistantUsageSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssistantUsage
        fields = ["assistant_id", "assistant_name", "minutes_used", "calls_made", "last_used_at"]


class DailyUsageSerializer(serializers.ModelSerializer):
    class Meta:
        model = DailyUsage
        fields = ["date", "minutes", "calls", "cost"]


class MonthlyUsageSerializer(serializers.Serializer):
    """
    Monthly usage report.

    Limits and remaining counts are -1 when unlimited.
    """

    month = serializers.CharField()
    total_minutes = serializers.IntegerField()
    total_calls = serializers.IntegerField()
    total_cost = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    overage_cost = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    daily_average = serializers.FloatField()
    top_assistants = AssistantUsageSerializer(many=True)
    daily = DailyUsageSerializer(many=True)
    plan_type = serializers.CharField()
    minute_limit = serializers.IntegerField()
    call_limit = serializers.IntegerField()
    assistant_limit = serializers.IntegerField()
    minutes_remaining = serializers.IntegerField()
    calls_remaining = serializers.IntegerField()
    assistants_remaining = serializers.IntegerField()


class CallAllowanceSerializer(serializers.Serializer):
    can_call = serializers.BooleanField()
    reason = serializers.CharField(allow_blank=True)
    estimated_cost = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    upgrade_required = serializers.BooleanField()


class AssistantPurchaseSerializer(serializers.Serializer):
    """Outcome of an assistant purchase."""

    assistant_id = serializers.CharField()
    charged = serializers.BooleanField()
    cost = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    duplicate = serializers.BooleanField()
    new_balance = serializers.SerializerMethodField()

    def get_new_balance(self, obj) -> str | None:
        if obj.change is None:
            return None
        return str(obj.change.new_balance)


# =============================================================================
# Pricing Serializers
# =============================================================================


class PricingConfigSerializer(serializers.Serializer):
    """Current pricing rates."""

    assistant_base_cost = serializers.DecimalField(max_digits=12, decimal_places=4)
    cost_per_minute_payg = serializers.DecimalField(max_digits=12, decimal_places=4)
    cost_per_minute_overage = serializers.DecimalField(max_digits=12, decimal_places=4)
    minimum_topup_amount = serializers.DecimalField(max_digits=12, decimal_places=4)
    initial_payg_charge = serializers.DecimalField(max_digits=12, decimal_places=4)
    payg_initial_credits = serializers.DecimalField(max_digits=12, decimal_places=4)


class PricingSettingSerializer(serializers.ModelSerializer):
    updated_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = PricingSetting
        fields = ["key", "value", "category", "description", "is_public", "updated_by_id", "updated_at"]
        read_only_fields = fields


class PricingUpdateSerializer(serializers.Serializer):
    """
    Partial pricing update.

    Every field is optional; keys that are not pricing rates are
    rejected.
    """

    assistant_base_cost = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    cost_per_minute_payg = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    cost_per_minute_overage = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    minimum_topup_amount = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    initial_payg_charge = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)
    payg_initial_credits = serializers.DecimalField(max_digits=12, decimal_places=4, required=False)

    def validate(self, attrs):
        unknown = sorted(set(self.initial_data) - set(PricingConfig.keys()))
        if unknown:
            raise serializers.ValidationError(
                {key: ["Unknown pricing key."] for key in unknown}
            )
        if not attrs:
            raise serializers.ValidationError("Provide at least one pricing value.")
        return attrs


# =============================================================================
# Request Serializers
# =============================================================================


class SelectPlanSerializer(serializers.Serializer):
    plan_type = serializers.CharField(help_text="Plan to start on: trial or payg")


class AssistantPurchaseRequestSerializer(serializers.Serializer):
    assistant_id = serializers.CharField(max_length=255)
    assistant_name = serializers.CharField(max_length=255, required=False, default="")
    correlation_id = serializers.CharField(max_length=255)


class AdminAdjustmentSerializer(serializers.Serializer):
    """Signed credit adjustment: positive adds, negative removes."""

    user_id = serializers.IntegerField()
    amount = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    reason = serializers.CharField(max_length=1000)
    correlation_id = serializers.CharField(max_length=255)


class ActivateAccountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    correlation_id = serializers.CharField(max_length=255)
    description = serializers.CharField(max_length=500, required=False, default="")


class RefundSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    amount = serializers.DecimalField(**AMOUNT_FIELD_KWARGS)
    reason = serializers.CharField(max_length=1000)
    correlation_id = serializers.CharField(max_length=255)


class LedgerFilterSerializer(serializers.Serializer):
    """Query-string filters for ledger listings."""

    type = serializers.ChoiceField(choices=EntryType.choices, required=False)
    start = serializers.DateField(required=False)
    end = serializers.DateField(required=False)
    user = serializers.IntegerField(required=False)

    def validate(self, attrs):
        start, end = attrs.get("start"), attrs.get("end")
        if start and end and start > end:
            raise serializers.ValidationError({"end": ["End date is before start date."]})
        return attrs
