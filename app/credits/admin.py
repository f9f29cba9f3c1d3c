"""
Django admin configuration for credits models.

Key features:
- LedgerEntry, AdminCreditAction, PurchasedAssistant and WebhookEvent
  are read-only
- BalanceHolder plan fields are editable but the balance is not;
  balance changes go through the adjustment API so they are ledgered
- Saving a PricingSetting drops the cached pricing config
"""

from django.contrib import admin

from credits.models import (
    AdminCreditAction,
    BalanceHolder,
    LedgerEntry,
    PricingSetting,
    PurchasedAssistant,
    UsageAggregate,
    WebhookEvent,
)
from credits.services.pricing import pricing


class ReadOnlyAdminMixin:
    """Disable add, change and delete for append-only records."""

    def has_add_permission(self, request) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(BalanceHolder)
class BalanceHolderAdmin(admin.ModelAdmin):
    """
    Admin configuration for BalanceHolder.

    credit_balance is read-only here. Use the admin adjustment endpoint
    so that every change leaves a ledger entry and an audit row.
    """

    list_display = [
        "user",
        "plan_type",
        "balance_display",
        "is_active",
        "minutes_used",
        "calls_used",
        "current_period_end",
    ]
    list_filter = ["plan_type", "is_active", "is_trial"]
    search_fields = ["user__username", "user__email"]
    readonly_fields = ["id", "user", "credit_balance", "created_at", "updated_at"]
    ordering = ["-created_at"]

    fieldsets = (
        (
            None,
            {
                "fields": ("id", "user", "credit_balance", "minimum_balance", "is_active"),
            },
        ),
        (
            "Plan",
            {
                "fields": (
                    "plan_type",
                    "plan_name",
                    "is_trial",
                    "trial_ends_at",
                    "monthly_minute_limit",
                    "monthly_call_limit",
                    "assistant_limit",
                ),
            },
        ),
        (
            "Usage",
            {
                "fields": (
                    "minutes_used",
                    "calls_used",
                    "assistants_created",
                    "current_period_start",
                    "current_period_end",
                ),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("metadata", "created_at", "updated_at"),
            },
        ),
    )

    def balance_display(self, obj: BalanceHolder) -> str:
        return f"${obj.credit_balance:.2f}"

    balance_display.short_description = "Balance"

    def has_delete_permission(self, request, obj=None) -> bool:
        # Holders are referenced by PROTECT foreign keys on the ledger
        return False


@admin.register(LedgerEntry)
class LedgerEntryAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """
    Admin configuration for LedgerEntry.

    Ledger entries are immutable. Corrections are made with new
    adjustment entries.
    """

    list_display = [
        "created_at",
        "user",
        "entry_type",
        "amount_display",
        "balance_after",
        "correlation_id",
    ]
    list_filter = ["entry_type", "created_at"]
    search_fields = [
        "correlation_id",
        "related_order_id",
        "related_call_id",
        "related_assistant_id",
        "user__username",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (
            "Entry Details",
            {
                "fields": ("id", "user", "entry_type", "amount", "created_at"),
            },
        ),
        (
            "Balance",
            {
                "fields": ("balance_before", "balance_after"),
            },
        ),
        (
            "Reference",
            {
                "fields": (
                    "correlation_id",
                    "related_order_id",
                    "related_call_id",
                    "related_assistant_id",
                ),
            },
        ),
        (
            "Additional Info",
            {
                "fields": ("description", "metadata"),
            },
        ),
    )

    def amount_display(self, obj: LedgerEntry) -> str:
        """Display the signed amount formatted as currency."""
        sign = "-" if obj.amount < 0 else ""
        return f"{sign}${abs(obj.amount):.2f}"

    amount_display.short_description = "Amount"


@admin.register(AdminCreditAction)
class AdminCreditActionAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = [
        "created_at",
        "admin_name",
        "user",
        "action_type",
        "amount",
        "previous_balance",
        "new_balance",
    ]
    list_filter = ["action_type", "created_at"]
    search_fields = ["admin_name", "user__username", "reason"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]


@admin.register(PricingSetting)
class PricingSettingAdmin(admin.ModelAdmin):
    """Pricing rates. Saving refreshes the cached pricing config."""

    list_display = ["key", "value", "category", "is_public", "updated_by", "updated_at"]
    list_filter = ["category", "is_public"]
    search_fields = ["key", "description"]
    readonly_fields = ["updated_by", "created_at", "updated_at"]
    ordering = ["category", "key"]

    def save_model(self, request, obj, form, change) -> None:
        obj.updated_by = request.user
        super().save_model(request, obj, form, change)
        pricing.invalidate()

    def delete_model(self, request, obj) -> None:
        super().delete_model(request, obj)
        pricing.invalidate()


@admin.register(PurchasedAssistant)
class PurchasedAssistantAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["assistant_id", "assistant_name", "user", "cost", "created_at"]
    search_fields = ["assistant_id", "assistant_name", "user__username"]
    ordering = ["-created_at"]

@admin.register(UsageAggregate)
class UsageAggregateAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ["user", "month", "total_minutes_used", "total_calls", "total_cost", "overage_cost"]
    list_filter = ["year"]
    search_fields = ["user__username", "month"]
    ordering = ["-month"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    """Inbound events, kept for audit and replay."""

    list_display = ["event_id", "event_type", "status", "retry_count", "processed_at", "created_at"]
    list_filter = ["status", "event_type"]
    search_fields = ["event_id"]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]
