"""
Credits domain models.

This module contains all credit-related models:
- BalanceHolder: Per-user credit balance and plan state
- LedgerEntry: Immutable record of every balance change
- UsageAggregate / AssistantUsage / DailyUsage: Monthly usage rollups
- CallUsage: One row per billed call (usage idempotency)
- PurchasedAssistant: One row per purchased assistant
- PricingSetting: Admin-editable pricing rates
- AdminCreditAction: Audit trail of operator adjustments
- WebhookEvent: Inbound event tracking for idempotent processing
"""

from credits.models.admin_action import AdminCreditAction
from credits.models.assistant import PurchasedAssistant
from credits.models.balance import UNLIMITED, BalanceHolder, PlanType
from credits.models.ledger import (
    CREDIT_ENTRY_TYPES,
    DEBIT_ENTRY_TYPES,
    EntryType,
    LedgerEntry,
)
from credits.models.pricing import PricingSetting
from credits.models.usage import AssistantUsage, CallUsage, DailyUsage, UsageAggregate
from credits.models.webhook_event import WebhookEvent, WebhookEventStatus

__all__ = [
    "CREDIT_ENTRY_TYPES",
    "DEBIT_ENTRY_TYPES",
    "UNLIMITED",
    "AdminCreditAction",
    "AssistantUsage",
    "BalanceHolder",
    "CallUsage",
    "DailyUsage",
    "EntryType",
    "LedgerEntry",
    "PlanType",
    "PricingSetting",
    "PurchasedAssistant",
    "UsageAggregate",
    "WebhookEvent",
    "WebhookEventStatus",
]
