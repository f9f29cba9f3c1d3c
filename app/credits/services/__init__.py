"""
Credits service layer.

All balance changes go through BalanceService.apply_delta. The other
services decide amounts, entry types and plan state around it.
"""

from credits.services.accounts import AccountService
from credits.services.admin import AdminAdjustmentGate
from credits.services.balance import BalanceService
from credits.services.billing import CallBillingService
from credits.services.pricing import PricingResolver, PricingService, pricing
from credits.services.reports import CreditReportService
from credits.services.usage import UsageAggregator

__all__ = [
    "AccountService",
    "AdminAdjustmentGate",
    "BalanceService",
    "CallBillingService",
    "CreditReportService",
    "PricingResolver",
    "PricingService",
    "UsageAggregator",
    "pricing",
]
