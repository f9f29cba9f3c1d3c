"""
Credits application.

Prepaid credit balances, ledger, pricing and usage accounting for
voice calls.

Services (import from credits.services):
    - BalanceService: The only way a balance changes
    - pricing: Cached PricingResolver singleton
    - UsageAggregator: Monthly usage rollups
    - AdminAdjustmentGate: Permission-checked manual adjustments
    - CallBillingService: Completed call -> debit + usage
    - AccountService: Plans, top-ups, activation, purchases, refunds
    - CreditReportService: Balance and usage reports
"""
