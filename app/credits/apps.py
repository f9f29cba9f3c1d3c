"""
Credits app configuration.

This app provides the prepaid credit subsystem:
- Per-user balances with an append-only ledger
- Cached, admin-editable pricing
- Monthly usage rollups
- Signed inbound webhooks for payments and completed calls
"""

from django.apps import AppConfig


class CreditsConfig(AppConfig):
    """Configuration for the credits application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "credits"
    verbose_name = "Credits"
