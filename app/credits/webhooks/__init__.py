"""
Webhook handling for inbound credits events.

Events are verified, stored idempotently and processed synchronously.

Usage:
    # In urls.py
    from credits.webhooks.views import credits_webhook

    urlpatterns = [
        path("webhooks/events/", credits_webhook, name="credits-webhook"),
    ]
"""

from credits.webhooks.handlers import dispatch_webhook, register_handler
from credits.webhooks.views import credits_webhook

__all__ = [
    "credits_webhook",
    "dispatch_webhook",
    "register_handler",
]
