"""
Webhook event handlers for inbound credits events.

This module provides a handler registry and the handlers for the
events this service consumes:

    - payment.captured: a payment for credits was captured -> top-up
    - call.completed: a call ended -> bill minutes and record usage

Handlers return a ServiceResult. Domain errors become failed results so
the view can mark the event failed and ask the sender to retry; the
correlation id of every balance change makes the retry safe.

Usage:
    from credits.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError

from core.exceptions import BaseApplicationError
from core.services import ServiceResult
from credits.services.accounts import AccountService
from credits.services.billing import CallBillingService

if TYPE_CHECKING:
    from credits.models import WebhookEvent


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The event type (e.g., "payment.captured")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are acknowledged with a successful result so the
    sender stops redelivering them.

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_id": webhook_event.event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_id": webhook_event.event_id},
    )

    try:
        return handler(webhook_event)
    except BaseApplicationError as e:
        logger.warning(
            f"{webhook_event.event_type} rejected: {e.error_code}",
            extra={"event_id": webhook_event.event_id, "details": e.details},
        )
        return ServiceResult.from_exception(e)


def _missing_fields(data: dict, *names: str) -> list[str]:
    return [name for name in names if data.get(name) in (None, "")]


def _invalid_payload(webhook_event: WebhookEvent, missing: list[str]) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: payload missing fields",
        extra={"event_id": webhook_event.event_id, "missing": missing},
    )
    return ServiceResult.failure(
        f"Missing fields: {', '.join(missing)}",
        error_code="INVALID_WEBHOOK_PAYLOAD",
        errors={name: ["This field is required."] for name in missing},
    )


def _invalid_field(webhook_event: WebhookEvent, name: str, message: str) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: invalid {name}",
        extra={"event_id": webhook_event.event_id, "field": name},
    )
    return ServiceResult.failure(
        f"{name} {message}",
        error_code="INVALID_WEBHOOK_PAYLOAD",
        errors={name: [message]},
    )


def _get_user(webhook_event: WebhookEvent, user_id) -> ServiceResult:
    """Resolve the payload's user_id into a successful result holding the user."""
    try:
        user = get_user_model().objects.filter(pk=user_id).first()
    except (TypeError, ValueError, OverflowError, DjangoValidationError):
        return _invalid_field(webhook_event, "user_id", "is not a valid user id")
    if user is None:
        return ServiceResult.failure(f"User {user_id} not found", error_code="USER_NOT_FOUND")
    return ServiceResult.success(user)


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("payment.captured")
def handle_payment_captured(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Credit a captured payment to the payer's balance.

    Payload data:
        - user_id: Payer
        - order_id: Payment order id (idempotency key)
        - amount: Captured amount in USD
        - description: Optional ledger description
    """
    data = webhook_event.data
    missing = _missing_fields(data, "user_id", "order_id", "amount")
    if missing:
        return _invalid_payload(webhook_event, missing)

    lookup = _get_user(webhook_event, data["user_id"])
    if not lookup:
        return lookup
    user = lookup.data

    change = AccountService.top_up(
        user,
        data["amount"],
        order_id=str(data["order_id"]),
        description=data.get("description") or "",
    )
    return ServiceResult.success(change)


# =============================================================================
# Call Handlers
# =============================================================================


@register_handler("call.completed")
def handle_call_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Bill a completed call.

    Payload data:
        - user_id: Account owner
        - call_id: Call identifier (idempotency key)
        - assistant_id / assistant_name: Assistant that took the call
        - duration_seconds: Call length
    """
    data = webhook_event.data
    missing = _missing_fields(data, "user_id", "call_id", "assistant_id", "duration_seconds")
    if missing:
        return _invalid_payload(webhook_event, missing)

    lookup = _get_user(webhook_event, data["user_id"])
    if not lookup:
        return lookup
    user = lookup.data

    try:
        duration = float(data["duration_seconds"])
    except (TypeError, ValueError, OverflowError):
        duration = None
    if duration is None or not math.isfinite(duration) or duration < 0:
        return _invalid_field(webhook_event, "duration_seconds", "must be a non-negative number")

    charge = CallBillingService.bill_completed_call(
        user,
        call_id=str(data["call_id"]),
        assistant_id=str(data["assistant_id"]),
        duration_seconds=duration,
        assistant_name=str(data.get("assistant_name") or ""),
    )
    return ServiceResult.success(charge)
