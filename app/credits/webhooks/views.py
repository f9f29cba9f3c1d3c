"""
Webhook endpoint for inbound credits events.

The view:
1. Verifies the HMAC signature of the raw body
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Dispatches the event to its handler synchronously
4. Marks the event processed or failed

Usage:
    # In urls.py
    from credits.webhooks.views import credits_webhook

    urlpatterns = [
        path("webhooks/events/", credits_webhook, name="credits-webhook"),
    ]
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from credits.models import WebhookEvent, WebhookEventStatus
from credits.webhooks.handlers import dispatch_webhook

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Credits-Signature"
SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    """Return the header value expected for a body signed with secret."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    if not secret or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(compute_signature(payload, secret), signature)


@csrf_exempt
@require_POST
def credits_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process a credits event.

    Idempotency:
    - WebhookEvent.event_id is unique
    - An event already processed returns 200 without reprocessing
    - A failed event is processed again on redelivery

    Returns:
        HttpResponse with status:
        - 200: Event processed (new, duplicate or unknown type)
        - 400: Missing/invalid signature or malformed body
        - 422: Handler rejected the event; sender should retry later

    Example X-Credits-Signature header:
        sha256=5257a869e7ecebeda32affa62cdca3fa51cad7e77a0e56ff536d0ce8e108d8bd
    """
    payload = request.body
    signature = request.headers.get(SIGNATURE_HEADER, "")

    if not signature:
        logger.warning(f"Webhook received without {SIGNATURE_HEADER} header")
        return HttpResponse("Missing signature", status=400)

    # Step 1: Verify signature
    if not verify_signature(payload, signature, settings.CREDITS_WEBHOOK_SECRET):
        logger.warning("Webhook signature verification failed")
        return HttpResponse("Invalid signature", status=400)

    try:
        event_data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("Webhook body is not valid JSON")
        return HttpResponse("Invalid payload", status=400)

    if not isinstance(event_data, dict):
        return HttpResponse("Invalid payload", status=400)

    event_id = event_data.get("id")
    event_type = event_data.get("type")

    if not event_id or not event_type:
        logger.warning("Webhook missing required fields")
        return HttpResponse("Invalid event", status=400)

    logger.info(
        f"Received credits webhook: {event_type}",
        extra={"event_id": event_id, "event_type": event_type},
    )

    # Step 2: Create/get WebhookEvent (idempotent)
    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_id=str(event_id),
        defaults={
            "event_type": event_type,
            "payload": event_data,
            "status": WebhookEventStatus.PENDING,
        },
    )

    # Step 3: If already processed, return success
    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"event_id": event_id},
        )
        return HttpResponse("Already processed", status=200)

    # Step 4: Process synchronously
    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    result = dispatch_webhook(webhook_event)

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save(
            update_fields=["status", "processed_at", "error_message", "updated_at"]
        )
        return HttpResponse("Processed", status=200)

    webhook_event.mark_failed(f"[{result.error_code}] {result.error}")
    webhook_event.save(update_fields=["status", "error_message", "updated_at"])
    logger.warning(
        "Webhook processing failed",
        extra={
            "event_id": event_id,
            "error_code": result.error_code,
            "retry_count": webhook_event.retry_count,
        },
    )
    return HttpResponse(result.error or "Processing failed", status=422)
