"""
WebhookEvent model for inbound event tracking.

Every event posted to the credits webhook endpoint is stored before it
is handled. The unique event_id makes redelivery detectable, and the
stored payload allows a failed event to be replayed.

Usage:
    from credits.models import WebhookEvent, WebhookEventStatus

    event, created = WebhookEvent.objects.get_or_create(
        event_id="evt_123",
        defaults={"event_type": "call.completed", "payload": payload},
    )
    if not created and event.is_processed:
        return HttpResponse(status=200)
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class WebhookEventStatus(models.TextChoices):
    """Processing state of a stored webhook event."""

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks inbound events for idempotent processing.

    Processing Flow:
        1. Event arrives, verify signature
        2. Insert/get WebhookEvent with event_id
        3. If exists and PROCESSED -> return 200 (duplicate)
        4. Set status to PROCESSING
        5. Route to the registered handler
        6. Set status to PROCESSED or FAILED

    Fields:
        event_id: Sender's unique event ID
        event_type: Type of event (e.g. "payment.captured")
        payload: Full JSON body
        status: Processing status
        processed_at: When the event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    # ==========================================================================
    # Event Identification
    # ==========================================================================

    event_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Sender event ID, unique for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Event type (e.g., 'call.completed')",
    )

    payload = models.JSONField(help_text="Full event body (JSON)")

    # ==========================================================================
    # Processing Status
    # ==========================================================================

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(null=True, blank=True)

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
        ]

    def __str__(self) -> str:
        """Return string representation with event ID and type."""
        return f"WebhookEvent({self.event_id}, {self.event_type})"

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """
        Mark event as being processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """
        Mark event as successfully processed.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """
        Mark event as failed with error message.

        Note: Does not save - caller must save after calling.
        """
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    @property
    def data(self) -> dict:
        """The event's "data" object, or an empty dict."""
        data = self.payload.get("data") if isinstance(self.payload, dict) else None
        return data if isinstance(data, dict) else {}
