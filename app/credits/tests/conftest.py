"""
Pytest fixtures for credits tests.

Operator fixtures:
    super_admin: Superuser, holds every permission
    credits_admin: Staff user granted every credits permission
    support_user: Staff user without credits permissions

Usage:
    def test_adjust(credits_admin, funded_holder):
        AdminAdjustmentGate.adjust(credits_admin, funded_holder.user, ...)
"""

import json
from decimal import Decimal

import pytest
from django.contrib.auth.models import Permission
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from credits.services.pricing import pricing
from credits.tests.factories import BalanceHolderFactory, UserFactory
from credits.webhooks.views import SIGNATURE_HEADER, compute_signature

CREDITS_PERMISSIONS = (
    "add_credits",
    "remove_credits",
    "activate_account",
    "view_pricing",
    "manage_pricing",
    "view_all_ledger",
)

WEBHOOK_SECRET = "whsec_test_secret"


def grant(user, *codenames):
    """Give a user credits permissions and return a fresh instance."""
    perms = Permission.objects.filter(
        content_type__app_label="credits",
        codename__in=codenames,
    )
    user.user_permissions.add(*perms)
    # Re-fetch to drop the cached permission set
    return type(user).objects.get(pk=user.pk)


# =============================================================================
# Pricing
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_pricing():
    """Make every test read pricing from its own database state."""
    pricing.invalidate()
    yield
    pricing.invalidate()


# =============================================================================
# User and Holder Fixtures
# =============================================================================


@pytest.fixture
def user(db):
    """Create a test user."""
    return UserFactory()


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def holder(db, user):
    """Active pay-as-you-go holder with an empty balance."""
    return BalanceHolderFactory(user=user)


@pytest.fixture
def funded_holder(db, user):
    """Active pay-as-you-go holder with $25.00."""
    return BalanceHolderFactory(user=user, credit_balance=Decimal("25.00"))


@pytest.fixture
def trial_holder(db, user):
    return BalanceHolderFactory(user=user, trial=True)


# =============================================================================
# Operator Fixtures
# =============================================================================


@pytest.fixture
def super_admin(db):
    return UserFactory(username="root", is_staff=True, is_superuser=True)


@pytest.fixture
def credits_admin(db):
    """Staff user with every credits permission."""
    return grant(
        UserFactory(username="ops", first_name="Olive", last_name="Ops", is_staff=True),
        *CREDITS_PERMISSIONS,
    )


@pytest.fixture
def support_user(db):
    """Staff user without any credits permission."""
    return UserFactory(username="support", is_staff=True)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client for public endpoints."""
    return APIClient()


@pytest.fixture
def client_for(db):
    """
    Factory to create JWT-authenticated clients for any user.

    Usage:
        def test_example(client_for, user):
            response = client_for(user).get("/api/v1/credits/")
    """

    def _make_client(user):
        client = APIClient()
        refresh = RefreshToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
        return client

    return _make_client


@pytest.fixture
def authenticated_client(client_for, user):
    """API client authenticated as the default user fixture."""
    return client_for(user)


# =============================================================================
# Webhook Fixtures
# =============================================================================


@pytest.fixture
def webhook_secret(settings):
    settings.CREDITS_WEBHOOK_SECRET = WEBHOOK_SECRET
    return WEBHOOK_SECRET


@pytest.fixture
def post_webhook(client, webhook_secret):
    """
    Post a signed event to the webhook endpoint.

    Usage:
        response = post_webhook({"id": "evt_1", "type": "payment.captured", "data": {...}})
    """

    def _post(event, secret=None, signature=None):
        body = json.dumps(event).encode() if not isinstance(event, bytes) else event
        headers = {
            SIGNATURE_HEADER: signature
            if signature is not None
            else compute_signature(body, secret or webhook_secret)
        }
        return client.post(
            "/api/v1/credits/webhooks/events/",
            data=body,
            content_type="application/json",
            headers=headers,
        )

    return _post
