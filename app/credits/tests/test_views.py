"""
Tests for the credits API endpoints.
"""

from decimal import Decimal

import pytest
from rest_framework import status

from credits.models import AdminCreditAction, EntryType, PlanType
from credits.services.accounts import AccountService
from credits.services.balance import BalanceService
from credits.tests.factories import BalanceHolderFactory

BASE_URL = "/api/v1/credits/"


class TestAuthentication:
    @pytest.mark.parametrize(
        "path",
        ["", "transactions/", "usage/", "allowance/", "admin/entries/", "admin/pricing/"],
    )
    def test_requires_authentication(self, api_client, db, path):
        response = api_client.get(f"{BASE_URL}{path}")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_obtain_token_and_use_it(self, api_client, user):
        response = api_client.post(
            "/api/v1/auth/token/",
            {"username": user.username, "password": "testpass123"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")
        assert api_client.get(BASE_URL).status_code == status.HTTP_200_OK


class TestBalanceEndpoint:
    def test_balance_summary(self, authenticated_client, user):
        AccountService.top_up(user, "25.00", order_id="ord_1")

        response = authenticated_client.get(BASE_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data["balance"] == "25.00"
        assert response.data["plan_type"] == PlanType.PAYG
        assert response.data["needs_topup"] is False
        assert response.data["recent_transactions"][0]["entry_type"] == EntryType.TOPUP

    def test_new_user_sees_empty_balance(self, authenticated_client):
        response = authenticated_client.get(BASE_URL)

        assert response.data["balance"] == "0.00"
        assert response.data["is_active"] is False


class TestTransactionsEndpoint:
    @pytest.fixture
    def history(self, user, other_user):
        AccountService.top_up(user, "25.00", order_id="ord_1")
        BalanceService.apply_delta(user, "-0.21", EntryType.USAGE, correlation_id="call:1")
        AccountService.top_up(other_user, "10.00", order_id="ord_2")

    def test_lists_only_own_entries(self, authenticated_client, history):
        response = authenticated_client.get(f"{BASE_URL}transactions/")

        assert response.status_code == status.HTTP_200_OK
        amounts = [row["amount"] for row in response.data["results"]]
        assert amounts == ["-0.21", "25.00"]

    def test_filters_by_type(self, authenticated_client, history):
        response = authenticated_client.get(f"{BASE_URL}transactions/", {"type": "usage"})

        assert [row["correlation_id"] for row in response.data["results"]] == ["call:1"]

    @pytest.mark.parametrize(
        "params",
        [{"type": "bonus"}, {"start": "yesterday"}, {"start": "2024-02-01", "end": "2024-01-01"}],
    )
    def test_rejects_bad_filters(self, authenticated_client, history, params):
        response = authenticated_client.get(f"{BASE_URL}transactions/", params)

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestUsageEndpoint:
    def test_monthly_usage(self, authenticated_client, funded_holder):
        response = authenticated_client.get(f"{BASE_URL}usage/", {"month": "2024-01"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["month"] == "2024-01"
        assert response.data["total_minutes"] == 0
        assert response.data["minute_limit"] == -1

    def test_malformed_month(self, authenticated_client, funded_holder):
        response = authenticated_client.get(f"{BASE_URL}usage/", {"month": "01-2024"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_MONTH"


class TestAllowanceEndpoint:
    def test_payg_allowance(self, authenticated_client, funded_holder):
        response = authenticated_client.get(f"{BASE_URL}allowance/", {"minutes": 10})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["can_call"] is True
        assert response.data["estimated_cost"] == "0.70"

    def test_blocked_without_plan(self, authenticated_client):
        response = authenticated_client.get(f"{BASE_URL}allowance/")

        assert response.data["can_call"] is False
        assert response.data["upgrade_required"] is True

    @pytest.mark.parametrize("minutes", ["ten", "-5"])
    def test_bad_minutes(self, authenticated_client, funded_holder, minutes):
        response = authenticated_client.get(f"{BASE_URL}allowance/", {"minutes": minutes})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestSelectPlanEndpoint:
    def test_select_trial(self, authenticated_client):
        response = authenticated_client.post(
            f"{BASE_URL}select-plan/", {"plan_type": "trial"}, format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["plan_type"] == PlanType.TRIAL
        assert response.data["is_active"] is True

    def test_second_selection_conflicts(self, authenticated_client, funded_holder):
        response = authenticated_client.post(
            f"{BASE_URL}select-plan/", {"plan_type": "trial"}, format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "PLAN_ALREADY_SELECTED"

    def test_unknown_plan(self, authenticated_client):
        response = authenticated_client.post(
            f"{BASE_URL}select-plan/", {"plan_type": "enterprise"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_PLAN"


class TestAssistantPurchaseEndpoint:
    def test_purchase_and_replay(self, authenticated_client, funded_holder):
        body = {"assistant_id": "asst_1", "assistant_name": "Front desk", "correlation_id": "a:1"}

        first = authenticated_client.post(f"{BASE_URL}assistants/purchase/", body, format="json")
        second = authenticated_client.post(f"{BASE_URL}assistants/purchase/", body, format="json")

        assert first.status_code == status.HTTP_201_CREATED
        assert first.data["cost"] == "20.00"
        assert first.data["new_balance"] == "5.00"
        assert second.status_code == status.HTTP_200_OK
        assert second.data["duplicate"] is True

    def test_insufficient_credits(self, authenticated_client, holder):
        response = authenticated_client.post(
            f"{BASE_URL}assistants/purchase/",
            {"assistant_id": "asst_1", "correlation_id": "a:2"},
            format="json",
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.data["error_code"] == "INSUFFICIENT_BALANCE"
        assert response.data["details"]["required"] == "20.00"

    def test_without_plan(self, authenticated_client):
        response = authenticated_client.post(
            f"{BASE_URL}assistants/purchase/",
            {"assistant_id": "asst_1", "correlation_id": "a:3"},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestPublicPricingEndpoint:
    def test_readable_without_authentication(self, api_client, db):
        response = api_client.get(f"{BASE_URL}pricing/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["cost_per_minute_payg"] == "0.0700"
        assert response.data["assistant_base_cost"] == "20.0000"


class TestAdminAdjustmentEndpoint:
    URL = f"{BASE_URL}admin/adjustments/"

    def body(self, user, amount="10.00", correlation_id="admin:1"):
        return {
            "user_id": user.pk,
            "amount": amount,
            "reason": "Goodwill credit",
            "correlation_id": correlation_id,
        }

    def test_support_is_forbidden(self, client_for, support_user, funded_holder):
        response = client_for(support_user).post(
            self.URL, self.body(funded_holder.user), format="json"
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "UNAUTHORIZED"

    def test_admin_adds_credits(self, client_for, credits_admin, funded_holder):
        client = client_for(credits_admin)

        response = client.post(self.URL, self.body(funded_holder.user), format="json")
        replay = client.post(self.URL, self.body(funded_holder.user), format="json")

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["new_balance"] == "35.00"
        assert response.data["entry"]["entry_type"] == EntryType.ADMIN_ADD
        assert replay.status_code == status.HTTP_200_OK
        assert replay.data["duplicate"] is True
        assert AdminCreditAction.objects.count() == 1

    def test_removal_beyond_balance(self, client_for, credits_admin, db):
        target = BalanceHolderFactory(credit_balance=Decimal("2.00"))

        response = client_for(credits_admin).post(
            self.URL, self.body(target.user, amount="-5.00"), format="json"
        )

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        target.refresh_from_db()
        assert target.credit_balance == Decimal("2.00")

    def test_reused_correlation_id_conflicts(self, client_for, credits_admin, funded_holder):
        client = client_for(credits_admin)
        client.post(self.URL, self.body(funded_holder.user), format="json")

        response = client.post(
            self.URL, self.body(funded_holder.user, amount="11.00"), format="json"
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "DUPLICATE_TRANSACTION"

    def test_unknown_user(self, client_for, credits_admin):
        response = client_for(credits_admin).post(
            self.URL,
            {"user_id": 999999, "amount": "1.00", "reason": "x", "correlation_id": "admin:9"},
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_sub_cent_amount_is_rejected(self, client_for, credits_admin, funded_holder):
        response = client_for(credits_admin).post(
            self.URL, self.body(funded_holder.user, amount="1.005"), format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestAdminActivateAndRefundEndpoints:
    def test_activate_account(self, client_for, credits_admin, user):
        AccountService.select_plan(user, PlanType.PAYG)

        response = client_for(credits_admin).post(
            f"{BASE_URL}admin/users/{user.pk}/activate/",
            {"amount": "25.00", "correlation_id": "activate:1"},
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["new_balance"] == "25.00"
        assert BalanceService.get_holder(user).is_active is True

    def test_activate_forbidden_for_support(self, client_for, support_user, user):
        response = client_for(support_user).post(
            f"{BASE_URL}admin/users/{user.pk}/activate/",
            {"amount": "25.00", "correlation_id": "activate:2"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_refund(self, client_for, credits_admin, funded_holder):
        response = client_for(credits_admin).post(
            f"{BASE_URL}admin/refunds/",
            {
                "user_id": funded_holder.user.pk,
                "amount": "0.21",
                "reason": "Dropped call",
                "correlation_id": "refund:call_1",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["entry"]["entry_type"] == EntryType.REFUND
        assert response.data["new_balance"] == "25.21"


class TestAdminPricingEndpoint:
    URL = f"{BASE_URL}admin/pricing/"

    def test_list_settings(self, client_for, credits_admin):
        response = client_for(credits_admin).get(self.URL)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data) == 6

    def test_support_cannot_view(self, client_for, support_user):
        response = client_for(support_user).get(self.URL)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_update_is_visible_publicly(self, client_for, credits_admin, api_client):
        api_client.get(f"{BASE_URL}pricing/")

        response = client_for(credits_admin).put(
            self.URL, {"cost_per_minute_payg": "0.09"}, format="json"
        )
        public = api_client.get(f"{BASE_URL}pricing/")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["cost_per_minute_payg"] == "0.0900"
        assert public.data["cost_per_minute_payg"] == "0.0900"

    @pytest.mark.parametrize(
        "body", [{"free_minutes": "10"}, {}, {"cost_per_minute_payg": "abc"}]
    )
    def test_rejects_bad_updates(self, client_for, credits_admin, body):
        response = client_for(credits_admin).put(self.URL, body, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_negative_rate(self, client_for, credits_admin):
        response = client_for(credits_admin).put(
            self.URL, {"cost_per_minute_payg": "-0.01"}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_AMOUNT"


class TestAdminEntriesEndpoint:
    URL = f"{BASE_URL}admin/entries/"

    @pytest.fixture
    def history(self, user, other_user):
        AccountService.top_up(user, "25.00", order_id="ord_1")
        AccountService.top_up(other_user, "10.00", order_id="ord_2")

    def test_lists_every_user(self, client_for, credits_admin, history):
        response = client_for(credits_admin).get(self.URL)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data["results"]) == 2
        assert "username" in response.data["results"][0]

    def test_filters_by_user(self, client_for, credits_admin, history, other_user):
        response = client_for(credits_admin).get(self.URL, {"user": other_user.pk})

        assert [row["user_id"] for row in response.data["results"]] == [other_user.pk]

    def test_support_is_forbidden(self, client_for, support_user, history):
        response = client_for(support_user).get(self.URL)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_regular_user_is_forbidden(self, authenticated_client, history):
        response = authenticated_client.get(self.URL)

        assert response.status_code == status.HTTP_403_FORBIDDEN
