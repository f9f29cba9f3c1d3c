"""
DRF views for credits app.

Endpoints (under /api/v1/credits/):
    GET  /                              - Balance summary
    GET  /transactions/                 - Own ledger (type, start, end)
    GET  /usage/?month=YYYY-MM          - Monthly usage
    GET  /allowance/?minutes=N          - Pre-call allowance check
    POST /select-plan/                  - Pick trial or pay-as-you-go
    POST /assistants/purchase/          - Buy an assistant
    GET  /pricing/                      - Current public pricing
    POST /admin/adjustments/            - Add or remove credits
    POST /admin/users/{id}/activate/    - Activate an account
    POST /admin/refunds/                - Refund credits
    GET  /admin/pricing/                - Pricing table
    PUT  /admin/pricing/                - Update pricing
    GET  /admin/entries/                - Every user's ledger (user, type, start, end)

Security:
    - Everything except /pricing/ requires authentication
    - Admin endpoints are permission-checked inside the services
"""

from __future__ import annotations

import logging

from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
)
from credits.exceptions import InsufficientBalance
from credits.pagination import LedgerEntryCursorPagination
from credits.permissions import CanViewAllLedger
from credits.serializers import (
    ActivateAccountSerializer,
    AdminAdjustmentSerializer,
    AdminLedgerEntrySerializer,
    AssistantPurchaseRequestSerializer,
    AssistantPurchaseSerializer,
    BalanceChangeSerializer,
    BalanceSummarySerializer,
    CallAllowanceSerializer,
    LedgerEntrySerializer,
    LedgerFilterSerializer,
    MonthlyUsageSerializer,
    PricingConfigSerializer,
    PricingSettingSerializer,
    PricingUpdateSerializer,
    RefundSerializer,
    SelectPlanSerializer,
)
from credits.services import (
    AccountService,
    AdminAdjustmentGate,
    CreditReportService,
    PricingService,
    pricing,
)

logger = logging.getLogger(__name__)

User = get_user_model()


def error_status(exc: BaseApplicationError) -> int:
    """Map an application error to its HTTP status code."""
    if isinstance(exc, InsufficientBalance):
        return status.HTTP_402_PAYMENT_REQUIRED
    if isinstance(exc, PermissionDeniedError):
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ExternalServiceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_400_BAD_REQUEST


class CreditsAPIView(APIView):
    """APIView that renders application errors as {error, error_code, details}."""

    permission_classes = [IsAuthenticated]

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            logger.info(
                "Credits request rejected",
                extra={"error_code": exc.error_code, "path": self.request.path},
            )
            return Response(exc.to_dict(), status=error_status(exc))
        return super().handle_exception(exc)


def change_response(change, created_status: int = status.HTTP_201_CREATED) -> Response:
    """201 for an applied change, 200 for a replayed one."""
    return Response(
        BalanceChangeSerializer(change).data,
        status=status.HTTP_200_OK if change.duplicate else created_status,
    )


# =============================================================================
# User Endpoints
# =============================================================================


class BalanceView(CreditsAPIView):
    """
    Balance summary for the current user.

    GET /api/v1/credits/
    """

    @extend_schema(
        operation_id="get_credit_balance",
        summary="Get credit balance",
        description="Current balance, plan state and the 10 newest transactions.",
        responses={200: BalanceSummarySerializer},
        tags=["Credits"],
    )
    def get(self, request):
        summary = CreditReportService.get_balance_summary(request.user)
        return Response(BalanceSummarySerializer(summary).data)


class TransactionListView(CreditsAPIView, generics.ListAPIView):
    """
    The current user's ledger, newest first.

    GET /api/v1/credits/transactions/?type=usage&start=2024-01-01&end=2024-01-31
    """

    serializer_class = LedgerEntrySerializer
    pagination_class = LedgerEntryCursorPagination

    def get_queryset(self):
        filters = LedgerFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        data = filters.validated_data
        return CreditReportService.list_entries(
            user=self.request.user,
            entry_type=data.get("type"),
            start=data.get("start"),
            end=data.get("end"),
        )

    @extend_schema(
        operation_id="list_credit_transactions",
        summary="List credit transactions",
        parameters=[LedgerFilterSerializer],
        tags=["Credits"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class MonthlyUsageView(CreditsAPIView):
    """
    Usage report for one month.

    GET /api/v1/credits/usage/?month=2024-01
    """

    @extend_schema(
        operation_id="get_monthly_usage",
        summary="Get monthly usage",
        parameters=[
            OpenApiParameter(
                name="month",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                description="Month as YYYY-MM (default: current month)",
                required=False,
            ),
        ],
        responses={200: MonthlyUsageSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        summary = CreditReportService.get_monthly_usage(
            request.user,
            month=request.query_params.get("month") or None,
        )
        return Response(MonthlyUsageSerializer(summary).data)


class CallAllowanceView(CreditsAPIView):
    """
    Whether the current user may start a call.

    GET /api/v1/credits/allowance/?minutes=10
    """

    @extend_schema(
        operation_id="check_call_allowance",
        summary="Check call allowance",
        parameters=[
            OpenApiParameter(
                name="minutes",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                description="Estimated call length in minutes (default 1)",
                required=False,
            ),
        ],
        responses={200: CallAllowanceSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        raw = request.query_params.get("minutes", "1")
        try:
            minutes = int(raw)
        except ValueError:
            return Response(
                {"error": "minutes must be an integer", "error_code": "INVALID_MINUTES"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        allowance = AccountService.check_call_allowance(request.user, minutes)
        return Response(CallAllowanceSerializer(allowance).data)


class SelectPlanView(CreditsAPIView):
    """
    Pick the first plan.

    POST /api/v1/credits/select-plan/
    """

    @extend_schema(
        operation_id="select_plan",
        summary="Select plan",
        request=SelectPlanSerializer,
        responses={
            200: BalanceSummarySerializer,
            400: OpenApiResponse(description="Unknown plan"),
            409: OpenApiResponse(description="A plan is already selected"),
        },
        tags=["Credits"],
    )
    def post(self, request):
        serializer = SelectPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        AccountService.select_plan(request.user, serializer.validated_data["plan_type"])
        summary = CreditReportService.get_balance_summary(request.user)
        return Response(BalanceSummarySerializer(summary).data)


class AssistantPurchaseView(CreditsAPIView):
    """
    Buy an assistant.

    POST /api/v1/credits/assistants/purchase/
    """

    @extend_schema(
        operation_id="purchase_assistant",
        summary="Purchase assistant",
        request=AssistantPurchaseRequestSerializer,
        responses={
            201: AssistantPurchaseSerializer,
            402: OpenApiResponse(description="Insufficient credits"),
            404: OpenApiResponse(description="No plan selected yet"),
        },
        tags=["Credits"],
    )
    def post(self, request):
        serializer = AssistantPurchaseRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        purchase = AccountService.purchase_assistant(request.user, **serializer.validated_data)
        return Response(
            AssistantPurchaseSerializer(purchase).data,
            status=status.HTTP_200_OK if purchase.duplicate else status.HTTP_201_CREATED,
        )


class PublicPricingView(APIView):
    """
    Current pricing, readable without authentication.

    GET /api/v1/credits/pricing/
    """

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="get_pricing",
        summary="Get pricing",
        responses={200: PricingConfigSerializer},
        tags=["Credits"],
    )
    def get(self, request):
        return Response(PricingConfigSerializer(pricing.get()).data)


# =============================================================================
# Admin Endpoints
# =============================================================================


class AdminAdjustmentView(CreditsAPIView):
    """
    Add or remove credits by hand.

    POST /api/v1/credits/admin/adjustments/
    """

    @extend_schema(
        operation_id="admin_adjust_credits",
        summary="Adjust user credits",
        request=AdminAdjustmentSerializer,
        responses={
            201: BalanceChangeSerializer,
            200: OpenApiResponse(description="Replayed request, nothing changed"),
            402: OpenApiResponse(description="Removal exceeds the balance"),
            403: OpenApiResponse(description="Missing credits permission"),
        },
        tags=["Credits - Admin"],
    )
    def post(self, request):
        serializer = AdminAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        target = get_object_or_404(User, pk=data["user_id"])
        change = AdminAdjustmentGate.adjust(
            request.user,
            target,
            data["amount"],
            reason=data["reason"],
            correlation_id=data["correlation_id"],
        )
        return change_response(change)


class AdminActivateAccountView(CreditsAPIView):
    """
    Activate an account and credit its first payment.

    POST /api/v1/credits/admin/users/{user_id}/activate/
    """

    @extend_schema(
        operation_id="admin_activate_account",
        summary="Activate account",
        request=ActivateAccountSerializer,
        responses={201: BalanceChangeSerializer},
        tags=["Credits - Admin"],
    )
    def post(self, request, user_id):
        serializer = ActivateAccountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        target = get_object_or_404(User, pk=user_id)
        change = AccountService.activate_account(request.user, target, **serializer.validated_data)
        return change_response(change)


class AdminRefundView(CreditsAPIView):
    """
    Refund credits to a user.

    POST /api/v1/credits/admin/refunds/
    """

    @extend_schema(
        operation_id="admin_refund_credits",
        summary="Refund credits",
        request=RefundSerializer,
        responses={201: BalanceChangeSerializer},
        tags=["Credits - Admin"],
    )
    def post(self, request):
        serializer = RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        target = get_object_or_404(User, pk=data["user_id"])
        change = AccountService.refund(
            request.user,
            target,
            data["amount"],
            reason=data["reason"],
            correlation_id=data["correlation_id"],
        )
        return change_response(change)


class AdminPricingView(CreditsAPIView):
    """
    Read or update the pricing table.

    GET /api/v1/credits/admin/pricing/
    PUT /api/v1/credits/admin/pricing/
    """

    @extend_schema(
        operation_id="admin_list_pricing",
        summary="List pricing settings",
        responses={200: PricingSettingSerializer(many=True)},
        tags=["Credits - Admin"],
    )
    def get(self, request):
        rows = PricingService.get_pricing_settings(request.user)
        return Response(PricingSettingSerializer(rows, many=True).data)

    @extend_schema(
        operation_id="admin_update_pricing",
        summary="Update pricing",
        request=PricingUpdateSerializer,
        responses={200: PricingConfigSerializer},
        tags=["Credits - Admin"],
    )
    def put(self, request):
        serializer = PricingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        config = PricingService.update_pricing(request.user, serializer.validated_data)
        return Response(PricingConfigSerializer(config).data)


class AdminLedgerEntryListView(CreditsAPIView, generics.ListAPIView):
    """
    Every user's ledger entries, newest first.

    GET /api/v1/credits/admin/entries/?user=42&type=admin_add
    """

    permission_classes = [IsAuthenticated, CanViewAllLedger]
    serializer_class = AdminLedgerEntrySerializer
    pagination_class = LedgerEntryCursorPagination

    def get_queryset(self):
        filters = LedgerFilterSerializer(data=self.request.query_params)
        filters.is_valid(raise_exception=True)
        data = filters.validated_data
        user = None
        if data.get("user") is not None:
            user = get_object_or_404(User, pk=data["user"])
        return CreditReportService.list_entries(
            user=user,
            entry_type=data.get("type"),
            start=data.get("start"),
            end=data.get("end"),
        )

    @extend_schema(
        operation_id="admin_list_ledger_entries",
        summary="List all ledger entries",
        parameters=[LedgerFilterSerializer],
        tags=["Credits - Admin"],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
