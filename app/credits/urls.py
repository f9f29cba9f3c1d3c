"""
URL configuration for the credits app.

All routes are prefixed with /api/v1/credits/ when included in the main
URLconf. See credits.views for the endpoint list.

Usage:
    # In config/urls.py
    api_v1_patterns = [
        path("credits/", include("credits.urls")),
    ]
"""

from django.urls import path

from credits import views
from credits.webhooks.views import credits_webhook

app_name = "credits"

urlpatterns = [
    # User endpoints
    path("", views.BalanceView.as_view(), name="balance"),
    path("transactions/", views.TransactionListView.as_view(), name="transactions"),
    path("usage/", views.MonthlyUsageView.as_view(), name="usage"),
    path("allowance/", views.CallAllowanceView.as_view(), name="allowance"),
    path("select-plan/", views.SelectPlanView.as_view(), name="select-plan"),
    path(
        "assistants/purchase/",
        views.AssistantPurchaseView.as_view(),
        name="assistant-purchase",
    ),
    path("pricing/", views.PublicPricingView.as_view(), name="pricing"),
    # Admin endpoints
    path(
        "admin/adjustments/",
        views.AdminAdjustmentView.as_view(),
        name="admin-adjustments",
    ),
    path(
        "admin/users/<int:user_id>/activate/",
        views.AdminActivateAccountView.as_view(),
        name="admin-activate",
    ),
    path("admin/refunds/", views.AdminRefundView.as_view(), name="admin-refunds"),
    path("admin/pricing/", views.AdminPricingView.as_view(), name="admin-pricing"),
    path("admin/entries/", views.AdminLedgerEntryListView.as_view(), name="admin-entries"),
    # Webhook endpoints
    path("webhooks/events/", credits_webhook, name="webhook"),
]
