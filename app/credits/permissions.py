"""
Permission checks for credits operations.

Operator roles map onto the custom permissions declared on
BalanceHolder.Meta.permissions:

    super admin / admin:
        - credits.add_credits, credits.remove_credits
        - credits.activate_account
        - credits.view_pricing, credits.manage_pricing
        - credits.view_all_ledger

    support:
        - none of the above

Services call require_permission() before any mutation, so the rules
hold for every entry point (API, admin, shell). The DRF classes below
only gate read-only listings that have no service-level check.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from credits.exceptions import Unauthorized

if TYPE_CHECKING:
    from django.contrib.auth.models import AbstractBaseUser
    from rest_framework.request import Request
    from rest_framework.views import APIView


def require_permission(user: AbstractBaseUser | None, permission: str) -> None:
    """
    Raise Unauthorized unless the user holds the permission.

    Args:
        user: Acting operator
        permission: Full permission name, e.g. "credits.add_credits"

    Raises:
        Unauthorized: If the user is missing, inactive or lacks it
    """
    if user is None or not user.is_authenticated or not user.has_perm(permission):
        raise Unauthorized(permission)


class HasCreditsPermission(permissions.BasePermission):
    """
    Allows access only to users holding required_permission.

    Subclass and set required_permission.
    """

    required_permission: str = ""
    message = "You do not have permission to perform this action."

    def has_permission(self, request: Request, view: APIView) -> bool:
        user = request.user
        return bool(
            user and user.is_authenticated and user.has_perm(self.required_permission)
        )


class CanViewAllLedger(HasCreditsPermission):
    """Operators who may list every user's ledger entries."""

    required_permission = "credits.view_all_ledger"
    message = "You do not have permission to view other users' ledgers."
