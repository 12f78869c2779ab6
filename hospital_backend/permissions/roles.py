# permissions/roles.py

from __future__ import annotations

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS (STAFF JOB ROLES)
# =========================================================
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_ACCOUNTANT = "accountant"
ROLE_PHARMACIST = "pharmacist"
ROLE_CASHIER = "cashier"
ROLE_RECEPTION = "reception"

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_ACCOUNTANT,
    ROLE_PHARMACIST,
    ROLE_CASHIER,
    ROLE_RECEPTION,
}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views protect capabilities, not raw roles.
CAP_CREDIT_VIEW = "credit.view"          # credited customers, credit sales, balances
CAP_CREDIT_COLLECT = "credit.collect"    # take a lump-sum payment at the counter
CAP_CREDIT_SETTLE = "credit.settle"      # split a receipt across specific bills
CAP_PAYMENTS_VIEW = "payments.view"
CAP_PAYMENTS_RECORD = "payments.record"  # panel sync jobs / manual panel entries

ALL_CAPABILITIES = {
    CAP_CREDIT_VIEW,
    CAP_CREDIT_COLLECT,
    CAP_CREDIT_SETTLE,
    CAP_PAYMENTS_VIEW,
    CAP_PAYMENTS_RECORD,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {*ALL_CAPABILITIES},
    ROLE_MANAGER: {
        CAP_CREDIT_VIEW,
        CAP_CREDIT_COLLECT,
        CAP_CREDIT_SETTLE,
        CAP_PAYMENTS_VIEW,
    },
    ROLE_ACCOUNTANT: {
        CAP_CREDIT_VIEW,
        CAP_CREDIT_SETTLE,
        CAP_PAYMENTS_VIEW,
        CAP_PAYMENTS_RECORD,
    },
    ROLE_PHARMACIST: {
        CAP_CREDIT_VIEW,
    },
    ROLE_CASHIER: {
        CAP_CREDIT_VIEW,
        CAP_CREDIT_COLLECT,
    },
    ROLE_RECEPTION: set(),
}


def get_user_role(user) -> str | None:
    return getattr(user, "role", None)


def capabilities_for(user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


# =========================================================
# Capability Permissions
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        required_capability = CAP_CREDIT_SETTLE
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # deny-by-default when a view forgets to declare one
            return False

        return required in capabilities_for(user)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a set.

    Usage:
        required_any_capabilities = {CAP_CREDIT_COLLECT, CAP_CREDIT_SETTLE}
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = capabilities_for(user)
        return any(cap in caps for cap in set(required))


class IsStaff(BasePermission):
    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return get_user_role(user) in STAFF_ROLES
