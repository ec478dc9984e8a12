"""
Route guard decision table.

decide_route() answers "where must this user go instead of the requested
path", or None to let the request through. It is pure and is evaluated on
every navigation; access can change between two requests (a webhook may
have just granted it).

Precedence:
    1. public paths always proceed
    2. new users are sent to onboarding
    3. admins are sent to the admin area
    4. non-admins never see the admin area
    5. users who finished onboarding leave it
    6. locked-out users are sent to billing (billing and settings exempt)
"""

from typing import Iterable, Optional

from vendafacil.services.access_status import AccessStatus
from vendafacil.services.bootstrap_status import BootstrapStatus

ONBOARDING_PATH = "/onboarding"
ADMIN_PATH = "/admin"
BILLING_PATH = "/billing"
SETTINGS_PATH = "/settings"
DASHBOARD_PATH = "/dashboard"

PUBLIC_PATHS = ("/login", "/signup", "/forgot-password", "/reset-password")
PAYWALL_EXEMPT_PATHS = (BILLING_PATH, SETTINGS_PATH)


def path_matches(path: str, prefix: str) -> bool:
    """True for the prefix itself or anything below it ("/billing/x", not "/billingx")."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def strip_query(path: str) -> str:
    """Path without its query string or fragment."""
    return path.split("#", 1)[0].split("?", 1)[0] or "/"


def _matches_any(path: str, prefixes: Iterable[str]) -> bool:
    return any(path_matches(path, prefix) for prefix in prefixes)


def _is_liberado(access_status: Optional[AccessStatus]) -> bool:
    return access_status is not None and access_status.acesso_liberado


def home_route(bootstrap: BootstrapStatus, access_status: Optional[AccessStatus]) -> str:
    """The one path a user in this state belongs on."""
    if bootstrap.is_new_user:
        return ONBOARDING_PATH
    if bootstrap.is_admin:
        return ADMIN_PATH
    if not _is_liberado(access_status):
        return BILLING_PATH
    return DASHBOARD_PATH


def decide_route(
    bootstrap: BootstrapStatus,
    access_status: Optional[AccessStatus],
    requested_path: str,
) -> Optional[str]:
    """
    Redirect target for a navigation, or None to proceed.

    A missing access status counts as not liberado.
    """
    path = strip_query(requested_path or "/")

    if _matches_any(path, PUBLIC_PATHS):
        return None

    if bootstrap.is_new_user:
        return None if path_matches(path, ONBOARDING_PATH) else ONBOARDING_PATH

    if bootstrap.is_admin:
        return None if path_matches(path, ADMIN_PATH) else ADMIN_PATH

    if path_matches(path, ADMIN_PATH) or path_matches(path, ONBOARDING_PATH):
        return home_route(bootstrap, access_status)

    if not _is_liberado(access_status) and not _matches_any(path, PAYWALL_EXEMPT_PATHS):
        return BILLING_PATH

    return None


def sidebar_for(bootstrap: BootstrapStatus) -> str:
    """Which navigation chrome to render: admin, app or none."""
    if bootstrap.is_admin:
        return "admin"
    if bootstrap.has_store or bootstrap.is_member:
        return "app"
    return "none"
