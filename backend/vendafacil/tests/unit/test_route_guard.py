"""
Unit tests for the route guard decision table.
"""

import pytest

from vendafacil.services.access_status import AccessStatus
from vendafacil.services.bootstrap_status import BootstrapStatus
from vendafacil.services.route_guard import (
    decide_route,
    home_route,
    path_matches,
    sidebar_for,
    strip_query,
)

NEW_USER = BootstrapStatus()
OWNER = BootstrapStatus(has_store=True, store_id="store-1")
MEMBER = BootstrapStatus(is_member=True, store_id="store-1")
ADMIN = BootstrapStatus(is_admin=True)
ADMIN_WITH_STORE = BootstrapStatus(has_store=True, is_admin=True, store_id="store-1")

LIBERADO = AccessStatus(acesso_liberado=True, plano_nome="Mensal", plano_tipo="mensal", mensagem="ok")
BLOQUEADO = AccessStatus(acesso_liberado=False, plano_nome="Mensal", plano_tipo="mensal", mensagem="bloqueado")


class TestPathMatches:

    @pytest.mark.parametrize("path,prefix,expected", [
        ("/billing", "/billing", True),
        ("/billing/plans", "/billing", True),
        ("/billingx", "/billing", False),
        ("/admin/stores/1", "/admin", True),
        ("/administrator", "/admin", False),
    ])
    def test_segment_boundaries(self, path, prefix, expected):
        assert path_matches(path, prefix) is expected

    @pytest.mark.parametrize("path,expected", [
        ("/billing?plan=mensal", "/billing"),
        ("/settings#conta", "/settings"),
        ("/billing?next=/a#b", "/billing"),
        ("?x=1", "/"),
        ("/dashboard", "/dashboard"),
    ])
    def test_strip_query(self, path, expected):
        assert strip_query(path) == expected


class TestDecideRoute:

    @pytest.mark.parametrize("path", ["/login", "/signup", "/forgot-password", "/reset-password/abc"])
    def test_public_paths_always_proceed(self, path):
        assert decide_route(NEW_USER, None, path) is None
        assert decide_route(OWNER, BLOQUEADO, path) is None

    @pytest.mark.parametrize("path", ["/dashboard", "/billing", "/admin", "/sales/new"])
    def test_new_user_forced_to_onboarding(self, path):
        assert decide_route(NEW_USER, None, path) == "/onboarding"

    def test_new_user_on_onboarding_proceeds(self):
        assert decide_route(NEW_USER, None, "/onboarding") is None

    @pytest.mark.parametrize("path", ["/dashboard", "/billing", "/onboarding", "/settings"])
    def test_admin_routed_to_admin_area(self, path):
        assert decide_route(ADMIN, LIBERADO, path) == "/admin"

    def test_admin_precedes_paywall(self):
        assert decide_route(ADMIN_WITH_STORE, BLOQUEADO, "/dashboard") == "/admin"
        assert decide_route(ADMIN_WITH_STORE, BLOQUEADO, "/admin/stores") is None

    def test_non_admin_denied_admin_area(self):
        assert decide_route(OWNER, LIBERADO, "/admin") == "/dashboard"
        assert decide_route(MEMBER, BLOQUEADO, "/admin/users") == "/billing"

    def test_finished_user_leaves_onboarding(self):
        assert decide_route(OWNER, LIBERADO, "/onboarding") == "/dashboard"

    def test_locked_out_user_sent_to_billing(self):
        assert decide_route(OWNER, BLOQUEADO, "/dashboard") == "/billing"
        assert decide_route(MEMBER, BLOQUEADO, "/sales") == "/billing"

    @pytest.mark.parametrize("path", ["/billing", "/billing/checkout", "/settings", "/settings/profile"])
    def test_paywall_exempt_paths(self, path):
        assert decide_route(OWNER, BLOQUEADO, path) is None

    def test_paywall_prefix_respects_segments(self):
        assert decide_route(OWNER, BLOQUEADO, "/billingx") == "/billing"

    def test_query_and_fragment_ignored(self):
        assert decide_route(OWNER, BLOQUEADO, "/billing?plan=mensal") is None
        assert decide_route(OWNER, BLOQUEADO, "/settings#conta") is None
        assert decide_route(OWNER, BLOQUEADO, "/dashboard?tab=vendas") == "/billing"
        assert decide_route(NEW_USER, None, "/onboarding?step=2") is None
        assert decide_route(ADMIN, LIBERADO, "/admin?page=3") is None

    def test_missing_access_status_counts_as_locked(self):
        assert decide_route(OWNER, None, "/dashboard") == "/billing"

    def test_liberado_user_proceeds(self):
        assert decide_route(OWNER, LIBERADO, "/dashboard") is None
        assert decide_route(MEMBER, LIBERADO, "/sales/new") is None


class TestHomeRoute:

    def test_home_by_state(self):
        assert home_route(NEW_USER, None) == "/onboarding"
        assert home_route(ADMIN_WITH_STORE, BLOQUEADO) == "/admin"
        assert home_route(OWNER, BLOQUEADO) == "/billing"
        assert home_route(MEMBER, LIBERADO) == "/dashboard"


class TestSidebarFor:

    def test_sidebar(self):
        assert sidebar_for(ADMIN) == "admin"
        assert sidebar_for(OWNER) == "app"
        assert sidebar_for(MEMBER) == "app"
        assert sidebar_for(NEW_USER) == "none"
