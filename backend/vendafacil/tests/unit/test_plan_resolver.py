"""
Unit tests for plan resolution and the plan catalog.
"""

import pytest

from vendafacil.config.plan_catalog import get_plan_catalog, reset_plan_catalog
from vendafacil.services.plan_resolver import (
    ResolvedPlan,
    UnknownPlanError,
    get_plan_label,
    resolve_plan,
)


class TestResolvePlan:

    @pytest.mark.parametrize("plan_id", ["weekly", "semanal", "WEEKLY", "Semanal", " weekly "])
    def test_weekly_aliases(self, plan_id):
        plan = resolve_plan("PURCHASE_APPROVED", plan_id)

        assert plan == ResolvedPlan(duration_days=7, plan_name="Semanal", plan_type="semanal")

    @pytest.mark.parametrize("plan_id", ["monthly", "mensal", "MONTHLY"])
    def test_monthly_aliases(self, plan_id):
        plan = resolve_plan("SUBSCRIPTION_RENEWED", plan_id)

        assert plan.duration_days == 30
        assert plan.plan_type == "mensal"
        assert plan.plan_name == "Mensal"
        assert plan.is_fallback is False

    @pytest.mark.parametrize("plan_id", ["yearly", "anual", "Anual"])
    def test_yearly_aliases(self, plan_id):
        plan = resolve_plan("PLAN_CHANGED", plan_id)

        assert plan.duration_days == 365
        assert plan.plan_type == "anual"

    def test_english_and_portuguese_resolve_identically(self):
        assert resolve_plan("PURCHASE_APPROVED", "weekly") == resolve_plan("PURCHASE_APPROVED", "semanal")

    @pytest.mark.parametrize("plan_id", ["gold", "", None])
    def test_unknown_plan_falls_back_to_trial(self, plan_id):
        plan = resolve_plan("PURCHASE_APPROVED", plan_id)

        assert plan.duration_days == 7
        assert plan.plan_type == "trial"
        assert plan.plan_name == "Avaliação"
        assert plan.is_fallback is True

    def test_unknown_plan_without_fallback_raises(self):
        with pytest.raises(UnknownPlanError) as exc_info:
            resolve_plan("PURCHASE_APPROVED", "gold", allow_fallback=False)

        assert exc_info.value.plan_id == "gold"

    @pytest.mark.parametrize("event_type", ["PURCHASE_CANCELED", "PURCHASE_DELAYED", None])
    def test_non_granting_event_raises(self, event_type):
        with pytest.raises(UnknownPlanError):
            resolve_plan(event_type, "mensal")


class TestPlanCatalog:

    def test_custom_yaml(self, make_yaml_config):
        path = make_yaml_config("plans.yml", {
            "plans": {
                "mensal": {"name": "Plano Mensal", "duration_days": 31, "aliases": ["monthly", "mes"]},
            },
            "fallback": {"plan_type": "trial", "name": "Teste", "duration_days": 3},
        })
        reset_plan_catalog()
        catalog = get_plan_catalog(str(path))

        plan = resolve_plan("PURCHASE_APPROVED", "MES", catalog=catalog)
        assert plan.duration_days == 31
        assert plan.plan_name == "Plano Mensal"

        fallback = resolve_plan("PURCHASE_APPROVED", "weekly", catalog=catalog)
        assert fallback.is_fallback is True
        assert fallback.duration_days == 3

    def test_missing_file_uses_builtin_plans(self, tmp_path):
        reset_plan_catalog()
        catalog = get_plan_catalog(str(tmp_path / "absent.yml"))

        assert catalog.lookup("yearly").duration_days == 365
        assert catalog.fallback.plan_type == "trial"

    def test_loader_is_singleton(self):
        assert get_plan_catalog() is get_plan_catalog()


class TestGetPlanLabel:

    @pytest.mark.parametrize("code,label", [
        ("mensal", "Mensal"),
        ("monthly", "Mensal"),
        ("ANUAL", "Anual"),
        ("weekly", "Semanal"),
        ("trial", "Avaliação"),
        ("free", "Avaliação"),
        ("vitalicio", "Vitalício"),
        ("premium", "Premium"),
    ])
    def test_labels(self, code, label):
        assert get_plan_label(code) == label

    @pytest.mark.parametrize("code", [None, ""])
    def test_missing_plan(self, code):
        assert get_plan_label(code) == "Sem Plano"
