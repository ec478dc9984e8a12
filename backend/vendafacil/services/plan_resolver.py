"""
Plan resolution for billing events.

Maps a provider plan identifier (English or Portuguese, any case) to the
canonical (duration, display name, plano_tipo) triple. Pure: no I/O
beyond the cached plan catalog.
"""

from dataclasses import dataclass
from typing import Optional

from vendafacil.api.schemas.hotmart import GRANTING_EVENT_TYPES
from vendafacil.config.plan_catalog import PlanCatalogLoader, get_plan_catalog


class UnknownPlanError(Exception):
    """Raised when no plan can be resolved for an event."""

    def __init__(self, event_type: Optional[str], plan_id: Optional[str], reason: str):
        self.event_type = event_type
        self.plan_id = plan_id
        self.reason = reason
        super().__init__(f"Cannot resolve plan '{plan_id}' for {event_type}: {reason}")


@dataclass(frozen=True)
class ResolvedPlan:
    duration_days: Optional[int]
    plan_name: str
    plan_type: str
    is_fallback: bool = False


def resolve_plan(
    event_type: Optional[str],
    raw_plan_id: Optional[str],
    catalog: Optional[PlanCatalogLoader] = None,
    allow_fallback: bool = True,
) -> ResolvedPlan:
    """
    Resolve the plan granted by a billing event.

    Args:
        event_type: Provider event type (must be a granting type)
        raw_plan_id: Plan segment of the external reference
        catalog: Plan catalog (defaults to the shared loader)
        allow_fallback: Resolve unrecognised ids to the 7-day trial plan

    Returns:
        ResolvedPlan

    Raises:
        UnknownPlanError: Non-granting event type, or unrecognised plan with
            fallback disabled
    """
    if event_type not in GRANTING_EVENT_TYPES:
        raise UnknownPlanError(event_type, raw_plan_id, "event type does not grant access")

    catalog = catalog or get_plan_catalog()
    plan = catalog.lookup(raw_plan_id)
    if plan is not None:
        return ResolvedPlan(
            duration_days=plan.duration_days,
            plan_name=plan.plan_name,
            plan_type=plan.plan_type,
        )

    if not allow_fallback:
        raise UnknownPlanError(event_type, raw_plan_id, "plan id not in catalog")

    fallback = catalog.fallback
    return ResolvedPlan(
        duration_days=fallback.duration_days,
        plan_name=fallback.plan_name,
        plan_type=fallback.plan_type,
        is_fallback=True,
    )


_PLAN_LABELS = {
    "mensal": "Mensal",
    "monthly": "Mensal",
    "anual": "Anual",
    "yearly": "Anual",
    "semanal": "Semanal",
    "weekly": "Semanal",
    "trial": "Avaliação",
    "free": "Avaliação",
    "avaliacao": "Avaliação",
    "vitalicio": "Vitalício",
}


def get_plan_label(plano_tipo: Optional[str]) -> str:
    """Display label for a stored plan code."""
    if not plano_tipo:
        return "Sem Plano"
    label = _PLAN_LABELS.get(plano_tipo.lower())
    if label:
        return label
    return plano_tipo[:1].upper() + plano_tipo[1:]
