"""
Free trial activation.

A store owner can start one 7-day trial per store, from onboarding.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from vendafacil.models.store import Store
from vendafacil.models.store_access import AccessOrigin, PlanType, StoreAccess
from vendafacil.services.access_status import evaluate_access
from vendafacil.services.entitlement_writer import EntitlementWriter, utc_now
from vendafacil.services.plan_resolver import ResolvedPlan, get_plan_label

logger = logging.getLogger(__name__)

TRIAL_DURATION_DAYS = 7

PAID_ORIGINS = frozenset({
    AccessOrigin.HOTMART.value,
    AccessOrigin.KIWIFY.value,
    AccessOrigin.PERFECTPAY.value,
})

TRIAL_PLAN = ResolvedPlan(
    duration_days=TRIAL_DURATION_DAYS,
    plan_name=get_plan_label(PlanType.TRIAL.value),
    plan_type=PlanType.TRIAL.value,
)


class TrialError(Exception):
    """Base class for trial errors."""


class TrialNotAllowedError(TrialError):
    """Only store owners can start a trial."""


class TrialAlreadyUsedError(TrialError):
    pass


class PlanAlreadyActiveError(TrialError):
    """The store has a live plan or has paid through a provider before."""


class TrialService:
    def __init__(self, db_session: Session, now_fn: Optional[Callable[[], datetime]] = None):
        self.db = db_session
        self._now = now_fn or utc_now
        self.writer = EntitlementWriter(db_session, now_fn=self._now)

    def start_trial(self, user_id: str) -> StoreAccess:
        """
        Grant the trial plan to the store the user owns.

        Raises:
            TrialNotAllowedError: User owns no store
            TrialAlreadyUsedError: Store already consumed its trial
            PlanAlreadyActiveError: Store has a live or previously paid plan
            EntitlementWriteError: Database failure
        """
        store = self.db.query(Store).filter(
            Store.user_id == user_id
        ).order_by(Store.created_at.asc()).with_for_update().first()

        if store is None:
            raise TrialNotAllowedError("Apenas proprietários podem iniciar o período de teste.")
        if store.trial_used:
            raise TrialAlreadyUsedError("O período de avaliação já foi utilizado por esta loja.")

        current = self.db.get(StoreAccess, store.id)
        if current is not None and (
            current.origem in PAID_ORIGINS
            or evaluate_access(current, self._now()).acesso_liberado
        ):
            raise PlanAlreadyActiveError("Esta loja já possui um plano ativo ou assinado.")

        access = self.writer.grant_access(
            store.id, TRIAL_PLAN, AccessOrigin.ONBOARDING, renewable=False
        )
        store.trial_used = True
        store.trial_started_at = self._now()
        self.db.commit()

        logger.info("Trial started", extra={
            "store_id": store.id,
            "user_id": user_id,
        })
        return access
