"""
Access-status evaluation.

evaluate_access() is the single source of truth for "may this store use
the app right now". Expiry is computed at read time: a row whose stored
status is still "ativo" but whose end date has passed is reported as
expired, and the row itself is never touched.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.models.store_access import AccessState, PlanType, StoreAccess

logger = logging.getLogger(__name__)

NO_PLAN_NAME = "Sem Plano"
EXPIRED_TRIAL_NAME = "Trial Expirado"

MSG_NO_RECORD = "Sua loja não possui um plano de acesso. Escolha um plano para começar."
MSG_ACTIVE_UNTIL = "Seu plano {plano} está ativo até {data}."
MSG_ACTIVE_LIFETIME = "Seu plano {plano} está ativo e não possui data de expiração."
MSG_EXPIRED = "Seu plano {plano} expirou em {data}. Renove para continuar usando o sistema."
MSG_EXPIRED_TRIAL = "Seu período de avaliação expirou em {data}. Escolha um plano para continuar."
MSG_BLOCKED = "O acesso da sua loja está bloqueado. Entre em contato com o suporte ou assine um novo plano."
MSG_WAITING = "Seu pagamento está aguardando liberação. O acesso será liberado assim que for confirmado."


class AccessStatusUnavailableError(Exception):
    """Raised when the access record cannot be read. Callers must not treat this as allowed."""

    def __init__(self, store_id: str, message: str):
        self.store_id = store_id
        super().__init__(f"Access status unavailable for store {store_id}: {message}")


class AccessStatus(BaseModel):
    """Derived access decision for one store."""
    acesso_liberado: bool
    data_fim_acesso: Optional[datetime] = None
    plano_nome: str
    plano_tipo: Optional[str] = None
    mensagem: str


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are stored UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def evaluate_access(store_access: Optional[StoreAccess], now: datetime) -> AccessStatus:
    """
    Decide whether a store currently has access.

    acesso_liberado = status_acesso == "ativo" and (no end date or end date in the future)

    Pure: same inputs, same output, no writes.
    """
    if store_access is None:
        return AccessStatus(
            acesso_liberado=False,
            plano_nome=NO_PLAN_NAME,
            mensagem=MSG_NO_RECORD,
        )

    now = as_utc(now)
    ends_at = as_utc(store_access.data_fim_acesso)
    stored_state = store_access.status_acesso
    plan_name = store_access.plano_nome
    plan_type = store_access.plano_tipo

    is_active = stored_state == AccessState.ATIVO.value
    not_expired = ends_at is None or ends_at > now

    if is_active and not_expired:
        if ends_at is None:
            message = MSG_ACTIVE_LIFETIME.format(plano=plan_name)
        else:
            message = MSG_ACTIVE_UNTIL.format(plano=plan_name, data=_format_date(ends_at))
        return AccessStatus(
            acesso_liberado=True,
            data_fim_acesso=ends_at,
            plano_nome=plan_name,
            plano_tipo=plan_type,
            mensagem=message,
        )

    if stored_state == AccessState.BLOQUEADO.value:
        message = MSG_BLOCKED
    elif stored_state == AccessState.AGUARDANDO_LIBERACAO.value:
        message = MSG_WAITING
    else:
        # "expirado", or "ativo" past its end date
        expired_on = _format_date(ends_at) if ends_at else _format_date(now)
        if plan_type == PlanType.TRIAL.value:
            plan_name = EXPIRED_TRIAL_NAME
            message = MSG_EXPIRED_TRIAL.format(data=expired_on)
        else:
            message = MSG_EXPIRED.format(plano=plan_name, data=expired_on)

    return AccessStatus(
        acesso_liberado=False,
        data_fim_acesso=ends_at,
        plano_nome=plan_name,
        plano_tipo=plan_type,
        mensagem=message,
    )


class AccessStatusService:
    """Reads a store's access record and evaluates it."""

    def __init__(self, db_session: Session):
        self.db = db_session

    def get_access_status(self, store_id: str, now: Optional[datetime] = None) -> AccessStatus:
        """
        Fresh access status for a store.

        Raises:
            AccessStatusUnavailableError: If the record cannot be read
        """
        try:
            store_access = self.db.query(StoreAccess).filter(
                StoreAccess.store_id == store_id
            ).populate_existing().first()
        except SQLAlchemyError as e:
            logger.error("Failed to read store access", extra={
                "store_id": store_id,
                "error": str(e),
            })
            raise AccessStatusUnavailableError(store_id, str(e)) from e

        return evaluate_access(store_access, now or datetime.now(timezone.utc))
