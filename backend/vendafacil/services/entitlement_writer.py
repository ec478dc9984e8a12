"""
Entitlement writer - the only code that mutates store_access.

Runs with the service's own database credentials, outside any tenant
session. Callers are trusted: the Hotmart webhook handler, the admin
grant service and the trial starter. Tenant-facing routes never call it.

Writes are flushed, not committed. The caller owns the transaction so a
grant can commit atomically with its event-log row.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vendafacil.models.store_access import AccessOrigin, AccessState, StoreAccess
from vendafacil.services.plan_resolver import ResolvedPlan

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EntitlementWriteError(Exception):
    """Raised when a store_access write fails. Carries the database message."""

    def __init__(self, store_id: str, operation: str, db_message: str):
        self.store_id = store_id
        self.operation = operation
        self.db_message = db_message
        super().__init__(f"{operation} failed for store {store_id}: {db_message}")


class EntitlementWriter:
    """Grant and revoke store access."""

    def __init__(self, db_session: Session, now_fn: Optional[Callable[[], datetime]] = None):
        self.db = db_session
        self._now = now_fn or utc_now

    def grant_access(
        self,
        store_id: str,
        plan: ResolvedPlan,
        origin: Union[AccessOrigin, str],
        renewable: bool = True,
    ) -> StoreAccess:
        """
        Overwrite the store's access with a fresh window starting now.

        Last writer wins: a renewal resets the window from now instead of
        extending what was left. A plan without duration never expires.

        Raises:
            EntitlementWriteError: If the upsert fails
        """
        now = self._now()
        ends_at = None
        if plan.duration_days is not None:
            ends_at = now + timedelta(days=plan.duration_days)

        values = {
            "store_id": store_id,
            "plano_nome": plan.plan_name,
            "plano_tipo": plan.plan_type,
            "data_inicio_acesso": now,
            "data_fim_acesso": ends_at,
            "status_acesso": AccessState.ATIVO.value,
            "origem": AccessOrigin(origin).value,
            "renovavel": renewable,
            "updated_at": now,
        }

        try:
            self._upsert(values)
            self.db.flush()
            access = self.db.get(StoreAccess, store_id, populate_existing=True)
        except SQLAlchemyError as e:
            logger.error("Store access grant failed", extra={
                "store_id": store_id,
                "plan_type": plan.plan_type,
                "error": str(e),
            })
            raise EntitlementWriteError(store_id, "grant_access", str(e)) from e

        logger.info("Store access granted", extra={
            "store_id": store_id,
            "plan_type": plan.plan_type,
            "origin": values["origem"],
            "ends_at": ends_at.isoformat() if ends_at else None,
        })
        return access

    def revoke_access(self, store_id: str) -> bool:
        """
        Block the store's access.

        data_fim_acesso is left untouched as the record of when access
        would have ended.

        Returns:
            True if a store_access row existed, False otherwise

        Raises:
            EntitlementWriteError: If the update fails
        """
        try:
            updated = self.db.query(StoreAccess).filter(
                StoreAccess.store_id == store_id
            ).update(
                {
                    StoreAccess.status_acesso: AccessState.BLOQUEADO.value,
                    StoreAccess.renovavel: False,
                    StoreAccess.updated_at: self._now(),
                },
                synchronize_session="fetch",
            )
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error("Store access revoke failed", extra={
                "store_id": store_id,
                "error": str(e),
            })
            raise EntitlementWriteError(store_id, "revoke_access", str(e)) from e

        if not updated:
            logger.warning("Revoke for store without access record", extra={
                "store_id": store_id,
            })
        else:
            logger.info("Store access revoked", extra={"store_id": store_id})
        return bool(updated)

    def _upsert(self, values: dict) -> None:
        """INSERT ... ON CONFLICT (store_id) DO UPDATE, with an ORM fallback."""
        dialect = self.db.get_bind().dialect.name

        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            self.db.merge(StoreAccess(**values))
            return

        stmt = insert(StoreAccess).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[StoreAccess.store_id],
            set_={key: stmt.excluded[key] for key in values if key != "store_id"},
        )
        self.db.execute(stmt)
