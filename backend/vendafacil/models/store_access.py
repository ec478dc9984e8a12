"""
StoreAccess model - the single current-entitlement record of a store.

CRITICAL: One row per store (store_id is the primary key and upsert target).
status_acesso can go stale: a row that says "ativo" with a past
data_fim_acesso is expired. Readers MUST use the access-status evaluator
instead of trusting status_acesso directly.
"""

from enum import Enum

from sqlalchemy import Column, String, Boolean, DateTime, func

from vendafacil.db_base import Base


class PlanType(str, Enum):
    """Canonical plan codes stored in plano_tipo."""
    TRIAL = "trial"
    SEMANAL = "semanal"
    MENSAL = "mensal"
    ANUAL = "anual"
    VITALICIO = "vitalicio"


class AccessState(str, Enum):
    """Stored status_acesso values."""
    ATIVO = "ativo"
    EXPIRADO = "expirado"
    BLOQUEADO = "bloqueado"
    AGUARDANDO_LIBERACAO = "aguardando_liberacao"


class AccessOrigin(str, Enum):
    """Who granted the current entitlement."""
    HOTMART = "hotmart"
    KIWIFY = "kiwify"
    PERFECTPAY = "perfectpay"
    ADMIN = "admin"
    ONBOARDING = "onboarding"
    MANUAL_ADMIN = "manual_admin"


class StoreAccess(Base):
    """
    Current access grant for a store.

    Created on the first grant (trial, purchase or admin), overwritten on
    every renewal, flagged on cancellation, never deleted.
    """

    __tablename__ = "store_access"

    store_id = Column(
        String(36),
        primary_key=True,
        comment="One access record per store"
    )

    plano_nome = Column(
        String(100),
        nullable=False,
        comment="Plan display name"
    )

    plano_tipo = Column(
        String(32),
        nullable=False,
        comment="Canonical plan code (PlanType)"
    )

    data_inicio_acesso = Column(
        DateTime(timezone=True),
        nullable=False,
        comment="Start of the current access window"
    )

    data_fim_acesso = Column(
        DateTime(timezone=True),
        nullable=True,
        comment="End of the current access window (NULL = never expires)"
    )

    status_acesso = Column(
        String(32),
        nullable=False,
        default=AccessState.ATIVO.value,
        comment="Stored access state (AccessState)"
    )

    origem = Column(
        String(32),
        nullable=True,
        comment="Grant origin (AccessOrigin)"
    )

    renovavel = Column(
        Boolean,
        nullable=False,
        default=True,
        comment="Whether the grant auto-extends"
    )

    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return (
            f"<StoreAccess(store_id={self.store_id}, plano={self.plano_tipo}, "
            f"status={self.status_acesso}, fim={self.data_fim_acesso})>"
        )
