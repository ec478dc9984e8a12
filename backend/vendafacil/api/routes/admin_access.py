"""
Admin access API routes.

SECURITY: All routes require the caller to be a platform administrator
(users.is_admin). The check runs before any validation or write.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError
from sqlalchemy.orm import Session

from vendafacil.auth.supabase_jwt import AuthenticatedUser, get_current_user
from vendafacil.config.settings import Settings, get_settings
from vendafacil.database.session import get_db_session
from vendafacil.services.admin_access_service import (
    AdminAccessService,
    AdminPermissionError,
    AdminValidationError,
    EventNotFoundError,
    RedriveNotAllowedError,
    StoreNotFoundError,
)
from vendafacil.services.entitlement_writer import EntitlementWriteError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin-access"])


# Request/Response models

class GrantPlanRequest(BaseModel):
    """Manual plan grant."""
    storeId: Optional[str] = Field(None, description="Store to grant")
    planoTipo: Optional[str] = Field(None, description="trial | semanal | mensal | anual | vitalicio")
    duracaoDias: Optional[int] = Field(None, description="Access duration in days (omit for vitalicio)")
    renovavel: Optional[bool] = Field(None, description="Whether the grant auto-extends")
    origem: Optional[str] = Field(None, description="Grant origin (default manual_admin)")


class GrantPlanResponse(BaseModel):
    ok: bool = True
    message: str = "Plano concedido com sucesso."
    store_id: str
    plano_tipo: str
    plano_nome: str
    data_fim_acesso: Optional[datetime] = None


class SubscriptionEventResponse(BaseModel):
    id: int
    provider: str
    event_type: str
    event_id: str
    store_id: Optional[str] = None
    plan_id: Optional[str] = None
    user_id: Optional[str] = None
    status: str
    raw_payload: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class SubscriptionEventsListResponse(BaseModel):
    events: List[SubscriptionEventResponse]
    total: int


class RedriveResponse(BaseModel):
    success: bool
    message: str
    status: Optional[str] = None
    event_id: Optional[str] = None


def _forbidden() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Acesso negado: o usuário não é administrador."
    )


def get_admin_service(
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
) -> AdminAccessService:
    return AdminAccessService(db, settings=settings)


@router.post("/grant-plan", response_model=GrantPlanResponse)
async def grant_plan(
    payload: Dict[str, Any] = Body(...),
    user: AuthenticatedUser = Depends(get_current_user),
    service: AdminAccessService = Depends(get_admin_service),
):
    """Grant a plan to a store by hand."""
    try:
        service.require_admin(user.user_id)
    except AdminPermissionError:
        raise _forbidden()

    try:
        request = GrantPlanRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Payload inválido ou incompleto: {e.errors()[0]['msg']}"
        )

    try:
        access = service.grant_plan(
            admin_user_id=user.user_id,
            store_id=request.storeId,
            plano_tipo=request.planoTipo,
            duracao_dias=request.duracaoDias,
            renovavel=request.renovavel,
            origem=request.origem,
        )
    except AdminPermissionError:
        raise _forbidden()
    except AdminValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except EntitlementWriteError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.db_message)

    return GrantPlanResponse(
        store_id=access.store_id,
        plano_tipo=access.plano_tipo,
        plano_nome=access.plano_nome,
        data_fim_acesso=access.data_fim_acesso,
    )


@router.get("/subscription-events", response_model=SubscriptionEventsListResponse)
async def list_subscription_events(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by event status"),
    store_id: Optional[str] = Query(None, description="Filter by store"),
    limit: int = Query(50, ge=1, le=500),
    user: AuthenticatedUser = Depends(get_current_user),
    service: AdminAccessService = Depends(get_admin_service),
):
    """Most recent billing events first."""
    try:
        events = service.list_events(user.user_id, status=status_filter, store_id=store_id, limit=limit)
    except AdminPermissionError:
        raise _forbidden()
    except AdminValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    items = [
        SubscriptionEventResponse(
            id=e.id,
            provider=e.provider,
            event_type=e.event_type,
            event_id=e.event_id,
            store_id=e.store_id,
            plan_id=e.plan_id,
            user_id=e.user_id,
            status=e.status,
            raw_payload=e.raw_payload,
            created_at=e.created_at,
        )
        for e in events
    ]
    return SubscriptionEventsListResponse(events=items, total=len(items))


@router.post("/subscription-events/{event_pk}/redrive", response_model=RedriveResponse)
async def redrive_subscription_event(
    event_pk: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: AdminAccessService = Depends(get_admin_service),
):
    """Re-run a failed Hotmart event."""
    try:
        result = service.redrive_event(user.user_id, event_pk)
    except AdminPermissionError:
        raise _forbidden()
    except EventNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except RedriveNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return RedriveResponse(
        success=result.success,
        message=result.message,
        status=result.status.value if result.status else None,
        event_id=result.event_id,
    )
