"""
Access read endpoints used by the app layout gatekeeper.

Every call reads fresh state; nothing here is cached between requests.
A read failure answers 503 and is never turned into "access granted".
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vendafacil.auth.supabase_jwt import AuthenticatedUser, get_current_user
from vendafacil.database.session import get_db_session
from vendafacil.services.access_status import (
    AccessStatus,
    AccessStatusService,
    AccessStatusUnavailableError,
    evaluate_access,
)
from vendafacil.services.bootstrap_status import BootstrapStatus, BootstrapStatusService
from vendafacil.services.route_guard import decide_route, home_route, sidebar_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/access", tags=["access"])


class BootstrapStatusResponse(BaseModel):
    has_store: bool
    is_member: bool
    is_admin: bool
    store_id: Optional[str] = None


class RouteDecisionResponse(BaseModel):
    path: str
    redirect_to: Optional[str] = None
    home: str
    sidebar: str


def _unavailable(e: Exception) -> HTTPException:
    logger.error("Access state unavailable", extra={"error": str(e)})
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Não foi possível verificar seu acesso. Tente novamente mais tarde."
    )


def _load_state(db: Session, user_id: str) -> tuple[BootstrapStatus, AccessStatus]:
    bootstrap = BootstrapStatusService(db).get_bootstrap_status(user_id)
    if bootstrap.store_id is None:
        access = evaluate_access(None, datetime.now(timezone.utc))
    else:
        access = AccessStatusService(db).get_access_status(bootstrap.store_id)
    return bootstrap, access


@router.get("/status", response_model=AccessStatus)
async def get_access_status(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Access status of the caller's store."""
    try:
        _, access = _load_state(db, user.user_id)
    except AccessStatusUnavailableError as e:
        raise _unavailable(e)
    return access


@router.get("/bootstrap", response_model=BootstrapStatusResponse)
async def get_bootstrap_status(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    try:
        bootstrap = BootstrapStatusService(db).get_bootstrap_status(user.user_id)
    except AccessStatusUnavailableError as e:
        raise _unavailable(e)
    return BootstrapStatusResponse(**bootstrap.to_dict())


@router.get("/route", response_model=RouteDecisionResponse)
async def get_route_decision(
    path: str = Query(..., description="Path the user is navigating to"),
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """
    Where the caller must go instead of `path`.

    redirect_to is null when the navigation may proceed.
    """
    try:
        bootstrap, access = _load_state(db, user.user_id)
    except AccessStatusUnavailableError as e:
        raise _unavailable(e)

    redirect_to = decide_route(bootstrap, access, path)
    if redirect_to:
        logger.info("Navigation redirected", extra={
            "user_id": user.user_id,
            "path": path,
            "redirect_to": redirect_to,
        })

    return RouteDecisionResponse(
        path=path,
        redirect_to=redirect_to,
        home=home_route(bootstrap, access),
        sidebar=sidebar_for(bootstrap),
    )
