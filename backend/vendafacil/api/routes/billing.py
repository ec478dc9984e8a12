"""
Billing API routes.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from vendafacil.auth.supabase_jwt import AuthenticatedUser, get_current_user
from vendafacil.database.session import get_db_session
from vendafacil.services.entitlement_writer import EntitlementWriteError
from vendafacil.services.trial_service import (
    PlanAlreadyActiveError,
    TrialAlreadyUsedError,
    TrialNotAllowedError,
    TrialService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


class StartTrialResponse(BaseModel):
    success: bool = True
    message: str = "Período de avaliação ativado com sucesso!"
    store_id: str
    data_fim_acesso: Optional[datetime] = None


@router.post("/start-trial", response_model=StartTrialResponse)
async def start_trial(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db_session),
):
    """Start the one-time free trial of the caller's store."""
    try:
        access = TrialService(db).start_trial(user.user_id)
    except TrialNotAllowedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except TrialAlreadyUsedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PlanAlreadyActiveError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except EntitlementWriteError as e:
        logger.error("Trial activation failed", extra={"user_id": user.user_id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Falha ao processar trial: {e.db_message}"
        )

    return StartTrialResponse(store_id=access.store_id, data_fim_acesso=access.data_fim_acesso)
