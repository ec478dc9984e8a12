"""
Hotmart webhook endpoint.

SECURITY: Deliveries carry the shared secret in the "hottok" header and it
is compared in constant time. With no secret configured the endpoint
accepts unauthenticated deliveries (local and staging only).

Every delivery that passes the token and JSON checks is answered 200 with
success=true, whatever happened while processing it. Hotmart retries are
not trusted for recovery; failures are left in the event log for an
operator to re-drive.

Documentation: https://developers.hotmart.com/docs/en/2.0.0/webhook/using-webhook/
"""

import hmac
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from vendafacil.api.schemas.hotmart import WebhookResponse
from vendafacil.config.settings import Settings, get_settings
from vendafacil.database.session import get_db_session
from vendafacil.services.hotmart_webhook_handler import HotmartWebhookHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

HOTTOK_HEADER = "hottok"


def verify_hottok(received: Optional[str], secret: str) -> bool:
    """Constant-time comparison of the hottok header with the shared secret."""
    if not received or not secret:
        return False
    return hmac.compare_digest(received.encode("utf-8"), secret.encode("utf-8"))


def _reply(status_code: int, success: bool, message: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=WebhookResponse(success=success, message=message).model_dump(),
    )


@router.post("/hotmart", response_model=WebhookResponse)
async def handle_hotmart_webhook(
    request: Request,
    db: Session = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
):
    """
    Receive a Hotmart billing event.

    Responses:
        200: handled (including events logged with an error status)
        401: hottok mismatch
        400: body is not valid JSON
    """
    if settings.webhook_auth_configured:
        if not verify_hottok(request.headers.get(HOTTOK_HEADER), settings.hotmart_webhook_secret):
            logger.warning("Invalid Hotmart webhook token", extra={
                "client": request.client.host if request.client else None,
            })
            return _reply(status.HTTP_401_UNAUTHORIZED, False, "Unauthorized")
    else:
        logger.warning("HOTMART_WEBHOOK_SECRET not configured, accepting unauthenticated webhook")

    raw_body = await request.body()
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("Invalid JSON in Hotmart webhook body")
        return _reply(status.HTTP_400_BAD_REQUEST, False, "Invalid JSON")

    handler = HotmartWebhookHandler(db, settings=settings)
    result = handler.handle(body)
    return _reply(status.HTTP_200_OK, result.success, result.message)
