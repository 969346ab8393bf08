"""Deposit webhook and notification-channel authorization.

The ledger pushes deposit events to ``/notifications/deposit``; a realtime
client subscribing to a private organization channel is authorized through
``/notifications/auth``. That call must carry the webhook signature and is
signed by the ledger on behalf of the most recently active session.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pydantic import BaseModel

from ledgerbot.api.app import get_services
from ledgerbot.container import BotServices
from ledgerbot.errors import AuthError, BotError
from ledgerbot.ledger.models import DepositEvent
from ledgerbot.notifications.telegram import DepositNotifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications")


class DepositResponse(BaseModel):
    success: bool
    delivered: bool


class ChannelAuthRequest(BaseModel):
    socket_id: str
    channel_name: str


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check a hex HMAC-SHA256 of the raw body, optionally ``sha256=``-prefixed."""
    if "=" in signature:
        signature = signature.split("=", 1)[1]
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.lower())


def _notifier(services: BotServices) -> DepositNotifier:
    if services.deposits is None:
        raise HTTPException(status_code=503, detail="Notifications are not available")
    return services.deposits


async def _check_signature(request: Request, signature: Optional[str], secret: str) -> bool:
    if not secret or not signature:
        return False
    return verify_signature(await request.body(), signature, secret)


@router.post("/deposit", response_model=DepositResponse)
async def handle_deposit_webhook(
    request: Request,
    event: DepositEvent,
    x_webhook_signature: Optional[str] = Header(None),
    services: BotServices = Depends(get_services),
) -> DepositResponse:
    """Forward a deposit event to the owning user's chat."""
    secret = services.settings.deposit_webhook_secret
    if secret and not await _check_signature(request, x_webhook_signature, secret):
        logger.warning(f"Invalid deposit webhook signature: user={event.user_id}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    delivered = await _notifier(services).handle_deposit(event)
    return DepositResponse(success=True, delivered=delivered)


@router.post("/auth")
async def authorize_channel(
    request: Request,
    payload: ChannelAuthRequest,
    x_webhook_signature: Optional[str] = Header(None),
    services: BotServices = Depends(get_services),
) -> dict:
    """Sign a private channel subscription through the ledger.

    Only callers holding the webhook secret may use a user's session here,
    so the endpoint is closed while no secret is configured.
    """
    secret = services.settings.deposit_webhook_secret
    if not await _check_signature(request, x_webhook_signature, secret):
        logger.warning(f"Rejected unsigned channel authorization: channel={payload.channel_name}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        return await _notifier(services).authorize_channel(payload.socket_id, payload.channel_name)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=e.message)
    except BotError as e:
        logger.error(f"Channel authorization failed: channel={payload.channel_name}: {e}")
        raise HTTPException(status_code=502, detail=e.message)
