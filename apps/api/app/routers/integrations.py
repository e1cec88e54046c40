from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from app.calendly.client import calendly_me, delete_webhook_subscription, list_event_types, list_webhook_subscriptions
from app.config import settings
from app.conversifi.client import api_key_or_raise, probe_endpoint
from app.deps import require_admin
from app.discord.client import list_text_channels
from app.ghl.client import probe_contacts, search_locations
from app.models import User
from app.schemas import (
  CalendlyEventTypesIn,
  CalendlyTokenIn,
  CalendlyWebhookDeleteIn,
  CalendlyWebhooksIn,
  ConversifiValidateIn,
  GhlValidateIn,
)
from app.slack.client import list_channels

router = APIRouter(prefix="/integrations", tags=["integrations"])


def _not_configured(what: str) -> HTTPException:
  return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"{what} not configured")


@router.post("/calendly/info")
async def calendly_info(payload: CalendlyTokenIn, admin: User = Depends(require_admin)) -> dict:
  me = await calendly_me(payload.calendly_token)
  return {"success": True, **me}


@router.post("/calendly/event-types")
async def calendly_event_types(payload: CalendlyEventTypesIn, admin: User = Depends(require_admin)) -> dict:
  types = await list_event_types(payload.calendly_token, user_uri=payload.user_uri)
  return {"success": True, "event_types": types}


@router.post("/calendly/webhooks")
async def calendly_webhooks(payload: CalendlyWebhooksIn, admin: User = Depends(require_admin)) -> dict:
  subs = await list_webhook_subscriptions(
    payload.calendly_token,
    organization=payload.organization,
    user=payload.user,
    scope=payload.scope,
  )
  return {"success": True, "webhooks": subs}


@router.post("/calendly/webhooks/delete")
async def calendly_webhook_delete(payload: CalendlyWebhookDeleteIn, admin: User = Depends(require_admin)) -> dict:
  await delete_webhook_subscription(payload.calendly_token, payload.webhook_uri)
  return {"success": True}


@router.get("/slack/channels")
async def slack_channels(admin: User = Depends(require_admin)) -> dict:
  if not settings.slack_bot_token:
    raise _not_configured("Slack integration")
  return {"success": True, "channels": await list_channels()}


@router.get("/discord/channels")
async def discord_channels(admin: User = Depends(require_admin)) -> dict:
  if not settings.discord_bot_token:
    raise _not_configured("Discord bot")
  return {"success": True, **await list_text_channels()}


@router.get("/ghl/locations")
async def ghl_locations(admin: User = Depends(require_admin)) -> dict:
  if not settings.ghl_api_key:
    raise _not_configured("GHL API key")
  return {"success": True, "locations": await search_locations(settings.ghl_api_key)}


@router.post("/ghl/validate")
async def ghl_validate(payload: GhlValidateIn, admin: User = Depends(require_admin)) -> dict:
  return await probe_contacts(payload.api_key, location_id=payload.location_id)


@router.post("/conversifi/validate")
async def conversifi_validate(payload: ConversifiValidateIn, admin: User = Depends(require_admin)) -> dict:
  return await probe_endpoint(payload.webhook_url, api_key=api_key_or_raise())
