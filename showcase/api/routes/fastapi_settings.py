"""FastAPI settings routes for the showcase.

Provides runtime configuration for Slack notifications and the default
magic link branding. Admin-only.
"""

import logging
from typing import Dict, Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from showcase.core.settings import SettingsStore, validate_webhook_url
from ..core import UpstreamError
from ..deps import get_db_manager, get_slack_service, record_audit, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/settings", tags=["settings"])


# ---- Request/Response models ------------------------------------------------


class SlackSettingsRequest(BaseModel):
    webhook_url: Optional[str] = ""
    events: Optional[Dict[str, bool]] = None


class SlackTestRequest(BaseModel):
    webhook_url: Optional[str] = None


class BrandingRequest(BaseModel):
    header_text: Optional[str] = None
    footer_text: Optional[str] = None
    primary_color: Optional[str] = None
    hide_default_branding: Optional[bool] = None


# ---- Slack endpoints ---------------------------------------------------------


@router.get("/slack")
async def get_slack_settings(
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Return the Slack webhook and which events are enabled."""
    with db_manager.get_session() as session:
        return {"data": SettingsStore(session).get_slack_config()}


@router.post("/slack")
async def set_slack_settings(
    data: SlackSettingsRequest,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Save the Slack webhook (empty clears it) and event toggles."""
    with db_manager.get_session() as session:
        config = SettingsStore(session).set_slack_config(data.webhook_url, data.events)

    record_audit(
        request, "settings:slack", "app_setting",
        details={"webhook_set": bool(config["webhook_url"]), "events": config["events"]},
    )
    return {"success": True, "data": config}


@router.post("/slack/test")
async def test_slack_webhook(
    data: SlackTestRequest,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
    slack=Depends(get_slack_service),
):
    """Post a test message to the given webhook, or the saved one."""
    webhook_url = validate_webhook_url(data.webhook_url)
    if not webhook_url:
        with db_manager.get_session() as session:
            webhook_url = SettingsStore(session).get_slack_webhook()
    if not webhook_url:
        raise HTTPException(status_code=400, detail="No Slack webhook configured")

    try:
        await run_in_threadpool(slack.send_test, webhook_url)
    except requests.RequestException as e:
        logger.warning(f"Slack test message failed: {e}")
        raise UpstreamError("Slack webhook test failed")

    return {"success": True, "message": "Test message sent"}


# ---- Branding endpoints ------------------------------------------------------


@router.get("/default-branding")
async def get_default_branding(
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Return the branding applied to links without their own."""
    with db_manager.get_session() as session:
        return {"data": SettingsStore(session).get_default_branding()}


@router.post("/default-branding")
async def set_default_branding(
    data: BrandingRequest,
    request: Request,
    user: dict = Depends(require_admin),
    db_manager=Depends(get_db_manager),
):
    """Update the default branding. Omitted fields keep their value."""
    with db_manager.get_session() as session:
        branding = SettingsStore(session).set_default_branding(data.model_dump(exclude_unset=True))

    record_audit(request, "settings:branding", "app_setting", details=branding)
    return {"success": True, "data": branding}
