import hmac
import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from loguru import logger
from pydantic import ValidationError

from metform_n8n_bridge.common.config import BridgeConfig
from metform_n8n_bridge.common.models import SettingsUpdate, SubmissionEvent
from metform_n8n_bridge.common.settings_store import (
    SettingsStore,
    apply_settings_update,
)
from metform_n8n_bridge.forwarder.client import WebhookForwarder


router = APIRouter()


async def get_config() -> BridgeConfig:
    from metform_n8n_bridge.receiver.app import get_app_config
    return get_app_config()


async def get_settings_store() -> SettingsStore:
    from metform_n8n_bridge.receiver.app import get_settings_store
    return get_settings_store()


async def get_forwarder() -> WebhookForwarder:
    from metform_n8n_bridge.receiver.app import get_forwarder
    return get_forwarder()


def _token_matches(expected: str, provided: Optional[str]) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(expected.encode(), provided.encode())


async def require_admin_token(
    config: BridgeConfig = Depends(get_config),
    x_admin_token: Optional[str] = Header(None),
) -> None:
    if not config.admin_token:
        raise HTTPException(status_code=403, detail="Settings API disabled")
    if not _token_matches(config.admin_token, x_admin_token):
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _reject_constant(name: str) -> None:
    raise ValueError(f"Non-finite number {name} is not allowed")


def _parse_submission(content: Any, path_form_id: Optional[str]) -> SubmissionEvent:
    # Accept both the bare field mapping and a {"form_id", "fields"} envelope;
    # a form id in the URL path wins over the envelope's
    if (
        isinstance(content, dict)
        and "fields" in content
        and set(content) <= {"form_id", "fields"}
    ):
        form_id = path_form_id if path_form_id is not None else content.get("form_id", "")
        return SubmissionEvent(form_id=form_id, fields=content["fields"])
    return SubmissionEvent(form_id=path_form_id or "", fields=content)


async def _accept_submission(
    request: Request,
    path_form_id: Optional[str],
    config: BridgeConfig,
    forwarder: WebhookForwarder,
    submission_token: Optional[str],
):
    if config.submission_token and not _token_matches(
        config.submission_token, submission_token
    ):
        raise HTTPException(status_code=401, detail="Invalid submission token")

    body = await request.body()
    try:
        content = json.loads(body, parse_constant=_reject_constant)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    try:
        event = _parse_submission(content, path_form_id)
    except ValidationError:
        raise HTTPException(
            status_code=400,
            detail="Submission must be a JSON object or array with a string form_id",
        )

    # The submission is accepted whatever happens to the webhook delivery
    try:
        await forwarder.handle_submission(event.form_id, event.fields)
    except Exception as e:
        logger.error(f"Error forwarding submission for form {event.form_id}: {e}")

    return {"status": "accepted"}


@router.post("/submissions", status_code=202)
async def receive_submission_envelope(
    request: Request,
    config: BridgeConfig = Depends(get_config),
    forwarder: WebhookForwarder = Depends(get_forwarder),
    x_submission_token: Optional[str] = Header(None),
):
    return await _accept_submission(
        request, None, config, forwarder, x_submission_token
    )


@router.post("/submissions/{form_id:path}", status_code=202)
async def receive_submission(
    form_id: str,
    request: Request,
    config: BridgeConfig = Depends(get_config),
    forwarder: WebhookForwarder = Depends(get_forwarder),
    x_submission_token: Optional[str] = Header(None),
):
    return await _accept_submission(
        request, form_id, config, forwarder, x_submission_token
    )


@router.get("/settings", dependencies=[Depends(require_admin_token)])
async def read_settings(store: SettingsStore = Depends(get_settings_store)):
    return store.load().masked()


@router.put("/settings", dependencies=[Depends(require_admin_token)])
async def update_settings(
    update: SettingsUpdate,
    store: SettingsStore = Depends(get_settings_store),
):
    result = apply_settings_update(store, update)
    return {"settings": result.settings.masked(), "errors": result.errors}


@router.get("/health")
async def health_check():
    return {"status": "ok"}
