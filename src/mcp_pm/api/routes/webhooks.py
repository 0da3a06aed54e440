"""GitHub webhook endpoint.

Routes mounted at: /api/github/webhooks
"""

from __future__ import annotations

__all__ = ["router"]

import asyncio
import json

from fastapi import APIRouter, Request

from mcp_pm.api.deps import ConfigDep, SessionManagerDep
from mcp_pm.api.errors import APIError, ErrorCode
from mcp_pm.api.schemas import WebhookResponse
from mcp_pm.constants import WEBHOOK_EVENT_HEADER, WEBHOOK_SIGNATURE_HEADER
from mcp_pm.exceptions import WebhookVerificationError
from mcp_pm.github.webhooks import WebhookDispatcher, verify_signature

router = APIRouter()


@router.post("", response_model=WebhookResponse)
async def receive_webhook(
    request: Request,
    config: ConfigDep,
    manager: SessionManagerDep,
) -> WebhookResponse:
    """Verify and dispatch one webhook delivery."""
    github_app = config.require_github_app()
    if not github_app.webhook_secret:
        raise APIError(
            status_code=503,
            code=ErrorCode.CONFIG_MISSING,
            message="Webhook secret not configured",
            details={"missing": ["WEBHOOK_SECRET"]},
        )

    body = await request.body()
    try:
        verify_signature(github_app.webhook_secret, body, request.headers.get(WEBHOOK_SIGNATURE_HEADER))
    except WebhookVerificationError as e:
        raise APIError(status_code=401, code=ErrorCode.WEBHOOK_SIGNATURE_INVALID, message=str(e)) from e

    event = request.headers.get(WEBHOOK_EVENT_HEADER)
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise APIError(
            status_code=400,
            code=ErrorCode.WEBHOOK_PAYLOAD_INVALID,
            message="Webhook body is not valid JSON",
        ) from e
    if not event or not isinstance(payload, dict):
        raise APIError(
            status_code=400,
            code=ErrorCode.WEBHOOK_PAYLOAD_INVALID,
            message="Missing event header or malformed payload",
        )

    result = await asyncio.to_thread(WebhookDispatcher(manager).dispatch, event, payload)
    return WebhookResponse(
        event=result.event,
        action=result.action,
        handled=result.handled,
        sessions_removed=result.sessions_removed,
    )
