"""Health and environment-check endpoints.

Routes mounted at: /api
- GET /api/health - service status and session store reachability
- GET /api/check-env - which configuration variables are set (never values)
"""

from __future__ import annotations

__all__ = ["router"]

import asyncio
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response

from mcp_pm import __version__
from mcp_pm.api.deps import ConfigDep, SessionManagerDep
from mcp_pm.api.schemas import (
    CheckEnvResponse,
    EnvVarStatus,
    FeatureSupport,
    HealthResponse,
    StoreHealth,
)
from mcp_pm.constants import SERVICE_NAME

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.get("/health", response_model=HealthResponse)
async def health(
    request: Request,
    response: Response,
    config: ConfigDep,
    manager: SessionManagerDep,
) -> HealthResponse:
    """Report service health.

    Answers 503 with status "degraded" when the session store is unreachable.
    """
    reachable = await asyncio.to_thread(manager.store.ping)
    if not reachable:
        response.status_code = 503

    started_at: float = getattr(request.app.state, "started_at", time.monotonic())
    response.headers["Cache-Control"] = "no-cache"

    return HealthResponse(
        status="healthy" if reachable else "degraded",
        service=SERVICE_NAME,
        version=__version__,
        timestamp=_now_iso(),
        uptime_seconds=round(time.monotonic() - started_at, 3),
        session_store=StoreHealth(backend=config.storage.backend, reachable=reachable),
    )


@router.get("/check-env", response_model=CheckEnvResponse)
async def check_env(request: Request, config: ConfigDep) -> CheckEnvResponse:
    """Report configuration presence captured at startup."""
    env_status: dict[str, dict[str, int | bool]] = getattr(request.app.state, "env_status", {})
    github_app = config.github_app

    return CheckEnvResponse(
        timestamp=_now_iso(),
        config_status={name: EnvVarStatus.model_validate(value) for name, value in env_status.items()},
        github_app_support=FeatureSupport(
            enabled=github_app is not None,
            status="Installation tokens can be minted" if github_app else "GitHub App setup incomplete",
        ),
        oauth_support=FeatureSupport(
            enabled=config.oauth is not None,
            status="OAuth tokens can be obtained" if config.oauth else "OAuth setup incomplete",
        ),
        redis_support=FeatureSupport(
            enabled=config.storage.backend == "redis",
            status=(
                "Redis session storage configured"
                if config.storage.backend == "redis"
                else "Sessions kept in process memory"
            ),
        ),
        webhook_support=FeatureSupport(
            enabled=bool(github_app and github_app.webhook_secret),
            status=(
                "Webhook signatures verified"
                if github_app and github_app.webhook_secret
                else "Webhook secret not configured"
            ),
        ),
    )
