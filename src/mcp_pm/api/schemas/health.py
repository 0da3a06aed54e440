"""Health and environment-check API schemas."""

from __future__ import annotations

__all__ = [
    "CheckEnvResponse",
    "EnvVarStatus",
    "FeatureSupport",
    "HealthResponse",
    "StoreHealth",
]

from typing import Literal

from pydantic import BaseModel


class StoreHealth(BaseModel):
    """Session store reachability."""

    backend: Literal["memory", "redis"]
    reachable: bool


class HealthResponse(BaseModel):
    """Service health.

    status is "degraded" when the session store cannot be reached.
    """

    status: Literal["healthy", "degraded"]
    service: str
    version: str
    timestamp: str
    uptime_seconds: float
    session_store: StoreHealth


class EnvVarStatus(BaseModel):
    """Presence of one configuration variable (never its value)."""

    present: bool
    length: int


class FeatureSupport(BaseModel):
    enabled: bool
    status: str


class CheckEnvResponse(BaseModel):
    """Configuration presence report."""

    timestamp: str
    config_status: dict[str, EnvVarStatus]
    github_app_support: FeatureSupport
    oauth_support: FeatureSupport
    redis_support: FeatureSupport
    webhook_support: FeatureSupport
    message: str = "Environment check completed"
