"""Peer-provisioning (warp) API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_WARP_BASE_URL = "https://api.cloudflareclient.com/v0a2158"
WARP_CLIENT_VERSION = "a-7.21-0721"
WARP_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class WarpConfig:
    resilience: ResilienceConfig
    device_model: str = "coresync"


def get_warp_config() -> WarpConfig:
    base_url = optional_env_var("CORESYNC_WARP_API", DEFAULT_WARP_BASE_URL)
    resilience = ResilienceConfig(
        name="warp",
        base_url=base_url.rstrip("/"),
        timeout_seconds=WARP_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2),
        ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
        default_headers={
            "CF-Client-Version": WARP_CLIENT_VERSION,
            "Content-Type": "application/json",
        },
    )
    return WarpConfig(resilience=resilience)
