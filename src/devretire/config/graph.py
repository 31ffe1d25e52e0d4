"""Microsoft Graph configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
GRAPH_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class GraphConfig:
    """Bearer token and HTTP settings shared by every Graph call of a session."""

    access_token: str
    resilience: ResilienceConfig

    def __repr__(self) -> str:
        return f"GraphConfig(access_token='***', resilience={self.resilience!r})"


def build_graph_resilience(
    access_token: str,
    *,
    base_url: str = DEFAULT_GRAPH_BASE_URL,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="graph",
        base_url=base_url.rstrip("/"),
        timeout_seconds=GRAPH_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=4),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        default_headers={
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "ConsistencyLevel": "eventual",
        },
    )


def get_graph_config(*, access_token: str | None = None) -> GraphConfig:
    token = access_token or require_env_vars(("GRAPH_ACCESS_TOKEN",))["GRAPH_ACCESS_TOKEN"]
    base_url = optional_env_var("GRAPH_BASE_URL") or DEFAULT_GRAPH_BASE_URL
    return GraphConfig(
        access_token=token,
        resilience=build_graph_resilience(token, base_url=base_url),
    )
