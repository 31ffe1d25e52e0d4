"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .graph import DEFAULT_GRAPH_BASE_URL, GraphConfig, build_graph_resilience, get_graph_config
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .reconciliation import ReconciliationConfig, get_reconciliation_config

__all__ = [
    "DEFAULT_GRAPH_BASE_URL",
    "ConfigurationError",
    "GraphConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "build_graph_resilience",
    "get_graph_config",
    "get_reconciliation_config",
    "require_env_var",
    "require_env_vars",
]
