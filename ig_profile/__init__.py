from __future__ import annotations

from .analytics import compute_analytics
from .config import RuntimeSettings, config_sha256, load_config, resolve_runtime_settings
from .config_schema import AppConfig
from .errors import BrowserError, ConfigError, ReconciliationFailure
from .normalize import normalize_user_payload
from .pipeline import scrape_profile
from .reconcile import reconcile

__all__ = [
    "AppConfig",
    "BrowserError",
    "ConfigError",
    "ReconciliationFailure",
    "RuntimeSettings",
    "compute_analytics",
    "config_sha256",
    "load_config",
    "normalize_user_payload",
    "reconcile",
    "resolve_runtime_settings",
    "scrape_profile",
]
