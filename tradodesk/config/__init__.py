"""Configuration loading and schema.

- YAML-first configuration under configs/*.yaml
- Strict ${ENV_VAR} expansion (missing/empty env vars are errors)
- The LLM API key falls back to $GEMINI_API_KEY and may stay unset
"""

from __future__ import annotations

from tradodesk.core.errors import ConfigError

from .loader import load_config, load_raw_config, resolve_profile_configs
from .model import AppConfig, AppSettings, LlmConfig, LoggingConfig, ModelPrice, RetryConfig

__all__ = [
    "AppConfig",
    "AppSettings",
    "ConfigError",
    "LlmConfig",
    "LoggingConfig",
    "ModelPrice",
    "RetryConfig",
    "load_config",
    "load_raw_config",
    "resolve_profile_configs",
]
