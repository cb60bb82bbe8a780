from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Sequence

import yaml
from dotenv import load_dotenv

from tradodesk.core.errors import ConfigError

from .model import (
    AppConfig,
    AppSettings,
    LlmConfig,
    LoggingConfig,
    ModelPrice,
    RetryConfig,
    _default_pricing,
)

API_KEY_ENV = "GEMINI_API_KEY"

_ENV_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True, slots=True)
class _UnresolvedEnvRef:
    """Tracks an unresolved ${ENV_VAR} reference for better error messages."""

    var_name: str
    source_file: str
    key_path: str
    reason: str  # "missing" | "empty"


def _deep_merge(base: MutableMapping[str, Any], overlay: Mapping[str, Any]) -> MutableMapping[str, Any]:
    for k, v in overlay.items():
        if isinstance(v, Mapping) and isinstance(base.get(k), Mapping):
            base[k] = _deep_merge(dict(base[k]), v)
        else:
            base[k] = v
    return base


def _load_yaml(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    return yaml.safe_load(text)


def _expand_env_in_obj(
    obj: Any,
    *,
    source_file: str,
    key_path: str,
    unresolved: list[_UnresolvedEnvRef],
) -> Any:
    if isinstance(obj, str):
        def repl(match: re.Match[str]) -> str:
            name = match.group(1)
            value = os.getenv(name)
            if value is None or value == "":
                unresolved.append(
                    _UnresolvedEnvRef(
                        var_name=name,
                        source_file=source_file,
                        key_path=key_path,
                        reason="missing" if value is None else "empty",
                    )
                )
                return match.group(0)
            return value

        return _ENV_PLACEHOLDER_RE.sub(repl, obj)

    if isinstance(obj, Mapping):
        return {
            str(k): _expand_env_in_obj(
                v,
                source_file=source_file,
                key_path=f"{key_path}.{k}" if key_path else str(k),
                unresolved=unresolved,
            )
            for k, v in obj.items()
        }

    if isinstance(obj, list):
        return [
            _expand_env_in_obj(
                v,
                source_file=source_file,
                key_path=f"{key_path}[{i}]" if key_path else f"[{i}]",
                unresolved=unresolved,
            )
            for i, v in enumerate(obj)
        ]

    return obj


def load_raw_config(
    paths: Path | str | Sequence[Path | str],
    *,
    load_dotenv_file: bool = True,
    dotenv_path: Path | None = None,
) -> dict[str, Any]:
    """Load YAML config files with strict ${ENV_VAR} expansion.

    Args:
        paths: One or more YAML files. When multiple are provided, they are merged
            (later files override earlier ones).
        load_dotenv_file: Whether to load a .env file before expansion.
        dotenv_path: Optional explicit .env path. When omitted, attempts to load
            a `.env` in the current working directory.

    Raises:
        ConfigError: If a file is missing, YAML is invalid, or env expansion is unresolved.
    """

    if isinstance(paths, (str, Path)):
        file_list = [Path(paths)]
    else:
        file_list = [Path(p) for p in paths]
    if not file_list:
        raise ConfigError("No config files provided")

    if load_dotenv_file:
        # Local dev: secrets may come from .env (never committed).
        load_dotenv(dotenv_path or Path.cwd() / ".env", override=False)

    merged: dict[str, Any] = {}
    for p in file_list:
        if not p.exists():
            raise ConfigError("Config file does not exist", path=str(p))
        try:
            fragment = _load_yaml(p)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read YAML config: {e}", path=str(p)) from e

        if fragment is None:
            fragment = {}
        if not isinstance(fragment, Mapping):
            raise ConfigError("Top-level YAML must be a mapping/dict", path=str(p))

        merged = dict(_deep_merge(merged, fragment))

    unresolved: list[_UnresolvedEnvRef] = []
    expanded = _expand_env_in_obj(
        merged,
        source_file=",".join(str(p) for p in file_list),
        key_path="",
        unresolved=unresolved,
    )

    if unresolved:
        lines: list[str] = ["Unresolved environment variables in config:"]
        for ref in unresolved:
            where = ref.key_path or "<root>"
            lines.append(f"- {ref.var_name} ({ref.reason}) at {where} in {ref.source_file}")
        raise ConfigError("\n".join(lines))

    return expanded


def _section(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError("must be a mapping", path=key)
    return dict(value)


def _number(d: Mapping[str, Any], key: str, default: Any, *, path: str, cast: type) -> Any:
    value = d.get(key, default)
    if isinstance(value, bool):
        raise ConfigError("must be a number", path=f"{path}.{key}")
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError("must be a number", path=f"{path}.{key}") from e


def _parse_llm(raw: Mapping[str, Any]) -> LlmConfig:
    llm_raw = _section(raw, "llm")
    retry_raw = llm_raw.get("retry") or {}
    if not isinstance(retry_raw, Mapping):
        raise ConfigError("must be a mapping", path="llm.retry")

    retry = RetryConfig(
        max_attempts=_number(retry_raw, "max_attempts", RetryConfig.max_attempts, path="llm.retry", cast=int),
        base_delay_s=_number(retry_raw, "base_delay_s", RetryConfig.base_delay_s, path="llm.retry", cast=float),
    )
    if retry.max_attempts < 0:
        raise ConfigError("must be >= 0", path="llm.retry.max_attempts")
    if retry.base_delay_s < 0:
        raise ConfigError("must be >= 0", path="llm.retry.base_delay_s")

    # The key is optional; a missing key surfaces later as an auth_failed result.
    api_key = llm_raw.get("api_key")
    if api_key is None or api_key == "":
        api_key = os.getenv(API_KEY_ENV) or None
    if api_key is not None and not isinstance(api_key, str):
        raise ConfigError("must be a string", path="llm.api_key")

    locale = str(llm_raw.get("locale", LlmConfig.locale))
    thinking_budget = _number(llm_raw, "thinking_budget", LlmConfig.thinking_budget, path="llm", cast=int)
    if thinking_budget < 0:
        raise ConfigError("must be >= 0", path="llm.thinking_budget")

    return LlmConfig(
        api_key=api_key,
        base_url=str(llm_raw.get("base_url", LlmConfig.base_url)),
        fast_model=str(llm_raw.get("fast_model", LlmConfig.fast_model)),
        deep_model=str(llm_raw.get("deep_model", LlmConfig.deep_model)),
        thinking_budget=thinking_budget,
        timeout_s=_number(llm_raw, "timeout_s", LlmConfig.timeout_s, path="llm", cast=float),
        locale=locale,
        system_instruction=str(llm_raw.get("system_instruction", LlmConfig.system_instruction)),
        retry=retry,
    )


def _parse_pricing(raw: Mapping[str, Any]) -> dict[str, ModelPrice]:
    if "pricing" not in raw or raw["pricing"] is None:
        return _default_pricing()

    pricing_raw = raw["pricing"]
    if not isinstance(pricing_raw, Mapping):
        raise ConfigError("must be dict[str, {input, output}]", path="pricing")

    out: dict[str, ModelPrice] = {}
    for model, price in pricing_raw.items():
        path = f"pricing.{model}"
        if not isinstance(price, Mapping):
            raise ConfigError("must be a mapping with input/output", path=path)
        out[str(model)] = ModelPrice(
            input=_number(price, "input", 0.0, path=path, cast=float),
            output=_number(price, "output", 0.0, path=path, cast=float),
        )
    return out


def load_config(
    paths: Path | str | Sequence[Path | str],
    *,
    load_dotenv_file: bool = True,
    dotenv_path: Path | None = None,
) -> AppConfig:
    """Load and type-check the application config."""

    raw = load_raw_config(paths, load_dotenv_file=load_dotenv_file, dotenv_path=dotenv_path)

    app_raw = _section(raw, "app")
    app = AppSettings(
        demo_mode=bool(app_raw.get("demo_mode", AppSettings.demo_mode)),
        secure_mode=bool(app_raw.get("secure_mode", AppSettings.secure_mode)),
        rate_limit_ms=_number(app_raw, "rate_limit_ms", AppSettings.rate_limit_ms, path="app", cast=int),
    )

    log_raw = _section(raw, "logging")
    log_file = log_raw.get("file")
    logging_cfg = LoggingConfig(
        level=str(log_raw.get("level", LoggingConfig.level)).upper(),
        file=str(log_file) if log_file else None,
    )

    return AppConfig(llm=_parse_llm(raw), app=app, logging=logging_cfg, pricing=_parse_pricing(raw))


def resolve_profile_configs(*, profile: str, configs_dir: Path) -> list[Path]:
    """Resolve config file list for a given profile.

    - profile=app -> [configs/app.yaml]
    - profile=dev -> [configs/app.yaml, configs/dev.yaml]
    """

    if profile == "app":
        return [configs_dir / "app.yaml"]
    if profile == "dev":
        return [configs_dir / "app.yaml", configs_dir / "dev.yaml"]
    raise ConfigError(f"Unknown profile: {profile}")
