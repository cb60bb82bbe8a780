from __future__ import annotations

from pathlib import Path

import pytest

from tradodesk.config import ConfigError, load_config, load_raw_config, resolve_profile_configs

REPO_CONFIGS = Path(__file__).resolve().parents[1] / "configs"


def _write(path: Path, text: str) -> Path:
    path.write_text(text.lstrip(), encoding="utf-8")
    return path


def test_load_raw_config_expands_env_vars(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRADODESK_TEST_KEY", "abc123")

    cfg_path = _write(
        tmp_path / "app.yaml",
        """
llm:
  api_key: ${TRADODESK_TEST_KEY}
nested:
  arr:
    - hi-${TRADODESK_TEST_KEY}
""",
    )

    cfg = load_raw_config(cfg_path, load_dotenv_file=False)
    assert cfg["llm"]["api_key"] == "abc123"
    assert cfg["nested"]["arr"][0] == "hi-abc123"


@pytest.mark.parametrize("value, reason", [(None, "missing"), ("", "empty")])
def test_unresolved_env_var_is_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, value: str | None, reason: str
) -> None:
    if value is None:
        monkeypatch.delenv("TRADODESK_TEST_KEY", raising=False)
    else:
        monkeypatch.setenv("TRADODESK_TEST_KEY", value)

    cfg_path = _write(tmp_path / "app.yaml", "llm:\n  api_key: ${TRADODESK_TEST_KEY}\n")

    with pytest.raises(ConfigError) as ei:
        load_config(cfg_path, load_dotenv_file=False)

    msg = str(ei.value)
    assert "TRADODESK_TEST_KEY" in msg
    assert reason in msg
    assert "llm.api_key" in msg


def test_missing_file_is_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError) as ei:
        load_config(tmp_path / "nope.yaml", load_dotenv_file=False)
    assert "nope.yaml" in str(ei.value)


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path / "app.yaml", "- a\n- b\n")
    with pytest.raises(ConfigError):
        load_config(cfg_path, load_dotenv_file=False)


def test_api_key_falls_back_to_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    cfg_path = _write(tmp_path / "app.yaml", "llm:\n  fast_model: f\n")

    cfg = load_config(cfg_path, load_dotenv_file=False)

    assert cfg.llm.api_key == "from-env"
    assert cfg.llm.fast_model == "f"


def test_api_key_may_be_absent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    cfg_path = _write(tmp_path / "app.yaml", "app:\n  demo_mode: false\n")

    cfg = load_config(cfg_path, load_dotenv_file=False)

    assert cfg.llm.api_key is None
    assert cfg.app.demo_mode is False
    assert cfg.llm.retry.max_attempts == 3


def test_empty_file_uses_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    cfg = load_config(_write(tmp_path / "app.yaml", "\n"), load_dotenv_file=False)

    assert cfg.llm.deep_model == "gemini-3-pro-preview"
    assert cfg.llm.thinking_budget == 1024
    assert cfg.logging.level == "INFO"
    assert "gemini-2.5-flash-lite" in cfg.pricing


@pytest.mark.parametrize(
    "yaml_text, path",
    [
        ("llm:\n  retry:\n    max_attempts: -1\n", "llm.retry.max_attempts"),
        ("llm:\n  retry:\n    base_delay_s: fast\n", "llm.retry.base_delay_s"),
        ("llm:\n  thinking_budget: -5\n", "llm.thinking_budget"),
        ("pricing:\n  m: 3\n", "pricing.m"),
        ("app: [1]\n", "app"),
    ],
)
def test_invalid_values_are_errors(tmp_path: Path, yaml_text: str, path: str) -> None:
    cfg_path = _write(tmp_path / "app.yaml", yaml_text)

    with pytest.raises(ConfigError) as ei:
        load_config(cfg_path, load_dotenv_file=False)
    assert ei.value.path == path


def test_dev_profile_overrides_app(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    paths = resolve_profile_configs(profile="dev", configs_dir=REPO_CONFIGS)

    cfg = load_config(paths, load_dotenv_file=False)

    assert cfg.llm.locale == "en"
    assert cfg.llm.retry.base_delay_s == 0.5
    assert cfg.llm.retry.max_attempts == 3
    assert cfg.llm.fast_model == "gemini-2.5-flash-lite"
    assert cfg.logging.level == "DEBUG"


def test_repo_app_config_loads(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    paths = resolve_profile_configs(profile="app", configs_dir=REPO_CONFIGS)

    cfg = load_config(paths, load_dotenv_file=False)

    assert cfg.llm.locale == "de"
    assert cfg.app.rate_limit_ms == 800
    assert cfg.pricing["gemini-3-pro-preview"].output == 5.0


def test_unknown_profile() -> None:
    with pytest.raises(ConfigError):
        resolve_profile_configs(profile="prod", configs_dir=REPO_CONFIGS)
