from __future__ import annotations

from dataclasses import dataclass, field


DEFAULT_SYSTEM_INSTRUCTION = (
    "Du bist ein professioneller Trading-Assistent. Antworte immer auf Deutsch "
    "(informelles 'du'). Sei präzise, risikobewusst und hilfsbereit. "
    "WARNUNG: Dies ist ein Demo-Konto."
)


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_s: float = 1.0


@dataclass(frozen=True)
class LlmConfig:
    """Provider settings.

    `api_key` may be empty: the client reports a missing key as an
    `auth_failed` result instead of refusing to start.
    """

    api_key: str | None = None
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    fast_model: str = "gemini-2.5-flash-lite"
    deep_model: str = "gemini-3-pro-preview"
    thinking_budget: int = 1024
    timeout_s: float = 60.0
    locale: str = "de"
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass(frozen=True)
class ModelPrice:
    """USD per one million tokens."""

    input: float
    output: float


@dataclass(frozen=True)
class AppSettings:
    demo_mode: bool = True
    secure_mode: bool = True
    rate_limit_ms: int = 800


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str | None = None


def _default_pricing() -> dict[str, ModelPrice]:
    return {
        "gemini-3-pro-preview": ModelPrice(input=1.25, output=5.00),
        "gemini-2.5-flash-lite": ModelPrice(input=0.075, output=0.30),
    }


@dataclass(frozen=True)
class AppConfig:
    llm: LlmConfig = field(default_factory=LlmConfig)
    app: AppSettings = field(default_factory=AppSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    pricing: dict[str, ModelPrice] = field(default_factory=_default_pricing)
