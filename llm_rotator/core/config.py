from pydantic_settings import BaseSettings, SettingsConfigDict

APP_VERSION = "0.1.0"

# Vendor names in rotation priority order (most generous free tier first)
VENDOR_PRIORITY: tuple[str, ...] = (
    "groq",
    "mistral",
    "openrouter",
    "huggingface",
    "fireworks",
    "cohere",
    "gemini",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Master switch — when off, no providers are built at all
    ai_enabled: bool = True

    # Primary providers (high free tier limits)
    groq_api_key: str = ""  # https://console.groq.com
    mistral_api_key: str = ""  # https://console.mistral.ai
    openrouter_api_key: str = ""  # https://openrouter.ai

    # Secondary providers (lower limits, good fallbacks)
    huggingface_api_key: str = ""  # https://huggingface.co/settings/tokens
    fireworks_api_key: str = ""  # https://fireworks.ai
    cohere_api_key: str = ""  # https://dashboard.cohere.com

    # Backup provider (very limited free tier — last resort)
    gemini_api_key: str = ""  # https://aistudio.google.com

    # Per-vendor model overrides, e.g. AI_MODEL_OVERRIDES='{"groq": "llama-3.1-8b-instant"}'
    ai_model_overrides: dict[str, str] = {}

    # Generation
    ai_max_tokens: int = 2048
    ai_temperature: float = 0.7
    ai_timeout_seconds: float = 30.0
    ai_max_retries: int = 3

    # Cooldowns
    ai_rate_limit_cooldown_seconds: float = 60.0
    ai_server_error_cooldown_seconds: float = 30.0
    ai_honor_retry_after: bool = True
    ai_max_retry_after_seconds: float = 300.0

    # OpenRouter attribution headers
    openrouter_referer: str = "https://llm-rotator.local"
    openrouter_title: str = "LLM Rotator"

    # App
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    def api_keys(self) -> dict[str, str]:
        """Configured credentials in priority order, blank keys omitted."""
        keys: dict[str, str] = {}
        for vendor in VENDOR_PRIORITY:
            key = getattr(self, f"{vendor}_api_key", "") or ""
            if key.strip():
                keys[vendor] = key.strip()
        return keys

    @property
    def has_any_provider(self) -> bool:
        return bool(self.api_keys())


settings = Settings()


def validate_settings(cfg: Settings | None = None) -> None:
    """Validate critical settings. Called on startup by entry points."""
    cfg = cfg or settings
    errors: list[str] = []

    if cfg.ai_max_retries < 1:
        errors.append("AI_MAX_RETRIES must be at least 1")

    if cfg.ai_timeout_seconds <= 0:
        errors.append("AI_TIMEOUT_SECONDS must be positive")

    if not 0.0 <= cfg.ai_temperature <= 2.0:
        errors.append("AI_TEMPERATURE must be between 0.0 and 2.0")

    unknown = sorted(set(cfg.ai_model_overrides) - set(VENDOR_PRIORITY))
    if unknown:
        errors.append(f"AI_MODEL_OVERRIDES has unknown vendors: {', '.join(unknown)}")

    if cfg.app_env == "production" and cfg.ai_enabled and not cfg.has_any_provider:
        errors.append("AI is enabled in production but no provider API key is set")

    if errors:
        raise SystemExit("Configuration errors:\n  - " + "\n  - ".join(errors))
