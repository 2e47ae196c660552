"""
Configuration settings for the call-resilience layer.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Call Resilience Layer"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Retry (generic operations) ===
    RETRY_MAX_RETRIES: int = 3
    RETRY_BASE_DELAY_MS: int = 1000
    RETRY_MAX_DELAY_MS: int = 30000
    RETRY_BACKOFF_MULTIPLIER: float = 2.0
    RETRY_JITTER: bool = True

    # === Retry (externally throttled providers) ===
    PROVIDER_MAX_RETRIES: int = 2
    PROVIDER_BASE_DELAY_MS: int = 2000
    PROVIDER_MAX_DELAY_MS: int = 15000

    # === Circuit Breaker ===
    CIRCUIT_FAILURE_THRESHOLD: int = 3
    CIRCUIT_RECOVERY_TIMEOUT_MS: int = 30000
    CIRCUIT_MONITORING_WINDOW_MS: int = 60000  # informational, counting is lifetime-since-reset
    CIRCUIT_IDLE_TTL_MS: int = 600000  # 10 minutes
    CIRCUIT_SWEEP_INTERVAL_SECONDS: float = 300.0
    CIRCUIT_STORE_BACKEND: str = "memory"  # "memory" or "redis"
    CIRCUIT_REDIS_KEY_PREFIX: str = "circuit:"

    # === Redis ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50

    # === Auth Gate ===
    REQUIRE_AUTH: bool = True
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 300
    ADMIN_ROLES: list[str] = ["admin"]

    # === Supabase ===
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_USER_ROLES_TABLE: str = "user_roles"
    SUPABASE_USAGE_LOG_TABLE: str = "api_usage_logs"

    # === LLM Provider (OpenAI-compatible) ===
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4.1-2025-04-14"
    OPENAI_TIMEOUT: float = 60.0  # seconds
    OPENAI_MAX_TOKENS: int = 2000
    OPENAI_TEMPERATURE: float = 0.7
    LLM_CIRCUIT_NAME: str = "openai-chat"

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True


# Global settings instance
settings = Settings()
