import os

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    strava_client_id: str = Field(default="", validation_alias="STRAVA_CLIENT_ID")
    strava_client_secret: str = Field(default="", validation_alias="STRAVA_CLIENT_SECRET")
    strava_refresh_token: str = Field(default="", validation_alias="STRAVA_REFRESH_TOKEN")
    strava_access_token: str = Field(
        default="",
        validation_alias="STRAVA_ACCESS_TOKEN",
        description="Optional initial access token; refreshed on expiry",
    )
    llm_provider: str = Field(default="anthropic", validation_alias="LLM_PROVIDER")
    llm_model: str = Field(default="claude-3-5-sonnet-latest", validation_alias="LLM_MODEL")
    llm_max_tokens: int = Field(default=4096, validation_alias="LLM_MAX_TOKENS")
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    anthropic_api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")
    tool_server_url: str = Field(
        default="http://127.0.0.1:8765",
        validation_alias="TOOL_SERVER_URL",
        description="Tool server base URL used by the insight client",
    )
    tool_server_timeout: float = Field(
        default=300.0,
        validation_alias="TOOL_SERVER_TIMEOUT",
        description="Side channel request timeout in seconds",
    )
    cache_ttl_seconds: float = Field(default=86400.0, validation_alias="CACHE_TTL_SECONDS")
    cache_max_entries: int = Field(default=50, validation_alias="CACHE_MAX_ENTRIES")
    max_tool_iterations: int = Field(
        default=10,
        validation_alias="MAX_TOOL_ITERATIONS",
        description="Maximum model turns per question before giving up",
    )
    reconnect_max_attempts: int = Field(default=3, validation_alias="RECONNECT_MAX_ATTEMPTS")
    reconnect_base_delay: float = Field(default=1.0, validation_alias="RECONNECT_BASE_DELAY")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    api_port: int = Field(default=3001, validation_alias="API_PORT")
    tool_server_port: int = Field(default=8765, validation_alias="TOOL_SERVER_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, value: str) -> str:
        """Normalize the provider name, falling back to anthropic."""
        lower_value = value.lower()
        if lower_value not in {"anthropic", "openai"}:
            logger.warning(f"Unsupported LLM_PROVIDER '{value}'. Defaulting to anthropic.")
            return "anthropic"
        return lower_value

    @field_validator("strava_client_id", "strava_client_secret", "strava_refresh_token")
    @classmethod
    def validate_strava_credentials(cls, value: str) -> str:
        """Warn when Strava credentials are missing.

        Empty values are allowed so the tool server can start; Strava calls
        fail at request time with an upstream error.
        """
        if not value:
            logger.warning(
                "STRAVA_CLIENT_ID, STRAVA_CLIENT_SECRET and/or STRAVA_REFRESH_TOKEN are not set. "
                "Activity tools will fail until they are configured in .env or the environment."
            )
        return value

    @field_validator("cache_max_entries", "max_tool_iterations", "reconnect_max_attempts")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Clamp counters to at least one."""
        if value < 1:
            logger.warning(f"Counter setting must be >= 1, got {value}. Using 1.")
            return 1
        return value

    def export_llm_keys(self) -> None:
        """Expose configured provider keys to the environment for pydantic-ai."""
        if self.openai_api_key and not os.getenv("OPENAI_API_KEY"):
            os.environ["OPENAI_API_KEY"] = self.openai_api_key
        if self.anthropic_api_key and not os.getenv("ANTHROPIC_API_KEY"):
            os.environ["ANTHROPIC_API_KEY"] = self.anthropic_api_key


settings = Settings()
