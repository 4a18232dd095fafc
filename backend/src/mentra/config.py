"""Configuration management."""

from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GREETING = (
    "Hi, I’m Mentra. I help you understand your coursework using only your class materials."
)


class Settings(BaseSettings):
    """Application settings."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    cors_origin: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Allowed CORS origins, parsed from the comma separated setting."""
        return [origin.strip() for origin in self.cors_origin.split(",") if origin.strip()]

    # Model gateway
    model_backend: Literal["sdk", "http", "mock"] = "sdk"
    claude_model: str = "haiku"
    claude_agent_url: str = "http://claude-agent:8001"
    model_timeout_seconds: float = Field(60.0, gt=0)

    # Conversation
    greeting: str = DEFAULT_GREETING
    recent_turns: int = Field(12, ge=1)  # Messages sent to the model per request
    serialize_thread_requests: bool = False  # One in-flight model call per thread

    # Uploads
    max_upload_bytes: int = Field(15 * 1024 * 1024, gt=0)
    max_extracted_chars: int = Field(15_000, gt=0)

    # Compaction
    compaction_enabled: bool = True
    compaction_threshold: int = Field(10, ge=1)  # Unsummarized messages outside the window

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )


# Global settings instance
settings = Settings()
