"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Literal
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "DataWeaver Chat Stream"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Default chat target (used when a request carries no config of its own)
    LLM_PROVIDER: Literal["openai", "anthropic", "google"] = "openai"
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = ""  # empty -> provider default from the registry
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_SYSTEM_PROMPT_MODE: Literal["inline", "top_level"] = "inline"
    LLM_DEFAULT_MAX_TOKENS: int = 4096

    # Transport
    LLM_CONNECT_TIMEOUT: float = 5.0  # seconds
    LLM_READ_TIMEOUT: float = 60.0  # seconds between streamed chunks

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # empty -> console only

    # Streaming / SSE
    SSE_PING_INTERVAL: int = 15  # seconds between keep-alive comments

    class Config:
        # Look for .env in project root first, then backend/.env
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True


# Singleton instance
settings = Settings()


def default_chat_config():
    """
    Build the server-side default ChatConfig from settings.

    Returns:
        ChatConfig for LLM_PROVIDER / LLM_MODEL with the configured key
    """
    from ..llm.types import ChatConfig, Provider, SystemPromptMode

    return ChatConfig(
        provider=Provider(settings.LLM_PROVIDER),
        api_key=settings.LLM_API_KEY,
        base_url=settings.LLM_BASE_URL,
        model=settings.LLM_MODEL,
        max_tokens=settings.LLM_DEFAULT_MAX_TOKENS,
        system_prompt_mode=SystemPromptMode(settings.LLM_SYSTEM_PROMPT_MODE),
    )
