"""
Centralized configuration for the helpdesk triage engine.

All settings are loaded from environment variables via .env file.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Brand
    brand_name: str = Field(default="TechDesk", env="BRAND_NAME")

    # OpenRouter (primary)
    openrouter_api_key: Optional[str] = Field(default=None, env="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="openai/gpt-4o-mini", env="OPENROUTER_MODEL")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1", env="OPENROUTER_BASE_URL")
    openrouter_referer: str = Field(default="https://techdesk.local", env="OPENROUTER_REFERER")

    # OpenAI (secondary)
    openai_api_key: Optional[str] = Field(default=None, env="OPENAI_API_KEY")
    openai_llm_model: str = Field(default="gpt-4o-mini", env="OPENAI_LLM_MODEL")

    # AWS / Bedrock (secondary)
    aws_region: str = Field(default="us-east-1", env="AWS_REGION")
    bedrock_llm_model_id: str = Field(
        default="us.anthropic.claude-sonnet-4-20250514-v1:0", env="BEDROCK_LLM_MODEL_ID"
    )

    # Provider chain
    ai_provider_order: str = Field(default="openrouter,openai,bedrock", env="AI_PROVIDER_ORDER")
    ai_timeout_seconds: float = Field(default=30.0, env="AI_TIMEOUT_SECONDS")
    max_tokens: int = Field(default=1000, env="MAX_TOKENS")
    temperature: float = Field(default=0.7, env="TEMPERATURE")

    # Triage
    session_ttl_seconds: int = Field(default=3600, env="SESSION_TTL_SECONDS")
    max_message_length: int = Field(default=2000, env="MAX_MESSAGE_LENGTH")
    bot_user_id: int = Field(default=0, env="BOT_USER_ID")
    chatbot_use_nlu: bool = Field(default=False, env="CHATBOT_USE_NLU")

    # Database
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # API
    api_host: str = Field(default="0.0.0.0", env="API_HOST")
    api_port: int = Field(default=8000, env="API_PORT")
    api_title: str = Field(default="TechDesk Triage API", env="API_TITLE")
    api_version: str = Field(default="1.0.0", env="API_VERSION")
    rate_limit_per_minute: int = Field(default=100, env="RATE_LIMIT_PER_MINUTE")
    cors_origins: str = Field(default="*", env="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def provider_order(self) -> List[str]:
        return [p.strip().lower() for p in self.ai_provider_order.split(",") if p.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
