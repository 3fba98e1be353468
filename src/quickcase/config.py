# application settings loaded from environment variables and .env
from typing import Any, Dict, List, Optional
import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# models offered in the settings panel
GEN_MODEL_CHOICES: List[str] = ["gemini-3-pro-preview", "gemini-2.5-pro"]
SEARCH_MODEL_CHOICES: List[str] = ["gemini-2.5-flash", "gemini-2.5-pro"]


class Settings(BaseSettings):
    """Settings for the case generation service."""

    model_config = SettingsConfigDict(
        env_prefix="QUICKCASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Gemini API
    # ========================================
    gemini_api_key: str = Field(default="", description="Google Gemini API key")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini REST endpoint root",
    )
    gen_model: str = Field(
        default="gemini-3-pro-preview",
        description="Model used for objectives, framework, writing and review",
    )
    search_model: str = Field(
        default="gemini-2.5-flash",
        description="Model used for grounded research",
    )
    request_timeout: float = Field(default=300.0, description="Seconds per API request")

    # ========================================
    # Retry & refinement loops
    # ========================================
    retry_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=2.0, ge=0.0)
    firewall_max_attempts: int = Field(default=4, ge=1)
    visual_max_attempts: int = Field(default=3, ge=1)

    # ========================================
    # Prompt size limits (characters)
    # ========================================
    context_char_limit: int = Field(default=200_000)
    document_char_limit: int = Field(default=100_000)
    # larger pdfs are sent as extracted text instead of inline data
    inline_pdf_max_bytes: int = Field(default=20 * 1024 * 1024)

    # ========================================
    # Web app
    # ========================================
    access_code: Optional[str] = Field(
        default=None,
        description="When set, requests must send it in the X-Access-Code header",
    )
    output_dir: str = Field(default="outputs")

    @field_validator("gen_model")
    @classmethod
    def _check_gen_model(cls, value: str) -> str:
        if value not in GEN_MODEL_CHOICES:
            raise ValueError(f"gen_model must be one of {GEN_MODEL_CHOICES}")
        return value

    @field_validator("search_model")
    @classmethod
    def _check_search_model(cls, value: str) -> str:
        if value not in SEARCH_MODEL_CHOICES:
            raise ValueError(f"search_model must be one of {SEARCH_MODEL_CHOICES}")
        return value

    @property
    def has_api_key(self) -> bool:
        return bool(self.gemini_api_key.strip())


# global instance for singleton pattern
settings = None


# get or create the global settings instance
def get_settings() -> Settings:
    """Get or create the global settings instance"""
    global settings
    if settings is None:
        settings = Settings()
    return settings


# replace the global settings with runtime overrides (api key, model choice)
def update_settings(**overrides: Any) -> Settings:
    """Apply overrides on top of the current settings"""
    global settings
    values: Dict[str, Any] = get_settings().model_dump()
    values.update({key: value for key, value in overrides.items() if value is not None})
    settings = Settings(**values)
    logger.info(f"Settings updated: gen_model={settings.gen_model}, search_model={settings.search_model}")
    return settings


def reset_settings():
    """Forget overrides so the environment is read again"""
    global settings
    settings = None
