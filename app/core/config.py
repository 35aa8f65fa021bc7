"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    environment: str = "development"
    port: int = 5001
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:5173"

    # MongoDB
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "streamify"

    # JWT Auth
    jwt_secret_key: str = "change-this-secret"
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7
    jwt_cookie_name: str = "jwt"
    cookie_domain: Optional[str] = None
    bcrypt_rounds: int = 12

    # Stream Chat
    stream_api_key: str = ""
    stream_api_secret: str = ""

    # Cloudinary (optional - files are inlined as data URLs without it)
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_folder: str = "faculty-messages"

    # OpenAI-compatible chat analysis
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o"

    # Rate limiting (None = environment default)
    disable_rate_limit: bool = False
    rate_limit_window_seconds: int = 15 * 60
    rate_limit_general: Optional[int] = None
    rate_limit_auth: Optional[int] = None
    rate_limit_link_code: Optional[int] = None

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def stream_configured(self) -> bool:
        return bool(self.stream_api_key and self.stream_api_secret)

    @property
    def cloudinary_configured(self) -> bool:
        return bool(
            self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret
        )

    @property
    def cors_origins(self) -> List[str]:
        if self.is_production:
            return [o for o in [self.frontend_url] if o]
        return ["http://localhost:5173", "http://localhost:3000", "http://localhost:5001"]

    @property
    def cookie_settings(self) -> dict:
        """Attributes shared by set_cookie and delete_cookie."""
        return {
            "httponly": True,
            "secure": self.is_production,
            "samesite": "none" if self.is_production else "lax",
            "domain": self.cookie_domain if self.is_production else None,
        }

    @property
    def rate_limits(self) -> dict:
        """Requests allowed per window for each limiter bucket."""
        prod = self.is_production
        return {
            "general": self.rate_limit_general or (100 if prod else 1000),
            "auth": self.rate_limit_auth or (5 if prod else 100),
            "link_code": self.rate_limit_link_code or (3 if prod else 50),
        }

    @property
    def rate_limit_enabled(self) -> bool:
        # Limits can only be switched off outside production
        return not (self.disable_rate_limit and not self.is_production)

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
