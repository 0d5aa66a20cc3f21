# filegate/core/config.py
from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_region: str = "us-east-1"
    aws_endpoint_url: str | None = None  # MinIO / LocalStack / other S3-compatible stores

    database_url: str = "sqlite:///./filegate.db"

    # user "Alice" -> bucket "user-alice"
    namespace_prefix: str = "user-"
    shared_namespace: str = "shares"

    credential_lifetime_days: int = 360
    credential_signing_key: SecretStr = SecretStr("change-me")

    # Base for object URLs handed to callers. Defaults to the S3 endpoint
    # (path-style); point it at "<gateway>/blob" to serve through /blob.
    blob_base_url: str | None = None

    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
