import os

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    styles_file: str | None = None  # YAML style overrides; embedded defaults when unset
    strict_conversion: bool = False  # raise on unsupported markdown instead of passing it through

    log_level: str = "INFO"
    log_file: str | None = None  # optional JSONL sink

    model_config = SettingsConfigDict(
        env_prefix="RICHMAIL_",
        env_file=[os.getenv("ENV_FILE", ""), ".env"],
        extra="ignore",
    )
