from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "hireflow"
    app_env: str = "development"
    app_host: str = "127.0.0.1"
    app_port: int = 8787
    log_level: str = "INFO"

    database_url: str = "sqlite:///./data/hireflow.db"
    data_dir: Path = Path("./data")
    upload_dir: Path = Path("./data/uploads")
    max_upload_files: int = 20
    max_upload_bytes: int = 10 * 1024 * 1024

    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model_profile: str = "gpt-4o"
    openai_model_extractor: str = "gpt-4o-mini"
    openai_timeout_sec: int = 45
    llm_max_retries: int = 2
    llm_temperature: float = 0.3
    max_resume_chars: int = 3000

    profile_version_max_retries: int = 3
    profile_version_retry_delay_ms: int = 50

    batch_default_concurrency: int = 3
    api_base_url: str = "http://127.0.0.1:8787"
    api_timeout_sec: int = 60

    realtime_url: str = "ws://127.0.0.1:8787/ws"
    realtime_max_reconnect_attempts: int = 10
    realtime_base_delay_sec: float = 1.0
    realtime_max_delay_sec: float = 30.0
    realtime_jitter_sec: float = 1.0
    realtime_heartbeat_sec: float = 30.0

    cors_origins: str = "http://127.0.0.1:8787"

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, value: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if value not in allowed:
            raise ValueError(f"app_env must be one of {sorted(allowed)}")
        return value

    @field_validator("batch_default_concurrency")
    @classmethod
    def validate_concurrency(cls, value: int) -> int:
        if value < 1:
            raise ValueError("batch_default_concurrency must be >= 1")
        return value

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
