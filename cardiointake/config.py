# cardiointake/config.py
import logging
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_RULES_PATH = Path(__file__).resolve().parent / "data" / "symptom_rules.json"


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///./patients.sqlite", validation_alias="DATABASE_URL")
    rules_path: Path = Field(DEFAULT_RULES_PATH, validation_alias="RULES_PATH")

    openai_api_key: str | None = Field(None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str | None = Field(None, validation_alias="OPENAI_BASE_URL")
    llm_model: str = Field("gpt-4o-mini", validation_alias="LLM_MODEL")
    narration_timeout_seconds: float = Field(8.0, validation_alias="NARRATION_TIMEOUT_SECONDS")

    sink_timeout_seconds: float = Field(15.0, validation_alias="SINK_TIMEOUT_SECONDS")
    telegram_bot_token: str | None = Field(None, validation_alias="TELEGRAM_BOT_TOKEN")
    telegram_chat_id: str | None = Field(None, validation_alias="TELEGRAM_CHAT_ID")
    twilio_account_sid: str | None = Field(None, validation_alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str | None = Field(None, validation_alias="TWILIO_AUTH_TOKEN")
    twilio_whatsapp_from: str | None = Field(None, validation_alias="TWILIO_WHATSAPP_FROM")
    doctor_phone_number: str | None = Field(None, validation_alias="DOCTOR_PHONE_NUMBER")

    session_max_age_minutes: int = Field(120, validation_alias="SESSION_MAX_AGE_MINUTES")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], validation_alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
