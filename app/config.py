from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.aopenai import DEFAULT_MODEL, TRANSCRIPTION_MODEL


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KOOKBOEK_")

    env: Env = Env.local
    db_url: str = "sqlite+aiosqlite:///kookboek.db"
    core_model: str = DEFAULT_MODEL
    transcription_model: str = TRANSCRIPTION_MODEL
    max_audio_bytes: int = 10 * 1024 * 1024
    min_grocery_audio_bytes: int = 20 * 1024
    default_page_size: int = 24
    http_timeout: float = 20
    log_level: str = "INFO"
