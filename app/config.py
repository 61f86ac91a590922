from enum import Enum

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    db_url: str = "sqlite+aiosqlite:///portionperfect.db"
    core_model: str = "gpt-4o-mini"
    geocoder_url: str = "https://photon.komoot.io"
    log_level: str = "INFO"
