import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_bool(name: str, default: str) -> bool:
    raw = os.environ.get(name, default).strip().lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for {name}: {raw!r}")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str
    echo_sql: bool = False
    log_level: str = "INFO"
    enforce_place_availability: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])


def load_settings() -> Settings:
    # Fail fast if the database URL is missing
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL is not set. Please check your .env file.")

    return Settings(
        database_url=database_url,
        echo_sql=_env_bool("DB_ECHO", "false"),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        enforce_place_availability=_env_bool("ENFORCE_PLACE_AVAILABILITY", "true"),
        cors_origins=_env_list("CORS_ORIGINS", "*"),
    )
