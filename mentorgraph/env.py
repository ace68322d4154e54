import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import DEFAULT_SPACE_ID, REFRESH_INTERVAL_SECONDS


def load_env() -> None:
    """Load .env from the working directory if present."""
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True)
class Settings:
    store_url: str = "http://localhost:3000"
    space_id: str = DEFAULT_SPACE_ID
    log_level: str = "INFO"
    refresh_seconds: float = REFRESH_INTERVAL_SECONDS
    request_timeout: float = 15.0
    fetch_retries: int = 3
    wallet: Optional[str] = None
    skills: str = ""


def _number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{name} must be a {cast.__name__}, got {raw!r}")


def load_settings() -> Settings:
    """Read MENTORGRAPH_* variables from the environment."""
    return Settings(
        store_url=os.getenv("MENTORGRAPH_STORE_URL", Settings.store_url).rstrip("/"),
        space_id=os.getenv("MENTORGRAPH_SPACE_ID", DEFAULT_SPACE_ID),
        log_level=os.getenv("MENTORGRAPH_LOG_LEVEL", "INFO").upper(),
        refresh_seconds=_number("MENTORGRAPH_REFRESH_SECONDS", REFRESH_INTERVAL_SECONDS, float),
        request_timeout=_number("MENTORGRAPH_REQUEST_TIMEOUT", 15.0, float),
        fetch_retries=_number("MENTORGRAPH_FETCH_RETRIES", 3, int),
        wallet=os.getenv("MENTORGRAPH_WALLET") or None,
        skills=os.getenv("MENTORGRAPH_SKILLS", ""),
    )
