# helper/config.py
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()

PROMPT_MODES = ("stateless", "history")
DEFAULT_DATABASE_URL = "sqlite://db.sqlite3"


def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_origins(key: str, default: str) -> Tuple[str, ...]:
    raw = os.getenv(key, default)
    return tuple(o.strip() for o in raw.split(",") if o.strip())


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    database_url: str = DEFAULT_DATABASE_URL
    jwt_expires_days: int = 7
    llm_provider: str = "gemini"
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    prompt_mode: str = "stateless"
    history_limit: int = 10
    generation_timeout: float = 60.0
    compensate_failed_exchange: bool = False
    frontend_origins: Tuple[str, ...] = field(default=("http://localhost:5173",))
    log_to_file: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        prompt_mode = os.getenv("PROMPT_MODE", "stateless").strip().lower()
        if prompt_mode not in PROMPT_MODES:
            raise RuntimeError(f"PROMPT_MODE must be one of {PROMPT_MODES}, got {prompt_mode!r}")
        jwt_secret = os.getenv("JWT_SECRET", "")
        if not jwt_secret.strip():
            raise RuntimeError("JWT_SECRET is not set")
        return cls(
            jwt_secret=jwt_secret,
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            jwt_expires_days=int(os.getenv("JWT_EXPIRES_DAYS", "7")),
            llm_provider=os.getenv("LLM_PROVIDER", "gemini").strip().lower(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", ""),
            gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
            prompt_mode=prompt_mode,
            history_limit=int(os.getenv("HISTORY_LIMIT", "10")),
            generation_timeout=float(os.getenv("GENERATION_TIMEOUT_SECONDS", "60")),
            compensate_failed_exchange=_env_bool("COMPENSATE_FAILED_EXCHANGE"),
            frontend_origins=_env_origins("FRONTEND_ORIGINS", "http://localhost:5173"),
            log_to_file=_env_bool("LOG_TO_FILE"),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings read once from the environment (.env included)."""
    return Settings.from_env()
