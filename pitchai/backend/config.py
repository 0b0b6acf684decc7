import os
from dataclasses import dataclass
from functools import lru_cache


DEFAULT_LLM_BASE_URL = "https://api.openai.com/v1"
DEFAULT_LLM_MODEL = "gpt-4o-mini"
DEFAULT_LLM_TIMEOUT_SECONDS = 120.0
DEFAULT_FRONTEND_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip() or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}.") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from exc


@dataclass(frozen=True)
class Settings:
    llm_api_key: str
    llm_base_url: str
    llm_model: str
    llm_timeout_seconds: float
    max_retries: int
    retry_backoff_seconds: float
    storage_bucket: str
    storage_dir: str
    stt_language: str
    database_url: str
    frontend_origins: tuple

    @classmethod
    def from_env(cls) -> "Settings":
        origins = _env_str("FRONTEND_ORIGINS", DEFAULT_FRONTEND_ORIGINS)
        return cls(
            llm_api_key=_env_str("PITCHAI_LLM_API_KEY"),
            llm_base_url=_env_str("PITCHAI_LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
            llm_model=_env_str("PITCHAI_LLM_MODEL", DEFAULT_LLM_MODEL),
            llm_timeout_seconds=_env_float("PITCHAI_LLM_TIMEOUT_SECONDS", DEFAULT_LLM_TIMEOUT_SECONDS),
            max_retries=max(0, _env_int("PITCHAI_MAX_RETRIES", 0)),
            retry_backoff_seconds=max(0.0, _env_float("PITCHAI_RETRY_BACKOFF_SECONDS", 1.0)),
            storage_bucket=_env_str("PITCHAI_STORAGE_BUCKET"),
            storage_dir=_env_str("PITCHAI_STORAGE_DIR", "data/uploads"),
            stt_language=_env_str("PITCHAI_STT_LANGUAGE", "en-US"),
            database_url=_env_str("DATABASE_URL"),
            frontend_origins=tuple(
                origin.strip() for origin in origins.split(",") if origin.strip()
            ),
        )


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    return Settings.from_env()
