import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel


_ENV_PATH = os.path.join(os.path.dirname(__file__), "..", ".env")
load_dotenv(dotenv_path=_ENV_PATH, override=False)


def _get_env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _get_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    return float(v)


def _get_list(name: str) -> List[str]:
    v = os.getenv(name) or ""
    return [p.strip() for p in v.split(",") if p.strip()]


class Settings(BaseModel):
    LEDGER_BASE_URL: str
    LEDGER_TOKEN: str       # static bearer token; empty means "not signed in"
    LEDGER_TIMEOUT_S: float
    SENDER_PATTERNS: List[str]
    DEFAULT_CURRENCY: str
    FORWARD_THRESHOLD: float
    INGEST_QUEUE_SIZE: int
    DEDUP_WINDOW_S: float   # 0 disables the duplicate-body guard
    REDIS_URL: str

    @property
    def demo_mode(self) -> bool:
        return not bool(self.LEDGER_TOKEN)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        LEDGER_BASE_URL=_get_env("LEDGER_BASE_URL", "https://goals-backend-brown.vercel.app/api"),
        LEDGER_TOKEN=_get_env("LEDGER_TOKEN", ""),
        LEDGER_TIMEOUT_S=_get_float("LEDGER_TIMEOUT_S", 15.0),
        SENDER_PATTERNS=_get_list("SENDER_PATTERNS"),
        DEFAULT_CURRENCY=_get_env("DEFAULT_CURRENCY", "INR"),
        FORWARD_THRESHOLD=_get_float("FORWARD_THRESHOLD", 0.6),
        INGEST_QUEUE_SIZE=int(_get_env("INGEST_QUEUE_SIZE", "256")),
        DEDUP_WINDOW_S=_get_float("DEDUP_WINDOW_S", 0.0),
        REDIS_URL=_get_env("REDIS_URL", "redis://localhost:6379/0"),
    )


settings = get_settings()
