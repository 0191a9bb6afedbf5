from __future__ import annotations
import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass(frozen=True)
class Settings:
    database_url: str
    gemini_api_key: str | None
    llm_model: str
    llm_timeout_sec: float = 10.0
    ui_lang: str = "en"  # en/ja

def load_settings() -> Settings:
    load_dotenv()
    database_url = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./data/codeclimb.db")
    gemini_api_key = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or None
    llm_model = os.getenv("LLM_MODEL", "gemini-2.5-flash").strip()
    if not llm_model:
        raise RuntimeError("LLM_MODEL must not be empty")

    raw_timeout = os.getenv("LLM_TIMEOUT_SEC", "10").strip()
    try:
        llm_timeout_sec = float(raw_timeout)
    except ValueError:
        raise RuntimeError("LLM_TIMEOUT_SEC must be a number") from None
    if llm_timeout_sec <= 0:
        raise RuntimeError("LLM_TIMEOUT_SEC must be positive")

    ui_lang = os.getenv("UI_LANG", "en").strip().lower()
    if ui_lang not in {"en", "ja"}:
        raise RuntimeError("UI_LANG must be en or ja")

    return Settings(
        database_url=database_url,
        gemini_api_key=gemini_api_key,
        llm_model=llm_model,
        llm_timeout_sec=llm_timeout_sec,
        ui_lang=ui_lang,
    )
