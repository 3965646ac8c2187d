"""Centralised configuration loaded from environment variables and dotenv."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Paths ──────────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DB_PATH: Path = Path(
    os.getenv("MENTIONLENS_DB_PATH", str(PROJECT_ROOT / "var" / "mentionlens.sqlite3"))
)

# ── Result window ──────────────────────────────────────────────────────────
WINDOW_LIMIT: int = int(os.getenv("MENTIONLENS_WINDOW_LIMIT", "500"))
AI_MAX_RESULTS: int = int(os.getenv("MENTIONLENS_AI_MAX_RESULTS", "50"))

# ── LLM ────────────────────────────────────────────────────────────────────
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openrouter")
LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")
LLM_MODEL: str = os.getenv("LLM_MODEL", "google/gemini-2.5-flash")
LLM_FALLBACK_MODEL: str = os.getenv("LLM_FALLBACK_MODEL", "openai/gpt-4o-mini")
LLM_BASE_URL: str = os.getenv("LLM_BASE_URL", "")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ── Email digest ───────────────────────────────────────────────────────────
SMTP_HOST: str = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
EMAIL_TO: list[str] = [
    addr.strip() for addr in os.getenv("EMAIL_TO", "").split(",") if addr.strip()
]


def email_enabled() -> bool:
    """True when every SMTP setting needed to send a digest is present."""
    return bool(SMTP_USERNAME and SMTP_PASSWORD and EMAIL_TO)
