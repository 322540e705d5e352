from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = PROJECT_ROOT / "templates"

SESSION_COOKIE = "lyric_cloze_session"
GENERATION_FAILED_MESSAGE = "Failed to generate the game. Please try again."
EMPTY_LYRICS_MESSAGE = "Please enter lyrics."


@dataclass(frozen=True)
class AnswerKeyLimits:
    minimum: int = 10
    maximum: int = 15


def runtime_env() -> str:
    return os.getenv("LYRIC_CLOZE_ENV", "production").strip().lower() or "production"


def is_development() -> bool:
    return runtime_env() in {"development", "dev", "local", "test"}
