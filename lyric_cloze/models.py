from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AppState(str, Enum):
    IDLE = "IDLE"
    GENERATING = "GENERATING"
    READY = "READY"
    ERROR = "ERROR"


@dataclass
class SongData:
    title: str = ""
    artist: str = ""
    original_lyrics: str = ""
    cover_image: str | None = None


@dataclass(frozen=True)
class ClozeResult:
    lines: tuple[str, ...]
    answer_key: tuple[str, ...]
    warnings: tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict:
        return {
            "lines": list(self.lines),
            "answerKey": list(self.answer_key),
            "warnings": list(self.warnings),
        }
