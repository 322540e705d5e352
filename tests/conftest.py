from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import lyric_cloze.app as app_module
from lyric_cloze.models import ClozeResult, SongData
from lyric_cloze.services.llm import ClozeGenerationError
from lyric_cloze.session import SessionStore

BLANK = "__________"
ANSWERS = ["heart", "rain", "dance", "light", "road", "dream", "sing", "cold", "fire", "home", "night", "river"]


class StubClozeService:
    def __init__(self, result: ClozeResult | None = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[str] = []

    def available(self) -> bool:
        return True

    def generate(self, lyrics: str) -> ClozeResult:
        self.calls.append(lyrics)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture()
def sample_result() -> ClozeResult:
    lines = tuple(f"My {BLANK} keeps calling out your name" for _ in ANSWERS)
    return ClozeResult(lines=lines, answer_key=tuple(ANSWERS))


@pytest.fixture()
def sample_song() -> SongData:
    return SongData(title="Yesterday", artist="The Beatles", original_lyrics="Yesterday\nall my troubles")


@pytest.fixture()
def stub_service(sample_result) -> StubClozeService:
    return StubClozeService(result=sample_result)


@pytest.fixture()
def failing_service() -> StubClozeService:
    return StubClozeService(error=ClozeGenerationError("upstream 500: quota exceeded"))


@pytest.fixture()
def client(stub_service, monkeypatch):
    monkeypatch.setattr(app_module, "cloze_service", stub_service)
    monkeypatch.setattr(app_module, "sessions", SessionStore())
    with TestClient(app_module.app) as c:
        yield c
