from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from lyric_cloze.models import ClozeResult, SongData
from lyric_cloze.services.llm import normalize_lines


class GenerateRequest(BaseModel):
    lyrics: str = Field(default="")


class SongPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(default="")
    artist: str = Field(default="")
    original_lyrics: str = Field(default="", alias="originalLyrics")
    cover_image: str | None = Field(default=None, alias="coverImage")

    def to_song(self) -> SongData:
        return SongData(
            title=self.title,
            artist=self.artist,
            original_lyrics=self.original_lyrics,
            cover_image=self.cover_image or None,
        )


class ClozePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    lines: list[str]
    answer_key: list[str] = Field(default_factory=list, alias="answerKey")

    def to_result(self) -> ClozeResult:
        answers = [word.strip() for word in self.answer_key if word.strip()]
        return ClozeResult(lines=tuple(normalize_lines(self.lines)), answer_key=tuple(answers))


class WorksheetRequest(BaseModel):
    song: SongPayload = Field(default_factory=SongPayload)
    result: ClozePayload
    include_answer_key: bool = Field(default=False, alias="includeAnswerKey")

    model_config = ConfigDict(populate_by_name=True)
