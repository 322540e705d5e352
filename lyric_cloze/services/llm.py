from __future__ import annotations

import json
import logging
import os
import re

import httpx

from lyric_cloze.config import AnswerKeyLimits
from lyric_cloze.logging_utils import log_event
from lyric_cloze.models import ClozeResult

logger = logging.getLogger(__name__)

BLANK_MARKER = "__________"

CLOZE_INSTRUCTION = (
    "You are an expert ESL (English as a Second Language) teacher creating a listening exercise. "
    "Select exactly 10 to 15 words to remove from the song lyrics to create a fill-in-the-blank (cloze) game. "
    "Target audience: students with a vocabulary of about 3000 words (CEFR A2/B1). "
    "Choose words that are clearly audible when sung: verbs, adjectives, common nouns. "
    "Avoid proper nouns (names, places) unless extremely common, and avoid slang or obscure words. "
    "Replace each selected word with exactly 10 underscores: " + BLANK_MARKER + ". "
    "Return the lyrics as an array of strings, one per visual line, and remove empty lines or stanza gaps. "
    "No element of lines may contain a newline character. "
    "Return strict JSON with fields: lines (array of strings), answerKey (removed words in order of appearance)."
)


class ClozeGenerationError(RuntimeError):
    pass


class ClozeService:
    def __init__(self, *, model_override: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.provider = os.getenv("LYRIC_CLOZE_LLM_PROVIDER", "openai").strip().lower()
        self.base_url = os.getenv("LYRIC_CLOZE_LLM_BASE_URL")
        self.model = os.getenv("LYRIC_CLOZE_LLM_MODEL")
        self.timeout = float(os.getenv("LYRIC_CLOZE_LLM_TIMEOUT", "60"))
        self.transport = transport

        if self.provider == "deepseek":
            self.api_key = os.getenv("DEEPSEEK_API_KEY")
            self.base_url = self.base_url or "https://api.deepseek.com/v1"
            self.model = self.model or "deepseek-chat"
        elif self.provider == "gemini":
            # Gemini's OpenAI-compatible surface accepts the same chat payload.
            self.api_key = os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")
            self.base_url = self.base_url or "https://generativelanguage.googleapis.com/v1beta/openai"
            self.model = self.model or "gemini-2.5-flash"
        else:
            self.api_key = os.getenv("OPENAI_API_KEY")
            self.base_url = self.base_url or "https://api.openai.com/v1"
            self.model = self.model or "gpt-4o-mini"

        if model_override:
            self.model = str(model_override).strip()

    def available(self) -> bool:
        return bool(self.api_key)

    def generate(self, lyrics: str) -> ClozeResult:
        """Ask the model for a cloze version of ``lyrics``.

        One request per call. Any transport failure or unusable payload raises
        ``ClozeGenerationError``; callers decide what the user sees.
        """
        text = str(lyrics or "").strip()
        if not text:
            raise ClozeGenerationError("lyrics are empty")

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": CLOZE_INSTRUCTION},
                {"role": "user", "content": f'Lyrics to process:\n"{text}"\nJSON only.'},
            ],
            "response_format": {"type": "json_object"},
            "temperature": 0.3,
        }
        log_event(logger, "cloze_generation_started", provider=self.provider, model=self.model, chars=len(text))
        try:
            data = self._chat_completion(payload)
        except httpx.HTTPStatusError as exc:
            raise ClozeGenerationError(
                f"generation endpoint returned {exc.response.status_code}: {_error_message(exc.response)}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ClozeGenerationError(f"generation endpoint unreachable: {exc}") from exc
        except ValueError as exc:
            raise ClozeGenerationError("generation endpoint returned a non-JSON body") from exc

        content = _extract_content(data)
        if not content:
            raise ClozeGenerationError("no response from model")
        result = parse_cloze_payload(content)
        log_event(
            logger,
            "cloze_generation_completed",
            lines=len(result.lines),
            answers=len(result.answer_key),
            warnings=len(result.warnings),
        )
        return result

    def _chat_completion(self, payload: dict) -> dict:
        if not self.api_key:
            raise ClozeGenerationError("API key not configured")

        url = self.base_url.rstrip("/") + "/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            resp = client.post(url, headers=headers, json=payload)
            resp.raise_for_status()
            return resp.json()


def parse_cloze_payload(content: str) -> ClozeResult:
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ClozeGenerationError("model returned malformed JSON") from exc
    if not isinstance(parsed, dict):
        raise ClozeGenerationError("model returned a non-object payload")

    raw_lines = parsed.get("lines")
    raw_answers = parsed.get("answerKey")
    if not isinstance(raw_lines, list) or not isinstance(raw_answers, list):
        raise ClozeGenerationError("model payload is missing lines or answerKey")

    lines = normalize_lines(raw_lines)
    if not lines:
        raise ClozeGenerationError("model returned no lyric lines")
    answer_key = [str(item).strip() for item in raw_answers if str(item).strip()]
    warnings = validate_answer_key(lines, answer_key)
    for warning in warnings:
        log_event(logger, "answer_key_warning", logging.WARNING, detail=warning)
    return ClozeResult(lines=tuple(lines), answer_key=tuple(answer_key), warnings=tuple(warnings))


def normalize_lines(values: list) -> list[str]:
    cleaned: list[str] = []
    for value in values:
        line = re.sub(r"[\r\n]+", " ", str(value)).strip()
        if line:
            cleaned.append(line)
    return cleaned


def validate_answer_key(lines: list[str], answer_key: list[str], limits: AnswerKeyLimits = AnswerKeyLimits()) -> list[str]:
    issues: list[str] = []
    count = len(answer_key)
    if count < limits.minimum or count > limits.maximum:
        issues.append(f"answer key has {count} words, expected {limits.minimum}-{limits.maximum}")
    blanks = sum(count_blanks(line) for line in lines)
    if blanks != count:
        issues.append(f"lyrics contain {blanks} blanks but answer key has {count} words")
    return issues


def count_blanks(line: str) -> int:
    # Runs longer than the marker still count once.
    return len(re.findall(r"_{10,}", line))


def _extract_content(payload: object) -> str:
    # Any shape other than {"choices": [{"message": {...}}]} counts as no content.
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content") or ""
    if isinstance(content, list):
        texts: list[str] = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                texts.append(str(item.get("text", "")))
        return "\n".join(texts).strip()
    return str(content).strip()


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        if body.get("message"):
            return str(body["message"])
    return response.text[:200]
