from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Sequence

import openai
import structlog
from openai import OpenAI

from .config import AppConfig
from .errors import ExternalServiceError, RetrievalTimeout
from .types import ScoredChunk

_logger = structlog.get_logger()

SYSTEM_PROMPT = "Answer only using the provided context. Be concise and factual."
NO_RELEVANT_ANSWER = (
    "I couldn't find relevant information in your notes. Try adding more content."
)
LOCAL_NOTE = "(Note: Using local answer generation.)"

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_MIN_SIMILARITY = 0.05
_MAX_BULLETS = 3
_MIN_SENTENCE_CHARS = 15
_FALLBACK_SNIPPET_CHARS = 120


def build_context(ranked: Sequence[ScoredChunk]) -> str:
    """Label each chunk with its 1-based rank so a model can cite it."""
    return "\n\n".join(f"[{i}] {chunk.content}" for i, chunk in enumerate(ranked, start=1))


class AnswerComposer(ABC):
    """Produces answer text from a question and its ranked context."""

    name: str

    @abstractmethod
    def compose(self, question: str, context: str, ranked: Sequence[ScoredChunk]) -> str: ...


class LocalExtractiveComposer(AnswerComposer):
    name = "local"

    def compose(self, question: str, context: str, ranked: Sequence[ScoredChunk]) -> str:
        if not ranked or ranked[0].similarity < _MIN_SIMILARITY:
            return NO_RELEVANT_ANSWER

        lines = ["Based on your saved content:", ""]
        for chunk in ranked[:_MAX_BULLETS]:
            if chunk.similarity <= _MIN_SIMILARITY:
                continue
            sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(chunk.content)]
            sentences = [s for s in sentences if len(s) > _MIN_SENTENCE_CHARS]
            if sentences:
                lines.append(f"• {sentences[0]}.")
            else:
                lines.append(f"• {chunk.content[:_FALLBACK_SNIPPET_CHARS]}...")

        lines.extend(["", LOCAL_NOTE])
        return "\n".join(lines).strip()


class OpenAIComposer(AnswerComposer):
    name = "openai"

    def __init__(
        self,
        client: OpenAI,
        model: str = "gpt-4o-mini",
        max_tokens: int = 400,
        temperature: float = 0.3,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature

    def compose(self, question: str, context: str, ranked: Sequence[ScoredChunk]) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Context:\n{context}\n\nQuestion:\n{question}"},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except openai.APITimeoutError as e:
            raise RetrievalTimeout("Answer generation timed out") from e
        except openai.OpenAIError as e:
            raise ExternalServiceError(f"Answer generation failed: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ExternalServiceError("Malformed answer generation response") from e
        if not content or not content.strip():
            raise ExternalServiceError("Empty answer generation response")
        return content.strip()


def build_composer(cfg: AppConfig) -> AnswerComposer:
    api_key = cfg.openai_api_key
    if not api_key:
        _logger.info("answer_composer_selected", composer=LocalExtractiveComposer.name)
        return LocalExtractiveComposer()

    client = OpenAI(api_key=api_key, timeout=cfg.openai_timeout, max_retries=0)
    _logger.info(
        "answer_composer_selected",
        composer=OpenAIComposer.name,
        model=cfg.openai_model,
    )
    return OpenAIComposer(
        client,
        model=cfg.openai_model,
        max_tokens=cfg.openai_max_tokens,
        temperature=cfg.openai_temperature,
    )


__all__ = [
    "AnswerComposer",
    "LocalExtractiveComposer",
    "NO_RELEVANT_ANSWER",
    "OpenAIComposer",
    "build_composer",
    "build_context",
]
