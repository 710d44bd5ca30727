from __future__ import annotations

import re
from typing import List

import httpx
import structlog
from bs4 import BeautifulSoup

from .errors import ConfigurationError, FetchError

_logger = structlog.get_logger()

_WHITESPACE_RE = re.compile(r"\s+")
_USER_AGENT = "Mozilla/5.0 (compatible; KnowledgeInbox/1.0)"
_STRIPPED_TAGS = "script, style, nav, header, footer, aside"


class Chunker:
    """Splits text into overlapping fixed-size character windows."""

    def __init__(self, chunk_size: int = 500, overlap: int = 100) -> None:
        if chunk_size <= 0 or overlap < 0:
            raise ConfigurationError("Chunk size must be positive and overlap non-negative")
        if overlap >= chunk_size:
            raise ConfigurationError("Overlap must be smaller than chunk size")
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> List[str]:
        if not text or not text.strip():
            _logger.warning("chunk_empty_text")
            return []

        step = self._chunk_size - self._overlap
        chunks: List[str] = []
        start = 0
        while start < len(text):
            window = text[start : start + self._chunk_size].strip()
            if window:
                chunks.append(window)
            start += step

        _logger.debug(
            "text_chunked",
            original_length=len(text),
            num_chunks=len(chunks),
            avg_chunk_size=sum(len(c) for c in chunks) / len(chunks) if chunks else 0,
        )
        return chunks


def extract_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.select(_STRIPPED_TAGS):
        tag.decompose()
    root = soup.body or soup
    return _WHITESPACE_RE.sub(" ", root.get_text(" ")).strip()


class ContentFetcher:
    """Downloads a web page and reduces it to plain text."""

    def __init__(self, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=5,
            headers={"User-Agent": _USER_AGENT},
        )

    def fetch_url(self, url: str) -> str:
        _logger.info("fetch_url", url=url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            _logger.error("fetch_url_failed", url=url, status=e.response.status_code)
            raise FetchError(f"HTTP {e.response.status_code}: {e.response.reason_phrase}") from e
        except httpx.TimeoutException as e:
            _logger.error("fetch_url_failed", url=url, error="timeout")
            raise FetchError("Request timeout") from e
        except httpx.ConnectError as e:
            _logger.error("fetch_url_failed", url=url, error=str(e))
            raise FetchError("URL not found or DNS resolution failed") from e
        except httpx.HTTPError as e:
            _logger.error("fetch_url_failed", url=url, error=str(e))
            raise FetchError(f"Failed to fetch: {e}") from e

        content_type = response.headers.get("content-type", "")
        if "text/html" not in content_type:
            raise FetchError(f"Unsupported content type: {content_type or 'unknown'}")

        text = extract_text(response.text)
        _logger.info("fetch_url_succeeded", url=url, text_length=len(text))
        return text

    def close(self) -> None:
        self._client.close()


__all__ = ["Chunker", "ContentFetcher", "extract_text"]
