from __future__ import annotations


class KnowledgeInboxError(Exception):
    """Base class for all errors raised by the knowledge inbox."""


class ConfigurationError(KnowledgeInboxError):
    """Invalid chunking or service parameters."""


class EmbeddingError(KnowledgeInboxError):
    """Malformed input to the vectorizer."""


class IngestionError(KnowledgeInboxError):
    """Content could not be turned into chunks.

    The item row has already been written when this is raised; `item_id`
    points at it so the caller can retry or delete it.
    """

    def __init__(self, message: str, item_id: str | None = None) -> None:
        super().__init__(message)
        self.item_id = item_id


class ExternalServiceError(KnowledgeInboxError):
    """The external answer generator failed or returned garbage."""


class RetrievalTimeout(ExternalServiceError):
    """The external answer generator did not respond in time."""


class StoreError(KnowledgeInboxError):
    """The storage engine failed."""


class FetchError(KnowledgeInboxError):
    """A URL could not be fetched or converted to text."""


__all__ = [
    "ConfigurationError",
    "EmbeddingError",
    "ExternalServiceError",
    "FetchError",
    "IngestionError",
    "KnowledgeInboxError",
    "RetrievalTimeout",
    "StoreError",
]
