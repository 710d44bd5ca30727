"""
Knowledge Inbox.

Save notes and web pages, then ask questions answered from what you saved.
Retrieval runs fully offline on a hashing embedder; an OpenAI model can phrase
the final answer when a key is configured.
"""

__all__ = [
    "api",
    "cli",
    "config",
    "errors",
    "index",
    "ingest",
    "log_config",
    "query",
    "service",
    "store",
    "types",
]
