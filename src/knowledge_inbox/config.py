from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError


class AppConfig(BaseModel):
    database_url: str = Field(default="sqlite:///knowledge.db")
    chunk_size: int = Field(default=500, ge=1)
    chunk_overlap: int = Field(default=100, ge=0)
    embedding_dimensions: int = Field(default=384, ge=1)
    top_k: int = Field(default=5, ge=1)
    openai_model: str = Field(default="gpt-4o-mini")
    openai_timeout: float = Field(default=15.0, gt=0)
    openai_max_tokens: int = Field(default=400, ge=1)
    openai_temperature: float = Field(default=0.3, ge=0, le=2)
    fetch_timeout: float = Field(default=10.0, gt=0)
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3001, ge=1, le=65535)

    @property
    def openai_api_key(self) -> Optional[str]:
        return os.getenv("OPENAI_API_KEY") or None


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from a YAML file.

    If `path` is None, looks for `config.yaml` in the current working directory.
    Also loads environment variables from a `.env` file if present.
    """
    load_dotenv()

    if path is None:
        path = Path("config.yaml")

    if not path.exists():
        # Fall back to defaults if no config file is present.
        return AppConfig()

    with path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        return AppConfig(**raw)
    except ValidationError as e:
        raise SystemExit(f"Invalid configuration in {path}:\n{e}") from e


__all__ = ["AppConfig", "load_config"]
