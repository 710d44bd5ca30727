from pathlib import Path

import pytest

from knowledge_inbox.config import AppConfig, load_config


class TestLoadConfig:
    def test_defaults_when_file_missing(self, tmp_path: Path) -> None:
        cfg = load_config(tmp_path / "missing.yaml")

        assert cfg == AppConfig()
        assert cfg.chunk_size == 500
        assert cfg.chunk_overlap == 100
        assert cfg.embedding_dimensions == 384
        assert cfg.top_k == 5

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            "database_url: sqlite:///notes.db\nchunk_size: 300\nchunk_overlap: 50\njson_logs: false\n",
            encoding="utf-8",
        )

        cfg = load_config(path)

        assert cfg.database_url == "sqlite:///notes.db"
        assert cfg.chunk_size == 300
        assert cfg.chunk_overlap == 50
        assert cfg.json_logs is False

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path) == AppConfig()

    def test_invalid_values_exit(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("top_k: 0\n", encoding="utf-8")

        with pytest.raises(SystemExit, match="Invalid configuration"):
            load_config(path)


class TestOpenAIKey:
    def test_read_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert AppConfig().openai_api_key == "sk-test"

    def test_blank_key_is_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "")
        assert AppConfig().openai_api_key is None
