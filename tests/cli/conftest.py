"""Shared fixtures for CLI command tests."""

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Config with a gateway key and web search switched off."""
    monkeypatch.delenv("CHAT_RESEARCH_LLM_API_KEY", raising=False)
    monkeypatch.delenv("CHAT_RESEARCH_SEARCH_API", raising=False)
    path = tmp_path / "research.toml"
    path.write_text(
        '[llm]\napi_key = "test-key"\nbase_url = "https://gateway.test/v1"\n\n[deep_research]\nsearch_api = "none"\n'
    )
    return path


@pytest.fixture
def keyless_config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("CHAT_RESEARCH_LLM_API_KEY", raising=False)
    path = tmp_path / "keyless.toml"
    path.write_text('[deep_research]\nsearch_api = "none"\n')
    return path
