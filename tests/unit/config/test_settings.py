from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from config.settings import (
    DEFAULT_BEDROCK_MODEL_ID,
    DEFAULT_MAX_TOKENS,
    DEFAULT_OPENAI_MODEL,
    ExtractionSettings,
    Neo4jSettings,
    PubGraphSettings,
)


@pytest.fixture
def base_env(monkeypatch: pytest.MonkeyPatch):
    """Populate the minimum environment needed for PubGraphSettings."""

    monkeypatch.setenv("PUBGRAPH_DOTENV_PATH", "/nonexistent/.env")
    for key in ("PUBGRAPH_PROVIDER", "BEDROCK_MODEL_ID", "OPENAI_MODEL", "NEO4J_USER", "NEO4J_DATABASE"):
        monkeypatch.delenv(key, raising=False)
    values = {
        "NEO4J_URI": "bolt://localhost:7687",
        "NEO4J_USERNAME": "neo4j",
        "NEO4J_PASSWORD": "secret",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    yield values


def test_extraction_defaults_target_bedrock():
    settings = ExtractionSettings.load({})
    assert settings.provider == "bedrock"
    assert settings.model_id == DEFAULT_BEDROCK_MODEL_ID
    assert settings.region == "us-east-1"
    assert settings.max_tokens == DEFAULT_MAX_TOKENS
    assert settings.temperature == pytest.approx(0.1)
    assert settings.api_key is None


def test_extraction_openai_provider_uses_openai_defaults():
    settings = ExtractionSettings.load(
        {"PUBGRAPH_PROVIDER": "OpenAI", "OPENAI_API_KEY": "sk-test", "OPENAI_BASE_URL": "https://gateway.example/v1"}
    )
    assert settings.provider == "openai"
    assert settings.model_id == DEFAULT_OPENAI_MODEL
    assert settings.api_key is not None
    assert settings.api_key.get_secret_value() == "sk-test"
    assert settings.api_base_url == "https://gateway.example/v1"


def test_extraction_model_override_is_logged():
    with capture_logs() as logs:
        settings = ExtractionSettings.load({"BEDROCK_MODEL_ID": "meta.llama3-70b-instruct-v1:0"})
    assert settings.model_id == "meta.llama3-70b-instruct-v1:0"
    assert any(entry["event"] == "extraction.settings.model_override" for entry in logs)


def test_explicit_arguments_take_precedence_over_env():
    settings = ExtractionSettings.load(
        {"PUBGRAPH_PROVIDER": "openai", "OPENAI_MODEL": "gpt-4o"},
        provider="bedrock",
        model_id="anthropic.claude-3-haiku-20240307-v1:0",
    )
    assert settings.provider == "bedrock"
    assert settings.model_id == "anthropic.claude-3-haiku-20240307-v1:0"


def test_extraction_rejects_unknown_provider():
    with capture_logs() as logs, pytest.raises(ValueError, match="Unsupported provider"):
        ExtractionSettings.load({"PUBGRAPH_PROVIDER": "vertex"})
    assert logs[0]["event"] == "extraction.settings.invalid_provider"


@pytest.mark.parametrize(
    ("env", "match"),
    [
        ({"PUBGRAPH_MAX_TOKENS": "many"}, "PUBGRAPH_MAX_TOKENS"),
        ({"PUBGRAPH_MAX_TOKENS": "0"}, "Invalid extraction configuration"),
        ({"PUBGRAPH_TEMPERATURE": "warm"}, "PUBGRAPH_TEMPERATURE"),
        ({"PUBGRAPH_TEMPERATURE": "1.5"}, "Invalid extraction configuration"),
        ({"OPENAI_BASE_URL": "ftp://gateway"}, "Invalid extraction configuration"),
    ],
)
def test_extraction_rejects_invalid_values(env, match):
    with pytest.raises(ValueError, match=match):
        ExtractionSettings.load(env)


def test_with_model_returns_copy():
    settings = ExtractionSettings.load({})
    updated = settings.with_model("anthropic.claude-3-haiku-20240307-v1:0")
    assert updated.model_id == "anthropic.claude-3-haiku-20240307-v1:0"
    assert settings.model_id == DEFAULT_BEDROCK_MODEL_ID


def test_neo4j_settings_validate_scheme():
    with pytest.raises(ValueError):
        Neo4jSettings(uri="http://localhost:7474", username="neo4j", password="secret")
    settings = Neo4jSettings(uri="neo4j+s://db.example:7687", username="neo4j", password="secret")
    assert settings.auth() == ("neo4j", "secret")


def test_load_returns_cached_instance(base_env):
    first = PubGraphSettings.load()
    second = PubGraphSettings.load()
    assert first is second

    PubGraphSettings.clear_cache()
    third = PubGraphSettings.load()
    assert third is not first


def test_load_refresh_updates_values(monkeypatch: pytest.MonkeyPatch, base_env):
    initial = PubGraphSettings.load()
    assert initial.neo4j is not None
    assert initial.neo4j.uri == "bolt://localhost:7687"

    monkeypatch.setenv("NEO4J_URI", "bolt://override:7687")
    refreshed = PubGraphSettings.load(refresh=True)
    assert refreshed.neo4j.uri == "bolt://override:7687"
    assert PubGraphSettings.load() is refreshed


def test_overrides_bypass_cache(base_env):
    cached = PubGraphSettings.load()
    overridden = PubGraphSettings.load(provider="openai")
    assert overridden is not cached
    assert overridden.extraction.provider == "openai"
    assert PubGraphSettings.load() is cached


def test_neo4j_user_alias_preferred():
    settings = PubGraphSettings.load(
        {
            "NEO4J_URI": "bolt://localhost:7687",
            "NEO4J_USER": "reader",
            "NEO4J_USERNAME": "neo4j",
            "NEO4J_PASSWORD": "secret",
            "NEO4J_DATABASE": "pubs",
        }
    )
    assert settings.neo4j is not None
    assert settings.neo4j.username == "reader"
    assert settings.neo4j.database == "pubs"


def test_missing_neo4j_password_raises():
    with pytest.raises(ValueError, match="NEO4J_PASSWORD"):
        PubGraphSettings.load({"NEO4J_URI": "bolt://localhost:7687", "NEO4J_USERNAME": "neo4j"})


def test_neo4j_optional_when_not_required():
    settings = PubGraphSettings.load({}, require_neo4j=False)
    assert settings.neo4j is None
    assert settings.extraction.provider == "bedrock"
