"""Typed configuration surfaces for PubGraph tooling."""

from __future__ import annotations

import os
from typing import ClassVar, Literal, Mapping, Optional
from urllib.parse import urlparse

import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, field_validator

from cli.sanitizer import mask_uri

logger = structlog.get_logger(__name__)

DEFAULT_PROVIDER = "bedrock"
DEFAULT_BEDROCK_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"
DEFAULT_OPENAI_MODEL = "gpt-4.1-mini"
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_MAX_TOKENS = 4000
DEFAULT_TEMPERATURE = 0.1

_ENV_PROVIDER = "PUBGRAPH_PROVIDER"
_ENV_BEDROCK_MODEL_ID = "BEDROCK_MODEL_ID"
_ENV_OPENAI_MODEL = "OPENAI_MODEL"
_ENV_AWS_REGION = "AWS_REGION"
_ENV_OPENAI_API_KEY = "OPENAI_API_KEY"
_ENV_OPENAI_BASE_URL = "OPENAI_BASE_URL"
_ENV_MAX_TOKENS = "PUBGRAPH_MAX_TOKENS"
_ENV_TEMPERATURE = "PUBGRAPH_TEMPERATURE"

_VALID_PROVIDERS = frozenset({"bedrock", "openai"})
_VALID_BASE_SCHEMES = frozenset({"http", "https"})
_ALLOWED_NEO4J_SCHEMES = frozenset({"bolt", "bolt+s", "bolt+ssc", "neo4j", "neo4j+s", "neo4j+ssc"})

Provider = Literal["bedrock", "openai"]


class ExtractionSettings(BaseModel):
    """Resolved language-model settings used by the extraction client."""

    model_config = ConfigDict(frozen=True)

    provider: Provider = DEFAULT_PROVIDER
    model_id: str = Field(default=DEFAULT_BEDROCK_MODEL_ID, min_length=1)
    region: str = DEFAULT_AWS_REGION
    api_key: SecretStr | None = None
    api_base_url: str | None = None
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)

    @field_validator("api_base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return value
        parsed = urlparse(value)
        if parsed.scheme not in _VALID_BASE_SCHEMES or not parsed.netloc:
            raise ValueError("OPENAI_BASE_URL must be an absolute http(s) URL.")
        return value

    def with_model(self, model_id: str) -> ExtractionSettings:
        """Return a copy of the settings targeting ``model_id``."""

        return self.model_copy(update={"model_id": model_id})

    @classmethod
    def load(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        provider: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> ExtractionSettings:
        """Load extraction settings from environment values with validation."""

        source = env if env is not None else os.environ

        requested_provider = (provider or source.get(_ENV_PROVIDER) or DEFAULT_PROVIDER).strip().lower()
        if requested_provider not in _VALID_PROVIDERS:
            logger.error(
                "extraction.settings.invalid_provider",
                supplied=requested_provider,
                allowed=sorted(_VALID_PROVIDERS),
            )
            raise ValueError(
                f"Unsupported provider '{requested_provider}'. Set {_ENV_PROVIDER} to one of {sorted(_VALID_PROVIDERS)}."
            )

        if requested_provider == "openai":
            default_model = DEFAULT_OPENAI_MODEL
            model_env = _ENV_OPENAI_MODEL
        else:
            default_model = DEFAULT_BEDROCK_MODEL_ID
            model_env = _ENV_BEDROCK_MODEL_ID
        resolved_model = (model_id or source.get(model_env) or "").strip() or default_model
        if resolved_model != default_model:
            logger.info(
                "extraction.settings.model_override",
                provider=requested_provider,
                model=resolved_model,
                default_model=default_model,
            )

        max_tokens = DEFAULT_MAX_TOKENS
        max_tokens_raw = (source.get(_ENV_MAX_TOKENS) or "").strip()
        if max_tokens_raw:
            try:
                max_tokens = int(max_tokens_raw)
            except ValueError as exc:
                logger.error("extraction.settings.invalid_max_tokens", supplied=max_tokens_raw)
                raise ValueError(
                    f"Invalid {_ENV_MAX_TOKENS} value '{max_tokens_raw}'. Provide a positive integer."
                ) from exc

        temperature = DEFAULT_TEMPERATURE
        temperature_raw = (source.get(_ENV_TEMPERATURE) or "").strip()
        if temperature_raw:
            try:
                temperature = float(temperature_raw)
            except ValueError as exc:
                logger.error("extraction.settings.invalid_temperature", supplied=temperature_raw)
                raise ValueError(
                    f"Invalid {_ENV_TEMPERATURE} value '{temperature_raw}'. Provide a number between 0 and 1."
                ) from exc

        api_key_raw = (source.get(_ENV_OPENAI_API_KEY) or "").strip()
        base_url_raw = (source.get(_ENV_OPENAI_BASE_URL) or "").strip()
        if base_url_raw:
            logger.info("extraction.settings.base_url_override", base_url=mask_uri(base_url_raw))

        try:
            return cls(
                provider=requested_provider,
                model_id=resolved_model,
                region=(source.get(_ENV_AWS_REGION) or "").strip() or DEFAULT_AWS_REGION,
                api_key=SecretStr(api_key_raw) if api_key_raw else None,
                api_base_url=base_url_raw or None,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except ValidationError as exc:
            raise ValueError(f"Invalid extraction configuration: {exc}") from exc


class Neo4jSettings(BaseModel):
    """Typed Neo4j connection settings."""

    model_config = ConfigDict(frozen=True)

    uri: str
    username: str
    password: SecretStr
    database: str | None = None

    @field_validator("uri")
    @classmethod
    def _validate_uri(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in _ALLOWED_NEO4J_SCHEMES or not parsed.netloc:
            raise ValueError(
                "NEO4J_URI must use bolt:// or neo4j:// scheme with host and port."
            )
        return value

    def auth(self) -> tuple[str, str]:
        """Return the username/password tuple for Neo4j driver usage."""

        return self.username, self.password.get_secret_value()


class PubGraphSettings(BaseModel):
    """Aggregate typed settings for the extraction pipeline."""

    model_config = ConfigDict(frozen=True)

    extraction: ExtractionSettings
    neo4j: Neo4jSettings | None = None

    _CACHE: ClassVar[PubGraphSettings | None] = None

    @classmethod
    def load(
        cls,
        env: Optional[Mapping[str, str]] = None,
        *,
        refresh: bool = False,
        require_neo4j: bool = True,
        provider: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> PubGraphSettings:
        """Load settings from environment variables and cache the result.

        Overrides (``provider``/``model_id``) bypass the cache.
        """

        overridden = provider is not None or model_id is not None
        if env is None and not refresh and not overridden and cls._CACHE is not None:
            return cls._CACHE

        if env is None:
            from pubgraph.utils.env import load_project_dotenv

            load_project_dotenv()
            source: Mapping[str, str] = os.environ
        else:
            source = env

        def _require(*keys: str) -> str:
            for key in keys:
                value = (source.get(key) or "").strip()
                if value:
                    return value
            raise ValueError(f"Missing required environment variable: {keys[0]}")

        def _optional(key: str) -> str | None:
            value = (source.get(key) or "").strip()
            return value or None

        extraction = ExtractionSettings.load(source, provider=provider, model_id=model_id)

        neo4j_settings: Neo4jSettings | None = None
        if require_neo4j:
            try:
                neo4j_settings = Neo4jSettings(
                    uri=_require("NEO4J_URI"),
                    username=_require("NEO4J_USER", "NEO4J_USERNAME"),
                    password=SecretStr(_require("NEO4J_PASSWORD")),
                    database=_optional("NEO4J_DATABASE"),
                )
            except ValidationError as exc:
                raise ValueError("Invalid Neo4j configuration") from exc

        settings = cls(extraction=extraction, neo4j=neo4j_settings)
        if env is None and not overridden:
            cls._CACHE = settings
        return settings

    @classmethod
    def clear_cache(cls) -> None:
        """Reset the cached settings instance."""

        cls._CACHE = None


__all__ = [
    "DEFAULT_AWS_REGION",
    "DEFAULT_BEDROCK_MODEL_ID",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_OPENAI_MODEL",
    "DEFAULT_PROVIDER",
    "DEFAULT_TEMPERATURE",
    "ExtractionSettings",
    "Neo4jSettings",
    "PubGraphSettings",
]
