"""Hosted language-model clients used for triple extraction."""

from __future__ import annotations

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
from openai import (
    APIConnectionError,
    APIError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    NotFoundError,
    OpenAI,
    PermissionDeniedError,
    RateLimitError,
    UnprocessableEntityError,
)

from cli.telemetry import PipelineMetrics, get_metrics
from config.settings import ExtractionSettings

logger = structlog.get_logger(__name__)

ANTHROPIC_BEDROCK_VERSION = "bedrock-2023-05-31"
DEFAULT_TOP_P = 0.9
DEFAULT_TOP_K = 250


class ModelFamily(str, Enum):
    """Request/response encoding used by a hosted model."""

    CHAT = "chat"
    COMPLETION = "completion"


class ExtractionErrorKind(str, Enum):
    """Classification of remote model failures."""

    INVALID_REQUEST = "invalid_request"
    RATE_LIMITED = "rate_limited"
    ACCESS_DENIED = "access_denied"
    MODEL_NOT_FOUND = "model_not_found"
    UPSTREAM_INTERNAL = "upstream_internal"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


_REMEDIATIONS: dict[ExtractionErrorKind, str] = {
    ExtractionErrorKind.INVALID_REQUEST: "Inspect the prompt and generation options sent to the model.",
    ExtractionErrorKind.RATE_LIMITED: "Request was throttled; retry later or lower the request rate.",
    ExtractionErrorKind.ACCESS_DENIED: "Check the provider credentials and model access permissions.",
    ExtractionErrorKind.MODEL_NOT_FOUND: "Verify the configured model identifier and region.",
    ExtractionErrorKind.UPSTREAM_INTERNAL: "The provider reported an internal error; retry later.",
    ExtractionErrorKind.EMPTY_RESPONSE: "The model returned no text; inspect the raw response envelope.",
    ExtractionErrorKind.UNKNOWN: "Inspect the error details and provider status.",
}

_BEDROCK_ERROR_KINDS: dict[str, ExtractionErrorKind] = {
    "ValidationException": ExtractionErrorKind.INVALID_REQUEST,
    "ThrottlingException": ExtractionErrorKind.RATE_LIMITED,
    "ServiceQuotaExceededException": ExtractionErrorKind.RATE_LIMITED,
    "AccessDeniedException": ExtractionErrorKind.ACCESS_DENIED,
    "UnrecognizedClientException": ExtractionErrorKind.ACCESS_DENIED,
    "ResourceNotFoundException": ExtractionErrorKind.MODEL_NOT_FOUND,
    "InternalServerException": ExtractionErrorKind.UPSTREAM_INTERNAL,
    "ServiceUnavailableException": ExtractionErrorKind.UPSTREAM_INTERNAL,
    "ModelNotReadyException": ExtractionErrorKind.UPSTREAM_INTERNAL,
}

# Subclasses precede their bases.
_OPENAI_ERROR_KINDS: tuple[tuple[type[Exception], ExtractionErrorKind], ...] = (
    (BadRequestError, ExtractionErrorKind.INVALID_REQUEST),
    (UnprocessableEntityError, ExtractionErrorKind.INVALID_REQUEST),
    (RateLimitError, ExtractionErrorKind.RATE_LIMITED),
    (AuthenticationError, ExtractionErrorKind.ACCESS_DENIED),
    (PermissionDeniedError, ExtractionErrorKind.ACCESS_DENIED),
    (NotFoundError, ExtractionErrorKind.MODEL_NOT_FOUND),
    (InternalServerError, ExtractionErrorKind.UPSTREAM_INTERNAL),
)

_OPENAI_COMPLETION_MARKERS = ("instruct", "davinci", "babbage")


@dataclass(frozen=True)
class ModelOptions:
    """Generation options applied to a single model call."""

    max_tokens: int = 4000
    temperature: float = 0.1
    top_p: float = DEFAULT_TOP_P
    top_k: int = DEFAULT_TOP_K
    stop_sequences: Sequence[str] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be a positive integer")
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError("temperature must be between 0 and 1")

    @classmethod
    def from_settings(cls, settings: ExtractionSettings) -> ModelOptions:
        return cls(max_tokens=settings.max_tokens, temperature=settings.temperature)


@dataclass(frozen=True)
class ModelInfo:
    """Describes the model a client is configured to call."""

    model_id: str
    provider: str
    family: ModelFamily
    region: str | None


class ExtractionClientError(RuntimeError):
    """Error raised when a model call cannot produce extraction text."""

    def __init__(
        self,
        message: str,
        *,
        kind: ExtractionErrorKind = ExtractionErrorKind.UNKNOWN,
        remediation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.remediation = remediation or _REMEDIATIONS[kind]
        self.details = details or {}


class ExtractionClient(ABC):
    """Base client: validation, telemetry, and error reporting around a provider call."""

    provider: str = "unknown"

    def __init__(
        self,
        settings: ExtractionSettings,
        *,
        metrics: Optional[PipelineMetrics] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._settings = settings
        self._metrics = metrics or get_metrics()
        self._clock = clock

    @property
    def model_id(self) -> str:
        return self._settings.model_id

    @property
    def family(self) -> ModelFamily:
        return self.resolve_family(self._settings.model_id)

    @staticmethod
    @abstractmethod
    def resolve_family(model_id: str) -> ModelFamily:
        """Return the request encoding used by ``model_id``."""

    def model_info(self) -> ModelInfo:
        return ModelInfo(
            model_id=self.model_id,
            provider=self.provider,
            family=self.family,
            region=None,
        )

    @staticmethod
    def validate_prompt(prompt: Any) -> bool:
        """Return True when ``prompt`` is a non-blank string."""

        return isinstance(prompt, str) and bool(prompt.strip())

    @abstractmethod
    def with_model(self, model_id: str) -> ExtractionClient:
        """Return a client of the same provider bound to ``model_id``."""

    def invoke(self, prompt: str, options: Optional[ModelOptions] = None) -> str:
        """Send ``prompt`` to the configured model and return its text output.

        Raises:
            ExtractionClientError: the prompt is empty, the provider rejected the
                call, or the response carried no text.
        """

        if not self.validate_prompt(prompt):
            raise ExtractionClientError(
                "Prompt must be a non-empty string.",
                kind=ExtractionErrorKind.INVALID_REQUEST,
                details={"reason": "empty_prompt"},
            )
        resolved = options or ModelOptions.from_settings(self._settings)
        family = self.family

        logger.debug(
            "extraction.invoke.start",
            provider=self.provider,
            model=self.model_id,
            family=family.value,
        )
        start = self._clock()
        try:
            text = self._invoke(prompt, resolved, family)
        except ExtractionClientError as exc:
            self._metrics.observe_extraction_error(provider=self.provider, kind=exc.kind.value)
            logger.error(
                "extraction.invoke.failed",
                provider=self.provider,
                model=self.model_id,
                kind=exc.kind.value,
                error=str(exc),
            )
            raise
        latency_ms = (self._clock() - start) * 1000.0

        self._metrics.observe_extraction(
            provider=self.provider,
            model=self.model_id,
            latency_ms=latency_ms,
        )
        logger.info(
            "extraction.invoke.success",
            provider=self.provider,
            model=self.model_id,
            family=family.value,
            latency_ms=round(latency_ms, 2),
            output_chars=len(text),
        )
        return text

    @abstractmethod
    def _invoke(self, prompt: str, options: ModelOptions, family: ModelFamily) -> str:
        """Call the provider and return its raw text output."""


class BedrockExtractionClient(ExtractionClient):
    """Client for models hosted on AWS Bedrock (Anthropic and Meta Llama families)."""

    provider = "bedrock"

    def __init__(
        self,
        settings: ExtractionSettings,
        *,
        client: Any = None,
        metrics: Optional[PipelineMetrics] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(settings, metrics=metrics, clock=clock)
        # Credentials resolve through the standard AWS provider chain.
        self._client = client or boto3.client("bedrock-runtime", region_name=settings.region)

    @staticmethod
    def resolve_family(model_id: str) -> ModelFamily:
        if "meta.llama" in model_id:
            return ModelFamily.COMPLETION
        return ModelFamily.CHAT

    def model_info(self) -> ModelInfo:
        return ModelInfo(
            model_id=self.model_id,
            provider=self.provider,
            family=self.family,
            region=self._settings.region,
        )

    def with_model(self, model_id: str) -> BedrockExtractionClient:
        return BedrockExtractionClient(
            self._settings.with_model(model_id),
            client=self._client,
            metrics=self._metrics,
            clock=self._clock,
        )

    @staticmethod
    def build_request_body(prompt: str, options: ModelOptions, family: ModelFamily) -> dict[str, Any]:
        """Return the provider request body for ``family``."""

        if family is ModelFamily.COMPLETION:
            body: dict[str, Any] = {
                "prompt": prompt,
                "max_gen_len": options.max_tokens,
                "temperature": options.temperature,
                "top_p": options.top_p,
            }
            if options.stop_sequences:
                body["stop"] = list(options.stop_sequences)
            return body
        return {
            "anthropic_version": ANTHROPIC_BEDROCK_VERSION,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "top_k": options.top_k,
            "stop_sequences": list(options.stop_sequences),
            "messages": [{"role": "user", "content": prompt}],
        }

    def _invoke(self, prompt: str, options: ModelOptions, family: ModelFamily) -> str:
        body = self.build_request_body(prompt, options, family)
        try:
            response = self._client.invoke_model(
                modelId=self.model_id,
                contentType="application/json",
                accept="application/json",
                body=json.dumps(body),
            )
        except ClientError as exc:
            raise self._wrap_client_error(exc) from exc
        except NoCredentialsError as exc:
            raise ExtractionClientError(
                f"AWS credentials not found: {exc}",
                kind=ExtractionErrorKind.ACCESS_DENIED,
                details={"model": self.model_id},
            ) from exc
        except BotoCoreError as exc:
            raise ExtractionClientError(
                f"Failed to call Bedrock: {exc}",
                kind=ExtractionErrorKind.UNKNOWN,
                details={"model": self.model_id},
            ) from exc

        payload = _decode_bedrock_body(response, model_id=self.model_id)
        text = _extract_bedrock_text(payload, family)
        if not text:
            raise ExtractionClientError(
                f"No content in response from Bedrock model {self.model_id}.",
                kind=ExtractionErrorKind.EMPTY_RESPONSE,
                details={"model": self.model_id, "family": family.value},
            )
        return text

    def _wrap_client_error(self, exc: ClientError) -> ExtractionClientError:
        error = exc.response.get("Error", {}) if isinstance(exc.response, Mapping) else {}
        code = str(error.get("Code") or "")
        message = str(error.get("Message") or exc)
        kind = _BEDROCK_ERROR_KINDS.get(code, ExtractionErrorKind.UNKNOWN)
        if kind is ExtractionErrorKind.MODEL_NOT_FOUND:
            text = f"Model not found: {self.model_id}"
        else:
            text = f"AWS Bedrock error ({code or 'unknown'}): {message}"
        return ExtractionClientError(
            text,
            kind=kind,
            details={"code": code, "model": self.model_id},
        )


class OpenAIExtractionClient(ExtractionClient):
    """Client for OpenAI chat and legacy completion models."""

    provider = "openai"

    def __init__(
        self,
        settings: ExtractionSettings,
        *,
        client: Optional[OpenAI] = None,
        metrics: Optional[PipelineMetrics] = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        super().__init__(settings, metrics=metrics, clock=clock)
        if client is None:
            api_key = settings.api_key.get_secret_value() if settings.api_key else None
            client = OpenAI(api_key=api_key, base_url=settings.api_base_url)
        self._client = client

    @staticmethod
    def resolve_family(model_id: str) -> ModelFamily:
        lowered = model_id.lower()
        if any(marker in lowered for marker in _OPENAI_COMPLETION_MARKERS):
            return ModelFamily.COMPLETION
        return ModelFamily.CHAT

    def with_model(self, model_id: str) -> OpenAIExtractionClient:
        return OpenAIExtractionClient(
            self._settings.with_model(model_id),
            client=self._client,
            metrics=self._metrics,
            clock=self._clock,
        )

    def _invoke(self, prompt: str, options: ModelOptions, family: ModelFamily) -> str:
        params: dict[str, Any] = {
            "model": self.model_id,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
        }
        if options.stop_sequences:
            params["stop"] = list(options.stop_sequences)
        try:
            if family is ModelFamily.COMPLETION:
                response = self._client.completions.create(prompt=prompt, **params)
            else:
                response = self._client.chat.completions.create(
                    messages=[{"role": "user", "content": prompt}],
                    **params,
                )
        except (APIConnectionError, APIError) as exc:
            raise self._wrap_error(exc) from exc

        text = _extract_openai_text(response, family)
        if not text:
            raise ExtractionClientError(
                f"No content in response from OpenAI model {self.model_id}.",
                kind=ExtractionErrorKind.EMPTY_RESPONSE,
                details={"model": self.model_id, "family": family.value},
            )
        return text

    def _wrap_error(self, exc: Exception) -> ExtractionClientError:
        kind = ExtractionErrorKind.UNKNOWN
        for error_type, mapped in _OPENAI_ERROR_KINDS:
            if isinstance(exc, error_type):
                kind = mapped
                break
        if kind is ExtractionErrorKind.MODEL_NOT_FOUND:
            message = f"Model not found: {self.model_id}"
        else:
            message = f"OpenAI error: {exc}"
        return ExtractionClientError(
            message,
            kind=kind,
            details={
                "model": self.model_id,
                "status_code": getattr(exc, "status_code", None),
            },
        )


def build_extraction_client(
    settings: ExtractionSettings,
    *,
    client: Any = None,
    metrics: Optional[PipelineMetrics] = None,
) -> ExtractionClient:
    """Return the extraction client for ``settings.provider``."""

    if settings.provider == "openai":
        return OpenAIExtractionClient(settings, client=client, metrics=metrics)
    return BedrockExtractionClient(settings, client=client, metrics=metrics)


def _decode_bedrock_body(response: Mapping[str, Any], *, model_id: str) -> Any:
    body = response.get("body")
    # Streaming body: read errors surface here, not from invoke_model.
    try:
        raw = body.read() if hasattr(body, "read") else body
    except BotoCoreError as exc:
        raise ExtractionClientError(
            f"Failed to read Bedrock response body: {exc}",
            kind=ExtractionErrorKind.UNKNOWN,
            details={"model": model_id, "reason": "read_failed"},
        ) from exc
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        if not raw:
            return {}
        return json.loads(raw)
    except (TypeError, ValueError, RecursionError) as exc:
        raise ExtractionClientError(
            "Bedrock returned a response body that is not valid UTF-8 JSON.",
            kind=ExtractionErrorKind.UNKNOWN,
            details={"model": model_id, "reason": "malformed_response"},
        ) from exc


def _first_content_text(payload: Mapping[str, Any]) -> str:
    content = payload.get("content")
    if not isinstance(content, list):
        return ""
    for item in content:
        if isinstance(item, Mapping):
            text = item.get("text")
            if isinstance(text, str) and text:
                return text
    return ""


def _extract_bedrock_text(payload: Any, family: ModelFamily) -> str:
    if not isinstance(payload, Mapping):
        return ""
    if family is ModelFamily.CHAT:
        text = _first_content_text(payload)
        if text:
            return text
    for key in ("generation", "output_text"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return _first_content_text(payload)


def _extract_openai_text(response: Any, family: ModelFamily) -> str:
    choices = getattr(response, "choices", None)
    if choices is None and isinstance(response, Mapping):
        choices = response.get("choices")
    if not choices:
        return ""
    choice = choices[0]
    if family is ModelFamily.COMPLETION:
        text = choice.get("text") if isinstance(choice, Mapping) else getattr(choice, "text", None)
        return text if isinstance(text, str) else ""
    message = choice.get("message") if isinstance(choice, Mapping) else getattr(choice, "message", None)
    if message is None:
        return ""
    content = message.get("content") if isinstance(message, Mapping) else getattr(message, "content", None)
    return content if isinstance(content, str) else ""


__all__ = [
    "BedrockExtractionClient",
    "ExtractionClient",
    "ExtractionClientError",
    "ExtractionErrorKind",
    "ModelFamily",
    "ModelInfo",
    "ModelOptions",
    "OpenAIExtractionClient",
    "build_extraction_client",
]
