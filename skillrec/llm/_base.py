"""Base types for the LLM provider layer.

Each vendor subclass only describes its request and response envelope;
transport, error classification and caching live here. ``send`` never
raises: every failure comes back as an error ``LLMResponse``.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from skillrec.constants import DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS
from skillrec.json_utils import safe_json_loads

if TYPE_CHECKING:
    from skillrec.llm.cache import ResponseCache

logger = logging.getLogger(__name__)


class ProviderType(StrEnum):
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    COHERE = "cohere"


class LLMErrorCode(StrEnum):
    """Classified provider failures. See ``FATAL_ERROR_CODES`` for the non-retryable subset."""

    INVALID_API_KEY = "INVALID_API_KEY"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INVALID_REQUEST = "INVALID_REQUEST"
    CONTENT_POLICY_VIOLATION = "CONTENT_POLICY_VIOLATION"
    RATE_LIMITED = "RATE_LIMITED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    DISABLED = "DISABLED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


@dataclass(frozen=True)
class ProviderConfig:
    """Settings for one vendor."""

    type: ProviderType
    api_key: str = ""
    model: str = ""
    temperature: float = 0.7
    enabled: bool = False
    endpoint: str = ""


@dataclass(frozen=True)
class LLMResponse:
    """Uniform provider result."""

    content: str = ""
    is_error: bool = False
    error_code: str | None = None
    error_message: str | None = None
    from_cache: bool = False

    @classmethod
    def failure(cls, code: LLMErrorCode, message: str) -> LLMResponse:
        return cls(content="", is_error=True, error_code=code.value, error_message=message)


@dataclass(frozen=True)
class ProviderRequest:
    """A fully-built vendor HTTP request."""

    url: str
    payload: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


class ContentBlockedError(Exception):
    """Raised by ``extract_content`` when the vendor refused to answer."""


_POLICY_MARKERS = ("content policy", "content_policy", "content_filter", "safety", "blocked")
_QUOTA_MARKERS = ("quota", "billing", "insufficient_quota", "credit")


def classify_http_error(status_code: int, body: str) -> LLMErrorCode:
    """Map a vendor HTTP error status and body to an error code."""
    lowered = body.lower()
    if status_code in (401, 403):
        return LLMErrorCode.INVALID_API_KEY
    if status_code == 429:
        if any(m in lowered for m in _QUOTA_MARKERS):
            return LLMErrorCode.QUOTA_EXCEEDED
        return LLMErrorCode.RATE_LIMITED
    if status_code in (400, 422):
        if any(m in lowered for m in _POLICY_MARKERS):
            return LLMErrorCode.CONTENT_POLICY_VIOLATION
        if "api key" in lowered or "api_key" in lowered:
            return LLMErrorCode.INVALID_API_KEY
        return LLMErrorCode.INVALID_REQUEST
    if status_code == 408:
        return LLMErrorCode.TIMEOUT
    if status_code >= 500:
        return LLMErrorCode.PROVIDER_UNAVAILABLE
    return LLMErrorCode.UNKNOWN_ERROR


class LLMProvider:
    """Shared transport for vendor chat APIs.

    Subclasses set ``provider_type``, ``default_model`` and
    ``default_endpoint`` and implement ``build_request`` and
    ``extract_content``.
    """

    provider_type: ClassVar[ProviderType]
    default_model: ClassVar[str]
    default_endpoint: ClassVar[str]

    def __init__(
        self,
        config: ProviderConfig,
        cache: ResponseCache | None = None,
        timeout: float = DEFAULT_LLM_REQUEST_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = self._with_defaults(config)
        self._cache = cache
        self._client = client or httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    def _with_defaults(self, config: ProviderConfig) -> ProviderConfig:
        return dataclasses.replace(
            config,
            type=self.provider_type,
            model=config.model or self.default_model,
            endpoint=(config.endpoint or self.default_endpoint).rstrip("/"),
        )

    @property
    def name(self) -> str:
        return self.provider_type.value

    @property
    def model(self) -> str:
        return self.config.model

    def is_enabled(self) -> bool:
        return self.config.enabled and bool(self.config.api_key)

    def update_config(self, config: ProviderConfig) -> None:
        self.config = self._with_defaults(config)

    # -- Vendor hooks -----------------------------------------------------------

    def build_request(self, prompt: str, system_prompt: str) -> ProviderRequest:
        raise NotImplementedError

    def extract_content(self, data: dict[str, Any]) -> str:
        raise NotImplementedError

    def extract_error_message(self, body: str) -> str:
        """Pull a human-readable message out of an error body, if it is JSON."""
        data = safe_json_loads(body, None)
        if isinstance(data, dict):
            err = data.get("error")
            if isinstance(err, dict) and err.get("message"):
                return str(err["message"])
            if isinstance(err, str):
                return err
            if data.get("message"):
                return str(data["message"])
        return body[:500]

    # -- Transport --------------------------------------------------------------

    async def send(self, prompt: str, system_prompt: str = "") -> LLMResponse:
        """Call the vendor once. Never raises."""
        if not self.is_enabled():
            return LLMResponse.failure(LLMErrorCode.DISABLED, f"{self.name} provider is not enabled")

        logger.debug(
            "llm request provider=%s model=%s temperature=%.2f prompt_len=%d",
            self.name,
            self.model,
            self.config.temperature,
            len(prompt),
        )
        try:
            request = self.build_request(prompt, system_prompt)
            resp = await self._client.post(
                request.url,
                json=request.payload,
                headers=request.headers,
                params=request.params or None,
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s request timed out: %s", self.name, exc)
            return LLMResponse.failure(LLMErrorCode.TIMEOUT, f"{self.name} request timed out")
        except httpx.HTTPError as exc:
            logger.warning("%s transport error: %s", self.name, exc)
            return LLMResponse.failure(LLMErrorCode.NETWORK_ERROR, f"{self.name} API error: {exc}")
        except Exception as exc:
            logger.exception("%s request failed", self.name)
            return LLMResponse.failure(LLMErrorCode.UNKNOWN_ERROR, f"{self.name} request failed: {exc}")

        if resp.status_code >= 400:
            body = resp.text
            logger.error("%s error status=%d model=%s body=%s", self.name, resp.status_code, self.model, body[:1000])
            code = classify_http_error(resp.status_code, body)
            return LLMResponse.failure(code, f"{self.name} API error: {self.extract_error_message(body)}")

        try:
            data = resp.json()
        except ValueError:
            return LLMResponse.failure(LLMErrorCode.INVALID_RESPONSE, f"{self.name} returned a non-JSON body")

        try:
            content = self.extract_content(data) if isinstance(data, dict) else ""
        except ContentBlockedError as exc:
            return LLMResponse.failure(LLMErrorCode.CONTENT_POLICY_VIOLATION, f"{self.name} blocked the prompt: {exc}")
        except (KeyError, IndexError, TypeError, AttributeError):
            return LLMResponse.failure(LLMErrorCode.INVALID_RESPONSE, f"Unexpected response shape from {self.name}")

        if not content or not content.strip():
            return LLMResponse.failure(LLMErrorCode.EMPTY_RESPONSE, f"Empty response from {self.name}")
        return LLMResponse(content=content)

    async def send_with_cache(self, prompt: str, system_prompt: str = "") -> LLMResponse:
        """Like :meth:`send`, answering from the response cache when possible."""
        if self._cache is None or not self.is_enabled():
            return await self.send(prompt, system_prompt)

        cached = await self._cache.get(prompt, system_prompt, self.name, self.model)
        if cached is not None:
            return dataclasses.replace(cached, from_cache=True)

        response = await self.send(prompt, system_prompt)
        await self._cache.set(prompt, system_prompt, self.name, self.model, response)
        return response

    async def invalidate_cached(self, prompt: str, system_prompt: str = "") -> None:
        """Drop the cached response for this prompt, e.g. after it failed to parse."""
        if self._cache is not None:
            await self._cache.invalidate(prompt, system_prompt, self.name, self.model)

    async def close(self) -> None:
        await self._client.aclose()
