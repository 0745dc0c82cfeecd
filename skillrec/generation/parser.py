"""Response parser: turns raw model text into a validated recommendation payload.

Parsing tries a direct JSON decode, then a greedy ``{...}`` extraction.
Validation maps the decoded object onto :class:`AiRecommendationPayload`.
Failures of either kind return ``None`` and are kept in bounded buffers.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from skillrec.constants import ERROR_BUFFER_SIZE
from skillrec.json_utils import extract_json_object
from skillrec.models import RecommendationPriority, RecommendationType

logger = logging.getLogger(__name__)

_HTTP_URL = TypeAdapter(HttpUrl)


class AiRecommendationPayload(BaseModel):
    """The flat JSON object the model is asked to return."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    explanation: str = Field(min_length=1)
    resource_title: str = Field(alias="resourceTitle", min_length=1)
    resource_description: str = Field(alias="resourceDescription", min_length=1)
    resource_type: RecommendationType = Field(alias="resourceType")
    resource_url: str = Field(alias="resourceUrl", min_length=1)
    priority: RecommendationPriority

    @field_validator("resource_type", "priority", mode="before")
    @classmethod
    def _lowercase_enum(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("resource_url")
    @classmethod
    def _absolute_http_url(cls, value: str) -> str:
        _HTTP_URL.validate_python(value)
        return value


@dataclass(frozen=True)
class ParseFailure:
    code: str
    message: str
    raw: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ValidationFailure:
    code: str
    message: str
    details: list[str]
    raw: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


class ResponseParser:
    """Parses and validates model output, keeping error history and counters."""

    def __init__(self, buffer_size: int = ERROR_BUFFER_SIZE) -> None:
        self.parse_errors: deque[ParseFailure] = deque(maxlen=buffer_size)
        self.validation_errors: deque[ValidationFailure] = deque(maxlen=buffer_size)
        self.total_attempts = 0
        self.valid_responses = 0
        self.invalid_responses = 0
        self.requests = 0

    # -- Parsing ----------------------------------------------------------------

    def parse(self, text: str) -> Any | None:
        """Decode *text* as JSON, falling back to the outermost ``{...}`` span."""
        try:
            return json.loads(text)
        except (json.JSONDecodeError, TypeError):
            logger.debug("direct JSON parse failed, trying extraction")

        extracted = extract_json_object(text or "")
        if extracted is None:
            self.record_parse_error("INVALID_JSON_FORMAT", "Unable to extract JSON from response", text)
            return None
        try:
            return json.loads(extracted)
        except json.JSONDecodeError:
            self.record_parse_error("INVALID_JSON_CONTENT", "Failed to parse extracted JSON", extracted)
            return None

    def validate(self, data: Any) -> AiRecommendationPayload | None:
        if data is None:
            self.record_validation_error("NULL_RESPONSE", "Parsed JSON is null", [], None)
            return None
        if not isinstance(data, dict):
            self.record_validation_error("VALIDATION_FAILED", "Parsed JSON is not an object", [], data)
            return None
        try:
            return AiRecommendationPayload.model_validate(data)
        except ValidationError as exc:
            details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
            self.record_validation_error("VALIDATION_FAILED", "LLM response failed validation", details, data)
            return None

    def parse_and_validate(self, text: str) -> AiRecommendationPayload | None:
        data = self.parse(text)
        if data is None and not self._decoded_null(text):
            return None
        return self.validate(data)

    @staticmethod
    def _decoded_null(text: str) -> bool:
        return text.strip() == "null"

    # -- Bookkeeping ------------------------------------------------------------

    def record_parse_error(self, code: str, message: str, raw: str) -> None:
        self.parse_errors.append(ParseFailure(code=code, message=message, raw=raw))
        logger.error("LLM parse error code=%s: %s", code, message)

    def record_validation_error(self, code: str, message: str, details: list[str], raw: Any) -> None:
        self.validation_errors.append(ValidationFailure(code=code, message=message, details=details, raw=raw))
        logger.error("LLM validation error code=%s: %s %s", code, message, details)

    def record_attempt(self) -> None:
        self.total_attempts += 1

    def record_result(self, *, valid: bool) -> None:
        if valid:
            self.valid_responses += 1
        else:
            self.invalid_responses += 1

    def record_request(self) -> None:
        self.requests += 1

    def metrics(self) -> dict[str, Any]:
        return {
            "total_attempts": self.total_attempts,
            "valid_responses": self.valid_responses,
            "invalid_responses": self.invalid_responses,
            "average_attempts_per_request": round(self.total_attempts / self.requests, 2) if self.requests else 0.0,
            "parse_errors": [
                {"code": e.code, "message": e.message, "timestamp": e.timestamp.isoformat()} for e in self.parse_errors
            ],
            "validation_errors": [
                {"code": e.code, "message": e.message, "details": e.details, "timestamp": e.timestamp.isoformat()}
                for e in self.validation_errors
            ],
        }

    def reset(self) -> None:
        self.parse_errors.clear()
        self.validation_errors.clear()
        self.total_attempts = 0
        self.valid_responses = 0
        self.invalid_responses = 0
        self.requests = 0
