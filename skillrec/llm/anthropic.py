"""Anthropic Messages API provider."""

from __future__ import annotations

from typing import Any

from skillrec.llm._base import LLMProvider, ProviderRequest, ProviderType

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 1024


class AnthropicProvider(LLMProvider):
    """System prompt goes in the top-level ``system`` field, auth in ``x-api-key``."""

    provider_type = ProviderType.ANTHROPIC
    default_model = "claude-3-haiku-20240307"
    default_endpoint = "https://api.anthropic.com/v1"

    def build_request(self, prompt: str, system_prompt: str) -> ProviderRequest:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": MAX_TOKENS,
            "temperature": self.config.temperature,
        }
        if system_prompt:
            payload["system"] = system_prompt
        return ProviderRequest(
            url=f"{self.config.endpoint}/messages",
            payload=payload,
            headers={
                "x-api-key": self.config.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

    def extract_content(self, data: dict[str, Any]) -> str:
        blocks = data.get("content") or []
        texts = [str(b.get("text") or "") for b in blocks if isinstance(b, dict) and b.get("type", "text") == "text"]
        return texts[0] if texts else ""
