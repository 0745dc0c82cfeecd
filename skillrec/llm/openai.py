"""OpenAI chat completions provider."""

from __future__ import annotations

from typing import Any

from skillrec.llm._base import LLMProvider, ProviderRequest, ProviderType


class OpenAIProvider(LLMProvider):
    """Posts to ``/chat/completions`` with a bearer token."""

    provider_type = ProviderType.OPENAI
    default_model = "gpt-3.5-turbo"
    default_endpoint = "https://api.openai.com/v1"

    def build_request(self, prompt: str, system_prompt: str) -> ProviderRequest:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return ProviderRequest(
            url=f"{self.config.endpoint}/chat/completions",
            payload={
                "model": self.model,
                "messages": messages,
                "temperature": self.config.temperature,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

    def extract_content(self, data: dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
