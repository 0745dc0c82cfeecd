"""Cohere chat provider."""

from __future__ import annotations

from typing import Any

from skillrec.llm._base import LLMProvider, ProviderRequest, ProviderType


class CohereProvider(LLMProvider):
    """The system prompt is sent as a SYSTEM turn in ``chat_history``."""

    provider_type = ProviderType.COHERE
    default_model = "command"
    default_endpoint = "https://api.cohere.ai/v1"

    def build_request(self, prompt: str, system_prompt: str) -> ProviderRequest:
        history = [{"role": "SYSTEM", "message": system_prompt}] if system_prompt else []
        return ProviderRequest(
            url=f"{self.config.endpoint}/chat",
            payload={
                "model": self.model,
                "chat_history": history,
                "message": prompt,
                "temperature": self.config.temperature,
            },
            headers={"Authorization": f"Bearer {self.config.api_key}"},
        )

    def extract_content(self, data: dict[str, Any]) -> str:
        return str(data.get("text") or "")
