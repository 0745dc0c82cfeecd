"""Google Gemini ``generateContent`` provider."""

from __future__ import annotations

from typing import Any

from skillrec.llm._base import ContentBlockedError, LLMProvider, ProviderRequest, ProviderType


class GeminiProvider(LLMProvider):
    """The API key travels as a ``key`` query parameter.

    Gemini 1.5 and later accept a separate ``systemInstruction``; older
    models get the system prompt prepended to the user turn.
    """

    provider_type = ProviderType.GEMINI
    default_model = "gemini-2.5-pro"
    default_endpoint = "https://generativelanguage.googleapis.com/v1"

    @property
    def supports_system_instruction(self) -> bool:
        return "1.5" in self.model or "2" in self.model

    def build_request(self, prompt: str, system_prompt: str) -> ProviderRequest:
        payload: dict[str, Any] = {"generationConfig": {"temperature": self.config.temperature}}
        if system_prompt and self.supports_system_instruction:
            payload["contents"] = [{"role": "user", "parts": [{"text": prompt}]}]
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}
        else:
            text = f"{system_prompt}\n\n{prompt}" if system_prompt else prompt
            payload["contents"] = [{"role": "user", "parts": [{"text": text}]}]
        return ProviderRequest(
            url=f"{self.config.endpoint}/models/{self.model}:generateContent",
            payload=payload,
            params={"key": self.config.api_key},
        )

    def extract_content(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            if feedback.get("blockReason"):
                raise ContentBlockedError(str(feedback["blockReason"]))
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return str(parts[0].get("text") or "") if parts else ""
