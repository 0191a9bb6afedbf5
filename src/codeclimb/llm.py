from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Optional, Protocol
from google import genai
from google.genai import types

from .errors import ModelError

logger = logging.getLogger(__name__)

class ModelInvoker(Protocol):
    def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str: ...

@dataclass
class LLMClient:
    api_key: Optional[str]
    model: str = "gemini-2.5-flash"

    def _client(self) -> genai.Client:
        return genai.Client(api_key=self.api_key)

    def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        if not self.api_key:
            raise ModelError("GOOGLE_API_KEY or GEMINI_API_KEY is not set")
        logger.info(
            "llm_usage: invoke model=%s temperature=%s max_output_tokens=%s system_len=%s user_len=%s",
            self.model,
            temperature,
            max_output_tokens,
            len(system_prompt),
            len(user_prompt),
        )
        config = types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )
        try:
            client = self._client()
            resp = client.models.generate_content(
                model=self.model,
                contents=user_prompt,
                config=config,
            )
        except Exception as exc:
            raise ModelError(f"model call failed: {exc}") from exc
        text = (resp.text or "").strip()
        if not text:
            raise ModelError("model returned empty content")
        return text
