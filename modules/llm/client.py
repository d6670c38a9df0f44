"""
modules/llm/client.py
---------------------
Thin wrapper over the google-genai SDK.

The engine never depends on this client: make_llm_client() returns None when
USE_STUB_LLM is set or no API key is configured, and every caller falls back
to the deterministic planners.
"""

from __future__ import annotations
import logging
import os
from typing import Optional, Protocol

from google import genai as genai_sdk
from google.genai import types as genai_types

from core.exceptions import ExternalServiceError
import config

logger = logging.getLogger(__name__)

TEMPERATURE = 0.4
MAX_OUTPUT_TOKENS = 2048


class LLMClient(Protocol):
    def complete(self, prompt: str, system: str = "") -> str: ...


class GeminiClient:

    def __init__(
        self,
        model: str = config.LLM_MODEL_NAME,
        api_key: Optional[str] = None,
        timeout_seconds: int = config.LLM_TIMEOUT_SECONDS,
    ) -> None:
        api_key = api_key or os.environ.get("GEMINI_API_KEY", config.LLM_API_KEY)
        self._client = genai_sdk.Client(
            api_key=api_key,
            http_options={"timeout": timeout_seconds * 1000},
        )
        self._model = model

    def complete(self, prompt: str, system: str = "") -> str:
        """Raw model text. Any SDK or transport failure → ExternalServiceError."""
        try:
            response = self._client.models.generate_content(
                model=self._model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    system_instruction=system or None,
                    temperature=TEMPERATURE,
                    max_output_tokens=MAX_OUTPUT_TOKENS,
                ),
            )
        except Exception as exc:
            raise ExternalServiceError(f"LLM call failed: {exc}") from exc
        text = response.text
        if not text:
            raise ExternalServiceError("LLM returned an empty response")
        return text


def make_llm_client() -> Optional[LLMClient]:
    if config.USE_STUB_LLM:
        logger.info("USE_STUB_LLM is set; deterministic planners only")
        return None
    if not (config.LLM_API_KEY or os.environ.get("GEMINI_API_KEY")):
        logger.warning("No LLM API key configured; deterministic planners only")
        return None
    return GeminiClient()
