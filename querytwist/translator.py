import asyncio
import logging
import re
from typing import Optional, Protocol

import google.generativeai as genai

from .config import MODEL_NAME, TEMPERATURE, TRANSLATION_TIMEOUT_S
from .errors import TranslationError
from .prompts import InstructionPayload

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:[ \t]*(?:sql\b|[A-Za-z0-9_+-]+(?=[ \t]*\n)))?[ \t]*\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Drop ``` markers (with an optional language tag) and surrounding whitespace."""
    if not isinstance(text, str):
        return ""
    return _FENCE_RE.sub("", text).strip()


class Translator(Protocol):
    async def translate(self, payload: InstructionPayload, question: str) -> str:
        ...


class GeminiTranslator:
    """Natural language to SQL text via Gemini. Never runs what it returns."""

    def __init__(
        self,
        api_key: str,
        model_name: str = MODEL_NAME,
        temperature: float = TEMPERATURE,
        timeout: Optional[float] = TRANSLATION_TIMEOUT_S,
    ):
        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature
        self.timeout = timeout
        if api_key:
            genai.configure(api_key=api_key)

    async def translate(self, payload: InstructionPayload, question: str) -> str:
        if not self.api_key:
            raise TranslationError("Missing GOOGLE_API_KEY.")

        model = genai.GenerativeModel(self.model_name, system_instruction=payload.system_instruction)
        logger.info("Asking %s for SQL", self.model_name)
        try:
            resp = await asyncio.wait_for(
                model.generate_content_async(
                    question,
                    generation_config=genai.GenerationConfig(temperature=self.temperature),
                ),
                timeout=self.timeout,
            )
            raw = resp.text or ""
        except asyncio.TimeoutError:
            logger.warning("Gemini call timed out after %ss", self.timeout)
            raise TranslationError(f"Timed out after {self.timeout}s waiting for the model.") from None
        except Exception as e:
            logger.error("Gemini API error: %s", e)
            raise TranslationError(f"Failed to generate SQL from prompt: {e}") from e

        sql = strip_code_fences(raw)
        if not sql:
            raise TranslationError("The model returned no SQL.")
        logger.debug("Generated SQL: %s", sql)
        return sql
