"""
Generation Client - portrait and text generation via OpenAI.

Both generators raise GenerationFailure on timeout, API errors or
unusable output. Callers decide on fallbacks.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from app.config import settings
from app.exceptions import GenerationFailure

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Output of one generation call."""

    content: Any
    usage: Optional[Dict[str, int]] = None
    model: Optional[str] = None


def _usage_dict(usage: Any) -> Optional[Dict[str, int]]:
    if usage is None:
        return None
    if hasattr(usage, "model_dump"):
        return {k: v for k, v in usage.model_dump().items() if isinstance(v, int)}
    return None


class ImageGenerator:
    """Pencil-sketch portrait generation."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.openai_image_model
        self.timeout = timeout or settings.generation_timeout_seconds
        self.client = client
        if self.client is None and settings.generation_enabled:
            self.client = AsyncOpenAI(api_key=settings.openai_api_key)

    async def generate(self, prompt: str) -> GenerationResult:
        """Return base64 PNG data as the result content."""
        if self.client is None:
            raise GenerationFailure("Image generation disabled (mock mode)")

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "size": "1024x1024",
            "n": 1,
        }
        # gpt-image models always return base64, DALL-E needs asking
        if self.model.startswith("dall-e"):
            kwargs["response_format"] = "b64_json"

        try:
            response = await asyncio.wait_for(
                self.client.images.generate(**kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(f"Image generation timed out after {self.timeout}s") from e
        except Exception as e:
            raise GenerationFailure(f"Image generation failed: {e}") from e

        data = response.data[0].b64_json if response.data else None
        if not data:
            raise GenerationFailure("No image data in response")

        usage = _usage_dict(getattr(response, "usage", None))
        if usage:
            logger.info(f"[AI] image tokens {usage}")
        return GenerationResult(content=data, usage=usage, model=self.model)


class TextGenerator:
    """Chat completion for readings."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.generation_timeout_seconds
        self.mock = client is None and not settings.generation_enabled
        self.client = client
        if self.client is None and not self.mock:
            self.client = AsyncOpenAI(api_key=settings.openai_api_key)

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 800,
        json_mode: bool = False,
    ) -> GenerationResult:
        if self.mock:
            return self._mock_result(json_mode)

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": 0.7,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(**kwargs),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(f"Text generation timed out after {self.timeout}s") from e
        except Exception as e:
            raise GenerationFailure(f"Text generation failed: {e}") from e

        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise GenerationFailure("Empty completion")

        usage = _usage_dict(getattr(response, "usage", None))
        if usage:
            logger.info(f"[AI] tokens {usage}")
        return GenerationResult(content=content, usage=usage, model=self.model)

    def _mock_result(self, json_mode: bool) -> GenerationResult:
        text = (
            "This is a mock reading. In production it is generated from "
            "your birth chart and quiz answers."
        )
        if json_mode:
            text = json.dumps({"guidance": text, "emotionScore": 7, "energyScore": 7})
        return GenerationResult(content=text, model="mock")
