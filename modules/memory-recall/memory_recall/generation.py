"""OpenAI chat completion wrapper."""

import os
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from .errors import GenerationError
from .log import get_logger
from .result import Result, failure, success

logger = get_logger(__name__)


class TextGenerator:
    """Single-prompt text generation used for replies, extraction and summaries."""

    def __init__(self, model: str = "gpt-4o-mini", api_key: Optional[str] = None):
        self.model = model

        final_api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not final_api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )

        self.client = AsyncOpenAI(api_key=final_api_key)

    async def generate(self, prompt: str) -> Result:
        """Generate a reply to ``prompt``.

        Returns:
            Result carrying the reply text, or a ``GenerationError``
        """
        logger.debug("generating_text", prompt_length=len(prompt))
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except OpenAIError as e:
            logger.error("text_generation_failed", error=str(e))
            return failure(GenerationError(str(e)))

        text = response.choices[0].message.content or ""
        logger.debug("text_generated", response_length=len(text))
        return success(text)
