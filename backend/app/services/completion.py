import logging
import time

from openai import AsyncOpenAI, RateLimitError

from app.config import settings

logger = logging.getLogger(__name__)


def is_rate_limited(error: BaseException) -> bool:
    if isinstance(error, RateLimitError):
        return True
    return getattr(error, "status_code", None) == 429 or getattr(error, "status", None) == 429


class CompletionClient:
    """Single-prompt text completion over the OpenAI chat API."""

    def __init__(
        self,
        api_key: str = settings.openai_api_key,
        base_url: str = settings.openai_base_url,
        model: str = settings.llm_model,
    ):
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or None)

    async def complete(self, prompt: str, *, max_tokens: int, force_json: bool = False) -> str:
        kwargs: dict = {}
        if force_json:
            kwargs["response_format"] = {"type": "json_object"}

        t0 = time.monotonic()
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            max_completion_tokens=max_tokens,
            **kwargs,
        )
        usage = response.usage
        logger.info(
            "Completion call: %.1fs, %d input tokens, %d output tokens",
            time.monotonic() - t0,
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
        )

        if not response.choices:
            raise ValueError("Completion returned no choices")
        choice = response.choices[0]
        if choice.finish_reason == "length":
            raise ValueError("Completion truncated at token limit")
        return choice.message.content or ""


def build_completion_client() -> CompletionClient | None:
    """Client for the configured provider, or None when no API key is set."""
    if not settings.openai_api_key:
        logger.info("No OpenAI API key configured; AI fixes will use fallbacks")
        return None
    return CompletionClient(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        model=settings.llm_model,
    )
