"""
Gemini API client for vision-based extraction.

Every request is admitted through a shared RequestQueue and retried with
exponential backoff when Gemini reports a rate limit.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from google import genai
from google.genai import types

from config import DEFAULT_MODEL, INITIAL_RETRY_DELAY, MAX_RETRIES, TEMPERATURE
from utils.backoff import run_with_retry
from utils.errors import ConfigurationError
from utils.request_queue import RequestQueue
from utils.settings import get_api_key

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "Gemini API key not found. Set the GEMINI_API_KEY environment variable "
    "or save a key in the settings. Get a free key at: "
    "https://aistudio.google.com/app/apikey"
)


class GeminiClient:
    """Thin async wrapper around google-genai with queueing and retry."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        queue: Optional[RequestQueue] = None,
        max_retries: int = MAX_RETRIES,
        initial_delay: float = INITIAL_RETRY_DELAY,
        client: Any = None,
    ):
        """
        Initialize Gemini client.

        Args:
            api_key: Gemini API key. If not provided, read once from the
                environment or the saved settings.
            model: Model to use
            queue: Shared request queue; a private one is created if omitted
            max_retries: Retries on rate-limit errors
            initial_delay: Seconds before the first retry
            client: Pre-built genai client (used by tests)
        """
        self.api_key = api_key or get_api_key()
        self.model_name = model
        self.queue = queue or RequestQueue()
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self._client = client

    def _require_client(self):
        """Return the genai client, failing fast if no API key is configured."""
        if self._client is not None:
            return self._client
        if not self.api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)
        self._client = genai.Client(api_key=self.api_key)
        return self._client

    async def generate(
        self,
        image_data: bytes,
        mime_type: str,
        prompt: str,
        system_instruction: Optional[str] = None,
        response_schema: Optional[types.Schema] = None,
    ) -> str:
        """
        Send one image and a prompt, returning the response text.

        Raises ConfigurationError before queueing when no key is set.
        Errors that survive the retry budget propagate.
        """
        client = self._require_client()

        config_kwargs = {"temperature": TEMPERATURE}
        if system_instruction:
            config_kwargs["system_instruction"] = system_instruction
        if response_schema is not None:
            config_kwargs["response_mime_type"] = "application/json"
            config_kwargs["response_schema"] = response_schema
        config = types.GenerateContentConfig(**config_kwargs)

        contents = [
            types.Part.from_bytes(data=image_data, mime_type=mime_type),
            prompt,
        ]

        async def call() -> str:
            response = await client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )
            return response.text or ""

        return await self.queue.add(self._with_retry(call))

    def _with_retry(self, call: Callable[[], Awaitable[str]]) -> Callable[[], Awaitable[str]]:
        def task() -> Awaitable[str]:
            return run_with_retry(call, self.max_retries, self.initial_delay)
        return task

