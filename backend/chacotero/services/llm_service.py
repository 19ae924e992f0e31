"""
LLM Service

Thin wrapper around the OpenAI chat-completions API. Callers hand in a
system message and a user message and receive the raw reply text; parsing
and retry policy belong to the callers.
"""
import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from chacotero.errors import ConfigurationError
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

CONNECTION_ERROR_MARKERS = (
    "Connection error",
    "ECONNREFUSED",
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "network",
    "fetch failed",
)
CONNECTION_ERROR_CODES = {"ECONNREFUSED", "ECONNRESET", "ETIMEDOUT", "ENOTFOUND"}


def is_connection_error(error: BaseException) -> bool:
    """
    True for network-layer failures worth retrying.

    Classification looks at the exception type, its message and its `code`
    attribute, never at HTTP status: auth failures, rate limits and bad
    requests are not connection errors.
    """
    if isinstance(error, (openai.APIConnectionError, ConnectionError, TimeoutError)):
        return True

    message = str(error) or ""
    if any(marker in message for marker in CONNECTION_ERROR_MARKERS):
        return True

    code = getattr(error, "code", None)
    return isinstance(code, str) and code in CONNECTION_ERROR_CODES


class LLMService:
    """Service for chat-completion requests"""

    def __init__(self):
        """Initialize the OpenAI client if an API key is configured"""
        self.settings = get_settings()
        self.client: Optional[AsyncOpenAI] = None

        if self.settings.openai_api_key:
            # Retry policy belongs to the callers; the SDK must not add its own
            self.client = AsyncOpenAI(api_key=self.settings.openai_api_key, max_retries=0)
            logger.info(f"LLM service initialized with model: {self.settings.llm_model}")
        else:
            logger.warning("OpenAI API key not configured - call separation will not work")

    def is_available(self) -> bool:
        """Check if the chat-completion client is configured"""
        return self.client is not None

    def ensure_available(self) -> None:
        """Raise ConfigurationError when no API key was provided"""
        if not self.client:
            raise ConfigurationError("OPENAI_API_KEY is not configured")

    async def complete(
        self,
        system_message: str,
        user_message: str,
        temperature: float,
        model: Optional[str] = None,
        json_mode: bool = False
    ) -> str:
        """
        Send one chat-completion request and return the reply text.

        Args:
            system_message: Instructions for the model
            user_message: Rendered user prompt
            temperature: Sampling temperature
            model: Override for the configured separation model
            json_mode: Ask the API for a JSON object response

        Returns:
            The content of the first choice ("" when the model sent nothing)
        """
        self.ensure_available()

        request = {
            "model": model or self.settings.llm_model,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message}
            ],
            "temperature": temperature,
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        response = await self.client.chat.completions.create(**request)

        if getattr(response, "usage", None):
            logger.info(
                f"LLM usage - Input: {response.usage.prompt_tokens}, "
                f"Output: {response.usage.completion_tokens}"
            )

        content = response.choices[0].message.content
        return (content or "").strip()


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get or create LLM service singleton"""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
