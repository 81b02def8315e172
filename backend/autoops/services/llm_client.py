from typing import AsyncIterator, Optional

import httpx
import openai
from openai import AsyncOpenAI, OpenAI

from autoops.core.config import settings
from autoops.core.errors import UpstreamError
from autoops.core.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = "You are a senior site reliability engineer producing structured incident reports."


def _upstream_error(e: Exception) -> UpstreamError:
    """Translate SDK and transport failures into the pipeline's transport error."""
    if isinstance(e, openai.RateLimitError):
        return UpstreamError("Model rate limit exceeded")
    if isinstance(e, (openai.APITimeoutError, httpx.TimeoutException)):
        return UpstreamError("Model request timed out")
    if isinstance(e, (openai.APIConnectionError, httpx.TransportError)):
        return UpstreamError("Could not reach model provider")
    return UpstreamError(f"Model request failed: {e}")


class ModelClient:
    """
    OpenAI-compatible chat client used by both pipelines.

    complete() issues one blocking request; stream() yields text fragments
    as the provider produces them. Body-read failures surface from the SDK
    as raw httpx errors, so both are translated.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.base_url = base_url or settings.openai_base_url
        self.model = model or settings.openai_model
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.llm_max_retries
        self.transport = transport

    def _require_key(self) -> str:
        if not self.api_key or not self.api_key.strip():
            logger.info("LLM client not available - no API key configured")
            raise UpstreamError("LLM API key is not configured")
        return self.api_key

    def _messages(self, prompt: str) -> list:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]

    def _sync_client(self) -> OpenAI:
        api_key = self._require_key()
        http_client = httpx.Client(transport=self.transport) if self.transport is not None else None
        return OpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
            http_client=http_client,
        )

    def _async_client(self) -> AsyncOpenAI:
        api_key = self._require_key()
        http_client = httpx.AsyncClient(transport=self.transport) if self.transport is not None else None
        return AsyncOpenAI(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            max_retries=self.max_retries,
            http_client=http_client,
        )

    def complete(self, prompt: str) -> str:
        """Single non-streaming completion; returns the full response text."""
        client = self._sync_client()

        logger.debug("Calling LLM for incident analysis...")
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
            )
        except (openai.APIError, httpx.HTTPError) as e:
            logger.error(f"LLM call failed: {e}")
            raise _upstream_error(e) from e
        finally:
            client.close()

        content = response.choices[0].message.content if response.choices else None
        if not content:
            logger.warning("LLM returned empty response")
            return ""
        return content

    async def stream(self, prompt: str) -> AsyncIterator[str]:
        """Yield response text fragments in arrival order."""
        client = self._async_client()

        logger.debug("Opening LLM stream for incident analysis...")
        try:
            stream = await client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                temperature=settings.llm_temperature,
                max_tokens=settings.llm_max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    yield text
        except (openai.APIError, httpx.HTTPError) as e:
            logger.error(f"LLM stream failed: {e}")
            raise _upstream_error(e) from e
        finally:
            await client.close()


def get_model_client() -> ModelClient:
    """Model client configured from settings."""
    return ModelClient()
