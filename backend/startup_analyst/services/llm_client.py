"""
LLM Completion Client

Thin async wrapper around an Ollama server. Constructed once at process start
and passed into the services that need it, so tests can hand in fakes.
Every call is bounded by a timeout; upstream failures become typed LLMError
subclasses.
"""

import asyncio
import logging
from typing import Optional

import httpx
import ollama

from ..core.config import settings
from ..core.errors import LLMAuthFailure, LLMError, LLMQuotaExceeded, LLMTimeout
from ..core.logging_config import log_llm_result, log_prompt_preview

logger = logging.getLogger(__name__)

AVAILABILITY_TIMEOUT_SECONDS = 5.0


class LLMClient:
    """Interface for text completion backends"""

    async def complete(self, prompt: str, max_tokens: int = 4096, temperature: float = 0.3) -> str:
        raise NotImplementedError

    async def is_available(self) -> bool:
        return True


def map_llm_error(error: ollama.ResponseError) -> LLMError:
    status = getattr(error, "status_code", None)
    if status == 429:
        return LLMQuotaExceeded(f"LLM quota exceeded: {error.error}")
    if status in (401, 403):
        return LLMAuthFailure(f"LLM authentication failed: {error.error}")
    return LLMError(f"LLM request failed ({status}): {error.error}")


class OllamaLLMClient(LLMClient):
    """Text completion against an Ollama server"""

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        context_window: Optional[int] = None,
        client: Optional[ollama.AsyncClient] = None,
    ):
        self.host = host or settings.OLLAMA_HOST
        self.model = model or settings.LLM_MODEL
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.context_window = context_window or settings.LLM_CONTEXT_WINDOW
        self._client = client or ollama.AsyncClient(host=self.host)

    async def complete(self, prompt: str, max_tokens: int = 4096, temperature: float = 0.3) -> str:
        log_prompt_preview(logger, f"LLM ({self.model})", prompt)

        try:
            response = await asyncio.wait_for(
                self._client.generate(
                    model=self.model,
                    prompt=prompt,
                    options={
                        'num_ctx': self.context_window,
                        'num_predict': max_tokens,
                        'temperature': temperature,
                    },
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"LLM call to {self.model} timed out after {self.timeout}s")
            raise LLMTimeout(f"LLM call timed out after {self.timeout:g} seconds")
        except ollama.ResponseError as e:
            logger.error(f"LLM call to {self.model} failed: {e}")
            raise map_llm_error(e) from e
        except (httpx.HTTPError, ConnectionError) as e:
            logger.error(f"LLM service unreachable at {self.host}: {e}")
            raise LLMError(f"LLM service unreachable at {self.host}") from e

        text = response['response'] or ""
        log_llm_result(logger, f"LLM response ({len(text)} chars)", text, level=logging.DEBUG)
        return text

    async def is_available(self) -> bool:
        try:
            await asyncio.wait_for(self._client.list(), timeout=AVAILABILITY_TIMEOUT_SECONDS)
            return True
        except (asyncio.TimeoutError, ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.warning(f"LLM service at {self.host} not available: {e}")
            return False
