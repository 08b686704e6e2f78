"""
OpenAI-compatible inference client
Async chat completions with JSON-object response format
"""

import os
from typing import Optional

import httpx
import structlog
from openai import AsyncOpenAI, APITimeoutError, OpenAIError

from codelens.core.exceptions import UpstreamError, UpstreamTimeoutError
from codelens.core.ports.i_inference_client import IInferenceClient
from .models import CompletionResult

logger = structlog.get_logger()


class OpenAIInferenceClient(IInferenceClient):
    """Adapter for OpenAI (or a self-hosted OpenAI-compatible endpoint)"""

    def __init__(self, api_key: str = None, base_url: Optional[str] = None,
                 timeout: float = 30.0, client: Optional[AsyncOpenAI] = None):
        """
        Args:
            api_key: API key (default OPENAI_API_KEY)
            base_url: Endpoint override, e.g. a self-hosted gateway
            timeout: SDK-level request timeout in seconds
            client: Pre-built AsyncOpenAI client
        """
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.base_url = base_url
        self.timeout = timeout

        # SDK retries disabled: retry policy belongs to callers
        self.client = client or AsyncOpenAI(
            api_key=self.api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0
        )

        logger.info("openai_inference_client_initialized",
                    base_url=base_url or "default",
                    timeout=timeout)

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        temperature: float,
        max_tokens: int,
        json_response: bool = True
    ) -> CompletionResult:
        """Send one chat completion and return the first choice's content"""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})

        params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens
        }
        if json_response:
            params["response_format"] = {"type": "json_object"}

        try:
            completion = await self.client.chat.completions.create(**params)
        except APITimeoutError as e:
            logger.error("openai_api_timeout", model=model, error=str(e))
            raise UpstreamTimeoutError(f"OpenAI request timed out: {e}") from e
        except (OpenAIError, httpx.HTTPError) as e:
            logger.error("openai_api_error", model=model, error=str(e), error_type=type(e).__name__)
            raise UpstreamError(f"OpenAI API failed: {e}") from e

        content = None
        if completion.choices:
            content = completion.choices[0].message.content

        logger.debug("openai_completion_received",
                     model=completion.model,
                     response_length=len(content) if content else 0)

        return CompletionResult(content=content, model=completion.model or model)

    async def close(self) -> None:
        """Close the underlying HTTP client"""
        await self.client.close()
