"""Inference client port"""

from abc import ABC, abstractmethod

from codelens.infrastructure.adapters.ai.models import CompletionResult


class IInferenceClient(ABC):
    """Abstract remote chat-completion call"""

    @abstractmethod
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
        """
        Send one chat completion.

        Args:
            system_prompt: System message
            user_prompt: User message
            model: Model identifier
            temperature: Sampling temperature
            max_tokens: Completion token cap
            json_response: Ask for a JSON-object response format

        Returns:
            Raw content and the model that served it

        Raises:
            UpstreamError: If the remote call fails
        """
        pass

    async def close(self) -> None:
        """Release network resources"""
        pass
