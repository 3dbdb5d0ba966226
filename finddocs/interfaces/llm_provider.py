"""Abstract base class for answer generation providers.

The question-answering service builds a single grounded prompt and hands it
to a provider implementing this contract.  Implementations may wrap a local
Ollama server or any other completion endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OllamaGenerationProvider
# Located in: finddocs/providers/llm/
class ILLMProvider(ABC):
    """Contract for text generation services used to answer questions."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate a completion for *prompt*.

        Parameters
        ----------
        prompt:
            The fully assembled prompt, including document context and
            recent conversation history.

        Returns
        -------
        str
            The model's answer text.  May be empty when the service
            produced nothing; callers substitute their own placeholder.

        Raises
        ------
        finddocs.utils.errors.GenerationError
            If the call fails, times out or returns an invalid body.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Does not contact the remote service.
        """
