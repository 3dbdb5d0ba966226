"""Generation providers."""

from finddocs.providers.llm.ollama_provider import OllamaGenerationProvider

__all__ = ["OllamaGenerationProvider"]
