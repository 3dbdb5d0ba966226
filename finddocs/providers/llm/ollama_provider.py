"""Ollama generation provider adapter.

Calls a local Ollama server's native ``/generate`` endpoint with streaming
disabled, so each answer arrives as one JSON body: ``{"response": "..."}``.

Setup: install Ollama (https://ollama.ai), then
``ollama pull llama3.1:8b-instruct-q4_K_M``.  Point ``OLLAMA_URL`` at the
API root, e.g. ``http://localhost:11434/api``.
"""

from __future__ import annotations

import httpx
import structlog

from finddocs.interfaces.llm_provider import ILLMProvider
from finddocs.utils.errors import GenerationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "llama3.1:8b-instruct-q4_K_M"
_DEFAULT_TIMEOUT = 60.0


class OllamaGenerationProvider(ILLMProvider):
    """Generation provider backed by a local Ollama server.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient``.
    base_url:
        Ollama API root; ``/generate`` is appended.
    model:
        Model tag to run.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        model: str = _DEFAULT_MODEL,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def generate(self, prompt: str) -> str:
        """Run a single non-streaming generation and return the response text."""
        payload = {"model": self._model, "prompt": prompt, "stream": False}
        try:
            response = await self._http.post(
                f"{self._base_url}/generate",
                json=payload,
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as exc:
            raise GenerationError(
                message=f"Ollama request timed out after {self._timeout:.0f}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise GenerationError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except ValueError as exc:
            raise GenerationError(
                message="Ollama returned a non-JSON body",
                provider_name=self.get_provider_name(),
            ) from exc

        if not isinstance(body, dict):
            raise GenerationError(
                message="Ollama returned an unexpected payload",
                provider_name=self.get_provider_name(),
            )

        text = body.get("response") or ""
        logger.info(
            "ollama_generation",
            model=self._model,
            prompt_chars=len(prompt),
            response_chars=len(text),
        )
        return str(text)

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    def get_provider_name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model
