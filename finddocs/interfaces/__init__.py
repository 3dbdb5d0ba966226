"""Interfaces for the external services FindDocs talks to.

Business logic depends only on these abstract base classes; concrete
adapters live in ``finddocs/providers/`` and are wired in
``finddocs/main.py``.

    Interface            ->  Concrete implementations
    ---------------------------------------------------------------
    IConversionProvider  ->  DoclingConversionProvider
    ILLMProvider         ->  OllamaGenerationProvider
    IKeyValueStore       ->  SQLiteKeyValueStore, MemoryKeyValueStore
"""

from finddocs.interfaces.conversion_provider import IConversionProvider
from finddocs.interfaces.llm_provider import ILLMProvider
from finddocs.interfaces.storage_provider import IKeyValueStore

__all__ = ["IConversionProvider", "IKeyValueStore", "ILLMProvider"]
