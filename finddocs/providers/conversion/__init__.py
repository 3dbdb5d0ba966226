"""Conversion providers.

DoclingConversionProvider drives a Docling Serve instance over its async
job API (submit, poll, fetch result).
"""

from finddocs.providers.conversion.docling_provider import (
    DEFAULT_CONVERSION_OPTIONS,
    DoclingConversionProvider,
    default_options,
)

__all__ = ["DEFAULT_CONVERSION_OPTIONS", "DoclingConversionProvider", "default_options"]
