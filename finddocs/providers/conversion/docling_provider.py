"""Docling Serve conversion provider.

Talks to the asynchronous Docling Serve API:

    POST /v1/convert/file/async      multipart upload -> {"task_id": ...}
    GET  /v1/status/poll/{task_id}   -> {"task_status": ..., "task_meta": ...}
    GET  /v1/result/{task_id}        -> {"document": {...}, "errors": [...]}

Every scanned page is OCR'd with Tesseract at 300 DPI, which is slow but
recovers text from image-only PDFs.  Each method performs exactly one
request; the job runner owns polling cadence and retry accounting.
"""

from __future__ import annotations

import copy
import json
from typing import Any

import httpx
from pydantic import ValidationError

from finddocs.interfaces.conversion_provider import IConversionProvider
from finddocs.models.conversion import StatusReport
from finddocs.utils.errors import PollTransientError, SubmissionError
from finddocs.utils.logging import get_logger

logger = get_logger(__name__)

_SUBMIT_PATH = "/v1/convert/file/async"
_STATUS_PATH = "/v1/status/poll/{task_id}"
_RESULT_PATH = "/v1/result/{task_id}"
_DEFAULT_TIMEOUT = 120.0  # seconds, per call

DEFAULT_CONVERSION_OPTIONS: dict[str, Any] = {
    "pdf_backend": "dlparse_v4",
    "pipeline": "standard",
    "pipeline_options": {
        "do_ocr": True,
        "ocr_options": {
            "kind": "TESSERACT",
            "lang": ["eng"],
            "dpi": 300,
            "force_full_page_ocr": True,
        },
        "pdf_options": {
            "extract_images": True,
            "process_images": True,
        },
    },
}

# Human-readable reasons keyed by HTTP status.
_STATUS_MESSAGES: dict[int, str] = {
    413: "File too large.",
    422: "Unsupported file format.",
}
_TIMEOUT_MESSAGE = "Request timed out."
_GENERIC_MESSAGE = "Please try again."


class DoclingConversionProvider(IConversionProvider):
    """Conversion provider backed by a Docling Serve instance.

    Parameters
    ----------
    http_client:
        Injected ``httpx.AsyncClient`` for testability and connection pooling.
    base_url:
        Root URL of the Docling Serve instance, e.g. ``http://localhost:35111``.
    timeout:
        Per-request timeout in seconds for upload and poll calls.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    # ------------------------------------------------------------------
    # IConversionProvider implementation
    # ------------------------------------------------------------------

    async def submit(
        self,
        file_bytes: bytes,
        file_name: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        options_doc = options if options is not None else default_options()
        files = {
            "files": (file_name, file_bytes, "application/octet-stream"),
            "options": ("options.json", json.dumps(options_doc), "application/json"),
        }
        try:
            response = await self._http.post(
                f"{self._base_url}{_SUBMIT_PATH}",
                files=files,
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("conversion_submit_timeout", file_name=file_name)
            raise SubmissionError(
                message=_TIMEOUT_MESSAGE,
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = _STATUS_MESSAGES.get(status) or _detail_of(exc.response) or _GENERIC_MESSAGE
            logger.warning(
                "conversion_submit_rejected",
                file_name=file_name,
                status_code=status,
                reason=message,
            )
            raise SubmissionError(
                message=message,
                provider_name=self.get_provider_name(),
                status_code=status,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("conversion_submit_failed", file_name=file_name, error=str(exc))
            raise SubmissionError(
                message=_GENERIC_MESSAGE,
                provider_name=self.get_provider_name(),
            ) from exc

        body = _json_or_none(response)
        task_id = body.get("task_id") if isinstance(body, dict) else None
        if not task_id:
            raise SubmissionError(
                message="Conversion service returned no task id.",
                provider_name=self.get_provider_name(),
                status_code=response.status_code,
            )

        logger.info(
            "conversion_submitted",
            file_name=file_name,
            task_id=task_id,
            size_bytes=len(file_bytes),
        )
        return str(task_id)

    async def poll_status(self, task_id: str) -> StatusReport:
        body = await self._get_json(_STATUS_PATH.format(task_id=task_id))
        if not isinstance(body, dict):
            raise PollTransientError(
                message=f"Unexpected status payload for task {task_id}",
                provider_name=self.get_provider_name(),
            )
        try:
            return StatusReport.model_validate(body)
        except ValidationError as exc:
            logger.warning("conversion_status_malformed", task_id=task_id, error=str(exc))
            raise PollTransientError(
                message=f"Malformed status payload for task {task_id}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def fetch_result(self, task_id: str) -> dict[str, Any]:
        body = await self._get_json(_RESULT_PATH.format(task_id=task_id))
        if not isinstance(body, dict):
            raise PollTransientError(
                message=f"Unexpected result payload for task {task_id}",
                provider_name=self.get_provider_name(),
            )
        return body

    def get_provider_name(self) -> str:
        return "docling"

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get_json(self, path: str) -> Any:
        try:
            response = await self._http.get(f"{self._base_url}{path}", timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise PollTransientError(
                message=f"GET {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        body = _json_or_none(response)
        if body is None:
            raise PollTransientError(
                message=f"GET {path} returned a non-JSON body",
                provider_name=self.get_provider_name(),
            )
        return body


def default_options() -> dict[str, Any]:
    """Return a fresh copy of the fixed conversion options document."""
    return copy.deepcopy(DEFAULT_CONVERSION_OPTIONS)


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _detail_of(response: httpx.Response) -> str | None:
    body = _json_or_none(response)
    if not isinstance(body, dict):
        return None
    detail = body.get("detail")
    if not detail:
        return None
    return detail if isinstance(detail, str) else json.dumps(detail)
