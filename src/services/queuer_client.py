"""
Mantrify Queuer Client

HTTP client for the audio queuer service that renders mantras into MP3
files. A submission is acknowledged synchronously with a queue ID and the
final file path; rendering happens asynchronously on the queuer side.

Wire format:
    POST {URL_MANTRIFY01QUEUER}/{kind}/new
    {"userId": 42, "mantraArray": [...]}

    200 {"success": true, "queueId": 7, "finalFilePath": "/mp3/output_42.mp3"}
    200 {"success": false, "message": "..."}
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config.settings import get_app_settings
from src.types.errors import AppError, ErrorCode, QueuerError

logger = logging.getLogger(__name__)


@dataclass
class QueuerSubmission:
    """Acknowledgement returned by the queuer for an accepted job."""
    queue_id: Optional[int]
    file_path: Optional[str]
    message: Optional[str] = None


class QueuerClient:
    """
    Async HTTP client for the queuer service.

    Only connection failures (the request never reached the queuer) are
    retried. Timeouts and HTTP errors are not, since the job may already
    have been accepted.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: int = 3,
        retry_backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the queuer client.

        Args:
            base_url: Queuer URL. Defaults to URL_MANTRIFY01QUEUER.
            timeout: Request timeout in seconds. Defaults to QUEUER_TIMEOUT_S.
            max_attempts: Attempts for requests that failed to connect
            retry_backoff: Exponential backoff multiplier in seconds (0 disables waiting)
            transport: Optional httpx transport (used by tests)
        """
        settings = get_app_settings()
        url = base_url if base_url is not None else settings.queuer_url
        self.base_url = url.rstrip("/") if url else None
        self.timeout = timeout or settings.queuer_timeout_s
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self._transport = transport

    async def submit(self, kind: str, user_id: int, elements: List[Dict[str, Any]]) -> QueuerSubmission:
        """
        Submit a rendering job.

        Args:
            kind: Job family, used as the path segment ("mantras")
            user_id: Owner of the job
            elements: Ordered mantra elements (text, pause, sound_file)

        Returns:
            QueuerSubmission with the queue ID and final file path

        Raises:
            AppError: Queuer URL not configured
            QueuerError: Queuer unreachable, returned an error, or reported failure
        """
        if not self.base_url:
            raise AppError(ErrorCode.INTERNAL_ERROR, "Queuer URL not configured", 500)

        endpoint = f"{self.base_url}/{kind}/new"
        body = {"userId": user_id, f"{kind.rstrip('s')}Array": elements}

        logger.info(f"📤 Submitting {kind} job for user {user_id} with {len(elements)} elements")
        logger.debug(f"Queuer request to {endpoint}: {body}")

        try:
            response = await self._post(endpoint, body)
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to communicate with queuer at {endpoint}: {type(e).__name__}: {e}")
            raise QueuerError("Failed to communicate with queuer service", 500, str(e)) from e

        if not response.is_success:
            logger.error(f"❌ Queuer returned error ({response.status_code}): {response.text[:200]}")
            raise QueuerError("Queuer service returned an error", response.status_code, response.text)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict) or not isinstance(data.get("success"), bool):
            logger.error(f"❌ Queuer returned invalid response format: {response.text[:200]}")
            raise QueuerError("Invalid response format from queuer service", 500, response.text)

        if not data["success"]:
            message = data.get("message") or f"Queuer failed to process {kind.rstrip('s')}"
            logger.error(f"❌ Queuer reported failure: {message}")
            raise QueuerError(message, 500, data)

        submission = QueuerSubmission(
            queue_id=data.get("queueId"),
            file_path=data.get("finalFilePath"),
            message=data.get("message"),
        )
        logger.info(
            f"✅ Queuer accepted {kind} job for user {user_id}: "
            f"queueId={submission.queue_id}, file={submission.file_path}"
        )
        return submission

    async def _post(self, endpoint: str, body: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_backoff, min=self.retry_backoff, max=10),
                retry=retry_if_exception_type(httpx.ConnectError),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"⚠️ Retrying queuer request (attempt {attempt.retry_state.attempt_number}"
                            f"/{self.max_attempts})"
                        )
                    return await client.post(endpoint, json=body)


# Global client instance (lazy-loaded)
_queuer_client: Optional[QueuerClient] = None


def get_queuer_client() -> QueuerClient:
    """Get or create the global queuer client instance."""
    global _queuer_client
    if _queuer_client is None:
        _queuer_client = QueuerClient()
    return _queuer_client
