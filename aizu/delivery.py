"""
Delivery Engine.

Sends batches to the events endpoint, classifies failures and retries
transient ones with exponential backoff. `send()` always returns a
`DeliveryResult`; nothing raised while delivering escapes it.
"""

import asyncio
import inspect
import json
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from aizu import __version__
from aizu.config import AizuConfig, Endpoints
from aizu.exceptions import TerminalDeliveryError, TransientDeliveryError
from aizu.logger import get_logger
from aizu.models import (
    AizuResponse,
    DeliveryOutcome,
    DeliveryResult,
    Event,
    FailureCategory,
    RemoteSettings,
)


logger = get_logger(__name__)

DeliveryCallback = Callable[[DeliveryResult], Union[None, Awaitable[None]]]


class DeliveryEngine:
    """
    HTTP delivery with retry support.

    Features:
    - Bearer-authenticated JSON requests over a shared httpx client
    - Client errors (4xx, in-band rejections) are terminal
    - Server errors, network failures and timeouts are retried with
      exponential backoff and jitter, then dropped
    - Success and failure callbacks for observability
    """

    # Jitter added on top of each backoff delay, as a fraction of it
    RETRY_JITTER = 0.1

    def __init__(
        self,
        config: AizuConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.config = config
        self._http_client = http_client
        self._owns_client = http_client is None
        self._sleep = sleep

        # Callbacks
        self._on_delivery_success: List[DeliveryCallback] = []
        self._on_delivery_failure: List[DeliveryCallback] = []

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
            "User-Agent": f"aizu-python/{__version__}",
        }

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=False,
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client if this engine created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def on_delivery_success(self, callback: DeliveryCallback) -> None:
        self._on_delivery_success.append(callback)

    def on_delivery_failure(self, callback: DeliveryCallback) -> None:
        self._on_delivery_failure.append(callback)

    # Settings

    async def fetch_settings(self) -> RemoteSettings:
        """
        Read the project settings.

        Raises:
            DeliveryError: If the request fails or is rejected
        """
        client = await self._ensure_client()
        url = self.config.base_url + Endpoints.SETTINGS
        try:
            response = await client.get(url, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Network error: {e}")

        self._raise_for_status(response)
        data = self._parse_body(response)
        return RemoteSettings.model_validate(data.get("settings") or {})

    # Events

    async def send(self, events: List[Event], single: bool = False) -> DeliveryResult:
        """
        Deliver a batch of events.

        Args:
            events: Events in submission order
            single: Send the sole event as a bare object instead of an array

        Returns:
            SUCCESS once the endpoint accepts the batch, EXHAUSTED after a
            terminal failure or once retries run out.
        """
        if not events:
            return DeliveryResult(outcome=DeliveryOutcome.SUCCESS, event_count=0, attempts=0)

        if single and len(events) == 1:
            payload: Any = events[0].to_payload()
        else:
            payload = [event.to_payload() for event in events]

        try:
            body = json.dumps(payload, separators=(",", ":"), allow_nan=False)
        except (TypeError, ValueError) as e:
            result = DeliveryResult(
                outcome=DeliveryOutcome.EXHAUSTED,
                event_count=len(events),
                attempts=0,
                category=FailureCategory.CLIENT,
                error_message=f"Unserializable batch: {e}",
            )
            logger.info("batch_dropped", reason=result.error_message, events=len(events))
            await self._notify(result)
            return result

        result = await self._deliver_with_retry(body, len(events))
        await self._notify(result)
        return result

    async def _deliver_with_retry(self, body: str, event_count: int) -> DeliveryResult:
        """Deliver a serialized batch with retry logic."""
        max_attempts = self.config.max_retries + 1
        last_error: Optional[TransientDeliveryError] = None

        for attempt_num in range(1, max_attempts + 1):
            try:
                status_code, response = await self._deliver(body)
            except TerminalDeliveryError as e:
                logger.info(
                    "batch_rejected",
                    attempt=attempt_num,
                    category=FailureCategory.CLIENT.value,
                    status_code=e.status_code,
                    error=e.message,
                    outcome=DeliveryOutcome.EXHAUSTED.value,
                )
                return DeliveryResult(
                    outcome=DeliveryOutcome.EXHAUSTED,
                    event_count=event_count,
                    attempts=attempt_num,
                    status_code=e.status_code,
                    category=FailureCategory.CLIENT,
                    error_message=e.message,
                )
            except TransientDeliveryError as e:
                last_error = e
                logger.debug(
                    "delivery_attempt_failed",
                    attempt=attempt_num,
                    max_attempts=max_attempts,
                    category=FailureCategory.TRANSIENT.value,
                    status_code=e.status_code,
                    error=e.message,
                )
                if attempt_num < max_attempts:
                    delay = self._calculate_retry_delay(attempt_num)
                    logger.debug("delivery_retry_scheduled", attempt=attempt_num, delay_seconds=delay)
                    await self._sleep(delay)
                continue

            logger.debug(
                "batch_delivered",
                attempt=attempt_num,
                events=event_count,
                outcome=DeliveryOutcome.SUCCESS.value,
            )
            return DeliveryResult(
                outcome=DeliveryOutcome.SUCCESS,
                event_count=event_count,
                attempts=attempt_num,
                status_code=status_code,
                response=response,
            )

        logger.info(
            "batch_exhausted",
            attempts=max_attempts,
            category=FailureCategory.TRANSIENT.value,
            status_code=last_error.status_code if last_error else None,
            error=last_error.message if last_error else None,
            outcome=DeliveryOutcome.EXHAUSTED.value,
            events=event_count,
        )
        return DeliveryResult(
            outcome=DeliveryOutcome.EXHAUSTED,
            event_count=event_count,
            attempts=max_attempts,
            status_code=last_error.status_code if last_error else None,
            category=FailureCategory.TRANSIENT,
            error_message=last_error.message if last_error else None,
        )

    async def _deliver(self, body: str) -> Tuple[int, AizuResponse]:
        """
        Perform a single delivery attempt.

        Raises:
            TransientDeliveryError: 5xx, network failure or timeout
            TerminalDeliveryError: 4xx or in-band rejection
        """
        client = await self._ensure_client()
        url = self.config.base_url + Endpoints.EVENTS

        try:
            response = await client.post(url, content=body, headers=self._get_headers())
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"Request timeout: {e}")
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Network error: {e}")
        except Exception as e:
            logger.exception("delivery_unexpected_error", error=str(e))
            raise TransientDeliveryError(f"Delivery error: {e}")

        self._raise_for_status(response)
        data = self._parse_body(response)
        if data.get("success") is False:
            raise TerminalDeliveryError(
                str(data.get("message") or "Rejected by endpoint"),
                status_code=response.status_code,
            )
        try:
            body_model = AizuResponse.model_validate(data)
        except PydanticValidationError:
            body_model = AizuResponse()
        return response.status_code, body_model

    @staticmethod
    def _parse_body(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _raise_for_status(self, response: httpx.Response) -> None:
        status_code = response.status_code
        if 200 <= status_code < 300:
            return

        message = str(self._parse_body(response).get("message") or f"HTTP {status_code}")
        if status_code >= 500:
            raise TransientDeliveryError(message, status_code=status_code)
        raise TerminalDeliveryError(message, status_code=status_code)

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate retry delay in seconds using exponential backoff."""
        # Exponential backoff: base * 2^(attempt-1)
        delay = self.config.retry_base_delay * (2 ** (attempt - 1))

        # Add jitter (up to 10%)
        jitter = delay * random.uniform(0, self.RETRY_JITTER)

        return min(delay + jitter, self.config.retry_max_delay) / 1000.0

    async def _notify(self, result: DeliveryResult) -> None:
        callbacks = self._on_delivery_success if result.success else self._on_delivery_failure
        for callback in callbacks:
            try:
                outcome = callback(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("delivery_callback_failed", error=str(e))
