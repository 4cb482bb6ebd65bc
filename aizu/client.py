"""
Main client for the Aizu event pipeline.

`Aizu` composes the identity store, sanitizer, batch queue and delivery
engine behind the public tracking surface. Tracking calls are best-effort:
once their arguments pass validation they never raise, and delivery
failures are only visible through logs and delivery callbacks.
"""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from aizu.config import API_KEY_ENV_VAR, API_URL_ENV_VAR, AizuConfig, Limits
from aizu.context import ContextProvider, StaticContextProvider
from aizu.delivery import DeliveryCallback, DeliveryEngine
from aizu.exceptions import ValidationError
from aizu.identity import IdentityStore
from aizu.logger import configure_logging, get_logger
from aizu.models import DeliveryResult, Event, EventType, RemoteSettings
from aizu.queue import BatchQueue
from aizu.sanitizer import sanitize_properties, split_required, truncate_url
from aizu.storage import StorageInterface


logger = get_logger(__name__)

Properties = Optional[Mapping[str, Any]]


class Aizu:
    """
    Client for the Aizu collection API.

    Args:
        api_key: Publishable key. Falls back to AIZU_PUBLISHABLE_KEY when
            omitted.
        api_url: Collection API base URL. Falls back to AIZU_API_URL when
            omitted.
        config: A complete configuration, used instead of the arguments above
        storage: Backend persisting anonymous and session ids
        context_provider: Source of the current page URL, title and referrer
        http_client: httpx client to send requests with (not closed by Aizu)
        clock: Wall-clock source in seconds
        **options: Any other `AizuConfig` field

    Raises:
        ConfigurationError: If the key or URL is missing or malformed

    Example:
        >>> async with Aizu(api_key="pk_live_123", api_url="https://us.aizu.io") as aizu:
        ...     await aizu.init()
        ...     await aizu.track("signup_completed", {"plan": "pro"})
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        *,
        config: Optional[AizuConfig] = None,
        storage: Optional[StorageInterface] = None,
        context_provider: Optional[ContextProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        **options: Any,
    ) -> None:
        if config is None:
            config = AizuConfig(
                api_key=api_key if api_key is not None else os.environ.get(API_KEY_ENV_VAR, ""),
                api_url=api_url if api_url is not None else os.environ.get(API_URL_ENV_VAR, ""),
                **options,
            )
        config.validate()
        self.config = config

        configure_logging(config.debug)

        self._clock = clock
        self._context = context_provider or StaticContextProvider()
        self._identity = IdentityStore(
            storage=storage,
            session_timeout=config.session_timeout,
            clock=clock,
        )
        self._engine = DeliveryEngine(config, http_client=http_client)
        self._queue = BatchQueue(
            self._engine,
            batch_size=config.batch_size,
            flush_interval=config.flush_interval,
            enable_batching=config.enable_batching,
        )

        self._initialized = False
        self._closed = False
        self._settings: Optional[RemoteSettings] = None
        self._last_pageviews: Dict[str, float] = {}

        # Identity exists from construction on
        self._identity.get_anonymous_id()
        self._identity.get_session_id()

        # Runs only when constructed inside an event loop; otherwise the
        # first async call starts it
        self._queue.start_timer()

        logger.debug(
            "client_created",
            api_url=config.base_url,
            batching=config.enable_batching,
            batch_size=config.batch_size,
        )

    async def __aenter__(self) -> "Aizu":
        self._queue.start_timer()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def init(self) -> None:
        """
        Fetch remote settings and start background flushing.

        Only the first call does any work. A failed settings fetch is logged
        and ignored; tracking works without settings.
        """
        if self._initialized or self._closed:
            return
        self._initialized = True
        self._queue.start_timer()

        try:
            self._settings = await self._engine.fetch_settings()
        except Exception as e:
            logger.info("settings_fetch_failed", error=str(e))
        else:
            logger.debug("settings_loaded", settings=self._settings.model_dump())

    async def close(self, flush: bool = True) -> None:
        """
        Stop the flush timer, send what is queued and release the HTTP client.

        Tracking calls made after close are logged and dropped.
        """
        if self._closed:
            return
        self._closed = True
        await self._queue.stop_timer()
        if flush:
            await self._queue.flush()
        await self._engine.close()
        logger.debug("client_closed")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def get_settings(self) -> Optional[RemoteSettings]:
        """Settings loaded by `init()`, or None if unavailable."""
        return self._settings

    # =========================================================================
    # Tracking
    # =========================================================================

    async def pageview(self, properties: Properties = None) -> None:
        """
        Track a page view.

        ``url``, ``title`` and ``referrer`` in `properties` override the
        context provider. A second pageview of the same URL within three
        seconds of the last accepted one is dropped.
        """
        custom = dict(properties or {})
        context = self._context.current()
        url = custom.pop("url", None) or context.url
        title = custom.pop("title", None) or context.title
        referrer = custom.pop("referrer", None) or context.referrer
        href = truncate_url(url)

        if self._is_duplicate_pageview(href):
            logger.debug("pageview_deduplicated", href=href)
            return

        required: Dict[str, Any] = {
            "page_title": title or "",
            "referrer": truncate_url(referrer),
        }
        if context.viewport:
            required["viewport"] = context.viewport

        event = self._build_event(EventType.PAGEVIEW, custom, required, href=href)
        await self._enqueue(event)

    async def track(self, event_name: str, properties: Properties = None) -> None:
        """Track a custom event."""
        self._require(event_name, "Event name is required.")
        event = self._build_event(EventType.CUSTOM, properties, {"event_name": event_name})
        await self._enqueue(event)

    async def identify(self, user_id: str, properties: Properties = None) -> None:
        """
        Associate the anonymous visitor with a known user.

        Legacy ``email`` and ``name`` properties are sent as ``$email`` and
        ``$full_name``.
        """
        self._require(user_id, "User ID is required.")
        event = self._build_event(EventType.IDENTIFY, properties, {"$user_id": user_id})
        await self._enqueue(event)

    async def group_identify(self, group_id: str, properties: Properties = None) -> None:
        """Associate the visitor with a group such as a company or team."""
        self._require(group_id, "Group ID is required.")
        event = self._build_event(EventType.GROUP_IDENTIFY, properties, {"group_id": group_id})
        await self._enqueue(event)

    async def track_batch(self, events: Iterable[Union[Event, Mapping[str, Any]]]) -> List[DeliveryResult]:
        """
        Enqueue pre-built events and flush immediately.

        Events may be `Event` instances or mappings using the wire field
        names. They are sanitized like any other event and sent in requests
        of at most 1000 events.

        Raises:
            ValidationError: If a mapping is not a valid event
        """
        prepared = [self._prepare_prebuilt(item) for item in events]
        if self._closed:
            logger.warning("events_dropped_after_close", events=len(prepared))
            return []
        try:
            return await self._queue.enqueue_many(prepared)
        except Exception as e:
            logger.exception("track_batch_failed", error=str(e))
            return []

    async def flush(self) -> List[DeliveryResult]:
        """Send all queued events now."""
        if self._closed:
            return []
        self._queue.start_timer()
        try:
            return await self._queue.flush()
        except Exception as e:
            logger.exception("flush_failed", error=str(e))
            return []

    def get_batch_size(self) -> int:
        """Number of events waiting in the queue."""
        return self._queue.size()

    # =========================================================================
    # Identity
    # =========================================================================

    def get_session_id(self) -> str:
        return self._identity.get_session_id()

    def reset_session(self) -> str:
        return self._identity.reset_session()

    def get_anonymous_id(self) -> str:
        return self._identity.get_anonymous_id()

    def reset_anonymous_id(self) -> str:
        return self._identity.reset_anonymous_id()

    # =========================================================================
    # Delivery callbacks
    # =========================================================================

    def on_delivery_success(self, callback: DeliveryCallback) -> None:
        """Register a callback receiving each successful `DeliveryResult`."""
        self._engine.on_delivery_success(callback)

    def on_delivery_failure(self, callback: DeliveryCallback) -> None:
        """Register a callback receiving each dropped batch's `DeliveryResult`."""
        self._engine.on_delivery_failure(callback)

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _require(value: Any, message: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=timezone.utc)

    def _build_event(
        self,
        event_type: EventType,
        properties: Properties,
        required: Mapping[str, Any],
        href: Optional[str] = None,
    ) -> Event:
        if href is None:
            href = truncate_url(self._context.current().url)
        return Event(
            type=event_type,
            api_key=self.config.api_key,
            href=href,
            anonymous_id=self._identity.get_anonymous_id(),
            session_id=self._identity.get_session_id(),
            properties=sanitize_properties(properties, required, event_type=event_type),
            timestamp=self._now(),
        )

    def _prepare_prebuilt(self, item: Union[Event, Mapping[str, Any]]) -> Event:
        if isinstance(item, Event):
            event = item
        else:
            try:
                event = Event.model_validate(item)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid event: {e}") from e
        custom, required = split_required(event.properties, event.type)
        return event.model_copy(
            update={
                "href": truncate_url(event.href),
                "properties": sanitize_properties(custom, required, event_type=event.type),
            }
        )

    def _is_duplicate_pageview(self, href: str) -> bool:
        """Check and record a pageview against the de-duplication window."""
        now = self._clock()
        window = Limits.PAGEVIEW_DEDUP_SECONDS

        last = self._last_pageviews.get(href)
        if last is not None and now - last < window:
            return True

        # Drop stale entries so the map stays bounded
        self._last_pageviews = {
            url: seen for url, seen in self._last_pageviews.items() if now - seen < window
        }
        self._last_pageviews[href] = now
        return False

    async def _enqueue(self, event: Event) -> None:
        if self._closed:
            logger.warning("event_dropped_after_close", event_type=event.type.value)
            return
        try:
            await self._queue.enqueue(event)
        except Exception as e:
            logger.exception("enqueue_failed", event_type=event.type.value, error=str(e))
