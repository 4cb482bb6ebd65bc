"""
Aizu Python SDK

Client-side event pipeline for the Aizu analytics platform: pageviews,
custom events and identity calls are sanitized, batched and delivered to
the collection API with retries, without blocking the application.

Quick Start:

    import asyncio
    from aizu import Aizu

    async def main():
        async with Aizu(api_key="pk_live_123", api_url="https://us.aizu.io") as aizu:
            await aizu.init()
            await aizu.pageview({"url": "https://example.com/pricing"})
            await aizu.track("plan_selected", {"plan": "pro"})
            await aizu.identify("user_123", {"email": "jane@example.com"})

    asyncio.run(main())

"""

__version__ = "1.0.0"

from aizu.client import Aizu
from aizu.config import AizuConfig, Endpoints, Limits
from aizu.context import ContextProvider, PageContext, StaticContextProvider
from aizu.delivery import DeliveryEngine
from aizu.exceptions import (
    AizuError,
    ConfigurationError,
    DeliveryError,
    TerminalDeliveryError,
    TransientDeliveryError,
    ValidationError,
)
from aizu.identity import IdentityStore
from aizu.models import (
    AizuResponse,
    DeliveryOutcome,
    DeliveryResult,
    Event,
    EventType,
    FailureCategory,
    RemoteSettings,
)
from aizu.queue import BatchQueue
from aizu.sanitizer import sanitize_properties, truncate_url
from aizu.storage import JsonFileStorage, MemoryStorage, StorageInterface

__all__ = [
    # Client
    "Aizu",

    # Configuration
    "AizuConfig",
    "Endpoints",
    "Limits",

    # Components
    "BatchQueue",
    "DeliveryEngine",
    "IdentityStore",
    "sanitize_properties",
    "truncate_url",

    # Context
    "ContextProvider",
    "PageContext",
    "StaticContextProvider",

    # Storage
    "StorageInterface",
    "MemoryStorage",
    "JsonFileStorage",

    # Models
    "AizuResponse",
    "DeliveryOutcome",
    "DeliveryResult",
    "Event",
    "EventType",
    "FailureCategory",
    "RemoteSettings",

    # Exceptions
    "AizuError",
    "ConfigurationError",
    "DeliveryError",
    "TerminalDeliveryError",
    "TransientDeliveryError",
    "ValidationError",
]
