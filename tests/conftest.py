"""Shared pytest fixtures for testing."""

from typing import AsyncGenerator, List

import httpx
import pytest
import pytest_asyncio
import respx

from aizu import Aizu, AizuConfig
from aizu.models import DeliveryOutcome, DeliveryResult, Event, EventType


API_KEY = "pk_test_123456789"
API_URL = "https://us.aizu.io"


class FakeClock:
    """Controllable wall clock in seconds."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingEngine:
    """Stands in for DeliveryEngine and records every batch."""

    def __init__(self, outcome: DeliveryOutcome = DeliveryOutcome.SUCCESS):
        self.outcome = outcome
        self.batches: List[List[Event]] = []
        self.single_flags: List[bool] = []

    async def send(self, events, single=False) -> DeliveryResult:
        self.batches.append(list(events))
        self.single_flags.append(single)
        return DeliveryResult(outcome=self.outcome, event_count=len(events), attempts=1)


def make_event(name: str = "test_event", **overrides) -> Event:
    fields = {
        "type": EventType.CUSTOM,
        "api_key": API_KEY,
        "href": "https://example.com",
        "anonymous_id": "a_test",
        "session_id": "s_test",
        "properties": {"event_name": name},
    }
    fields.update(overrides)
    return Event(**fields)


def ok_response(message: str = "Event received") -> httpx.Response:
    return httpx.Response(200, json={"success": True, "message": message})


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> AizuConfig:
    """Configuration with batching off and no retry delay."""
    return AizuConfig(
        api_key=API_KEY,
        api_url=API_URL,
        enable_batching=False,
        retry_base_delay=0,
    )


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def mock_api():
    """Mock the collection API. Routes are named ``events`` and ``settings``."""
    with respx.mock(base_url=API_URL, assert_all_called=False) as router:
        router.post("/v1/events", name="events").mock(return_value=ok_response())
        router.get("/v1/settings", name="settings").mock(
            return_value=httpx.Response(
                200,
                json={
                    "success": True,
                    "settings": {
                        "autocapture_frontend_interactions": True,
                        "enable_heatmaps": False,
                        "enable_web_vitals_autocapture": False,
                        "cookieless_server_hash_mode": False,
                        "bounce_rate_duration": 10,
                    },
                },
            )
        )
        yield router


# =============================================================================
# Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def aizu(mock_api, clock) -> AsyncGenerator[Aizu, None]:
    """Client sending every event immediately."""
    client = Aizu(
        api_key=API_KEY,
        api_url=API_URL,
        enable_batching=False,
        retry_base_delay=0,
        clock=clock,
    )
    yield client
    await client.close(flush=False)


@pytest_asyncio.fixture
async def batching_aizu(mock_api, clock) -> AsyncGenerator[Aizu, None]:
    """Client batching three events, with a flush timer too slow to fire."""
    client = Aizu(
        api_key=API_KEY,
        api_url=API_URL,
        enable_batching=True,
        batch_size=3,
        flush_interval=10000,
        retry_base_delay=0,
        clock=clock,
    )
    yield client
    await client.close(flush=False)
