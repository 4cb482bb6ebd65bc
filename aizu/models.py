"""
Aizu Python SDK - Data Models

Wire models are pydantic models serialized with the collection API's
camelCase field names. Delivery bookkeeping uses plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class EventType(str, Enum):
    """Kinds of events accepted by the collection API."""
    PAGEVIEW = "pageview"
    CUSTOM = "custom"
    IDENTIFY = "identify"
    GROUP_IDENTIFY = "group_identify"


class DeliveryOutcome(str, Enum):
    """Terminal outcome of sending one batch."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class FailureCategory(str, Enum):
    """Classification of a failed delivery attempt."""
    CLIENT = "client"
    TRANSIENT = "transient"


# =============================================================================
# Wire models
# =============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    """A single sanitized event. Immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: EventType
    api_key: str = Field(alias="apiKey")
    href: str = ""
    anonymous_id: str = Field(alias="anonymousId")
    session_id: str = Field(alias="sessionId")
    properties: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready representation using wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class AizuResponse(BaseModel):
    """Body returned by the events endpoint."""

    model_config = ConfigDict(extra="allow")

    success: bool = True
    message: str = ""


class RemoteSettings(BaseModel):
    """Project settings served by the settings endpoint."""

    model_config = ConfigDict(extra="allow")

    autocapture_frontend_interactions: bool = False
    enable_heatmaps: bool = False
    enable_web_vitals_autocapture: bool = False
    cookieless_server_hash_mode: bool = False
    bounce_rate_duration: Optional[int] = None


# =============================================================================
# Delivery results
# =============================================================================

@dataclass
class DeliveryResult:
    """Result of sending a batch, after any retries."""
    outcome: DeliveryOutcome
    event_count: int
    attempts: int
    status_code: Optional[int] = None
    category: Optional[FailureCategory] = None
    error_message: Optional[str] = None
    response: Optional[AizuResponse] = None

    @property
    def success(self) -> bool:
        return self.outcome == DeliveryOutcome.SUCCESS


def chunk_events(events: List[Event], size: int) -> List[List[Event]]:
    """Split events into consecutive, order-preserving chunks."""
    return [events[i:i + size] for i in range(0, len(events), size)]
