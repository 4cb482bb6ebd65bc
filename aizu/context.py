"""Page context supplied by the host environment."""

from dataclasses import dataclass, replace
from typing import Optional, Protocol


@dataclass(frozen=True)
class PageContext:
    """Where the user currently is."""
    url: str = ""
    referrer: str = ""
    title: str = ""
    viewport: Optional[str] = None


class ContextProvider(Protocol):
    """Anything that can report the current page context."""

    def current(self) -> PageContext:
        ...


class StaticContextProvider:
    """
    Context provider backed by a mutable snapshot.

    Server-side and CLI hosts have no browser to probe, so they update the
    snapshot themselves as the user navigates.
    """

    def __init__(self, context: Optional[PageContext] = None):
        self._context = context or PageContext()

    def current(self) -> PageContext:
        return self._context

    def update(self, **changes) -> PageContext:
        self._context = replace(self._context, **changes)
        return self._context
