"""
Run events.

Every controller state transition is published as a ScribeEvent on the
run's own EventBus. Subscribers (the CLI's debug logger, tests) observe
the run; they can never change it.
"""

import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from changescribe.errors import ErrorKind
from changescribe.models import RunState


class ScribeEvent(BaseModel):
    """One state transition of a controller run."""
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    branch: Optional[str] = None
    from_state: Optional[RunState] = None
    to_state: RunState
    ticket: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    url: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.to_state.terminal

    def describe(self) -> str:
        start = self.from_state.value if self.from_state else "start"
        line = f"{self.branch or '?'}: {start} → {self.to_state.value}"
        if self.error_kind:
            line += f" ({self.error_kind.value})"
        if self.url:
            line += f" {self.url}"
        return line


class EventBus:
    """A lightweight, synchronous event bus. One per controller run."""

    def __init__(self):
        self._subscribers: List[Callable[[ScribeEvent], None]] = []

    def subscribe(self, callback: Callable[[ScribeEvent], None]) -> None:
        """Register a callback to be executed when an event is emitted."""
        self._subscribers.append(callback)

    def emit(self, event: ScribeEvent) -> ScribeEvent:
        """Broadcast an event to all subscribers, in subscription order."""
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                # A failing subscriber must not stop the pipeline
                logger.warning(f"[EVENTS] Subscriber failed on {event.to_state.value}: {e}")

        return event
