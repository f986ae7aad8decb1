from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from medledger.errors import MedLedgerError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusEvent:
    """One line of the linear status stream shown to the user."""

    operation: str  # submit | grant | revoke | check | fetch | connect
    state: str
    message: str
    stage: Optional[str] = None
    error: Optional[MedLedgerError] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


StatusListener = Callable[[StatusEvent], None]


class StatusStream:
    """Fan-out of status events; remembers the most recent one."""

    def __init__(self, listener: Optional[StatusListener] = None):
        self._listeners: List[StatusListener] = [listener] if listener else []
        self.last: Optional[StatusEvent] = None

    def subscribe(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def emit(self, event: StatusEvent) -> None:
        self.last = event
        if event.error is not None:
            logger.error(f"[{event.operation}] {event.message}")
        else:
            logger.info(f"[{event.operation}] {event.message}")
        for listener in self._listeners:
            listener(event)
