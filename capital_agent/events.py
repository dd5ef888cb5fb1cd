"""Thread-safe event bus for agent lifecycle and phase events."""

import logging
import threading
from collections import defaultdict, deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional

from capital_agent.schemas.event import AgentEventV1

logger = logging.getLogger(__name__)

EventHandler = Callable[[AgentEventV1], None]

WILDCARD = "*"


class EventBus:
    """
    Publish/subscribe event stream.

    Handlers run on the emitting thread, outside the bus lock. A handler that
    raises is logged and skipped; it never breaks the emitter or other handlers.

    Example:
        >>> bus = EventBus()
        >>> seen = []
        >>> bus.subscribe("agentCreated", seen.append)
        >>> bus.emit("agentCreated", agent_id="a1")
        >>> seen[0].agent_id
        'a1'
    """

    def __init__(self, history_size: int = 1000, clock: Optional[Callable[[], datetime]] = None):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)
        self._history: Deque[AgentEventV1] = deque(maxlen=history_size)
        self._clock = clock or datetime.now
        self.lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event_type`` (or ``"*"`` for all events)."""
        with self.lock:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler) -> None:
        with self.lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def emit(
        self,
        event_type: str,
        agent_id: Optional[str] = None,
        decision_id: Optional[str] = None,
        **data: Any,
    ) -> AgentEventV1:
        """
        Build and publish an event.

        Args:
            event_type: One of EventType
            agent_id: Agent the event concerns
            decision_id: Decision the event concerns
            **data: Free-form event data

        Returns:
            The published event
        """
        event = AgentEventV1(
            event_type=event_type,
            agent_id=agent_id,
            decision_id=decision_id,
            timestamp=self._clock(),
            data=data,
        )
        with self.lock:
            self._history.append(event)
            handlers = list(self._handlers.get(event_type, [])) + list(
                self._handlers.get(WILDCARD, [])
            )

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler failed for {event_type}: {e}", exc_info=True)
        return event

    def history(
        self, event_type: Optional[str] = None, agent_id: Optional[str] = None
    ) -> List[AgentEventV1]:
        """Return recorded events, optionally filtered, oldest first."""
        with self.lock:
            events = list(self._history)
        if event_type is not None:
            events = [e for e in events if e.event_type == event_type]
        if agent_id is not None:
            events = [e for e in events if e.agent_id == agent_id]
        return events
