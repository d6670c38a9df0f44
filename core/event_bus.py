from typing import Any, Callable, Dict, List
from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Event:
    topic: str
    payload: Any
    timestamp: datetime = field(default_factory=datetime.now)


class EventBus:
    """
    In-process publish/subscribe for session snapshots.
    Handlers run synchronously in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], None]]] = {}

    def subscribe(self, topic: str, handler: Callable[[Event], None]):
        if topic not in self._subscribers:
            self._subscribers[topic] = []
        self._subscribers[topic].append(handler)

    def unsubscribe(self, topic: str, handler: Callable[[Event], None]):
        handlers = self._subscribers.get(topic, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, topic: str, payload: Any):
        event = Event(topic=topic, payload=payload)
        for handler in list(self._subscribers.get(topic, [])):
            handler(event)
        for handler in list(self._subscribers.get("*", [])):
            handler(event)
