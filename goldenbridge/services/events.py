"""
In-process domain events.

Services publish an event *after* their own commit; subscribers run
synchronously in the same app context. A failing subscriber is logged
and skipped: events are a side channel and never fail the write that
produced them.

Usage:
    @subscribe("audit.record")
    def persist(actor_id, action, ...):
        ...

    publish("audit.record", actor_id=1, action="EDIT_EXPENSE", ...)
"""

import logging
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)

# Event name → ordered list of handlers
_subscribers: dict[str, list[Callable]] = defaultdict(list)


def subscribe(event: str):
    """Decorator registering a handler for *event*.

    Registering the same function twice is a no-op.
    """
    def decorator(fn: Callable) -> Callable:
        if fn not in _subscribers[event]:
            _subscribers[event].append(fn)
        return fn
    return decorator


def get_subscribers(event: str) -> list[Callable]:
    """Return the handlers registered for *event*."""
    return list(_subscribers.get(event, []))


def publish(event: str, **payload) -> int:
    """Deliver *payload* to every handler of *event*.

    Returns the number of handlers that completed without raising.
    """
    delivered = 0
    for handler in get_subscribers(event):
        try:
            handler(**payload)
            delivered += 1
        except Exception:
            logger.exception("Event handler %s failed for %s", handler.__name__, event)
    if not delivered and not _subscribers.get(event):
        logger.debug("No subscribers for event %s", event)
    return delivered
