"""
Property-changed notifications: the subscribe/publish contract.

Every parent -> child relay is an explicit Subscription created when the
child is wired and unsubscribed when the owning slot is overwritten, cleared
or removed. Nothing relies on garbage collection to stop notifications.

Handlers are called synchronously as ``handler(sender, property_name)``.
"""
import logging
from typing import Any, Callable, List, Optional

logger = logging.getLogger(__name__)

# Meta-properties published alongside every tracked write
CHANGE_TRACKING_STATUS = "ChangeTrackingStatus"
CHANGED_PROPERTIES = "ChangedProperties"

# Published by a tracked collection when its contents (or an element) change
ITEMS_PROPERTY = "Item[]"

PropertyChangedHandler = Callable[[Any, str], None]


class Subscription:
    """Handle for one handler attached to a publisher.

    unsubscribe() is idempotent. The subscription is also callable and usable
    as a context manager, both of which unsubscribe.
    """

    def __init__(self, publisher: 'PropertyChangedPublisher', handler: PropertyChangedHandler):
        self._publisher: Optional['PropertyChangedPublisher'] = publisher
        self._handler = handler

    @property
    def active(self) -> bool:
        return self._publisher is not None

    @property
    def handler(self) -> PropertyChangedHandler:
        return self._handler

    def unsubscribe(self) -> None:
        if self._publisher is None:
            return
        self._publisher.unsubscribe(self._handler)
        self._publisher = None

    def __call__(self) -> None:
        self.unsubscribe()

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {state} handler={getattr(self._handler, '__qualname__', self._handler)!r}>"


class PropertyChangedPublisher:
    """Ordered handler list for one sender.

    Publishing is best-effort per handler: an exception in one handler is
    logged and the remaining handlers still run.
    """

    def __init__(self, sender: Any):
        self._sender = sender
        self._handlers: List[PropertyChangedHandler] = []
        # Names currently being published, innermost last
        self._publishing: List[str] = []

    @property
    def is_publishing(self) -> bool:
        """True while a publish() call on this publisher is on the stack."""
        return bool(self._publishing)

    def is_publishing_name(self, property_name: str) -> bool:
        """True while a publish() of ``property_name`` on this publisher is on the stack."""
        return property_name in self._publishing

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: PropertyChangedHandler) -> Subscription:
        """Attach ``handler``. Subscribing the same handler twice attaches it once."""
        if handler not in self._handlers:
            self._handlers.append(handler)
        return Subscription(self, handler)

    def unsubscribe(self, handler: PropertyChangedHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def publish(self, property_name: str) -> None:
        """Fire all handlers for ``property_name`` in subscription order."""
        self._publishing.append(property_name)
        try:
            for handler in list(self._handlers):
                try:
                    handler(self._sender, property_name)
                except Exception as e:
                    logger.warning(f"Error in property-changed handler for {property_name!r}: {e}")
        finally:
            self._publishing.pop()

    def publish_all(self, *property_names: str) -> None:
        for name in property_names:
            self.publish(name)


def make_relay(publisher: PropertyChangedPublisher, holder_name: str) -> PropertyChangedHandler:
    """Build the handler that republishes a child's changes on ``publisher``.

    Regular child notifications are republished as ``holder_name``,
    ChangeTrackingStatus as ChangeTrackingStatus; ChangedProperties is not
    relayed.

    Each relay is one parent -> child edge. A notification is dropped when
    this edge is already relaying (it came back around a cycle) or when the
    parent is already publishing the same name further up the stack. Writes
    made by handlers while the parent publishes something else still relay.
    """
    in_flight = False

    def relay(sender: Any, changed: str) -> None:
        nonlocal in_flight
        if in_flight or changed == CHANGED_PROPERTIES:
            return
        relayed = CHANGE_TRACKING_STATUS if changed == CHANGE_TRACKING_STATUS else holder_name
        if publisher.is_publishing_name(relayed):
            return
        in_flight = True
        try:
            publisher.publish(relayed)
        finally:
            in_flight = False

    return relay
