"""
Tests for the publish/subscribe primitives and the identity registry.

Tests cover:
- Subscription idempotence, context manager and call forms
- Handler ordering, de-duplication and best-effort delivery
- Relay edges between publishers
- IdentityRegistry lookups and weak values
"""
import gc
import logging

from changetracking.notifications import (
    CHANGE_TRACKING_STATUS,
    CHANGED_PROPERTIES,
    PropertyChangedPublisher,
    Subscription,
    make_relay,
)
from changetracking.registry import IdentityRegistry, is_wrapper, unwrap


class _Sender:
    pass


class _Wrapper:
    """Stand-in wrapper object (weak-referenceable)."""
    pass


class TestSubscription:
    """Subscription handles."""

    def test_unsubscribe_is_idempotent(self):
        """Calling unsubscribe twice is harmless."""
        publisher = PropertyChangedPublisher(_Sender())
        subscription = publisher.subscribe(lambda sender, name: None)

        subscription.unsubscribe()
        subscription.unsubscribe()

        assert not subscription.active
        assert publisher.handler_count == 0

    def test_call_unsubscribes(self):
        """A subscription can be called to unsubscribe."""
        publisher = PropertyChangedPublisher(_Sender())
        subscription = publisher.subscribe(lambda sender, name: None)

        subscription()

        assert publisher.handler_count == 0

    def test_context_manager(self):
        """A subscription unsubscribes when its with-block exits."""
        publisher = PropertyChangedPublisher(_Sender())
        received = []

        with publisher.subscribe(lambda sender, name: received.append(name)) as subscription:
            assert isinstance(subscription, Subscription)
            publisher.publish("inside")
        publisher.publish("outside")

        assert received == ["inside"]


class TestPublisher:
    """PropertyChangedPublisher delivery."""

    def test_handlers_called_in_order(self):
        """Handlers run in subscription order with (sender, name)."""
        sender = _Sender()
        publisher = PropertyChangedPublisher(sender)
        calls = []
        publisher.subscribe(lambda s, name: calls.append(("first", s, name)))
        publisher.subscribe(lambda s, name: calls.append(("second", s, name)))

        publisher.publish("Value")

        assert calls == [("first", sender, "Value"), ("second", sender, "Value")]

    def test_same_handler_attached_once(self):
        """Subscribing the same handler twice delivers once."""
        publisher = PropertyChangedPublisher(_Sender())
        calls = []

        def handler(sender, name):
            calls.append(name)

        publisher.subscribe(handler)
        publisher.subscribe(handler)
        publisher.publish("Value")

        assert calls == ["Value"]

    def test_publish_all(self):
        """publish_all publishes each name in order."""
        publisher = PropertyChangedPublisher(_Sender())
        calls = []
        publisher.subscribe(lambda sender, name: calls.append(name))

        publisher.publish_all("a", "b", "c")

        assert calls == ["a", "b", "c"]

    def test_is_publishing(self):
        """is_publishing is true only while handlers run."""
        publisher = PropertyChangedPublisher(_Sender())
        observed = []
        publisher.subscribe(lambda sender, name: observed.append(publisher.is_publishing))

        publisher.publish("Value")

        assert observed == [True]
        assert not publisher.is_publishing

    def test_handler_exception_logged(self, caplog):
        """A raising handler is logged at WARNING and later handlers still run."""
        publisher = PropertyChangedPublisher(_Sender())
        calls = []

        def broken(sender, name):
            raise ValueError("handler failed")

        publisher.subscribe(broken)
        publisher.subscribe(lambda sender, name: calls.append(name))

        with caplog.at_level(logging.WARNING, logger="changetracking.notifications"):
            publisher.publish("Value")

        assert calls == ["Value"]
        assert "handler failed" in caplog.text
        assert not publisher.is_publishing

    def test_unsubscribe_during_publish(self):
        """A handler may unsubscribe itself while being called."""
        publisher = PropertyChangedPublisher(_Sender())
        calls = []
        subscription = None

        def once(sender, name):
            calls.append(name)
            subscription.unsubscribe()

        subscription = publisher.subscribe(once)
        publisher.publish("a")
        publisher.publish("b")

        assert calls == ["a"]


class TestRelay:
    """Parent -> child relay edges."""

    def test_relays_holder_name(self):
        """Child names become the holder name; status passes through; ChangedProperties is dropped."""
        parent = PropertyChangedPublisher(_Sender())
        calls = []
        parent.subscribe(lambda sender, name: calls.append(name))
        relay = make_relay(parent, "Address")

        relay(None, "City")
        relay(None, CHANGE_TRACKING_STATUS)
        relay(None, CHANGED_PROPERTIES)

        assert calls == ["Address", CHANGE_TRACKING_STATUS]

    def test_relay_while_parent_publishes_other_name(self):
        """A child change made from a parent handler still reaches the parent."""
        parent = PropertyChangedPublisher(_Sender())
        relay = make_relay(parent, "Address")
        calls = []

        def handler(sender, name):
            calls.append(name)
            if name == "CustomerNumber":
                relay(None, "City")

        parent.subscribe(handler)
        parent.publish("CustomerNumber")

        assert calls == ["CustomerNumber", "Address"]

    def test_same_name_is_not_republished(self):
        """A relay does not re-enter a publish of the same name on the parent."""
        parent = PropertyChangedPublisher(_Sender())
        relay = make_relay(parent, "Address")
        calls = []

        def handler(sender, name):
            calls.append(name)
            relay(None, "City")

        parent.subscribe(handler)
        parent.publish("Address")

        assert calls == ["Address"]
        assert not parent.is_publishing_name("Address")

    def test_edge_in_flight_is_dropped(self):
        """A notification coming back around a cycle onto the same edge stops there."""
        parent = PropertyChangedPublisher(_Sender())
        relay = make_relay(parent, "Linked")
        calls = []

        def handler(sender, name):
            calls.append(name)
            if len(calls) < 5:
                relay(None, "Other")

        parent.subscribe(handler)
        relay(None, "Id")

        assert calls == ["Linked"]


class TestIdentityRegistry:
    """Identity-keyed wrapper registry."""

    def test_register_and_get(self):
        """Lookups go by identity, not equality."""
        registry = IdentityRegistry()
        obj, equal_obj = [1], [1]
        wrapper = _Wrapper()

        registry.register(obj, wrapper)

        assert registry.get(obj) is wrapper
        assert registry.get(equal_obj) is None
        assert obj in registry
        assert len(registry) == 1

    def test_get_none(self):
        assert IdentityRegistry().get(None) is None

    def test_wrappers_are_weak(self):
        """Unreachable wrappers drop out of the registry."""
        registry = IdentityRegistry()
        obj = _Sender()
        wrapper = _Wrapper()
        registry.register(obj, wrapper)

        del wrapper
        gc.collect()

        assert registry.get(obj) is None
        assert len(registry) == 0

    def test_overwrite_logs_warning(self, caplog):
        """Registering a second wrapper for the same object is logged."""
        registry = IdentityRegistry()
        obj, first, second = _Sender(), _Wrapper(), _Wrapper()
        registry.register(obj, first)

        with caplog.at_level(logging.WARNING, logger="changetracking.registry"):
            registry.register(obj, second)

        assert registry.get(obj) is second
        assert "Overwriting" in caplog.text

class TestUnwrap:
    """unwrap / is_wrapper on plain values."""

    def test_plain_values_pass_through(self):
        obj = _Sender()

        assert unwrap(obj) is obj
        assert unwrap(None) is None
        assert not is_wrapper(obj)
