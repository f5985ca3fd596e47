"""
TrackableProxy: the interception layer around one underlying object.

The proxy stands in for the object it wraps. Reads pass through (returning
child wrappers for wired complex/collection properties), writes go through
``_set`` which:

1. rejects unknown names (PropertyNotFoundError) and incompatible values (TypeMismatchError)
2. ignores writes of an equal value
3. stores the value on the underlying object
4. records the original value on the first write since the checkpoint
5. detaches the old child relay and wires the new value
6. publishes the property name, then ChangeTrackingStatus and ChangedProperties

Lifecycle:
- Created by the wiring walk (wiring.make_trackable), one per object identity per session
- Children attached/detached as the properties holding them are written
- Released with normal garbage collection once unreachable

Internal attributes are set with object.__setattr__ so they never go through
the interception path. Only names starting with '_' are reserved; tracked
properties are always public names.
"""
import copy
import logging
from typing import Any, Callable, Optional, Set, Tuple, TYPE_CHECKING

from changetracking.change_state import ChangeSnapshot, ChangeState, ChangeStatus
from changetracking.errors import PropertyNotFoundError
from changetracking.notifications import (
    CHANGE_TRACKING_STATUS,
    CHANGED_PROPERTIES,
    PropertyChangedHandler,
    PropertyChangedPublisher,
    Subscription,
    make_relay,
)
from changetracking.properties import PropertyInfo, PropertyKind, get_property_table
from changetracking.registry import is_wrapper, unwrap

if TYPE_CHECKING:
    from changetracking.wiring import WiringContext

logger = logging.getLogger(__name__)


class _Missing:
    """Original value of a property that was unset before its first tracked write."""

    def __repr__(self) -> str:
        return '<missing>'


MISSING = _Missing()


def _values_equal(old: Any, new: Any) -> bool:
    if old is new:
        return True
    try:
        return bool(old == new)
    except Exception:
        return False


class TrackableProxy:
    """Interception-equipped stand-in for one underlying object."""

    __tracking_wrapper__ = True

    def __init__(self, target: Any, context: 'WiringContext', lifecycle: Optional[ChangeStatus] = None):
        object.__setattr__(self, '_target', target)
        object.__setattr__(self, '_context', context)
        object.__setattr__(self, '_table', get_property_table(type(target)))
        object.__setattr__(self, '_state', ChangeState(lifecycle))
        # property name -> wired child wrapper (TrackableProxy or TrackableList)
        object.__setattr__(self, '_children', {})
        # property name -> relay Subscription on that child
        object.__setattr__(self, '_relays', {})
        # property name -> child that was wired before the first write (restored on reject)
        object.__setattr__(self, '_original_children', {})
        object.__setattr__(self, '_publisher', PropertyChangedPublisher(self))

    # === Transparency ===

    def _get_class(self):
        return type(object.__getattribute__(self, '_target'))

    # isinstance(proxy, TargetType) holds
    __class__ = property(_get_class)

    def __getattr__(self, name: str) -> Any:
        try:
            target = object.__getattribute__(self, '_target')
        except AttributeError:
            # Not initialized (copy/unpickle in progress)
            raise AttributeError(name) from None

        info = self._table.resolve(target, name)
        if info is None:
            return getattr(target, name)
        return self._get(info)

    def __setattr__(self, name: str, value: Any) -> None:
        self._set(name, value)

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Cannot delete '{name}' through a tracking proxy")

    def __eq__(self, other: Any) -> bool:
        return self._target == unwrap(other)

    def __hash__(self) -> int:
        return hash(self._target)

    def __bool__(self) -> bool:
        return bool(self._target)

    def __dir__(self):
        return sorted(set(dir(self._target)) | {'subscribe'})

    def __repr__(self) -> str:
        return f"<Trackable {self._target!r}>"

    # === Notifications ===

    def subscribe(self, handler: PropertyChangedHandler) -> Subscription:
        """Subscribe to property-changed notifications of this object.

        Args:
            handler: Called as handler(sender, property_name) for every changed
                property, including relayed child changes and the meta-properties
                ChangeTrackingStatus and ChangedProperties.

        Returns:
            Subscription; call unsubscribe() to detach.
        """
        return self._publisher.subscribe(handler)

    # === Interception ===

    def _get(self, info: PropertyInfo) -> Any:
        """Read a tracked property, materializing the child wrapper on first read."""
        value = getattr(self._target, info.name)
        child = self._children.get(info.name)
        if child is not None and object.__getattribute__(child, '_target') is value:
            return child
        if self._should_wire(info, value):
            self._rewire(info.name, value)
            return self._children[info.name]
        return value

    def _set(self, name: str, value: Any) -> None:
        target = self._target
        info = self._table.resolve(target, name)
        if info is None:
            raise PropertyNotFoundError(type(target), name)

        adopt = value if is_wrapper(value) else None
        raw = unwrap(value)
        info.check(type(target), raw)

        old = getattr(target, name, MISSING)
        if _values_equal(old, raw):
            return

        # Underlying write first: a failure here leaves the change state untouched
        setattr(target, name, raw)

        if self._state.record_change(name, old) and name in self._children:
            self._original_children[name] = self._children[name]

        self._rewire(name, raw, adopt)
        logger.debug(f"{type(target).__name__}.{name}: {old!r} -> {raw!r}")

        self._publisher.publish_all(name, CHANGE_TRACKING_STATUS, CHANGED_PROPERTIES)

    def _restore(self, name: str, original: Any, adopt: Any = None) -> None:
        """Write an original value back (reject path). Publishes ``name``."""
        target = self._target
        if original is MISSING:
            if name in getattr(target, '__dict__', {}):
                delattr(target, name)
            self._detach(name)
        else:
            setattr(target, name, original)
            self._rewire(name, original, adopt)
        self._publisher.publish(name)

    # === Graph wiring ===

    def _should_wire(self, info: PropertyInfo, value: Any) -> bool:
        if value is None:
            return False
        options = self._context.options
        kind = info.kind_for(value)
        if kind is PropertyKind.COMPLEX:
            return options.make_complex_properties_trackable
        if kind is PropertyKind.COLLECTION:
            return options.make_collection_properties_trackable
        return False

    def _wiring_candidates(self):
        """Yield (property_name, value) for every property that should get a child wrapper."""
        target = self._target
        for info in self._table.properties_of(target):
            if info.name in self._children:
                continue
            value = getattr(target, info.name, None)
            if self._should_wire(info, value):
                yield info.name, value

    def _attach(self, name: str, child: Any) -> None:
        self._children[name] = child
        self._relays[name] = child.subscribe(self._relay_to(name))
        logger.debug(f"Attached {type(self._target).__name__}.{name} -> {type(unwrap(child)).__name__}")

    def _detach(self, name: str) -> None:
        subscription = self._relays.pop(name, None)
        if subscription is not None:
            subscription.unsubscribe()
            logger.debug(f"Detached {type(self._target).__name__}.{name}")
        self._children.pop(name, None)

    def _rewire(self, name: str, value: Any, adopt: Any = None) -> None:
        """Detach the current child of ``name`` and wire ``value`` in its place."""
        self._detach(name)
        info = self._table.resolve(self._target, name)
        if info is not None and self._should_wire(info, value):
            self._attach(name, self._context.wrapper_for(value, adopt))

    def _relay_to(self, name: str) -> Callable[[Any, str], None]:
        """Build the handler that republishes a child's changes as a change of ``name``."""
        return make_relay(self._publisher, name)

    # === Change state (graph-aware) ===

    def _has_changes(self, visited: Set[int]) -> bool:
        if id(self) in visited:
            return False
        visited.add(id(self))
        if self._state.status is not ChangeStatus.UNCHANGED:
            return True
        return any(child._has_changes(visited) for child in list(self._children.values()))

    def _status(self) -> ChangeStatus:
        own = self._state.status
        if own is not ChangeStatus.UNCHANGED:
            return own
        visited = {id(self)}
        if any(child._has_changes(visited) for child in list(self._children.values())):
            return ChangeStatus.CHANGED
        return ChangeStatus.UNCHANGED

    def _changed_properties(self) -> Tuple[str, ...]:
        return self._state.changed_properties

    def _accept(self, visited: Set[int]) -> None:
        """AcceptChanges: children first (bottom-up), then this object's baseline."""
        if id(self) in visited:
            return
        visited.add(id(self))

        for child in list(self._children.values()):
            child._accept(visited)

        had_changes = self._state.has_changes
        self._state.accept()
        self._original_children.clear()
        if had_changes:
            logger.debug(f"Accepted changes on {type(self._target).__name__}")
            self._publisher.publish_all(CHANGE_TRACKING_STATUS, CHANGED_PROPERTIES)

    def _reject(self, visited: Set[int]) -> None:
        """RejectChanges: restore originals (observably), clear, then recurse into wired children."""
        if id(self) in visited:
            return
        visited.add(id(self))

        # Transition first so handlers of the restored names see the post-reject state
        originals = self._state.reject()
        original_children = dict(self._original_children)
        self._original_children.clear()
        for name, original in originals.items():
            self._restore(name, original, original_children.get(name))

        if originals:
            logger.debug(f"Rejected {len(originals)} change(s) on {type(self._target).__name__}")
            self._publisher.publish_all(CHANGE_TRACKING_STATUS, CHANGED_PROPERTIES)

        for child in list(self._children.values()):
            child._reject(visited)

    # === Inspection ===

    def _original_value(self, name: str) -> Any:
        target = self._target
        if self._table.resolve(target, name) is None:
            raise PropertyNotFoundError(type(target), name)
        if self._state.is_changed(name):
            original = self._state.original_value(name)
            return None if original is MISSING else original
        return getattr(target, name, None)

    def _get_original(self) -> Any:
        """Shallow copy of the underlying object with every original value applied."""
        original = copy.copy(self._target)
        for name, value in self._state.original_values.items():
            if value is MISSING:
                original.__dict__.pop(name, None)
            else:
                setattr(original, name, value)
        return original

    def _snapshot(self) -> ChangeSnapshot:
        return ChangeSnapshot.create(self._status(), self._state)
