"""
TrackableList: collection adapter for list-valued properties.

Wraps the owner's backing list (the list object itself stays on the
underlying object and keeps receiving every mutation) so that insertion,
removal, replacement and clearing are intercepted:

- complex elements are wrapped through the same wiring session as the owner
  and their notifications are relayed as a change of the collection
- every structural mutation publishes ITEMS_PROPERTY (and ChangeTrackingStatus)
  exactly once, which the owner relays as a change of the holding property

Item lifecycle (for accept/reject of the collection itself):
- elements inserted after the checkpoint are marked ADDED
- removed elements are marked DELETED and kept for reject
- removing an element that was itself added just drops it
"""
from collections import abc
import logging
from typing import Any, Callable, Iterable, Iterator, List, Optional, Set, Tuple, TYPE_CHECKING

from changetracking.change_state import ChangeSnapshot, ChangeStatus
from changetracking.errors import PropertyNotFoundError
from changetracking.notifications import (
    CHANGE_TRACKING_STATUS,
    ITEMS_PROPERTY,
    PropertyChangedHandler,
    PropertyChangedPublisher,
    Subscription,
    make_relay,
)
from changetracking.properties import is_complex_value
from changetracking.registry import is_wrapper, unwrap

if TYPE_CHECKING:
    from changetracking.wiring import WiringContext

logger = logging.getLogger(__name__)


class _Slot:
    """One position of the list: raw element, its wrapper (if tracked) and the relay edge."""
    __slots__ = ('item', 'wrapper', 'subscription')

    def __init__(self, item: Any):
        self.item = item
        self.wrapper: Optional[Any] = None
        self.subscription: Optional[Subscription] = None

    @property
    def value(self) -> Any:
        return self.wrapper if self.wrapper is not None else self.item


def _contains_identity(items: Iterable[Any], obj: Any) -> bool:
    return any(item is obj for item in items)


def _remove_identity(items: List[Any], obj: Any) -> bool:
    for i, item in enumerate(items):
        if item is obj:
            del items[i]
            return True
    return False


class TrackableList(abc.MutableSequence):
    """Mutable sequence view over a tracked backing list."""

    __tracking_wrapper__ = True
    __hash__ = None

    def __init__(self, items: list, context: 'WiringContext'):
        self._target = items
        self._context = context
        self._slots: List[_Slot] = [_Slot(item) for item in items]
        self._publisher = PropertyChangedPublisher(self)
        # Contents at the checkpoint, captured lazily on the first structural change
        self._baseline: Optional[List[Any]] = None
        self._added: List[Any] = []
        self._deleted: List[Any] = []

    # === Sequence protocol ===

    def __len__(self) -> int:
        return len(self._slots)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [self._slot_value(slot) for slot in self._slots[index]]
        return self._slot_value(self._slots[index])

    def __iter__(self) -> Iterator[Any]:
        for slot in list(self._slots):
            yield self._slot_value(slot)

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._set_slice(index, value)
            return

        index = self._normalize(index)
        slot = self._slots[index]
        if unwrap(value) is slot.item:
            return
        self._capture_baseline()
        self._remove_at(index)
        self._insert_at(index, value)
        self._publish_change()

    def __delitem__(self, index) -> None:
        if isinstance(index, slice):
            indices = sorted(range(*index.indices(len(self._slots))), reverse=True)
            if not indices:
                return
            self._capture_baseline()
            for i in indices:
                self._remove_at(i)
        else:
            index = self._normalize(index)
            self._capture_baseline()
            self._remove_at(index)
        self._publish_change()

    def insert(self, index: int, value: Any) -> None:
        self._capture_baseline()
        self._insert_at(index, value)
        self._publish_change()

    def clear(self) -> None:
        if not self._slots:
            return
        self._capture_baseline()
        for i in range(len(self._slots) - 1, -1, -1):
            self._remove_at(i)
        self._publish_change()

    def sort(self, *, key: Optional[Callable[[Any], Any]] = None, reverse: bool = False) -> None:
        if key is None:
            ordered = sorted(self._slots, key=lambda slot: slot.item, reverse=reverse)
        else:
            ordered = sorted(self._slots, key=lambda slot: key(self._slot_value(slot)), reverse=reverse)
        self._reorder(ordered)

    def reverse(self) -> None:
        self._reorder(self._slots[::-1])

    def _reorder(self, ordered: List[_Slot]) -> None:
        """Apply a permutation of the slots. No-op when no element moved."""
        if all(new.item is old.item for new, old in zip(ordered, self._slots)):
            return
        self._capture_baseline()
        self._slots = ordered
        self._target[:] = [slot.item for slot in ordered]
        self._publish_change()

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, TrackableList):
            other = other._target
        if not isinstance(other, list):
            return NotImplemented
        return self._target == [unwrap(value) for value in other]

    def __repr__(self) -> str:
        return f"TrackableList({self._target!r})"

    # === Notifications ===

    def subscribe(self, handler: PropertyChangedHandler) -> Subscription:
        """Subscribe to collection notifications.

        The handler receives ITEMS_PROPERTY for structural changes and element
        changes, and ChangeTrackingStatus when the collection status may have changed.
        """
        return self._publisher.subscribe(handler)

    def _publish_change(self) -> None:
        self._publisher.publish_all(ITEMS_PROPERTY, CHANGE_TRACKING_STATUS)

    def _relay(self) -> Callable[[Any, str], None]:
        """One relay handler per slot, so duplicate elements unsubscribe independently."""
        return make_relay(self._publisher, ITEMS_PROPERTY)

    # === Slot management ===

    def _normalize(self, index: int) -> int:
        if index < 0:
            index += len(self._slots)
        if not 0 <= index < len(self._slots):
            raise IndexError("list index out of range")
        return index

    def _should_track(self, item: Any) -> bool:
        return self._context.options.make_collection_properties_trackable and is_complex_value(item)

    def _slot_value(self, slot: _Slot) -> Any:
        if slot.wrapper is None and self._should_track(slot.item):
            self._attach(slot, self._context.wrapper_for(slot.item))
        return slot.value

    def _wiring_candidates(self):
        """Yield (slot, element) for every element that should get a wrapper."""
        for slot in self._slots:
            if slot.wrapper is None and self._should_track(slot.item):
                yield slot, slot.item

    def _attach(self, slot: _Slot, child: Any) -> None:
        slot.wrapper = child
        slot.subscription = child.subscribe(self._relay())

    def _detach(self, slot: _Slot) -> None:
        if slot.subscription is not None:
            slot.subscription.unsubscribe()
            slot.subscription = None

    def _insert_at(self, index: int, value: Any) -> None:
        adopt = value if is_wrapper(value) else None
        raw = unwrap(value)
        slot = _Slot(raw)
        self._target.insert(index, raw)
        self._slots.insert(index, slot)
        if self._should_track(raw):
            self._attach(slot, self._context.wrapper_for(raw, adopt))
            self._mark_inserted(slot.wrapper)
        logger.debug(f"Inserted {type(raw).__name__} into collection at {index}")

    def _remove_at(self, index: int) -> None:
        slot = self._slots.pop(index)
        del self._target[index]
        self._detach(slot)
        if slot.wrapper is not None and not _contains_identity((s.wrapper for s in self._slots), slot.wrapper):
            self._mark_removed(slot.wrapper)
        logger.debug(f"Removed {type(slot.item).__name__} from collection at {index}")

    def _set_slice(self, index: slice, values: Iterable[Any]) -> None:
        values = list(values)
        start, stop, step = index.indices(len(self._slots))
        if step == 1:
            self._capture_baseline()
            for i in range(max(stop, start) - 1, start - 1, -1):
                self._remove_at(i)
            for offset, value in enumerate(values):
                self._insert_at(start + offset, value)
        else:
            indices = list(range(start, stop, step))
            if len(indices) != len(values):
                raise ValueError(
                    f"attempt to assign sequence of size {len(values)} to extended slice of size {len(indices)}"
                )
            self._capture_baseline()
            for i, value in zip(indices, values):
                self._remove_at(i)
                self._insert_at(i, value)
        self._publish_change()

    # === Item lifecycle ===

    def _capture_baseline(self) -> None:
        if self._baseline is None:
            self._baseline = list(self._target)

    def _mark_inserted(self, wrapper: Any) -> None:
        state = wrapper._state
        if _remove_identity(self._deleted, wrapper):
            state.confirm()
        elif state.lifecycle is None and not self._in_baseline(wrapper):
            state.mark_added()
            self._added.append(wrapper)

    def _mark_removed(self, wrapper: Any) -> None:
        state = wrapper._state
        if _remove_identity(self._added, wrapper):
            state.confirm()
        elif state.lifecycle is None:
            state.mark_deleted()
            self._deleted.append(wrapper)

    def _in_baseline(self, wrapper: Any) -> bool:
        return self._baseline is not None and _contains_identity(self._baseline, unwrap(wrapper))

    def _structure_changed(self) -> bool:
        if self._added or self._deleted:
            return True
        if self._baseline is None:
            return False
        if len(self._baseline) != len(self._target):
            return True
        return any(a is not b for a, b in zip(self._baseline, self._target))

    def _element_wrappers(self) -> List[Any]:
        wrappers: List[Any] = []
        for slot in self._slots:
            if slot.wrapper is not None and not _contains_identity(wrappers, slot.wrapper):
                wrappers.append(slot.wrapper)
        return wrappers

    # === Change state (graph-aware) ===

    def _has_changes(self, visited: Set[int]) -> bool:
        if id(self) in visited:
            return False
        visited.add(id(self))
        if self._structure_changed():
            return True
        return any(wrapper._has_changes(visited) for wrapper in self._element_wrappers())

    def _status(self) -> ChangeStatus:
        return ChangeStatus.CHANGED if self._has_changes(set()) else ChangeStatus.UNCHANGED

    def _changed_properties(self) -> Tuple[str, ...]:
        return ()

    def _accept(self, visited: Set[int]) -> None:
        """Accept element changes, confirm added elements, forget deleted ones."""
        if id(self) in visited:
            return
        visited.add(id(self))

        for wrapper in self._element_wrappers():
            wrapper._accept(visited)

        had_changes = self._structure_changed()
        for wrapper in self._added:
            wrapper._state.confirm()
        self._added.clear()
        self._deleted.clear()
        self._baseline = None
        if had_changes:
            logger.debug("Accepted collection changes")
            self._publisher.publish(CHANGE_TRACKING_STATUS)

    def _reject(self, visited: Set[int]) -> None:
        """Restore the checkpoint contents, then reject element changes."""
        if id(self) in visited:
            return
        visited.add(id(self))

        if self._baseline is not None:
            known = {id(slot.item): slot.wrapper for slot in self._slots if slot.wrapper is not None}
            for wrapper in self._deleted:
                known.setdefault(id(unwrap(wrapper)), wrapper)
                wrapper._state.confirm()
            for wrapper in self._added:
                wrapper._state.confirm()
            for slot in self._slots:
                self._detach(slot)

            self._target[:] = self._baseline
            self._slots = [_Slot(item) for item in self._target]
            for slot in self._slots:
                if self._should_track(slot.item):
                    self._attach(slot, self._context.wrapper_for(slot.item, known.get(id(slot.item))))

            self._added.clear()
            self._deleted.clear()
            self._baseline = None
            logger.debug(f"Rejected collection changes, restored {len(self._target)} item(s)")
            self._publish_change()

        for wrapper in self._element_wrappers():
            wrapper._reject(visited)

    # === Inspection ===

    def _items_with_status(self, status: ChangeStatus) -> Tuple[Any, ...]:
        return tuple(
            wrapper for wrapper in self._element_wrappers()
            if wrapper._state.lifecycle is None and wrapper._status() is status
        )

    @property
    def added_items(self) -> Tuple[Any, ...]:
        return tuple(self._added)

    @property
    def deleted_items(self) -> Tuple[Any, ...]:
        return tuple(self._deleted)

    def _original_value(self, name: str) -> Any:
        raise PropertyNotFoundError(list, name)

    def _get_original(self) -> List[Any]:
        """Contents of the backing list at the checkpoint."""
        return list(self._baseline if self._baseline is not None else self._target)

    def _snapshot(self) -> ChangeSnapshot:
        return ChangeSnapshot(status=self._status(), changed_properties=(), original_values={})
