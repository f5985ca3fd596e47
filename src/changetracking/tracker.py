"""
Entry points: wrap() and the tracking capability views.

wrap() returns the "normal" view: a TrackableProxy (or TrackableList for a
list root) that reads and writes like the original object. as_tracker()
returns the "tracking" view of the same wrapper: status, changed property
names, accept/reject and original-value inspection.

    view = wrap(order)
    view.CustomerNumber = "Test1"
    tracker = as_tracker(view)
    tracker.status                # ChangeStatus.CHANGED
    tracker.changed_properties    # ('CustomerNumber',)
    tracker.reject_changes()
"""
import logging
from typing import Any, Optional, Tuple

from changetracking.change_state import ChangeSnapshot, ChangeStatus
from changetracking.config import TrackingOptions, resolve_options
from changetracking.errors import NotTrackableError
from changetracking.registry import is_wrapper, unwrap
from changetracking.trackable_list import TrackableList
from changetracking.wiring import WiringContext, make_trackable

logger = logging.getLogger(__name__)


def wrap(
    target: Any,
    options: Optional[TrackingOptions] = None,
    *,
    make_complex_properties_trackable: Optional[bool] = None,
    make_collection_properties_trackable: Optional[bool] = None,
) -> Any:
    """Wrap ``target`` (and the graph reachable from it) for change tracking.

    Args:
        target: Object to track. A list yields a TrackableList root.
        options: TrackingOptions for this session (defaults to get_default_options())
        make_complex_properties_trackable: Override for options.make_complex_properties_trackable
        make_collection_properties_trackable: Override for options.make_collection_properties_trackable

    Returns:
        The tracking wrapper. Wrapping a wrapper returns it unchanged.

    Raises:
        NotTrackableError: ``target`` is None or a scalar value with no properties to track.
    """
    if is_wrapper(target):
        return target
    if target is None:
        raise NotTrackableError(target, "cannot be tracked")

    resolved = resolve_options(
        options,
        make_complex_properties_trackable=make_complex_properties_trackable,
        make_collection_properties_trackable=make_collection_properties_trackable,
    )
    context = WiringContext(resolved)
    view = make_trackable(target, context)
    logger.debug(f"Wrapped {type(target).__name__}: {len(context.registry)} wrapper(s) wired eagerly")
    return view


def is_trackable(obj: Any) -> bool:
    """True if ``obj`` is a tracking wrapper produced by wrap()."""
    return is_wrapper(obj)


def as_tracker(view: Any) -> 'Tracker':
    """Get the tracking view of a wrapper.

    Raises:
        NotTrackableError: ``view`` was never wrapped.
    """
    if not is_wrapper(view):
        raise NotTrackableError(view)
    if type(view) is TrackableList:
        return CollectionTracker(view)
    return Tracker(view)


def as_collection_tracker(view: Any) -> 'CollectionTracker':
    """Get the collection tracking view of a TrackableList.

    Raises:
        NotTrackableError: ``view`` is not a tracked collection.
    """
    if not is_wrapper(view):
        raise NotTrackableError(view)
    if type(view) is not TrackableList:
        raise NotTrackableError(view, "is not a tracked collection")
    return CollectionTracker(view)


class Tracker:
    """Tracking capability view over one wrapper."""

    def __init__(self, wrapper: Any):
        self._wrapper = wrapper

    @property
    def status(self) -> ChangeStatus:
        """Lifecycle marker if set, else CHANGED if this object or any wired child changed."""
        return self._wrapper._status()

    @property
    def is_changed(self) -> bool:
        return self.status is not ChangeStatus.UNCHANGED

    @property
    def changed_properties(self) -> Tuple[str, ...]:
        """Names written since the last checkpoint, in first-write order."""
        return self._wrapper._changed_properties()

    @property
    def target(self) -> Any:
        return unwrap(self._wrapper)

    def accept_changes(self) -> None:
        """Commit current values (of this object and every wired child) as the new baseline."""
        self._wrapper._accept(set())

    def reject_changes(self) -> None:
        """Restore original values (publishing each restored property), then reject wired children."""
        self._wrapper._reject(set())

    def get_original_value(self, name: str) -> Any:
        """Value of ``name`` at the last checkpoint.

        Raises:
            PropertyNotFoundError: ``name`` is not a property of the tracked object.
        """
        return self._wrapper._original_value(name)

    def get_original(self) -> Any:
        """Shallow copy of the tracked object as it was at the last checkpoint."""
        return self._wrapper._get_original()

    def snapshot(self) -> ChangeSnapshot:
        return self._wrapper._snapshot()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._wrapper!r}, status={self.status.value})"


class CollectionTracker(Tracker):
    """Tracking view over a TrackableList, with per-element lifecycle inspection."""

    @property
    def added_items(self) -> Tuple[Any, ...]:
        """Elements inserted since the last checkpoint (status ADDED)."""
        return self._wrapper.added_items

    @property
    def deleted_items(self) -> Tuple[Any, ...]:
        """Elements removed since the last checkpoint (status DELETED)."""
        return self._wrapper.deleted_items

    @property
    def changed_items(self) -> Tuple[Any, ...]:
        return self._wrapper._items_with_status(ChangeStatus.CHANGED)

    @property
    def unchanged_items(self) -> Tuple[Any, ...]:
        return self._wrapper._items_with_status(ChangeStatus.UNCHANGED)
