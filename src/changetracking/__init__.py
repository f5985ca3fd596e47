"""
Change tracking for plain Python objects.

Wraps ordinary objects (dataclasses or regular classes) in transparent
proxies that turn property writes into an observable, revertible
transaction.

Key Features:
- Property-changed notifications for every write, including the
  meta-properties ChangeTrackingStatus and ChangedProperties
- Original-value capture with accept/reject checkpoints
- Recursive tracking through nested objects and lists
- Safe on cyclic object graphs (one wrapper per object identity)

Quick Start:
    >>> from changetracking import wrap, as_tracker
    >>>
    >>> view = wrap(order)
    >>> with view.subscribe(lambda sender, name: print(name)):
    ...     view.Address.City = "Chicago"      # prints Address, ChangeTrackingStatus
    >>>
    >>> tracker = as_tracker(view)
    >>> tracker.status
    <ChangeStatus.CHANGED: 'Changed'>
    >>> tracker.reject_changes()

Modules:
    - tracker: wrap() entry point and the Tracker / CollectionTracker views
    - proxy: TrackableProxy interception layer
    - trackable_list: TrackableList collection adapter
    - wiring: identity-guarded graph wiring walk
    - change_state: per-object change state machine and snapshots
    - properties: per-type property tables and annotation checks
    - notifications: subscribe/publish contract
    - registry: identity registry
    - config: TrackingOptions and context-local defaults
    - errors: error taxonomy
"""

__version__ = "0.1.0"

# Entry points
from changetracking.tracker import (
    wrap,
    as_tracker,
    as_collection_tracker,
    is_trackable,
    Tracker,
    CollectionTracker,
)

# Wrappers
from changetracking.proxy import TrackableProxy
from changetracking.trackable_list import TrackableList
from changetracking.wiring import WiringContext, make_trackable, unwrap

# State
from changetracking.change_state import ChangeStatus, ChangeState, ChangeSnapshot

# Notifications
from changetracking.notifications import (
    CHANGE_TRACKING_STATUS,
    CHANGED_PROPERTIES,
    ITEMS_PROPERTY,
    PropertyChangedPublisher,
    Subscription,
)

# Configuration
from changetracking.config import (
    TrackingOptions,
    get_default_options,
    set_default_options,
    reset_default_options,
    tracking_options,
)

# Errors
from changetracking.errors import (
    ChangeTrackingError,
    TypeMismatchError,
    PropertyNotFoundError,
    NotTrackableError,
)

__all__ = [
    '__version__',
    # Entry points
    'wrap',
    'as_tracker',
    'as_collection_tracker',
    'is_trackable',
    'Tracker',
    'CollectionTracker',
    # Wrappers
    'TrackableProxy',
    'TrackableList',
    'WiringContext',
    'make_trackable',
    'unwrap',
    # State
    'ChangeStatus',
    'ChangeState',
    'ChangeSnapshot',
    # Notifications
    'CHANGE_TRACKING_STATUS',
    'CHANGED_PROPERTIES',
    'ITEMS_PROPERTY',
    'PropertyChangedPublisher',
    'Subscription',
    # Configuration
    'TrackingOptions',
    'get_default_options',
    'set_default_options',
    'reset_default_options',
    'tracking_options',
    # Errors
    'ChangeTrackingError',
    'TypeMismatchError',
    'PropertyNotFoundError',
    'NotTrackableError',
]
