"""
Graph wiring: the identity-guarded walk that turns an object graph into
a graph of tracking wrappers.

One WiringContext exists per top-level wrap() call. It carries the options
of that call and the IdentityRegistry that guarantees one wrapper per
underlying object. Every wrapper created later in the session (lazily on
read, on assignment, on collection insert) goes through the same context.

The walk is iterative:

1. create the wrapper for the root and register it BEFORE looking at its properties
2. pop a wrapper, ask it for its wiring candidates (complex/collection values)
3. resolve each candidate through the registry, creating and queueing
   only objects that were never seen in this session
4. attach the child (explicit relay subscription)

A property that leads back to an object already in the registry resolves to
that wrapper, so cycles terminate after a single pass over the reachable
objects.
"""
from collections import deque
import logging
from typing import Any, Deque, Optional

from changetracking.config import TrackingOptions
from changetracking.errors import NotTrackableError
from changetracking.properties import is_collection_value, is_complex_value
from changetracking.proxy import TrackableProxy
from changetracking.registry import IdentityRegistry, unwrap
from changetracking.trackable_list import TrackableList

logger = logging.getLogger(__name__)

__all__ = ['WiringContext', 'make_trackable', 'unwrap']


class WiringContext:
    """Options and identity registry shared by every wrapper of one wrap session."""

    def __init__(self, options: TrackingOptions, registry: Optional[IdentityRegistry] = None):
        self.options = options
        self.registry = registry if registry is not None else IdentityRegistry()

    def wrapper_for(self, value: Any, adopt: Any = None) -> Any:
        """Get the session's wrapper for ``value``, creating it if needed.

        Args:
            value: Underlying (unwrapped) object
            adopt: A wrapper the caller assigned; reused when it wraps ``value``
                and the session has no wrapper for it yet

        Returns:
            TrackableProxy or TrackableList for ``value``
        """
        existing = self.registry.get(value)
        if existing is not None:
            return existing
        if adopt is not None and unwrap(adopt) is value:
            self.registry.register(value, adopt)
            return adopt
        return make_trackable(value, self)

    def __repr__(self) -> str:
        return f"WiringContext({self.options}, {self.registry!r})"


def _create_wrapper(obj: Any, context: WiringContext) -> Any:
    if is_collection_value(obj):
        wrapper = TrackableList(obj, context)
    elif is_complex_value(obj):
        wrapper = TrackableProxy(obj, context)
    else:
        raise NotTrackableError(obj, "cannot be tracked")
    context.registry.register(obj, wrapper)
    logger.debug(f"Created {type(wrapper).__name__} for {type(obj).__name__}")
    return wrapper


def make_trackable(obj: Any, context: WiringContext) -> Any:
    """Wrap ``obj`` and everything reachable from it that the options allow.

    Returns None for None, and the existing wrapper when ``obj`` was already
    wrapped in this session.
    """
    if obj is None:
        return None

    existing = context.registry.get(obj)
    if existing is not None:
        return existing

    root = _create_wrapper(obj, context)
    pending: Deque[Any] = deque([root])
    while pending:
        wrapper = pending.popleft()
        for key, value in list(wrapper._wiring_candidates()):
            child = context.registry.get(value)
            if child is None:
                child = _create_wrapper(value, context)
                pending.append(child)
            wrapper._attach(key, child)
    return root
