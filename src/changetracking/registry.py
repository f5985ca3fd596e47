"""
IdentityRegistry: underlying object identity -> wrapper, for one wrap session.

The registry is what makes cyclic graphs terminate: the wiring walk registers
a wrapper BEFORE looking at the object's properties, so any path that leads
back to the object resolves to the in-progress wrapper.

Values are held weakly. A wrapper that is no longer reachable from any root
(e.g. a child detached by assigning None) disappears from the registry with
normal garbage collection, and the identity key can never go stale because a
live wrapper keeps its underlying object alive.
"""
import logging
import weakref
from typing import Any, Optional

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """Identity-keyed wrapper table. Not thread-safe (callers synchronize externally)."""

    def __init__(self):
        self._wrappers: 'weakref.WeakValueDictionary[int, Any]' = weakref.WeakValueDictionary()

    def register(self, obj: Any, wrapper: Any) -> None:
        """Register ``wrapper`` as the one wrapper for ``obj`` in this session."""
        key = id(obj)
        existing = self._wrappers.get(key)
        if existing is not None and existing is not wrapper:
            logger.warning(f"Overwriting existing wrapper for {type(obj).__name__} at {key:#x}")
        self._wrappers[key] = wrapper
        logger.debug(f"Registered wrapper: type={type(obj).__name__} id={key:#x}")

    def get(self, obj: Any) -> Optional[Any]:
        """Get the wrapper registered for ``obj``, if any."""
        if obj is None:
            return None
        return self._wrappers.get(id(obj))

    def __contains__(self, obj: Any) -> bool:
        return self.get(obj) is not None

    def __len__(self) -> int:
        return len(self._wrappers)

    def __repr__(self) -> str:
        return f"IdentityRegistry({len(self)} wrappers)"


def unwrap(value: Any) -> Any:
    """Return the underlying object of a tracking wrapper, or ``value`` unchanged."""
    if getattr(type(value), '__tracking_wrapper__', False):
        return object.__getattribute__(value, '_target')
    return value


def is_wrapper(value: Any) -> bool:
    return getattr(type(value), '__tracking_wrapper__', False)
