"""
Exception taxonomy for change tracking.

Every failure is synchronous and local to the call that raised it. The wrapped
graph stays usable afterwards: a failed write never leaves partial state behind.

Each error also derives from the builtin exception a plain object would raise
in the same situation, so ``except TypeError`` / ``hasattr()`` keep working.
"""
from typing import Any


class ChangeTrackingError(Exception):
    """Base class for all change tracking errors."""


class TypeMismatchError(ChangeTrackingError, TypeError):
    """A written value is incompatible with the property's declared type."""

    def __init__(self, owner_type: type, property_name: str, expected: Any, value: Any):
        self.owner_type = owner_type
        self.property_name = property_name
        self.expected = expected
        self.value = value
        expected_name = getattr(expected, '__name__', repr(expected))
        super().__init__(
            f"{owner_type.__name__}.{property_name} expects {expected_name}, "
            f"got {type(value).__name__}: {value!r}"
        )


class PropertyNotFoundError(ChangeTrackingError, AttributeError):
    """A write targeted a property that does not exist on the wrapped shape."""

    def __init__(self, owner_type: type, property_name: str):
        self.owner_type = owner_type
        self.property_name = property_name
        super().__init__(f"{owner_type.__name__} has no tracked property '{property_name}'")


class NotTrackableError(ChangeTrackingError, TypeError):
    """A tracking view was requested for an object that is not (or cannot be) wrapped."""

    def __init__(self, obj: Any, reason: str = "was never wrapped"):
        self.obj = obj
        super().__init__(f"{type(obj).__name__} object {reason}")
