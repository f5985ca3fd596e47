"""
Per-object change state machine.

ChangeState holds the minimal data needed to answer "what changed since the
last checkpoint" and to undo it:

- original_values: property name -> value captured on the first write after the checkpoint
- changed_properties: names written since the checkpoint, in first-write order
- lifecycle: ADDED / DELETED marker, orthogonal to the changed/unchanged axis

The state machine knows nothing about nested objects. Aggregation over the
object graph (a parent is CHANGED while a wired child is) lives in the wrappers.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import time


class ChangeStatus(Enum):
    """Tracking status of a wrapped object."""
    UNCHANGED = "Unchanged"
    ADDED = "Added"
    DELETED = "Deleted"
    CHANGED = "Changed"


_LIFECYCLE_STATUSES = (ChangeStatus.ADDED, ChangeStatus.DELETED)


class ChangeState:
    """OriginalValueStore + ChangedPropertySet + lifecycle marker for one object."""

    def __init__(self, lifecycle: Optional[ChangeStatus] = None):
        if lifecycle is not None and lifecycle not in _LIFECYCLE_STATUSES:
            raise ValueError(f"lifecycle must be ADDED or DELETED, got {lifecycle}")
        self.lifecycle: Optional[ChangeStatus] = lifecycle
        self._original_values: Dict[str, Any] = {}
        self._changed_properties: List[str] = []

    @property
    def status(self) -> ChangeStatus:
        """Own status, ignoring nested objects."""
        if self.lifecycle is not None:
            return self.lifecycle
        if self._changed_properties:
            return ChangeStatus.CHANGED
        return ChangeStatus.UNCHANGED

    @property
    def has_changes(self) -> bool:
        return bool(self._changed_properties)

    @property
    def changed_properties(self) -> Tuple[str, ...]:
        return tuple(self._changed_properties)

    @property
    def original_values(self) -> Dict[str, Any]:
        return dict(self._original_values)

    def is_changed(self, name: str) -> bool:
        return name in self._original_values

    def original_value(self, name: str, default: Any = None) -> Any:
        return self._original_values.get(name, default)

    def record_change(self, name: str, old_value: Any) -> bool:
        """Record a write to ``name``. Returns True if this is the first write since the checkpoint."""
        if name in self._original_values:
            return False
        self._original_values[name] = old_value
        self._changed_properties.append(name)
        return True

    def accept(self) -> None:
        """Commit current values as the new baseline. Lifecycle markers are kept."""
        self._original_values.clear()
        self._changed_properties.clear()

    def reject(self) -> Dict[str, Any]:
        """Consume the OriginalValueStore. Returns the values to write back, in first-write order."""
        originals = {name: self._original_values[name] for name in self._changed_properties}
        self.accept()
        return originals

    # === Lifecycle ===

    def mark_added(self) -> None:
        self.lifecycle = ChangeStatus.ADDED

    def mark_deleted(self) -> None:
        self.lifecycle = ChangeStatus.DELETED

    def confirm(self) -> None:
        """Clear the lifecycle marker (explicit confirmation of ADDED / DELETED)."""
        self.lifecycle = None

    def __repr__(self) -> str:
        return f"ChangeState(status={self.status.value}, changed={self._changed_properties})"


@dataclass(frozen=True)
class ChangeSnapshot:
    """Immutable view of a wrapper's change state at a point in time.

    Holds values only, no wrapper references, so it stays valid after the
    tracked object moves on.
    """
    status: ChangeStatus
    changed_properties: Tuple[str, ...]
    original_values: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def create(cls, status: ChangeStatus, state: ChangeState) -> 'ChangeSnapshot':
        """Capture ``state`` with an externally computed (graph-aware) status."""
        return cls(
            status=status,
            changed_properties=state.changed_properties,
            original_values=state.original_values,
        )

    @property
    def is_changed(self) -> bool:
        return self.status is not ChangeStatus.UNCHANGED
