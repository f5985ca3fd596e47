"""
Property tables: the per-type dispatch table behind every TrackableProxy.

A PropertyTable is built once per wrapped type and cached. It answers, for a
property name:
- does the shape have it (writes to unknown names are errors)
- what kind of value it holds (scalar, complex object, collection)
- whether a given value is compatible with the declared annotation

Discovery uses pure stdlib introspection:
- Dataclasses: dataclasses.fields()
- Other classes: class annotations, __init__ signatures along the MRO,
  and properties that define a setter
"""
from collections import abc
from dataclasses import dataclass, fields, is_dataclass
from datetime import date, time, timedelta
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from pathlib import PurePath
from typing import Any, ClassVar, Dict, Iterator, Literal, Optional, Tuple, TypeVar, Union, get_args, get_origin, get_type_hints
from uuid import UUID
import inspect
import logging
import types

from changetracking.errors import TypeMismatchError

logger = logging.getLogger(__name__)


class PropertyKind(Enum):
    """What a property holds, as far as wiring is concerned."""
    SCALAR = "scalar"
    COMPLEX = "complex"
    COLLECTION = "collection"
    ANY = "any"  # decided per value at runtime


_SCALAR_TYPES: Tuple[type, ...] = (
    str, bytes, bytearray, int, float, complex, bool,
    Decimal, Fraction, date, time, timedelta, UUID, PurePath, Enum,
    tuple, frozenset, range, type,
)

_NON_COMPLEX_ABCS: Tuple[type, ...] = (abc.Mapping, abc.Set, abc.Sequence)

_COLLECTION_ORIGINS = (list, abc.MutableSequence, abc.Sequence)

_UNION_TYPES = (Union, types.UnionType)

_EMPTY = inspect.Parameter.empty


def is_complex_type(tp: Any) -> bool:
    """True if instances of ``tp`` are objects whose properties should be tracked."""
    if tp is Any:
        return False
    if isinstance(tp, type) and is_dataclass(tp):
        return True
    if not isinstance(tp, type):
        return False
    if issubclass(tp, _SCALAR_TYPES) or issubclass(tp, _NON_COMPLEX_ABCS):
        return False
    if tp.__module__ == 'builtins':
        return False
    return True


def is_complex_value(value: Any) -> bool:
    return value is not None and is_complex_type(type(value))


def is_collection_value(value: Any) -> bool:
    return isinstance(value, list)


def _strip_optional(annotation: Any) -> Tuple[Any, bool]:
    """Unwrap Optional[X] / X | None. Returns (inner, is_optional)."""
    if get_origin(annotation) in _UNION_TYPES:
        args = get_args(annotation)
        if type(None) in args:
            rest = tuple(arg for arg in args if arg is not type(None))
            if len(rest) == 1:
                return rest[0], True
            return Union[rest], True
    return annotation, False


def classify(annotation: Any) -> PropertyKind:
    """Classify a declared annotation into a PropertyKind."""
    if annotation is _EMPTY or annotation is Any or isinstance(annotation, (str, TypeVar)):
        return PropertyKind.ANY

    inner, _ = _strip_optional(annotation)
    if inner is Any:
        return PropertyKind.ANY
    origin = get_origin(inner)

    if origin in _UNION_TYPES:
        return PropertyKind.ANY
    if origin is not None:
        return PropertyKind.COLLECTION if origin in _COLLECTION_ORIGINS else PropertyKind.SCALAR
    if inner in _COLLECTION_ORIGINS:
        return PropertyKind.COLLECTION
    if is_complex_type(inner):
        return PropertyKind.COMPLEX
    if isinstance(inner, type):
        return PropertyKind.SCALAR
    return PropertyKind.ANY


def annotation_accepts(annotation: Any, value: Any) -> bool:
    """Check ``value`` against a declared annotation (container contents are not inspected)."""
    if annotation is _EMPTY or annotation is Any or isinstance(annotation, (str, TypeVar)):
        return True

    origin = get_origin(annotation)
    if origin in _UNION_TYPES:
        return any(annotation_accepts(arg, value) for arg in get_args(annotation))
    if origin is Literal:
        return value in get_args(annotation)
    if origin is not None:
        annotation = origin

    if annotation is type(None):
        return value is None
    if not isinstance(annotation, type):
        # NewType, Protocol aliases, etc. - nothing reliable to check
        return True
    if annotation is float and isinstance(value, int):
        return True
    if annotation is complex and isinstance(value, (int, float)):
        return True
    try:
        return isinstance(value, annotation)
    except TypeError:
        return True


@dataclass(frozen=True)
class PropertyInfo:
    """Declared metadata of one tracked property."""
    name: str
    annotation: Any = _EMPTY
    kind: PropertyKind = PropertyKind.ANY
    optional: bool = False

    def kind_for(self, value: Any) -> PropertyKind:
        """Resolve the kind for a concrete value (ANY and mistyped values go by the runtime type)."""
        if value is None:
            return self.kind
        if is_collection_value(value):
            return PropertyKind.COLLECTION
        if is_complex_value(value):
            return PropertyKind.COMPLEX
        return PropertyKind.SCALAR

    def accepts(self, value: Any) -> bool:
        if value is None:
            return (
                self.optional
                or self.annotation is _EMPTY
                or self.kind in (PropertyKind.COMPLEX, PropertyKind.COLLECTION, PropertyKind.ANY)
            )
        return annotation_accepts(self.annotation, value)

    def check(self, owner_type: type, value: Any) -> None:
        """Raise TypeMismatchError if ``value`` cannot be stored in this property."""
        if not self.accepts(value):
            raise TypeMismatchError(owner_type, self.name, self.annotation, value)


def _make_info(name: str, annotation: Any) -> PropertyInfo:
    _, optional = _strip_optional(annotation)
    return PropertyInfo(name=name, annotation=annotation, kind=classify(annotation), optional=optional)


def _resolved_hints(cls: type) -> Dict[str, Any]:
    """get_type_hints() with a fallback to raw annotations for unresolvable forward refs."""
    try:
        return get_type_hints(cls)
    except Exception as e:
        logger.debug(f"Could not resolve type hints for {cls.__name__}: {e}")
        hints: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            hints.update(getattr(klass, '__annotations__', {}))
        return hints


def _add_declared_attributes(cls: type, hints: Dict[str, Any], result: Dict[str, PropertyInfo]) -> None:
    """Class annotations and __init__ parameters of a non-dataclass type."""
    # Annotated class attributes (skip ClassVar)
    for name, annotation in hints.items():
        if name.startswith('_') or get_origin(annotation) is ClassVar:
            continue
        result[name] = _make_info(name, annotation)

    # __init__ parameters, most specific class first
    for klass in cls.__mro__:
        if klass is object or '__init__' not in vars(klass):
            continue
        try:
            sig = inspect.signature(klass.__init__)
        except (ValueError, TypeError):
            continue
        for name, param in sig.parameters.items():
            if name == 'self' or name.startswith('_') or name in result:
                continue
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = hints.get(name, param.annotation)
            result[name] = _make_info(name, annotation)


def _analyze_type(cls: type) -> Dict[str, PropertyInfo]:
    """Discover the tracked properties of ``cls``."""
    hints = _resolved_hints(cls)
    result: Dict[str, PropertyInfo] = {}

    if is_dataclass(cls):
        for f in fields(cls):
            if f.name.startswith('_'):
                continue
            result[f.name] = _make_info(f.name, hints.get(f.name, f.type))
    else:
        _add_declared_attributes(cls, hints, result)

    # Settable properties (dataclasses included)
    for klass in reversed(cls.__mro__):
        for name, member in vars(klass).items():
            if name.startswith('_') or not isinstance(member, property):
                continue
            if member.fset is None:
                result.pop(name, None)
                continue
            annotation = _EMPTY
            if member.fget is not None:
                annotation = getattr(member.fget, '__annotations__', {}).get('return', _EMPTY)
            result.setdefault(name, _make_info(name, annotation))

    return result


class PropertyTable:
    """Name-keyed dispatch table for one wrapped type."""

    def __init__(self, owner_type: type):
        self.owner_type = owner_type
        self._declared: Dict[str, PropertyInfo] = _analyze_type(owner_type)
        self._dynamic: Dict[str, PropertyInfo] = {}

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._declared)

    def __contains__(self, name: str) -> bool:
        return name in self._declared

    def __len__(self) -> int:
        return len(self._declared)

    def get(self, name: str) -> Optional[PropertyInfo]:
        return self._declared.get(name)

    def resolve(self, target: Any, name: str) -> Optional[PropertyInfo]:
        """Look up ``name`` on ``target``'s shape, including undeclared public instance attributes."""
        info = self._declared.get(name)
        if info is not None:
            return info
        if name.startswith('_') or name not in getattr(target, '__dict__', {}):
            return None
        info = self._dynamic.get(name)
        if info is None:
            info = PropertyInfo(name=name)
            self._dynamic[name] = info
        return info

    def properties_of(self, target: Any) -> Iterator[PropertyInfo]:
        """Yield every tracked property present on ``target``."""
        yield from self._declared.values()
        for name in getattr(target, '__dict__', {}):
            if name not in self._declared:
                info = self.resolve(target, name)
                if info is not None:
                    yield info

    def __repr__(self) -> str:
        return f"PropertyTable({self.owner_type.__name__}, {list(self._declared)})"


# =============================================================================
# TABLE CACHE - one table per type
# =============================================================================

_table_cache: Dict[type, PropertyTable] = {}


def get_property_table(owner_type: type) -> PropertyTable:
    """Get or build the cached PropertyTable for ``owner_type``."""
    table = _table_cache.get(owner_type)
    if table is None:
        table = PropertyTable(owner_type)
        _table_cache[owner_type] = table
        logger.debug(f"Built property table: {table!r}")
    return table


def clear_cache() -> None:
    """Clear the property table cache (for testing)."""
    _table_cache.clear()
