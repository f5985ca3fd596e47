"""
Tests for property tables and annotation classification.

Tests cover:
- classify() for scalar, complex, collection and open annotations
- annotation_accepts() for unions, literals, generics and numeric widening
- PropertyTable discovery for dataclasses and regular classes
- Per-type caching
"""
from typing import Any, ClassVar, Dict, List, Literal, Optional, Sequence, Tuple

import pytest
from conftest import Address, InventoryUpdate, Order, OrderDetail

from changetracking.properties import (
    PropertyKind,
    annotation_accepts,
    classify,
    clear_cache,
    get_property_table,
    is_complex_value,
)


class TestClassify:
    """classify() maps annotations to PropertyKind."""

    @pytest.mark.parametrize("annotation", [int, str, float, bool, Dict[str, int], Tuple[int, ...], Literal["a"]])
    def test_scalar(self, annotation):
        """Builtins, mappings, tuples and literals are scalar."""
        assert classify(annotation) is PropertyKind.SCALAR

    @pytest.mark.parametrize("annotation", [Address, Optional[Address], Optional[InventoryUpdate]])
    def test_complex(self, annotation):
        """Dataclasses and user classes (optional or not) are complex."""
        assert classify(annotation) is PropertyKind.COMPLEX

    @pytest.mark.parametrize("annotation", [list, List[OrderDetail], Optional[List[int]], Sequence[OrderDetail]])
    def test_collection(self, annotation):
        """Lists and sequences are collections."""
        assert classify(annotation) is PropertyKind.COLLECTION

    @pytest.mark.parametrize("annotation", [Any, "Forward", Optional[Any]])
    def test_any(self, annotation):
        """Open annotations are decided per value."""
        assert classify(annotation) is PropertyKind.ANY


class TestAnnotationAccepts:
    """annotation_accepts() checks values against annotations."""

    def test_plain_types(self):
        """isinstance semantics for plain classes."""
        assert annotation_accepts(int, 3)
        assert not annotation_accepts(int, "3")
        assert annotation_accepts(Address, Address())

    def test_numeric_widening(self):
        """int widens to float, int and float widen to complex."""
        assert annotation_accepts(float, 1)
        assert annotation_accepts(complex, 1.5)
        assert not annotation_accepts(int, 1.5)

    def test_union_syntax(self):
        """X | None behaves like Optional[X]."""
        assert annotation_accepts(int | None, None)
        assert annotation_accepts(int | None, 4)
        assert not annotation_accepts(int | None, "4")

    def test_generic_checks_origin_only(self):
        """List[int] checks for a list without inspecting its contents."""
        assert annotation_accepts(List[int], ["not", "ints"])
        assert not annotation_accepts(List[int], (1, 2))

    def test_literal(self):
        assert annotation_accepts(Literal[1, 2], 2)
        assert not annotation_accepts(Literal[1, 2], 3)


class TestPropertyTable:
    """PropertyTable discovery and caching."""

    def test_dataclass_fields(self):
        """Dataclass tables list the fields in declaration order."""
        table = get_property_table(Order)

        assert table.names == ("Id", "CustomerNumber", "Address", "OrderDetails")
        assert table.get("Address").kind is PropertyKind.COMPLEX
        assert table.get("OrderDetails").kind is PropertyKind.COLLECTION
        assert table.get("Id").kind is PropertyKind.SCALAR

    def test_forward_references_resolved(self):
        """String self-references resolve to the class."""
        table = get_property_table(InventoryUpdate)

        assert table.get("LinkedInventoryUpdate").kind is PropertyKind.COMPLEX
        assert table.get("LinkedInventoryUpdate").optional

    def test_annotated_class_skips_classvars_and_private(self):
        """Class annotations are tracked except ClassVar and underscore names."""

        class Plain:
            label: str = ""
            counter: ClassVar[int] = 0
            _hidden: int = 0

        table = get_property_table(Plain)

        assert "label" in table
        assert "counter" not in table
        assert "_hidden" not in table

    def test_init_parameters_along_mro(self):
        """__init__ parameters of base classes are discovered too."""

        class Base:
            def __init__(self, name: str):
                self.name = name

        class Child(Base):
            def __init__(self, name: str, size: int = 0, *args, **kwargs):
                super().__init__(name)
                self.size = size

        table = get_property_table(Child)

        assert set(table.names) == {"name", "size"}

    def test_dynamic_attribute_resolution(self):
        """Undeclared public instance attributes resolve as ANY."""

        class Bag:
            pass

        bag = Bag()
        bag.color = "red"
        table = get_property_table(Bag)

        info = table.resolve(bag, "color")
        assert info is not None
        assert info.kind is PropertyKind.ANY
        assert table.resolve(bag, "missing") is None
        assert [p.name for p in table.properties_of(bag)] == ["color"]

    def test_cache(self):
        """Tables are built once per type until the cache is cleared."""
        first = get_property_table(OrderDetail)

        assert get_property_table(OrderDetail) is first
        clear_cache()
        assert get_property_table(OrderDetail) is not first


class TestComplexValues:
    """is_complex_value() decides what gets a proxy."""

    @pytest.mark.parametrize("value", [None, 1, "s", 2.0, [1], {"a": 1}, {1}, (1,), len])
    def test_not_complex(self, value):
        assert not is_complex_value(value)

    def test_complex(self):
        assert is_complex_value(Address())
        assert is_complex_value(OrderDetail())
