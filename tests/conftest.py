"""Pytest configuration and shared fixtures."""
import pytest
from dataclasses import dataclass, field
from typing import List, Optional

import changetracking.config as config_module
from changetracking.properties import clear_cache


@dataclass
class Address:
    """Test address - complex property of Order."""
    AddressId: int = 0
    City: str = ""


@dataclass
class OrderDetail:
    """Test order line - element of Order.OrderDetails."""
    OrderDetailId: int = 0
    ItemNo: str = ""


@dataclass
class Order:
    """Test order - root object with scalar, complex and collection properties."""
    Id: int = 0
    CustomerNumber: str = ""
    Address: Optional['Address'] = None
    OrderDetails: List[OrderDetail] = field(default_factory=list)


@dataclass
class InventoryUpdate:
    """Test object that links to other instances of its own type (cycles)."""
    InventoryUpdateId: int = 0
    LinkedInventoryUpdate: Optional['InventoryUpdate'] = None
    LinkedToInventoryUpdate: Optional['InventoryUpdate'] = None


class PropertyChangedRecorder:
    """Records (sender, property_name) notifications of one wrapper."""

    def __init__(self, view):
        self.events = []
        self.subscription = view.subscribe(self)

    def __call__(self, sender, property_name):
        self.events.append((sender, property_name))

    @property
    def names(self):
        return [name for _, name in self.events]

    def raised(self, property_name):
        return property_name in self.names

    def count(self, property_name):
        return self.names.count(property_name)

    def clear(self):
        self.events.clear()


@pytest.fixture(autouse=True)
def reset_tracking_state():
    """Restore default options and drop cached property tables after each test."""
    token = config_module._default_options.set(config_module.TrackingOptions())

    yield

    config_module._default_options.reset(token)
    clear_cache()


@pytest.fixture
def order():
    """Provide a test order with an address and two order details."""
    return Order(
        Id=1,
        CustomerNumber="Customer",
        Address=Address(AddressId=1, City="New York"),
        OrderDetails=[
            OrderDetail(OrderDetailId=1, ItemNo="Item123"),
            OrderDetail(OrderDetailId=2, ItemNo="Item369"),
        ],
    )
