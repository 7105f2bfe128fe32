from decimal import Decimal

import pytest

from cart import Cart, CartStore
from errors import ValidationError

PASTA = {"id": "1", "name": "Truffle Pasta", "price": 24.99}
SALMON = {"id": "2", "name": "Seared Salmon", "price": 29.99}


def test_add_same_item_twice_increments_quantity():
    cart = Cart()
    cart.add(PASTA)
    cart.add(PASTA)
    assert len(cart) == 1
    assert cart.lines[0].quantity == 2


def test_decrement_stops_at_one():
    cart = Cart()
    cart.add(PASTA)
    cart.decrement("1")
    cart.decrement("1")
    assert cart.lines[0].quantity == 1


def test_update_quantity_below_one_is_ignored():
    cart = Cart()
    cart.add(SALMON)
    cart.update_quantity("2", 3)
    cart.update_quantity("2", 0)
    cart.update_quantity("2", -4)
    assert cart.lines[0].quantity == 3


def test_remove_takes_the_line_out():
    cart = Cart()
    cart.add(PASTA)
    cart.add(SALMON)
    cart.remove("1")
    assert [line.id for line in cart.lines] == ["2"]


def test_unknown_line_raises():
    cart = Cart()
    with pytest.raises(ValidationError):
        cart.remove("nope")
    with pytest.raises(ValidationError):
        cart.increment("nope")


def test_totals_include_eight_percent_tax():
    cart = Cart()
    cart.add(PASTA)
    cart.add(SALMON)
    cart.increment("2")
    assert cart.subtotal == Decimal("84.97")
    assert cart.tax == Decimal("6.80")
    assert cart.total == Decimal("91.77")
    # same numbers every time they are read
    assert cart.summary() == cart.summary()
    assert cart.summary()["total"] == "91.77"


def test_empty_cart_totals_are_zero():
    cart = Cart()
    assert cart.subtotal == Decimal("0.00")
    assert cart.total == Decimal("0.00")


def test_order_lines_carry_quantities():
    cart = Cart()
    cart.add(SALMON)
    cart.update_quantity("2", 2)
    lines = cart.order_lines()
    assert [(line.id, line.name, line.price, line.quantity) for line in lines] == [
        ("2", "Seared Salmon", 29.99, 2)
    ]


def test_cart_store_keeps_one_cart_per_session():
    store = CartStore()
    store.get("a").add(PASTA)
    assert len(store.get("a")) == 1
    assert len(store.get("b")) == 0
    store.discard("a")
    assert len(store.get("a")) == 0


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_idle_carts_are_dropped():
    clock = FakeClock()
    store = CartStore(max_idle=60, clock=clock)
    store.get("old").add(PASTA)
    clock.now = 30
    store.get("active").add(SALMON)
    clock.now = 75
    assert len(store.get("active")) == 1
    assert len(store) == 1
    assert len(store.get("old")) == 0


def test_reading_a_cart_keeps_it_alive():
    clock = FakeClock()
    store = CartStore(max_idle=60, clock=clock)
    store.get("a").add(PASTA)
    for step in (50, 100, 150):
        clock.now = step
        assert len(store.get("a")) == 1
