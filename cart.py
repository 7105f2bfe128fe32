import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from errors import ValidationError
from schemas import OrderLine

TAX_RATE = Decimal("0.08")
CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class CartLine(BaseModel):
    id: str
    name: str
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class Cart:
    """Shopping cart for one session. Quantities never drop below 1;
    taking a line out is always an explicit ``remove``."""

    def __init__(self):
        self._lines: Dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def add(self, item: Dict[str, Any]) -> CartLine:
        line = self._lines.get(item["id"])
        if line:
            line.quantity += 1
            return line
        line = CartLine(
            id=item["id"],
            name=item["name"],
            price=Decimal(str(item["price"])),
            image=item.get("image"),
        )
        self._lines[line.id] = line
        return line

    def _line(self, item_id: str) -> CartLine:
        try:
            return self._lines[item_id]
        except KeyError:
            raise ValidationError("Item is not in your order")

    def update_quantity(self, item_id: str, quantity: int) -> CartLine:
        line = self._line(item_id)
        if quantity < 1:
            return line
        line.quantity = quantity
        return line

    def increment(self, item_id: str) -> CartLine:
        line = self._line(item_id)
        return self.update_quantity(item_id, line.quantity + 1)

    def decrement(self, item_id: str) -> CartLine:
        line = self._line(item_id)
        return self.update_quantity(item_id, line.quantity - 1)

    def remove(self, item_id: str) -> None:
        self._line(item_id)
        del self._lines[item_id]

    def clear(self) -> None:
        self._lines.clear()

    @property
    def subtotal(self) -> Decimal:
        return to_money(sum((line.line_total for line in self._lines.values()), Decimal("0")))

    @property
    def tax(self) -> Decimal:
        return to_money(self.subtotal * TAX_RATE)

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    def order_lines(self) -> List[OrderLine]:
        return [
            OrderLine(id=line.id, name=line.name, price=float(line.price), quantity=line.quantity)
            for line in self._lines.values()
        ]

    def summary(self) -> Dict[str, Any]:
        return {
            "items": [
                {**line.model_dump(mode="json"), "line_total": str(to_money(line.line_total))}
                for line in self._lines.values()
            ],
            "subtotal": str(self.subtotal),
            "tax": str(self.tax),
            "total": str(self.total),
        }


class CartStore:
    """In-memory carts keyed by session id.

    A cart not touched for ``max_idle`` seconds is dropped on the next
    ``get``, so carts of sessions that simply expire do not pile up.
    """

    def __init__(self, max_idle: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.max_idle = max_idle
        self._clock = clock
        self._carts: Dict[str, Cart] = {}
        self._seen: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._carts)

    def _prune(self, now: float) -> None:
        if self.max_idle is None:
            return
        stale = [sid for sid, seen in self._seen.items() if now - seen > self.max_idle]
        for sid in stale:
            self.discard(sid)

    def get(self, session_id: str) -> Cart:
        now = self._clock()
        self._prune(now)
        cart = self._carts.get(session_id)
        if cart is None:
            cart = self._carts[session_id] = Cart()
        self._seen[session_id] = now
        return cart

    def discard(self, session_id: str) -> None:
        self._carts.pop(session_id, None)
        self._seen.pop(session_id, None)

    def clear(self) -> None:
        self._carts.clear()
        self._seen.clear()
