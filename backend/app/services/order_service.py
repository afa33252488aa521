import logging
import math
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from filelock import FileLock, Timeout
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.order import MAX_PRICE, MAX_QTY, Order, OrderLine, new_id
from app.repositories.order_repo import OrderRepository
from app.utils.order_number import OrderNumberAllocator
from app.utils.transactions import WriteUnit, write_unit

log = logging.getLogger("orders.service")

ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


class OrderServiceException(Exception):
    pass


class OrderValidationError(OrderServiceException):
    pass


class OrderNotFound(OrderServiceException):
    pass


class OrderConflict(OrderServiceException):
    pass


@dataclass
class OrderAggregate:
    order: Order
    lines: List[OrderLine]


def is_valid_id(order_id) -> bool:
    return isinstance(order_id, str) and bool(ID_PATTERN.match(order_id))


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class OrderService:
    """
    Owns the Order + OrderLine aggregate.

    Every write recomputes line subtotals (qty * price) and the order's grand_total
    from the lines being written, so callers can never set either directly.
    Updates replace the full line set; deletes remove the lines before the order.
    """

    def __init__(self, db: Session, atomic: Optional[bool] = None):
        self.db = db
        self.repo = OrderRepository(db)
        self.allocator = OrderNumberAllocator(db)
        self.atomic = settings.ATOMIC_WRITES if atomic is None else atomic

    # --- validation ---

    def _validate(self, customer_name, order_date, products):
        if not isinstance(customer_name, str) or not customer_name.strip():
            raise OrderValidationError("Customer name is required")
        if not isinstance(order_date, date):
            raise OrderValidationError("Order date is required")
        if not products:
            raise OrderValidationError("At least one product is required")
        total = 0.0
        for idx, p in enumerate(products):
            name = p.get("product_name")
            qty = p.get("qty")
            price = p.get("price")
            if not isinstance(name, str) or not name.strip():
                raise OrderValidationError(f"products[{idx}]: product name is required")
            if isinstance(qty, float) and qty.is_integer():
                qty = int(qty)
            if not isinstance(qty, int) or isinstance(qty, bool) or qty < 1:
                raise OrderValidationError(f"products[{idx}]: quantity must be an integer of at least 1")
            if qty > MAX_QTY:
                raise OrderValidationError(f"products[{idx}]: quantity cannot exceed {MAX_QTY}")
            if not _is_number(price) or price < 0:
                raise OrderValidationError(f"products[{idx}]: price cannot be negative")
            if price > MAX_PRICE or not math.isfinite(price):
                raise OrderValidationError(f"products[{idx}]: price cannot exceed {MAX_PRICE:.0f}")
            subtotal = qty * float(price)
            if not math.isfinite(subtotal):
                raise OrderValidationError(f"products[{idx}]: subtotal is out of range")
            total += subtotal
        if not math.isfinite(total):
            raise OrderValidationError("Grand total is out of range")

    def _build_lines(self, order_id: str, products: List[Dict]) -> List[OrderLine]:
        lines = []
        for position, p in enumerate(products):
            qty = int(p["qty"])
            price = float(p["price"])
            # any client-supplied subtotal is ignored
            lines.append(
                OrderLine(
                    id=new_id(),
                    order_id=order_id,
                    position=position,
                    product_name=p["product_name"].strip(),
                    qty=qty,
                    price=price,
                    subtotal=qty * price,
                )
            )
        return lines

    def _require(self, order_id: str) -> Order:
        if not is_valid_id(order_id):
            raise OrderValidationError("ID must be a 24 character hex string")
        order = self.repo.get(order_id.lower())
        if not order:
            raise OrderNotFound("Order not found")
        return order

    # --- operations ---

    def create_order(
        self, customer_name: str, order_date: date, products: List[Dict]
    ) -> OrderAggregate:
        self._validate(customer_name, order_date, products)
        if not settings.ORDER_NO_LOCK:
            return self._create(customer_name, order_date, products)

        locks_dir = os.path.join(tempfile.gettempdir(), "order_crud_locks")
        os.makedirs(locks_dir, exist_ok=True)
        lock = FileLock(os.path.join(locks_dir, "order_no.lock"))
        try:
            with lock.acquire(timeout=settings.ORDER_NO_LOCK_TIMEOUT):
                return self._create(customer_name, order_date, products)
        except Timeout:
            raise OrderConflict("Could not acquire order number lock; try again")

    def _create(self, customer_name, order_date, products) -> OrderAggregate:
        order_no = self.allocator.next_order_no()
        order_id = new_id()
        lines = self._build_lines(order_id, products)
        order = Order(
            id=order_id,
            order_no=order_no,
            customer_name=customer_name.strip(),
            order_date=order_date,
            grand_total=sum(l.subtotal for l in lines),
        )
        try:
            with write_unit(self.db, atomic=self.atomic) as unit:
                self.repo.add(order)
                unit.step()
                self.repo.add_lines(lines)
                unit.step()
        except IntegrityError:
            log.warning("order_no collision on insert: %s", order_no)
            raise OrderConflict(f"Order number {order_no} already exists")

        log.info("created order %s (%s) total=%s", order.order_no, order.id, order.grand_total)
        return OrderAggregate(order=order, lines=lines)

    def get_order(self, order_id: str) -> OrderAggregate:
        order = self._require(order_id)
        return OrderAggregate(order=order, lines=self.repo.lines_for(order.id))

    def update_order(
        self,
        order_id: str,
        customer_name: str,
        order_date: date,
        products: List[Dict],
    ) -> OrderAggregate:
        """
        Full replace: the order's fields are overwritten and its whole line set is
        swapped for `products`. order_no never changes.

        Steps run in this order: save order, delete old lines, insert new lines.
        With atomic=False each step is committed on its own, so a failure part way
        leaves the order saved with some or all of its lines gone.
        """
        self._validate(customer_name, order_date, products)
        order = self._require(order_id)
        lines = self._build_lines(order.id, products)

        with write_unit(self.db, atomic=self.atomic) as unit:
            order.customer_name = customer_name.strip()
            order.order_date = order_date
            order.grand_total = sum(l.subtotal for l in lines)
            unit.step()
            self.repo.delete_lines(order.id)
            unit.step()
            self.repo.add_lines(lines)
            unit.step()

        log.info("updated order %s total=%s", order.order_no, order.grand_total)
        return OrderAggregate(order=order, lines=lines)

    def delete_order(self, order_id: str) -> Dict:
        order = self._require(order_id)
        order_id, order_no = order.id, order.order_no
        with write_unit(self.db, atomic=self.atomic) as unit:
            self._cascade_delete(order, unit)
        log.info("deleted order %s (%s)", order_no, order_id)
        return {"message": "Order removed", "id": order_id}

    def _cascade_delete(self, order: Order, unit: WriteUnit):
        """Lines first, then the order. Every delete path goes through here."""
        removed = self.repo.delete_lines(order.id)
        unit.step()
        self.repo.delete(order)
        unit.step()
        log.debug("cascade removed %s lines for order %s", removed, order.id)
