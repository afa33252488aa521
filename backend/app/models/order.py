import secrets
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
)

from app.db import Base


# per-line upper bounds; qty * price and order totals stay finite
MAX_QTY = 1_000_000
MAX_PRICE = 1_000_000_000_000.0


def new_id() -> str:
    """24 hex characters, the same shape clients validate ids against."""
    return secrets.token_hex(12)


def _utcnow():
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(24), primary_key=True, default=new_id)
    order_no = Column(String(32), unique=True, nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    order_date = Column(Date, nullable=False, index=True)
    # derived: sum of the current lines' subtotals, maintained by OrderService
    grand_total = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # lines are loaded and deleted by OrderService through explicit queries

    def __repr__(self):
        return f"<Order order_no={self.order_no} total={self.grand_total}>"


class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(String(24), primary_key=True, default=new_id)
    order_id = Column(
        String(24), ForeignKey("orders.id"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False, default=0)  # insertion order within the order
    product_name = Column(String(255), nullable=False)
    qty = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)  # always qty * price
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )
