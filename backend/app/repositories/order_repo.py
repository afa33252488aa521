from dataclasses import dataclass
from datetime import date
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from app.models.order import Order, OrderLine

SORT_FIELDS = {
    "order_no": Order.order_no,
    "customer_name": Order.customer_name,
    "order_date": Order.order_date,
    "grand_total": Order.grand_total,
    "created_at": Order.created_at,
}
DEFAULT_SORT = "created_at"


def _escape_like(text: str) -> str:
    """Search input is literal text: LIKE wildcards in it match themselves."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class OrderCriteria:
    order_no: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    # --- orders ---

    def add(self, order: Order) -> Order:
        self.db.add(order)
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.id == order_id).first()

    def delete(self, order: Order):
        self.db.query(Order).filter(Order.id == order.id).delete(
            synchronize_session=False
        )

    def latest_order_no(self, prefix: str) -> Optional[str]:
        """
        Greatest order_no starting with `prefix`. Longer suffixes rank higher so that
        a widened sequence (e.g. ...1000) beats ...999.
        """
        row = (
            self.db.query(Order.order_no)
            .filter(Order.order_no.like(f"{prefix}%"))
            .order_by(func.length(Order.order_no).desc(), Order.order_no.desc())
            .first()
        )
        return row[0] if row else None

    # --- lines ---

    def lines_for(self, order_id: str) -> List[OrderLine]:
        return (
            self.db.query(OrderLine)
            .filter(OrderLine.order_id == order_id)
            .order_by(OrderLine.position)
            .all()
        )

    def add_lines(self, lines: List[OrderLine]):
        self.db.add_all(lines)

    def delete_lines(self, order_id: str) -> int:
        return (
            self.db.query(OrderLine)
            .filter(OrderLine.order_id == order_id)
            .delete(synchronize_session=False)
        )

    # --- queries ---

    def _filtered(self, criteria: OrderCriteria) -> Query:
        query = self.db.query(Order)
        if criteria.order_no:
            query = query.filter(
                Order.order_no.ilike(f"%{_escape_like(criteria.order_no)}%", escape="\\")
            )
        if criteria.has_date_range:
            query = query.filter(
                Order.order_date >= criteria.start_date,
                Order.order_date <= criteria.end_date,
            )
        return query

    def _ordered(self, query: Query, sort: Optional[str], direction: Optional[str]) -> Query:
        column = SORT_FIELDS.get(sort or DEFAULT_SORT, SORT_FIELDS[DEFAULT_SORT])
        if direction == "asc":
            return query.order_by(column.asc(), Order.id.asc())
        return query.order_by(column.desc(), Order.id.desc())

    def count(self, criteria: OrderCriteria) -> int:
        return self._filtered(criteria).with_entities(func.count(Order.id)).scalar() or 0

    def find(
        self,
        criteria: OrderCriteria,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> List[Order]:
        query = self._ordered(self._filtered(criteria), sort, direction)
        return query.offset(offset).limit(limit).all()

    def stream(
        self,
        criteria: OrderCriteria,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        batch_size: int = 100,
    ) -> Iterator[Order]:
        """Forward-only cursor; rows are fetched `batch_size` at a time."""
        query = self._ordered(self._filtered(criteria), sort, direction)
        for order in query.yield_per(batch_size):
            yield order
