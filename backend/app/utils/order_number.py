from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.repositories.order_repo import OrderRepository


class OrderNumberAllocator:
    """
    Computes the next order number for a date: <prefix><YYYYMMDD><seq>.

    The sequence is read from the highest existing number for that date and
    incremented. It is zero-padded to `width` digits but never truncated, so the
    thousandth order of a day becomes ...1000.

    This is a plain read; nothing is reserved. Two callers racing on the same
    date can both get the same number, and the second insert then fails on the
    UNIQUE constraint of orders.order_no (OrderService reports it as a conflict).
    """

    def __init__(
        self,
        db: Session,
        prefix: Optional[str] = None,
        width: Optional[int] = None,
    ):
        self.repo = OrderRepository(db)
        self.prefix = prefix if prefix is not None else settings.ORDER_NO_PREFIX
        self.width = width if width is not None else settings.ORDER_NO_SEQ_WIDTH

    def date_prefix(self, today: Optional[date] = None) -> str:
        today = today or date.today()
        return f"{self.prefix}{today.strftime('%Y%m%d')}"

    def next_order_no(self, today: Optional[date] = None) -> str:
        day_prefix = self.date_prefix(today)
        latest = self.repo.latest_order_no(day_prefix)
        seq = 1
        if latest:
            seq = int(latest[len(day_prefix):]) + 1
        return f"{day_prefix}{str(seq).zfill(self.width)}"
