import math
from datetime import date
from typing import Dict, Iterator, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.order import Order
from app.repositories.order_repo import OrderCriteria, OrderRepository, SORT_FIELDS
from app.services.order_service import OrderValidationError


class QueryService:
    """List / search / date-filter / export over orders, all through one criteria shape."""

    def __init__(self, db: Session, page_size: Optional[int] = None):
        self.db = db
        self.repo = OrderRepository(db)
        self.page_size = page_size or settings.PAGE_SIZE

    def _check_sort(self, sort: Optional[str], direction: Optional[str]):
        if sort is not None and sort not in SORT_FIELDS:
            raise OrderValidationError(
                "Sort field must be one of: " + ", ".join(SORT_FIELDS)
            )
        if direction is not None and direction not in ("asc", "desc"):
            raise OrderValidationError("Sort direction must be either asc or desc")

    def page(
        self,
        criteria: OrderCriteria,
        page: int = 1,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> Dict:
        if page < 1:
            raise OrderValidationError("Page must be at least 1")
        self._check_sort(sort, direction)
        total = self.repo.count(criteria)
        items = self.repo.find(
            criteria,
            sort=sort,
            direction=direction,
            offset=(page - 1) * self.page_size,
            limit=self.page_size,
        )
        return {
            "items": items,
            "page": page,
            "pages": math.ceil(total / self.page_size),
            "total": total,
        }

    def list_orders(self, page: int = 1, sort=None, direction=None) -> Dict:
        return self.page(OrderCriteria(), page, sort, direction)

    def search_orders(self, order_no: str, page: int = 1, sort=None, direction=None) -> Dict:
        if not order_no or not order_no.strip():
            raise OrderValidationError("Order number is required for search")
        return self.page(OrderCriteria(order_no=order_no.strip()), page, sort, direction)

    def filter_orders(
        self,
        start_date: date,
        end_date: date,
        page: int = 1,
        sort=None,
        direction=None,
    ) -> Dict:
        if start_date is None or end_date is None:
            raise OrderValidationError("Please provide both start date and end date")
        if end_date < start_date:
            raise OrderValidationError("End date must be greater than or equal to start date")
        criteria = OrderCriteria(start_date=start_date, end_date=end_date)
        return self.page(criteria, page, sort, direction)

    def iter_export(
        self,
        criteria: OrderCriteria,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        batch_size: Optional[int] = None,
    ) -> Iterator[Order]:
        if criteria.has_date_range and criteria.end_date < criteria.start_date:
            raise OrderValidationError("End date must be greater than or equal to start date")
        self._check_sort(sort, direction)
        return self.repo.stream(
            criteria,
            sort=sort,
            direction=direction,
            batch_size=batch_size or settings.EXPORT_BATCH_SIZE,
        )
