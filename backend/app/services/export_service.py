import glob
import logging
import os
import tempfile
import time
from typing import List, Optional, Tuple

from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Border, Font, PatternFill, Side
from sqlalchemy.orm import Session

from app.config import settings
from app.repositories.order_repo import OrderCriteria
from app.services.query_service import QueryService

log = logging.getLogger("orders.export")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EXPORT_FILENAME = "orders.xlsx"
EXPORT_TEMP_PREFIX = "orders-"

COLUMNS = [
    ("Order No", 20),
    ("Customer Name", 25),
    ("Order Date", 20),
    ("Grand Total", 15),
]
DATE_FORMAT = "dd/mm/yyyy"
TOTAL_FORMAT = "#,##0.00"

_thin = Side(style="thin")
HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFE0E0E0")
HEADER_BORDER = Border(top=_thin, left=_thin, bottom=_thin, right=_thin)
ALT_ROW_FILL = PatternFill(fill_type="solid", fgColor="FFFAFAFA")


def describe_filters(
    criteria: OrderCriteria, sort: Optional[str], direction: Optional[str]
) -> List[str]:
    lines = []
    if criteria.has_date_range:
        lines.append(
            f"Date Range: {criteria.start_date.strftime('%d/%m/%Y')} "
            f"to {criteria.end_date.strftime('%d/%m/%Y')}"
        )
    if criteria.order_no:
        lines.append(f'Search: Order number containing "{criteria.order_no}"')
    if sort:
        label = "ascending" if direction == "asc" else "descending"
        lines.append(f"Sorted by: {sort} ({label})")
    return lines


def sweep_stale_exports(max_age: Optional[float] = None) -> int:
    """
    Removes export files left in the temp dir, e.g. when a client disconnected
    before the response cleanup ran. Returns how many were removed.
    """
    max_age = settings.EXPORT_TEMP_MAX_AGE if max_age is None else max_age
    cutoff = time.time() - max_age
    removed = 0
    for path in glob.glob(os.path.join(tempfile.gettempdir(), EXPORT_TEMP_PREFIX + "*.xlsx")):
        try:
            if os.path.getmtime(path) < cutoff:
                os.remove(path)
                removed += 1
        except FileNotFoundError:
            # removed concurrently by its own response
            continue
    if removed:
        log.info("removed %s stale export files", removed)
    return removed


class ExportService:
    """
    Writes matching orders to an xlsx workbook.

    The workbook is opened in openpyxl's write-only mode and fed straight from the
    query cursor, so rows go to disk as they are produced instead of being held
    as a full result set.
    """

    def __init__(self, db: Session):
        self.db = db
        self.query = QueryService(db)

    def write_workbook(
        self,
        target,
        criteria: OrderCriteria,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> int:
        # validates criteria before anything is written
        orders = self.query.iter_export(criteria, sort=sort, direction=direction)

        wb = Workbook(write_only=True)
        ws = wb.create_sheet("Orders")
        for idx, (_, width) in enumerate(COLUMNS):
            ws.column_dimensions[chr(ord("A") + idx)].width = width

        title = WriteOnlyCell(ws, value="Orders Export")
        title.font = Font(bold=True, size=16)
        ws.append([title])
        ws.append([])
        for text in describe_filters(criteria, sort, direction):
            ws.append([text])
        ws.append([])

        header = []
        for name, _ in COLUMNS:
            cell = WriteOnlyCell(ws, value=name)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.border = HEADER_BORDER
            header.append(cell)
        ws.append(header)

        count = 0
        for order in orders:
            count += 1
            order_date = WriteOnlyCell(ws, value=order.order_date)
            order_date.number_format = DATE_FORMAT
            total = WriteOnlyCell(ws, value=round(order.grand_total or 0, 2))
            total.number_format = TOTAL_FORMAT
            row = [
                WriteOnlyCell(ws, value=order.order_no),
                WriteOnlyCell(ws, value=order.customer_name),
                order_date,
                total,
            ]
            if count % 2 == 0:
                for cell in row:
                    cell.fill = ALT_ROW_FILL
            ws.append(row)

        wb.save(target)
        return count

    def export_to_tempfile(
        self,
        criteria: OrderCriteria,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
    ) -> Tuple[str, int]:
        """Returns (path, row_count). The caller owns the file and must remove it."""
        sweep_stale_exports()
        fd, path = tempfile.mkstemp(prefix=EXPORT_TEMP_PREFIX, suffix=".xlsx")
        os.close(fd)
        try:
            count = self.write_workbook(path, criteria, sort=sort, direction=direction)
        except Exception:
            os.remove(path)
            raise
        log.info("exported %s orders to %s", count, path)
        return path, count
