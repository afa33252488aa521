import os
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from starlette.background import BackgroundTask

from app.db import get_db
from app.repositories.order_repo import OrderCriteria
from app.schemas.order_schema import (
    ID_REGEX,
    DateFilterQuery,
    ExportQuery,
    OrderIn,
    OrderLineOut,
    OrderOut,
    OrderPageOut,
    OrderSummaryOut,
    PageQuery,
    SearchQuery,
)
from app.services.export_service import EXPORT_FILENAME, XLSX_MEDIA_TYPE, ExportService
from app.services.order_service import (
    OrderAggregate,
    OrderConflict,
    OrderNotFound,
    OrderService,
    OrderServiceException,
)
from app.services.query_service import QueryService

router = APIRouter(tags=["orders"])

OrderId = Annotated[str, Path(pattern=ID_REGEX, description="24 character hex id")]


def _http_error(e: OrderServiceException) -> HTTPException:
    if isinstance(e, OrderNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, OrderConflict):
        return HTTPException(status_code=409, detail=str(e))
    # OrderValidationError and anything else the caller got wrong
    return HTTPException(status_code=400, detail=str(e))


def _aggregate_out(agg: OrderAggregate) -> OrderOut:
    summary = OrderSummaryOut.model_validate(agg.order)
    return OrderOut(
        **summary.model_dump(),
        products=[OrderLineOut.model_validate(l) for l in agg.lines],
    )


def _page_out(result: dict) -> OrderPageOut:
    return OrderPageOut(
        items=[OrderSummaryOut.model_validate(o) for o in result["items"]],
        page=result["page"],
        pages=result["pages"],
        total=result["total"],
    )


@router.get("", summary="List orders (paged)")
def list_orders(params: Annotated[PageQuery, Query()], db: Session = Depends(get_db)):
    svc = QueryService(db)
    try:
        result = svc.list_orders(page=params.page, sort=params.sort, direction=params.dir)
    except OrderServiceException as e:
        raise _http_error(e)
    return _page_out(result)


@router.get("/search", summary="Search orders by order number")
def search_orders(params: Annotated[SearchQuery, Query()], db: Session = Depends(get_db)):
    svc = QueryService(db)
    try:
        result = svc.search_orders(
            params.order_no, page=params.page, sort=params.sort, direction=params.dir
        )
    except OrderServiceException as e:
        raise _http_error(e)
    return _page_out(result)


@router.get("/filter", summary="Filter orders by order date range")
def filter_orders(params: Annotated[DateFilterQuery, Query()], db: Session = Depends(get_db)):
    svc = QueryService(db)
    try:
        result = svc.filter_orders(
            params.start_date,
            params.end_date,
            page=params.page,
            sort=params.sort,
            direction=params.dir,
        )
    except OrderServiceException as e:
        raise _http_error(e)
    return _page_out(result)


@router.get("/export/excel", summary="Export matching orders as xlsx")
def export_excel(params: Annotated[ExportQuery, Query()], db: Session = Depends(get_db)):
    criteria = OrderCriteria(
        order_no=params.order_no or None,
        start_date=params.start_date,
        end_date=params.end_date,
    )
    svc = ExportService(db)
    try:
        path, _ = svc.export_to_tempfile(criteria, sort=params.sort, direction=params.dir)
    except OrderServiceException as e:
        raise _http_error(e)
    return FileResponse(
        path,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
        background=BackgroundTask(os.remove, path),
    )


@router.get("/{order_id}", summary="Get order with its products")
def get_order(order_id: OrderId, db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        agg = svc.get_order(order_id)
    except OrderServiceException as e:
        raise _http_error(e)
    return _aggregate_out(agg)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create order")
def create_order(payload: OrderIn, db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        agg = svc.create_order(
            payload.customer_name,
            payload.order_date,
            [p.model_dump() for p in payload.products],
        )
    except OrderServiceException as e:
        raise _http_error(e)
    return _aggregate_out(agg)


@router.put("/{order_id}", summary="Replace order and its full product list")
def update_order(order_id: OrderId, payload: OrderIn, db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        agg = svc.update_order(
            order_id,
            payload.customer_name,
            payload.order_date,
            [p.model_dump() for p in payload.products],
        )
    except OrderServiceException as e:
        raise _http_error(e)
    return _aggregate_out(agg)


@router.delete("/{order_id}", summary="Delete order and its products")
def delete_order(order_id: OrderId, db: Session = Depends(get_db)):
    svc = OrderService(db)
    try:
        return svc.delete_order(order_id)
    except OrderServiceException as e:
        raise _http_error(e)
