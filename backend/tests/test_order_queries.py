from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.order import Order
from app.repositories.order_repo import OrderCriteria, OrderRepository
from app.services.order_service import OrderValidationError
from app.services.query_service import QueryService

client = TestClient(app)

START = date(2025, 4, 1)


def _seed(db, count, start=START):
    """Orders INV20250424001.. with one order per day from `start` and growing totals."""
    for i in range(1, count + 1):
        db.add(
            Order(
                order_no=f"INV20250424{i:03d}",
                customer_name=f"Customer {i:02d}",
                order_date=start + timedelta(days=i - 1),
                grand_total=float(i * 100),
            )
        )
        db.commit()


def test_list_second_page(db):
    _seed(db, 15)
    r = client.get("/api/orders?page=2")
    assert r.status_code == 200
    body = r.json()
    assert len(body["items"]) == 5
    assert body["page"] == 2
    assert body["pages"] == 2
    assert body["total"] == 15


def test_list_page_past_end_is_empty(db):
    _seed(db, 3)
    body = client.get("/api/orders?page=3").json()
    assert body["items"] == []
    assert body["pages"] == 1


def test_list_default_sort_is_newest_first(db):
    _seed(db, 3)
    body = client.get("/api/orders").json()
    assert [o["order_no"] for o in body["items"]] == [
        "INV20250424003",
        "INV20250424002",
        "INV20250424001",
    ]


@pytest.mark.parametrize(
    "query, expected",
    [
        ("sort=order_no&dir=asc", ["INV20250424001", "INV20250424002", "INV20250424003"]),
        ("sort=grand_total&dir=desc", ["INV20250424003", "INV20250424002", "INV20250424001"]),
        ("sort=order_date", ["INV20250424003", "INV20250424002", "INV20250424001"]),
        ("sort=customer_name&dir=asc", ["INV20250424001", "INV20250424002", "INV20250424003"]),
    ],
)
def test_list_sorting(db, query, expected):
    _seed(db, 3)
    body = client.get(f"/api/orders?{query}").json()
    assert [o["order_no"] for o in body["items"]] == expected


@pytest.mark.parametrize("query", ["sort=created_by", "dir=sideways", "page=0", "page=abc"])
def test_list_rejects_bad_params(query):
    r = client.get(f"/api/orders?{query}")
    assert r.status_code == 400


def test_list_items_have_no_products(db):
    _seed(db, 1)
    item = client.get("/api/orders").json()["items"][0]
    assert "products" not in item
    assert item["grand_total"] == 100


def test_search_is_case_insensitive_substring(db):
    _seed(db, 12)
    db.add(Order(order_no="INV20250501001", customer_name="Other", order_date=START, grand_total=1))
    db.commit()

    r = client.get("/api/orders/search?order_no=inv2025042400")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 9
    assert body["pages"] == 1

    body = client.get("/api/orders/search?order_no=20250424&page=2").json()
    assert body["total"] == 12
    assert body["pages"] == 2
    assert len(body["items"]) == 2


@pytest.mark.parametrize("term", ["%", "_", "INV2025042400_", "\\"])
def test_search_treats_wildcards_literally(db, term):
    _seed(db, 3)
    body = client.get("/api/orders/search", params={"order_no": term}).json()
    assert body["total"] == 0
    assert body["items"] == []


def test_search_with_literal_underscore(db):
    _seed(db, 2)
    db.add(Order(order_no="INV_LEGACY_7", customer_name="Legacy", order_date=START, grand_total=1))
    db.commit()
    body = client.get("/api/orders/search", params={"order_no": "v_leg"}).json()
    assert [o["order_no"] for o in body["items"]] == ["INV_LEGACY_7"]


def test_search_requires_order_no():
    assert client.get("/api/orders/search").status_code == 400
    assert client.get("/api/orders/search?order_no=").status_code == 400


def test_filter_by_date_range_is_inclusive(db):
    _seed(db, 20)
    r = client.get("/api/orders/filter?start_date=2025-04-05&end_date=2025-04-14&sort=order_date&dir=asc")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 10
    assert body["pages"] == 1
    assert body["items"][0]["order_date"] == "2025-04-05"
    assert body["items"][-1]["order_date"] == "2025-04-14"


def test_filter_requires_both_dates():
    assert client.get("/api/orders/filter?start_date=2025-04-01").status_code == 400
    assert client.get("/api/orders/filter").status_code == 400


def test_filter_end_before_start_never_queries(monkeypatch):
    def must_not_run(*args, **kwargs):
        raise AssertionError("query executed")

    monkeypatch.setattr(OrderRepository, "count", must_not_run)
    monkeypatch.setattr(OrderRepository, "find", must_not_run)

    r = client.get("/api/orders/filter?start_date=2025-04-15&end_date=2025-04-01")
    assert r.status_code == 400
    body = r.json()
    assert body["errors"][0]["field"] == "end_date"

    with pytest.raises(OrderValidationError):
        QueryService(None).filter_orders(date(2025, 4, 15), date(2025, 4, 1))


def test_pages_use_filtered_count(db):
    _seed(db, 25)
    body = client.get("/api/orders/filter?start_date=2025-04-01&end_date=2025-04-11").json()
    assert body["total"] == 11
    assert body["pages"] == 2


def test_query_service_page_size(db):
    _seed(db, 7)
    result = QueryService(db, page_size=3).page(OrderCriteria(), page=3, sort="order_no", direction="asc")
    assert [o.order_no for o in result["items"]] == ["INV20250424007"]
    assert result["pages"] == 3
