import os
import sys
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import argparse
import concurrent.futures
import json
from collections import Counter
from datetime import date

import requests

BASE = os.environ.get("ORDERS_BASE", "http://127.0.0.1:8000")


def create_task(i, payload):
    try:
        r = requests.post(f"{BASE}/api/orders", json=payload, timeout=20)
        return (i, "create", r.status_code, r.text)
    except Exception as e:
        return (i, "create", "ERR", str(e))


def update_task(i, order_id, payload):
    try:
        r = requests.put(f"{BASE}/api/orders/{order_id}", json=payload, timeout=20)
        return (i, "update", r.status_code, r.text)
    except Exception as e:
        return (i, "update", "ERR", str(e))


def _payload(i):
    return {
        "customer_name": f"Concurrent Customer {i}",
        "order_date": date.today().isoformat(),
        "products": [{"product_name": f"Item {i}", "qty": 1, "price": 100 + i}],
    }


def run_create_concurrent(workers):
    """
    Fire `workers` creates at once. Order numbers are allocated by read-then-insert,
    so some requests are expected to come back 409 (duplicate order_no).
    """
    print(f"Running create test: workers={workers}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(create_task, i, _payload(i)) for i in range(workers)]
        results = [f.result() for f in futures]
    statuses = Counter(r[2] for r in results)
    print("Status codes:", dict(statuses))
    numbers = [json.loads(r[3]).get("order_no") for r in results if r[2] == 201]
    print("Allocated order numbers:", sorted(numbers))
    print("Conflicts (409):", statuses.get(409, 0))


def run_update_concurrent(workers, order_id):
    """Concurrent full-replace updates on one order; last write wins."""
    print(f"Running update test: workers={workers}, order_id={order_id}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(update_task, i, order_id, _payload(i)) for i in range(workers)]
        results = [f.result() for f in futures]
    print("Status codes:", dict(Counter(r[2] for r in results)))
    r = requests.get(f"{BASE}/api/orders/{order_id}", timeout=20)
    body = r.json()
    line_total = sum(p["subtotal"] for p in body.get("products", []))
    print("Final:", body.get("customer_name"), "grand_total=", body.get("grand_total"),
          "lines=", len(body.get("products", [])), "sum(subtotal)=", line_total)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrency test tool (creates or updates).")
    sub = parser.add_subparsers(dest="mode", required=True)

    c = sub.add_parser("create")
    c.add_argument("--workers", type=int, default=8)

    u = sub.add_parser("update")
    u.add_argument("--workers", type=int, default=8)
    u.add_argument("--order-id", required=True)

    args = parser.parse_args()

    if args.mode == "create":
        run_create_concurrent(args.workers)
    elif args.mode == "update":
        run_update_concurrent(args.workers, args.order_id)
