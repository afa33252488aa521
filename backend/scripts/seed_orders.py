#!/usr/bin/env python3
"""
Seed the database with random orders (customers, dates and product lines).

Order numbers use the order's own date, so seeded data spreads over many days
and does not collide with numbers the API allocates for today.

Usage:
    python scripts/seed_orders.py --count 5000 --batch-size 100 --clear
"""
import argparse
import os
import random
import sys
from datetime import date, timedelta

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app.config import settings
from app.db import SessionLocal, init_db
from app.models.order import Order, OrderLine, new_id

FIRST_NAMES = ["Budi", "Dewi", "Agus", "Siti", "Ahmad", "Rina", "Dimas", "Maya",
               "Andi", "Lina", "Hendra", "Putri", "Rudi", "Wati", "Bambang"]
LAST_NAMES = ["Wijaya", "Kusuma", "Santoso", "Purnama", "Saputra", "Hidayat", "Nugraha",
              "Permana", "Wibowo", "Setiawan", "Susanto", "Hermawan", "Gunawan", "Suryanto", "Pratama"]

# (name, min price, max price) in thousands
PRODUCTS = [
    ("Laptop ASUS VivoBook", 7000, 15000),
    ("Laptop Lenovo IdeaPad", 6500, 14000),
    ("HP Samsung Galaxy A52", 3500, 5000),
    ("HP Xiaomi Redmi Note 11", 2200, 3500),
    ("iPad Pro 11", 11000, 18000),
    ("Headphone Sony WH-1000XM4", 3800, 4500),
    ("Monitor LG 27 inch", 2500, 3500),
    ("Keyboard Logitech K120", 120, 200),
    ("Mouse Logitech M331", 180, 350),
    ("Speaker Bluetooth JBL Go 3", 600, 850),
    ("Printer Epson L3210", 2200, 2800),
    ("SSD Samsung 1TB", 1300, 1800),
]


def random_date(start: date, end: date) -> date:
    return start + timedelta(days=random.randint(0, (end - start).days))


def random_lines(order_id: str):
    lines = []
    for position in range(random.randint(1, 5)):
        name, lo, hi = random.choice(PRODUCTS)
        price = float(random.randint(lo, hi) * 1000)
        qty = random.randint(1, 5)
        lines.append(OrderLine(id=new_id(), order_id=order_id, position=position,
                               product_name=name, qty=qty, price=price, subtotal=qty * price))
    return lines


def seed(count: int, batch_size: int, clear: bool, start: date):
    init_db(reset=clear)
    db = SessionLocal()
    # per-day sequence, continuing after any numbers already present
    seq_by_day = {}
    try:
        prefix = settings.ORDER_NO_PREFIX
        width = settings.ORDER_NO_SEQ_WIDTH
        for existing, in db.query(Order.order_no).all():
            day = existing[len(prefix):len(prefix) + 8]
            seq = int(existing[len(prefix) + 8:])
            seq_by_day[day] = max(seq_by_day.get(day, 0), seq)

        created = 0
        while created < count:
            for _ in range(min(batch_size, count - created)):
                order_date = random_date(start, date.today() - timedelta(days=1))
                day = order_date.strftime("%Y%m%d")
                seq_by_day[day] = seq_by_day.get(day, 0) + 1
                order_id = new_id()
                lines = random_lines(order_id)
                db.add(Order(
                    id=order_id,
                    order_no=f"{prefix}{day}{str(seq_by_day[day]).zfill(width)}",
                    customer_name=f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
                    order_date=order_date,
                    grand_total=sum(l.subtotal for l in lines),
                ))
                db.add_all(lines)
                created += 1
            db.commit()
            print(f"Generated {created}/{count} orders ({round(created / count * 100)}% complete)")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed random orders.")
    parser.add_argument("--count", "-n", type=int, default=5000)
    parser.add_argument("--batch-size", type=int, default=100)
    parser.add_argument("--clear", action="store_true", help="drop and recreate tables first")
    parser.add_argument("--since", default="2023-01-01", help="earliest order date (YYYY-MM-DD)")
    args = parser.parse_args()
    seed(args.count, args.batch_size, args.clear, date.fromisoformat(args.since))
