import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "dev.db"
ORDER_NO = sys.argv[2] if len(sys.argv) > 2 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Recent Orders ===")
if ORDER_NO:
    cur.execute(
        "SELECT id, order_no, customer_name, order_date, grand_total, created_at FROM orders WHERE order_no=?",
        (ORDER_NO,),
    )
else:
    cur.execute(
        "SELECT id, order_no, customer_name, order_date, grand_total, created_at FROM orders ORDER BY created_at DESC LIMIT 20"
    )
for r in cur.fetchall():
    print(r)

if ORDER_NO:
    print(f"\n=== Lines for {ORDER_NO} ===")
    cur.execute(
        "SELECT l.position, l.product_name, l.qty, l.price, l.subtotal FROM order_lines l "
        "JOIN orders o ON o.id = l.order_id WHERE o.order_no=? ORDER BY l.position",
        (ORDER_NO,),
    )
    for r in cur.fetchall():
        print(r)

# grand_total must equal the sum of the order's line subtotals
print("\n=== Orders whose grand_total != sum(subtotal) ===")
cur.execute(
    "SELECT o.order_no, o.grand_total, COALESCE(SUM(l.subtotal), 0) AS lines_total "
    "FROM orders o LEFT JOIN order_lines l ON l.order_id = o.id "
    "GROUP BY o.id HAVING ABS(o.grand_total - COALESCE(SUM(l.subtotal), 0)) > 0.005"
)
bad = cur.fetchall()
for r in bad:
    print(r)
print(f"{len(bad)} inconsistent order(s)")

print("\n=== Lines whose order is gone ===")
cur.execute(
    "SELECT l.id, l.order_id, l.product_name FROM order_lines l "
    "LEFT JOIN orders o ON o.id = l.order_id WHERE o.id IS NULL LIMIT 50"
)
orphans = cur.fetchall()
for r in orphans:
    print(r)
print(f"{len(orphans)} orphaned line(s) shown")

print("\n=== Lines whose subtotal != qty * price ===")
cur.execute(
    "SELECT id, order_id, qty, price, subtotal FROM order_lines "
    "WHERE ABS(subtotal - qty * price) > 0.005 LIMIT 50"
)
for r in cur.fetchall():
    print(r)

conn.close()
