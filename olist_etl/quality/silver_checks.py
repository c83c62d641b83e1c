"""Out-of-band quality checks over the Silver tables.

Rules live in ``qa.rules`` and every run appends to ``qa.results``. Each
rule is a query returning the number of violating rows; a rule passes when
that number is zero. Checks never modify Silver data.
"""
import json
import os

import pandas as pd

from olist_etl.transform.location import BRAZILIAN_STATES
from olist_etl.transform.orders import ORDER_STATUSES

_STATES = ", ".join(f"'{s}'" for s in sorted(BRAZILIAN_STATES))
_STATUSES = ", ".join(f"'{s}'" for s in ORDER_STATUSES)

SILVER_RULES = [
    ("orders_timeline_monotonic", "purchase <= approved <= carrier <= customer", "error", """
        SELECT COUNT(*) FROM silver.olist_orders_dataset
        WHERE order_approved_at < order_purchase_timestamp
           OR order_delivered_carrier_date < order_approved_at
           OR order_delivered_customer_date < order_delivered_carrier_date
    """),
    ("orders_estimate_after_approval", "estimated delivery >= approval", "error", """
        SELECT COUNT(*) FROM silver.olist_orders_dataset
        WHERE order_estimated_delivery_date < order_approved_at
    """),
    ("orders_unique_id", "one row per order_id", "error", """
        SELECT COUNT(*) - COUNT(DISTINCT order_id) FROM silver.olist_orders_dataset
    """),
    ("orders_known_status", "order_status in the lifecycle enumeration", "warning", f"""
        SELECT COUNT(*) FROM silver.olist_orders_dataset
        WHERE order_status IS NULL OR order_status NOT IN ({_STATUSES})
    """),
    ("orders_customer_fk", "every order has a Silver customer", "warning", """
        SELECT COUNT(*) FROM silver.olist_orders_dataset o
        LEFT JOIN silver.olist_customers_dataset c USING (customer_id)
        WHERE c.customer_id IS NULL
    """),
    ("items_sequence_contiguous", "order_item_id is exactly 1..N per order", "error", """
        SELECT COUNT(*) FROM (
            SELECT order_id FROM silver.olist_order_items_dataset
            GROUP BY order_id
            HAVING MIN(order_item_id) <> 1
                OR MAX(order_item_id) <> COUNT(*)
                OR COUNT(DISTINCT order_item_id) <> COUNT(*)
        )
    """),
    ("items_price_positive", "price > 0 and freight_value >= 0", "error", """
        SELECT COUNT(*) FROM silver.olist_order_items_dataset
        WHERE price <= 0 OR price IS NULL OR freight_value < 0
    """),
    ("payments_sequence_contiguous", "payment_sequential is exactly 1..N per order", "error", """
        SELECT COUNT(*) FROM (
            SELECT order_id FROM silver.olist_order_payments_dataset
            GROUP BY order_id
            HAVING MIN(payment_sequential) <> 1
                OR MAX(payment_sequential) <> COUNT(*)
                OR COUNT(DISTINCT payment_sequential) <> COUNT(*)
        )
    """),
    ("payments_card_installments", "credit card payments have at least one installment", "error", """
        SELECT COUNT(*) FROM silver.olist_order_payments_dataset
        WHERE payment_type = 'credit_card' AND payment_installments < 1
    """),
    ("reviews_unique_id", "one row per review_id", "error", """
        SELECT COUNT(*) - COUNT(DISTINCT review_id) FROM silver.olist_order_reviews_dataset
    """),
    ("reviews_score_range", "review_score between 1 and 5", "warning", """
        SELECT COUNT(*) FROM silver.olist_order_reviews_dataset
        WHERE review_score IS NULL OR review_score NOT BETWEEN 1 AND 5
    """),
    ("geolocation_unique_zip", "one row per zip prefix", "error", """
        SELECT COUNT(*) - COUNT(DISTINCT geolocation_zip_code_prefix) FROM silver.olist_geolocation_dataset
    """),
    ("geolocation_valid_state", "geolocation state is a Brazilian state code", "warning", f"""
        SELECT COUNT(*) FROM silver.olist_geolocation_dataset
        WHERE geolocation_state IS NULL OR geolocation_state NOT IN ({_STATES})
    """),
    ("sellers_valid_state", "seller state is a Brazilian state code", "warning", f"""
        SELECT COUNT(*) FROM silver.olist_sellers_dataset
        WHERE seller_state IS NULL OR seller_state NOT IN ({_STATES})
    """),
    ("customers_valid_state", "customer state is a Brazilian state code", "warning", f"""
        SELECT COUNT(*) FROM silver.olist_customers_dataset
        WHERE customer_state IS NULL OR customer_state NOT IN ({_STATES})
    """),
    ("customers_single_location", "one (city, state) per customer_unique_id", "error", """
        SELECT COUNT(*) FROM (
            SELECT customer_unique_id FROM silver.olist_customers_dataset
            GROUP BY customer_unique_id
            HAVING COUNT(DISTINCT COALESCE(customer_city, '') || '|' || COALESCE(customer_state, '')) > 1
        )
    """),
    ("dim_date_gap_free", "one date_key per day between min and max date", "error", """
        SELECT COALESCE(MAX(datediff('day', lo, hi)) + 1 - MAX(n), 0) FROM (
            SELECT MIN(full_date) AS lo, MAX(full_date) AS hi, COUNT(*) AS n FROM silver.dim_date
        )
    """),
]


def ensure_qa(con):
    con.execute("""
    CREATE SCHEMA IF NOT EXISTS qa;

    CREATE TABLE IF NOT EXISTS qa.rules (
      rule_id     TEXT PRIMARY KEY,
      description TEXT,
      severity    TEXT,
      expectation TEXT
    );

    CREATE TABLE IF NOT EXISTS qa.results (
      rule_id  TEXT,
      ok       BOOLEAN,
      message  TEXT,
      meta     TEXT,
      run_ts   TIMESTAMP
    );
    """)
    con.execute("DELETE FROM qa.rules;")
    con.executemany(
        "INSERT INTO qa.rules VALUES (?, ?, ?, ?);",
        [(rid, desc, sev, " ".join(sql.split())) for rid, desc, sev, sql in SILVER_RULES],
    )


def run_silver_checks(con) -> pd.DataFrame:
    ensure_qa(con)
    run_ts = pd.Timestamp.now().floor("s").to_pydatetime()
    results = []
    for rule_id, description, _severity, sql in SILVER_RULES:
        violations = int(con.execute(sql).fetchone()[0] or 0)
        ok = violations == 0
        message = "ok" if ok else f"{violations} violating rows: {description}"
        results.append((rule_id, ok, message, json.dumps({"violations": violations}), run_ts))
    con.executemany("INSERT INTO qa.results VALUES (?, ?, ?, ?, ?);", results)
    return pd.DataFrame(results, columns=["rule_id", "ok", "message", "meta", "run_ts"])


def export_qa(con, out_dir):
    df = con.execute(
        """
        SELECT r.rule_id, r.description, r.severity, q.ok, q.message, q.meta, q.run_ts
        FROM qa.rules r LEFT JOIN qa.results q USING(rule_id)
        ORDER BY q.run_ts DESC, r.rule_id
        """
    ).fetch_df()
    os.makedirs(out_dir, exist_ok=True)
    df.to_csv(os.path.join(out_dir, 'qa_report.csv'), index=False)
    df.to_parquet(os.path.join(out_dir, 'qa_report.parquet'), index=False)
    return df
