"""
Unit tests for the order timeline repair
"""

import pandas as pd

from olist_etl.transform.location import resolve_customers
from olist_etl.transform.orders import (
    ORDER_COLUMNS,
    clamp_timeline,
    impute_estimated_delivery,
    parse_orders,
    prior_delivery_average,
    repair_orders,
)

TS = pd.Timestamp


def _order(order_id, customer_id, purchase, approved, carrier, delivered, estimated, status="delivered"):
    return [order_id, customer_id, status, purchase, approved, carrier, delivered, estimated]


def _orders(*rows):
    return pd.DataFrame(list(rows), columns=ORDER_COLUMNS, dtype=object)


def _customers(*pairs):
    return pd.DataFrame(list(pairs), columns=["customer_id", "customer_unique_id"])


def test_out_of_order_timeline_is_clamped_and_estimate_defaults():
    bronze = _orders(_order("o1", "c1", "2020-01-05", "2020-01-04", "2020-01-04", "2020-01-10", "2020-01-03"))
    out = repair_orders(bronze, _customers(("c1", "u1"))).iloc[0]

    assert out["order_approved_at"] == TS("2020-01-05")
    assert out["order_delivered_carrier_date"] == TS("2020-01-05")
    assert out["order_delivered_customer_date"] == TS("2020-01-10")
    assert out["order_estimated_delivery_date"] == TS("2020-01-15")


def test_missing_timestamps_pass_through():
    bronze = _orders(_order("o1", "c1", "2020-01-05 10:00:00", None, "2020-01-01", None, "2020-02-01"))
    out = clamp_timeline(parse_orders(bronze)).iloc[0]

    assert pd.isna(out["order_approved_at"])
    # no approval to clamp against
    assert out["order_delivered_carrier_date"] == TS("2020-01-01")
    assert pd.isna(out["order_delivered_customer_date"])


def test_unparseable_timestamp_becomes_null():
    bronze = _orders(_order("o1", "c1", "2020-01-05", "not a date", None, None, "2020-02-01"))
    assert pd.isna(parse_orders(bronze).iloc[0]["order_approved_at"])


def test_parse_drops_orders_without_keys_and_repeats():
    bronze = _orders(
        _order("o1", "c1", "2020-01-05", None, None, None, None),
        _order("o1", "c9", "2020-01-06", None, None, None, None),
        _order(" ", "c2", "2020-01-05", None, None, None, None),
        _order("o3", None, "2020-01-05", None, None, None, None),
    )
    out = parse_orders(bronze)

    assert list(out["order_id"]) == ["o1"]
    assert out.iloc[0]["customer_id"] == "c1"


def test_status_is_normalized_and_unknown_kept():
    bronze = _orders(
        _order("o1", "c1", "2020-01-05", None, None, None, None, status=" SHIPPED "),
        _order("o2", "c1", "2020-01-05", None, None, None, None, status="lost"),
    )
    assert list(parse_orders(bronze)["order_status"]) == ["shipped", "lost"]


def test_prior_average_uses_only_earlier_orders():
    orders = parse_orders(_orders(
        _order("a", "c1", "2020-01-01", "2020-01-01 12:00:00", None, "2020-01-05 08:00:00", "2020-02-01"),
        _order("b", "c2", "2020-02-01", "2020-02-01", None, "2020-02-07", "2020-03-01"),
        _order("c", "c3", "2020-03-01", "2020-03-01", None, None, "2020-04-01"),
        _order("d", "c9", "2020-03-01", "2020-03-01", None, None, "2020-04-01"),
    ))
    customers = _customers(("c1", "u1"), ("c2", "u1"), ("c3", "u1"))
    avg = prior_delivery_average(orders, customers)

    assert pd.isna(avg.iloc[0])
    assert avg.iloc[1] == 4
    # (4 + 6) / 2
    assert avg.iloc[2] == 5
    # customer not in the Silver customer table
    assert pd.isna(avg.iloc[3])


def test_prior_average_truncates_and_skips_undelivered():
    orders = parse_orders(_orders(
        _order("a", "c1", "2020-01-01", "2020-01-01", None, "2020-01-04", None),
        _order("b", "c1", "2020-01-02", "2020-01-02", None, None, None),
        _order("c", "c1", "2020-01-03", "2020-01-03", None, "2020-01-07", None),
        _order("d", "c1", "2020-01-04", "2020-01-04", None, None, None),
    ))
    avg = prior_delivery_average(orders, _customers(("c1", "u1")))

    assert avg.iloc[1] == 3
    assert avg.iloc[2] == 3
    # (3 + 4) / 2 truncated
    assert avg.iloc[3] == 3


def test_prior_average_breaks_timestamp_ties_by_order_id():
    orders = parse_orders(_orders(
        _order("z", "c1", "2020-01-01", "2020-01-01", None, "2020-01-09", None),
        _order("a", "c1", "2020-01-01", "2020-01-01", None, "2020-01-03", None),
    ))
    avg = prior_delivery_average(orders, _customers(("c1", "u1")))

    assert pd.isna(avg.iloc[1])
    assert avg.iloc[0] == 2


def test_estimate_uses_customer_history(rules, bronze_frames):
    customers = resolve_customers(bronze_frames["olist_customers_dataset"], rules)
    out = repair_orders(bronze_frames["olist_orders_dataset"], customers).set_index("order_id")

    assert out.loc["o3", "order_estimated_delivery_date"] == TS("2018-03-04 09:00:00")
    # estimates after the approval are left alone
    assert out.loc["o1", "order_estimated_delivery_date"] == TS("2018-01-20")


def test_repair_on_bronze_sample(rules, bronze_frames):
    customers = resolve_customers(bronze_frames["olist_customers_dataset"], rules)
    out = repair_orders(bronze_frames["olist_orders_dataset"], customers, default_days=7).set_index("order_id")

    assert list(out.index) == ["o1", "o2", "o3", "o4"]
    assert out.loc["o2", "order_approved_at"] == TS("2018-02-01 10:00:00")
    assert out.loc["o2", "order_delivered_customer_date"] == TS("2018-02-03 10:00:00")
    assert out.loc["o4", "order_status"] == "delivered"


def test_repair_is_monotonic(rules, bronze_frames):
    customers = resolve_customers(bronze_frames["olist_customers_dataset"], rules)
    out = repair_orders(bronze_frames["olist_orders_dataset"], customers)
    chain = ["order_purchase_timestamp", "order_approved_at",
             "order_delivered_carrier_date", "order_delivered_customer_date"]

    for earlier, later in zip(chain, chain[1:]):
        both = out[earlier].notna() & out[later].notna()
        assert (out.loc[both, later] >= out.loc[both, earlier]).all()
    approved = out["order_approved_at"].notna()
    assert (out.loc[approved, "order_estimated_delivery_date"] >= out.loc[approved, "order_approved_at"]).all()


def test_default_days_apply_without_history():
    bronze = _orders(_order("o1", "c1", "2020-01-05", "2020-01-05", None, None, "2020-01-01"))
    out = repair_orders(bronze, _customers(), default_days=3).iloc[0]
    assert out["order_estimated_delivery_date"] == TS("2020-01-08")


def test_delivery_before_approval_is_left_out_of_history():
    bronze = _orders(
        # no carrier date, so nothing pulls the delivery up to the approval
        _order("a", "c1", "2020-01-09", "2020-01-10", None, "2020-01-02", "2020-02-01"),
        _order("b", "c1", "2020-02-01", "2020-02-01", None, None, "2020-01-15"),
    )
    out = repair_orders(bronze, _customers(("c1", "u1"))).set_index("order_id")

    assert out.loc["a", "order_delivered_customer_date"] < out.loc["a", "order_approved_at"]
    assert out.loc["b", "order_estimated_delivery_date"] == TS("2020-02-11")


def test_estimate_never_precedes_approval_with_gaps_in_the_chain():
    bronze = _orders(
        _order("a", "c1", "2020-01-01", "2020-01-10", None, "2020-01-02", "2020-01-05"),
        _order("b", "c1", "2020-01-20", "2020-01-20", None, "2020-01-15", "2020-01-01"),
        _order("c", "c1", "2020-03-01", "2020-03-01", "2020-03-02", "2020-03-04", "2020-02-01"),
        _order("d", "c1", "2020-04-01", "2020-04-01", None, None, "2020-03-01"),
        _order("e", "c2", "2020-04-01", None, None, None, "2020-03-01"),
    )
    out = repair_orders(bronze, _customers(("c1", "u1"), ("c2", "u2")))

    approved = out["order_approved_at"].notna()
    assert (out.loc[approved, "order_estimated_delivery_date"] >= out.loc[approved, "order_approved_at"]).all()
    # only "c" has a usable duration (3 days)
    assert out.set_index("order_id").loc["d", "order_estimated_delivery_date"] == TS("2020-04-04")


def test_negative_average_is_floored_at_zero():
    orders = parse_orders(_orders(_order("o1", "c1", "2020-01-05", "2020-01-05", None, None, "2020-01-01")))
    out = impute_estimated_delivery(orders, pd.Series([-4], dtype="Int64")).iloc[0]
    assert out["order_estimated_delivery_date"] == TS("2020-01-05")
