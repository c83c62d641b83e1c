"""Order lifecycle repair.

Timestamps are clamped forward, one step at a time, so that
purchase <= approved <= delivered to carrier <= delivered to customer.
An estimated delivery date earlier than the approval is re-derived from the
customer's average delivery time over their earlier orders.
"""
import logging

import pandas as pd

logger = logging.getLogger(__name__)

ORDER_STATUSES = (
    "created", "approved", "invoiced", "processing",
    "shipped", "delivered", "canceled", "unavailable",
)

TIMESTAMP_COLUMNS = [
    "order_purchase_timestamp",
    "order_approved_at",
    "order_delivered_carrier_date",
    "order_delivered_customer_date",
    "order_estimated_delivery_date",
]

ORDER_COLUMNS = ["order_id", "customer_id", "order_status"] + TIMESTAMP_COLUMNS

DEFAULT_DELIVERY_DAYS = 10


def parse_orders(bronze: pd.DataFrame) -> pd.DataFrame:
    df = bronze.copy()
    for col in ("order_id", "customer_id", "order_status"):
        df[col] = df[col].where(df[col].isna(), df[col].astype(str).str.strip())
        df[col] = df[col].mask(df[col] == "")
    df["order_status"] = df["order_status"].str.lower()
    for col in TIMESTAMP_COLUMNS:
        df[col] = pd.to_datetime(df[col], errors="coerce")

    missing = df["order_id"].isna() | df["customer_id"].isna()
    if missing.any():
        logger.warning("Skipping %d orders without order_id or customer_id", int(missing.sum()))
    df = df[~missing]

    dupes = df["order_id"].duplicated(keep="first")
    if dupes.any():
        logger.warning("Skipping %d repeated order_id rows", int(dupes.sum()))
    df = df[~dupes]

    unknown = df["order_status"].notna() & ~df["order_status"].isin(ORDER_STATUSES)
    if unknown.any():
        logger.info("%d orders carry an unknown order_status", int(unknown.sum()))
    return df[ORDER_COLUMNS].reset_index(drop=True)


def _clamp(value: pd.Series, floor: pd.Series) -> pd.Series:
    # NaT on either side compares False, so missing values pass through
    return value.mask(value < floor, floor)


def clamp_timeline(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    out["order_approved_at"] = _clamp(out["order_approved_at"], out["order_purchase_timestamp"])
    out["order_delivered_carrier_date"] = _clamp(out["order_delivered_carrier_date"], out["order_approved_at"])
    out["order_delivered_customer_date"] = _clamp(out["order_delivered_customer_date"], out["order_delivered_carrier_date"])
    return out


def prior_delivery_average(df: pd.DataFrame, customers: pd.DataFrame) -> pd.Series:
    """Average delivery days of each order's customer over earlier orders.

    Days are whole calendar days between approval and delivery to the
    customer; negative durations are skipped and the mean is truncated to an
    integer. Orders are ranked per
    ``customer_unique_id`` by purchase timestamp then ``order_id``; the value
    for an order only looks at orders ranked before it. Returns a nullable
    integer Series aligned with ``df``.
    """
    lookup = customers[["customer_id", "customer_unique_id"]].drop_duplicates("customer_id")
    work = df[["order_id", "customer_id", "order_purchase_timestamp",
               "order_approved_at", "order_delivered_customer_date"]].copy()
    work["_pos"] = range(len(work))
    work = work.merge(lookup, on="customer_id", how="left")

    days = (work["order_delivered_customer_date"].dt.normalize()
            - work["order_approved_at"].dt.normalize()).dt.days
    # a delivery stamped before approval says nothing about delivery time
    days = days.where(days >= 0)
    work["_days"] = days
    work["_has"] = days.notna().astype(int)
    work["_days0"] = days.fillna(0)

    known = work[work["customer_unique_id"].notna()].sort_values(
        ["customer_unique_id", "order_purchase_timestamp", "order_id"],
        na_position="last", kind="mergesort",
    )
    grouped = known.groupby("customer_unique_id", sort=False)
    prior_sum = grouped["_days0"].cumsum() - known["_days0"]
    prior_n = grouped["_has"].cumsum() - known["_has"]
    avg = (prior_sum / prior_n.where(prior_n > 0)).apply(lambda v: int(v) if pd.notna(v) else pd.NA)

    result = pd.Series(pd.NA, index=work["_pos"], dtype="Int64")
    result.loc[known["_pos"].to_numpy()] = avg.to_numpy()
    result.index = df.index
    return result.astype("Int64")


def impute_estimated_delivery(df: pd.DataFrame, avg_days: pd.Series,
                              default_days: int = DEFAULT_DELIVERY_DAYS) -> pd.DataFrame:
    out = df.copy()
    days = avg_days.fillna(default_days).clip(lower=0).astype("int64")
    imputed = out["order_approved_at"] + pd.to_timedelta(days, unit="D")
    late = out["order_estimated_delivery_date"] < out["order_approved_at"]
    if late.any():
        logger.info("Imputing estimated delivery date for %d orders", int(late.sum()))
    out["order_estimated_delivery_date"] = out["order_estimated_delivery_date"].mask(late, imputed)
    return out


def repair_orders(bronze: pd.DataFrame, customers: pd.DataFrame,
                  default_days: int = DEFAULT_DELIVERY_DAYS) -> pd.DataFrame:
    orders = clamp_timeline(parse_orders(bronze))
    avg_days = prior_delivery_average(orders, customers)
    return impute_estimated_delivery(orders, avg_days, default_days)
