"""Great Expectations suites run on Silver frames before they are written.

Needs the ``quality`` extra. A failing suite is logged, not raised: the
Silver contract is enforced by the transforms, these are an early warning.
"""
import logging

import great_expectations as gx
import pandas as pd

from olist_etl.transform.dedup import PAYMENT_TYPES
from olist_etl.transform.orders import ORDER_STATUSES

logger = logging.getLogger(__name__)


def _expectations(table: str) -> list:
    E = gx.expectations
    suites = {
        "olist_geolocation_dataset": [
            E.ExpectColumnValuesToNotBeNull(column="geolocation_zip_code_prefix"),
            E.ExpectColumnValuesToBeUnique(column="geolocation_zip_code_prefix"),
            E.ExpectColumnValuesToBeBetween(column="geolocation_zip_code_prefix", min_value=1000, max_value=99999),
            E.ExpectColumnValuesToBeBetween(column="geolocation_lat", min_value=-90, max_value=90),
            E.ExpectColumnValuesToBeBetween(column="geolocation_lng", min_value=-180, max_value=180),
        ],
        "olist_customers_dataset": [
            E.ExpectColumnValuesToNotBeNull(column="customer_id"),
            E.ExpectColumnValuesToBeUnique(column="customer_id"),
            E.ExpectColumnValuesToNotBeNull(column="customer_unique_id"),
        ],
        "olist_sellers_dataset": [
            E.ExpectColumnValuesToNotBeNull(column="seller_id"),
            E.ExpectColumnValuesToBeUnique(column="seller_id"),
        ],
        "olist_orders_dataset": [
            E.ExpectColumnValuesToNotBeNull(column="order_id"),
            E.ExpectColumnValuesToBeUnique(column="order_id"),
            E.ExpectColumnValuesToNotBeNull(column="customer_id"),
            E.ExpectColumnValuesToBeInSet(column="order_status", value_set=list(ORDER_STATUSES), mostly=0.99),
        ],
        "olist_order_items_dataset": [
            E.ExpectCompoundColumnsToBeUnique(column_list=["order_id", "order_item_id"]),
            E.ExpectColumnValuesToBeBetween(column="price", min_value=0, strict_min=True),
            E.ExpectColumnValuesToBeBetween(column="freight_value", min_value=0),
        ],
        "olist_order_payments_dataset": [
            E.ExpectCompoundColumnsToBeUnique(column_list=["order_id", "payment_sequential"]),
            E.ExpectColumnValuesToBeInSet(column="payment_type", value_set=list(PAYMENT_TYPES)),
        ],
        "olist_order_reviews_dataset": [
            E.ExpectColumnValuesToBeUnique(column="review_id"),
            E.ExpectColumnValuesToBeBetween(column="review_score", min_value=1, max_value=5),
        ],
        "olist_products_dataset": [
            E.ExpectColumnValuesToBeUnique(column="product_id"),
        ],
        "dim_date": [
            E.ExpectColumnValuesToBeUnique(column="date_key"),
            E.ExpectColumnValuesToBeInSet(column="fiscal_quarter", value_set=["FQ1", "FQ2", "FQ3", "FQ4"]),
        ],
    }
    return suites.get(table, [])


def _plain_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.Int64Dtype):
            out[col] = out[col].astype("float64")
    return out


def run_gx_suite(table: str, df: pd.DataFrame) -> bool:
    expectations = _expectations(table)
    if not expectations:
        return True
    context = gx.get_context(mode="ephemeral")
    source = context.data_sources.add_pandas(name="silver")
    asset = source.add_dataframe_asset(name=table)
    batch = asset.add_batch_definition_whole_dataframe(f"{table}_batch").get_batch(
        batch_parameters={"dataframe": _plain_dtypes(df)}
    )
    suite = context.suites.add(gx.ExpectationSuite(name=f"{table}_suite"))
    for expectation in expectations:
        suite.add_expectation(expectation)
    res = batch.validate(suite)
    if not res.success:
        failed = [r.expectation_config.type for r in res.results if not r.success]
        logger.warning("Great Expectations suite for %s failed: %s", table, failed)
    return res.success
