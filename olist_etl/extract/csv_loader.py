import glob
import pandas as pd

BRONZE_COLUMNS = {
    "olist_customers_dataset": [
        "customer_id", "customer_unique_id", "customer_zip_code_prefix",
        "customer_city", "customer_state",
    ],
    "olist_geolocation_dataset": [
        "geolocation_zip_code_prefix", "geolocation_lat", "geolocation_lng",
        "geolocation_city", "geolocation_state",
    ],
    "olist_orders_dataset": [
        "order_id", "customer_id", "order_status", "order_purchase_timestamp",
        "order_approved_at", "order_delivered_carrier_date",
        "order_delivered_customer_date", "order_estimated_delivery_date",
    ],
    "olist_order_items_dataset": [
        "order_id", "order_item_id", "product_id", "seller_id",
        "shipping_limit_date", "price", "freight_value",
    ],
    "olist_order_payments_dataset": [
        "order_id", "payment_sequential", "payment_type",
        "payment_installments", "payment_value",
    ],
    "olist_order_reviews_dataset": [
        "review_id", "order_id", "review_score", "review_comment_title",
        "review_comment_message", "review_creation_date", "review_answer_timestamp",
    ],
    "olist_products_dataset": [
        "product_id", "product_category_name", "product_name_lenght",
        "product_description_lenght", "product_photos_qty", "product_weight_g",
        "product_length_cm", "product_height_cm", "product_width_cm",
    ],
    "olist_sellers_dataset": [
        "seller_id", "seller_zip_code_prefix", "seller_city", "seller_state",
    ],
    "product_category_name_translation": [
        "product_category_name", "product_category_name_english",
    ],
}


def load_csv_glob(pattern: str, **read_kwargs) -> pd.DataFrame:
    files = sorted(glob.glob(pattern))
    if not files:
        return pd.DataFrame()
    frames = []
    for f in files:
        df = pd.read_csv(f, **read_kwargs)
        df.columns = [str(c).strip().lower() for c in df.columns]
        frames.append(df)
    return pd.concat(frames, ignore_index=True)


def load_bronze_entity(pattern: str, columns: list) -> pd.DataFrame:
    """Read raw extracts as text and project them onto the entity's column set.

    Bronze keeps values untouched; typing happens in the Silver transforms.
    Missing columns are added as NULL, extra columns are dropped.
    """
    df = load_csv_glob(pattern, dtype=str, encoding="utf-8")
    if df.empty:
        return pd.DataFrame({c: pd.Series(dtype=object) for c in columns})
    present = [c for c in columns if c in df.columns]
    if not present:
        cols = ", ".join(df.columns)
        raise ValueError(f"None of the expected columns {columns} found in '{pattern}'. Columns: {cols}")
    out = df.reindex(columns=columns)
    return out.astype(object).where(out.notna(), None)
