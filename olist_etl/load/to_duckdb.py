import os
import duckdb
import pandas as pd

SILVER_DDL = {
    "olist_geolocation_dataset": """
        geolocation_zip_code_prefix INTEGER NOT NULL,
        geolocation_lat             DOUBLE,
        geolocation_lng             DOUBLE,
        geolocation_city            VARCHAR,
        geolocation_state           VARCHAR
    """,
    "product_category_name_translation": """
        product_category_name         VARCHAR,
        product_category_name_english VARCHAR
    """,
    "olist_products_dataset": """
        product_id                    VARCHAR,
        product_category_name         VARCHAR,
        product_category_name_english VARCHAR,
        product_name_lenght           INTEGER,
        product_description_lenght    INTEGER,
        product_photos_qty            INTEGER,
        product_weight_g              INTEGER,
        product_length_cm             INTEGER,
        product_height_cm             INTEGER,
        product_width_cm              INTEGER
    """,
    "olist_sellers_dataset": """
        seller_id              VARCHAR,
        seller_zip_code_prefix INTEGER,
        seller_city            VARCHAR,
        seller_state           VARCHAR
    """,
    "olist_customers_dataset": """
        customer_id              VARCHAR,
        customer_unique_id       VARCHAR,
        customer_zip_code_prefix INTEGER,
        customer_city            VARCHAR,
        customer_state           VARCHAR
    """,
    "olist_orders_dataset": """
        order_id                      VARCHAR,
        customer_id                   VARCHAR,
        order_status                  VARCHAR,
        order_purchase_timestamp      TIMESTAMP,
        order_approved_at             TIMESTAMP,
        order_delivered_carrier_date  TIMESTAMP,
        order_delivered_customer_date TIMESTAMP,
        order_estimated_delivery_date TIMESTAMP
    """,
    "dim_date": """
        date_key             INTEGER NOT NULL PRIMARY KEY,
        full_date            DATE NOT NULL,
        year                 SMALLINT NOT NULL,
        year_text            VARCHAR NOT NULL,
        quarter_number       TINYINT NOT NULL,
        quarter              VARCHAR NOT NULL,
        month_number         TINYINT NOT NULL,
        month_text           VARCHAR NOT NULL,
        month_name_full      VARCHAR NOT NULL,
        month_name_short     VARCHAR NOT NULL,
        week_number_iso      TINYINT NOT NULL,
        week_text            VARCHAR NOT NULL,
        day_of_month         TINYINT NOT NULL,
        day_of_year          SMALLINT NOT NULL,
        day_name_full        VARCHAR NOT NULL,
        day_name_short       VARCHAR NOT NULL,
        is_weekend           BOOLEAN NOT NULL,
        is_weekday           BOOLEAN NOT NULL,
        is_brazilian_holiday BOOLEAN NOT NULL,
        holiday_name         VARCHAR,
        is_black_friday      BOOLEAN NOT NULL,
        is_mothers_day       BOOLEAN NOT NULL,
        is_valentines_day    BOOLEAN NOT NULL,
        is_childrens_day     BOOLEAN NOT NULL,
        is_consumers_day     BOOLEAN NOT NULL,
        fiscal_year          SMALLINT NOT NULL,
        fiscal_quarter       VARCHAR NOT NULL
    """,
    "olist_order_payments_dataset": """
        order_id             VARCHAR,
        payment_sequential   INTEGER,
        payment_type         VARCHAR,
        payment_installments INTEGER,
        payment_value        DECIMAL(10,2)
    """,
    "olist_order_reviews_dataset": """
        review_id               VARCHAR,
        order_id                VARCHAR,
        review_score            INTEGER,
        review_comment_title    VARCHAR,
        review_comment_message  VARCHAR,
        review_creation_date    TIMESTAMP,
        review_answer_timestamp TIMESTAMP
    """,
    "olist_order_items_dataset": """
        order_id            VARCHAR,
        order_item_id       INTEGER,
        product_id          VARCHAR,
        seller_id           VARCHAR,
        shipping_limit_date TIMESTAMP,
        price               DECIMAL(10,2),
        freight_value       DECIMAL(10,2)
    """,
}


def connect(path: str) -> duckdb.DuckDBPyConnection:
    if path != ":memory:":
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
    return duckdb.connect(path)


def ensure_schemas(con) -> None:
    con.execute("CREATE SCHEMA IF NOT EXISTS bronze;")
    con.execute("CREATE SCHEMA IF NOT EXISTS silver;")
    con.execute("CREATE SCHEMA IF NOT EXISTS qa;")
    for table, columns in SILVER_DDL.items():
        con.execute(f"CREATE TABLE IF NOT EXISTS silver.{table} ({columns});")


def replace_bronze_table(con, table: str, df: pd.DataFrame) -> int:
    # bronze is text only, whatever pandas inferred
    cols = ", ".join(f'CAST("{c}" AS VARCHAR) AS "{c}"' for c in df.columns)
    con.register("_bronze_df", df)
    try:
        con.execute(f"CREATE OR REPLACE TABLE bronze.{table} AS SELECT {cols} FROM _bronze_df;")
    finally:
        con.unregister("_bronze_df")
    return len(df)


def _select_list(df: pd.DataFrame) -> str:
    # NaN in float columns is a value for DuckDB, not NULL
    parts = []
    for c in df.columns:
        if pd.api.types.is_float_dtype(df[c]):
            parts.append(f'CASE WHEN isnan("{c}") THEN NULL ELSE "{c}" END')
        else:
            parts.append(f'"{c}"')
    return ", ".join(parts)


def truncate_table(con, table: str) -> None:
    con.execute(f"TRUNCATE {table};")


def insert_frame(con, table: str, df: pd.DataFrame) -> int:
    cols = ", ".join(f'"{c}"' for c in df.columns)
    con.register("_silver_df", df)
    try:
        con.execute(f"INSERT INTO {table} ({cols}) SELECT {_select_list(df)} FROM _silver_df;")
    finally:
        con.unregister("_silver_df")
    return len(df)


def read_table(con, table: str) -> pd.DataFrame:
    return con.execute(f"SELECT * FROM {table};").fetch_df()
