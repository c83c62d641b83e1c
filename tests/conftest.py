"""
Pytest configuration and shared fixtures
"""

from pathlib import Path

import pandas as pd
import pytest

from olist_etl.load.to_duckdb import connect, ensure_schemas, replace_bronze_table
from olist_etl.transform.city_rules import CityRuleSet
from olist_etl.utils.io import load_config

ROOT = Path(__file__).resolve().parents[1]


def frame(columns, rows):
    return pd.DataFrame(rows, columns=columns, dtype=object)


@pytest.fixture(scope="session")
def rules():
    """The city rule table shipped with the project."""
    return CityRuleSet.load(str(ROOT / "configs" / "city_rules.yaml"))


@pytest.fixture
def cfg(tmp_path):
    """Project config pointed at a scratch warehouse."""
    cfg = load_config(str(ROOT / "configs" / "config.yaml"))
    cfg["duckdb_path"] = str(tmp_path / "warehouse" / "olist.duckdb")
    cfg["city_rules"] = str(ROOT / "configs" / "city_rules.yaml")
    cfg["silver_export"] = None
    cfg["quality"]["report_dir"] = str(tmp_path / "qa")
    return cfg


@pytest.fixture
def bronze_frames():
    """A small but messy Bronze extract covering every entity."""
    return {
        "olist_customers_dataset": frame(
            ["customer_id", "customer_unique_id", "customer_zip_code_prefix", "customer_city", "customer_state"],
            [
                ["c1", "U1", "01001", "sao paulo", "sp"],
                ["c2", "U1", "01001", "SAO PAULO", "SP"],
                ["c3", "U1", "01002", "santos", "SP "],
                ["c4", "U2", "20000", "Rio de Janeiro ", "rj"],
                ["c5", "U3", "abc", "nowhere", "XX"],
            ],
        ),
        "olist_geolocation_dataset": frame(
            ["geolocation_zip_code_prefix", "geolocation_lat", "geolocation_lng", "geolocation_city", "geolocation_state"],
            [
                ["01001", "10.0", "20.0", "sao paulo", "SP"],
                ["01001", "12.0", "22.0", "sao paulo", "sp"],
                ["20000", "-22.9", "-43.2", "rio de janeiro", "RJ"],
                ["20000", "-22.9", "-43.2", "rio de janeiro", "RJ"],
                ["20000", "-22.9", "-43.2", "niteroi", "RJ"],
                ["500", "0", "0", "tiny", "SP"],
                ["30000", "95", "0", "belo horizonte", "MG"],
            ],
        ),
        "olist_orders_dataset": frame(
            ["order_id", "customer_id", "order_status", "order_purchase_timestamp", "order_approved_at",
             "order_delivered_carrier_date", "order_delivered_customer_date", "order_estimated_delivery_date"],
            [
                ["o1", "c1", "delivered", "2018-01-01 10:00:00", "2018-01-01 11:00:00",
                 "2018-01-02 09:00:00", "2018-01-05 15:00:00", "2018-01-20 00:00:00"],
                ["o2", "c2", "delivered", "2018-02-01 10:00:00", "2018-01-31 10:00:00",
                 "2018-02-03 10:00:00", "2018-02-02 10:00:00", "2018-02-20 00:00:00"],
                ["o3", "c3", "shipped", "2018-03-01 08:00:00", "2018-03-01 09:00:00",
                 "2018-03-02 09:00:00", None, "2018-02-27 00:00:00"],
                ["o4", "c4", "Delivered ", "2018-04-01 08:00:00", "2018-04-01 09:00:00",
                 "2018-04-02 09:00:00", "2018-04-06 09:00:00", "2018-04-15 00:00:00"],
                ["o5", None, "created", "2018-05-01 08:00:00", None, None, None, "2018-05-20 00:00:00"],
            ],
        ),
        "olist_order_items_dataset": frame(
            ["order_id", "order_item_id", "product_id", "seller_id", "shipping_limit_date", "price", "freight_value"],
            [
                ["o1", "3", "p1", "s1", "2018-01-03 00:00:00", "59.90", "8.72"],
                ["o1", "1", "p2", "s2", "2018-01-03 00:00:00", "19.90", "0"],
                ["o2", "2", "p1", "s1", "2018-02-04 00:00:00", "59.90", "10.00"],
                ["o2", "2", "p1", "s1", "2018-02-04 00:00:00", "59.90", "10.00"],
                ["o3", "1", "p2", "s2", "2018-03-03 00:00:00", "0", "5.00"],
                ["o3", "5", "p2", "s2", "2018-03-03 00:00:00", "25.00", "5.00"],
            ],
        ),
        "olist_order_payments_dataset": frame(
            ["order_id", "payment_sequential", "payment_type", "payment_installments", "payment_value"],
            [
                ["o1", "5", "voucher", "1", "20.00"],
                ["o1", "2", "credit_card", "0", "68.62"],
                ["o2", "1", "boleto", "1", "139.80"],
            ],
        ),
        "olist_order_reviews_dataset": frame(
            ["review_id", "order_id", "review_score", "review_comment_title", "review_comment_message",
             "review_creation_date", "review_answer_timestamp"],
            [
                ["r1", "o1", "5", None, "otimo", "2018-01-06 00:00:00", "2018-01-07 10:00:00"],
                ["r1", "o1", "4", None, "bom", "2018-01-08 00:00:00", "2018-01-09 10:00:00"],
                ["r2", "o2", "3", "  ", " ok ", "2018-02-05 00:00:00", "2018-02-06 10:00:00"],
                ["r3", "o4", "1", "first", None, "2018-04-07 00:00:00", "2018-04-08 10:00:00"],
                ["r3", "o4", "2", "second", None, "2018-04-07 00:00:00", "2018-04-08 10:00:00"],
            ],
        ),
        "olist_products_dataset": frame(
            ["product_id", "product_category_name", "product_name_lenght", "product_description_lenght",
             "product_photos_qty", "product_weight_g", "product_length_cm", "product_height_cm", "product_width_cm"],
            [
                ["p1", "beleza_saude", "40", None, None, "0", "16", "10", "14"],
                ["p2", "categoria_nova", "35", "500", "2", "700", "0", "0", "0"],
            ],
        ),
        "olist_sellers_dataset": frame(
            ["seller_id", "seller_zip_code_prefix", "seller_city", "seller_state"],
            [
                ["s1", "01001", "sao paulo", "SP"],
                ["s1", "01001", "sao paulo", "SP"],
                ["s2", "01001", "guarulhos", "SP"],
                ["s3", "01001", "SAO PAULO", "sp"],
                ["s4", "13000", "vendas@loja.com.br", "sp"],
            ],
        ),
        "product_category_name_translation": frame(
            ["product_category_name", "product_category_name_english"],
            [
                ["product_category_name", "product_category_name_english"],
                [" beleza_saude ", "health_beauty"],
                ["bebes", "baby"],
            ],
        ),
    }


@pytest.fixture
def seeded_con(cfg, bronze_frames):
    """A warehouse connection with every Bronze table loaded."""
    con = connect(cfg["duckdb_path"])
    ensure_schemas(con)
    for entity, df in bronze_frames.items():
        replace_bronze_table(con, entity, df)
    yield con
    con.close()
