"""
End-to-end tests for the Prefect flow
"""

from pathlib import Path

import pytest
import yaml
from prefect.testing.utilities import prefect_test_harness

from olist_etl.flow.etl_core import load_silver
from olist_etl.load.to_duckdb import connect

ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture(autouse=True, scope="module")
def prefect_backend():
    with prefect_test_harness():
        yield


@pytest.fixture
def project(tmp_path, bronze_frames):
    raw = tmp_path / "raw"
    raw.mkdir()
    for entity, df in bronze_frames.items():
        df.to_csv(raw / f"{entity}.csv", index=False)
    cfg = {
        "duckdb_path": str(tmp_path / "warehouse" / "olist.duckdb"),
        "sources": {entity: {"path": str(raw / f"{entity}*.csv")} for entity in bronze_frames},
        "silver_export": str(tmp_path / "silver"),
        "city_rules": str(ROOT / "configs" / "city_rules.yaml"),
        "quality": {"report_dir": str(tmp_path / "qa")},
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return tmp_path, path


@pytest.mark.slow
def test_flow_loads_bronze_and_silver(project):
    base, config_path = project
    report = load_silver(str(config_path))

    assert report.rows["olist_orders_dataset"] == 4
    assert report.rows["dim_date"] == 1461
    with connect(str(base / "warehouse" / "olist.duckdb")) as con:
        assert con.execute("SELECT COUNT(*) FROM bronze.olist_order_items_dataset").fetchone()[0] == 6
        estimated = con.execute(
            "SELECT order_estimated_delivery_date FROM silver.olist_orders_dataset WHERE order_id = 'o3'"
        ).fetchone()[0]
    assert str(estimated) == "2018-03-04 09:00:00"


@pytest.mark.slow
def test_flow_writes_quality_report_and_snapshots(project):
    base, config_path = project
    load_silver(str(config_path))

    assert (base / "qa" / "qa_report.csv").exists()
    assert (base / "silver" / "dim_date" / "dim_date.parquet").exists()
    assert (base / "silver" / "olist_customers_dataset" / "olist_customers_dataset.parquet").exists()
