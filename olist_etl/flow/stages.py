"""Silver stage registry and the full-refresh loader.

Each stage rebuilds one Silver table from Bronze (plus Silver tables loaded
earlier in the same run): truncate, then insert the transformed frame.
Stages declare their upstream stages and run in a deterministic topological
order.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd

from olist_etl.load.to_duckdb import ensure_schemas, insert_frame, read_table, truncate_table
from olist_etl.transform.calendar import generate_date_dimension
from olist_etl.transform.city_rules import CityRuleSet
from olist_etl.transform.dedup import clean_order_items, clean_payments, dedupe_reviews
from olist_etl.transform.location import resolve_customers, resolve_geolocation, resolve_sellers
from olist_etl.transform.orders import repair_orders
from olist_etl.transform.products import clean_category_translation, clean_products


class SilverLoadError(RuntimeError):
    """A Silver stage failed; the batch stops at ``stage``."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Silver load failed at stage '{stage}': {type(cause).__name__}: {cause}")


@dataclass
class StageContext:
    con: object
    cfg: dict
    rules: CityRuleSet

    def bronze(self, table: str) -> pd.DataFrame:
        return read_table(self.con, f"bronze.{table}")

    def silver(self, table: str) -> pd.DataFrame:
        return read_table(self.con, f"silver.{table}")


@dataclass(frozen=True)
class Stage:
    name: str
    table: str
    build: Callable[[StageContext], pd.DataFrame]
    depends_on: Tuple[str, ...] = ()


@dataclass
class StageReport:
    stage: str
    table: str
    rows: int
    seconds: float


@dataclass
class LoadReport:
    steps: List[StageReport] = field(default_factory=list)
    seconds: float = 0.0

    @property
    def rows(self) -> Dict[str, int]:
        return {s.table: s.rows for s in self.steps}


def _build_geolocation(ctx):
    return resolve_geolocation(ctx.bronze("olist_geolocation_dataset"), ctx.rules)


def _build_category_translation(ctx):
    return clean_category_translation(ctx.bronze("product_category_name_translation"))


def _build_products(ctx):
    return clean_products(ctx.bronze("olist_products_dataset"),
                          ctx.silver("product_category_name_translation"))


def _build_sellers(ctx):
    return resolve_sellers(ctx.bronze("olist_sellers_dataset"), ctx.rules)


def _build_customers(ctx):
    return resolve_customers(ctx.bronze("olist_customers_dataset"), ctx.rules)


def _build_orders(ctx):
    return repair_orders(ctx.bronze("olist_orders_dataset"),
                         ctx.silver("olist_customers_dataset"),
                         default_days=int(ctx.cfg["orders"]["default_delivery_days"]))


def _build_dim_date(ctx):
    cal = ctx.cfg["calendar"]
    return generate_date_dimension(cal["start"], cal["end"], cal["carnaval_rule"])


def _build_payments(ctx):
    return clean_payments(ctx.bronze("olist_order_payments_dataset"))


def _build_reviews(ctx):
    return dedupe_reviews(ctx.bronze("olist_order_reviews_dataset"))


def _build_order_items(ctx):
    return clean_order_items(ctx.bronze("olist_order_items_dataset"))


SILVER_STAGES = [
    Stage("geolocation", "olist_geolocation_dataset", _build_geolocation),
    Stage("category_translation", "product_category_name_translation", _build_category_translation),
    Stage("products", "olist_products_dataset", _build_products, ("category_translation",)),
    Stage("sellers", "olist_sellers_dataset", _build_sellers),
    Stage("customers", "olist_customers_dataset", _build_customers),
    Stage("orders", "olist_orders_dataset", _build_orders, ("customers",)),
    Stage("dim_date", "dim_date", _build_dim_date),
    Stage("payments", "olist_order_payments_dataset", _build_payments),
    Stage("reviews", "olist_order_reviews_dataset", _build_reviews),
    Stage("order_items", "olist_order_items_dataset", _build_order_items),
]


def resolve_stage_order(stages: List[Stage]) -> List[Stage]:
    """Topological order; among ready stages the declaration order wins."""
    names = [s.name for s in stages]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate stage names in {names}")
    for s in stages:
        unknown = [d for d in s.depends_on if d not in names]
        if unknown:
            raise ValueError(f"Stage '{s.name}' depends on unknown stages {unknown}")

    done, ordered = set(), []
    pending = list(stages)
    while pending:
        ready = next((s for s in pending if all(d in done for d in s.depends_on)), None)
        if ready is None:
            raise ValueError(f"Dependency cycle among stages {[s.name for s in pending]}")
        ordered.append(ready)
        done.add(ready.name)
        pending.remove(ready)
    return ordered


def _db_frame(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    for col in out.columns:
        if out[col].dtype == object:
            out[col] = out[col].astype(object).where(out[col].notna(), None)
    return out


def run_stage(ctx: StageContext, stage: Stage, logger=None,
              validate: Optional[Callable[[str, pd.DataFrame], None]] = None) -> StageReport:
    logger = logger or logging.getLogger(__name__)
    target = f"silver.{stage.table}"
    start = time.perf_counter()
    df = _db_frame(stage.build(ctx))
    if validate is not None:
        validate(stage.table, df)
    logger.info(">> Truncating Table: %s", target)
    truncate_table(ctx.con, target)
    logger.info(">> Inserting Data Into: %s", target)
    rows = insert_frame(ctx.con, target, df)
    seconds = time.perf_counter() - start
    logger.info(">> Load Duration: %.2f seconds (%d rows)", seconds, rows)
    return StageReport(stage=stage.name, table=stage.table, rows=rows, seconds=seconds)


def run_silver_load(con, cfg: dict, logger=None, stages: List[Stage] = None,
                    validate: Optional[Callable[[str, pd.DataFrame], None]] = None) -> LoadReport:
    """Full refresh of every Silver table.

    Without ``load.atomic`` each table commits on its own, so a failure leaves
    the tables before it reloaded and the failing one possibly empty. With it
    the whole batch is one transaction and a failure rolls everything back.
    """
    logger = logger or logging.getLogger(__name__)
    atomic = bool(cfg.get("load", {}).get("atomic", False))
    ordered = resolve_stage_order(stages or SILVER_STAGES)
    ensure_schemas(con)
    ctx = StageContext(con=con, cfg=cfg, rules=CityRuleSet.load(cfg["city_rules"]))

    report = LoadReport()
    batch_start = time.perf_counter()
    logger.info("================================================")
    logger.info("Loading Silver Layer")
    logger.info("================================================")
    if atomic:
        con.begin()
    current = None
    try:
        for stage in ordered:
            current = stage
            report.steps.append(run_stage(ctx, stage, logger, validate))
        if atomic:
            con.commit()
    except Exception as exc:
        if atomic:
            con.rollback()
        logger.error("==========================================")
        logger.error("ERROR OCCURRED DURING LOADING SILVER LAYER")
        logger.error("Stage: %s", current.name if current else "-")
        logger.error("Error Message: %s", exc)
        logger.error("Error Type: %s", type(exc).__name__)
        logger.error("==========================================")
        raise SilverLoadError(current.name if current else "-", exc) from exc

    report.seconds = time.perf_counter() - batch_start
    logger.info("==========================================")
    logger.info("Loading Silver Layer is Completed")
    logger.info("   - Total Load Duration: %.2f seconds", report.seconds)
    logger.info("==========================================")
    return report
