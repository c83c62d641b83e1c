from prefect import flow, task, get_run_logger
from olist_etl.extract.csv_loader import BRONZE_COLUMNS, load_bronze_entity
from olist_etl.flow.stages import SILVER_STAGES, LoadReport, run_silver_load
from olist_etl.load.to_duckdb import connect, ensure_schemas, replace_bronze_table
from olist_etl.load.to_parquet import export_silver_tables
from olist_etl.quality.silver_checks import export_qa, run_silver_checks
from olist_etl.utils.io import load_config

@task(retries=2, retry_delay_seconds=30)
def stage_bronze(entity: str, cfg: dict) -> int:
    pattern = cfg["sources"][entity]["path"]
    df = load_bronze_entity(pattern, BRONZE_COLUMNS[entity])
    with connect(cfg["duckdb_path"]) as con:
        ensure_schemas(con)
        return replace_bronze_table(con, entity, df)

@task
def stage_silver(cfg: dict) -> LoadReport:
    logger = get_run_logger()
    validate = None
    if cfg["quality"].get("great_expectations"):
        from olist_etl.quality.gx_checks import run_gx_suite
        validate = run_gx_suite
    with connect(cfg["duckdb_path"]) as con:
        return run_silver_load(con, cfg, logger=logger, validate=validate)

@task
def stage_quality(cfg: dict) -> dict:
    with connect(cfg["duckdb_path"]) as con:
        results = run_silver_checks(con)
        export_qa(con, cfg["quality"]["report_dir"])
    return dict(zip(results["rule_id"], results["ok"]))

@task
def stage_export(cfg: dict) -> list:
    with connect(cfg["duckdb_path"]) as con:
        return export_silver_tables(con, [s.table for s in SILVER_STAGES], cfg["silver_export"])

@flow(name="olist_load_silver")
def load_silver(config_path: str = "configs/config.yaml") -> LoadReport:
    cfg = load_config(config_path)
    logger = get_run_logger()
    for entity in BRONZE_COLUMNS:
        if entity not in cfg["sources"]:
            logger.info(f"No source configured for {entity}; keeping bronze.{entity} as is")
            continue
        rows = stage_bronze(entity, cfg)
        logger.info(f"Bronze rows for {entity}: {rows}")

    report = stage_silver(cfg)
    for step in report.steps:
        logger.info(f"Silver {step.table}: {step.rows} rows in {step.seconds:.2f}s")

    if cfg["quality"].get("enabled"):
        checks = stage_quality(cfg)
        failed = [rule for rule, ok in checks.items() if not ok]
        logger.info(f"Quality checks failed: {failed or 'none'}")

    if cfg.get("silver_export"):
        paths = stage_export(cfg)
        logger.info(f"Silver snapshots written: {len(paths)}")
    return report

if __name__ == "__main__":
    import sys
    load_silver(*sys.argv[1:2])
