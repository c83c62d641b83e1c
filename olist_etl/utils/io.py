import copy
import yaml

DEFAULTS = {
    "duckdb_path": "data/warehouse/olist.duckdb",
    "sources": {},
    "silver_export": None,
    "city_rules": "configs/city_rules.yaml",
    "calendar": {
        "start": "2016-01-01",
        "end": "2020-01-01",
        "carnaval_rule": "fixed_offset",
    },
    "orders": {"default_delivery_days": 10},
    "load": {"atomic": False},
    "quality": {
        "enabled": True,
        "great_expectations": False,
        "report_dir": "reports/qa",
    },
}


def load_yaml(path: str):
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_config(path: str) -> dict:
    """Read the pipeline YAML and fill in every key the file leaves out."""
    return _merge(DEFAULTS, load_yaml(path) or {})
