"""Canonical locations for geolocation, sellers and customers.

Raw Olist location columns carry free-text city names with hundreds of
spelling variants and zip prefixes that map to several cities. Every
resolver below follows the same steps:

1. drop rows whose zip prefix (and, for geolocation, coordinates) are invalid;
2. canonicalize city and state text through the rule table;
3. vote per resolution key: most frequent candidate wins, ties go to the
   alphabetically first city, then state. Rows whose city is garbage only
   vote for keys that have nothing else.

Keys left without any valid row are dropped, never synthesized.
"""
import logging
from typing import List, Optional

import pandas as pd

from olist_etl.transform.city_rules import CityRuleSet, capitalize_city, replace_words

logger = logging.getLogger(__name__)

BRAZILIAN_STATES = frozenset({
    "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS",
    "MG", "PA", "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC",
    "SP", "SE", "TO",
})

ZIP_MIN, ZIP_MAX = 1000, 99999


def canonicalize_city(text, rules: CityRuleSet, scope: str) -> Optional[str]:
    if text is None or (not isinstance(text, str) and pd.isna(text)):
        return None
    raw = str(text).strip()
    if not raw:
        return None
    rule = rules.lookup(raw.lower(), scope)
    if rule is not None:
        return rule.apply(raw)
    return replace_words(capitalize_city(raw), rules.word_replacements)


def canonicalize_state(text) -> Optional[str]:
    if text is None or (not isinstance(text, str) and pd.isna(text)):
        return None
    state = str(text).strip().upper()
    return state or None


def is_valid_state(state) -> bool:
    return state in BRAZILIAN_STATES


def filter_valid_locations(df: pd.DataFrame, zip_col: str,
                           lat_col: str = None, lng_col: str = None) -> pd.DataFrame:
    """Keep rows with a numeric zip prefix in range (and sane coordinates).

    Parsed values replace the raw text: ``zip_col`` becomes Int64 and the
    coordinate columns float64.
    """
    out = df.copy()
    out[zip_col] = pd.to_numeric(out[zip_col], errors="coerce")
    mask = out[zip_col].between(ZIP_MIN, ZIP_MAX) & (out[zip_col] % 1 == 0)
    if lat_col is not None:
        out[lat_col] = pd.to_numeric(out[lat_col], errors="coerce")
        mask &= out[lat_col].between(-90, 90)
    if lng_col is not None:
        out[lng_col] = pd.to_numeric(out[lng_col], errors="coerce")
        mask &= out[lng_col].between(-180, 180)
    dropped = int((~mask).sum())
    if dropped:
        logger.info("Dropped %d rows with invalid %s", dropped, zip_col)
    out = out[mask].copy()
    out[zip_col] = out[zip_col].astype("int64").astype("Int64")
    return out


def vote_locations(df: pd.DataFrame, key_cols: List[str], value_cols: List[str]) -> pd.DataFrame:
    """One row per key: the most frequent value combination.

    Ordering is explicit (count desc, then each value column asc with NULLs
    last) so the winner never depends on input order.
    """
    if df.empty:
        return pd.DataFrame(columns=key_cols + value_cols)
    counts = (
        df.groupby(key_cols + value_cols, dropna=False, sort=False)
        .size()
        .reset_index(name="_freq")
    )
    counts = counts.sort_values(
        key_cols + ["_freq"] + value_cols,
        ascending=[True] * len(key_cols) + [False] + [True] * len(value_cols),
        na_position="last",
        kind="mergesort",
    )
    winners = counts.drop_duplicates(subset=key_cols, keep="first")
    return winners.drop(columns="_freq").reset_index(drop=True)


def vote_known_city(df: pd.DataFrame, key_col: str, value_cols: List[str]) -> pd.DataFrame:
    """Vote per key over rows whose canonical city is known.

    Rows whose city resolved to NULL (garbage text) only vote for keys that
    have no other row, so those keys keep a NULL city but still get a state.
    """
    known = df[df["_city"].notna()]
    unknown = df[~df[key_col].isin(known[key_col])]
    parts = [vote_locations(part, [key_col], value_cols) for part in (known, unknown) if not part.empty]
    if not parts:
        return vote_locations(df, [key_col], value_cols)
    out = pd.concat(parts, ignore_index=True)
    return out.sort_values(key_col, kind="mergesort").reset_index(drop=True)


def _clean_text_columns(df, city_col, state_col, rules, scope):
    df = df.copy()
    df["_city"] = [canonicalize_city(v, rules, scope) for v in df[city_col]]
    df["_state"] = [canonicalize_state(v) for v in df[state_col]]
    return df


def resolve_geolocation(bronze: pd.DataFrame, rules: CityRuleSet) -> pd.DataFrame:
    zip_col = "geolocation_zip_code_prefix"
    base = filter_valid_locations(bronze, zip_col, "geolocation_lat", "geolocation_lng")
    base = _clean_text_columns(base, "geolocation_city", "geolocation_state", rules, "geolocation")

    coords = (
        base.groupby(zip_col, sort=True)
        .agg(geolocation_lat=("geolocation_lat", "mean"), geolocation_lng=("geolocation_lng", "mean"))
        .round(6)
        .reset_index()
    )
    best = vote_known_city(base, zip_col, ["_city", "_state"])
    out = coords.merge(best, on=zip_col, how="left")
    out = out.rename(columns={"_city": "geolocation_city", "_state": "geolocation_state"})
    out = out.sort_values(zip_col).reset_index(drop=True)
    return out[[zip_col, "geolocation_lat", "geolocation_lng", "geolocation_city", "geolocation_state"]]


def resolve_sellers(bronze: pd.DataFrame, rules: CityRuleSet) -> pd.DataFrame:
    zip_col = "seller_zip_code_prefix"
    base = bronze[bronze["seller_id"].notna()]
    base = filter_valid_locations(base, zip_col)
    base = _clean_text_columns(base, "seller_city", "seller_state", rules, "seller")

    best = vote_known_city(base, zip_col, ["_city", "_state"])
    sellers = base.drop_duplicates(subset=["seller_id"], keep="first")[["seller_id", zip_col]]
    out = sellers.merge(best, on=zip_col, how="left")
    out = out.rename(columns={"_city": "seller_city", "_state": "seller_state"})
    out = out.sort_values([zip_col, "seller_id"], kind="mergesort").reset_index(drop=True)
    return out[["seller_id", zip_col, "seller_city", "seller_state"]]


def resolve_customers(bronze: pd.DataFrame, rules: CityRuleSet) -> pd.DataFrame:
    zip_col = "customer_zip_code_prefix"
    base = bronze[bronze["customer_id"].notna() & bronze["customer_unique_id"].notna()]
    base = filter_valid_locations(base, zip_col)
    base = _clean_text_columns(base, "customer_city", "customer_state", rules, "customer")

    # city and state lead the tie-break; zip only settles what is left
    best = vote_known_city(base, "customer_unique_id", ["_city", "_state", zip_col])
    best = best.rename(columns={zip_col: "_zip"})
    customers = base.drop_duplicates(subset=["customer_id"], keep="first")[["customer_id", "customer_unique_id"]]
    out = customers.merge(best, on="customer_unique_id", how="inner")
    out = out.rename(columns={"_zip": zip_col, "_city": "customer_city", "_state": "customer_state"})
    out[zip_col] = out[zip_col].astype("Int64")
    out = out.sort_values(["customer_unique_id", "customer_id"], kind="mergesort").reset_index(drop=True)
    return out[["customer_id", "customer_unique_id", zip_col, "customer_city", "customer_state"]]
