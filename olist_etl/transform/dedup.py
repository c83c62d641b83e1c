import logging

import pandas as pd

logger = logging.getLogger(__name__)

PAYMENT_TYPES = ("credit_card", "boleto", "voucher", "debit_card", "not_defined")

REVIEW_COLUMNS = [
    "review_id", "order_id", "review_score", "review_comment_title",
    "review_comment_message", "review_creation_date", "review_answer_timestamp",
]
PAYMENT_COLUMNS = ["order_id", "payment_sequential", "payment_type", "payment_installments", "payment_value"]
ITEM_COLUMNS = ["order_id", "order_item_id", "product_id", "seller_id", "shipping_limit_date", "price", "freight_value"]


def _blank_to_null(s: pd.Series) -> pd.Series:
    s = s.where(s.isna(), s.astype(str).str.strip())
    return s.mask(s == "")


def dedupe_reviews(bronze: pd.DataFrame) -> pd.DataFrame:
    """One row per review_id, the most recently created one.

    Rows sharing the latest creation date are settled by ingestion order:
    the first one read wins.
    """
    df = bronze.copy()
    df["review_id"] = _blank_to_null(df["review_id"])
    df = df[df["review_id"].notna()].copy()
    df["review_creation_date"] = pd.to_datetime(df["review_creation_date"], errors="coerce")
    df["review_answer_timestamp"] = pd.to_datetime(df["review_answer_timestamp"], errors="coerce")
    df["review_comment_title"] = _blank_to_null(df["review_comment_title"])
    df["review_comment_message"] = _blank_to_null(df["review_comment_message"])

    score = pd.to_numeric(df["review_score"], errors="coerce")
    score = score.where(score.between(1, 5) & (score % 1 == 0))
    df["review_score"] = score.astype("Int64")

    df["_ingest"] = range(len(df))
    df = df.sort_values(
        ["review_id", "review_creation_date", "_ingest"],
        ascending=[True, False, True],
        na_position="last",
    )
    before = len(df)
    df = df.drop_duplicates(subset=["review_id"], keep="first")
    if before != len(df):
        logger.info("Collapsed %d duplicate review rows", before - len(df))
    df = df.sort_values("_ingest")
    return df[REVIEW_COLUMNS].reset_index(drop=True)


def renumber_sequence(df: pd.DataFrame, group_col: str, seq_col: str) -> pd.DataFrame:
    """Reassign ``seq_col`` to 1..N inside each ``group_col``.

    The incoming sequence decides the order (NULLs last); rows with the same
    incoming value keep their ingestion order.
    """
    out = df.copy()
    out["_orig_seq"] = pd.to_numeric(out[seq_col], errors="coerce")
    out["_ingest"] = range(len(out))
    out = out.sort_values([group_col, "_orig_seq", "_ingest"], na_position="last")
    out[seq_col] = (out.groupby(group_col, sort=False).cumcount() + 1).astype("Int64")
    return out.drop(columns=["_orig_seq", "_ingest"]).reset_index(drop=True)


def clean_payments(bronze: pd.DataFrame) -> pd.DataFrame:
    df = bronze.copy()
    df["order_id"] = _blank_to_null(df["order_id"])
    df = df[df["order_id"].notna()].copy()
    df["payment_type"] = _blank_to_null(df["payment_type"]).str.lower()
    df["payment_value"] = pd.to_numeric(df["payment_value"], errors="coerce").round(2)

    installments = pd.to_numeric(df["payment_installments"], errors="coerce")
    installments = installments.where(installments % 1 == 0)
    zero_card = (df["payment_type"] == "credit_card") & (installments == 0)
    if zero_card.any():
        logger.info("Setting %d zero-installment credit card payments to 1", int(zero_card.sum()))
    df["payment_installments"] = installments.mask(zero_card, 1).astype("Int64")

    unknown = df["payment_type"].notna() & ~df["payment_type"].isin(PAYMENT_TYPES)
    if unknown.any():
        logger.info("%d payments carry an unknown payment_type", int(unknown.sum()))
    df = renumber_sequence(df, "order_id", "payment_sequential")
    return df[PAYMENT_COLUMNS]


def clean_order_items(bronze: pd.DataFrame) -> pd.DataFrame:
    df = bronze.copy()
    df["order_id"] = _blank_to_null(df["order_id"])
    df = df[df["order_id"].notna()].copy()
    df["price"] = pd.to_numeric(df["price"], errors="coerce").round(2)
    df["freight_value"] = pd.to_numeric(df["freight_value"], errors="coerce").round(2)
    df["shipping_limit_date"] = pd.to_datetime(df["shipping_limit_date"], errors="coerce")

    bad = ~(df["price"] > 0) | (df["freight_value"] < 0)
    if bad.any():
        logger.warning("Skipping %d order items with non-positive price or negative freight", int(bad.sum()))
    df = df[~bad]
    df = renumber_sequence(df, "order_id", "order_item_id")
    return df[ITEM_COLUMNS]
