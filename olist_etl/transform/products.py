import pandas as pd

TRANSLATION_COLUMNS = ["product_category_name", "product_category_name_english"]

ZERO_IS_UNKNOWN = ["product_weight_g", "product_length_cm", "product_height_cm", "product_width_cm"]
NULL_IS_ZERO = ["product_description_lenght", "product_photos_qty"]

PRODUCT_COLUMNS = [
    "product_id", "product_category_name", "product_category_name_english",
    "product_name_lenght", "product_description_lenght", "product_photos_qty",
    "product_weight_g", "product_length_cm", "product_height_cm", "product_width_cm",
]


def _trim(s: pd.Series) -> pd.Series:
    s = s.where(s.isna(), s.astype(str).str.strip())
    return s.mask(s == "")


def clean_category_translation(bronze: pd.DataFrame) -> pd.DataFrame:
    df = bronze[TRANSLATION_COLUMNS].copy()
    for col in TRANSLATION_COLUMNS:
        df[col] = _trim(df[col])
    # extracts sometimes repeat the header as a data row
    header = (df["product_category_name"] == "product_category_name") & (
        df["product_category_name_english"] == "product_category_name_english"
    )
    df = df[~header & df["product_category_name"].notna()]
    df = df.drop_duplicates(subset=["product_category_name"], keep="first")
    return df.sort_values("product_category_name").reset_index(drop=True)


def clean_products(bronze: pd.DataFrame, translation: pd.DataFrame) -> pd.DataFrame:
    """Type product attributes and attach the English category name.

    Missing description length / photo count mean "none" (0); a physical
    dimension of 0 means "not measured" (NULL).
    """
    df = bronze.copy()
    df["product_id"] = _trim(df["product_id"])
    df = df[df["product_id"].notna()].drop_duplicates(subset=["product_id"], keep="first").copy()
    df["product_category_name"] = _trim(df["product_category_name"])

    numeric = ["product_name_lenght"] + NULL_IS_ZERO + ZERO_IS_UNKNOWN
    for col in numeric:
        values = pd.to_numeric(df[col], errors="coerce")
        df[col] = values.where(values % 1 == 0).astype("Int64")
    for col in NULL_IS_ZERO:
        df[col] = df[col].fillna(0)
    for col in ZERO_IS_UNKNOWN:
        df[col] = df[col].mask(df[col].eq(0).fillna(False))

    df = df.merge(translation[TRANSLATION_COLUMNS], on="product_category_name", how="left")
    return df[PRODUCT_COLUMNS].reset_index(drop=True)
