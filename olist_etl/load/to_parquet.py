import os
import pandas as pd

def write_parquet_partitions(df: pd.DataFrame, base_dir: str, filename: str = "data.parquet") -> str:
    os.makedirs(base_dir, exist_ok=True)
    out_path = os.path.join(base_dir, filename)
    df.to_parquet(out_path, index=False)  # pyarrow engine
    return out_path


def export_silver_tables(con, tables, base_dir: str) -> list:
    """Snapshot each Silver table to <base_dir>/<table>/<table>.parquet."""
    paths = []
    for table in tables:
        df = con.execute(f"SELECT * FROM silver.{table};").fetch_df()
        paths.append(write_parquet_partitions(df, os.path.join(base_dir, table), f"{table}.parquet"))
    return paths
