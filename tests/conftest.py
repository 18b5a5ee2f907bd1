import sys
from pathlib import Path

# Ensure src/ is on sys.path for imports like `import strata.*`
PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if SRC_PATH.exists():
    sys.path.insert(0, str(SRC_PATH))

import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq
import pytest


@pytest.fixture
def dup_csv(tmp_path):
    """CSV with a duplicate key in column ``a``."""
    path = tmp_path / "dup.csv"
    pl.DataFrame({"a": [1, 1, 2], "b": ["x", "y", "z"]}).write_csv(path)
    return path


@pytest.fixture
def sales_df():
    """Sales rows spanning two regions, with a repeated row."""
    return pl.DataFrame(
        {
            "id": [1, 2, 3, 4, 5, 5],
            "region": ["EU", "US", "EU", "US", "EU", "EU"],
            "amount": [10, 20, 30, 40, 50, 50],
        }
    )


@pytest.fixture
def sales_csv(tmp_path, sales_df):
    path = tmp_path / "sales.csv"
    sales_df.write_csv(path)
    return path


@pytest.fixture
def sales_parquet(tmp_path, sales_df):
    path = tmp_path / "sales.parquet"
    sales_df.write_parquet(path)
    return path


@pytest.fixture
def legacy_parquet(tmp_path):
    """Parquet file whose timestamps are stored as deprecated Int96."""
    path = tmp_path / "legacy.parquet"
    table = pa.table(
        {
            "ts": pa.array([1_700_000_000_000, 1_700_000_060_000], pa.timestamp("ms")),
            "region": ["EU", "US"],
        }
    )
    pq.write_table(table, path, use_deprecated_int96_timestamps=True)
    return path
