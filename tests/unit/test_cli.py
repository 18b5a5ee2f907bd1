"""Tests for the strata CLI."""

import polars as pl
import pytest
from typer.testing import CliRunner

from strata.cli import app, build_query
from strata.core.errors import ConfigError
from strata.query.model import Dedup, SortSpec, TimeUnit

runner = CliRunner()


class TestBuildQuery:
    """Tests for build_query()."""

    def test_unique_by_implies_unique(self):
        query = build_query(["a,b"], ["a"], True, False, ["a"], True, None)
        assert query.columns == ("a", "b")
        assert query.sort_by == (SortSpec("a", descending=True),)
        assert query.unique == Dedup(subset=("a",), stable=True)

    def test_coerce_int96_short_name(self):
        assert build_query(None, None, False, False, None, False, "ms").coerce_int96 is TimeUnit.MILLISECOND

    def test_invalid_unit(self):
        with pytest.raises(ConfigError):
            build_query(None, None, False, False, None, False, "fortnight")


class TestQueryCommand:
    """Tests for `strata query`."""

    def test_stable_unique_by(self, dup_csv):
        result = runner.invoke(app, ["query", str(dup_csv), "--unique-by", "a", "--stable"])
        assert result.exit_code == 0, result.output
        assert result.stdout == "a,b\n1,x\n2,z\n# Number of rows=2\n"

    def test_select_and_sort_desc(self, sales_csv):
        result = runner.invoke(
            app, ["query", str(sales_csv), "--select", "id,amount", "--sort", "amount", "--sort-desc"]
        )
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "id,amount"
        assert lines[1:3] == ["5,50", "5,50"]
        assert lines[-1] == "# Number of rows=6"

    def test_datafusion_backend(self, dup_csv):
        result = runner.invoke(
            app, ["query", str(dup_csv), "--unique-by", "a", "--stable", "--backend", "datafusion"]
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == "a,b\n1,x\n2,z\n# Number of rows=2\n"

    def test_small_chunks(self, sales_parquet):
        result = runner.invoke(app, ["query", str(sales_parquet), "--chunk-by", "1"])
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines()[-1] == "# Number of rows=6"
        assert result.stdout.count("id,region,amount") == 1

    def test_format_cannot_be_inferred(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("a\n1\n")
        result = runner.invoke(app, ["query", str(path)])
        assert result.exit_code == 1
        assert "Unable to infer file format. Please specify --format" in result.output

    def test_explicit_format(self, tmp_path):
        path = tmp_path / "data.txt"
        path.write_text("a\n1\n")
        result = runner.invoke(app, ["query", str(path), "--format", "csv"])
        assert result.exit_code == 0, result.output
        assert result.stdout == "a\n1\n# Number of rows=1\n"

    def test_unknown_format(self, dup_csv):
        result = runner.invoke(app, ["query", str(dup_csv), "--format", "json"])
        assert result.exit_code == 1
        assert "csv" in result.output

    def test_missing_column_is_reported(self, dup_csv):
        result = runner.invoke(app, ["query", str(dup_csv), "--select", "nope"])
        assert result.exit_code == 1
        assert "Column(s) not found: nope" in result.output

    def test_coerce_int96_prints_rows(self, legacy_parquet):
        result = runner.invoke(
            app, ["query", str(legacy_parquet), "--select", "ts", "--coerce-int96", "ms"]
        )
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines()[1] == "2023-11-14 22:13:20"

    def test_help_renders_markup(self):
        result = runner.invoke(app, ["query", "--help"])
        assert result.exit_code == 0
        assert "Example:" in result.output
        assert "[bold]" not in result.output

    def test_chunk_by_must_be_positive(self, dup_csv):
        result = runner.invoke(app, ["query", str(dup_csv), "--chunk-by", "0"])
        assert result.exit_code == 2


class TestConcatCommand:
    """Tests for `strata concat`."""

    def test_csv_to_parquet(self, sales_csv, tmp_path):
        out = tmp_path / "sales.parquet"
        result = runner.invoke(app, ["concat", str(sales_csv), str(out), "--unique"])
        assert result.exit_code == 0, result.output
        assert pl.read_parquet(out).height == 5

    def test_partitioned_output_needs_format(self, sales_csv, tmp_path):
        result = runner.invoke(
            app, ["concat", str(sales_csv), str(tmp_path / "lake"), "--partition-by", "region"]
        )
        assert result.exit_code == 1
        assert "--output-format" in result.output

    def test_partitioned_drop_keys(self, sales_csv, tmp_path):
        root = tmp_path / "lake"
        result = runner.invoke(
            app,
            [
                "concat",
                str(sales_csv),
                str(root),
                "--partition-by",
                "region",
                "--drop-partition-keys",
                "--output-format",
                "parquet",
            ],
        )
        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in root.iterdir()) == ["region=EU", "region=US"]
        frame = pl.read_parquet(next((root / "region=EU").glob("*.parquet")))
        assert frame.columns == ["id", "amount"]


def test_no_args_shows_help():
    result = runner.invoke(app, [])
    assert "query" in result.output
