from __future__ import annotations

import sys

import typer
from rich.console import Console

from strata.core.config import BackendKind, get_config
from strata.core.errors import StrataError
from strata.core.logging import configure_logging, get_logger
from strata.output.sink import PartitionSpec, SinkOptions
from strata.query.formats import ExpectFormat
from strata.query.model import Query, TimeUnit, split_columns
from strata.runner import ConcatJob, QueryJob, run_concat, run_query

app = typer.Typer(
    name="strata",
    help="Strata: query and concatenate CSV/Parquet files with Polars or DataFusion",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
    pretty_exceptions_enable=False,
)

# Diagnostics go to stderr; stdout carries query output
err_console = Console(stderr=True, highlight=False, soft_wrap=True)
logger = get_logger(__name__)


def report_error(error: Exception) -> None:
    """Print a one-line diagnostic to stderr."""
    err_console.print(" ".join(str(error).split()), style="red", markup=False)


def build_query(
    select: list[str] | None,
    sort: list[str] | None,
    sort_desc: bool,
    unique: bool,
    unique_by: list[str] | None,
    stable: bool,
    coerce_int96: str | None,
) -> Query:
    unit = TimeUnit.parse(coerce_int96) if coerce_int96 else None
    return Query.from_options(
        select=select,
        sort=sort,
        sort_desc=sort_desc,
        unique=unique,
        unique_by=unique_by,
        stable=stable,
        coerce_int96=unit,
    )


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr"),
    log_format: str | None = typer.Option(None, "--log-format", help="Log format: console or json"),
):
    """Configure logging before running a command."""
    settings = get_config().logging
    configure_logging(
        log_level="DEBUG" if verbose else settings.level,
        log_format=log_format or settings.format,
    )


@app.command("query")
def query_command(
    path: str = typer.Argument(..., help="Path(s) to a file or directory (may be URI or include wildcard)"),
    select: list[str] | None = typer.Option(None, "--select", help="Columns to select"),
    sort: list[str] | None = typer.Option(None, "--sort", help="Columns to sort by, in order"),
    sort_desc: bool = typer.Option(False, "--sort-desc", help="Sort in descending order"),
    unique: bool = typer.Option(False, "--unique", help="Select unique rows"),
    unique_by: list[str] | None = typer.Option(None, "--unique-by", help="Columns defining uniqueness"),
    stable: bool = typer.Option(False, "--stable", help="Keep first rows and preserve input order"),
    format: str | None = typer.Option(None, "--format", help="Input format (csv or parquet); inferred by default"),
    chunk_by: int | None = typer.Option(None, "--chunk-by", min=1, help="Maximum rows per batch"),
    backend: BackendKind | None = typer.Option(None, "--backend", help="Execution engine"),
    coerce_int96: str | None = typer.Option(
        None, "--coerce-int96", help="Time unit for legacy Int96 timestamps"
    ),
):
    """Print query results as comma-separated lines.

    [bold]Example:[/bold]
        strata query data/*.parquet --select id,name --sort id --unique-by id --stable
    """
    settings = get_config().query
    try:
        job = QueryJob(
            path=path,
            query=build_query(select, sort, sort_desc, unique, unique_by, stable, coerce_int96),
            expect_format=ExpectFormat.parse(format),
            chunk_by=chunk_by or settings.chunk_by,
            backend=backend or settings.backend,
            allow_missing_columns=settings.allow_missing_columns,
        )
        run_query(job, out=sys.stdout)
    except StrataError as e:
        logger.debug("query_failed", error=str(e), code=e.code)
        report_error(e)
        raise typer.Exit(1) from e


@app.command("concat")
def concat_command(
    path: str = typer.Argument(..., help="Path(s) to a file or directory (may be URI or include wildcard)"),
    output: str = typer.Argument(..., help="Output file, or directory when partitioning"),
    select: list[str] | None = typer.Option(None, "--select", help="Columns to select"),
    sort: list[str] | None = typer.Option(None, "--sort", help="Columns to sort by, in order"),
    sort_desc: bool = typer.Option(False, "--sort-desc", help="Sort in descending order"),
    unique: bool = typer.Option(False, "--unique", help="Select unique rows"),
    unique_by: list[str] | None = typer.Option(None, "--unique-by", help="Columns defining uniqueness"),
    stable: bool = typer.Option(False, "--stable", help="Keep first rows and preserve input order"),
    format: str | None = typer.Option(None, "--format", help="Input format (csv or parquet); inferred by default"),
    output_format: str | None = typer.Option(
        None, "--output-format", help="Output format (csv or parquet); inferred from output path"
    ),
    partition_by: list[str] | None = typer.Option(
        None, "--partition-by", help="Write one directory per value of these columns"
    ),
    keep_partition_keys: bool | None = typer.Option(
        None,
        "--keep-partition-keys/--drop-partition-keys",
        help="Keep partition columns inside the written files",
    ),
    statistics: bool | None = typer.Option(
        None, "--statistics/--no-statistics", help="Embed Parquet column statistics"
    ),
    backend: BackendKind | None = typer.Option(None, "--backend", help="Execution engine"),
    coerce_int96: str | None = typer.Option(
        None, "--coerce-int96", help="Time unit for legacy Int96 timestamps"
    ),
):
    """Apply filters and write the result to a file or partitioned directory.

    [bold]Example:[/bold]
        strata concat 'raw/*.csv' out/ --partition-by region --drop-partition-keys --output-format parquet
    """
    config = get_config()
    try:
        keys = split_columns(partition_by)
        keep_keys = config.sink.keep_partition_keys if keep_partition_keys is None else keep_partition_keys
        job = ConcatJob(
            path=path,
            output=output,
            query=build_query(select, sort, sort_desc, unique, unique_by, stable, coerce_int96),
            expect_format=ExpectFormat.parse(format),
            output_format=ExpectFormat.parse(output_format, option="--output-format"),
            partition=PartitionSpec(tuple(keys), keep_keys) if keys else None,
            backend=backend or config.query.backend,
            sink_options=SinkOptions(
                compression=config.sink.parquet_compression,
                statistics=config.sink.parquet_statistics if statistics is None else statistics,
            ),
            allow_missing_columns=config.query.allow_missing_columns,
        )
        run_concat(job)
    except StrataError as e:
        logger.debug("concat_failed", error=str(e), code=e.code)
        report_error(e)
        raise typer.Exit(1) from e


def main() -> None:
    """Console entry point."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        report_error(e)
        sys.exit(1)
