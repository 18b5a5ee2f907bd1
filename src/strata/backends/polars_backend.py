"""Polars backend: synchronous, in-process streaming engine.

Batches are pushed to the collector through ``LazyFrame.sink_batches``;
the callback may run on Polars worker threads.

Relations read through a pyarrow dataset (Int96 coercion) can't run on
the streaming engine. Those are collected with the in-memory engine,
sliced into batches and written through the eager ``DataFrame`` writers.
"""

from __future__ import annotations

from pathlib import Path

import polars as pl
import pyarrow as pa
import pyarrow.dataset as pads

from strata.backends.base import Backend, EngineOptions, ExecutionMode, check_columns, expand_glob
from strata.core.errors import ExecutionError, ScanError, SinkError
from strata.core.logging import get_logger
from strata.output.collector import BatchCollector
from strata.output.sink import (
    SinkOptions,
    SinkTarget,
    check_partition_keys,
    prepare_destination,
    sync_tree,
)
from strata.query.formats import FileFormat
from strata.query.model import Query

logger = get_logger(__name__)

# PanicException derives from BaseException; list it so engine panics
# surface as strata errors
ENGINE_ERRORS = (
    pl.exceptions.PolarsError,
    pl.exceptions.PanicException,
    pa.ArrowException,
    OSError,
)

HIVE_NULL = "__HIVE_DEFAULT_PARTITION__"


class PolarsBackend(Backend):
    """Run queries on Polars lazy frames."""

    name = "polars"
    mode = ExecutionMode.SYNC

    def __init__(self, options: EngineOptions | None = None):
        super().__init__(options)
        self._relations: dict[tuple[str, FileFormat], pl.LazyFrame] = {}
        self._in_memory = False

    def open(self, path: str, file_format: FileFormat) -> pl.LazyFrame:
        key = (path, file_format)
        if key in self._relations:
            logger.debug("reusing_scan", path=path, format=file_format.value)
            return self._relations[key]

        logger.info("opening_source", backend=self.name, path=path, format=file_format.value)
        try:
            if file_format is FileFormat.CSV:
                lf = self._scan_csv(path)
            else:
                lf = self._scan_parquet(path)
            # Resolve the schema now so unreadable sources fail as scan errors
            lf.collect_schema()
        except ENGINE_ERRORS as e:
            raise ScanError(str(e), context=path) from e

        self._relations[key] = lf
        return lf

    def _scan_csv(self, path: str) -> pl.LazyFrame:
        files = expand_glob(path)
        if not files:
            raise ScanError("No files match pattern", context=path)
        if len(files) > 1 and self.options.allow_missing_columns:
            # Union by name; columns absent from a file read as nulls
            frames = [pl.scan_csv(file, has_header=True, cache=True) for file in files]
            return pl.concat(frames, how="diagonal_relaxed")
        return pl.scan_csv(path, has_header=True, cache=True, glob=True)

    def _scan_parquet(self, path: str) -> pl.LazyFrame:
        unit = self.options.coerce_int96
        if unit is None:
            return pl.scan_parquet(
                path,
                use_statistics=True,
                cache=True,
                glob=True,
                missing_columns="insert" if self.options.allow_missing_columns else "raise",
            )

        # Polars has no Int96 option; read through a pyarrow dataset instead
        logger.debug("coercing_int96", path=path, unit=unit.short)
        sources = expand_glob(path)
        if not sources:
            raise ScanError("No files match pattern", context=path)
        file_format = pads.ParquetFileFormat(
            read_options=pads.ParquetReadOptions(coerce_int96_timestamp_unit=unit.short)
        )
        dataset = pads.dataset(sources if len(sources) > 1 else sources[0], format=file_format)
        self._in_memory = True
        return pl.scan_pyarrow_dataset(dataset)

    def apply(self, relation: pl.LazyFrame, query: Query) -> pl.LazyFrame:
        try:
            names = relation.collect_schema().names()
        except ENGINE_ERRORS as e:
            raise ExecutionError(str(e), context="schema") from e
        check_columns(query, names)

        lf = relation
        if query.unique is not None:
            subset = list(query.unique.subset) or None
            if query.unique.stable:
                lf = lf.unique(subset=subset, keep="first", maintain_order=True)
            else:
                lf = lf.unique(subset=subset, keep="any", maintain_order=False)

        if query.sort_by:
            lf = lf.sort(
                [spec.column for spec in query.sort_by],
                descending=[spec.descending for spec in query.sort_by],
                nulls_last=True,
                maintain_order=True,
            )

        if query.columns:
            lf = lf.select(list(query.columns))
        return lf

    def schema_names(self, relation: pl.LazyFrame) -> list[str]:
        try:
            return relation.collect_schema().names()
        except ENGINE_ERRORS as e:
            raise ExecutionError(str(e), context="schema") from e

    def collect(self, relation: pl.LazyFrame, collector: BatchCollector) -> int:
        def on_batch(df: pl.DataFrame) -> None:
            collector.consume(df.to_arrow())

        try:
            if self._in_memory:
                df = relation.collect(engine="in-memory")
                for chunk in df.iter_slices(self.options.chunk_size):
                    on_batch(chunk)
            else:
                relation.sink_batches(
                    on_batch,
                    chunk_size=self.options.chunk_size,
                    maintain_order=True,
                )
        except ENGINE_ERRORS as e:
            raise ExecutionError(str(e), context="collect") from e
        return collector.row_count

    def sink(self, relation: pl.LazyFrame, target: SinkTarget, options: SinkOptions) -> None:
        check_partition_keys(target, self.schema_names(relation))
        prepare_destination(target)

        logger.info(
            "sinking_relation",
            backend=self.name,
            path=target.path,
            format=target.format.value,
            partition_by=list(target.partition.keys) if target.is_partitioned else None,
            eager=self._in_memory,
        )
        try:
            if self._in_memory:
                self._write_eager(relation.collect(engine="in-memory"), target, options)
            else:
                self._sink_streaming(relation, target, options)
        except ENGINE_ERRORS as e:
            raise SinkError(str(e), context=target.path) from e

    def _sink_streaming(self, relation: pl.LazyFrame, target: SinkTarget, options: SinkOptions) -> None:
        destination: str | Path | pl.PartitionByKey = target.path
        if target.is_partitioned:
            destination = pl.PartitionByKey(
                target.path,
                by=list(target.partition.keys),
                include_key=target.partition.include_key_in_output,
            )
        sync_on_close = "data" if options.sync_on_close else None

        if target.format is FileFormat.CSV:
            relation.sink_csv(
                destination,
                include_header=True,
                sync_on_close=sync_on_close,
                mkdir=True,
            )
        else:
            relation.sink_parquet(
                destination,
                compression=options.compression,
                statistics=options.statistics,
                sync_on_close=sync_on_close,
                mkdir=True,
            )

    def _write_eager(self, df: pl.DataFrame, target: SinkTarget, options: SinkOptions) -> None:
        if not target.is_partitioned:
            _write_frame(df, Path(target.path), target.format, options)
        else:
            keys = list(target.partition.keys)
            parts = df.partition_by(
                keys,
                as_dict=True,
                include_key=target.partition.include_key_in_output,
                maintain_order=True,
            )
            for values, part in parts.items():
                directory = Path(target.path).joinpath(
                    *(f"{key}={HIVE_NULL if value is None else value}" for key, value in zip(keys, values))
                )
                directory.mkdir(parents=True, exist_ok=True)
                _write_frame(part, directory / f"0.{target.format.value}", target.format, options)

        if options.sync_on_close:
            sync_tree(target.path)


def _write_frame(df: pl.DataFrame, path: Path, file_format: FileFormat, options: SinkOptions) -> None:
    if file_format is FileFormat.CSV:
        df.write_csv(path, include_header=True)
    else:
        df.write_parquet(path, compression=options.compression, statistics=options.statistics)
