"""DataFusion backend: asynchronous, multi-partition engine.

Results are produced as one record batch stream per output partition.
The streams are drained one after another so the header and row order
stay deterministic within a run.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from urllib.parse import urlparse

import pyarrow as pa
from datafusion import (
    DataFrameWriteOptions,
    ParquetWriterOptions,
    SessionConfig,
    SessionContext,
    col,
    lit,
)
from datafusion import functions as f
from datafusion import object_store
from datafusion.dataframe import DataFrame

from strata.backends.base import Backend, EngineOptions, ExecutionMode, check_columns, expand_glob
from strata.core.config import ObjectStoreConfig, get_config
from strata.core.errors import ConfigError, ExecutionError, ScanError, SinkError, StrataError
from strata.core.logging import get_logger
from strata.output.collector import BatchCollector
from strata.output.sink import (
    SinkOptions,
    SinkTarget,
    check_partition_keys,
    is_uri,
    prepare_destination,
    sync_tree,
)
from strata.query.formats import FileFormat
from strata.query.model import Query

logger = get_logger(__name__)

ORDINAL_COLUMN = "__strata_ordinal"
RANK_COLUMN = "__strata_rank"

DEFAULT_EXTENSIONS = {FileFormat.CSV: ".csv", FileFormat.PARQUET: ".parquet"}


class DataFusionBackend(Backend):
    """Run queries on DataFusion data frames."""

    name = "datafusion"
    mode = ExecutionMode.ASYNC

    def __init__(
        self,
        options: EngineOptions | None = None,
        object_store_config: ObjectStoreConfig | None = None,
    ):
        super().__init__(options)
        self.object_store_config = object_store_config or get_config().object_store
        self._ctx: SessionContext | None = None
        self._registered_buckets: set[str] = set()
        self._relations: dict[tuple[str, FileFormat], DataFrame] = {}

    @property
    def ctx(self) -> SessionContext:
        """Session context, created on first use from the engine options."""
        if self._ctx is None:
            self._ctx = SessionContext(self._session_config())
        return self._ctx

    def _session_config(self) -> SessionConfig:
        config = SessionConfig().with_batch_size(self.options.chunk_size)
        if self.options.preserve_order:
            # One partition keeps scan order for stable dedup
            config = config.with_target_partitions(1)
        if self.options.coerce_int96 is not None:
            config = config.set(
                "datafusion.execution.parquet.coerce_int96", self.options.coerce_int96.short
            )
        config = config.set(
            "datafusion.execution.keep_partition_by_columns",
            "true" if self.options.keep_partition_keys else "false",
        )
        return config

    def _register_object_store(self, path: str) -> None:
        parsed = urlparse(path)
        if parsed.scheme not in ("s3", "gs"):
            return
        bucket = parsed.netloc
        if not bucket:
            raise ScanError("URI is missing bucket name", context=path)
        if (parsed.scheme, bucket) in self._registered_buckets:
            return

        cfg = self.object_store_config
        if parsed.scheme == "s3":
            kwargs = {
                "region": cfg.aws_region,
                "access_key_id": cfg.aws_access_key_id,
                "secret_access_key": cfg.aws_secret_access_key,
                "endpoint": cfg.aws_endpoint,
            }
            kwargs = {key: value for key, value in kwargs.items() if value is not None}
            store = object_store.AmazonS3(bucket, **kwargs)
        else:
            kwargs = {}
            if cfg.gcp_service_account_path is not None:
                kwargs["service_account_path"] = str(cfg.gcp_service_account_path)
            store = object_store.GoogleCloud(bucket, **kwargs)

        logger.info("registering_object_store", scheme=parsed.scheme, bucket=bucket)
        self.ctx.register_object_store(f"{parsed.scheme}://", store, bucket)
        self._registered_buckets.add((parsed.scheme, bucket))

    def _read(self, path: str, file_format: FileFormat) -> DataFrame:
        if file_format is FileFormat.CSV and self.options.allow_missing_columns:
            files = expand_glob(path)
            if len(files) > 1:
                return _union_by_name([self._read_file(file, file_format) for file in files])
        return self._read_file(path, file_format)

    def _read_file(self, path: str, file_format: FileFormat) -> DataFrame:
        extension = DEFAULT_EXTENSIONS[file_format]
        if not is_uri(path) and Path(path).is_file():
            extension = Path(path).suffix
        if file_format is FileFormat.CSV:
            return self.ctx.read_csv(path, has_header=True, file_extension=extension)
        return self.ctx.read_parquet(path, file_extension=extension)

    async def open(self, path: str, file_format: FileFormat) -> DataFrame:
        key = (path, file_format)
        if key in self._relations:
            logger.debug("reusing_scan", path=path, format=file_format.value)
            return self._relations[key]

        logger.info("opening_source", backend=self.name, path=path, format=file_format.value)
        try:
            self._register_object_store(path)
            df = await asyncio.to_thread(self._read, path, file_format)
        except StrataError:
            raise
        except Exception as e:
            raise ScanError(str(e), context=path) from e

        self._relations[key] = df
        return df

    def apply(self, relation: DataFrame, query: Query) -> DataFrame:
        names = self.schema_names(relation)
        check_columns(query, names)

        try:
            return self._apply(relation, query, names)
        except Exception as e:
            raise ExecutionError(str(e), context="plan") from e

    def _apply(self, df: DataFrame, query: Query, names: list[str]) -> DataFrame:
        ordinal = None
        if query.unique is not None:
            subset = [col(name) for name in (query.unique.subset or names)]
            if query.unique.stable:
                # Keep the first row per key by scan position, then restore scan order
                df = df.with_column(ORDINAL_COLUMN, f.row_number())
                df = df.with_column(
                    RANK_COLUMN,
                    f.row_number(
                        partition_by=subset,
                        order_by=[col(ORDINAL_COLUMN).sort(ascending=True)],
                    ),
                )
                df = df.filter(col(RANK_COLUMN) == lit(1)).drop(RANK_COLUMN)
                ordinal = ORDINAL_COLUMN
            elif query.unique.subset:
                df = df.with_column(RANK_COLUMN, f.row_number(partition_by=subset))
                df = df.filter(col(RANK_COLUMN) == lit(1)).drop(RANK_COLUMN)
            else:
                df = df.distinct()

        sort_exprs = [
            col(spec.column).sort(ascending=not spec.descending, nulls_first=False)
            for spec in query.sort_by
        ]
        if ordinal is not None:
            # Tie-breaker makes the sort stable with respect to scan order
            sort_exprs.append(col(ordinal).sort(ascending=True))
        if sort_exprs:
            df = df.sort(*sort_exprs)

        if query.columns:
            df = df.select(*query.columns)
        elif ordinal is not None:
            df = df.drop(ordinal)
        return df

    def schema_names(self, relation: DataFrame) -> list[str]:
        try:
            return list(relation.schema().names)
        except Exception as e:
            raise ExecutionError(str(e), context="schema") from e

    async def collect(self, relation: DataFrame, collector: BatchCollector) -> int:
        try:
            streams = relation.execute_stream_partitioned()
            collector.emit_header(self.schema_names(relation))
            for partition, stream in enumerate(streams):
                logger.debug("draining_partition", partition=partition, total=len(streams))
                async for batch in stream:
                    collector.consume(batch.to_pyarrow())
        except StrataError:
            raise
        except Exception as e:
            raise ExecutionError(str(e), context="collect") from e
        return collector.row_count

    async def sink(self, relation: DataFrame, target: SinkTarget, options: SinkOptions) -> None:
        check_partition_keys(target, self.schema_names(relation))
        if (
            target.is_partitioned
            and target.partition.include_key_in_output != self.options.keep_partition_keys
        ):
            raise ConfigError(
                "Partition key handling differs from the session settings",
                context=target.path,
                recovery_hint="Create the backend with matching keep_partition_keys",
            )
        prepare_destination(target)

        path = target.path
        if target.is_partitioned:
            write_options = DataFrameWriteOptions(partition_by=list(target.partition.keys))
            path = os.path.join(path, "")
        else:
            write_options = DataFrameWriteOptions(single_file_output=True)

        logger.info(
            "sinking_relation",
            backend=self.name,
            path=target.path,
            format=target.format.value,
            partition_by=list(target.partition.keys) if target.is_partitioned else None,
        )
        try:
            if target.format is FileFormat.CSV:
                await asyncio.to_thread(
                    relation.write_csv, path, with_header=True, write_options=write_options
                )
            else:
                parquet_options = ParquetWriterOptions(
                    compression=options.compression,
                    statistics_enabled="page" if options.statistics else "none",
                    skip_arrow_metadata=not options.statistics,
                )
                await asyncio.to_thread(
                    relation.write_parquet_with_options, path, parquet_options, write_options
                )
            if options.sync_on_close and not is_uri(target.path):
                await asyncio.to_thread(sync_tree, target.path)
        except StrataError:
            raise
        except Exception as e:
            raise SinkError(str(e), context=target.path) from e


def _union_by_name(frames: list[DataFrame]) -> DataFrame:
    """Union frames column by column; a column missing from a frame reads as null."""
    fields: dict[str, pa.DataType] = {}
    for df in frames:
        for field in df.schema():
            fields.setdefault(field.name, field.type)

    result = None
    for df in frames:
        present = set(df.schema().names)
        aligned = df.select(
            *(
                col(name) if name in present else lit(None).cast(data_type).alias(name)
                for name, data_type in fields.items()
            )
        )
        result = aligned if result is None else result.union(aligned)
    return result
