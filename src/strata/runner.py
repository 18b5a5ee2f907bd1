"""Job execution: wire a validated job to a backend, collector and sink."""

from __future__ import annotations

import asyncio
import sys
import time
from dataclasses import dataclass, field
from typing import TextIO

from strata.backends import Backend, EngineOptions, ExecutionMode, create_backend
from strata.core.config import BackendKind, ObjectStoreConfig
from strata.core.logging import get_logger, set_run_id
from strata.output.collector import BatchCollector, BatchState
from strata.output.sink import PartitionSpec, SinkOptions, SinkTarget
from strata.query.formats import ExpectFormat, FileFormat, resolve_or_fail
from strata.query.model import Query

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryJob:
    """Validated parameters of a ``query`` run."""

    path: str
    query: Query = field(default_factory=Query)
    expect_format: ExpectFormat = ExpectFormat.INFER
    chunk_by: int = 1000
    backend: BackendKind = BackendKind.POLARS
    allow_missing_columns: bool = True

    def engine_options(self) -> EngineOptions:
        return EngineOptions(
            chunk_size=self.chunk_by,
            coerce_int96=self.query.coerce_int96,
            allow_missing_columns=self.allow_missing_columns,
            preserve_order=self.query.is_stable,
        )


@dataclass(frozen=True)
class ConcatJob:
    """Validated parameters of a ``concat`` run."""

    path: str
    output: str
    query: Query = field(default_factory=Query)
    expect_format: ExpectFormat = ExpectFormat.INFER
    output_format: ExpectFormat = ExpectFormat.INFER
    partition: PartitionSpec | None = None
    backend: BackendKind = BackendKind.POLARS
    sink_options: SinkOptions = field(default_factory=SinkOptions)
    allow_missing_columns: bool = True

    def engine_options(self) -> EngineOptions:
        keep_keys = self.partition.include_key_in_output if self.partition else True
        return EngineOptions(
            coerce_int96=self.query.coerce_int96,
            allow_missing_columns=self.allow_missing_columns,
            preserve_order=self.query.is_stable,
            keep_partition_keys=keep_keys,
        )


def run_query(
    job: QueryJob,
    out: TextIO | None = None,
    object_store_config: ObjectStoreConfig | None = None,
) -> int:
    """Stream the query result to ``out`` and return the number of rows.

    Prints the header once, one line per row and a final
    ``# Number of rows=<N>`` summary line.
    """
    out = out if out is not None else sys.stdout
    run_id = set_run_id()
    started = time.perf_counter()

    file_format = resolve_or_fail(job.expect_format, job.path)
    backend = create_backend(job.backend, job.engine_options(), object_store_config)
    collector = BatchCollector(BatchState(), out)
    logger.info("query_started", run_id=run_id, backend=backend.name, path=job.path)

    if backend.mode is ExecutionMode.ASYNC:
        asyncio.run(_query_async(backend, job, file_format, collector))
    else:
        relation = backend.apply(backend.open(job.path, file_format), job.query)
        backend.collect(relation, collector)
        # Empty results still get a header
        collector.emit_header(backend.schema_names(relation))

    out.write(collector.summary() + "\n")
    out.flush()

    logger.info(
        "query_complete",
        rows=collector.row_count,
        elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return collector.row_count


async def _query_async(
    backend: Backend, job: QueryJob, file_format: FileFormat, collector: BatchCollector
) -> int:
    relation = await backend.open(job.path, file_format)
    relation = backend.apply(relation, job.query)
    return await backend.collect(relation, collector)


def run_concat(job: ConcatJob, object_store_config: ObjectStoreConfig | None = None) -> SinkTarget:
    """Apply the query to ``job.path`` and write the result to ``job.output``."""
    run_id = set_run_id()
    started = time.perf_counter()

    file_format = resolve_or_fail(job.expect_format, job.path)
    output_format = resolve_or_fail(job.output_format, job.output, option="--output-format")
    target = SinkTarget(path=job.output, format=output_format, partition=job.partition)
    backend = create_backend(job.backend, job.engine_options(), object_store_config)
    logger.info(
        "concat_started",
        run_id=run_id,
        backend=backend.name,
        path=job.path,
        output=job.output,
    )

    if backend.mode is ExecutionMode.ASYNC:
        asyncio.run(_concat_async(backend, job, file_format, target))
    else:
        relation = backend.apply(backend.open(job.path, file_format), job.query)
        backend.sink(relation, target, job.sink_options)

    logger.info(
        "concat_complete",
        output=job.output,
        elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    return target


async def _concat_async(
    backend: Backend, job: ConcatJob, file_format: FileFormat, target: SinkTarget
) -> None:
    relation = await backend.open(job.path, file_format)
    relation = backend.apply(relation, job.query)
    await backend.sink(relation, target, job.sink_options)
