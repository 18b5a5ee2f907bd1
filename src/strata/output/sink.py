"""Sink targets and engine-independent write helpers."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from strata.core.errors import SinkError
from strata.core.logging import get_logger
from strata.query.formats import FileFormat

logger = get_logger(__name__)


@dataclass(frozen=True)
class PartitionSpec:
    """Directory-per-key output layout.

    Attributes:
        keys: Partition columns, outermost directory first
        include_key_in_output: Also write key columns inside each file
    """

    keys: tuple[str, ...]
    include_key_in_output: bool = True


@dataclass(frozen=True)
class SinkTarget:
    """Where and how a relation is written."""

    path: str
    format: FileFormat
    partition: PartitionSpec | None = None

    @property
    def is_partitioned(self) -> bool:
        return self.partition is not None and bool(self.partition.keys)


@dataclass(frozen=True)
class SinkOptions:
    """Format-specific writer options.

    Attributes:
        compression: Parquet compression codec
        statistics: Embed column statistics and writer metadata in Parquet
        sync_on_close: Flush written data to disk before returning
    """

    compression: str = "snappy"
    statistics: bool = False
    sync_on_close: bool = True


def is_uri(path: str) -> bool:
    return "://" in path


def check_partition_keys(target: SinkTarget, schema_names: Sequence[str]) -> None:
    """Raise SinkError if a partition key is not a column of the result."""
    if not target.is_partitioned:
        return
    missing = [key for key in target.partition.keys if key not in schema_names]
    if missing:
        raise SinkError(
            f"Partition key(s) not found in schema: {', '.join(missing)}",
            context=target.path,
            recovery_hint=f"Available columns: {', '.join(schema_names)}",
        )
    if not target.partition.include_key_in_output and len(target.partition.keys) == len(
        schema_names
    ):
        raise SinkError(
            "Every column is a partition key; nothing left to write",
            context=target.path,
            recovery_hint="Use --keep-partition-keys or select more columns",
        )


def prepare_destination(target: SinkTarget) -> None:
    """Create missing local directories for ``target``."""
    if is_uri(target.path):
        return
    path = Path(target.path)
    directory = path if target.is_partitioned else path.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SinkError(f"Unable to create directory {directory}: {e}", context=target.path) from e


def sync_tree(path: str | Path) -> int:
    """fsync every file under ``path`` (or ``path`` itself); returns files synced."""
    path = Path(path)
    if not path.exists():
        return 0

    files = [path] if path.is_file() else [p for p in path.rglob("*") if p.is_file()]
    for file_path in files:
        fd = os.open(file_path, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    logger.debug("synced_output", path=str(path), files=len(files))
    return len(files)
