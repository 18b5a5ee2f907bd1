"""Contract implemented by every execution engine.

A backend turns a :class:`~strata.query.model.Query` into an
engine-specific lazy plan and then either streams the result into a
:class:`~strata.output.collector.BatchCollector` or writes it out.

``SYNC`` backends implement ``open``, ``collect`` and ``sink`` as plain
blocking methods. ``ASYNC`` backends implement them as coroutines and
are driven by the runner under ``asyncio.run``. ``apply`` only builds a
plan and is synchronous in both modes.
"""

from __future__ import annotations

import glob
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar

from strata.core.errors import ExecutionError
from strata.output.collector import BatchCollector
from strata.output.sink import SinkOptions, SinkTarget, is_uri
from strata.query.formats import FileFormat
from strata.query.model import Query, TimeUnit


class ExecutionMode(str, Enum):
    """How a backend delivers results."""

    SYNC = "sync"
    ASYNC = "async"


@dataclass(frozen=True)
class EngineOptions:
    """Session-level engine settings.

    Attributes:
        chunk_size: Maximum rows per streamed batch
        coerce_int96: Unit used to read legacy Int96 timestamps
        allow_missing_columns: Tolerate columns missing from some Parquet files
        preserve_order: Keep a single ordered stream (stable results)
        keep_partition_keys: Write partition columns inside partition files
    """

    chunk_size: int = 1000
    coerce_int96: TimeUnit | None = None
    allow_missing_columns: bool = True
    preserve_order: bool = False
    keep_partition_keys: bool = True


class Backend(ABC):
    """Capability interface for an execution engine."""

    name: ClassVar[str]
    mode: ClassVar[ExecutionMode]

    def __init__(self, options: EngineOptions | None = None):
        self.options = options or EngineOptions()

    @abstractmethod
    def open(self, path: str, file_format: FileFormat) -> Any:
        """Lazily scan ``path`` (file, glob or URI) without reading data.

        Raises:
            ScanError: If the source can't be opened
        """

    @abstractmethod
    def apply(self, relation: Any, query: Query) -> Any:
        """Apply projection, deduplication and sort from ``query``.

        Dedup always runs over the whole relation before the final
        projection; a non-empty ``query.columns`` is the final column set.

        Raises:
            ExecutionError: If the plan can't be built
        """

    @abstractmethod
    def collect(self, relation: Any, collector: BatchCollector) -> int:
        """Stream the relation into ``collector`` and return the row count.

        Raises:
            ExecutionError: If evaluation fails
        """

    @abstractmethod
    def schema_names(self, relation: Any) -> list[str]:
        """Column names the relation will produce."""

    @abstractmethod
    def sink(self, relation: Any, target: SinkTarget, options: SinkOptions) -> None:
        """Write the relation to ``target``; data is on disk when this returns.

        Raises:
            SinkError: If the destination can't be written
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(mode={self.mode.value}, options={self.options!r})"


def expand_glob(path: str) -> list[str]:
    """Sorted local files matching a glob pattern; [path] for anything else."""
    if is_uri(path) or not any(ch in path for ch in "*?["):
        return [path]
    return sorted(glob.glob(path, recursive=True))


def check_columns(query: Query, names: list[str]) -> None:
    """Raise ExecutionError for select/sort/unique columns missing from ``names``."""
    available = set(names)
    references = [
        ("select", query.columns),
        ("sort", [spec.column for spec in query.sort_by]),
        ("unique", query.unique.subset if query.unique else ()),
    ]
    for operation, columns in references:
        missing = [column for column in columns if column not in available]
        if missing:
            raise ExecutionError(
                f"Column(s) not found: {', '.join(missing)}",
                context=operation,
                recovery_hint=f"Available columns: {', '.join(names)}",
            )
