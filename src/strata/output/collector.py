"""Streaming batch collector.

Prints a result set as it streams: the header once, then one
comma-joined line per row, while keeping a running row count.
Batches may arrive from several engine worker threads at once.
"""

from __future__ import annotations

import sys
import threading
from collections.abc import Sequence
from typing import Any, TextIO

import pyarrow as pa

from strata.core.logging import get_logger

logger = get_logger(__name__)

# Conversion failures that degrade a cell to an empty field
CELL_ERRORS = (pa.ArrowException, ValueError, TypeError, OverflowError)


class BatchState:
    """Header flag and row counter shared by all batches of one run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._header_emitted = False
        self._row_count = 0

    def try_mark_header(self) -> bool:
        """Set the header flag; True only for the caller that flipped it."""
        with self._lock:
            if self._header_emitted:
                return False
            self._header_emitted = True
            return True

    def add_rows(self, count: int) -> int:
        """Add ``count`` rows and return the new total."""
        with self._lock:
            self._row_count += count
            return self._row_count

    @property
    def header_emitted(self) -> bool:
        with self._lock:
            return self._header_emitted

    @property
    def row_count(self) -> int:
        with self._lock:
            return self._row_count


def render_value(value: Any) -> str:
    """Default textual rendering of a cell value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


def _render_column(column: pa.Array | pa.ChunkedArray) -> list[str]:
    try:
        return [render_value(value) for value in column.to_pylist()]
    except CELL_ERRORS:
        pass

    # Fall back to cell-by-cell so only the broken cells are lost
    rendered = []
    for idx in range(len(column)):
        try:
            rendered.append(render_value(column[idx].as_py()))
        except CELL_ERRORS as e:
            logger.debug("cell_render_failed", row=idx, error=str(e))
            rendered.append("")
    return rendered


class BatchCollector:
    """Writes batches to a text stream and counts their rows.

    Args:
        state: Run state; a fresh one is created when omitted
        out: Destination stream (stdout by default)
    """

    def __init__(self, state: BatchState | None = None, out: TextIO | None = None):
        self.state = state if state is not None else BatchState()
        self.out = out if out is not None else sys.stdout
        self._write_lock = threading.Lock()

    @property
    def row_count(self) -> int:
        return self.state.row_count

    def emit_header(self, names: Sequence[str]) -> bool:
        """Write the schema line unless some batch already did."""
        with self._write_lock:
            if not self.state.try_mark_header():
                return False
            self.out.write(",".join(names) + "\n")
            return True

    def consume(self, batch: pa.RecordBatch | pa.Table) -> int:
        """Print ``batch`` and return the running row count."""
        total = self.state.add_rows(batch.num_rows)

        columns = [_render_column(column) for column in batch.columns]
        lines = "".join(",".join(row) + "\n" for row in zip(*columns)) if columns else ""

        with self._write_lock:
            if self.state.try_mark_header():
                self.out.write(",".join(batch.schema.names) + "\n")
            if lines:
                self.out.write(lines)
        return total

    def summary(self) -> str:
        return f"# Number of rows={self.row_count}"
