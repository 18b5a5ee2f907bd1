"""Tests for the streaming batch collector."""

import io
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pyarrow as pa
import pytest

from strata.output.collector import BatchCollector, BatchState, render_value


def make_batch(start: int, rows: int) -> pa.RecordBatch:
    ids = list(range(start, start + rows))
    return pa.RecordBatch.from_pydict(
        {"id": pa.array(ids, pa.int64()), "name": pa.array([f"n{i}" for i in ids], pa.string())}
    )


class TestBatchState:
    """Tests for BatchState."""

    def test_header_flag_wins_once(self):
        state = BatchState()
        assert state.try_mark_header() is True
        assert state.try_mark_header() is False
        assert state.header_emitted

    def test_add_rows_returns_running_total(self):
        state = BatchState()
        assert state.add_rows(5) == 5
        assert state.add_rows(0) == 5
        assert state.add_rows(7) == 12
        assert state.row_count == 12

    def test_concurrent_header_race_has_one_winner(self):
        state = BatchState()
        barrier = threading.Barrier(16)

        def contend():
            barrier.wait()
            return state.try_mark_header()

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: contend(), range(16)))
        assert results.count(True) == 1


class TestRenderValue:
    """Tests for render_value()."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, ""),
            (True, "true"),
            (False, "false"),
            (1, "1"),
            (2.5, "2.5"),
            ("x", "x"),
            (b"\x01\xff", "01ff"),
            (date(2024, 1, 15), "2024-01-15"),
        ],
    )
    def test_render(self, value, expected):
        assert render_value(value) == expected


class TestBatchCollector:
    """Tests for BatchCollector."""

    def test_batch_sizes_5_0_7(self):
        out = io.StringIO()
        collector = BatchCollector(BatchState(), out)
        collector.consume(make_batch(0, 5))
        collector.consume(make_batch(5, 0))
        collector.consume(make_batch(5, 7))

        lines = out.getvalue().splitlines()
        assert lines[0] == "id,name"
        assert lines.count("id,name") == 1
        assert len(lines) == 13
        assert collector.row_count == 12
        assert lines[1] == "0,n0"
        assert lines[-1] == "11,n11"

    def test_empty_first_batch_still_emits_header_first(self):
        out = io.StringIO()
        collector = BatchCollector(out=out)
        collector.consume(make_batch(0, 0))
        collector.consume(make_batch(0, 2))
        assert out.getvalue() == "id,name\n0,n0\n1,n1\n"

    def test_emit_header_is_noop_after_batches(self):
        out = io.StringIO()
        collector = BatchCollector(out=out)
        collector.consume(make_batch(0, 1))
        assert collector.emit_header(["other"]) is False
        assert out.getvalue() == "id,name\n0,n0\n"

    def test_emit_header_for_empty_result(self):
        out = io.StringIO()
        collector = BatchCollector(out=out)
        assert collector.emit_header(["a", "b"]) is True
        assert out.getvalue() == "a,b\n"
        assert collector.summary() == "# Number of rows=0"

    def test_accepts_tables(self):
        out = io.StringIO()
        collector = BatchCollector(out=out)
        table = pa.table({"flag": [True, None], "score": [1.5, 2.0]})
        assert collector.consume(table) == 2
        assert out.getvalue() == "flag,score\ntrue,1.5\n,2.0\n"

    def test_unrenderable_cell_becomes_empty_field(self):
        """Out-of-range timestamps can't convert to datetime; only that cell is lost."""
        out = io.StringIO()
        collector = BatchCollector(out=out)
        batch = pa.RecordBatch.from_pydict(
            {
                "id": pa.array([1, 2], pa.int64()),
                "ts": pa.array([0, 2**62], pa.timestamp("s")),
            }
        )
        collector.consume(batch)
        lines = out.getvalue().splitlines()
        assert lines[0] == "id,ts"
        assert lines[1] == "1,1970-01-01 00:00:00"
        assert lines[2] == "2,"
        assert collector.row_count == 2

    def test_concurrent_delivery_counts_exactly(self):
        """Randomised interleavings: one header, exact row total, no torn lines."""
        for seed in range(5):
            rng = random.Random(seed)
            sizes = [rng.randint(0, 40) for _ in range(48)]
            out = io.StringIO()
            collector = BatchCollector(BatchState(), out)

            def deliver(args, rng=rng):
                start, size = args
                time.sleep(rng.random() / 1000)
                collector.consume(make_batch(start, size))

            offsets = [sum(sizes[:i]) for i in range(len(sizes))]
            with ThreadPoolExecutor(max_workers=8) as pool:
                list(pool.map(deliver, zip(offsets, sizes)))

            lines = out.getvalue().splitlines()
            assert lines[0] == "id,name"
            assert lines.count("id,name") == 1
            assert collector.row_count == sum(sizes)
            assert len(lines) == sum(sizes) + 1
            assert sorted(int(line.split(",")[0]) for line in lines[1:]) == list(range(sum(sizes)))
