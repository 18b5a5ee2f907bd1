"""Result output: streaming collector and sink targets.

## Submodules

- `collector.py`: thread-safe batch printing and row counting
- `sink.py`: sink targets, partition layout and write helpers
"""

from .collector import BatchCollector, BatchState, render_value
from .sink import (
    PartitionSpec,
    SinkOptions,
    SinkTarget,
    check_partition_keys,
    prepare_destination,
    sync_tree,
)

__all__ = [
    # Collector
    "BatchCollector",
    "BatchState",
    "render_value",
    # Sink
    "PartitionSpec",
    "SinkOptions",
    "SinkTarget",
    "check_partition_keys",
    "prepare_destination",
    "sync_tree",
]
