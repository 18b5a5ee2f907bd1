"""Strata - declarative queries over CSV and Parquet files.

## Layers

1. **Core** (`strata.core`)
   - Configuration management
   - Logging
   - Error handling

2. **Query** (`strata.query`)
   - Engine-neutral query model
   - File format resolution

3. **Backends** (`strata.backends`)
   - Polars (synchronous, in-process)
   - DataFusion (asynchronous, multi-partition)

4. **Output** (`strata.output`)
   - Streaming batch collector
   - Single-file and partitioned sinks

5. **CLI** (`strata.cli`)
   - `query` and `concat` commands

## Quick Start

```python
from strata import Query, QueryJob, SortSpec, run_query

job = QueryJob(
    path="data/events.parquet",
    query=Query(columns=("id", "kind"), sort_by=(SortSpec("id"),)),
)
rows = run_query(job)
```
"""

__version__ = "0.3.0"

from .core import (
    AppConfig,
    BackendKind,
    ConfigError,
    ExecutionError,
    ScanError,
    SinkError,
    StrataError,
    configure_logging,
    get_config,
    get_logger,
)
from .query import Dedup, ExpectFormat, FileFormat, Query, SortSpec, TimeUnit, resolve
from .runner import ConcatJob, QueryJob, run_concat, run_query

__all__ = [
    # Version
    "__version__",
    # Core
    "AppConfig",
    "BackendKind",
    "get_config",
    "get_logger",
    "configure_logging",
    # Errors
    "StrataError",
    "ConfigError",
    "ScanError",
    "ExecutionError",
    "SinkError",
    # Query
    "Query",
    "SortSpec",
    "Dedup",
    "TimeUnit",
    "FileFormat",
    "ExpectFormat",
    "resolve",
    # Runner
    "QueryJob",
    "ConcatJob",
    "run_query",
    "run_concat",
]
