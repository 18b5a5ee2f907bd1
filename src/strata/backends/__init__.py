"""Execution engines.

## Submodules

- `base.py`: backend contract and engine options
- `polars_backend.py`: synchronous Polars engine
- `datafusion_backend.py`: asynchronous DataFusion engine
"""

from strata.core.config import BackendKind, ObjectStoreConfig
from strata.core.errors import ConfigError

from .base import Backend, EngineOptions, ExecutionMode, check_columns
from .datafusion_backend import DataFusionBackend
from .polars_backend import PolarsBackend


def create_backend(
    kind: BackendKind,
    options: EngineOptions | None = None,
    object_store_config: ObjectStoreConfig | None = None,
) -> Backend:
    """Instantiate the engine selected by ``kind``."""
    if kind is BackendKind.POLARS:
        return PolarsBackend(options)
    if kind is BackendKind.DATAFUSION:
        return DataFusionBackend(options, object_store_config)
    raise ConfigError(f"Unsupported backend '{kind}'", context="--backend")


__all__ = [
    "Backend",
    "EngineOptions",
    "ExecutionMode",
    "check_columns",
    "PolarsBackend",
    "DataFusionBackend",
    "create_backend",
]
