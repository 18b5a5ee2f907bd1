"""Query model and format resolution."""

from .formats import ExpectFormat, FileFormat, resolve, resolve_or_fail
from .model import Dedup, Query, SortSpec, TimeUnit, split_columns

__all__ = [
    "Query",
    "SortSpec",
    "Dedup",
    "TimeUnit",
    "split_columns",
    "FileFormat",
    "ExpectFormat",
    "resolve",
    "resolve_or_fail",
]
