"""Engine-neutral description of a read.

A :class:`Query` is built once from already-validated options and handed
to a backend, which translates it into its own lazy plan.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from strata.core.errors import ConfigError


class TimeUnit(str, Enum):
    """Unit used to reinterpret deprecated Int96 Parquet timestamps."""

    NANOSECOND = "nanosecond"
    MICROSECOND = "microsecond"
    MILLISECOND = "millisecond"
    SECOND = "second"

    @property
    def short(self) -> str:
        """Engine spelling of the unit (ns, us, ms, s)."""
        return _SHORT_UNITS[self]

    @classmethod
    def parse(cls, text: str) -> TimeUnit:
        """Parse a long (``millisecond``) or short (``ms``) unit name."""
        value = text.strip().lower()
        for unit in cls:
            if value in (unit.value, unit.short):
                return unit
        raise ConfigError(
            f"Invalid time unit '{text}'",
            context="--coerce-int96",
            recovery_hint="Allowed: nanosecond, microsecond, millisecond, second",
        )


_SHORT_UNITS = {
    TimeUnit.NANOSECOND: "ns",
    TimeUnit.MICROSECOND: "us",
    TimeUnit.MILLISECOND: "ms",
    TimeUnit.SECOND: "s",
}


@dataclass(frozen=True)
class SortSpec:
    """Single sort key; position in Query.sort_by defines precedence."""

    column: str
    descending: bool = False


@dataclass(frozen=True)
class Dedup:
    """Deduplication request.

    Attributes:
        subset: Columns defining uniqueness; empty means all columns
        stable: Keep the first row per key and preserve input order
    """

    subset: tuple[str, ...] = ()
    stable: bool = False


@dataclass(frozen=True)
class Query:
    """Declarative read: projection, sort order and deduplication.

    Attributes:
        columns: Columns to output, in order; empty means all columns
        sort_by: Sort keys, primary first
        unique: Optional deduplication
        coerce_int96: Optional unit for legacy Int96 timestamps
    """

    columns: tuple[str, ...] = ()
    sort_by: tuple[SortSpec, ...] = ()
    unique: Dedup | None = None
    coerce_int96: TimeUnit | None = field(default=None)

    @property
    def target_columns(self) -> list[str] | None:
        """Final projection list, or None when every column is kept."""
        return list(self.columns) if self.columns else None

    @property
    def is_stable(self) -> bool:
        return self.unique is not None and self.unique.stable

    @classmethod
    def from_options(
        cls,
        select: Sequence[str] | None = None,
        sort: Sequence[str] | None = None,
        sort_desc: bool = False,
        unique: bool = False,
        unique_by: Sequence[str] | None = None,
        stable: bool = False,
        coerce_int96: TimeUnit | None = None,
    ) -> Query:
        """Build a query from flat CLI-style options.

        ``unique_by`` implies ``unique``; ``sort_desc`` applies to every
        sort column. Column lists may contain comma-separated names.
        """
        subset = split_columns(unique_by)
        dedup = Dedup(subset=tuple(subset), stable=stable) if unique or subset else None
        return cls(
            columns=tuple(split_columns(select)),
            sort_by=tuple(SortSpec(column, sort_desc) for column in split_columns(sort)),
            unique=dedup,
            coerce_int96=coerce_int96,
        )


def split_columns(values: Iterable[str] | None) -> list[str]:
    """Flatten repeated and comma-separated column options, dropping duplicates."""
    columns: list[str] = []
    for value in values or ():
        for name in value.split(","):
            name = name.strip()
            if name and name not in columns:
                columns.append(name)
    return columns
