"""File format selection and inference."""

from __future__ import annotations

from enum import Enum

from strata.core.errors import ConfigError


class FileFormat(str, Enum):
    """Supported file formats."""

    CSV = "csv"
    PARQUET = "parquet"


class ExpectFormat(str, Enum):
    """User's expectation about the file format."""

    INFER = "infer"
    CSV = "csv"
    PARQUET = "parquet"

    @classmethod
    def parse(cls, text: str | None, option: str = "--format") -> ExpectFormat:
        if text is None:
            return cls.INFER
        try:
            return cls(text.strip().lower())
        except ValueError:
            raise ConfigError(
                f"Invalid format '{text}'",
                context=option,
                recovery_hint="Allowed: 'csv' or 'parquet'",
            ) from None


def resolve(expect: ExpectFormat, path: str) -> FileFormat | None:
    """Return the file format for ``path``.

    Explicit formats win. Otherwise the format is inferred from the end of
    the path; None means it could not be determined.
    """
    if expect is ExpectFormat.CSV:
        return FileFormat.CSV
    if expect is ExpectFormat.PARQUET:
        return FileFormat.PARQUET
    if path.endswith("parquet"):
        return FileFormat.PARQUET
    if path.endswith("csv"):
        return FileFormat.CSV
    return None


def resolve_or_fail(expect: ExpectFormat, path: str, option: str = "--format") -> FileFormat:
    """Like :func:`resolve` but raises ConfigError when undetermined."""
    file_format = resolve(expect, path)
    if file_format is None:
        raise ConfigError(
            f"Unable to infer file format. Please specify {option}",
            context=path,
        )
    return file_format
