"""Strata error hierarchy.

Every failure is fatal to the current run; errors carry enough context
(path or operation) to be reported as a single line.
"""

from __future__ import annotations

from typing import Optional


class StrataError(Exception):
    """Base exception for all Strata errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging
        context: Path or operation the error occurred in
        recovery_hint: Suggested recovery action
    """

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        context: Optional[str] = None,
        recovery_hint: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.context = context
        self.recovery_hint = recovery_hint
        super().__init__(message)

    def __str__(self) -> str:
        base = f"[{self.code}] "
        if self.context:
            base += f"{self.context}: "
        base += self.message
        if self.recovery_hint:
            base += f" ({self.recovery_hint})"
        # One diagnostic line, whatever the engine put in its message
        return " ".join(base.split())


class ConfigError(StrataError):
    """Raised when the run configuration cannot be resolved.

    Examples:
        - File format can't be inferred from the path
        - Unknown backend or time unit name
    """

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="CONFIG_ERROR",
            context=context,
            recovery_hint=recovery_hint,
        )


class ScanError(StrataError):
    """Raised when a source can't be opened.

    Examples:
        - Missing or unreadable file
        - Malformed CSV/Parquet
        - URI without a bucket name
    """

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="SCAN_ERROR",
            context=context,
            recovery_hint=recovery_hint or "Check that the path exists and matches --format",
        )


class ExecutionError(StrataError):
    """Raised when the engine fails while evaluating a plan.

    Examples:
        - Column in select/sort/unique doesn't exist
        - Engine-internal failure during sort or distinct
    """

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="EXECUTION_ERROR",
            context=context,
            recovery_hint=recovery_hint,
        )


class SinkError(StrataError):
    """Raised when output can't be written.

    Examples:
        - Destination not writable, disk full
        - Partition key absent from the schema
    """

    def __init__(
        self,
        message: str,
        context: Optional[str] = None,
        recovery_hint: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="SINK_ERROR",
            context=context,
            recovery_hint=recovery_hint or "Check destination permissions and disk space",
        )
