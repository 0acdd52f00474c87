"""
Exception types for papergres.

Single executions never raise driver errors; they are captured on the
Result. The exceptions below are raised for programmer errors and fatal
batch failures, or stored on Result fields for per-iteration and
metadata problems.
"""


class PapergresError(Exception):
    """Base class for all papergres errors."""

    pass


class PrepareFailedError(PapergresError):
    """Raised when a statement cannot be prepared against the database."""

    def __init__(self, sql: str, cause: BaseException):
        self.sql = sql
        self.cause = cause
        super().__init__(f"failed to prepare statement: {cause}")


class IterationFailedError(PapergresError):
    """A single iteration of a Repeat run failed."""

    def __init__(self, index: int, total: int, cause: BaseException):
        self.index = index
        self.total = total
        self.cause = cause
        super().__init__(f"iteration {index + 1}/{total}: {cause}")


class IterationCancelledError(IterationFailedError):
    """An iteration was cancelled before it started."""

    def __init__(self, index: int, total: int, timeout: float):
        self.timeout = timeout
        super().__init__(
            index, total, TimeoutError(f"cancelled after {timeout}s batch timeout")
        )


class RepeatError(PapergresError):
    """
    Merged error of a Repeat run.

    Holds every per-iteration error in iteration order. The message is each
    iteration's message on its own line.
    """

    def __init__(self, errors: list[BaseException]):
        self.errors = list(errors)
        super().__init__("\n".join(str(e) for e in self.errors))

    @property
    def cancelled(self) -> bool:
        """True when at least one iteration was cancelled."""
        return any(isinstance(e, IterationCancelledError) for e in self.errors)


class InvalidRecordShapeError(PapergresError, TypeError):
    """Raised when a value cannot be used as a record or a list of records."""

    pass


class EmptyBatchError(PapergresError, ValueError):
    """Raised when a batch operation receives no records."""

    pass


class MissingMetadataError(PapergresError):
    """The driver did not supply a generated id or an affected-row count."""

    pass


class NoRowsOrTooManyError(PapergresError):
    """A single-row fetch returned zero rows or more than one."""

    def __init__(self, row_count: int):
        self.row_count = row_count
        if row_count == 0:
            message = "no rows in result set"
        else:
            message = f"expected exactly one row, got {row_count}"
        super().__init__(message)


def merge_errors(errors: list[BaseException | None]) -> RepeatError | None:
    """
    Merge per-iteration errors into one error.

    Args:
        errors: Errors in iteration order; None entries are skipped

    Returns:
        RepeatError when at least one error is present, else None
    """
    present = [e for e in errors if e is not None]
    if not present:
        return None
    return RepeatError(present)
