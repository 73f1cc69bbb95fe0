"""Domain-specific exceptions for Box Office Core ETL.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from BoxOfficeError for easy catching.

Parsing-stage errors (DocumentUnreadable, LayoutUnresolved, RecordMalformed,
DateUnresolvable) are local: the offending document or record is skipped and
the batch continues. ConfigError and WarehouseWriteFailure are fatal.
"""


class BoxOfficeError(Exception):
    """Base exception for all Box Office Core ETL errors.

    Users can catch this exception to handle any error raised by the package.
    """

    pass


class ConfigError(BoxOfficeError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - Required environment variables (warehouse credentials) are missing
    - Invalid configuration values are provided (bad fiscal year label, etc.)
    """

    pass


class DataQualityError(BoxOfficeError):
    """Raised when data quality checks fail.

    This exception is raised when:
    - Required columns are missing from a snapshot frame
    - A snapshot violates a hard invariant and cannot be written
    """

    pass


class ETLError(BoxOfficeError):
    """Raised when a parsing stage fails for one unit of work."""

    pass


class DocumentUnreadable(ETLError):
    """Raised when a document cannot be opened or decoded.

    The document is skipped; the batch continues.
    """

    pass


class LayoutUnresolved(ETLError):
    """Raised when a document's structure cannot be recognized.

    This exception is raised when:
    - The header row of a spreadsheet cannot be located
    - A sales summary PDF holds no performance line at all

    Partially resolved layouts do not raise; they carry their unresolved
    fields as explicit UNAVAILABLE offsets instead.
    """

    pass


class RecordMalformed(ETLError):
    """Raised when a row or token run does not yield valid numeric fields.

    The record is dropped (never zero-filled) and the drop is logged.
    """

    pass


class DateUnresolvable(ETLError):
    """Raised when a record's performance date (or a document's snapshot date)
    cannot be parsed.
    """

    pass


class WarehouseError(BoxOfficeError):
    """Base class for errors raised at the warehouse boundary."""

    pass


class WarehouseWriteFailure(WarehouseError):
    """Raised when a warehouse call fails as a whole.

    This exception is raised when:
    - Authentication is rejected
    - The request is structurally invalid (not retried)
    - Connectivity fails after the bounded retries are exhausted

    Per-row rejections never raise; they are reported in the IngestReport.
    """

    pass


class TransientWarehouseError(WarehouseWriteFailure):
    """Raised when the warehouse stayed unreachable or overloaded (timeouts,
    connection errors, 429/5xx) after all retries.
    """

    pass
