"""
Exception hierarchy for the export pipeline.

Every failure that aborts a query's export derives from ExportError so the CLI
can report it uniformly and move on (or stop) at the query boundary.
"""

from __future__ import annotations

from typing import Any, Optional


class ExportError(Exception):
    """Base exception for export operations."""
    pass


class DataSourceError(ExportError):
    """The iModel snapshot could not be opened or queried."""
    pass


class MalformedIdentifierListError(ExportError, ValueError):
    """Identifier column did not hold a JSON array of element ids."""
    def __init__(self, row_number: int, value: Any, message: str):
        self.row_number = row_number
        self.value = value
        super().__init__(f"Row {row_number}: malformed identifier list {value!r}: {message}")


class MeasurementError(ExportError):
    """Geometry engine failed while measuring an element."""
    def __init__(self, element_id: Any, operation: str, message: str):
        self.element_id = element_id
        self.operation = operation
        super().__init__(f"Mass properties ({operation}) failed for element {element_id}: {message}")


class OutputWriteError(ExportError):
    """Output directory or file could not be created, written or closed."""
    def __init__(self, path: Optional[str], message: str):
        self.path = path
        super().__init__(f"Output error ({path}): {message}")


class UnsupportedValueError(ExportError, TypeError):
    """Query produced a column value of a type the encoder has no text rule for."""
    def __init__(self, value: Any):
        self.type_name = type(value).__name__
        super().__init__(f"Unsupported column value type: {self.type_name}")
