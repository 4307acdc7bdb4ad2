"""
Pipeline Enumerations

Core enums for type safety and clear interface definitions across the pipeline.
"""

from enum import Enum


class MassPropertiesOperation(str, Enum):
    """Measurement kinds the geometry engine can accumulate for an element set."""
    VOLUME = "volume"   # Solid volume
    AREA = "area"       # Planar area, or surface area of solids
    LENGTH = "length"   # Length of curves


class ValueKind(str, Enum):
    """Closed set of column value kinds the query engine produces."""
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    ID = "id"           # Binary values, rendered as hex element ids
    NESTED = "nested"   # Structs, lists and maps
    TEMPORAL = "temporal"


class JobFormat(str, Enum):
    """Job description file formats."""
    YAML = "yaml"
    JSON = "json"

    @classmethod
    def from_extension(cls, path: str) -> 'JobFormat':
        """Infer format from file extension"""
        from pathlib import Path
        ext = Path(path).suffix.lower()
        if ext == '.json':
            return cls.JSON
        return cls.YAML


class ExportState(str, Enum):
    """Lifecycle of a single query export."""
    IDLE = "idle"
    HEADER_WRITTEN = "header_written"
    STREAMING = "streaming"
    DRAINING = "draining"
    CLOSED = "closed"
