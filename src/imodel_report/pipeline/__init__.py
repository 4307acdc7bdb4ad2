"""
Report Pipeline Components

Source -> (Geometry) -> Export:
- source: DataSource/DuckDBCursor over an iModel snapshot
- geometry: ElementGeometryService answering mass properties requests
- export: DataExporter writing delimited files
"""

from .export import DataExporter, ExportResult, MassProps
from .geometry import ElementGeometryService, MassPropertiesRequest, MassPropertiesResponse
from .source import DataSource, DuckDBCursor

__all__ = [
    "DataSource", "DuckDBCursor",
    "ElementGeometryService", "MassPropertiesRequest", "MassPropertiesResponse",
    "DataExporter", "ExportResult", "MassProps",
]
