"""
Domain Models and Types

Models:
- JobDescription: Source, output folder, queries and geometry skip list
- QueryDefinition: Query text, output file name and export options
- PartialExportOptions / ExportOptions: Options as written vs. fully merged

Enums:
- MassPropertiesOperation: Volume, area, length
- ValueKind: Column value kinds the row serializer understands
- JobFormat: YAML or JSON job files
- ExportState: Idle -> HeaderWritten -> Streaming -> Draining -> Closed
"""

from .enums import ExportState, JobFormat, MassPropertiesOperation, ValueKind
from .models import (
    DEFAULT_OPTIONS,
    ExportOptions,
    JobDescription,
    PartialExportOptions,
    QueryDefinition,
    merge_options,
)

__all__ = [
    "JobDescription", "QueryDefinition", "PartialExportOptions", "ExportOptions",
    "DEFAULT_OPTIONS", "merge_options",
    "MassPropertiesOperation", "ValueKind", "JobFormat", "ExportState",
]
