"""
Debug utilities for troubleshooting report queries.

Useful when a query's output columns do not line up with what a consumer
expects, or when the identifier column index needs to be found.
"""

from __future__ import annotations

import logging
from typing import Optional

from .domain.models import ExportOptions
from .pipeline.export import DataExporter
from .pipeline.source import DataSource


def describe_query(source: DataSource, sql: str, options: Optional[ExportOptions] = None) -> dict:
    """
    Describe the columns a query returns and the header the exporter would write.

    Args:
        source: Open snapshot
        sql: Query text
        options: Merged export options (defaults if None)

    Returns:
        Dict with ``columns`` (index, name) pairs, ``header`` line and ``id_column`` name
    """
    options = options or ExportOptions()
    exporter = DataExporter(source, output_dir=".")

    with source.prepare(sql) as cursor:
        columns = [(i, cursor.column_name(i)) for i in range(cursor.column_count())]
        header = exporter.make_header(cursor, options)

    id_column = None
    if options.id_column < len(columns):
        id_column = columns[options.id_column][1]
    else:
        logging.warning(f"idColumn {options.id_column} is out of range ({len(columns)} columns)")

    logging.debug(f"Columns for query: {columns}")
    return {"columns": columns, "header": header, "id_column": id_column}
