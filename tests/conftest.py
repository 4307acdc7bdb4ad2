"""
Pytest configuration and fixtures for the report exporter tests.

Provides:
- A measurement service fake with known per-element values
- A small DuckDB snapshot with element geometry
- Exporter and logger fixtures writing into a temporary directory
"""

import logging
from pathlib import Path

import duckdb
import pytest
from shapely.geometry import LineString, Point, box

from imodel_report.config.settings import GeometryConfig, PipelineLogger
from imodel_report.pipeline.export import DataExporter

from .fakes import FakeMeasurementService


# =============================================================================
# EXPORTER FIXTURES
# =============================================================================

@pytest.fixture
def test_logger() -> logging.Logger:
    logger = logging.getLogger("imodel_report.tests")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def pipeline_logger(test_logger) -> PipelineLogger:
    return PipelineLogger(test_logger, progress_interval=1000)


@pytest.fixture
def measurements() -> FakeMeasurementService:
    return FakeMeasurementService(
        volumes={"0x1": 10.0, "0x3": 2.5},
        areas={"0x1": 4.0, "0x2": 1.0, "0x3": 0.0},
        lengths={"0x2": 7.0},
    )


@pytest.fixture
def exporter(tmp_path, measurements, pipeline_logger) -> DataExporter:
    return DataExporter(
        source=None,
        output_dir=tmp_path,
        measurement_service=measurements,
        pipeline_logger=pipeline_logger,
    )


# =============================================================================
# SNAPSHOT FIXTURES
# =============================================================================

@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    """
    DuckDB snapshot with four elements:
    - 0x10 wall:  2 x 5 footprint extruded 3 high (volume 30, surface 62)
    - 0x11 sheet: 1 x 1 polygon, no height (area 1)
    - 0x12 pipe:  3-4-5 line (length 5)
    - 0x13 point: nothing measurable
    """
    path = tmp_path / "snapshot.duckdb"
    con = duckdb.connect(str(path))
    con.execute(
        "CREATE TABLE elements (id VARCHAR, name VARCHAR, class VARCHAR, geometry BLOB, height DOUBLE)"
    )
    rows = [
        ("0x10", "Wall 1", "Wall", box(0, 0, 2, 5).wkb, 3.0),
        ("0x11", "Sheet 1", "Sheet", box(0, 0, 1, 1).wkb, None),
        ("0x12", "Pipe 1", "Pipe", LineString([(0, 0), (3, 4)]).wkb, None),
        ("0x13", "Marker", "Marker", Point(1, 1).wkb, None),
    ]
    for row in rows:
        con.execute("INSERT INTO elements VALUES (?, ?, ?, ?, ?)", list(row))
    con.close()
    return path


@pytest.fixture
def geometry_config() -> GeometryConfig:
    return GeometryConfig()
