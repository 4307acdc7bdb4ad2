"""
Tests for the snapshot data source and its cursor.
"""

import pytest

from imodel_report.pipeline.source import DataSource
from imodel_report.types import DataSourceError


class TestDataSource:
    """Tests for opening snapshots and preparing queries."""

    def test_missing_snapshot(self, tmp_path):
        with pytest.raises(DataSourceError) as exc_info:
            DataSource.open(tmp_path / "missing.duckdb")
        assert "Could not find the iModel" in str(exc_info.value)

    def test_not_a_database(self, tmp_path):
        path = tmp_path / "notes.duckdb"
        path.write_text("just some text", encoding="utf-8")
        with pytest.raises(DataSourceError):
            DataSource.open(path)

    def test_invalid_query(self, snapshot_path):
        with DataSource.open(snapshot_path) as source:
            with pytest.raises(DataSourceError):
                with source.prepare("SELECT nope FROM nowhere"):
                    pass

    def test_cursor_steps_through_rows(self, snapshot_path):
        with DataSource.open(snapshot_path) as source:
            with source.prepare("SELECT id, name FROM elements ORDER BY id") as cursor:
                assert cursor.column_count() == 2
                assert cursor.column_name(1) == "name"

                names = []
                while cursor.step():
                    names.append(cursor.value(1))

        assert names == ["Wall 1", "Sheet 1", "Pipe 1", "Marker"]

    def test_value_before_step(self, snapshot_path):
        with DataSource.open(snapshot_path) as source:
            with source.prepare("SELECT id FROM elements") as cursor:
                with pytest.raises(DataSourceError):
                    cursor.value(0)

    def test_empty_result(self, snapshot_path):
        with DataSource.open(snapshot_path) as source:
            with source.prepare("SELECT id FROM elements WHERE 1 = 0") as cursor:
                assert cursor.column_name(0) == "id"
                assert cursor.step() is False
