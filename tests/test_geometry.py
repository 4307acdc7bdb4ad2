"""
Tests for element geometry measurement.
"""

import duckdb
import pytest
from shapely.geometry import GeometryCollection, LineString, MultiPolygon, Point, box

from imodel_report.domain.enums import MassPropertiesOperation
from imodel_report.pipeline.geometry import (
    ElementGeometryService,
    MassPropertiesRequest,
    element_id_text,
    load_geometry,
    measure_geometry,
)
from imodel_report.pipeline.source import DataSource
from imodel_report.types import MeasurementError

VOLUME = MassPropertiesOperation.VOLUME
AREA = MassPropertiesOperation.AREA
LENGTH = MassPropertiesOperation.LENGTH


class TestMeasureGeometry:
    """Tests for measuring a single geometry."""

    def test_extruded_polygon(self):
        footprint = box(0, 0, 1, 1)
        assert measure_geometry(footprint, 2.0, VOLUME) == pytest.approx(2.0)
        assert measure_geometry(footprint, 2.0, AREA) == pytest.approx(10.0)
        assert measure_geometry(footprint, 2.0, LENGTH) is None

    def test_sheet_has_area_only(self):
        sheet = box(0, 0, 2, 3)
        assert measure_geometry(sheet, None, VOLUME) is None
        assert measure_geometry(sheet, None, AREA) == pytest.approx(6.0)

    def test_zero_height_is_a_sheet(self):
        assert measure_geometry(box(0, 0, 2, 3), 0.0, VOLUME) is None
        assert measure_geometry(box(0, 0, 2, 3), 0.0, AREA) == pytest.approx(6.0)

    def test_line_has_length_only(self):
        line = LineString([(0, 0), (3, 4)])
        assert measure_geometry(line, None, LENGTH) == pytest.approx(5.0)
        assert measure_geometry(line, None, AREA) is None
        assert measure_geometry(line, 3.0, VOLUME) is None

    def test_point_measures_nothing(self):
        for operation in (VOLUME, AREA, LENGTH):
            assert measure_geometry(Point(0, 0), 1.0, operation) is None

    def test_collections_add_up(self):
        parts = MultiPolygon([box(0, 0, 1, 1), box(5, 5, 7, 6)])
        assert measure_geometry(parts, 1.0, VOLUME) == pytest.approx(3.0)

        mixed = GeometryCollection([box(0, 0, 1, 1), LineString([(0, 0), (0, 2)])])
        assert measure_geometry(mixed, None, AREA) == pytest.approx(1.0)
        assert measure_geometry(mixed, None, LENGTH) == pytest.approx(2.0)


class TestGeometryDecoding:
    """Tests for geometry and id decoding."""

    def test_wkb_and_wkt(self):
        assert load_geometry(box(0, 0, 1, 1).wkb).area == pytest.approx(1.0)
        assert load_geometry("LINESTRING (0 0, 0 4)").length == pytest.approx(4.0)
        assert load_geometry(None) is None

    def test_unsupported_encoding(self):
        with pytest.raises(TypeError):
            load_geometry(42)

    def test_binary_ids_become_hex(self):
        assert element_id_text(b"\x00\x00\x10") == "0x10"
        assert element_id_text(b"\x00") == "0x0"
        assert element_id_text("0x1f") == "0x1f"
        assert element_id_text(17) == "17"


class TestElementGeometryService:
    """Tests for measuring elements stored in a snapshot."""

    def test_single_elements(self, snapshot_path, geometry_config):
        with DataSource.open(snapshot_path) as source:
            service = ElementGeometryService(source, geometry_config)
            wall_volume = service.get_mass_properties(MassPropertiesRequest(VOLUME, ("0x10",)))
            wall_area = service.get_mass_properties(MassPropertiesRequest(AREA, ("0x10",)))
            sheet_area = service.get_mass_properties(MassPropertiesRequest(AREA, ("0x11",)))
            pipe_length = service.get_mass_properties(MassPropertiesRequest(LENGTH, ("0x12",)))
            service.close()

        assert wall_volume.volume == pytest.approx(30.0)
        assert wall_area.area == pytest.approx(62.0)
        assert sheet_area.area == pytest.approx(1.0)
        assert pipe_length.length == pytest.approx(5.0)

    def test_candidates_accumulate(self, snapshot_path, geometry_config):
        with DataSource.open(snapshot_path) as source:
            service = ElementGeometryService(source, geometry_config)
            response = service.get_mass_properties(
                MassPropertiesRequest(AREA, ("0x10", "0x11", "0x12", "0x13"))
            )
            service.close()

        assert response.area == pytest.approx(63.0)
        assert response.volume is None

    def test_unknown_and_unmeasurable_elements(self, snapshot_path, geometry_config):
        with DataSource.open(snapshot_path) as source:
            service = ElementGeometryService(source, geometry_config)
            unknown = service.get_mass_properties(MassPropertiesRequest(VOLUME, ("0xdead",)))
            point = service.get_mass_properties(MassPropertiesRequest(LENGTH, ("0x13",)))
            service.close()

        assert unknown.volume is None
        assert point.length is None

    def test_corrupt_geometry(self, snapshot_path, geometry_config):
        con = duckdb.connect(str(snapshot_path))
        con.execute("INSERT INTO elements VALUES ('0x99', 'Broken', 'Wall', ?, 1.0)", [b"\x00\x01\x02"])
        con.close()

        with DataSource.open(snapshot_path) as source:
            service = ElementGeometryService(source, geometry_config)
            with pytest.raises(MeasurementError) as exc_info:
                service.get_mass_properties(MassPropertiesRequest(VOLUME, ("0x99",)))
            service.close()

        assert exc_info.value.element_id == "0x99"
        assert exc_info.value.operation == "volume"

    def test_binary_element_ids(self, tmp_path, geometry_config):
        path = tmp_path / "binary_ids.duckdb"
        con = duckdb.connect(str(path))
        con.execute("CREATE TABLE elements (id BLOB, geometry BLOB, height DOUBLE)")
        con.execute("INSERT INTO elements VALUES (?, ?, 3.0)", [b"\x00\x10", box(0, 0, 2, 5).wkb])
        con.close()

        with DataSource.open(path) as source:
            with source.prepare("SELECT id FROM elements") as cursor:
                cursor.step()
                element_id = cursor.value(0)
            service = ElementGeometryService(source, geometry_config)
            from_cursor = service.get_mass_properties(MassPropertiesRequest(VOLUME, (element_id,)))
            from_text = service.get_mass_properties(MassPropertiesRequest(AREA, ("0x10",)))
            service.close()

        assert isinstance(element_id, bytes)
        assert from_cursor.volume == pytest.approx(30.0)
        assert from_text.area == pytest.approx(62.0)
