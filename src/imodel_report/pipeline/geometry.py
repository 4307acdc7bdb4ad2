"""
Element geometry measurement.

MeasurementService is the narrow contract the exporter depends on: given an
operation and a candidate element set, return the accumulated measurement, or
None when it does not apply to the geometry (volume of a sheet, length of a
solid, ...). ElementGeometryService answers those requests from geometry stored
in the snapshot, using shapely for the actual measuring.
"""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

import duckdb
import shapely.wkb as swkb
import shapely.wkt as swkt
from shapely.errors import ShapelyError
from shapely.geometry import LinearRing, LineString, MultiLineString, MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from ..config import GeometryConfig
from ..domain.enums import MassPropertiesOperation
from ..types import MeasurementError
from .source import DataSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MassPropertiesRequest:
    operation: MassPropertiesOperation
    candidates: tuple


@dataclass(frozen=True)
class MassPropertiesResponse:
    """Accumulated measurements; None means not applicable to the candidates."""
    volume: Optional[float] = None
    area: Optional[float] = None
    length: Optional[float] = None


class MeasurementService(Protocol):
    def get_mass_properties(self, request: MassPropertiesRequest) -> MassPropertiesResponse: ...


def element_id_text(element_id: Any) -> str:
    """Canonical text of an element id; binary ids become 0x-prefixed hex."""
    if isinstance(element_id, (bytes, bytearray)):
        return "0x" + (bytes(element_id).hex().lstrip("0") or "0")
    return str(element_id)


def _parts(geom: BaseGeometry) -> Iterable[BaseGeometry]:
    if hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from _parts(part)
    else:
        yield geom


def measure_geometry(geom: BaseGeometry, height: Optional[float],
                     operation: MassPropertiesOperation) -> Optional[float]:
    """
    Measure a single element.

    Polygonal parts with a positive height are treated as vertical prisms:
    volume is footprint area times height and area is the prism's surface.
    Without a height they are sheets with a planar area and no volume.
    Linear parts only contribute length.
    """
    footprint = 0.0
    perimeter = 0.0
    curve_length = 0.0
    for part in _parts(geom):
        if isinstance(part, (Polygon, MultiPolygon)):
            footprint += part.area
            perimeter += part.length
        elif isinstance(part, (LineString, LinearRing, MultiLineString)):
            curve_length += part.length

    extruded = height is not None and height > 0

    if operation == MassPropertiesOperation.VOLUME:
        return footprint * height if footprint > 0 and extruded else None
    if operation == MassPropertiesOperation.AREA:
        if footprint <= 0:
            return None
        return 2 * footprint + perimeter * height if extruded else footprint
    if operation == MassPropertiesOperation.LENGTH:
        return curve_length if curve_length > 0 else None
    raise ValueError(f"Unsupported mass properties operation: {operation}")


def load_geometry(raw: Any) -> Optional[BaseGeometry]:
    """Decode WKB (BLOB) or WKT (text) geometry; None stays None."""
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return swkb.loads(bytes(raw))
    if isinstance(raw, str):
        return swkt.loads(raw)
    raise TypeError(f"Unsupported geometry encoding: {type(raw).__name__}")


class ElementGeometryService:
    """MeasurementService backed by the element geometry table of a snapshot."""

    def __init__(self, source: DataSource, geometry: GeometryConfig):
        self._cursor = source.cursor()
        self._geometry = geometry
        height = geometry.height_column or "NULL"
        self._sql = (
            f"SELECT {geometry.geometry_column}, {height} FROM {geometry.table} "
            f"WHERE {self._id_key_expression()} = ?"
        )

    def _id_key_expression(self) -> str:
        """SQL rendering of the id column in the same text form as element_id_text."""
        column = self._geometry.id_column
        self._cursor.execute(
            "SELECT data_type FROM information_schema.columns WHERE table_name = ? AND column_name = ?",
            [self._geometry.table, column],
        )
        row = self._cursor.fetchone()
        if row is not None and str(row[0]).upper() == "BLOB":
            # 0x-prefixed lowercase hex without leading zeros, "0x0" for all-zero ids
            return f"('0x' || coalesce(nullif(ltrim(lower(hex({column})), '0'), ''), '0'))"
        return f"CAST({column} AS VARCHAR)"

    def _lookup(self, element_id: str) -> Optional[tuple]:
        self._cursor.execute(self._sql, [element_id])
        return self._cursor.fetchone()

    def _measure_one(self, element_id: Any, operation: MassPropertiesOperation) -> Optional[float]:
        key = element_id_text(element_id)
        try:
            row = self._lookup(key)
            if row is None:
                logger.debug(f"Element {key} not found in {self._geometry.table}")
                return None
            geom = load_geometry(row[0])
            if geom is None or geom.is_empty:
                return None
            height = float(row[1]) if row[1] is not None else None
            return measure_geometry(geom, height, operation)
        except (duckdb.Error, ShapelyError, TypeError, ValueError) as e:
            raise MeasurementError(key, operation.value, str(e)) from e

    def get_mass_properties(self, request: MassPropertiesRequest) -> MassPropertiesResponse:
        total: Optional[float] = None
        for element_id in request.candidates:
            measured = self._measure_one(element_id, request.operation)
            if measured is not None:
                total = measured if total is None else total + measured
        return MassPropertiesResponse(**{request.operation.value: total})

    def close(self) -> None:
        self._cursor.close()
