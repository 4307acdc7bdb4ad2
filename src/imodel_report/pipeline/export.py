"""
DataExporter - Query Results to Delimited Files

Streams the rows of a query into a semicolon-separated file. When a query asks
for mass properties, every row is enriched with the accumulated volume, area
and length of the elements its identifier column points at.

Output layout:
    volume;volume_si;area;area_si;length;length_si;<query columns...>   (mass properties)
    <query columns...>                                                  (plain)

The *_si columns are coverage ratios: the fraction of a row's elements for
which that measurement was meaningful (nonzero and defined).
"""

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union
from uuid import UUID

from ..cleanup import prepare_output_folder
from ..config import ConfigurationError, PipelineLogger
from ..domain.enums import ExportState, MassPropertiesOperation, ValueKind
from ..domain.models import ExportOptions, PartialExportOptions, merge_options
from ..types import ExportError, MalformedIdentifierListError, MeasurementError, OutputWriteError, UnsupportedValueError
from .geometry import MassPropertiesRequest, MeasurementService, element_id_text
from .source import DataSource, QueryCursor

DELIMITER = ";"
MASS_PROPERTIES_HEADER = ["volume", "volume_si", "area", "area_si", "length", "length_si"]


def _fmt_num(v: float) -> str:
    """
    Shortest round-trip text of a number: 10.0 -> "10", 0.5 -> "0.5".

    Positional between 1e-6 and 1e21, exponent form ("1.5e-7", "1e+21")
    outside that range. Non-finite values become an empty field.
    """
    v = float(v)
    if not math.isfinite(v):
        return ""
    if v == 0:
        return "0"
    text = repr(v)
    if 1e-6 <= abs(v) < 1e21:
        text = format(Decimal(text), "f")
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        return text
    mantissa, _, exponent = text.partition("e")
    sign = "-" if exponent.startswith("-") else "+"
    mantissa = mantissa[:-2] if mantissa.endswith(".0") else mantissa
    return f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0')}"


def _duration_text(value: timedelta) -> str:
    """ISO-8601 duration in days and seconds: 2 days -> "P2DT0S", -90s -> "-P0DT90S"."""
    sign = "-" if value < timedelta(0) else ""
    value = abs(value)
    seconds = value.seconds + value.microseconds / 1_000_000
    return f"{sign}P{value.days}DT{_fmt_num(seconds)}S"


# =============================================================================
# Value encoding
# =============================================================================

def value_kind(value: Any) -> ValueKind:
    """Classify a column value. Raises UnsupportedValueError for kinds with no text rule."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return ValueKind.REAL
    if isinstance(value, (str, UUID)):
        return ValueKind.TEXT
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.ID
    if isinstance(value, (dict, list, tuple)):
        return ValueKind.NESTED
    if isinstance(value, (datetime, date, time, timedelta)):
        return ValueKind.TEMPORAL
    raise UnsupportedValueError(value)


def _to_json_ready(value: Any) -> Any:
    """Prepare a nested value for json.dumps: struct members that are null are dropped."""
    kind = value_kind(value)
    if kind == ValueKind.NESTED:
        if isinstance(value, dict):
            return {str(k): _to_json_ready(v) for k, v in value.items() if v is not None}
        return [_to_json_ready(v) for v in value]
    if kind == ValueKind.REAL:
        if isinstance(value, Decimal):
            return float(value)
        return value if math.isfinite(value) else None
    if kind == ValueKind.ID:
        return element_id_text(bytes(value))
    if kind == ValueKind.TEMPORAL:
        if isinstance(value, timedelta):
            return _duration_text(value)
        return value.isoformat()
    if kind == ValueKind.TEXT:
        return str(value)
    return value


def encode_value(value: Any) -> str:
    """
    Canonical text of one column value.

    Null (and non-finite reals) become an empty field. Everything else is JSON,
    so text is quoted and nested values stay well-formed.
    """
    kind = value_kind(value)
    if kind == ValueKind.NULL:
        return ""
    if kind == ValueKind.REAL:
        if isinstance(value, Decimal):
            return str(value) if value.is_finite() else ""
        if not math.isfinite(value):
            return ""
    return json.dumps(_to_json_ready(value), ensure_ascii=False, separators=(",", ":"))


# =============================================================================
# Mass properties
# =============================================================================

@dataclass
class MassProps:
    """Accumulated measurements for the elements of one row."""
    total_count: int
    volume: float = 0.0
    volume_count: int = 0
    area: float = 0.0
    area_count: int = 0
    length: float = 0.0
    length_count: int = 0

    def _ratio(self, count: int) -> float:
        if self.total_count == 0:
            return 0.0
        return count / self.total_count

    @property
    def volume_ratio(self) -> float:
        return self._ratio(self.volume_count)

    @property
    def area_ratio(self) -> float:
        return self._ratio(self.area_count)

    @property
    def length_ratio(self) -> float:
        return self._ratio(self.length_count)

    def add(self, operation: MassPropertiesOperation, measured: Optional[float]) -> None:
        """Zero and absent measurements leave sums and counters untouched."""
        if not measured:
            return
        if operation == MassPropertiesOperation.VOLUME:
            self.volume += measured
            self.volume_count += 1
        elif operation == MassPropertiesOperation.AREA:
            self.area += measured
            self.area_count += 1
        else:
            self.length += measured
            self.length_count += 1

    def to_fields(self) -> list[str]:
        return [
            _fmt_num(self.volume), _fmt_num(self.volume_ratio),
            _fmt_num(self.area), _fmt_num(self.area_ratio),
            _fmt_num(self.length), _fmt_num(self.length_ratio),
        ]


@dataclass(frozen=True)
class ExportResult:
    """Outcome of one query export."""
    path: Path
    rows_written: int
    header_written: bool
    state: ExportState = ExportState.CLOSED
    columns: list = field(default_factory=list)


# =============================================================================
# Exporter
# =============================================================================

class DataExporter:
    """
    Writes query results from one iModel to files in an output folder.

    Queries run strictly one after another against the same open snapshot;
    geometry requests are issued one element and one measurement at a time.
    """

    def __init__(
        self,
        source: Optional[DataSource],
        output_dir: Path,
        measurement_service: Optional[MeasurementService] = None,
        pipeline_logger: Optional[PipelineLogger] = None,
    ):
        self._source = source
        self._output_root = Path(output_dir)
        self._output_dir = Path(output_dir)
        self._measurements = measurement_service
        self._log = pipeline_logger or PipelineLogger()
        self.state = ExportState.IDLE

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def set_folder(self, folder: str, clean: bool = False) -> Path:
        """Point the exporter at ``<output root>/<folder>``, creating it (and clearing it when asked)."""
        self._output_dir = prepare_output_folder(self._output_root, folder, clean=clean, log=self._log)
        return self._output_dir

    # -- header and rows ------------------------------------------------------

    def make_header(self, cursor: QueryCursor, options: ExportOptions) -> str:
        """Header line for ``cursor``'s columns; depends only on column metadata and options."""
        header = list(MASS_PROPERTIES_HEADER) if options.calculate_mass_properties else []
        skip = options.column_to_skip
        for i in range(cursor.column_count()):
            if i == skip:
                continue
            header.append(cursor.column_name(i))
        return DELIMITER.join(header)

    def row_to_string(self, cursor: QueryCursor, column_to_skip: Optional[int]) -> str:
        values = []
        for i in range(cursor.column_count()):
            if i == column_to_skip:
                continue
            values.append(encode_value(cursor.value(i)))
        return DELIMITER.join(values)

    # -- mass properties ------------------------------------------------------

    def resolve_ids(self, cursor: QueryCursor, options: ExportOptions, row_number: int) -> list:
        """Element ids referenced by the current row."""
        raw = cursor.value(options.id_column)
        if raw is None:
            return []
        if not options.id_column_is_json_array:
            return [raw]

        if isinstance(raw, (list, tuple)):
            return list(raw)
        if not isinstance(raw, str):
            raise MalformedIdentifierListError(row_number, raw, f"expected JSON text, got {type(raw).__name__}")
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedIdentifierListError(row_number, raw, str(e)) from e
        if not isinstance(ids, list):
            raise MalformedIdentifierListError(row_number, raw, "not a JSON array")
        return ids

    def _measure(self, operation: MassPropertiesOperation, element_id: Any) -> Optional[float]:
        request = MassPropertiesRequest(operation=operation, candidates=(element_id,))
        try:
            response = self._measurements.get_mass_properties(request)
        except ExportError:
            raise
        except Exception as e:
            raise MeasurementError(element_id_text(element_id), operation.value, str(e)) from e
        return getattr(response, operation.value)

    def calculate_mass_props(self, ids: list, geometry_skip_list: Optional[set] = None) -> MassProps:
        """
        Accumulate volume, area and length over ``ids``.

        Each element is measured on its own, one request per measurement kind,
        so a crash inside the geometry engine can be pinned to a single element
        (the debug log names every element before it is measured). Elements in
        ``geometry_skip_list`` never get an area request.
        """
        skip = geometry_skip_list or set()
        result = MassProps(total_count=len(ids))

        for count, element_id in enumerate(ids, start=1):
            key = element_id_text(element_id)
            self._log.debug(f"Calculating geometry for element {key}")

            result.add(MassPropertiesOperation.VOLUME, self._measure(MassPropertiesOperation.VOLUME, element_id))
            if key in skip:
                self._log.info(f"Skipping area for element with id {key}")
            else:
                result.add(MassPropertiesOperation.AREA, self._measure(MassPropertiesOperation.AREA, element_id))
            result.add(MassPropertiesOperation.LENGTH, self._measure(MassPropertiesOperation.LENGTH, element_id))

            if self._log.is_progress_tick(count):
                self._log.info(f"Calculated {count} of {len(ids)} mass properties")

        return result

    # -- files ------------------------------------------------------------------

    def _validate(self, cursor: QueryCursor, options: ExportOptions) -> None:
        uses_id_column = options.calculate_mass_properties or options.drop_id_column_from_result
        if uses_id_column and options.id_column >= cursor.column_count():
            raise ConfigurationError(
                f"idColumn {options.id_column} is out of range for a query with {cursor.column_count()} columns"
            )
        if options.calculate_mass_properties and self._measurements is None:
            raise ConfigurationError("calculateMassProperties requires a geometry measurement service")

    def write_query_results_to_csv(
        self,
        sql: str,
        file_name: str,
        options: Union[ExportOptions, PartialExportOptions, None] = None,
        geometry_skip_list: Optional[list] = None,
    ) -> ExportResult:
        """Run ``sql`` against the open snapshot and export it to ``file_name`` in the output folder."""
        if self._source is None:
            raise ExportError("No iModel is open")
        opts = options if isinstance(options, ExportOptions) else merge_options(options)
        output_path = self._output_dir / file_name

        with self._source.prepare(sql) as cursor:
            return self.write_rows(cursor, output_path, opts, geometry_skip_list)

    def write_rows(
        self,
        cursor: QueryCursor,
        output_path: Path,
        options: ExportOptions,
        geometry_skip_list: Optional[list] = None,
    ) -> ExportResult:
        """
        Drain ``cursor`` into ``output_path``.

        A new file gets the header first; an existing file only gets rows
        appended. Returns once the file is closed; any failure while reading,
        measuring or writing aborts the export.
        """
        self.state = ExportState.IDLE
        self._validate(cursor, options)

        skip_ids = {str(i) for i in geometry_skip_list or []}
        column_to_skip = options.column_to_skip
        output_path = Path(output_path)
        write_header = not output_path.exists()
        columns = [cursor.column_name(i) for i in range(cursor.column_count())]
        emitted = len(columns) - (1 if column_to_skip is not None else 0)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            stream = open(output_path, "a", encoding="utf-8", newline="\n")
        except OSError as e:
            raise OutputWriteError(str(output_path), str(e)) from e

        row_count = 0
        completed = False
        try:
            if write_header:
                stream.write(f"{self.make_header(cursor, options)}\n")
                self.state = ExportState.HEADER_WRITTEN

            self.state = ExportState.STREAMING
            while cursor.step():
                line = self.row_to_string(cursor, column_to_skip)
                if options.calculate_mass_properties:
                    ids = self.resolve_ids(cursor, options, row_count)
                    self._log.debug(f"Calculating mass properties for row {row_count} for {len(ids)} elements")
                    props = self.calculate_mass_props(ids, skip_ids)
                    fields = props.to_fields()
                    line = DELIMITER.join(fields + [line] if emitted else fields)
                stream.write(f"{line}\n")

                row_count += 1
                if self._log.is_progress_tick(row_count):
                    self._log.info(f"{row_count} rows processed so far")
            completed = True
        except OSError as e:
            raise OutputWriteError(str(output_path), str(e)) from e
        finally:
            self.state = ExportState.DRAINING
            try:
                stream.close()
            except OSError as e:
                # an error already propagating from the body wins over the close failure
                if completed:
                    raise OutputWriteError(str(output_path), f"close failed: {e}") from e
                self._log.warning(f"Closing {output_path} after a failed export also failed: {e}")
            self.state = ExportState.CLOSED

        self._log.info(f"Written {row_count} rows to file: {output_path}")
        return ExportResult(
            path=output_path,
            rows_written=row_count,
            header_written=write_header,
            columns=columns,
        )
