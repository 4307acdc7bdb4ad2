"""
Pipeline Domain Models

Pydantic models for the job description plus the fully-populated export options.
Job files use camelCase option names (calculateMassProperties, idColumn, ...); the
snake_case field names are accepted as well.
"""

from dataclasses import dataclass, fields
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


@dataclass(frozen=True)
class ExportOptions:
    """Per-query export options with every field populated.

    calculate_mass_properties and drop_id_column_from_result are independent:
    measuring does not imply dropping the identifier column, and vice versa.
    """
    calculate_mass_properties: bool = False
    id_column: int = 0
    id_column_is_json_array: bool = False
    drop_id_column_from_result: bool = False

    @property
    def column_to_skip(self) -> Optional[int]:
        """Index excluded from both header and rows, or None."""
        return self.id_column if self.drop_id_column_from_result else None


DEFAULT_OPTIONS = ExportOptions()


class PartialExportOptions(BaseModel):
    """Options as written in a job file; unset fields fall back to defaults."""
    calculate_mass_properties: Optional[bool] = Field(
        None,
        validation_alias=AliasChoices("calculateMassProperties", "calculate_mass_properties"),
        description="Measure volume/area/length for the elements referenced by each row",
    )
    id_column: Optional[int] = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("idColumn", "id_column"),
        description="Index of the column holding the element id(s)",
    )
    id_column_is_json_array: Optional[bool] = Field(
        None,
        validation_alias=AliasChoices("idColumnIsJsonArray", "id_column_is_json_array"),
        description="Identifier column holds a JSON array of ids instead of a single id",
    )
    drop_id_column_from_result: Optional[bool] = Field(
        None,
        validation_alias=AliasChoices("dropIdColumnFromResult", "drop_id_column_from_result"),
        description="Leave the identifier column out of the written rows",
    )

    class Config:
        """Pydantic configuration."""
        frozen = True
        extra = "forbid"


def merge_options(partial: Optional[PartialExportOptions] = None,
                  defaults: ExportOptions = DEFAULT_OPTIONS) -> ExportOptions:
    """Overlay the explicitly set fields of ``partial`` on ``defaults``."""
    values = {f.name: getattr(defaults, f.name) for f in fields(defaults)}
    if partial is not None:
        values.update(
            {k: v for k, v in partial.model_dump(exclude_unset=True).items() if v is not None}
        )
    return ExportOptions(**values)


class QueryDefinition(BaseModel):
    """One named query of a job."""
    query: str = Field(..., min_length=1, description="ECSQL/SQL text to execute")
    store: Optional[str] = Field(None, description="Output file base name (defaults to the query key)")
    options: Optional[PartialExportOptions] = Field(None, description="Export options overriding the defaults")

    class Config:
        """Pydantic configuration."""
        frozen = True

    def output_file_name(self, key: str) -> str:
        return f"{self.store if self.store is not None else key}.csv"

    def export_options(self) -> ExportOptions:
        return merge_options(self.options)


class JobDescription(BaseModel):
    """A report job: where to read from, where to write, and what to run."""
    source: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("source", "url", "file"),
        description="Snapshot path (or iModel URL) to query",
    )
    folder: str = Field(..., min_length=1, description="Output folder under the output root")
    queries: dict[str, QueryDefinition] = Field(default_factory=dict, description="Queries in execution order")
    geometry_skip_list: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("geometrySkipList", "geometryCalculationSkipList", "geometry_skip_list"),
        description="Element ids whose area must not be requested",
    )

    class Config:
        """Pydantic configuration."""
        frozen = True

    @field_validator("geometry_skip_list", mode="before")
    @classmethod
    def _ids_as_strings(cls, value):
        if value is None:
            return []
        return [str(v) for v in value]
