"""
Tests for job description models and option merging.
"""

import pytest
from pydantic import ValidationError

from imodel_report.domain.models import (
    DEFAULT_OPTIONS,
    ExportOptions,
    JobDescription,
    PartialExportOptions,
    QueryDefinition,
    merge_options,
)


class TestOptionMerge:
    """Tests for merging partial options over defaults."""

    def test_defaults(self):
        assert DEFAULT_OPTIONS == ExportOptions(
            calculate_mass_properties=False,
            id_column=0,
            id_column_is_json_array=False,
            drop_id_column_from_result=False,
        )

    def test_no_partial_gives_defaults(self):
        assert merge_options(None) == DEFAULT_OPTIONS

    def test_explicit_fields_override(self):
        partial = PartialExportOptions.model_validate({"calculateMassProperties": True, "idColumn": 2})
        merged = merge_options(partial)
        assert merged.calculate_mass_properties is True
        assert merged.id_column == 2
        assert merged.id_column_is_json_array is False

    def test_explicit_false_overrides_true_default(self):
        defaults = ExportOptions(calculate_mass_properties=True)
        partial = PartialExportOptions.model_validate({"calculateMassProperties": False})
        assert merge_options(partial, defaults).calculate_mass_properties is False

    def test_snake_case_names_accepted(self):
        partial = PartialExportOptions.model_validate({"drop_id_column_from_result": True})
        assert merge_options(partial).drop_id_column_from_result is True

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            PartialExportOptions.model_validate({"calculateMass": True})

    def test_negative_id_column_rejected(self):
        with pytest.raises(ValidationError):
            PartialExportOptions.model_validate({"idColumn": -1})

    def test_column_to_skip_follows_drop_flag_only(self):
        assert ExportOptions(calculate_mass_properties=True, id_column=1).column_to_skip is None
        assert ExportOptions(id_column=1, drop_id_column_from_result=True).column_to_skip == 1


class TestJobDescription:
    """Tests for job description validation."""

    def test_queries_keep_order(self):
        job = JobDescription.model_validate({
            "folder": "out",
            "queries": {
                "zeta": {"query": "SELECT 1"},
                "alpha": {"query": "SELECT 2"},
            },
        })
        assert list(job.queries) == ["zeta", "alpha"]

    def test_url_alias_for_source(self):
        job = JobDescription.model_validate({"url": "model.duckdb", "folder": "out"})
        assert job.source == "model.duckdb"

    def test_skip_list_ids_become_text(self):
        job = JobDescription.model_validate({"folder": "out", "geometrySkipList": [12, "0x1f"]})
        assert job.geometry_skip_list == ["12", "0x1f"]

    def test_folder_required(self):
        with pytest.raises(ValidationError):
            JobDescription.model_validate({"queries": {}})

    def test_empty_query_text_rejected(self):
        with pytest.raises(ValidationError):
            QueryDefinition.model_validate({"query": ""})


class TestQueryDefinition:
    """Tests for per-query derived values."""

    def test_store_names_output_file(self):
        definition = QueryDefinition(query="SELECT 1", store="walls_export")
        assert definition.output_file_name("walls") == "walls_export.csv"

    def test_key_names_output_file_without_store(self):
        assert QueryDefinition(query="SELECT 1").output_file_name("walls") == "walls.csv"

    def test_export_options_merged(self):
        definition = QueryDefinition.model_validate({
            "query": "SELECT 1",
            "options": {"idColumnIsJsonArray": True},
        })
        assert definition.export_options() == ExportOptions(id_column_is_json_array=True)
