"""
Job description loading.

A job file (YAML or JSON) names the iModel to read, the output folder, the
queries to run in order, and the elements whose area must not be computed:

    source: models/site.duckdb
    folder: site-report
    geometrySkipList: ["0x20000001a3"]
    queries:
      walls:
        query: SELECT id, name, class FROM elements WHERE class = 'Wall'
        store: wall_elements
        options:
          calculateMassProperties: true
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import parse_qs, urlparse

from pydantic import ValidationError

from .config.settings import ConfigurationError
from .domain.enums import JobFormat
from .domain.models import ExportOptions, JobDescription
from .utils import load_json_file, load_yaml_file

DEFAULT_JOB_FILE = Path("queries") / "example.yml"

_GUID = re.compile(r"^[A-Fa-f0-9]{8}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{4}-[A-Fa-f0-9]{12}$")


@dataclass(frozen=True)
class RemoteIModel:
    """An iModel hosted in the cloud, identified by its project and iModel GUIDs."""
    project_id: str
    imodel_id: str
    changeset_id: str = ""


def load_job(job_path: Optional[Union[str, Path]] = None) -> JobDescription:
    """
    Load and validate a job description.

    Args:
        job_path: YAML/JSON job file (defaults to queries/example.yml)

    Returns:
        Validated JobDescription

    Raises:
        FileNotFoundError: If the job file does not exist
        ConfigurationError: If the file is not valid YAML/JSON or fails validation
    """
    path = Path(job_path) if job_path else DEFAULT_JOB_FILE

    try:
        if JobFormat.from_extension(str(path)) == JobFormat.JSON:
            raw = load_json_file(path)
        else:
            raw = load_yaml_file(path)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Job file {path} must contain a mapping at the top level")

    try:
        return JobDescription.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid job description in {path}:\n{e}") from e


def parse_source_locator(locator: str) -> Union[Path, RemoteIModel]:
    """
    Interpret a source locator as a local snapshot path or a cloud iModel URL.

    URLs must carry projectId and iModelId GUIDs; changesetId is optional.
    """
    parsed = urlparse(locator)
    if parsed.scheme not in ("http", "https"):
        return Path(locator)

    params = {k.lower(): v[0] for k, v in parse_qs(parsed.query).items()}
    project_id = params.get("projectid", "")
    imodel_id = params.get("imodelid", "")
    changeset_id = params.get("changesetid", "")

    if not _GUID.match(project_id) or not _GUID.match(imodel_id):
        raise ConfigurationError(f"Error in parsing iModel url: {locator}")

    return RemoteIModel(project_id=project_id.lower(), imodel_id=imodel_id.lower(), changeset_id=changeset_id.lower())


def resolve_source(job: JobDescription, override: Optional[str] = None) -> Path:
    """
    Local snapshot path for a job, with a command-line override taking precedence.

    Raises:
        ConfigurationError: If no source is given, or it points at a cloud iModel
    """
    locator = override or job.source
    if not locator:
        raise ConfigurationError("No iModel given: set 'source' in the job file or pass --source")

    target = parse_source_locator(locator)
    if isinstance(target, RemoteIModel):
        raise ConfigurationError(
            f"iModel {target.imodel_id} (project {target.project_id}) is hosted remotely; "
            f"download a snapshot and pass its path with --source"
        )
    return target


def get_available_queries(job: JobDescription) -> list[tuple[str, str, ExportOptions]]:
    """(query key, output file name, merged options) for every query, in execution order."""
    return [
        (key, definition.output_file_name(key), definition.export_options())
        for key, definition in job.queries.items()
    ]
