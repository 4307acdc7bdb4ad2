import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Optional

import typer
from dotenv import load_dotenv

# Load environment variables BEFORE importing local modules that use them
load_dotenv()

from .cleanup import list_output_files
from .config.settings import Config, ConfigurationError, PipelineLogger
from .config_loader import DEFAULT_JOB_FILE, get_available_queries, load_job, resolve_source
from .debug import describe_query
from .domain.models import JobDescription
from .pipeline.export import DataExporter, ExportResult
from .pipeline.geometry import ElementGeometryService
from .pipeline.source import DataSource
from .types import ExportError
from .utils import setup_logging

app = typer.Typer(help="iModel report: run queries against an iModel snapshot and export them to CSV")


@dataclass
class QueryOutcome:
    """Result of one query of a job."""
    name: str
    result: Optional[ExportResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.1f}s"


def process_job(
    job: JobDescription,
    source_path: Path,
    config: Config,
    pipeline_logger: PipelineLogger,
    output_root: Optional[Path] = None,
    clean: bool = False,
    continue_on_error: bool = False,
) -> list[QueryOutcome]:
    """
    Run every query of ``job`` in order against the snapshot at ``source_path``.

    Stops at the first failing query unless ``continue_on_error`` is set; files
    written by earlier queries are already closed and stay as they are.
    """
    outcomes: list[QueryOutcome] = []
    needs_geometry = any(opts.calculate_mass_properties for _, _, opts in get_available_queries(job))

    with DataSource.open(source_path, config) as source:
        geometry = ElementGeometryService(source, config.geometry) if needs_geometry else None
        try:
            exporter = DataExporter(
                source,
                output_dir=output_root or config.output_root,
                measurement_service=geometry,
                pipeline_logger=pipeline_logger,
            )
            exporter.set_folder(job.folder, clean=clean)

            for key, file_name, options in get_available_queries(job):
                pipeline_logger.info(f"Executing query for {key}")
                definition = job.queries[key]
                try:
                    with pipeline_logger.phase(f"Query {key}"):
                        result = exporter.write_query_results_to_csv(
                            definition.query, file_name, options, job.geometry_skip_list
                        )
                    outcomes.append(QueryOutcome(name=key, result=result))
                except (ExportError, ConfigurationError) as e:
                    pipeline_logger.error(f"Query {key} failed: {e}")
                    pipeline_logger.logger.debug("Failure details", exc_info=True)
                    outcomes.append(QueryOutcome(name=key, error=str(e)))
                    if not continue_on_error:
                        break
        finally:
            if geometry is not None:
                geometry.close()

    return outcomes


@app.command("export")
def export_command(
    job_file: Annotated[Optional[str], typer.Argument(help="Job description (YAML or JSON)")] = None,
    source: Annotated[Optional[str], typer.Option("--source", "-s", help="iModel snapshot path (overrides the job's source)")] = None,
    output_root: Annotated[Optional[str], typer.Option("--output-root", "-o", help="Root directory for output folders")] = None,
    clean: Annotated[bool, typer.Option("--clean", help="Clear the job's output folder before exporting")] = False,
    continue_on_error: Annotated[bool, typer.Option("--continue-on-error", help="Keep running remaining queries after a failure")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output (names every element measured)")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Run all queries of a job and write one CSV file per query.

    Rows are appended to existing files (no second header), so an export that
    stopped on a crashing element can be resumed after adding that element to
    geometrySkipList.

    Examples:
        imodel-report export queries/example.yml --source models/site.duckdb
        imodel-report export job.json --clean -v
    """
    job_path = Path(job_file) if job_file else DEFAULT_JOB_FILE

    try:
        job = load_job(job_path)
        config = Config()
        source_path = resolve_source(job, source)
    except FileNotFoundError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)

    setup_logging(verbose, job_path.stem, log_to_file)
    pipeline_logger = PipelineLogger(logging.getLogger("imodel_report"), config.progress_interval)

    if not source_path.exists():
        typer.echo(f"ERROR: Could not find the iModel at location '{source_path}'", err=True)
        raise typer.Exit(1)

    start = time.time()
    pipeline_logger.info(f"Started exporting {len(job.queries)} queries from {source_path}")

    try:
        outcomes = process_job(
            job,
            source_path,
            config,
            pipeline_logger,
            output_root=Path(output_root) if output_root else None,
            clean=clean,
            continue_on_error=continue_on_error,
        )
    except (ExportError, ConfigurationError) as e:
        logging.debug("Export failed", exc_info=True)
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1) from e

    failed = [o for o in outcomes if not o.ok]
    written = [o for o in outcomes if o.ok]
    pipeline_logger.info(
        f"Finished in {format_duration(time.time() - start)}: "
        f"{len(written)} files written, {len(failed)} failed"
    )
    if written:
        out_dir = written[0].result.path.parent
        for path in list_output_files(out_dir):
            typer.echo(f"  {path}")

    if failed:
        for outcome in failed:
            typer.echo(f"ERROR: {outcome.name}: {outcome.error}", err=True)
        raise typer.Exit(1)


@app.command("list-queries")
def list_queries(
    job_file: Annotated[Optional[str], typer.Argument(help="Job description (YAML or JSON)")] = None,
):
    """List the queries of a job with their output file and effective options."""
    try:
        job = load_job(Path(job_file) if job_file else DEFAULT_JOB_FILE)
    except (FileNotFoundError, ConfigurationError) as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Output folder: {job.folder}")
    if job.geometry_skip_list:
        typer.echo(f"Geometry skip list: {', '.join(job.geometry_skip_list)}")

    for key, file_name, options in get_available_queries(job):
        typer.echo(f"\n{key} -> {file_name}")
        typer.echo(f"   Mass properties: {options.calculate_mass_properties}")
        if options.calculate_mass_properties or options.drop_id_column_from_result:
            typer.echo(
                f"   Id column: {options.id_column}"
                f"{' (JSON array)' if options.id_column_is_json_array else ''}"
                f"{', dropped from result' if options.drop_id_column_from_result else ''}"
            )

    typer.echo(f"\nFound {len(job.queries)} queries")


@app.command("describe")
def describe(
    job_file: Annotated[str, typer.Argument(help="Job description (YAML or JSON)")],
    query: Annotated[str, typer.Argument(help="Query key to describe")],
    source: Annotated[Optional[str], typer.Option("--source", "-s", help="iModel snapshot path (overrides the job's source)")] = None,
):
    """Show the columns of a query and the header its export would start with."""
    try:
        job = load_job(Path(job_file))
        if query not in job.queries:
            typer.echo(f"ERROR: Query '{query}' not found. Available: {', '.join(job.queries)}", err=True)
            raise typer.Exit(1)
        definition = job.queries[query]
        with DataSource.open(resolve_source(job, source), Config()) as snapshot:
            description = describe_query(snapshot, definition.query, definition.export_options())
    except (FileNotFoundError, ConfigurationError, ExportError) as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)

    for index, name in description["columns"]:
        typer.echo(f"  [{index}] {name}")
    typer.echo(f"Header: {description['header']}")
    if description["id_column"] is not None:
        typer.echo(f"Id column: {description['id_column']}")


@app.command("version")
def version():
    """Display version information."""
    from . import __version__
    typer.echo(f"imodel-report version: {__version__}")


if __name__ == "__main__":
    app()
