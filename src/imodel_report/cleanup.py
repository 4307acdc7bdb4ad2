"""Output folder management for export runs."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .types import OutputWriteError

if TYPE_CHECKING:
    from .config.settings import PipelineLogger


def prepare_output_folder(root: Path, folder: str, clean: bool = False,
                          log: Optional[PipelineLogger] = None) -> Path:
    """
    Create ``root/folder`` before any query of a job runs.

    Args:
        root: Output root directory
        folder: Job output folder, relative to ``root``
        clean: Remove the folder and everything in it first
        log: Diagnostic sink; falls back to the module logger

    Returns:
        Path of the prepared folder

    Raises:
        OutputWriteError: If the folder cannot be removed or created
    """
    out_dir = Path(root) / folder
    info = log.info if log else logging.info
    debug = log.debug if log else logging.debug

    if clean and out_dir.exists():
        try:
            shutil.rmtree(out_dir)
            info(f"Cleared output folder {out_dir}")
        except OSError as e:
            raise OutputWriteError(str(out_dir), f"could not clear folder: {e}") from e

    try:
        out_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputWriteError(str(out_dir), f"could not create folder: {e}") from e

    debug(f"Output folder ready: {out_dir}")
    return out_dir


def list_output_files(out_dir: Path) -> list[Path]:
    """Delimited files currently in an output folder, sorted by name."""
    if not out_dir.exists():
        return []
    return sorted(p for p in out_dir.glob("*.csv") if p.is_file())
