"""Local persistence for pulled workflows and their manifest."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from n8n_sync.api.client import Workflow
from n8n_sync.errors import ManifestNotFoundError, ManifestParseError, WorkflowFileError
from n8n_sync.workflow.filenames import MANIFEST_FILENAME
from n8n_sync.workflow.manifest import Manifest
from n8n_sync.workflow.pull import PullResult

logger = logging.getLogger(__name__)


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def load_workflow_file(path: Path) -> Workflow:
    """Read one workflow JSON file."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise WorkflowFileError(f"failed to read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise WorkflowFileError(f"failed to parse {path}: {e}") from e

    if not isinstance(raw, dict):
        raise WorkflowFileError(f"failed to parse {path}: expected a JSON object")
    try:
        return Workflow.model_validate(raw)
    except ValidationError as e:
        raise WorkflowFileError(f"failed to parse {path}: {e}") from e


def save_workflow_file(path: Path, workflow: Workflow, *, force: bool = False) -> Path:
    if path.exists() and not force:
        raise WorkflowFileError(f"file {path} already exists. Use --force to overwrite")
    _write_json(path, workflow.to_json())
    return path


class WorkflowDirectory:
    """A directory holding workflow files plus `manifest.json`."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @property
    def manifest_path(self) -> Path:
        return self._path / MANIFEST_FILENAME

    def has_manifest(self) -> bool:
        return self.manifest_path.is_file()

    def read_manifest(self) -> Manifest:
        if not self.has_manifest():
            raise ManifestNotFoundError(f"no {MANIFEST_FILENAME} found in {self._path}")

        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ManifestParseError(f"failed to read {self.manifest_path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ManifestParseError(f"failed to parse {self.manifest_path}: {e}") from e

        if not isinstance(raw, dict):
            raise ManifestParseError(
                f"failed to parse {self.manifest_path}: expected a JSON object"
            )
        try:
            return Manifest.model_validate(raw)
        except ValidationError as e:
            raise ManifestParseError(f"failed to parse {self.manifest_path}: {e}") from e

    def write_manifest(self, manifest: Manifest) -> Path:
        _write_json(self.manifest_path, manifest.to_json())
        return self.manifest_path

    def workflow_path(self, filename: str) -> Path:
        return self._path / filename

    def read_workflow(self, filename: str) -> Workflow:
        return load_workflow_file(self.workflow_path(filename))

    def write_workflow(self, filename: str, workflow: Workflow, *, force: bool = False) -> Path:
        return save_workflow_file(self.workflow_path(filename), workflow, force=force)

    def write_pull_result(self, result: PullResult, *, force: bool = False) -> list[Path]:
        """Write every pulled workflow and the manifest.

        Existing files are checked up front so a refused overwrite leaves the
        directory untouched.

        Returns:
            Paths of the written workflow files, in manifest order.
        """

        targets: list[tuple[Path, Workflow]] = []
        for workflow_id, meta in result.manifest.workflows.items():
            targets.append((self.workflow_path(meta.filename), result.workflows[workflow_id]))

        if not force:
            for path, _ in targets:
                if path.exists():
                    raise WorkflowFileError(
                        f"file {path} already exists. Use --force to overwrite"
                    )

        written: list[Path] = []
        for path, workflow in targets:
            _write_json(path, workflow.to_json())
            written.append(path)

        self.write_manifest(result.manifest)
        logger.info(
            "Pull result written",
            extra={"directory": str(self._path), "workflow_count": len(written)},
        )
        return written
