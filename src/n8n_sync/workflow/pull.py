"""Recursive pull of a workflow and every sub-workflow it references.

Pull is best-effort below the root: a sub-workflow that cannot be fetched is
reported and skipped, and the edge pointing at it stays in the manifest as a
dangling reference. Only a failure on the root aborts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from n8n_sync.api.client import Workflow
from n8n_sync.errors import FetchError, SyncError
from n8n_sync.workflow.filenames import (
    MANIFEST_FILENAME,
    WORKFLOW_FILE_SUFFIX,
    sanitize_filename,
)
from n8n_sync.workflow.manifest import Manifest, WorkflowMeta
from n8n_sync.workflow.references import extract_sub_workflow_ids

logger = logging.getLogger(__name__)


class WorkflowSource(Protocol):
    def get_workflow(self, workflow_id: str) -> Workflow: ...


@dataclass(slots=True)
class PullResult:
    """Workflows fetched by one pull, plus the manifest describing them."""

    workflows: dict[str, Workflow]
    manifest: Manifest
    # Sub-workflow id -> error message, for ids that could not be fetched.
    skipped: dict[str, str] = field(default_factory=dict)


class RecursivePuller:
    """Walk the sub-workflow graph from a root id, fetching each workflow once."""

    def __init__(self, source: WorkflowSource, *, instance: str | None = None) -> None:
        self._source = source
        self._instance = instance

    def pull(self, root_id: str) -> PullResult:
        manifest = Manifest(root_workflow=root_id, instance=self._instance)
        workflows: dict[str, Workflow] = {}
        skipped: dict[str, str] = {}
        # The manifest shares the directory with the workflow files.
        used_filenames: set[str] = {MANIFEST_FILENAME.lower()}

        stack = [root_id]
        while stack:
            workflow_id = stack.pop()
            if workflow_id in workflows or workflow_id in skipped:
                continue

            try:
                workflow = self._source.get_workflow(workflow_id)
            except SyncError as e:
                if workflow_id == root_id:
                    raise FetchError(f"failed to get workflow {workflow_id}: {e}") from e
                logger.warning(
                    "Could not pull sub-workflow",
                    extra={"workflow_id": workflow_id, "error": str(e)},
                )
                skipped[workflow_id] = str(e)
                continue

            workflows[workflow_id] = workflow
            filename = self._choose_filename(workflow, workflow_id, used_filenames)
            manifest.workflows[workflow_id] = WorkflowMeta(
                id=workflow.id or workflow_id,
                name=workflow.name,
                filename=filename,
                active=workflow.active,
            )

            sub_ids = extract_sub_workflow_ids(workflow.nodes)
            if sub_ids:
                manifest.dependencies[workflow_id] = sub_ids

            logger.info(
                "Workflow pulled",
                extra={
                    "workflow_id": workflow_id,
                    "workflow_name": workflow.name,
                    "references": sub_ids,
                },
            )

            # Reversed so the stack visits references in the order they appear.
            stack.extend(reversed(sub_ids))

        return PullResult(workflows=workflows, manifest=manifest, skipped=skipped)

    @staticmethod
    def _choose_filename(workflow: Workflow, workflow_id: str, used: set[str]) -> str:
        """Return `<sanitized name>.json`, disambiguated by id when two names collide.

        If `<name>_<id>.json` is taken as well, a counter is appended until the
        name is free.
        """

        base = sanitize_filename(workflow.name)
        filename = base + WORKFLOW_FILE_SUFFIX
        if filename.lower() in used:
            base = f"{base}_{sanitize_filename(workflow_id)}"
            filename = base + WORKFLOW_FILE_SUFFIX
            counter = 2
            while filename.lower() in used:
                filename = f"{base}_{counter}{WORKFLOW_FILE_SUFFIX}"
                counter += 1
        used.add(filename.lower())
        return filename
