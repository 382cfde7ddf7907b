"""Push pulled workflows back to n8n in dependency order.

Push is fail-fast: the first workflow that cannot be read, created or updated
aborts the whole run, because later workflows may reference it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from n8n_sync.api.client import Workflow
from n8n_sync.errors import DependencyCycleError, PushError, SyncError
from n8n_sync.workflow.directory import WorkflowDirectory, load_workflow_file
from n8n_sync.workflow.manifest import Manifest, WorkflowMeta, find_unordered, push_order
from n8n_sync.workflow.references import rewrite_sub_workflow_references

logger = logging.getLogger(__name__)


class WorkflowSink(Protocol):
    def create_workflow(self, workflow: Workflow) -> Workflow: ...

    def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow: ...


class PushAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass(frozen=True, slots=True)
class PushedWorkflow:
    """Outcome for one workflow sent to n8n."""

    source_id: str
    workflow_id: str
    name: str
    action: PushAction


@dataclass(slots=True)
class PushResult:
    pushed: list[PushedWorkflow] = field(default_factory=list)
    # Old id -> id assigned by n8n (create mode only).
    id_mapping: dict[str, str] = field(default_factory=dict)
    # Workflows left out because of a dependency cycle (allow_cycles only).
    skipped: list[str] = field(default_factory=list)


def _create(sink: WorkflowSink, workflow: Workflow, *, label: str) -> tuple[str, Workflow]:
    """Create `workflow` as a new copy; return the id n8n assigned and the created body."""

    workflow.id = None
    try:
        created = sink.create_workflow(workflow)
    except SyncError as e:
        raise PushError(f"failed to create workflow {label}: {e}") from e
    if not created.id:
        raise PushError(f"failed to create workflow {label}: n8n returned no id")
    return created.id, created


def _update(sink: WorkflowSink, workflow_id: str, workflow: Workflow, *, label: str) -> Workflow:
    try:
        return sink.update_workflow(workflow_id, workflow)
    except SyncError as e:
        raise PushError(f"failed to update workflow {label}: {e}") from e


def push_workflow_file(sink: WorkflowSink, path: Path, *, create: bool = False) -> PushedWorkflow:
    """Push a single workflow file without a manifest."""

    try:
        workflow = load_workflow_file(path)
    except SyncError as e:
        raise PushError(str(e)) from e

    source_id = workflow.id or ""
    label = repr(workflow.name)
    if create:
        new_id, created = _create(sink, workflow, label=label)
        return PushedWorkflow(
            source_id=source_id,
            workflow_id=new_id,
            name=created.name,
            action=PushAction.CREATED,
        )

    if not source_id:
        raise PushError(f"workflow in {path} has no ID. Use --create to create a new workflow")
    updated = _update(sink, source_id, workflow, label=label)
    return PushedWorkflow(
        source_id=source_id,
        workflow_id=updated.id or source_id,
        name=updated.name,
        action=PushAction.UPDATED,
    )


class Pusher:
    """Push every workflow of a manifest, dependencies first.

    In create mode each workflow is created as a new copy; the ids n8n assigns are
    collected in an old -> new table and used to rewrite the references of the
    workflows pushed after it.
    """

    def __init__(
        self,
        sink: WorkflowSink,
        directory: WorkflowDirectory,
        *,
        allow_cycles: bool = False,
    ) -> None:
        self._sink = sink
        self._directory = directory
        self._allow_cycles = allow_cycles

    def push(self, manifest: Manifest, *, create: bool = False) -> PushResult:
        result = PushResult()

        unordered = find_unordered(manifest)
        if unordered:
            if not self._allow_cycles:
                raise DependencyCycleError(unordered)
            logger.warning(
                "Skipping workflows caught in a dependency cycle",
                extra={"workflow_ids": unordered},
            )
            result.skipped.extend(unordered)

        for workflow_id in push_order(manifest):
            meta = manifest.workflows[workflow_id]
            pushed = self._push_one(workflow_id, meta, result.id_mapping, create=create)
            result.pushed.append(pushed)

        return result

    def _push_one(
        self,
        workflow_id: str,
        meta: WorkflowMeta,
        id_mapping: dict[str, str],
        *,
        create: bool,
    ) -> PushedWorkflow:
        label = f"{meta.name!r} ({workflow_id})"
        try:
            workflow = self._directory.read_workflow(meta.filename)
        except SyncError as e:
            raise PushError(f"failed to load workflow {label}: {e}") from e

        if create:
            if id_mapping:
                rewritten = rewrite_sub_workflow_references(workflow, id_mapping)
                if rewritten:
                    logger.debug(
                        "Sub-workflow references rewritten",
                        extra={"workflow_id": workflow_id, "count": rewritten},
                    )
            new_id, created = _create(self._sink, workflow, label=label)
            id_mapping[workflow_id] = new_id
            logger.info(
                "Workflow copy created",
                extra={"source_id": workflow_id, "workflow_id": new_id},
            )
            return PushedWorkflow(
                source_id=workflow_id,
                workflow_id=new_id,
                name=created.name,
                action=PushAction.CREATED,
            )

        target_id = workflow.id or workflow_id
        updated = _update(self._sink, target_id, workflow, label=label)
        return PushedWorkflow(
            source_id=workflow_id,
            workflow_id=updated.id or target_id,
            name=updated.name,
            action=PushAction.UPDATED,
        )
