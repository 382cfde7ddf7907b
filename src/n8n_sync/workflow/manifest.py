"""Manifest model and push ordering.

The manifest is the dependency graph captured by a recursive pull, stored as
plain id-keyed maps: workflow metadata plus "depends on" edge lists. Traversal
state never lives in the manifest itself.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from n8n_sync.errors import DependencyCycleError

logger = logging.getLogger(__name__)


class WorkflowMeta(BaseModel):
    """Metadata about one pulled workflow."""

    id: str
    name: str
    filename: str
    active: bool = False


class Manifest(BaseModel):
    """Workflow relationships for a pull/push operation."""

    model_config = ConfigDict(populate_by_name=True)

    root_workflow: str = Field(default="", alias="rootWorkflow")
    workflows: dict[str, WorkflowMeta] = Field(default_factory=dict)
    dependencies: dict[str, list[str]] = Field(default_factory=dict)
    instance: str | None = Field(default=None)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def dangling_references(self) -> dict[str, list[str]]:
        """Return edges whose target is not a manifest workflow, keyed by referrer."""

        dangling: dict[str, list[str]] = {}
        for workflow_id, deps in self.dependencies.items():
            missing = [dep for dep in deps if dep not in self.workflows]
            if missing:
                dangling[workflow_id] = missing
        return dangling


def _kahn_order(manifest: Manifest) -> list[str]:
    dependents: dict[str, list[str]] = {workflow_id: [] for workflow_id in manifest.workflows}
    in_degree: dict[str, int] = {workflow_id: 0 for workflow_id in manifest.workflows}

    for workflow_id, deps in manifest.dependencies.items():
        if workflow_id not in manifest.workflows:
            continue
        # Dangling targets cannot be pushed as part of this manifest.
        for dep in dict.fromkeys(deps):
            if dep in manifest.workflows:
                dependents[dep].append(workflow_id)
                in_degree[workflow_id] += 1

    ready = deque(workflow_id for workflow_id, degree in in_degree.items() if degree == 0)
    order: list[str] = []
    while ready:
        workflow_id = ready.popleft()
        order.append(workflow_id)
        for dependent in dependents[workflow_id]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                ready.append(dependent)
    return order


def find_unordered(manifest: Manifest) -> list[str]:
    """Return the workflows a push order cannot place.

    These are members of a dependency cycle and anything that depends on one.
    """

    placed = set(_kahn_order(manifest))
    return [workflow_id for workflow_id in manifest.workflows if workflow_id not in placed]


def push_order(manifest: Manifest, *, strict: bool = False) -> list[str]:
    """Return workflow ids with every dependency before its dependents.

    Workflows caught in a dependency cycle never become ready and are left out of
    the result. With `strict=True` that case raises `DependencyCycleError` instead.
    """

    order = _kahn_order(manifest)
    if len(order) != len(manifest.workflows):
        placed = set(order)
        unordered = [wid for wid in manifest.workflows if wid not in placed]
        if strict:
            raise DependencyCycleError(unordered)
        logger.debug("Workflows omitted from push order", extra={"workflow_ids": unordered})
    return order
