"""Locate and rewrite sub-workflow references inside workflow nodes.

Node parameters are free-form JSON. References are found by probing a few known
shapes; a missing field or a value of the wrong type simply means "no reference
here". Nothing in this module raises on malformed input.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from n8n_sync.api.client import Workflow

EXECUTE_WORKFLOW_NODE = "n8n-nodes-base.executeWorkflow"
EXECUTE_WORKFLOW_TRIGGER_NODE = "n8n-nodes-base.executeWorkflowTrigger"

# Node types whose parameters are scanned for references.
REFERENCE_NODE_TYPES = frozenset({EXECUTE_WORKFLOW_NODE, EXECUTE_WORKFLOW_TRIGGER_NODE})

# Trigger nodes are never rewritten.
REWRITABLE_NODE_TYPES = frozenset({EXECUTE_WORKFLOW_NODE})


@dataclass(frozen=True, slots=True)
class ReferenceRule:
    """Where a workflow id may live inside a node's `parameters`.

    `parent` names a nested object under `parameters` (None means the parameters
    map itself); `field` is the key holding the id string.
    """

    name: str
    parent: str | None
    field: str

    def slot(self, parameters: dict[str, Any]) -> dict[str, Any] | None:
        container = parameters if self.parent is None else parameters.get(self.parent)
        return container if isinstance(container, dict) else None

    def read(self, parameters: dict[str, Any]) -> str | None:
        container = self.slot(parameters)
        if container is None:
            return None
        return self.read_from(container)

    def read_from(self, container: dict[str, Any]) -> str | None:
        value = container.get(self.field)
        if isinstance(value, str) and value:
            return value
        return None


DIRECT_ID = ReferenceRule(name="workflowId", parent=None, field="workflowId")
WORKFLOW_OBJECT_ID = ReferenceRule(name="workflow.id", parent="workflow", field="id")
EXPRESSION_VALUE = ReferenceRule(name="workflowId.value", parent="workflowId", field="value")

REFERENCE_RULES: tuple[ReferenceRule, ...] = (DIRECT_ID, WORKFLOW_OBJECT_ID, EXPRESSION_VALUE)


def _node_parameters(node: object, node_types: frozenset[str]) -> dict[str, Any] | None:
    if not isinstance(node, dict):
        return None
    node_type = node.get("type")
    if not isinstance(node_type, str) or node_type not in node_types:
        return None
    parameters = node.get("parameters")
    return parameters if isinstance(parameters, dict) else None


def extract_sub_workflow_ids(nodes: Iterable[object]) -> list[str]:
    """Return workflow ids referenced by execute-workflow nodes.

    Ids are returned in first-occurrence order without duplicates. Every rule is
    applied to every matching node, so one node can contribute several ids.
    """

    found: dict[str, None] = {}
    for node in nodes:
        parameters = _node_parameters(node, REFERENCE_NODE_TYPES)
        if parameters is None:
            continue
        for rule in REFERENCE_RULES:
            workflow_id = rule.read(parameters)
            if workflow_id is not None:
                found.setdefault(workflow_id, None)
    return list(found)


def rewrite_sub_workflow_references(workflow: Workflow, id_mapping: Mapping[str, str]) -> int:
    """Point execute-workflow nodes at new ids, in place.

    References whose id is not a key of `id_mapping` are left untouched; they
    point at workflows that were not part of this push.

    Returns:
        The number of replaced references.
    """

    if not id_mapping:
        return 0

    replaced = 0
    for node in workflow.nodes:
        parameters = _node_parameters(node, REWRITABLE_NODE_TYPES)
        if parameters is None:
            continue
        for rule in REFERENCE_RULES:
            container = rule.slot(parameters)
            if container is None:
                continue
            old_id = rule.read_from(container)
            if old_id is None or old_id not in id_mapping:
                continue
            container[rule.field] = id_mapping[old_id]
            replaced += 1
    return replaced
