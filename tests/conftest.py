"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from n8n_sync.api.client import N8nApiError, N8nClient, Workflow
from n8n_sync.workflow.references import EXECUTE_WORKFLOW_NODE

MakeWorkflow = Callable[..., Workflow]


def _execute_node(target: str, *, node_type: str = EXECUTE_WORKFLOW_NODE) -> dict[str, Any]:
    return {
        "name": f"Call {target}",
        "type": node_type,
        "typeVersion": 1,
        "position": [0, 0],
        "parameters": {"workflowId": target},
    }


@pytest.fixture
def make_workflow() -> MakeWorkflow:
    """Build a workflow whose nodes call the given sub-workflow ids."""

    def _make(workflow_id: str, name: str | None = None, *refs: str) -> Workflow:
        nodes: list[dict[str, Any]] = [
            {"name": "Start", "type": "n8n-nodes-base.manualTrigger", "parameters": {}}
        ]
        nodes.extend(_execute_node(ref) for ref in refs)
        return Workflow(
            id=workflow_id,
            name=name or f"Workflow {workflow_id}",
            active=False,
            nodes=nodes,
            connections={},
        )

    return _make


@pytest.fixture
def fake_n8n() -> Callable[[dict[str, Workflow]], Mock]:
    """Provide a mocked client serving workflows from a dict.

    Unknown ids fail with a 404 like the real API.
    """

    def _build(workflows: dict[str, Workflow]) -> Mock:
        client = Mock(spec=N8nClient)

        def get_workflow(workflow_id: str) -> Workflow:
            if workflow_id not in workflows:
                raise N8nApiError(message="Not Found", status_code=404)
            return workflows[workflow_id].model_copy(deep=True)

        client.get_workflow.side_effect = get_workflow
        return client

    return _build
