"""Unit tests for the n8n API client (mocked requests session)."""

from __future__ import annotations

import json
import logging
from typing import Any
from unittest.mock import Mock

import pytest
import requests

from n8n_sync.api.client import N8nApiError, N8nClient, Workflow


def _response(status_code: int, payload: Any = None, *, text: str | None = None) -> Mock:
    resp = Mock(spec=requests.Response)
    resp.status_code = status_code
    if text is not None:
        resp.text = text
        resp.content = text.encode("utf-8")
        resp.json.side_effect = ValueError("not json")
    elif payload is None:
        resp.text = ""
        resp.content = b""
        resp.json.side_effect = ValueError("empty")
    else:
        resp.text = json.dumps(payload)
        resp.content = resp.text.encode("utf-8")
        resp.json.return_value = payload
    return resp


def _client(*responses: Mock, base_url: str = "https://n8n.example.com/") -> tuple[N8nClient, Mock]:
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = list(responses)
    client = N8nClient(base_url=base_url, api_key="secret", timeout=12.5, session=session)
    return client, session


def test_client_sets_api_key_header_and_normalizes_base_url() -> None:
    client, session = _client()

    assert client.base_url == "https://n8n.example.com"
    assert session.headers["X-N8N-API-KEY"] == "secret"
    assert session.headers["Accept"] == "application/json"


def test_client_requires_url_and_key() -> None:
    with pytest.raises(ValueError):
        N8nClient(base_url="", api_key="secret", session=Mock(spec=requests.Session))
    with pytest.raises(ValueError):
        N8nClient(
            base_url="http://localhost:5678", api_key=" ", session=Mock(spec=requests.Session)
        )


def test_get_workflow_escapes_id_and_keeps_extra_fields() -> None:
    payload = {
        "id": "a/b",
        "name": "Root",
        "active": True,
        "nodes": [],
        "connections": {},
        "tags": [{"id": "1", "name": "prod"}],
    }
    client, session = _client(_response(200, payload))

    workflow = client.get_workflow("a/b")

    session.request.assert_called_once_with(
        "GET",
        "https://n8n.example.com/api/v1/workflows/a%2Fb",
        params=None,
        json=None,
        timeout=12.5,
    )
    assert workflow.id == "a/b"
    assert workflow.active is True
    assert workflow.to_json()["tags"] == [{"id": "1", "name": "prod"}]


def test_update_sends_only_writable_fields() -> None:
    workflow = Workflow(
        id="A",
        name="Root",
        active=True,
        nodes=[{"type": "n8n-nodes-base.manualTrigger"}],
        connections={"Start": {}},
        settings={"executionOrder": "v1"},
        tags=[{"id": "1"}],
    )
    client, session = _client(_response(200, {"id": "A", "name": "Root"}))

    updated = client.update_workflow("A", workflow)

    method, url = session.request.call_args.args
    assert method == "PUT"
    assert url == "https://n8n.example.com/api/v1/workflows/A"
    assert session.request.call_args.kwargs["json"] == {
        "name": "Root",
        "nodes": [{"type": "n8n-nodes-base.manualTrigger"}],
        "connections": {"Start": {}},
        "settings": {"executionOrder": "v1"},
    }
    assert updated.id == "A"


def test_create_posts_to_collection() -> None:
    client, session = _client(_response(200, {"id": "new", "name": "Copy"}))

    created = client.create_workflow(Workflow(id="old", name="Copy", static_data={"k": 1}))

    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://n8n.example.com/api/v1/workflows")
    assert "id" not in session.request.call_args.kwargs["json"]
    assert session.request.call_args.kwargs["json"]["staticData"] == {"k": 1}
    assert created.id == "new"


def test_api_error_uses_server_message() -> None:
    client, _ = _client(_response(404, {"message": "Not Found"}))

    with pytest.raises(N8nApiError) as excinfo:
        client.get_workflow("missing")

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "API error (404): Not Found"


def test_api_error_falls_back_to_raw_body() -> None:
    client, _ = _client(_response(502, text="Bad Gateway"))

    with pytest.raises(N8nApiError, match=r"API error \(502\): Bad Gateway"):
        client.get_workflow("A")


def test_transport_failure_is_wrapped() -> None:
    session = Mock(spec=requests.Session)
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("connection refused")
    client = N8nClient(base_url="http://localhost:5678", api_key="k", session=session)

    with pytest.raises(N8nApiError) as excinfo:
        client.get_workflow("A")

    assert excinfo.value.status_code is None
    assert "connection refused" in str(excinfo.value)


def test_list_workflows_builds_query_and_reads_cursor() -> None:
    client, session = _client(
        _response(
            200,
            {
                "data": [{"id": "1", "name": "One", "active": True}],
                "nextCursor": "abc",
            },
        )
    )

    page = client.list_workflows(active=False, tags=["prod", "ops"], limit=10, cursor="prev")

    assert session.request.call_args.kwargs["params"] == {
        "limit": 10,
        "active": "false",
        "cursor": "prev",
        "tags": ["prod", "ops"],
    }
    assert [wf.name for wf in page.data] == ["One"]
    assert page.next_cursor == "abc"


def test_activate_and_delete_accept_empty_responses() -> None:
    client, session = _client(_response(200), _response(204))

    client.activate_workflow("A")
    client.delete_workflow("A")

    calls = [c.args for c in session.request.call_args_list]
    assert calls == [
        ("POST", "https://n8n.example.com/api/v1/workflows/A/activate"),
        ("DELETE", "https://n8n.example.com/api/v1/workflows/A"),
    ]


def test_unexpected_workflow_shape_is_an_api_error() -> None:
    client, _ = _client(_response(200, ["not", "an", "object"]))

    with pytest.raises(N8nApiError, match="unexpected workflow response"):
        client.get_workflow("A")


def test_create_and_update_log_at_info_level(caplog: pytest.LogCaptureFixture) -> None:
    client, _ = _client(
        _response(200, {"id": "new", "name": "Copy"}),
        _response(200, {"id": "new", "name": "Copy"}),
    )
    caplog.set_level(logging.INFO)

    client.create_workflow(Workflow(name="Copy"))
    client.update_workflow("new", Workflow(name="Copy"))

    assert [r.getMessage() for r in caplog.records] == ["Workflow created", "Workflow updated"]
    assert all(r.workflow_name == "Copy" for r in caplog.records)
