"""n8n public REST API client.

Wraps `requests` so HTTP details stay out of the sync engine and the CLI, and so
tests can inject a mocked session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from n8n_sync.errors import SyncError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_PAGE_LIMIT = 100


class Workflow(BaseModel):
    """A workflow document as returned by the n8n API.

    Only the fields the sync engine touches are declared. Everything else the
    server returns (tags, timestamps, sharing info, pinned data, ...) is kept as an
    extra field so a pulled file round-trips unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = None
    name: str = ""
    active: bool = False
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    connections: dict[str, Any] = Field(default_factory=dict)
    settings: dict[str, Any] | None = None
    static_data: Any = Field(default=None, alias="staticData")

    def to_json(self) -> dict[str, Any]:
        """Serialize the full document for local storage."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_request_body(self) -> dict[str, Any]:
        """Serialize only the fields the create/update endpoints accept.

        `id`, `active` and `tags` are read-only on the server side.
        """

        body: dict[str, Any] = {
            "name": self.name,
            "nodes": self.nodes,
            "connections": self.connections,
        }
        if self.settings is not None:
            body["settings"] = self.settings
        if self.static_data is not None:
            body["staticData"] = self.static_data
        return body


@dataclass(frozen=True, slots=True)
class WorkflowPage:
    """One page of a workflow listing."""

    data: list[Workflow]
    next_cursor: str | None


@dataclass(frozen=True)
class N8nApiError(SyncError):
    """Raised for HTTP errors, transport failures and unexpected responses.

    `status_code` is None when no HTTP response was received.
    """

    message: str
    status_code: int | None = None

    def __str__(self) -> str:
        if self.status_code is None:
            return f"request failed: {self.message}"
        return f"API error ({self.status_code}): {self.message}"


class N8nClient:
    """Small wrapper around the n8n public API for the operations the CLI needs."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("n8n base URL is required")
        if not api_key.strip():
            raise ValueError("n8n API key is required")

        self._base_url = base_url.strip().rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "X-N8N-API-KEY": api_key,
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": "n8n-sync",
            }
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _url(self, path: str) -> str:
        path = path.lstrip("/")
        return f"{self._base_url}{API_PREFIX}/{path}"

    def _workflow_url(self, workflow_id: str, suffix: str = "") -> str:
        if not workflow_id.strip():
            raise ValueError("workflow_id is required")
        if suffix and not suffix.startswith("/"):
            suffix = "/" + suffix
        return self._url(f"workflows/{quote(workflow_id, safe='')}{suffix}")

    @staticmethod
    def _error_message(resp: requests.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict):
            message = data.get("message")
            if isinstance(message, str) and message.strip():
                return message
        return resp.text

    def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        try:
            resp = self._session.request(
                method, url, params=params, json=json_body, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise N8nApiError(message=str(e)) from e

        if resp.status_code >= 400:
            message = self._error_message(resp)
            logger.debug(
                "n8n API request failed",
                extra={"method": method, "url": url, "status_code": resp.status_code},
            )
            raise N8nApiError(message=message, status_code=resp.status_code)

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise N8nApiError(
                message=f"failed to parse response: {e}", status_code=resp.status_code
            ) from e

    @staticmethod
    def _parse_workflow(data: Any) -> Workflow:
        if not isinstance(data, dict):
            raise N8nApiError(message="unexpected workflow response: expected a JSON object")
        try:
            return Workflow.model_validate(data)
        except ValidationError as e:
            raise N8nApiError(message=f"unexpected workflow response: {e}") from e

    def list_workflows(
        self,
        *,
        active: bool | None = None,
        tags: list[str] | None = None,
        name: str | None = None,
        project_id: str | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
        cursor: str | None = None,
        exclude_pinned_data: bool = False,
    ) -> WorkflowPage:
        """Fetch a single page of workflows."""

        params: dict[str, Any] = {}
        if limit > 0:
            params["limit"] = limit
        if active is not None:
            params["active"] = "true" if active else "false"
        if cursor:
            params["cursor"] = cursor
        if name:
            params["name"] = name
        if project_id:
            params["projectId"] = project_id
        if exclude_pinned_data:
            params["excludePinnedData"] = "true"
        if tags:
            params["tags"] = list(tags)

        payload = self._request("GET", self._url("workflows"), params=params or None)
        if not isinstance(payload, dict):
            raise N8nApiError(message="unexpected list response: expected a JSON object")

        raw_items = payload.get("data")
        items = raw_items if isinstance(raw_items, list) else []
        next_cursor = payload.get("nextCursor")
        if not isinstance(next_cursor, str) or not next_cursor.strip():
            next_cursor = None

        return WorkflowPage(
            data=[self._parse_workflow(item) for item in items],
            next_cursor=next_cursor,
        )

    def get_workflow(self, workflow_id: str) -> Workflow:
        return self._parse_workflow(self._request("GET", self._workflow_url(workflow_id)))

    def create_workflow(self, workflow: Workflow) -> Workflow:
        created = self._parse_workflow(
            self._request("POST", self._url("workflows"), json_body=workflow.to_request_body())
        )
        logger.info(
            "Workflow created",
            extra={"workflow_id": created.id, "workflow_name": created.name},
        )
        return created

    def update_workflow(self, workflow_id: str, workflow: Workflow) -> Workflow:
        updated = self._parse_workflow(
            self._request(
                "PUT", self._workflow_url(workflow_id), json_body=workflow.to_request_body()
            )
        )
        logger.info(
            "Workflow updated",
            extra={"workflow_id": workflow_id, "workflow_name": updated.name},
        )
        return updated

    def delete_workflow(self, workflow_id: str) -> None:
        self._request("DELETE", self._workflow_url(workflow_id))

    def activate_workflow(self, workflow_id: str) -> None:
        self._request("POST", self._workflow_url(workflow_id, "activate"))

    def deactivate_workflow(self, workflow_id: str) -> None:
        self._request("POST", self._workflow_url(workflow_id, "deactivate"))

    def close(self) -> None:
        self._session.close()
