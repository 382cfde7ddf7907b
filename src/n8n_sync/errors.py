"""Exception hierarchy shared by the sync engine and the CLI.

Every error derived from `SyncError` carries a message that can be shown to the
user directly (operation, identifier or filename, underlying cause).
"""

from __future__ import annotations

from collections.abc import Sequence


class SyncError(Exception):
    """Base class for user-facing errors."""


class ConfigError(SyncError):
    """Missing or invalid CLI configuration."""


class FetchError(SyncError):
    """The root workflow of a pull could not be fetched."""


class PushError(SyncError):
    """A push aborted on its first failure."""


class DependencyCycleError(PushError):
    """The manifest's dependency edges contain a cycle."""

    def __init__(self, members: Sequence[str]) -> None:
        self.members = list(members)
        super().__init__(
            "dependency cycle detected; these workflows cannot be ordered: "
            + ", ".join(self.members)
        )


class WorkflowFileError(SyncError):
    """A local workflow file is missing, unreadable, malformed or would be overwritten."""


class ManifestNotFoundError(SyncError):
    """A directory was targeted but holds no manifest."""


class ManifestParseError(SyncError):
    """A manifest exists but cannot be read or decoded."""
