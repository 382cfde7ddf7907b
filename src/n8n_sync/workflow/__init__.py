"""Dependency-aware pull/push of n8n workflow trees."""

from .directory import MANIFEST_FILENAME, WorkflowDirectory
from .filenames import sanitize_filename, workflow_filename
from .manifest import Manifest, WorkflowMeta, find_unordered, push_order
from .pull import PullResult, RecursivePuller
from .push import PushAction, PushedWorkflow, Pusher, PushResult, push_workflow_file
from .references import extract_sub_workflow_ids, rewrite_sub_workflow_references

__all__ = [
    "MANIFEST_FILENAME",
    "Manifest",
    "PullResult",
    "PushAction",
    "PushResult",
    "PushedWorkflow",
    "Pusher",
    "RecursivePuller",
    "WorkflowDirectory",
    "WorkflowMeta",
    "extract_sub_workflow_ids",
    "find_unordered",
    "push_order",
    "push_workflow_file",
    "rewrite_sub_workflow_references",
    "sanitize_filename",
    "workflow_filename",
]
