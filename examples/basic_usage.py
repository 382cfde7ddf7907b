#!/usr/bin/env python3
"""Programmatic copy of a workflow tree between two n8n instances.

This drives the sync components directly instead of going through the CLI:

* load settings from `.env` and the instance file
* recursively pull a workflow and its sub-workflows into a directory
* create the whole tree on a second instance, rewiring references to the new ids

Both instances must already be configured with `n8n-sync config init`.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from n8n_sync.api.client import N8nClient
from n8n_sync.config import ConfigStore, SyncSettings, resolve_instance
from n8n_sync.errors import SyncError
from n8n_sync.logging import configure_logging
from n8n_sync.workflow import Pusher, RecursivePuller, WorkflowDirectory


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Copy an n8n workflow tree (programmatic example)."
    )
    parser.add_argument("--source", required=True, help="Configured instance to pull from")
    parser.add_argument("--target", required=True, help="Configured instance to create the copy on")
    parser.add_argument("--workflow", required=True, help="Root workflow id on the source")
    parser.add_argument("--dir", default="workflow-copy", help="Working directory for pulled files")
    return parser.parse_args(argv)


def _client(settings: SyncSettings, store: ConfigStore, name: str) -> N8nClient:
    instance = resolve_instance(settings, store, name=name)
    return N8nClient(
        base_url=instance.url,
        api_key=instance.api_key,
        timeout=settings.request_timeout_seconds,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = SyncSettings()
    configure_logging(settings.log_level)
    store = ConfigStore(settings.config_path)

    source = _client(settings, store, args.source)
    target = _client(settings, store, args.target)
    directory = WorkflowDirectory(Path(args.dir))

    try:
        result = RecursivePuller(source, instance=args.source).pull(args.workflow)
        directory.write_pull_result(result, force=True)
        for workflow_id, message in result.skipped.items():
            print(f"Skipped {workflow_id}: {message}")

        pushed = Pusher(target, directory).push(directory.read_manifest(), create=True)
    except SyncError as exc:
        print(f"Copy failed: {exc}")
        return 1
    finally:
        source.close()
        target.close()

    for old_id, new_id in pushed.id_mapping.items():
        print(f"{old_id} -> {new_id}")
    print(f"Copied {len(pushed.pushed)} workflow(s) into {args.target}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
