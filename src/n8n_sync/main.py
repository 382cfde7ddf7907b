"""CLI entrypoint for n8n-sync.

Commands manage configured n8n instances and pull/push workflow trees between
n8n and local JSON files.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from n8n_sync import __version__
from n8n_sync.api.client import N8nClient
from n8n_sync.config import ConfigStore, InstanceConfig, SyncSettings, resolve_instance
from n8n_sync.errors import ConfigError, SyncError
from n8n_sync.logging import configure_logging
from n8n_sync.workflow.directory import WorkflowDirectory, save_workflow_file
from n8n_sync.workflow.filenames import workflow_filename
from n8n_sync.workflow.pull import RecursivePuller
from n8n_sync.workflow.push import Pusher, push_workflow_file

logger = logging.getLogger(__name__)


def _print_json(value: Any) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="n8n-sync",
        description="Pull and push n8n workflow trees as local JSON files",
    )
    parser.add_argument("--version", action="version", version=f"n8n-sync {__version__}")
    parser.add_argument("--json", action="store_true", help="Output in JSON format")
    parser.add_argument(
        "--instance",
        default=None,
        help="Configured instance to use (defaults to the current instance)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # config
    config = subparsers.add_parser("config", help="Manage configured n8n instances")
    config_sub = config.add_subparsers(dest="config_command", required=True)

    config_init = config_sub.add_parser("init", help="Configure a new n8n instance")
    config_init.add_argument("--name", required=True, help="Instance name, e.g. 'prod'")
    config_init.add_argument(
        "--url", required=True, help="n8n URL, e.g. 'http://localhost:5678'"
    )
    config_init.add_argument("--api-key", required=True, help="API key for authentication")
    config_init.add_argument(
        "--default", action="store_true", help="Make this the current instance"
    )

    config_sub.add_parser("list", help="List configured instances")

    config_use = config_sub.add_parser("use", help="Switch to a different instance")
    config_use.add_argument("name", help="Instance name")

    config_remove = config_sub.add_parser("remove", help="Remove a configured instance")
    config_remove.add_argument("name", help="Instance name")

    # workflow
    workflow = subparsers.add_parser("workflow", aliases=["wf"], help="Manage workflows")
    workflow_sub = workflow.add_subparsers(dest="workflow_command", required=True)

    wf_list = workflow_sub.add_parser("list", help="List workflows (single page)")
    wf_list.add_argument("--active", action="store_true", help="Show only active workflows")
    wf_list.add_argument(
        "--inactive", action="store_true", help="Show only inactive workflows"
    )
    wf_list.add_argument(
        "--tag", dest="tags", action="append", default=None, help="Filter by tag (repeatable)"
    )
    wf_list.add_argument("--name", default=None, help="Filter by workflow name")
    wf_list.add_argument("--project", default=None, help="Filter by project id")
    wf_list.add_argument("--limit", type=int, default=100, help="Maximum workflows to return")
    wf_list.add_argument("--cursor", default=None, help="Pagination cursor for the next page")

    wf_view = workflow_sub.add_parser("view", help="Print a workflow's JSON definition")
    wf_view.add_argument("workflow_id")

    wf_pull = workflow_sub.add_parser("pull", help="Pull a workflow to local files")
    wf_pull.add_argument("workflow_id")
    wf_pull.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Also pull sub-workflows and write a manifest.json describing them",
    )
    wf_pull.add_argument("-d", "--dir", default="", help="Output directory")
    wf_pull.add_argument("-f", "--force", action="store_true", help="Overwrite existing files")

    wf_push = workflow_sub.add_parser(
        "push",
        help="Push a workflow file, or a pulled directory in dependency order",
    )
    wf_push.add_argument("path", help="Workflow JSON file or directory containing manifest.json")
    wf_push.add_argument(
        "--create",
        action="store_true",
        help="Create new workflows instead of updating existing ones",
    )
    wf_push.add_argument(
        "--allow-cycles",
        action="store_true",
        help="Skip workflows caught in a dependency cycle instead of failing",
    )

    for command, help_text in (
        ("activate", "Activate a workflow"),
        ("deactivate", "Deactivate a workflow"),
        ("delete", "Delete a workflow"),
    ):
        sub = workflow_sub.add_parser(command, help=help_text)
        sub.add_argument("workflow_id")

    subparsers.add_parser("version", help="Print the version number")

    return parser


def _build_client(settings: SyncSettings, instance: InstanceConfig) -> N8nClient:
    return N8nClient(
        base_url=instance.url,
        api_key=instance.api_key,
        timeout=settings.request_timeout_seconds,
    )


def _run_config(args: argparse.Namespace, store: ConfigStore) -> int:
    if args.config_command == "init":
        try:
            instance = InstanceConfig(name=args.name.strip(), url=args.url, api_key=args.api_key)
        except ValidationError as e:
            raise ConfigError(f"invalid instance configuration: {e}") from e
        if not instance.name or not instance.api_key.strip():
            raise ConfigError("name, URL, and API key are required")

        config = store.add_instance(instance, make_current=args.default)
        print(f"Instance '{instance.name}' configured successfully.")
        if config.current_instance == instance.name:
            print("Set as active instance.")
        return 0

    if args.config_command == "list":
        config = store.load()
        if args.json:
            _print_json(
                {
                    "instances": [
                        {"name": name, "url": inst.url, "active": name == config.current_instance}
                        for name, inst in config.instances.items()
                    ],
                    "current": config.current_instance,
                }
            )
            return 0
        if not config.instances:
            print("No instances configured. Run 'n8n-sync config init' to add one.")
            return 0
        print("Configured instances:")
        for name, inst in config.instances.items():
            marker = "* " if name == config.current_instance else "  "
            print(f"{marker}{name} ({inst.url})")
        return 0

    if args.config_command == "use":
        store.use_instance(args.name)
        print(f"Switched to instance '{args.name}'")
        return 0

    if args.config_command == "remove":
        config = store.remove_instance(args.name)
        print(f"Instance '{args.name}' removed.")
        if config.current_instance:
            print(f"Active instance is now '{config.current_instance}'.")
        return 0

    logger.error("Unknown config command", extra={"command": args.config_command})
    return 2


def _pull(args: argparse.Namespace, client: N8nClient, instance: InstanceConfig) -> int:
    out_dir = Path(args.dir) if args.dir else Path(".")
    out_dir.mkdir(parents=True, exist_ok=True)

    if not args.recursive:
        wf = client.get_workflow(args.workflow_id)
        path = save_workflow_file(out_dir / workflow_filename(wf.name), wf, force=args.force)
        print(f"Pulled workflow to {path}")
        return 0

    puller = RecursivePuller(client, instance=instance.name)
    result = puller.pull(args.workflow_id)
    for workflow_id, message in result.skipped.items():
        print(f"Warning: could not pull sub-workflow {workflow_id}: {message}", file=sys.stderr)

    directory = WorkflowDirectory(out_dir)
    written = directory.write_pull_result(result, force=args.force)
    for workflow_id, path in zip(result.manifest.workflows, written, strict=True):
        print(f"Pulled: {result.manifest.workflows[workflow_id].name} -> {path}")

    print(f"\nPulled {len(written)} workflow(s). Manifest: {directory.manifest_path}")
    return 0


def _push(args: argparse.Namespace, client: N8nClient) -> int:
    path = Path(args.path)
    if not path.exists():
        raise SyncError(f"failed to access path: {path} does not exist")

    if not path.is_dir():
        pushed = push_workflow_file(client, path, create=args.create)
        action = pushed.action.value.capitalize()
        print(f"{action} workflow: {pushed.name} (ID: {pushed.workflow_id})")
        return 0

    directory = WorkflowDirectory(path)
    manifest = directory.read_manifest()
    pusher = Pusher(client, directory, allow_cycles=args.allow_cycles)
    result = pusher.push(manifest, create=args.create)

    for workflow_id in result.skipped:
        print(f"Warning: skipped {workflow_id} (dependency cycle)", file=sys.stderr)
    for pushed in result.pushed:
        print(f"{pushed.action.value.capitalize()}: {pushed.name} (ID: {pushed.workflow_id})")
    print(f"\nPushed {len(result.pushed)} workflow(s) successfully.")
    return 0


def _run_workflow(args: argparse.Namespace, client: N8nClient, instance: InstanceConfig) -> int:
    command = args.workflow_command

    if command == "list":
        active: bool | None = None
        if args.active and not args.inactive:
            active = True
        elif args.inactive and not args.active:
            active = False

        page = client.list_workflows(
            active=active,
            tags=args.tags,
            name=args.name,
            project_id=args.project,
            limit=args.limit,
            cursor=args.cursor,
        )
        if args.json:
            _print_json(
                {
                    "data": [wf.to_json() for wf in page.data],
                    "nextCursor": page.next_cursor,
                }
            )
            return 0
        if not page.data:
            print("No workflows found.")
            return 0

        print(f"{'ID':<18}  {'ACTIVE':<6}  NAME")
        print(f"{'-' * 18}  {'-' * 6}  {'-' * 50}")
        for wf in page.data:
            print(f"{wf.id or '':<18}  {'yes' if wf.active else 'no':<6}  {wf.name}")
        if page.next_cursor:
            print(f"\nMore results available. Use --cursor {page.next_cursor} to continue.")
        return 0

    if command == "view":
        _print_json(client.get_workflow(args.workflow_id).to_json())
        return 0

    if command == "pull":
        return _pull(args, client, instance)

    if command == "push":
        return _push(args, client)

    if command == "activate":
        client.activate_workflow(args.workflow_id)
        print("Workflow activated.")
        return 0

    if command == "deactivate":
        client.deactivate_workflow(args.workflow_id)
        print("Workflow deactivated.")
        return 0

    if command == "delete":
        client.delete_workflow(args.workflow_id)
        print("Workflow deleted.")
        return 0

    logger.error("Unknown workflow command", extra={"command": command})
    return 2


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = SyncSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your environment / .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    if args.command == "version":
        if args.json:
            _print_json({"version": __version__})
        else:
            print(f"n8n-sync {__version__}")
        return 0

    store = ConfigStore(settings.config_path)

    try:
        if args.command == "config":
            return _run_config(args, store)

        if args.command in {"workflow", "wf"}:
            instance = resolve_instance(settings, store, name=args.instance)
            client = _build_client(settings, instance)
            try:
                return _run_workflow(args, client, instance)
            finally:
                client.close()

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except SyncError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
