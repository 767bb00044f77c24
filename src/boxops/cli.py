"""Command-line entry point for instance lifecycle operations.

Usage::

    export BOXOPS_ENDPOINT_URL=https://boxes.example.com
    export BOXOPS_USERNAME=ci@example.com
    export BOXOPS_PASSWORD=...

    boxops deploy --profile p-1 --workspace ops --environment staging \\
        --var PORT=8080 --var db:SIZE=large --wait 30
    boxops reconfigure i-123 i-456 --var PORT=9090
    boxops terminate i-123 --no-wait

Exit code 0 on success, 1 on an operation failure, 2 on invalid settings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Sequence

from .http.errors import BoxOpsError
from .models import Instance, Variable
from .monitoring.progress import Monitor, wait_for_all
from .observability import configure_logging, get_logger
from .resources.client import ControlPlaneClient
from .resources.urls import page_url
from .settings import ClientSettings, SettingsError
from .variables.merge import drop_empty_values, remove_invalid_variables

logger = get_logger(__name__)


def parse_variable(raw: str) -> Variable:
    """Parse ``name=value`` or ``scope:name=value``."""
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected name=value, got {raw!r}")
    scope, _, name = key.rpartition(":")
    if not name:
        raise argparse.ArgumentTypeError(f"variable name missing in {raw!r}")
    return Variable(name=name, value=value, scope=scope)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="boxops", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    wait_opts = argparse.ArgumentParser(add_help=False)
    group = wait_opts.add_mutually_exclusive_group()
    group.add_argument(
        "--wait",
        type=float,
        default=0,
        metavar="MINUTES",
        help="Wait for completion at most MINUTES (0 waits forever)",
    )
    group.add_argument("--no-wait", action="store_true", help="Return once submitted")

    var_opts = argparse.ArgumentParser(add_help=False)
    var_opts.add_argument(
        "--var",
        dest="variables",
        action="append",
        type=parse_variable,
        default=[],
        metavar="[SCOPE:]NAME=VALUE",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    deploy = sub.add_parser("deploy", parents=[wait_opts, var_opts], help="Deploy a profile")
    deploy.add_argument("--profile", required=True)
    deploy.add_argument("--workspace", required=True)
    deploy.add_argument("--environment", required=True)
    deploy.add_argument("--instances", type=int, default=1)
    deploy.add_argument("--box-version", default=None)

    reconfigure = sub.add_parser(
        "reconfigure", parents=[wait_opts, var_opts], help="Reconfigure one or more instances"
    )
    reconfigure.add_argument("instance_ids", nargs="+")

    reinstall = sub.add_parser("reinstall", parents=[wait_opts, var_opts], help="Reinstall an instance")
    reinstall.add_argument("instance_id")

    for name in ("poweron", "shutdown"):
        cmd = sub.add_parser(name, parents=[wait_opts], help=f"{name.title()} an instance")
        cmd.add_argument("instance_id")

    terminate = sub.add_parser("terminate", parents=[wait_opts], help="Terminate an instance")
    terminate.add_argument("instance_id")
    terminate.add_argument("--force", action="store_true")

    delete = sub.add_parser("delete", help="Delete a terminated instance")
    delete.add_argument("instance_id")

    show = sub.add_parser("instance", help="Print an instance as JSON")
    show.add_argument("instance_id")

    find = sub.add_parser("find", help="Look instances up across workspaces")
    find.add_argument("instance_ids", nargs="+")

    stack = sub.add_parser("box-stack", help="Print the declared variables of a box stack")
    stack.add_argument("box_id")

    return parser


async def _reconfigure_all(
    client: ControlPlaneClient,
    instance_ids: Sequence[str],
    variables: Sequence[Variable],
) -> list[Monitor]:
    """Reconfigure each instance with the overrides its box stack declares."""
    overrides = drop_empty_values(variables)
    monitors: list[Monitor] = []
    for instance_id in instance_ids:
        valid: list[Variable] = []
        if overrides:
            stack = await client.get_instance_box_stack(instance_id)
            valid = remove_invalid_variables(overrides, stack)
        monitors.append(await client.reconfigure(instance_id, valid))
    return monitors


async def _submit(args: argparse.Namespace, client: ControlPlaneClient) -> list[Monitor]:
    if args.command == "reconfigure":
        return await _reconfigure_all(client, args.instance_ids, args.variables)
    return [await _submit_one(args, client)]


async def _submit_one(args: argparse.Namespace, client: ControlPlaneClient) -> Monitor:
    if args.command == "deploy":
        return await client.deploy(
            args.profile,
            args.workspace,
            args.environment,
            args.instances,
            args.variables,
            box_version=args.box_version,
        )
    if args.command == "reinstall":
        return await client.reinstall(args.instance_id, args.variables)
    if args.command == "poweron":
        return await client.poweron(args.instance_id)
    if args.command == "shutdown":
        return await client.shutdown(args.instance_id)
    if args.command == "terminate":
        if args.force:
            return await client.force_terminate(args.instance_id)
        return await client.terminate(args.instance_id)
    raise ValueError(f"not an asynchronous operation: {args.command}")


async def run_command(args: argparse.Namespace, client: ControlPlaneClient) -> Any:
    """Execute one parsed command; return a JSON-serialisable result."""
    if args.command == "instance":
        return dict((await client.get_instance(args.instance_id)).raw)
    if args.command == "find":
        instances: list[Instance] = await client.find_instances(args.instance_ids)
        return [dict(instance.raw) for instance in instances]
    if args.command == "box-stack":
        stack = await client.get_box_stack(args.box_id)
        return [var.to_json() for var in stack.variables()]
    if args.command == "delete":
        await client.delete(args.instance_id)
        return {"deleted": args.instance_id}

    monitors = await _submit(args, client)
    for monitor in monitors:
        logger.info(
            "operation_submitted",
            command=args.command,
            page=page_url(client.endpoint_url, monitor.resource_url),
        )
    if not args.no_wait:
        await wait_for_all(monitors, args.wait)
        logger.info("operation_completed", command=args.command, instances=len(monitors))
    return {
        "resource_urls": [monitor.resource_url for monitor in monitors],
        "completed": not args.no_wait,
    }


async def _run(args: argparse.Namespace, settings: ClientSettings) -> Any:
    client = ControlPlaneClient.from_settings(settings)
    try:
        return await run_command(args, client)
    finally:
        transport = client.executor.transport
        if transport is not None:
            await transport.aclose()


def main(argv: Sequence[str] | None = None, env: dict[str, str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs or None)

    try:
        settings = ClientSettings.from_env(env)
        errors = settings.validate()
        if errors:
            raise SettingsError("; ".join(errors))
    except SettingsError as exc:
        logger.error("invalid_settings", error=str(exc))
        return 2

    try:
        result = asyncio.run(_run(args, settings))
    except BoxOpsError as exc:
        logger.error("operation_failed", command=args.command, error=str(exc))
        return 1

    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
