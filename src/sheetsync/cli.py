"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command line entry point.

Usage examples:
  sheetsync dispatch --sheet "Sheet 1" --dest 10.0.0.7:1880 --auth
  sheetsync clone --sheet "Sheet 1" --source localhost:1880 --dest 10.0.0.7:1880
  sheetsync read --sheet "Sheet 1" --source https://10.0.0.7:1880
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from .auth import Credentials
from .dispatch import (
    DispatchJob,
    DispatchOutcome,
    Endpoint,
    SheetDispatcher,
    resolve_local_host,
)
from .graph.prune import new_node_id
from .settings import DispatchSettings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sheetsync", description="Copy one sheet between flow runtime instances"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("dispatch", "clone"):
        cmd = sub.add_parser(name)
        cmd.add_argument("--sheet", required=True)
        cmd.add_argument("--source", default=None, help="source host:port (default: this machine)")
        cmd.add_argument("--dest", required=True, help="destination host:port")
        cmd.add_argument("--job-id", default=None, help="relay path id (default: random)")
        cmd.add_argument("--auth", action="store_true")
        cmd.add_argument("--user", default=None)

    read = sub.add_parser("read")
    read.add_argument("--sheet", required=True)
    read.add_argument("--source", required=True)
    read.add_argument("--auth", action="store_true")
    read.add_argument("--user", default=None)
    return parser.parse_args(argv)


def _credentials(user: str | None) -> Credentials:
    env = Credentials.from_env()
    return Credentials(username=user if user is not None else env.username, password=env.password)


async def run_command(args: argparse.Namespace, settings: DispatchSettings) -> DispatchOutcome:
    dispatcher = SheetDispatcher(settings=settings)
    credentials = _credentials(args.user)
    if args.command == "read":
        return await dispatcher.read_sheet(
            Endpoint(args.source),
            args.sheet,
            auth_required=args.auth,
            credentials=credentials,
        )

    job = DispatchJob(
        job_id=args.job_id or new_node_id(),
        sheet=args.sheet,
        source_host=args.source or resolve_local_host(settings.local_port),
        dest_host=args.dest,
        auth_required=args.auth,
        credentials=credentials,
    )
    if args.command == "clone":
        return await dispatcher.clone_sheet(job)
    return await dispatcher.dispatch_sheet(job)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    outcome = asyncio.run(run_command(args, DispatchSettings.from_env()))
    if outcome.success and args.command == "read" and outcome.flows is not None:
        json.dump([node.to_dict() for node in outcome.flows], sys.stdout, indent=2)
        sys.stdout.write("\n")
    return 0 if outcome.success else 1


if __name__ == "__main__":
    sys.exit(main())
