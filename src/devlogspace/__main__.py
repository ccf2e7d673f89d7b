"""Command line access to the devlog workspace.

Usage:
    python -m devlogspace status
    python -m devlogspace lock
    python -m devlogspace release --agent agent-250622025145
    python -m devlogspace summary

The workspace root comes from DEVLOG_PATH or the config files and defaults
to ./devlog.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from devlogspace.config import load_config
from devlogspace.logging import get_logger, setup_logging
from devlogspace.session.analytics import generate_session_summary
from devlogspace.session.workspace_session import WorkspaceSession

log = get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devlogspace", description=__doc__.splitlines()[0])
    parser.add_argument("--root", help="Workspace root (overrides DEVLOG_PATH)")
    parser.add_argument("-v", "--verbose", type=int, default=None, help="Verbosity 0-4")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show workspace, lock and tracking status")
    sub.add_parser("lock", help="Show the current workspace lock")
    release = sub.add_parser("release", help="Release the lock held by an agent")
    release.add_argument("--agent", required=True, help="Agent ID holding the lock")
    sub.add_parser("summary", help="Print session analytics for the current workspace")
    return parser


async def _run(args: argparse.Namespace, session: WorkspaceSession) -> int:
    if args.command == "status":
        print(await session.status())
        return 0

    if args.command == "lock":
        lock = await session.lock_manager.check_lock()
        if lock is None:
            print("Workspace is unlocked.")
        else:
            print(session.lock_manager.format_lock_info(lock))
        return 0

    if args.command == "release":
        if await session.lock_manager.release_lock(args.agent):
            print(f"Released lock held by {args.agent}.")
            return 0
        print(f"{args.agent} does not hold the workspace lock.", file=sys.stderr)
        return 1

    if args.command == "summary":
        metadata = await session.store.extract(session.paths.current)
        if metadata is None:
            print("No session metadata found.", file=sys.stderr)
            return 1
        print(generate_session_summary(metadata))
        return 0

    return 1


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config(workspace_root=args.root)
    if args.verbose is not None:
        config.logging.verbose = args.verbose
    setup_logging(config.logging)

    session = WorkspaceSession.from_config(config)
    log.debug("Workspace root: %s", session.paths.root)
    return asyncio.run(_run(args, session))


if __name__ == "__main__":
    sys.exit(main())
