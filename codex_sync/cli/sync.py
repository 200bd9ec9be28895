"""Run the sync engine once against the configured replicas.

Usage:
    codex-sync [--log-level LEVEL] sync [--strategy {merge,local,remote}]
    codex-sync push | pull | status | clear

Each command prints its result as JSON on stdout and exits 0 on success,
1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from codex_sync.config import load_config
from codex_sync.core.logging_utils import setup_json_logging
from codex_sync.domain.models.replica import MergeStrategy
from codex_sync.infrastructure.redis import close_redis, get_redis
from codex_sync.infrastructure.storage import build_replica_stores
from codex_sync.sync.service import SyncOrchestrator

if TYPE_CHECKING:
    from codex_sync.config import AppConfig

logger = logging.getLogger("codex_sync.cli")


def _emit(result: dict[str, Any]) -> None:
    print(json.dumps(result, indent=2, ensure_ascii=False))


async def run_command(cfg: AppConfig, command: str, strategy: str | None = None) -> int:
    """Build the engine from ``cfg`` and run one command.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    redis_client = None
    if cfg.storage.remote_backend == "redis":
        redis_client = await get_redis(cfg.redis)

    try:
        local, remote = build_replica_stores(cfg, redis_client=redis_client)
        orchestrator = SyncOrchestrator(local, remote, config=cfg.sync)
        await orchestrator.initialize()

        if command == "sync":
            outcome = await orchestrator.sync(strategy)
        elif command == "push":
            outcome = await orchestrator.force_push_to_remote()
        elif command == "pull":
            outcome = await orchestrator.force_pull_from_remote()
        elif command == "clear":
            cleared = await orchestrator.clear_sync_data()
            _emit(cleared.to_wire())
            return 0 if cleared.success else 1
        else:
            status = await orchestrator.get_sync_status()
            _emit(status.to_wire())
            return 0

        await orchestrator.aclose()
        _emit(outcome.to_wire())
        return 0 if outcome.success else 1
    finally:
        if redis_client is not None:
            await close_redis()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codex-sync", description="Reconcile the local and remote link replicas"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    sync_parser = commands.add_parser("sync", help="Run one sync cycle")
    sync_parser.add_argument(
        "--strategy",
        choices=[member.value for member in MergeStrategy],
        default=None,
        help="Conflict strategy for this cycle only (defaults to SYNC_STRATEGY)",
    )
    commands.add_parser("push", help="Force local to win and overwrite remote")
    commands.add_parser("pull", help="Force remote to win and overwrite local")
    commands.add_parser("status", help="Show versions, last sync time and quota usage")
    commands.add_parser("clear", help="Wipe the remote replica and local sync bookkeeping")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.log_level:
        overrides["LOG_LEVEL"] = args.log_level
    try:
        cfg = load_config(**overrides)
    except RuntimeError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    setup_json_logging(
        level=cfg.runtime.log_level,
        use_loguru=cfg.runtime.log_use_loguru,
        log_file=cfg.runtime.log_file,
    )

    try:
        return asyncio.run(run_command(cfg, args.command, getattr(args, "strategy", None)))
    except Exception as exc:
        logger.exception("cli_command_failed", extra={"command": args.command})
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
