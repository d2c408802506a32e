#!/usr/bin/env python3
"""Run a headless benchmark console that logs live telemetry."""

from __future__ import annotations

import argparse
import asyncio
import sys

from dashboard.config import Settings, configure_logging
from dashboard.core.sinks import LoggingSink
from dashboard.core.sync_controller import SyncController


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Follow a benchmark server's telemetry without the web UI."
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Benchmark server URL (defaults to DASHBOARD_BASE_URL).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (defaults to DASHBOARD_LOG_LEVEL).",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted).",
    )
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    cfg = Settings.from_env()
    overrides: dict[str, object] = {}
    if args.base_url:
        overrides["BASE_URL"] = str(args.base_url)
    if args.log_level:
        overrides["LOG_LEVEL"] = str(args.log_level).upper()
    return cfg.model_copy(update=overrides)


async def _run_console(cfg: Settings, duration: float | None) -> int:
    console = SyncController(cfg, sinks=(LoggingSink(),))
    async with console:
        print(f"[console] following {cfg.BASE_URL} (push: {cfg.ws_url})")
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)

    status = console.status.value if console.status else "UNKNOWN"
    print(f"[console] stopped status={status}")
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    cfg = _settings_from_args(args)
    configure_logging(cfg)
    try:
        return asyncio.run(_run_console(cfg, args.duration))
    except KeyboardInterrupt:
        print("[console] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
