#!/usr/bin/env python3
"""
Trivia Monitor

Real-time terminal dashboard for the trivia server, its validation queue
and the question generator daemon.

Usage:
    trivia_monitor.py              Live dashboard (R refresh, W web, S start, Q quit)
    trivia_monitor.py --once       Poll once, print the dashboard and exit
    trivia_monitor.py --json       Poll once, print results as JSON and exit
    trivia_monitor.py --textual    Live dashboard in a Textual app

Environment:
    TRIVIA_MONITOR_SERVER, TRIVIA_MONITOR_API_KEY, TRIVIA_MONITOR_REFRESH,
    TRIVIA_MONITOR_DAEMON_STATS, TRIVIA_MONITOR_TRIVIA_PATH,
    TRIVIA_MONITOR_WEB_URL (a .env file in the working directory is read)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPT_DIR))

from monitor.config import ConfigError, MonitorConfig, env_defaults  # noqa: E402
from monitor.fetcher import DataFetcher  # noqa: E402
from monitor.frame import default_frame_builder  # noqa: E402
from monitor.providers import PollStats  # noqa: E402
from monitor.sources import build_sources  # noqa: E402

logger = logging.getLogger("trivia_monitor")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Real-time terminal dashboard for monitoring trivia ecosystem services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-s", "--server", help="Server URL (default: http://localhost:8080)")
    parser.add_argument("-k", "--api-key", help="API key for authenticated endpoints")
    parser.add_argument("-r", "--refresh", type=int, help="Refresh interval in seconds (default: 3)")
    parser.add_argument("--daemon-stats", help="Path to daemon stats file")
    parser.add_argument("--trivia-path", help="Base path to trivia projects (default: ~/trivial)")
    parser.add_argument("--web-url", help="Web frontend URL (default: http://localhost:3000)")
    parser.add_argument("--once", action="store_true", help="Print the dashboard once and exit")
    parser.add_argument("--json", action="store_true", help="Print poll results as JSON and exit")
    parser.add_argument("--no-color", action="store_true", help="Disable colors in --once output")
    parser.add_argument("--textual", action="store_true", help="Use the Textual interface")
    parser.add_argument("--log-file", type=Path, help="Write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    return parser


def configure_logging(args: argparse.Namespace, interactive: bool) -> None:
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    if args.log_file:
        logging.basicConfig(
            level=level,
            filename=str(args.log_file),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    elif interactive:
        # stdout and the terminal belong to the dashboard
        logging.basicConfig(level=level, handlers=[logging.NullHandler()])
    else:
        logging.basicConfig(level=level, stream=sys.stderr)


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Defaults, then environment, then flags."""
    values = env_defaults()
    overrides = {
        "server_url": args.server,
        "api_key": args.api_key,
        "refresh_interval": args.refresh,
        "daemon_stats_path": args.daemon_stats,
        "trivia_base_path": args.trivia_path,
        "web_frontend_url": args.web_url,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return MonitorConfig(**values)


async def poll_once(config: MonitorConfig, fetcher: DataFetcher) -> tuple:
    try:
        return await fetcher.fetch_all(PollStats())
    finally:
        await fetcher.aclose()


def print_once(config: MonitorConfig, use_color: bool) -> int:
    """Poll once, print the dashboard and exit."""
    fetcher = DataFetcher(build_sources(config))
    snapshot, stats = asyncio.run(poll_once(config, fetcher))
    frame = default_frame_builder(config, use_color=use_color).build(snapshot, stats)
    print("\n".join(frame))
    return 0 if snapshot.get(fetcher.primary).ok else 1


def print_json(config: MonitorConfig) -> int:
    """Poll once and print results as JSON."""
    fetcher = DataFetcher(build_sources(config))
    snapshot, stats = asyncio.run(poll_once(config, fetcher))
    output = snapshot.to_dict()
    output["stats"] = stats.to_dict()
    print(json.dumps(output, indent=2))
    return 0 if snapshot.get(fetcher.primary).ok else 1


def run_dashboard(config: MonitorConfig) -> int:
    from monitor.launcher import ComponentLauncher
    from monitor.loop import Dashboard

    dashboard = Dashboard(
        config,
        DataFetcher(build_sources(config)),
        launcher=ComponentLauncher(config.trivia_base_dir, config.daemon_stats_file),
    )
    try:
        asyncio.run(dashboard.run())
    except KeyboardInterrupt:
        # SIGINT before the loop installed its handler; run() already cleaned up
        pass
    return 0


def run_textual(config: MonitorConfig) -> int:
    from monitor.app import MonitorApp
    from monitor.launcher import ComponentLauncher

    launcher = ComponentLauncher(config.trivia_base_dir, config.daemon_stats_file)
    MonitorApp(config, DataFetcher(build_sources(config)), launcher=launcher).run()
    return 0


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    interactive = not (args.once or args.json)
    configure_logging(args, interactive)

    try:
        config = config_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    if args.json:
        return print_json(config)

    if args.once:
        return print_once(config, use_color=not args.no_color and sys.stdout.isatty())

    if not sys.stdout.isatty():
        print("Live dashboard requires a terminal; use --once or --json.", file=sys.stderr)
        return 2

    if args.textual:
        return run_textual(config)

    return run_dashboard(config)


if __name__ == "__main__":
    sys.exit(main())
