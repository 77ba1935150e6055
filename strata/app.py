"""Strata CLI — main application entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path.home() / ".strata" / "logs"


def _configure_logging(level_name: str, to_stderr: bool) -> Path | None:
    """Route logs to a rotating file (and stderr in non-TUI modes)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    log_file: Path | None = LOG_DIR / "strata.log"
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    except OSError:
        log_file = None
    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    return log_file


def _load_config(args: argparse.Namespace):
    from strata.engine.config import StrataConfig, discover_config, load_yaml_config

    config = StrataConfig.from_env()
    config_path = args.config
    if not config_path:
        config_path = discover_config(Path(args.cwd or Path.cwd()))
    if config_path:
        config = load_yaml_config(config_path, base=config)
    if args.cwd:
        config.default_cwd = str(Path(args.cwd).resolve())
    return config


def _print_summary(result) -> None:
    from rich.console import Console
    from rich.table import Table

    table = Table(title="Replayed sessions")
    table.add_column("Alias")
    table.add_column("Kind")
    table.add_column("State")
    table.add_column("Activities", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Pending permissions", justify="right")
    for alias, session in result.sessions.items():
        failed = sum(1 for a in session.activities if a.failure is not None)
        table.add_row(
            alias,
            session.kind.value,
            session.response_state.value,
            str(len(session.activities)),
            str(failed),
            str(len(session.permission_queue)),
        )
    console = Console()
    console.print(table)
    console.print(f"[dim]{result.applied} applied, {result.skipped} skipped[/dim]")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="strata",
        description="Supervise concurrent assistant and terminal sessions",
    )
    parser.add_argument("--config", default=None, help="Path to strata.yaml")
    parser.add_argument(
        "--cwd", default=None, help="Default working directory for new sessions",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging",
    )
    parser.add_argument(
        "--replay",
        metavar="FILE",
        default=None,
        help="Replay a newline-delimited JSON transcript and print a summary",
    )
    args = parser.parse_args(argv)

    level = "DEBUG" if args.verbose else os.getenv("STRATA_LOG_LEVEL", "INFO")
    log_file = _configure_logging(level, to_stderr=bool(args.replay))
    logger = logging.getLogger(__name__)

    import yaml

    try:
        config = _load_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error("Could not load configuration: %s", exc)
        print(f"strata: {exc}", file=sys.stderr)
        return 2
    logger.info("Starting Strata cwd=%s log=%s", config.default_cwd, log_file)

    from strata.engine.coordinator import Coordinator

    if args.replay:
        from strata.adapters.transport import RecordingTransport
        from strata.shared.services.replay import replay_lines

        coordinator = Coordinator(transport=RecordingTransport(), config=config)
        path = Path(args.replay)
        try:
            with open(path, encoding="utf-8") as f:
                result = replay_lines(coordinator, f)
        except OSError as exc:
            print(f"strata: cannot read {path}: {exc}", file=sys.stderr)
            return 2
        _print_summary(result)
        return 0

    # TUI mode
    from strata.tui.app import StrataApp

    app = StrataApp(coordinator=Coordinator(config=config))
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
