"""Cowork CLI: main application entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_DIR = Path.home() / ".cowork" / "logs"


def _configure_logging(level_name: str) -> Path:
    """Send logs to a rotating file; the TUI owns the terminal."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = LOG_DIR / "cowork.log"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    file_handler = RotatingFileHandler(
        log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)
    return log_file


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cowork",
        description="Cowork - terminal UI for driving agent sessions",
    )
    parser.add_argument(
        "--backend", metavar="URL",
        help="Backend WebSocket URL (default: COWORK_BACKEND_URL or ws://127.0.0.1:8765/ws)",
    )
    parser.add_argument(
        "--cwd", metavar="DIR",
        help="Pre-fill the working directory for new sessions",
    )
    parser.add_argument(
        "--config", metavar="PATH",
        help="YAML config file (default: ~/.cowork/config.yaml if present)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)

    import yaml

    from cowork.client.config import load_config

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: config file not found: {args.config}")
        sys.exit(2)
    except (ValueError, yaml.YAMLError) as exc:
        print(f"Error: invalid config: {exc}")
        sys.exit(2)

    if args.backend:
        config.backend_url = args.backend
    if args.cwd:
        config.default_cwd = str(Path(args.cwd).expanduser().resolve())
    elif not config.default_cwd:
        config.default_cwd = os.getcwd()

    log_file = _configure_logging(config.log_level)
    logging.getLogger(__name__).info(
        "Starting cowork backend=%s cwd=%s log=%s",
        config.backend_url, config.default_cwd, log_file,
    )

    from cowork.client.runtime import ClientRuntime
    from cowork.tui.app import CoworkApp

    app = CoworkApp(ClientRuntime(config))
    app.run()


if __name__ == "__main__":
    main()
