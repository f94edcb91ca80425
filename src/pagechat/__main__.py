"""CLI entrypoint for PageChat."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .app import PageChatApp
from .config import ensure_config_dir, load_config


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagechat",
        description="PageChat - Browse the web in tabs and ask questions about the open page",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an alternative config.toml",
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Open this address in the first tab",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("pagechat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"pagechat {version}")
        return

    ensure_config_dir()
    app = PageChatApp(load_config(args.config), start_url=args.url)
    app.run()


if __name__ == "__main__":
    main()
