# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Mirrowel

"""
pi-usage: run the pi extension commands from a plain terminal.

    pi-usage usage               provider quota panel
    pi-usage cost [DAYS]         session cost report
    pi-usage claude-select       pick the active Claude account
    pi-usage codex-select        pick the active Codex account
    pi-usage codex-widget        print the Codex status line
    pi-usage providers           list the bundled model providers
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pi_extensions import register_all

from .host import ConsoleContext, ConsoleUI, HostAPI

COMMANDS = ["usage", "cost", "claude-select", "codex-select"]

console = Console()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pi-usage", description="Provider usage, accounts and costs for pi."
    )
    parser.add_argument(
        "command",
        choices=COMMANDS + ["codex-widget", "providers"],
        help="Command to run",
    )
    parser.add_argument("args", nargs="*", help="Arguments passed to the command")
    parser.add_argument(
        "--agent-dir",
        type=Path,
        default=None,
        help="Agent directory holding auth.json and sessions (default: ~/.pi/agent)",
    )
    parser.add_argument(
        "--provider",
        default=None,
        help="Provider of the active model (used by the Codex widget)",
    )
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def show_providers(api: HostAPI) -> None:
    table = Table(title="Model providers")
    table.add_column("Provider", style="cyan")
    table.add_column("API")
    table.add_column("Base URL")
    table.add_column("Models", justify="right")
    table.add_column("Login")
    for name, config in sorted(api.providers.items()):
        table.add_row(
            name,
            config.api,
            config.base_url,
            str(len(config.models)),
            config.oauth.name if config.oauth else "-",
        )
    console.print(table)


async def run(args: argparse.Namespace) -> int:
    api = HostAPI()
    register_all(api)

    if args.command == "providers":
        show_providers(api)
        return 0

    ctx = ConsoleContext(ConsoleUI(console), provider=args.provider)
    if args.command == "codex-widget":
        await api.emit("session_start", {}, ctx)
        if not ctx.ui.widgets:
            console.print("[dim]No Codex widget for the active model.[/dim]")
        return 0

    await api.run_command(args.command, " ".join(args.args), ctx)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    if args.agent_dir is not None:
        os.environ["PI_CODING_AGENT_DIR"] = str(args.agent_dir)
    setup_logging(args.debug)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
