#!/usr/bin/env python3
"""Initialize the database with schema and sample words."""

import logging
from dataclasses import dataclass

import simple_parsing as sp
from rich.console import Console
from rich.panel import Panel

from lexis.config import Config
from lexis.db.database import Database
from lexis.db.seed import seed_words


@dataclass
class Args:
    """Create the Lexis schema and seed sample words for a user."""

    user_id: int = 1  # User to seed words for
    skip_seed: bool = False  # Only create the schema


console = Console()


def main() -> None:
    args = sp.parse(Args)
    console.rule("[bold blue]Initializing Lexis Database")

    config = Config.from_env()
    logging.basicConfig(level=config.log_level)
    config.ensure_database_dir()

    console.print(f"Database path: {config.database_path}")

    db = Database(config.database_path)
    db.init_schema()
    console.print("[green]✓ Schema created[/green]")

    if args.skip_seed:
        console.print("[yellow]Skipping sample words[/yellow]")
    else:
        count = seed_words(db, args.user_id)
        console.print(f"[green]✓ Added {count} sample words for user {args.user_id}[/green]")

    console.print(Panel("[bold green]Database initialized successfully!", title="Done"))


if __name__ == "__main__":
    main()
