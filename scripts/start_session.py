#!/usr/bin/env python3
"""Start a practice session from the command line and show the words picked."""

import asyncio
import logging
import random
from dataclasses import dataclass

import simple_parsing as sp
from rich.console import Console
from rich.table import Table

from lexis.config import Config
from lexis.db.database import Database
from lexis.db.models import (
    Difficulty,
    PerformanceUpdate,
    PracticeSessionType,
    SessionSettings,
    WordPerformance,
)
from lexis.errors import InsufficientContent, StoreUnavailable
from lexis.practice.sessions import PracticeSessionManager
from lexis.selection.cache import build_selection_cache
from lexis.selection.selector import WordSelector


@dataclass
class Args:
    """Start a practice session for a user."""

    user_id: int = 1
    session_type: str = "flashcard"  # flashcard, quiz, writing, speaking, listening
    difficulty: str = "medium"  # easy, medium, hard
    words_limit: int = 10
    simulate: bool = False  # Record a random performance for every word


console = Console()


async def main() -> None:
    args = sp.parse(Args)
    console.rule("[bold blue]Starting Practice Session")

    config = Config.from_env()
    logging.basicConfig(level=config.log_level)

    db = Database(config.database_path)
    db.init_schema()
    cache = build_selection_cache(config)
    selector = WordSelector.from_config(db, cache, config)
    manager = PracticeSessionManager.from_config(db, selector, config)

    settings = SessionSettings(difficulty=Difficulty(args.difficulty), words_limit=args.words_limit)

    try:
        session = await manager.start_session(args.user_id, PracticeSessionType(args.session_type), settings)
    except InsufficientContent as e:
        console.print(f"[yellow]{e.message}[/yellow]")
        console.print("Run scripts/init_db.py to add sample words.")
        return
    except StoreUnavailable as e:
        console.print(f"[red]Word store unavailable: {e}[/red]")
        return

    console.print(f"[green]Session {session.id} created with {len(session.words)} words[/green]")

    if args.simulate:
        for entry in session.words:
            session = await manager.record_word_performance(
                args.user_id,
                session.id,
                PerformanceUpdate(
                    word_id=entry.word_id,
                    performance=random.choice(list(WordPerformance)),
                    time_spent=random.randint(3, 30),
                    attempts=1,
                ),
            )

    table = Table(title=f"{session.session_type.value} session")
    table.add_column("Word")
    table.add_column("Translation")
    table.add_column("Status")
    table.add_column("Performance")
    for entry in session.words:
        word = db.get_word(args.user_id, entry.word_id)
        if word is None:
            continue
        table.add_row(word.word, word.translation, word.learning.status.value, entry.performance.value)
    console.print(table)

    results = session.results
    console.print(
        f"Accuracy: {results.accuracy:.0%} ({results.correct_words}/{results.total_words}), "
        f"average time per word: {results.average_time_per_word:.1f}s"
    )


if __name__ == "__main__":
    asyncio.run(main())
