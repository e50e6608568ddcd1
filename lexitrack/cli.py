"""
lexitrack: command-line front end for the review scheduler.

Commands:
- lexitrack init-db   - Create the database tables
- lexitrack add-item  - Register a flashcard or video
- lexitrack review    - Record a review outcome
- lexitrack due       - Show the due queue
- lexitrack next      - Pick the next video from a channel
- lexitrack stats     - Show learning statistics
- lexitrack history   - Show the review log of an item
- lexitrack pool      - List the low-priority pool
- lexitrack release   - Take a video out of the low-priority pool
- lexitrack delete    - Delete an item and its history
- lexitrack reset     - Clear all review state
"""
from __future__ import annotations

import random
from datetime import datetime
from typing import List, NoReturn, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from lexitrack.db.database import init_db
from lexitrack.db.store import ReviewStateStore
from lexitrack.log import configure_logging
from lexitrack.scheduling import (
    CandidateSelector,
    ComprehensionOutcome,
    Difficulty,
    DifficultyOutcome,
    ItemKind,
    NotFoundError,
    PolicyType,
    QualityOutcome,
    ReviewEventHandler,
    ReviewState,
    SchedulingError,
    StoreUnavailableError,
    count_due,
    due_items,
)
from lexitrack.scheduling.models import ensure_utc, utcnow


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="lexitrack",
    help="lexitrack: spaced review for flashcards and videos",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    "unwatched": "dim",
    "in_progress": "yellow",
    "understood": "cyan",
    "mastered": "green",
}


def _fail(error: SchedulingError) -> NoReturn:
    logger.debug(f"{type(error).__name__}: {error}")
    console.print(f"[red]{error}[/red]")
    raise typer.Exit(1)


def _init_db() -> None:
    """Create tables, exiting with a readable message if the database is unreachable."""
    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error(f"Review state store unavailable: {e}")
        _fail(StoreUnavailableError(f"Review state store unavailable: {str(e).splitlines()[0]}"))


def _store() -> ReviewStateStore:
    _init_db()
    return ReviewStateStore()


def _fmt_time(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _print_state(state: ReviewState) -> None:
    style = STATUS_STYLES.get(state.status.value, "")
    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Item", state.item_id)
    table.add_row("Policy", state.policy_type.value)
    table.add_row("Status", f"[{style}]{state.status.value}[/{style}]" if style else state.status.value)
    table.add_row("Next review", _fmt_time(state.next_review_at))
    table.add_row("Interval", f"{state.interval_days} days")
    if state.policy_type == PolicyType.CONTINUOUS_QUALITY:
        table.add_row("Ease factor", f"{state.ease_factor:.2f}")
    table.add_row("Repetitions", str(state.repetition_count))
    if state.in_low_priority_pool:
        table.add_row("Low-priority pool", "yes")

    console.print(table)


# =============================================================================
# Commands
# =============================================================================


@app.command("init-db")
def init_database() -> None:
    """Create the database tables."""
    _init_db()
    console.print("[green]Database initialized.[/green]")


@app.command("add-item")
def add_item(
    item_id: str = typer.Argument(..., help="Item identifier"),
    kind: ItemKind = typer.Option(..., "--kind", "-k", help="Item kind"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Display title"),
    channel: Optional[str] = typer.Option(None, "--channel", "-c", help="Channel id"),
) -> None:
    """Register a flashcard, a video-progress record or a video review."""
    try:
        item = _store().add_item(item_id, kind, title=title, channel_id=channel)
    except SchedulingError as e:
        _fail(e)
    console.print(f"[green]Added {item.kind.value} {item.id}[/green] ({item.policy_type.value})")


@app.command()
def review(
    item_id: str = typer.Argument(..., help="Reviewed item"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Flashcard recall 0-5"),
    understood: Optional[bool] = typer.Option(
        None,
        "--understood/--not-understood",
        help="Video comprehension",
    ),
    difficulty: Optional[Difficulty] = typer.Option(
        None,
        "--difficulty", "-d",
        help="Video review difficulty",
    ),
    seconds: int = typer.Option(0, "--seconds", "-s", help="Watch time of the review session"),
    at: Optional[datetime] = typer.Option(None, "--at", help="Review time in UTC (defaults to now)"),
) -> None:
    """Record the outcome of a review."""
    given = [v for v in (quality, understood, difficulty) if v is not None]
    if len(given) != 1:
        console.print("[red]Pass exactly one of --quality, --understood/--not-understood, --difficulty[/red]")
        raise typer.Exit(1)

    settings = get_settings()
    handler = ReviewEventHandler.from_settings(_store(), settings, rng=random.Random())
    now = ensure_utc(at) if at else utcnow()

    try:
        if quality is not None:
            outcome = QualityOutcome(quality)
        elif understood is not None:
            outcome = ComprehensionOutcome(understood)
        else:
            outcome = DifficultyOutcome(difficulty, seconds)
        state = handler.record_outcome(item_id, outcome, now)
    except SchedulingError as e:
        _fail(e)

    console.print(f"[green]Review recorded for {item_id}[/green]")
    _print_state(state)


@app.command()
def due(
    policy: Optional[PolicyType] = typer.Option(None, "--policy", "-p", help="Only this policy"),
    kind: Optional[ItemKind] = typer.Option(None, "--kind", "-k", help="Only this item kind"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Number of items to show"),
) -> None:
    """Show items due for review, most overdue first."""
    store = _store()
    now = utcnow()
    if limit is None:
        limit = get_settings().due_queue_default_limit

    try:
        states = due_items(store, now, policy_type=policy, kind=kind, limit=limit)
        total = count_due(store, now, policy_type=policy, kind=kind)
    except SchedulingError as e:
        _fail(e)

    if not states:
        console.print("\n[green]Nothing due for review![/green]")
        return

    console.print(f"\n[bold]Due for review: {total}[/bold]\n")
    table = Table()
    table.add_column("Item")
    table.add_column("Policy")
    table.add_column("Due since")
    table.add_column("Overdue", justify="right")

    for state in states:
        table.add_row(
            state.item_id,
            state.policy_type.value,
            _fmt_time(state.next_review_at),
            f"{state.days_overdue(now)}d",
        )

    console.print(table)


@app.command("next")
def next_video(
    item_ids: Optional[List[str]] = typer.Argument(None, help="Candidate item ids"),
    channel: Optional[str] = typer.Option(None, "--channel", "-c", help="Use every item of a channel"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Random seed for reproducible picks"),
) -> None:
    """Pick the next video to present from a pool."""
    store = _store()

    try:
        if item_ids:
            pool = []
            for item_id in item_ids:
                item = store.get_item(item_id)
                if item is None:
                    raise NotFoundError(item_id)
                pool.append(item)
        else:
            pool = store.list_items(channel_id=channel)

        selector = CandidateSelector(random.Random(seed))
        choice = selector.select_next_from_store(store, pool, utcnow())
    except SchedulingError as e:
        _fail(e)

    if choice is None:
        console.print("[yellow]Nothing left to present in this pool.[/yellow]")
        return

    console.print(f"Next: [bold cyan]{choice.id}[/bold cyan]" + (f"  {choice.title}" if choice.title else ""))


@app.command()
def stats() -> None:
    """Show learning statistics and progress."""
    try:
        data = _store().get_stats(utcnow(), get_settings().mastered_interval_days)
    except SchedulingError as e:
        _fail(e)

    console.print("\n[bold cyan]Learning Statistics[/bold cyan]")
    console.print("=" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    cards = data["flashcards"]
    table.add_row("Flashcards", str(cards["total"]))
    table.add_row("  due", str(cards["due"]))
    table.add_row("  learning", str(cards["learning"]))
    table.add_row("  mastered", str(cards["mastered"]))

    progress = data["video_progress"]
    table.add_row("Watched videos", str(progress["total"]))
    table.add_row("  retry due", str(progress["retry_due"]))
    table.add_row("  understood", str(progress["understood"]))
    table.add_row("  low-priority pool", str(progress["in_low_priority_pool"]))

    reviews = data["video_reviews"]
    table.add_row("Video reviews", str(reviews["total"]))
    table.add_row("  due", str(reviews["due"]))
    table.add_row("  watch time", f"{reviews['total_watch_seconds'] // 60} min")

    table.add_row("Total reviews", str(data["total_reviews"]))
    console.print(table)


@app.command()
def history(
    item_id: str = typer.Argument(..., help="Item to inspect"),
    limit: int = typer.Option(10, "--limit", "-l", help="Number of reviews to show"),
) -> None:
    """Show the review log of an item."""
    store = _store()
    try:
        if store.get_item(item_id) is None:
            raise NotFoundError(item_id)
        records = store.get_review_history(item_id, limit=limit)
    except SchedulingError as e:
        _fail(e)

    if not records:
        console.print(f"[dim]No reviews recorded for {item_id}.[/dim]")
        return

    table = Table(title=f"Reviews of {item_id}")
    table.add_column("When")
    table.add_column("Outcome")
    table.add_column("Next review")

    for record in records:
        outcome = ", ".join(f"{k}={v}" for k, v in record.outcome.items() if k != "type")
        table.add_row(_fmt_time(record.reviewed_at), outcome, _fmt_time(record.next_review_after))

    console.print(table)


@app.command()
def pool(
    limit: int = typer.Option(20, "--limit", "-l", help="Number of videos to show"),
) -> None:
    """List understood videos kept in the low-priority pool."""
    try:
        states = _store().list_low_priority_pool(limit=limit)
    except SchedulingError as e:
        _fail(e)

    if not states:
        console.print("[dim]The low-priority pool is empty.[/dim]")
        return

    table = Table()
    table.add_column("Item")
    table.add_column("Last reviewed")
    table.add_column("Reviews", justify="right")
    for state in states:
        table.add_row(state.item_id, _fmt_time(state.last_reviewed_at), str(state.total_review_count))
    console.print(table)


@app.command()
def release(item_id: str = typer.Argument(..., help="Video to release")) -> None:
    """Take a video out of the low-priority pool."""
    handler = ReviewEventHandler.from_settings(_store(), get_settings())
    try:
        handler.release_from_low_priority_pool(item_id)
    except SchedulingError as e:
        _fail(e)
    console.print(f"[green]Released {item_id} from the low-priority pool.[/green]")


@app.command()
def delete(
    item_id: str = typer.Argument(..., help="Item to delete"),
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Delete an item together with its review state and history."""
    if not confirm and not Confirm.ask(f"Delete {item_id} and its review history?", default=False):
        raise typer.Exit(0)

    try:
        deleted = _store().delete_item(item_id)
    except SchedulingError as e:
        _fail(e)

    if not deleted:
        console.print(f"[red]Reviewable item not found: {item_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Deleted {item_id}.[/green]")


@app.command()
def reset(
    confirm: bool = typer.Option(
        False,
        "--yes", "-y",
        help="Skip confirmation",
    ),
) -> None:
    """Clear all review state and history, keeping the items."""
    if not confirm and not Confirm.ask("Reset ALL review state? This cannot be undone!", default=False):
        raise typer.Exit(0)

    try:
        count = _store().reset()
    except SchedulingError as e:
        _fail(e)
    console.print(f"[green]Review state reset ({count} items).[/green]")


# =============================================================================
# Entry Point
# =============================================================================

def main() -> None:
    """CLI entry point."""
    settings = get_settings()
    # Terminal output stays quiet unless DEBUG is requested
    level = "DEBUG" if settings.log_level == "DEBUG" else "WARNING"
    configure_logging(level, settings.log_file)

    app()


if __name__ == "__main__":
    main()
