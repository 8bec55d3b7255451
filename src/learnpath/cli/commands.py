"""CLI commands for the learnpath engine.

Commands:
- init-db: create the SQLite schema
- import-catalog: load subjects, lessons, questions and enrollments from YAML
- status: per-subject progress of a user
- eligibility: exam eligibility of a user for a subject or lesson
- reset-attempts: delete a user's attempts in a subject (admin)
- delete-attempt: delete one attempt (admin)
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from learnpath.config.engine_config import ConfigError
from learnpath.core.catalog_importer import CatalogImportError, import_catalog
from learnpath.core.models import ExamScope
from learnpath.core.services import LearningEngine, build_engine

app = typer.Typer(
    name="learn",
    help="Lesson progress, sequencing and certification exam engine.",
    no_args_is_help=True,
)

console = Console()


def _engine_or_exit() -> LearningEngine:
    """Build the engine, or exit with a readable configuration error."""
    try:
        return build_engine()
    except ConfigError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command(name="init-db")
def init_db_command() -> None:
    """Create the database schema (idempotent)."""
    engine = _engine_or_exit()
    console.print(f"[green]✓ Database ready:[/green] {engine.config.db_path}")


@app.command(name="import-catalog")
def import_catalog_command(
    catalog_file: str = typer.Argument(..., help="Path to catalog YAML file"),
) -> None:
    """Import subjects, lessons, questions and enrollments."""
    engine = _engine_or_exit()
    path = Path(catalog_file).expanduser().resolve()

    try:
        result = import_catalog(path, engine.catalog, engine.enrollments)
    except CatalogImportError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Catalog imported from {path.name}[/green]")
    console.print(f"  [dim]subjects:[/dim]    {result.subjects}")
    console.print(f"  [dim]lessons:[/dim]     {result.lessons}")
    console.print(f"  [dim]questions:[/dim]   {result.questions}")
    console.print(f"  [dim]enrollments:[/dim] {result.enrollments}")


@app.command()
def status(
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """Show per-subject progress for a user."""
    engine = _engine_or_exit()

    enrollment = engine.enrollments.get_enrollment(user_id)
    if enrollment is None:
        console.print(f"[red]✗ User {user_id} is not enrolled[/red]")
        raise typer.Exit(code=1)

    summaries = engine.summaries.summarize_subjects(user_id, enrollment.active_lesson_ids)
    if not summaries:
        console.print("[yellow]No active lessons assigned[/yellow]")
        return

    table = Table(title=f"Progress - {user_id}")
    table.add_column("Subject")
    table.add_column("Progress", justify="right")
    table.add_column("Completed", justify="right")
    table.add_column("Current lesson")
    for summary in summaries:
        table.add_row(
            summary.subject_name,
            f"{summary.progress_percent:.1f}%",
            f"{summary.completed_lessons}/{summary.total_lessons}",
            summary.current_lesson_id or "-",
        )
    console.print(table)


@app.command()
def eligibility(
    user_id: str = typer.Argument(..., help="User ID"),
    scope_id: str = typer.Argument(..., help="Subject ID (or lesson ID with --lesson)"),
    lesson: bool = typer.Option(False, "--lesson", "-l", help="Scope is a lesson"),
) -> None:
    """Show whether a user may start an exam."""
    engine = _engine_or_exit()
    scope = ExamScope.lesson(scope_id) if lesson else ExamScope.subject(scope_id)

    verdict = engine.evaluator.evaluate(user_id, scope)

    if verdict.eligible:
        console.print(f"[green]✓ {verdict.reason}[/green]")
    else:
        console.print(f"[yellow]✗ {verdict.reason}[/yellow]")
    console.print(f"  [dim]cycle:[/dim]     {verdict.cycle}")
    console.print(f"  [dim]remaining:[/dim] {verdict.remaining_attempts}")

    for entry in verdict.lesson_progress:
        console.print(f"  • {entry.lesson_title}: {entry.progress_percent:.1f}%")


@app.command(name="reset-attempts")
def reset_attempts(
    user_id: str = typer.Argument(..., help="User ID"),
    subject_id: str = typer.Argument(..., help="Subject ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every exam attempt of a user in a subject."""
    engine = _engine_or_exit()

    if not yes:
        confirm = typer.confirm(f"Delete all attempts of {user_id} in {subject_id}?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(code=0)

    deleted = engine.exams.reset_attempts(user_id, subject_id)
    if deleted == 0:
        console.print("[yellow]No attempts to reset[/yellow]")
        return
    console.print(f"[green]✓ {deleted} attempt(s) deleted[/green]")


@app.command(name="delete-attempt")
def delete_attempt(
    attempt_id: str = typer.Argument(..., help="Attempt ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete one exam attempt."""
    engine = _engine_or_exit()

    if not yes:
        confirm = typer.confirm(f"Delete attempt {attempt_id}?")
        if not confirm:
            console.print("[yellow]Cancelled[/yellow]")
            raise typer.Exit(code=0)

    attempt = engine.exams.delete_attempt(attempt_id)
    if attempt is None:
        console.print(f"[red]✗ Attempt not found: {attempt_id}[/red]")
        raise typer.Exit(code=1)

    score = f"{attempt.score:.1f}" if attempt.score is not None else "-"
    console.print(
        f"[green]✓ Deleted attempt {attempt.attempt_number} of {attempt.user_id} "
        f"({attempt.scope}, score {score})[/green]"
    )
