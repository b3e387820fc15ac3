"""
Typer CLI for the progression engine.

Commands:
    progression db init                          - Create tables
    progression db check                         - Verify cached XP totals
    progression db reset                         - Drop and recreate tables
    progression catalog load [PATH]              - Load a catalog JSON file
    progression catalog show                     - Print the catalog tree
    progression progress complete USER PAGE      - Complete a page
    progression progress start USER PAGE         - Start a page
    progression progress module USER MODULE      - Module progress
    progression progress topic USER TOPIC        - Topic overview with unlocks
    progression progress xp USER                 - XP total
    progression quiz answer USER PAGE QUIZ OPT   - Submit a quiz answer
    progression quiz attempts USER QUIZ          - Attempt history
    progression reflection save USER PAGE TEXT   - Save a reflection
    progression reflection show USER PAGE        - Show a reflection
    progression serve                            - Run the HTTP API

Usage:
    progression --help
    progression catalog load data/catalog.json
    progression progress complete alice net-1-p1
"""

from __future__ import annotations

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from config import get_settings
from progression import __version__
from progression.core.errors import ProgressionError
from progression.core.logging import configure_logging

app = typer.Typer(
    help="progression CLI: learner unlocks, completions, quizzes and reflections",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(level="DEBUG" if verbose else None)


def _fail(exc: Exception) -> None:
    rprint(f"[red]✗[/red] {exc}")
    raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management (init, check, reset)")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    from progression.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@db_app.command("check")
def db_check() -> None:
    """Compare cached XP totals with the completed progress rows."""
    from progression.db.database import validate_xp_totals

    report = validate_xp_totals()
    if report["valid"]:
        rprint("[green]✓[/green] XP totals consistent")
        return

    table = Table(title="XP total drift")
    table.add_column("User", style="cyan")
    table.add_column("Cached", justify="right")
    table.add_column("Actual", justify="right", style="yellow")
    for row in report["mismatches"]:
        table.add_row(row["user_id"], str(row["cached"]), str(row["actual"]))
    console.print(table)
    raise typer.Exit(code=1)


@db_app.command("reset")
def db_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Drop every table and recreate the schema."""
    from progression.db.database import drop_db, init_db

    if not yes and not typer.confirm("This deletes all progress. Continue?"):
        raise typer.Abort()
    drop_db()
    init_db()
    rprint("[green]✓[/green] Database reset")


# ========================================
# CATALOG COMMANDS
# ========================================

catalog_app = typer.Typer(help="Content catalog (load, show)")
app.add_typer(catalog_app, name="catalog")


@catalog_app.command("load")
def catalog_load(
    path: str = typer.Argument(None, help="Catalog JSON file (defaults to DEFAULT_CATALOG_PATH)"),
) -> None:
    """Load a catalog JSON file, merging by id."""
    from progression.catalog import CatalogLoader
    from progression.db.database import init_db, session_scope

    path = path or get_settings().default_catalog_path
    if not path:
        _fail(ValueError("No catalog path given and DEFAULT_CATALOG_PATH not set"))

    init_db()
    try:
        with session_scope(write=True) as session:
            counts = CatalogLoader(session).load_file(path)
    except (FileNotFoundError, ValueError) as exc:
        _fail(exc)

    rprint(
        f"[green]✓[/green] Loaded {counts['topics']} topics, {counts['modules']} modules, "
        f"{counts['pages']} pages, {counts['items']} items"
    )


@catalog_app.command("show")
def catalog_show() -> None:
    """Print the catalog as a tree."""
    from progression.catalog import CatalogRepository
    from progression.db.database import session_scope
    from progression.db.models import UNLOCK_POLICIES

    with session_scope() as session:
        catalog = CatalogRepository(session)
        tree = Tree("[bold]Catalog[/bold]")
        for topic in catalog.list_topics():
            topic_branch = tree.add(
                f"[cyan]{topic.slug}[/cyan] ({topic.id}) [dim]{topic.unlock_policy}[/dim]"
            )
            for module in catalog.modules_for_topic(topic.id):
                policy = module.unlock_policy
                if module.unlock_value is not None:
                    policy += f"={module.unlock_value}"
                if module.prerequisite_module_id:
                    policy += f" -> {module.prerequisite_module_id}"
                if module.unlock_policy not in UNLOCK_POLICIES:
                    policy = f"[red]{policy} (unrecognized, locked)[/red]"
                module_branch = topic_branch.add(f"{module.id} [dim]{policy}[/dim]")
                for page in catalog.pages_for_module(module.id):
                    module_branch.add(f"{page.id} [green]{page.xp_value} XP[/green]")
    console.print(tree)


# ========================================
# PROGRESS COMMANDS
# ========================================

progress_app = typer.Typer(help="Learner progress (complete, start, module, topic, xp)")
app.add_typer(progress_app, name="progress")


@progress_app.command("complete")
def progress_complete(
    user_id: str = typer.Argument(..., help="Learner id"),
    page_id: str = typer.Argument(..., help="Page id"),
) -> None:
    """Complete a page and show the XP outcome."""
    from progression.services import CompletionCoordinator

    try:
        result = CompletionCoordinator().complete_page(user_id, page_id)
    except ProgressionError as exc:
        _fail(exc)

    status = "[green]+XP awarded[/green]" if result.awarded else "[yellow]already completed[/yellow]"
    body = (
        f"{status}\n"
        f"XP earned: [bold]{result.xp_earned}[/bold]\n"
        f"Total XP: [bold]{result.new_total_xp}[/bold]"
    )
    if result.unlocked_module_ids:
        body += f"\nWithin reach: {', '.join(result.unlocked_module_ids)}"
    console.print(Panel(body, title=f"{user_id} · {page_id}"))


@progress_app.command("start")
def progress_start(
    user_id: str = typer.Argument(..., help="Learner id"),
    page_id: str = typer.Argument(..., help="Page id"),
) -> None:
    """Mark a page in progress."""
    from progression.services import CompletionCoordinator

    try:
        progress = CompletionCoordinator().start_page(user_id, page_id)
    except ProgressionError as exc:
        _fail(exc)
    rprint(f"{page_id}: [cyan]{progress.status}[/cyan]")


@progress_app.command("module")
def progress_module(
    user_id: str = typer.Argument(..., help="Learner id"),
    module_id: str = typer.Argument(..., help="Module id"),
) -> None:
    """Show a learner's progress through a module."""
    from progression.services import DashboardService

    dashboard = DashboardService()
    progress = dashboard.get_module_progress(user_id, module_id)
    unlocked = dashboard.is_module_unlocked(user_id, module_id)

    table = Table(title=f"{module_id} · {user_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Unlocked", "yes" if unlocked else "no")
    table.add_row("Pages", f"{progress.completed_pages}/{progress.total_pages}")
    table.add_row("Percent", "-" if progress.percent is None else f"{progress.percent}%")
    table.add_row("XP", f"{progress.xp_earned}/{progress.xp_available}")
    table.add_row("Complete", "yes" if progress.is_complete else "no")
    console.print(table)


@progress_app.command("topic")
def progress_topic(
    user_id: str = typer.Argument(..., help="Learner id"),
    topic_id: str = typer.Argument(..., help="Topic id"),
) -> None:
    """Show every module of a topic with lock state and progress."""
    from progression.services import DashboardService

    dashboard = DashboardService()
    try:
        states = dashboard.get_topic_unlock_states(user_id, topic_id)
    except ProgressionError as exc:
        _fail(exc)

    topic_open = dashboard.is_topic_unlocked(user_id, topic_id)
    table = Table(title=f"{topic_id} · {user_id} ({'open' if topic_open else 'locked'})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Module", style="cyan")
    table.add_column("Policy")
    table.add_column("State")
    table.add_column("Pages", justify="right")
    table.add_column("XP", justify="right")
    for state in states:
        table.add_row(
            str(state.sort_order),
            state.title or state.module_id,
            state.unlock_policy,
            "[green]open[/green]" if state.is_unlocked else "[red]locked[/red]",
            f"{state.progress.completed_pages}/{state.progress.total_pages}",
            f"{state.progress.xp_earned}/{state.progress.xp_available}",
        )
    console.print(table)


@progress_app.command("xp")
def progress_xp(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show a learner's XP total."""
    from progression.services import DashboardService

    rprint(f"{user_id}: [bold]{DashboardService().get_user_total_xp(user_id)}[/bold] XP")


# ========================================
# QUIZ COMMANDS
# ========================================

quiz_app = typer.Typer(help="Quiz answers and attempt history")
app.add_typer(quiz_app, name="quiz")


@quiz_app.command("answer")
def quiz_answer(
    user_id: str = typer.Argument(..., help="Learner id"),
    page_id: str = typer.Argument(..., help="Page id"),
    quiz_id: str = typer.Argument(..., help="Quiz content item id"),
    option_id: str = typer.Argument(..., help="Selected option id"),
) -> None:
    """Submit a quiz answer."""
    from progression.services import QuizAttemptSequencer

    try:
        result = QuizAttemptSequencer().submit_answer(user_id, page_id, quiz_id, option_id)
    except ProgressionError as exc:
        _fail(exc)

    verdict = "[green]Correct[/green]" if result.is_correct else "[red]Incorrect[/red]"
    body = f"{verdict} (attempt {result.attempt_number})\nAnswer: {result.correct_option_id}"
    if result.explanation:
        body += f"\n[dim]{result.explanation}[/dim]"
    console.print(Panel(body, title=quiz_id))


@quiz_app.command("attempts")
def quiz_attempts(
    user_id: str = typer.Argument(..., help="Learner id"),
    quiz_id: str = typer.Argument(..., help="Quiz content item id"),
) -> None:
    """List a learner's attempts on a quiz."""
    from progression.services import QuizAttemptSequencer

    table = Table(title=f"{quiz_id} · {user_id}")
    table.add_column("#", justify="right")
    table.add_column("Selected", style="cyan")
    table.add_column("Result")
    table.add_column("When", style="dim")
    for attempt in QuizAttemptSequencer().list_attempts(user_id, quiz_id):
        table.add_row(
            str(attempt.attempt_number),
            attempt.selected_option_id,
            "[green]✓[/green]" if attempt.is_correct else "[red]✗[/red]",
            str(attempt.created_at),
        )
    console.print(table)


# ========================================
# REFLECTION COMMANDS
# ========================================

reflection_app = typer.Typer(help="Page reflections")
app.add_typer(reflection_app, name="reflection")


@reflection_app.command("save")
def reflection_save(
    user_id: str = typer.Argument(..., help="Learner id"),
    page_id: str = typer.Argument(..., help="Page id"),
    text: str = typer.Argument(..., help="Reflection text"),
) -> None:
    """Save (or overwrite) a reflection."""
    from progression.services import ReflectionStore

    try:
        reflection = ReflectionStore().save_reflection(user_id, page_id, text)
    except ProgressionError as exc:
        _fail(exc)
    rprint(f"[green]✓[/green] Saved ({reflection.word_count} words)")


@reflection_app.command("show")
def reflection_show(
    user_id: str = typer.Argument(..., help="Learner id"),
    page_id: str = typer.Argument(..., help="Page id"),
) -> None:
    """Show a saved reflection."""
    from progression.services import ReflectionStore

    try:
        reflection = ReflectionStore().get_reflection(user_id, page_id)
    except ProgressionError as exc:
        _fail(exc)
    console.print(Panel(reflection.text, title=f"{page_id} · {reflection.word_count} words"))


# ========================================
# SERVER & INFO
# ========================================


@app.command("serve")
def serve(
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    logger.info(f"Serving on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "progression.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("info")
def show_info() -> None:
    """Show configuration."""
    settings = get_settings()

    table = Table(title="progression Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url.split("@")[-1])
    table.add_row("Backend", "SQLite" if settings.is_sqlite else "PostgreSQL")
    table.add_row("Transaction retries", str(settings.transaction_max_retries))
    table.add_row("User id header", settings.user_id_header)
    table.add_row("Log Level", settings.log_level)
    table.add_row("API", f"{settings.api_host}:{settings.api_port}")

    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint(f"[bold]progression[/bold] v{__version__}")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
