"""CLI entrypoint for intent.

Every command works on the project in the current directory (or ``--project``)
and keeps its state under that project's ``.intent/`` directory. The usual
flow is ``add`` -> ``plan`` -> ``run`` -> ``done`` for whatever is left
manual.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from git.exc import GitCommandError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import __version__, vcs
from .advisor import create_advisor
from .classifier import classify
from .config import Config
from .errors import ConfigError, IntentError
from .models import Intent, IntentKind, TaskStatus
from .orchestrator import BatchReport, Orchestrator, StatusKind
from .profile import FileSystemProfiler
from .repair_log import RepairLog

# Initialize Typer app
app = typer.Typer(
    name="intent",
    help="Turn a one-line intent into a planned, executed set of tasks.",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    StatusKind.SUCCEEDED: "green",
    StatusKind.FIXED: "cyan",
    StatusKind.FAILED_NO_FIX: "red",
    StatusKind.FAILED_AFTER_FIX: "red",
    StatusKind.SKIPPED: "dim",
}

# Exit code for a run that leaves failed tasks behind
EXIT_TASKS_FAILED = 2


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """Configure logging with Rich handler.

    Args:
        verbose: If True, set DEBUG level; otherwise use ``level_name``.
        level_name: Configured log level name.
    """
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"intent version {__version__}")
        raise typer.Exit()


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(1)


def _load_config(ctx: typer.Context) -> Config:
    """Build and validate the config for the selected project."""
    options = ctx.obj or {}
    try:
        config = Config.from_env(options.get("project"))
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    setup_logging(options.get("verbose", False), config.log_level)

    errors = config.validate()
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/red] {error}")
        raise typer.Exit(1)
    return config


def _orchestrator(config: Config) -> Orchestrator:
    try:
        return Orchestrator.from_config(config)
    except IntentError as e:
        _fail(str(e))


def _require_active(orchestrator: Orchestrator) -> Intent:
    intent = orchestrator.active_intent()
    if intent is None:
        _fail("No active intent. Start one with: intent add \"<what you want>\"")
    return intent


def _print_roadmap(intent: Intent) -> None:
    table = Table(title=f"Roadmap for {intent.id}", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Task")
    table.add_column("Target", style="dim")
    table.add_column("Status")

    for task in intent.tasks:
        status = "[green]DONE[/green]" if task.status == TaskStatus.DONE else "[yellow]TODO[/yellow]"
        target = task.command or task.target_file or ""
        table.add_row(task.id, task.kind.value, escape(task.description), escape(target), status)

    console.print(table)


def _print_report(report: BatchReport) -> None:
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("ID", style="cyan")
    table.add_column("Task", width=40)
    table.add_column("Result")
    table.add_column("Detail", style="dim")

    for result in report.results:
        style = STATUS_STYLES[result.status]
        table.add_row(
            result.task_id,
            escape(result.description[:40]),
            f"[{style}]{result.status.value}[/{style}]",
            escape(result.message),
        )

    console.print(table)
    console.print(
        f"\n[bold]Succeeded:[/bold] {len(report.succeeded)}  "
        f"[bold]Fixed:[/bold] {len(report.fixed)}  "
        f"[bold]Failed:[/bold] {len(report.failed)}  "
        f"[bold]Skipped:[/bold] {len(report.skipped)}"
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    project: Optional[Path] = typer.Option(
        None,
        "--project",
        "-C",
        help="Project directory (default: current directory).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output.",
    ),
) -> None:
    """Intent-driven task planner and runner."""
    ctx.obj = {"project": project, "verbose": verbose}


@app.command()
def add(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="What you want done, e.g. 'add password reset'."),
    kind: Optional[str] = typer.Option(
        None,
        "--kind",
        "-k",
        help="Kind to use if the text cannot be classified (FEATURE, BUGFIX, REFACTOR).",
    ),
    advisor: bool = typer.Option(
        False,
        "--advisor/--no-advisor",
        help="Ask the advisor for extra AI- tasks.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Assume FEATURE without asking when the text cannot be classified.",
    ),
) -> None:
    """Register a new intent and plan its tasks."""
    if not text.strip():
        _fail("Intent text must not be empty.")

    config = _load_config(ctx)
    orchestrator = _orchestrator(config)
    config_root = orchestrator.store.project_root

    assume_kind: Optional[IntentKind] = None
    if kind:
        try:
            assume_kind = IntentKind(kind.upper())
        except ValueError:
            _fail(f"Invalid kind '{kind}'. Use FEATURE, BUGFIX or REFACTOR.")
    elif classify(text).is_ambiguous:
        console.print(f"[yellow]Could not classify:[/yellow] {escape(text)}")
        if not (yes or typer.confirm("Treat it as a FEATURE?", default=True)):
            console.print("Cancelled.")
            raise typer.Exit(1)
        assume_kind = IntentKind.FEATURE

    advisor_backend = None
    if advisor:
        advisor_backend = create_advisor(config.advisor, cwd=config_root)

    try:
        intent = orchestrator.register(
            text,
            FileSystemProfiler(config_root),
            assume_kind=assume_kind,
            advisor=advisor_backend,
            allow_unknown=False,
        )
    except IntentError as e:
        _fail(str(e))

    console.print(f"\n[green]Intent registered:[/green] {intent.id} ({intent.kind.value})")
    if intent.impact and intent.impact.files:
        console.print(f"[bold]Impact:[/bold] {', '.join(intent.impact.files)}")
        console.print(f"[bold]Modules:[/bold] {', '.join(intent.impact.modules)}")
    console.print()
    _print_roadmap(intent)
    console.print("\nNext: [cyan]intent run[/cyan]")


@app.command()
def analyze(ctx: typer.Context) -> None:
    """Scan the project and record what was found."""
    config = _load_config(ctx)
    orchestrator = _orchestrator(config)

    profiler = FileSystemProfiler(config.project_root)
    with console.status("Scanning project..."):
        profile = profiler.detect()
        files = profiler.list_files()

    try:
        orchestrator.store.record_scan(files)
    except IntentError as e:
        _fail(str(e))

    console.print(Panel.fit("[bold cyan]PROJECT SCAN[/bold cyan]", border_style="cyan"))
    console.print(f"[bold]Framework:[/bold] {profile.framework_label}")
    console.print(f"[bold]Language:[/bold] {profile.primary_language}")
    console.print(f"[bold]Package manager:[/bold] {profile.package_manager_hint}")
    console.print(f"[bold]Files:[/bold] {len(files)}")
    flags = [name for name, present in sorted(profile.structure_flags.items()) if present]
    if flags:
        console.print(f"[bold]Structure:[/bold] {', '.join(flags)}")


@app.command()
def plan(ctx: typer.Context) -> None:
    """Show the roadmap of the active intent."""
    intent = _require_active(_orchestrator(_load_config(ctx)))

    console.print(f"[bold]Intent:[/bold] {escape(intent.original_text)}")
    console.print(f"[bold]Kind:[/bold] {intent.kind.value}   [bold]Status:[/bold] {intent.status.value}")
    if intent.impact and intent.impact.files:
        console.print(f"[bold]Impact:[/bold] {', '.join(intent.impact.files)}")
    console.print(f"[bold]Branch:[/bold] {vcs.branch_name(intent)}")
    console.print()
    _print_roadmap(intent)


@app.command()
def run(
    ctx: typer.Context,
    task_ids: Optional[List[str]] = typer.Argument(None, help="Task ids to run (default: all pending)."),
    run_all: bool = typer.Option(False, "--all", "-a", help="Run every pending task."),
) -> None:
    """Execute tasks of the active intent, repairing failures where possible.

    Missing dependencies and a missing git repository are only recognised from
    a command's captured output. Enable it with INTENT_CAPTURE_OUTPUT=true or
    capture_output in .intent/config.yaml.
    """
    config = _load_config(ctx)
    orchestrator = _orchestrator(config)
    intent = _require_active(orchestrator)

    selected = None if run_all or not task_ids else task_ids
    try:
        report = orchestrator.execute(intent.id, selected)
    except IntentError as e:
        _fail(str(e))

    console.print()
    _print_report(report)

    if report.completed:
        console.print(f"\n[green]Intent {intent.id} completed.[/green]")
    elif not report.has_failures:
        console.print("\nRemaining tasks: [cyan]intent plan[/cyan]")

    if report.has_failures:
        if not config.capture_output:
            console.print(
                "[dim]Output capture is off, so only missing framework scripts can be repaired. "
                "Set INTENT_CAPTURE_OUTPUT=true to diagnose dependency and git failures.[/dim]"
            )
        raise typer.Exit(EXIT_TASKS_FAILED)


@app.command()
def done(
    ctx: typer.Context,
    task_ids: List[str] = typer.Argument(..., help="Task ids to mark as done."),
) -> None:
    """Mark tasks of the active intent as done."""
    orchestrator = _orchestrator(_load_config(ctx))
    intent = _require_active(orchestrator)

    try:
        intent = orchestrator.mark_done(intent.id, task_ids)
    except IntentError as e:
        _fail(str(e))

    console.print(f"[green]Marked done:[/green] {', '.join(task_ids)}")
    if intent.all_tasks_done:
        console.print(f"[green]Intent {intent.id} completed.[/green]")
    else:
        console.print(f"{len(intent.pending_tasks)} task(s) remaining.")


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the active intent and recent repairs."""
    orchestrator = _orchestrator(_load_config(ctx))
    intent = orchestrator.active_intent()

    if intent is None:
        latest = orchestrator.store.latest_intent()
        if latest is None:
            console.print("[yellow]No intents yet.[/yellow]")
        else:
            console.print(f"No active intent. Last: {latest.id} ({latest.status.value}) {escape(latest.original_text)}")
        return

    done_count = len(intent.tasks) - len(intent.pending_tasks)
    console.print(f"[bold]Active intent:[/bold] {intent.id}  {escape(intent.original_text)}")
    console.print(f"[bold]Kind:[/bold] {intent.kind.value}   [bold]Status:[/bold] {intent.status.value}")
    console.print(f"[bold]Progress:[/bold] {done_count}/{len(intent.tasks)} tasks done")

    repairs = RepairLog(orchestrator.store.state_dir).entries(limit=5)
    if repairs:
        console.print("\n[bold]Recent repairs:[/bold]")
        for entry in repairs:
            mark = "[green]+[/green]" if entry.applied else "[red]x[/red]"
            category = escape(f"[{entry.category}]")
            console.print(f"  {mark} {category} {escape(entry.message)}")


@app.command("list")
def list_intents(ctx: typer.Context) -> None:
    """List every intent recorded for the project."""
    intents = _orchestrator(_load_config(ctx)).store.get_intents()

    if not intents:
        console.print("[yellow]No intents yet.[/yellow]")
        return

    table = Table(title="Intents")
    table.add_column("ID", style="cyan")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Tasks", style="dim")
    table.add_column("Intent")

    for intent in intents:
        done_count = len(intent.tasks) - len(intent.pending_tasks)
        table.add_row(
            intent.id,
            intent.kind.value,
            intent.status.value,
            f"{done_count}/{len(intent.tasks)}",
            escape(intent.original_text),
        )

    console.print(table)


@app.command()
def explain(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Text to explain (default: the active intent)."),
) -> None:
    """Ask the advisor to explain how to implement an intent."""
    config = _load_config(ctx)
    if not text:
        text = _require_active(_orchestrator(config)).original_text

    profile = FileSystemProfiler(config.project_root).detect()
    advisor = create_advisor(config.advisor, cwd=config.project_root)
    with console.status("Consulting advisor..."):
        explanation = advisor.explain(text, context=profile.framework_label)

    console.print(Panel(Text(explanation), title="Explanation", border_style="cyan"))


@app.command()
def branch(
    ctx: typer.Context,
    create: bool = typer.Option(False, "--create", help="Create and check out the branch."),
) -> None:
    """Show (or create) the git branch and commit message for the active intent."""
    orchestrator = _orchestrator(_load_config(ctx))
    intent = _require_active(orchestrator)

    name = vcs.branch_name(intent)
    console.print(f"[bold]Branch:[/bold] {name}")
    console.print(f"[bold]Commit message:[/bold] {escape(vcs.commit_message(intent))}")

    if create:
        try:
            vcs.create_branch(orchestrator.store.project_root, intent)
        except IntentError as e:
            _fail(str(e))
        except GitCommandError as e:
            _fail(f"git failed: {e}")
        console.print(f"[green]Checked out {name}[/green]")
