"""
CHANGESCRIBE CLI — The Interface

Two modes:
  1. changescribe create  --ticket <url|key>      (synthesize, confirm, open PR)
  2. changescribe preview --ticket <url|key>      (synthesize and print only)

Plus utilities:
  - changescribe status        (tools, gh auth, effective config)
  - changescribe init <path>   (bootstrap .changescribe in a repo)
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from changescribe.config_loader import REPO_CONFIG, ChangeScribeConfig, SubmitConfig, load_config
from changescribe.controller import ConsoleOperator, Controller
from changescribe.errors import ConfigError, ScribeError
from changescribe.event_bus import ScribeEvent
from changescribe.history import GitHistory
from changescribe.identity import BANNER, __codename__, __tagline__, __version__
from changescribe.models import OperatorContext, RunState
from changescribe.submission import GhSubmitter

# Load .env from current directory or home
load_dotenv()
load_dotenv(Path.home() / ".changescribe" / ".env")

app = typer.Typer(
    name="changescribe",
    help=f"{__codename__} — {__tagline__}\nTurns branch history into a reviewable pull request.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__codename__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
):
    pass


# ---------------------------------------------------------------------------
# Banner
# ---------------------------------------------------------------------------


def _print_banner():
    console.print(f"[bright_cyan]{BANNER}[/]")
    console.print(f"  [dim]v{__version__} — {__tagline__}[/]\n")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command()
def create(
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Path to the repository"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help="Ticket URL or key (e.g. A8-14685)"),
    why: Optional[str] = typer.Option(None, "--why", help="Why this change is needed"),
    what: Optional[str] = typer.Option(None, "--what", help="What the change does"),
    how: Optional[str] = typer.Option(None, "--how", help="How it is implemented"),
    testing: Optional[str] = typer.Option(None, "--testing", help="How it was tested"),
    base: Optional[str] = typer.Option(None, "--base", "-b", help="Base branch (default from config)"),
    draft: Optional[bool] = typer.Option(None, "--draft/--ready", help="Open as a draft PR"),
    reviewer: Optional[List[str]] = typer.Option(None, "--reviewer", help="Reviewer (repeatable)"),
    label: Optional[List[str]] = typer.Option(None, "--label", help="Label (repeatable)"),
    auto_approve: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation gates"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Synthesize a PR description, review it, and open the pull request."""
    _print_banner()
    _configure_logging(verbose)

    repo = repo.resolve()
    config = _load(repo, base=base, draft=draft, reviewers=reviewer, labels=label)

    controller = Controller(
        history=GitHistory(repo, remote=config.submit.remote),
        submitter=GhSubmitter(repo, config.submit),
        operator=ConsoleOperator(console, auto_approve=auto_approve),
        config=config,
    )
    controller.bus.subscribe(_log_event)

    operator_context = OperatorContext(why=why, what=what, how=how, testing=testing)
    outcome = controller.run(operator_context, ticket_input=ticket)

    if outcome.state is RunState.SUBMITTED:
        console.print(f"\n[bold green]✅ Pull request created:[/] {outcome.result.url}")
        return
    if outcome.state is RunState.ABORTED:
        console.print("\n[bold yellow]Declined. No pull request was created.[/]")
        return

    console.print(f"\n[bold red]🚫 {outcome.error_kind}[/] {outcome.error_reason}")
    if outcome.draft is not None:
        console.print("[dim]The approved draft was kept:[/]")
        console.print(Panel(escape(outcome.draft.body.rstrip()), title=escape(outcome.draft.title), border_style="red"))
    raise typer.Exit(1)


@app.command()
def preview(
    repo: Path = typer.Option(Path("."), "--repo", "-r", help="Path to the repository"),
    ticket: Optional[str] = typer.Option(None, "--ticket", "-t", help="Ticket URL or key"),
    why: Optional[str] = typer.Option(None, "--why"),
    what: Optional[str] = typer.Option(None, "--what"),
    how: Optional[str] = typer.Option(None, "--how"),
    testing: Optional[str] = typer.Option(None, "--testing"),
    base: Optional[str] = typer.Option(None, "--base", "-b"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Print the synthesized title and body without opening a PR."""
    _configure_logging(verbose)

    repo = repo.resolve()
    config = _load(repo, base=base)
    operator = ConsoleOperator(console, auto_approve=True)
    controller = Controller(
        history=GitHistory(repo, remote=config.submit.remote),
        submitter=None,
        operator=operator,
        config=config,
    )

    try:
        draft = controller.prepare(
            OperatorContext(why=why, what=what, how=how, testing=testing),
            ticket_input=ticket,
            check_preconditions=False,
        )
    except ScribeError as e:
        console.print(f"[red]🚫 {e}[/]")
        raise typer.Exit(1)

    operator.present(draft)
    signals = controller.signals
    console.print(
        f"Type: [bold]{signals.dominant_type.value}[/] | "
        f"Complexity: [bold]{signals.complexity.value}[/] | "
        f"Dependencies: {signals.has_new_dependency} | "
        f"Breaking: {signals.has_breaking_signal} | "
        f"Tests: {signals.has_tests}"
    )


@app.command()
def status(
    repo: Optional[Path] = typer.Option(None, "--repo", "-r"),
):
    """Check CHANGESCRIBE configuration and readiness."""
    _print_banner()

    tools_table = Table(title="System Tools", border_style="cyan")
    tools_table.add_column("Tool")
    tools_table.add_column("Status")

    for tool in ["git", "gh"]:
        found = shutil.which(tool)
        s = f"[green]✓ {found}[/]" if found else "[red]✗ Not found[/]"
        tools_table.add_row(tool, s)

    if shutil.which("gh"):
        tools_table.add_row("gh auth", _gh_auth_row())

    console.print(tools_table)

    config = _load(repo.resolve() if repo else None)
    console.print(f"\n[bold]Submission:[/]")
    console.print(f"  Base branch: {config.submit.base_branch}")
    console.print(f"  Draft:       {config.submit.draft}")
    console.print(f"  Reviewers:   {', '.join(config.submit.reviewers) or '-'}")
    console.print(f"  Labels:      {', '.join(config.submit.labels) or '-'}")
    console.print(f"  Push branch: {config.submit.push_branch} ({config.submit.remote})")
    console.print(f"\n[bold]Intervention:[/]")
    console.print(f"  Confirm missing ticket:  {config.intervention.confirm_missing_ticket}")
    console.print(f"  Confirm inferred ticket: {config.intervention.confirm_inferred_ticket}")


@app.command()
def init(
    repo: Optional[Path] = typer.Argument(None, help="Path to repository"),
):
    """Initialize .changescribe directory in a repository."""
    _print_banner()

    repo = (repo or Path.cwd()).resolve()
    config_path = repo / REPO_CONFIG
    config_path.parent.mkdir(parents=True, exist_ok=True)

    if config_path.exists():
        console.print(f"[dim]Config already exists at {config_path}[/]")
        return

    config_path.write_text("""# CHANGESCRIBE repo-level config overrides
# These merge with the built-in defaults.

# submit:
#   base_branch: develop
#   draft: true
#   reviewers:
#     - octocat
#   labels:
#     - needs-review
#   push_branch: true

# intervention:
#   confirm_missing_ticket: false
#   confirm_inferred_ticket: false
""")
    console.print(f"[green]✅ Initialized CHANGESCRIBE in {config_path.parent}[/]")
    console.print(f"  Config:  {config_path}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load(
    repo: Path | None,
    base: str | None = None,
    draft: bool | None = None,
    reviewers: list[str] | None = None,
    labels: list[str] | None = None,
) -> ChangeScribeConfig:
    """Load config and apply CLI flags on top."""
    try:
        config = load_config(repo)
    except ConfigError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(2)

    submit = config.submit.model_dump()
    if base:
        submit["base_branch"] = base
    if draft is not None:
        submit["draft"] = draft
    if reviewers:
        submit["reviewers"] = submit["reviewers"] + list(reviewers)
    if labels:
        submit["labels"] = submit["labels"] + list(labels)
    return config.model_copy(update={"submit": SubmitConfig(**submit)})


def _gh_auth_row() -> str:
    try:
        auth = subprocess.run(["gh", "auth", "status"], capture_output=True, text=True, timeout=30)
    except subprocess.TimeoutExpired:
        return "[red]✗ `gh auth status` timed out[/]"
    except FileNotFoundError:
        return "[red]✗ gh not found[/]"
    if auth.returncode != 0:
        return "[red]✗ Run `gh auth login`[/]"
    return "[green]✓ Authenticated[/]"


def _log_event(event: ScribeEvent) -> None:
    logger.debug(f"[EVENTS] {event.describe()}")


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    if verbose:
        logger.add(
            lambda msg: console.print(f"[dim]{escape(str(msg))}[/]", highlight=False),
            level="DEBUG",
            format="{time:HH:mm:ss} | {level:<7} | {message}",
        )
    else:
        logger.add(
            lambda msg: console.print(f"[dim]{escape(str(msg))}[/]", highlight=False),
            level="WARNING",
            format="{message}",
        )


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
