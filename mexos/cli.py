"""CLI entry point for mexos."""

from __future__ import annotations

import logging
import sqlite3
import subprocess
import sys
from datetime import date
from pathlib import Path

import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from mexos.activity import DecisionJournal, group_by_campaign, outcome_of, summarize_decisions
from mexos.config import Config
from mexos.errors import MexosError
from mexos.seed import seed_store
from mexos.storage.db import get_connection
from mexos.storage.live import LiveData
from mexos.storage.repository import Repository
from mexos.storage.store import DocumentStore
from mexos.strategy.commands import RuleCommands
from mexos.strategy.rules import campaign_progress, count_pending_rules, days_remaining
from mexos.strategy.workflow import SNOOZE_OPTIONS, DecisionWorkflow

app = typer.Typer(help="Personal cockpit: campaigns, decision rules, exams and skills.")

STATUS_STYLE = {
    "green": ("green", "SYSTEMS NOMINAL"),
    "yellow": ("yellow", "CAUTION ADVISED"),
    "red": ("red", "CRITICAL ALERT"),
}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s" if verbose else "%(levelname)s - %(message)s",
    )


def _resolve_db(db_path: str | None) -> Path:
    return Path(db_path) if db_path else Config.load().db_path


def _open_store(db: Path) -> tuple[sqlite3.Connection, DocumentStore]:
    if not db.exists():
        rprint(f"[red]Database not found at {db}. Run 'mexos init' first.[/red]")
        raise typer.Exit(1)
    conn = get_connection(db)
    return conn, DocumentStore(Repository(conn))


def _journal(db: Path) -> DecisionJournal:
    config = Config.load()
    config.db_path = db
    return DecisionJournal(config.resolved_journal_path)


@app.command()
def init(
    db_path: str = typer.Option(None, help="Database file path"),
    seed: bool = typer.Option(True, help="Load demo data into an empty database"),
) -> None:
    """Create the database and optionally load demo data."""
    db = _resolve_db(db_path)
    conn = get_connection(db)
    try:
        store = DocumentStore(Repository(conn))
        if seed and seed_store(store):
            rprint(f"[green bold]Seeded demo data into {db}[/green bold]")
        else:
            rprint(f"Database ready at {db}")
        stats = store.repo.get_stats()
        rprint("  " + ", ".join(f"{n} {name}" for name, n in stats.items()))
    finally:
        conn.close()


@app.command()
def status(db_path: str = typer.Option(None, help="Database file path")) -> None:
    """Show global status, the active campaign and overdue rules."""
    db = _resolve_db(db_path)
    conn, store = _open_store(db)
    try:
        live = LiveData(store)
        color, label = STATUS_STYLE[live.global_status()]
        rprint(f"[{color} bold]{label}[/{color} bold]  ({date.today():%A, %b %d, %Y})")
        rprint(f"  Passed CFU: {live.passed_cfus()}")

        campaign = live.active_campaign()
        if campaign:
            remaining = days_remaining(campaign)
            rprint(f"\n[bold]Active campaign:[/bold] {escape(campaign.name)}")
            rprint(f"  Progress: {campaign_progress(campaign):.0f}%")
            if remaining is not None:
                rprint(f"  {remaining} days remaining")
            rprint(f"  Pending rules: {count_pending_rules(campaign)}")
        else:
            rprint("\nNo active campaign")

        triggered = live.triggered_rules()
        if triggered:
            rprint(f"\n[red bold]{len(triggered)} strategic decision(s) OVERDUE[/red bold]")
            for t in triggered:
                rprint(
                    f"  IF {escape(t.rule.condition)} -> {escape(t.rule.action)} "
                    f"[red]({t.days_overdue}d overdue)[/red]"
                )
            rprint("\nRun [bold]mexos decide[/bold] to resolve them.")

        flagged = live.exams_with_active_rules()
        if flagged:
            rprint("\n[bold]Exams with pending rules:[/bold]")
            for exam in flagged:
                rprint(f"  {escape(exam.name)} ({exam.cfu} CFU, {exam.status})")
    finally:
        conn.close()


def _render_current(workflow: DecisionWorkflow) -> None:
    t = workflow.current
    rprint(f"\n[red bold]STRATEGIC DECISION REQUIRED[/red bold]  Reviewing {workflow.position}")
    rprint(f"Campaign: [bold]{escape(t.campaign_name)}[/bold]")
    rprint(f"Deadline {escape(str(t.rule.deadline))} passed, [red]{t.days_overdue} day(s) overdue[/red]")
    rprint(f"  [yellow]IF[/yellow]   {escape(t.rule.condition)}")
    rprint(f"  [red]THEN[/red] {escape(t.rule.action)}")
    if t.linked_exams:
        rprint("Linked exams:")
        for exam in t.linked_exams:
            rprint(f"  - {escape(exam.name)} ({exam.cfu} CFU) " + escape(f"[{exam.status}]"))


@app.command()
def decide(db_path: str = typer.Option(None, help="Database file path")) -> None:
    """Step through overdue rules and resolve them one at a time."""
    db = _resolve_db(db_path)
    conn, store = _open_store(db)
    try:
        live = LiveData(store)
        triggered = live.triggered_rules()
        if not triggered:
            rprint("[green]No overdue rules. Nothing to decide.[/green]")
            return

        workflow = DecisionWorkflow(RuleCommands(store, _journal(db)))
        workflow.open(triggered)

        while workflow.is_open:
            _render_current(workflow)
            suggestions = workflow.suggestions
            rprint("\nWhat do you want to do?")
            for i, suggestion in enumerate(suggestions, start=1):
                rprint(f"  {i}. {escape(suggestion.description)}")
            rprint("  s. Mark as safe (condition was met)")
            rprint("  " + "  ".join(f"z{d}. Snooze {d}d" for d in SNOOZE_OPTIONS))
            rprint("  l. Decide later")

            choice = typer.prompt("Choice").strip().lower()
            if choice == "l":
                workflow.decide_later()
                rprint("Deferred. Run [bold]mexos decide[/bold] when ready.")
                break
            if choice == "s":
                ok = workflow.mark_safe()
            elif choice.startswith("z") and choice[1:].isdigit() and int(choice[1:]) in SNOOZE_OPTIONS:
                ok = workflow.snooze(int(choice[1:]))
            elif choice.isdigit() and 1 <= int(choice) <= len(suggestions):
                workflow.select(suggestions[int(choice) - 1])
                ok = workflow.execute()
            else:
                rprint("[yellow]Unknown choice[/yellow]")
                continue

            if ok:
                rprint(f"[green]{workflow.last_message}[/green]")
            else:
                rprint(f"[red]{workflow.error}[/red]")
    finally:
        conn.close()


@app.command()
def snooze(
    campaign_id: str = typer.Argument(help="Campaign id"),
    rule_index: int = typer.Argument(help="Rule position within the campaign (0-based)"),
    days: int = typer.Option(1, help="Days to push the deadline back"),
    db_path: str = typer.Option(None, help="Database file path"),
) -> None:
    """Push a rule's deadline back without resolving it."""
    db = _resolve_db(db_path)
    conn, store = _open_store(db)
    try:
        commands = RuleCommands(store, _journal(db))
        try:
            new_deadline = commands.snooze_rule(campaign_id, rule_index, days)
        except (MexosError, ValueError) as e:
            rprint(f"[red]Failed to snooze rule: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        rprint(f"[green]Deadline moved to {new_deadline}[/green]")
    finally:
        conn.close()


@app.command()
def skills(
    all_skills: bool = typer.Option(False, "--all", help="Include untracked skills"),
    db_path: str = typer.Option(None, help="Database file path"),
) -> None:
    """Show skill mastery analytics."""
    db = _resolve_db(db_path)
    conn, store = _open_store(db)
    try:
        live = LiveData(store)
        analytics = live.skill_analytics(tracked_only=not all_skills)
        if not analytics:
            rprint("[yellow]No skills defined.[/yellow]")
            return

        table = Table(title="Skill mastery")
        table.add_column("Skill")
        table.add_column("Level")
        table.add_column("Points", justify="right")
        table.add_column("Hours", justify="right")
        table.add_column("Streak", justify="right")
        table.add_column("Best", justify="right")
        table.add_column("Consistency", justify="right")
        for a in analytics:
            table.add_row(
                escape(a.skill_name),
                f"{a.level} {a.level_name}",
                str(a.total_points),
                f"{a.total_hours:.1f}",
                str(a.current_streak),
                str(a.longest_streak),
                f"{a.consistency_percent}%",
            )
        rprint(table)
    finally:
        conn.close()


@app.command()
def log(
    skill_id: str = typer.Argument(help="Skill id"),
    duration: str = typer.Argument(help='Duration label, e.g. "30 mins" or "1 hour"'),
    day: str = typer.Option(None, "--date", help="ISO date, defaults to today"),
    db_path: str = typer.Option(None, help="Database file path"),
) -> None:
    """Record practice time for a skill."""
    db = _resolve_db(db_path)
    conn, store = _open_store(db)
    try:
        target_day = day or date.today().isoformat()
        try:
            date.fromisoformat(target_day)
        except ValueError:
            rprint(f"[red]Invalid date: {escape(target_day)}[/red]")
            raise typer.Exit(1)

        definition = store.get("skills", skill_id)
        if definition is None:
            rprint(f"[red]Unknown skill: {escape(skill_id)}[/red]")
            raise typer.Exit(1)
        options = definition.get("tracking_options") or []
        if options and duration not in options:
            rprint(f"[yellow]'{escape(duration)}' is not one of {', '.join(options)}; logging anyway[/yellow]")

        try:
            store.log_practice(target_day, skill_id, duration)
        except MexosError as e:
            rprint(f"[red]Failed to log practice: {escape(str(e))}[/red]")
            raise typer.Exit(1)
        rprint(f"[green]Logged {escape(duration)} of {escape(definition.get('name', skill_id))} on {target_day}[/green]")
    finally:
        conn.close()


@app.command()
def journal(
    limit: int = typer.Option(20, help="Number of entries"),
    command: str = typer.Option(None, help="Only show one command (execute, snooze, ...)"),
    campaign: str = typer.Option(None, help="Only show one campaign id"),
    failed: bool = typer.Option(False, "--failed", help="Only show failed commits"),
    db_path: str = typer.Option(None, help="Database file path"),
) -> None:
    """Show recent rule decisions."""
    entries = _journal(_resolve_db(db_path)).read(
        limit=limit, command=command, campaign_id=campaign, failed_only=failed
    )
    if not entries:
        rprint("No decisions recorded yet.")
        return

    counts = summarize_decisions(entries)
    rprint(
        f"[bold]{counts['resolved']}[/bold] resolved, [bold]{counts['deferred']}[/bold] snoozed, "
        f"[bold]{counts['edited']}[/bold] edits, [bold red]{counts['failed']}[/bold red] failed"
    )
    for campaign_id, group in group_by_campaign(entries).items():
        rprint(f"\n[bold]{escape(campaign_id)}[/bold]")
        for e in group:
            outcome = outcome_of(e)
            style = "red" if outcome == "failed" else "green" if outcome == "resolved" else "yellow"
            rprint(
                f"  {e.get('timestamp', '')[:16]}  [{style}]{outcome:<8}[/{style}]  "
                f"{e.get('command')}  {escape(e.get('details') or '')}"
            )
            if e.get("action"):
                rprint(f"    IF {escape(e.get('condition') or '?')} THEN {escape(e['action'])}")
            if e.get("error"):
                rprint(f"    [red]{escape(e['error'])}[/red]")


@app.command()
def dashboard(db_path: str = typer.Option(None, help="Database file path")) -> None:
    """Launch the Streamlit cockpit."""
    app_path = Path(__file__).resolve().parent / "ui" / "app.py"
    cmd = [sys.executable, "-m", "streamlit", "run", str(app_path)]
    if db_path:
        cmd += ["--", "--db", db_path]
    raise typer.Exit(subprocess.run(cmd).returncode)


if __name__ == "__main__":
    app()
