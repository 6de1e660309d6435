"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import html
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from career_assistant.client.session import GenerationSession, ParsedView, consume
from career_assistant.clients.llm_client import LLMClient
from career_assistant.config import AppConfig, load_config
from career_assistant.exceptions import CareerAssistantError
from career_assistant.export.pdf_writer import PageGeometry, save_pdf
from career_assistant.models.generation import GenerationRequest
from career_assistant.models.rendered import BulletList, Heading, Paragraph
from career_assistant.pipeline.orchestrator import GenerationOrchestrator
from career_assistant.storage.task_store import TaskStore
from career_assistant.usage.usage_store import UsageStore

app = typer.Typer(
    name="career-assistant",
    help="Tailored resumes and gap analysis, streamed from Claude",
    no_args_is_help=True,
)
console = Console()

OwnerOption = typer.Option("local", "--owner", help="Owner id for stored tasks")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _store(config: AppConfig) -> TaskStore:
    return TaskStore(config.storage.resolved_db_path)


def _geometry(config: AppConfig) -> PageGeometry:
    return PageGeometry(
        margin=config.export.margin,
        font_size=config.export.font_size,
        line_height=config.export.line_height,
    )


def _read_text(path: Path | None, label: str) -> str | None:
    if path is None:
        return None
    if not path.exists():
        console.print(f"[red]{label} file not found: {path}[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", help="Port (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from career_assistant.api.app import create_app

    _setup_logging(verbose)
    config = load_config()
    if not config.auth.tokens:
        console.print("[yellow]No auth tokens configured; every request will get 401.[/yellow]")
    api = create_app(
        config,
        usage_store=UsageStore(config.storage.resolved_usage_db_path),
    )
    uvicorn.run(api, host=host or config.server.host, port=port or config.server.port)


@app.command("task-create")
def task_create(
    name: str = typer.Argument(help="Task name"),
    company: str = typer.Argument(help="Company name"),
    notes: str = typer.Option(None, "--notes", help="Free-form notes"),
    owner: str = OwnerOption,
) -> None:
    """Create a new task."""
    try:
        task = _store(load_config()).create_task(owner, name, company, notes)
    except CareerAssistantError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created task {task.id}[/green]")


@app.command("task-list")
def task_list(owner: str = OwnerOption) -> None:
    """List your tasks, newest first."""
    tasks = _store(load_config()).list_tasks(owner)
    if not tasks:
        console.print("[yellow]No tasks yet.[/yellow]")
        return

    table = Table("ID", "Name", "Company", "Profile", "JD", "Gaps", "Created")
    for t in tasks:
        table.add_row(
            t.id,
            escape(t.name),
            escape(t.company),
            "yes" if t.existing_profile else "-",
            "yes" if t.job_description else "-",
            "yes" if t.gaps else "-",
            t.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command("task-show")
def task_show(
    task_id: str = typer.Argument(help="Task id"),
    owner: str = OwnerOption,
) -> None:
    """Show one task including its saved gap analysis."""
    task = _store(load_config()).get_task(task_id, owner)
    if task is None:
        console.print("[red]Task not found.[/red]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[bold]{escape(task.name)}[/bold] @ {escape(task.company)}\n"
        + (f"{escape(task.notes)}\n" if task.notes else "")
        + f"\nProfile: {len(task.existing_profile or '')} chars"
        + f"\nJob description: {len(task.job_description or '')} chars",
        title=task.id,
    ))
    if task.gaps:
        console.print(Panel(escape(task.gaps), title="Gap analysis"))


@app.command("task-update")
def task_update(
    task_id: str = typer.Argument(help="Task id"),
    profile: Path = typer.Option(None, "--profile", help="Existing profile / resume text file"),
    jd: Path = typer.Option(None, "--jd", help="Job description text file"),
    notes: str = typer.Option(None, "--notes", help="Replace notes"),
    owner: str = OwnerOption,
) -> None:
    """Save profile and job description text on a task."""
    fields: dict = {}
    profile_text = _read_text(profile, "Profile")
    if profile_text is not None:
        fields["existing_profile"] = profile_text
    jd_text = _read_text(jd, "Job description")
    if jd_text is not None:
        fields["job_description"] = jd_text
    if notes is not None:
        fields["notes"] = notes

    if not _store(load_config()).update_task(task_id, owner, **fields):
        console.print("[red]Task not found.[/red]")
        raise typer.Exit(1)
    console.print("[green]Changes saved.[/green]")


@app.command()
def generate(
    task_id: str = typer.Argument(help="Task id"),
    profile: Path = typer.Option(None, "--profile", help="Override the task's profile text"),
    jd: Path = typer.Option(None, "--jd", help="Override the task's job description"),
    pdf: Path = typer.Option(None, "--pdf", help="Also export the tailored resume to this PDF"),
    owner: str = OwnerOption,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Stream a tailored resume and gap analysis for a task."""
    _setup_logging(verbose)
    config = load_config()
    store = _store(config)
    task = store.get_task(task_id, owner)
    if task is None:
        console.print("[red]Task not found.[/red]")
        raise typer.Exit(1)

    request = GenerationRequest(
        owner_id=owner,
        task_id=task_id,
        profile_text=_read_text(profile, "Profile") or task.existing_profile or "",
        job_text=_read_text(jd, "Job description") or task.job_description or "",
    )
    orchestrator = GenerationOrchestrator(
        LLMClient(timeout=config.llm.timeout, max_attempts=config.llm.max_attempts),
        store,
        model=config.llm.model,
        max_tokens=config.llm.max_tokens,
        usage_store=UsageStore(config.storage.resolved_usage_db_path),
    )

    session = GenerationSession()
    try:
        result = asyncio.run(consume(
            session,
            orchestrator.generate(request, owner),
            on_delta=lambda delta: console.out(delta, end="", highlight=False),
        ))
    except CareerAssistantError as exc:
        console.print(f"\n[red]Generation incomplete: {exc.message}[/red]")
        console.print("[dim]Run the command again to retry.[/dim]")
        raise typer.Exit(1)

    console.rule("Tailored resume")
    _print_resume(result)
    if result.gaps:
        console.rule("Gap analysis")
        for finding in result.gaps:
            console.print(f"  - {escape(finding.text)}")

    if pdf:
        path = save_pdf(result.extraction.resume_text, pdf, _geometry(config))
        console.print(f"\n[green]PDF saved: {path}[/green]")


@app.command()
def export(
    source: Path = typer.Argument(help="Plain-text resume file"),
    output: Path = typer.Option(None, "--output", "-o", help="PDF path (default: alongside source)"),
) -> None:
    """Export a plain-text file to a paginated PDF."""
    text = _read_text(source, "Source")
    config = load_config()
    path = save_pdf(text, output or source.with_suffix(".pdf"), _geometry(config))
    console.print(f"[green]PDF saved: {path}[/green]")


@app.command()
def usage() -> None:
    """Show this month's generation usage."""
    config = load_config()
    stats = UsageStore(config.storage.resolved_usage_db_path).get_monthly_stats()
    console.print(Panel(
        f"Runs: {stats['total_runs']} | success: {stats['success_rate']:.0f}%\n"
        f"Tokens: {stats['total_input_tokens']} in / {stats['total_output_tokens']} out\n"
        f"Cost: ${stats['total_cost_usd']:.4f}\n"
        f"Completed runs without saved gaps: {stats['unsaved_gaps']}",
        title=f"Usage {stats['month']}",
    ))


def _print_resume(result: ParsedView) -> None:
    for block in result.resume_blocks:
        if isinstance(block, Heading):
            console.print(f"\n[bold]{escape(block.text)}[/bold]")
        elif isinstance(block, BulletList):
            for item in block.items:
                console.print(f"  • {_to_rich(item)}")
        elif isinstance(block, Paragraph):
            console.print(_to_rich(block.text))
        else:
            console.print()


def _to_rich(markup: str) -> str:
    """Translate inline HTML emphasis to rich markup."""
    text = escape(html.unescape(markup.replace("<strong>", "\x00").replace("</strong>", "\x01")))
    return text.replace("\x00", "[bold]").replace("\x01", "[/bold]")


if __name__ == "__main__":
    app()
