"""
CLI Entrypoint for GatongPass

Provides command-line access to the roster, verification, document
targeting and submission statistics, plus the HTTP API server.

Usage:
    gatong-pass roster [OPTIONS]
    gatong-pass verify GRADE CLASS NUMBER NAME SUFFIX [OPTIONS]
    gatong-pass resolve TITLE
    gatong-pass documents [DIRECTORY] [OPTIONS]
    gatong-pass stats DOCUMENT_ID --store STORE_JSON [OPTIONS]
    gatong-pass serve [OPTIONS]
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from gatong_pass.errors import ConfigError, FetchError, TooManyAttemptsError
from gatong_pass.models import AggregateStats, VerificationAttempt
from gatong_pass.roster.cache import CachedRoster
from gatong_pass.service import GatongService, create_service
from gatong_pass.targeting import DocumentCatalog, resolve_document_metadata

app = typer.Typer(
    name="gatong-pass",
    help="School correspondence roster, verification and statistics tools",
    add_completion=False,
)

console = Console()


def _load_service(config: Optional[Path], store: Optional[Path] = None) -> GatongService:
    try:
        return create_service(
            config_path=str(config) if config else None,
            store_path=str(store) if store else None,
        )
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/] {e}")
        raise typer.Exit(code=1) from e


def _fetch_with_spinner(service: GatongService, description: str) -> CachedRoster:
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task(description, total=None)
        try:
            return asyncio.run(service.get_roster())
        except FetchError as e:
            console.print(f"[red]Roster unavailable:[/] {e}")
            raise typer.Exit(code=1) from e


def _print_stats(stats: AggregateStats, title: str) -> None:
    console.print(f"\n[bold]{title}[/]")
    console.print(
        f"  Submitted: {stats.submitted_count}/{stats.total} "
        f"({stats.completion_rate}%), pending {stats.pending_count}"
    )

    if stats.per_class:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Grade", justify="right")
        table.add_column("Class", justify="right")
        table.add_column("Submitted", justify="right")
        table.add_column("Pending", justify="right")
        table.add_column("Rate", justify="right")
        for row in stats.per_class:
            table.add_row(
                str(row.grade),
                str(row.class_num),
                f"{row.submitted_count}/{row.total}",
                str(row.pending_count),
                f"{row.completion_rate}%",
            )
        console.print(table)

    for question, counts in stats.per_question.items():
        console.print(f"\n[bold]{question}[/]")
        for answer, count in sorted(counts.items(), key=lambda x: -x[1]):
            console.print(f"  {answer}: {count}")


@app.command()
def roster(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings.yaml configuration file",
        exists=True,
    ),
    grade: Optional[int] = typer.Option(None, "--grade", "-g", help="Only show this grade"),
    class_num: Optional[int] = typer.Option(None, "--class", help="Only show this class"),
) -> None:
    """
    Fetch the roster from the spreadsheet export and print it.

    Rows dropped for a wrong column count and identifiers that could not
    be decoded are reported after the table.
    """
    service = _load_service(config)
    cached = _fetch_with_spinner(service, "Fetching roster...")

    students = [
        s for s in cached.students
        if (grade is None or s.grade == grade) and (class_num is None or s.class_num == class_num)
    ]

    table = Table(show_header=True, header_style="bold")
    table.add_column("Grade", justify="right")
    table.add_column("Class", justify="right")
    table.add_column("No.", justify="right")
    table.add_column("Name")
    table.add_column("ID", style="dim")
    for s in students:
        table.add_row(str(s.grade), str(s.class_num), str(s.student_num), s.name, s.id)
    console.print(table)

    console.print(f"[bold]{len(students)} students[/]")
    if cached.result.dropped_rows:
        console.print(f"[yellow]Malformed rows dropped: {cached.result.dropped_rows}[/]")
    if cached.result.inactive_rows:
        console.print(f"[dim]Inactive rows excluded: {cached.result.inactive_rows}[/]")
    for entry in cached.result.unparseable:
        console.print(
            f"[yellow]Unparseable id on row {entry.row_number}:[/] "
            f"'{entry.raw_id}' ({entry.name or 'no name'})"
        )


@app.command()
def verify(
    grade: int = typer.Argument(..., help="Claimed grade"),
    class_num: int = typer.Argument(..., help="Claimed class number"),
    number: int = typer.Argument(..., help="Claimed student number"),
    name: str = typer.Argument(..., help="Claimed student name"),
    suffix: str = typer.Argument(..., help="Last 4 digits of a guardian phone number"),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings.yaml configuration file",
        exists=True,
    ),
) -> None:
    """
    Check a claimed student identity against the roster.

    Exit code 0 when verified, 1 on error, 2 when not found or mismatched.
    """
    try:
        attempt = VerificationAttempt(
            claimed_grade=grade,
            claimed_class=class_num,
            claimed_num=number,
            claimed_name=name,
            contact_suffix=suffix,
        )
    except ValidationError as e:
        console.print("[red]Contact suffix must be exactly 4 digits[/]")
        raise typer.Exit(code=1) from e

    service = _load_service(config)
    try:
        result = asyncio.run(service.verify(attempt))
    except FetchError as e:
        console.print(f"[red]Roster unavailable:[/] {e}")
        raise typer.Exit(code=1) from e
    except TooManyAttemptsError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(code=1) from e

    student = result.student
    if result.is_verified and student is not None:
        console.print(
            f"[green]Verified:[/] {student.name} "
            f"({student.grade}-{student.class_num}-{student.student_num})"
        )
        return

    console.print(f"[yellow]{result.outcome.value}:[/] {result.reason}")
    raise typer.Exit(code=2)


@app.command()
def resolve(
    title: str = typer.Argument(..., help="Document title or file name"),
) -> None:
    """
    Show the audience and type derived from a document title.
    """
    meta = resolve_document_metadata(title)
    grades = ", ".join("all" if g == 0 else str(g) for g in sorted(meta.target_grade))
    depts = ", ".join(sorted(meta.target_dept))

    console.print(f"[bold]Title:[/] {meta.title}")
    console.print(f"[bold]Type:[/] {meta.doc_type.value}")
    console.print(f"[bold]Grades:[/] {grades}")
    console.print(f"[bold]Departments:[/] {depts}")
    if meta.year:
        console.print(f"[bold]Year:[/] {meta.year}")


@app.command()
def documents(
    directory: Path = typer.Argument(
        Path("documents"),
        help="Directory containing correspondence files",
    ),
    grade: Optional[int] = typer.Option(None, "--grade", "-g", help="Grade filter"),
    dept: Optional[str] = typer.Option(None, "--dept", "-d", help="Department filter (semicon, iot, game, doje)"),
) -> None:
    """
    List correspondence files visible to a grade/department, actions first.
    """
    catalog = DocumentCatalog(directory)
    listing = catalog.list_documents(grade=grade, dept=dept)

    if not listing:
        console.print("[yellow]No documents found[/]")
        raise typer.Exit(code=0)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Grades")
    table.add_column("Departments")
    for doc in listing:
        type_label = "[red]action[/]" if doc.doc_type.value == "action" else "notice"
        table.add_row(
            type_label,
            doc.title,
            ", ".join(str(g) for g in sorted(doc.target_grade)),
            ", ".join(sorted(doc.target_dept)),
        )
    console.print(table)


@app.command()
def stats(
    document_id: str = typer.Argument(..., help="Correspondence id in the store"),
    store: Path = typer.Option(
        ...,
        "--store",
        "-s",
        help="Submission store JSON file",
        exists=True,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings.yaml configuration file",
        exists=True,
    ),
    grade: Optional[int] = typer.Option(None, "--grade", "-g", help="Restrict to a grade"),
    class_num: Optional[int] = typer.Option(None, "--class", help="Restrict to a class"),
) -> None:
    """
    Print completion statistics for a correspondence.
    """
    service = _load_service(config, store)
    document = service.store.get_document(document_id)
    if document is None:
        console.print(f"[red]Unknown document:[/] {document_id}")
        raise typer.Exit(code=1)

    try:
        result = asyncio.run(
            service.document_stats(document_id, grade=grade, class_num=class_num)
        )
    except FetchError as e:
        console.print(f"[red]Roster unavailable:[/] {e}")
        raise typer.Exit(code=1) from e

    _print_stats(result, document.title)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to run the API server on"),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings.yaml configuration file",
        exists=True,
    ),
    store: Optional[Path] = typer.Option(
        None,
        "--store",
        "-s",
        help="Submission store JSON file (created if missing, saved on every change)",
    ),
) -> None:
    """
    Start the HTTP API server.

    Without --store, documents and submissions are kept in memory only.

    Requires optional dependencies: pip install gatong-pass[server]
    """
    try:
        import uvicorn
    except ImportError as e:
        console.print("[red]The API server requires optional dependencies.[/]")
        console.print("[yellow]Install with: pip install gatong-pass[server][/]")
        raise typer.Exit(1) from e

    from gatong_pass.api import create_app

    service = _load_service(config, store)
    if store is not None:
        console.print(f"[dim]Submission store: {store}[/]")
    console.print(f"[bold blue]Starting API server on {host}:{port}...[/]")
    uvicorn.run(create_app(service), host=host, port=port)


if __name__ == "__main__":
    app()
