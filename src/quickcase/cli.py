import typer
import os
from pathlib import Path
from typing import Optional, List
import logging
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.panel import Panel

from .config import get_settings, update_settings
from .document_exporter import DocumentExporter
from .models import GenerationStep
from .objective_generator import PARSE_FAILED_OBJECTIVES
from .processing_service import CaseProcessingService
from .session_store import SessionStore
from .source_loader import SourceLoader

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="quickcase",
    help="Research, draft and polish business teaching cases using Gemini",
    add_completion=False
)

# Initialize console for rich output
console = Console()


def _require_api_key():
    if not get_settings().has_api_key:
        console.print("[red]Error: set QUICKCASE_GEMINI_API_KEY (or add it to .env)[/red]")
        raise typer.Exit(1)


@app.command()
def generate(
    topic: str = typer.Argument(..., help="Company, event or theme to build the case around"),
    files: Optional[List[str]] = typer.Option(None, "--file", "-f", help="Reference document (PDF, TXT, MD, CSV); repeatable"),
    objective: int = typer.Option(1, "--objective", "-n", help="Which proposed learning objective to use (1-based)"),
    output_dir: Optional[str] = typer.Option(None, "--output", "-o", help="Output directory for generated files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Run the whole workflow non-interactively and save the case"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    _require_api_key()

    for path in files or []:
        if not os.path.exists(path):
            console.print(f"[red]Error: File not found: {path}[/red]")
            raise typer.Exit(1)

    if output_dir:
        update_settings(output_dir=output_dir)

    try:
        uploaded = SourceLoader().load_files(files or [])
        service = CaseProcessingService()
        session = SessionStore().create()
        session.files = uploaded

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Researching...", total=None)

            service.start_research(session, topic)
            _check_state(session)

            objectives = session.data.objectives
            if objectives == PARSE_FAILED_OBJECTIVES:
                progress.stop()
                console.print("[red]Error: could not parse the proposed learning objectives, please retry[/red]")
                raise typer.Exit(1)
            if objective < 1 or objective > len(objectives):
                progress.stop()
                console.print(f"[red]Error: --objective must be between 1 and {len(objectives)}[/red]")
                raise typer.Exit(1)
            chosen = objectives[objective - 1]

            progress.update(task, description="Building framework...")
            service.select_objective(session, chosen)
            _check_state(session)

            progress.update(task, description="Drafting and polishing...")
            service.approve_framework(session)
            _check_state(session)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Error generating case: {str(e)}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Case generated: {session.data.topic}[/green]")
    display_objectives(session.data.objectives, objective)
    display_statistics(service.exporter.get_document_statistics(session.data))
    console.print(f"[green]✓ Outputs saved to: {get_settings().output_dir}[/green]")


def _check_state(session):
    if session.state.step == GenerationStep.ERROR:
        raise RuntimeError(session.state.message)


@app.command()
def polish(
    markdown_file: str = typer.Argument(..., help="Markdown document to run through the firewall and visual audit"),
    output_file: Optional[str] = typer.Option(None, "--output", "-o", help="Where to write the polished document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Run the final polish (firewall + visual audit) on an existing document"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not os.path.exists(markdown_file):
        console.print(f"[red]Error: File not found: {markdown_file}[/red]")
        raise typer.Exit(1)

    _require_api_key()

    source = Path(markdown_file)
    target = Path(output_file) if output_file else source.with_name(f"{source.stem}.polished.md")

    try:
        service = CaseProcessingService(save_outputs=False)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("Polishing...", total=None)
            polished = service.refinement.run_final_polish(
                source.read_text(encoding="utf-8"),
                lambda message: progress.update(task, description=message),
            )
        target.write_text(polished, encoding="utf-8")
    except Exception as e:
        console.print(f"[red]Error polishing document: {str(e)}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Polished document saved to: {target}[/green]")
    display_text_statistics(DocumentExporter().get_text_statistics(polished), "Polished Document")


@app.command()
def stats(
    file: str = typer.Argument(..., help="Saved case (.json) or markdown document")
):
    """Show statistics for a saved case or a markdown document"""

    if not os.path.exists(file):
        console.print(f"[red]Error: File not found: {file}[/red]")
        raise typer.Exit(1)

    exporter = DocumentExporter()
    try:
        if file.lower().endswith(".json"):
            data = exporter.load_from_json(file)
            display_statistics(exporter.get_document_statistics(data))
        else:
            text = Path(file).read_text(encoding="utf-8")
            display_text_statistics(exporter.get_text_statistics(text), Path(file).name)
    except Exception as e:
        console.print(f"[red]Error loading file: {str(e)}[/red]")
        raise typer.Exit(1)


def display_objectives(objectives, chosen: int):
    """Display the proposed objectives, marking the one used"""
    lines = []
    for i, objective in enumerate(objectives, 1):
        marker = "[bold green]→[/bold green]" if i == chosen else " "
        lines.append(f"{marker} {i}. {objective}")
    console.print(Panel("\n".join(lines), title="Learning Objectives"))


def display_text_statistics(stats, title: str):
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Characters", str(stats["characters"]))
    table.add_row("Headings", str(stats["headings"]))
    table.add_row("Tables", str(stats["tables"]))
    table.add_row("Captioned Tables", str(stats["captioned_tables"]))

    console.print(table)


def display_statistics(stats):
    """Display case statistics"""
    console.print(f"\n[bold blue]Case: {stats['title']}[/bold blue]")
    console.print(f"[dim]Objectives: {stats['objectives']}[/dim]")
    console.print(f"[dim]Sources: {stats['sources']}[/dim]")
    console.print(f"[dim]Framework characters: {stats['framework_characters']}[/dim]\n")

    display_text_statistics(stats["case"], "Case Content")
    display_text_statistics(stats["teaching_notes"], "Teaching Notes")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind the server to"),
    port: int = typer.Option(8000, "--port", help="Port to bind the server to")
):
    """Start the FastAPI server"""

    console.print(f"[green]Starting server on {host}:{port}[/green]")

    import uvicorn
    uvicorn.run("src.quickcase.api:app", host=host, port=port, reload=True)

if __name__ == "__main__":
    app()
