import typer
import os
import logging
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.panel import Panel

from .config import RefinementConfig, validate_config
from .content_analyzer import ContentAnalyzer
from .document_store import get_document_statistics, load_document, save_document, save_session_result
from .errors import ConfigurationError
from .framework_analyzer import FrameworkAnalyzer
from .frameworks import get_all_frameworks, get_frameworks_by_audience, get_frameworks_by_use_case
from .llm_service import OllamaLLMService
from .models import RefinementRequest
from .orchestrator import create_orchestrator
from .progress_tracker import ProgressEmitter, ProgressTracker
from .validation_agent import ValidationAgent

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="deckrefine",
    help="Score presentations and refine them iteratively with a local LLM",
    add_completion=False
)

# Initialize console for rich output
console = Console()


def _load(json_file: str):
    if not os.path.exists(json_file):
        console.print(f"[red]Error: File not found: {json_file}[/red]")
        raise typer.Exit(1)
    try:
        return load_document(json_file)
    except Exception as e:
        console.print(f"[red]Error loading document: {str(e)}[/red]")
        raise typer.Exit(1)


def _config(**overrides) -> RefinementConfig:
    try:
        return validate_config(RefinementConfig.from_env(**{k: v for k, v in overrides.items() if v is not None}))
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]Error: Invalid configuration: {str(e)}[/red]")
        raise typer.Exit(1)


@app.command()
def refine(
    json_file: str = typer.Argument(..., help="Path to the document JSON file"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Where to write the refined document"),
    session_file: Optional[str] = typer.Option(None, "--session", help="Where to write the full session result"),
    target: Optional[float] = typer.Option(None, "--target", help="Target quality score (0-100)"),
    max_rounds: Optional[int] = typer.Option(None, "--max-rounds", help="Maximum number of refinement rounds"),
    min_improvement: Optional[float] = typer.Option(None, "--min-improvement", help="Minimum points per round"),
    framework: Optional[str] = typer.Option(None, "--framework", "-f", help="Pin a framework (scqa, prep, star, pyramid, comparison)"),
    prompt: str = typer.Option("", "--prompt", help="What the presentation is meant to achieve"),
    audience: Optional[str] = typer.Option(None, "--audience", help="Target audience"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Refine a document until it reaches the target score"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    document = _load(json_file)
    config = _config(
        target_score=target,
        max_rounds=max_rounds,
        min_improvement=min_improvement,
        framework_id=framework,
    )
    request = RefinementRequest(
        prompt=prompt,
        audience=audience or document.metadata.target_audience,
        presentation_type=document.metadata.presentation_type,
        tone=document.metadata.tone,
    )

    emitter = ProgressEmitter()
    orchestrator = create_orchestrator(config, OllamaLLMService(config.llm), tracker=ProgressTracker(emitter))

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            console=console
        ) as progress:
            task = progress.add_task("Initializing refinement session...", total=100)
            emitter.subscribe(
                lambda snapshot: progress.update(task, completed=snapshot.overall_percentage, description=snapshot.status)
            )
            result = orchestrator.refine(document, request)
    except ConfigurationError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error during refinement: {str(e)}[/red]")
        raise typer.Exit(1)

    output_file = output or str(Path(json_file).with_suffix(".refined.json"))
    save_document(result.final_document, output_file)
    if session_file:
        save_session_result(result, session_file)

    display_session_result(result)
    console.print(f"[green]✓ Refined document saved to: {output_file}[/green]")
    if session_file:
        console.print(f"[green]✓ Session result saved to: {session_file}[/green]")


@app.command()
def score(
    json_file: str = typer.Argument(..., help="Path to the document JSON file"),
    framework: Optional[str] = typer.Option(None, "--framework", "-f", help="Framework to score against"),
    offline: bool = typer.Option(False, "--offline", help="Use the rule-based scorer only"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")
):
    """Score a document on the four quality dimensions"""

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    document = _load(json_file)
    config = _config(framework_id=framework)
    llm_service = None if offline else OllamaLLMService(config.llm)

    try:
        framework_id = framework
        if framework_id is None:
            analysis = FrameworkAnalyzer(config, llm_service).recommend(document, RefinementRequest(
                audience=document.metadata.target_audience,
                presentation_type=document.metadata.presentation_type,
            ))
            framework_id = analysis.recommended_framework

        if offline:
            result = ContentAnalyzer(config).score(document, framework_id)
        else:
            result = ValidationAgent(config, llm_service).score(document, framework_id)
    except ConfigurationError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error scoring document: {str(e)}[/red]")
        raise typer.Exit(1)

    display_scoring(result)


@app.command()
def frameworks(
    audience: Optional[str] = typer.Option(None, "--audience", help="Only frameworks suited to this audience"),
    use_case: Optional[str] = typer.Option(None, "--use-case", help="Only frameworks suited to this use case")
):
    """List the supported narrative frameworks"""

    if audience:
        selected = get_frameworks_by_audience(audience)
    elif use_case:
        selected = get_frameworks_by_use_case(use_case)
    else:
        selected = get_all_frameworks()

    table = Table(title="Narrative Frameworks")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Steps")
    table.add_column("Best For", style="magenta")

    for item in selected:
        table.add_row(
            item.id,
            item.name,
            " → ".join(step.name for step in item.steps),
            ", ".join(item.best_for[:3])
        )

    console.print(table)


@app.command()
def stats(
    json_file: str = typer.Argument(..., help="Path to the document JSON file")
):
    """Show statistics for a document"""

    document = _load(json_file)
    display_statistics(get_document_statistics(document))


def display_scoring(result):
    """Display dimension scores and issues"""
    console.print(Panel(
        f"[bold]{result.overall_score}/100[/bold] ({result.quality_level})\n"
        f"[dim]Framework: {result.framework_id} | Source: {result.source}[/dim]",
        title="Quality Score"
    ))

    table = Table(title="Dimension Scores")
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", style="magenta")
    for dimension, value in result.dimension_scores.as_dict().items():
        table.add_row(dimension.value, f"{value:.1f}")
    console.print(table)

    if result.issues:
        issues = Table(title="Issues")
        issues.add_column("Severity", style="red")
        issues.add_column("Type")
        issues.add_column("Title")
        issues.add_column("Slides", style="dim")
        for issue in result.issues:
            issues.add_row(issue.severity.value, issue.type.value, issue.title, ", ".join(issue.affected_slides))
        console.print(issues)

    for recommendation in result.recommendations:
        console.print(f"• {recommendation}")


def display_session_result(result):
    """Display the outcome of a refinement session"""
    achieved = "[green]✅ Yes[/green]" if result.target_achieved else "[yellow]❌ No[/yellow]"
    console.print(Panel(
        f"Initial Score: {result.initial_score}/100\n"
        f"Final Score: {result.final_score}/100\n"
        f"Improvement: {result.summary.score_improvement:+g} points\n"
        f"Target Achieved: {achieved}\n"
        f"Stop Reason: {result.stop_reason.value}\n"
        f"Framework: {result.framework_analysis.recommended_framework}\n"
        f"LLM Calls: {result.llm_calls}",
        title=f"Refinement Summary ({result.status.value})"
    ))

    if result.rounds:
        table = Table(title="Rounds")
        table.add_column("Round", style="cyan")
        table.add_column("Before")
        table.add_column("After")
        table.add_column("Change", style="magenta")
        table.add_column("Adopted")
        for record in result.rounds:
            table.add_row(
                str(record.round),
                f"{record.starting_score:g}",
                f"{record.ending_score:g}",
                f"{record.improvement:+g}",
                "✓" if record.adopted else "✗"
            )
        console.print(table)


def display_statistics(stats):
    """Display document statistics"""
    table = Table(title="Document Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="magenta")

    table.add_row("Total Slides", str(stats["total_slides"]))
    for slide_type, count in stats["slides_by_type"].items():
        table.add_row(f"  {slide_type}", str(count))
    table.add_row("Total Bullets", str(stats["total_bullets"]))
    table.add_row("Total Metrics", str(stats["total_metrics"]))
    table.add_row("Slides with Speaker Notes", str(stats["slides_with_speaker_notes"]))
    table.add_row("Speaker Notes Coverage", f"{stats['speaker_notes_coverage']:.0f}%")
    table.add_row("Avg Bullets per Slide", f"{stats['average_bullets_per_slide']:.1f}")

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Host to bind the server to"),
    port: int = typer.Option(8000, "--port", help="Port to bind the server to")
):
    """Start the FastAPI server"""

    console.print(f"[green]Starting server on {host}:{port}[/green]")

    import uvicorn
    uvicorn.run("deckrefine.api:app", host=host, port=port)


if __name__ == "__main__":
    app()
