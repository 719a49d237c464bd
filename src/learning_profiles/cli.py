"""Command-line interface for learning profiles."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .analysis import analyze_evidence, generate_profile
from .config import settings
from .errors import AssessmentError
from .models import AnalysisResult, AnalyzedEvidence, Evidence, LearningProfile, Student, TeacherPerspective

app = typer.Typer(
    name="learning-profiles",
    help="Learning Profiles - Evidence scoring and learning profile generation",
    add_completion=False,
)

console = Console()


@app.callback()
def configure(
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL")
):
    """Configure logging before running a command."""
    logging.basicConfig(
        level=getattr(logging, (log_level or settings.app.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _load_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]❌ Could not read {path}: {e}[/red]")
        raise typer.Exit(code=1)
    if not isinstance(data, dict):
        console.print(f"[red]❌ {path} must contain a JSON object[/red]")
        raise typer.Exit(code=1)
    return data


def _perspective(data: Dict[str, Any], student_id: str) -> Optional[TeacherPerspective]:
    raw = data.get("perspective")
    if not raw:
        return None
    return TeacherPerspective.model_validate({"student_id": student_id, **raw})


def _summary_table(title: str, rows: Dict[str, Any]) -> Table:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for name, value in rows.items():
        table.add_row(name, str(value))
    return table


@app.command()
def version():
    """Show version information."""
    from . import __version__

    console.print(Panel.fit(
        f"[bold blue]Learning Profiles[/bold blue]\n"
        f"Version: [green]{__version__}[/green]",
        title="Version Info"
    ))


@app.command()
def analyze(
    path: Path = typer.Argument(..., help="JSON file with 'evidence' and optional 'perspective'"),
    summary: bool = typer.Option(False, "--summary", "-s", help="Show a table instead of JSON"),
):
    """Score one evidence item and print the AnalysisResult."""
    data = _load_json(path)

    try:
        evidence = Evidence.model_validate({"student_id": "cli", **(data.get("evidence") or {})})
        perspective = _perspective(data, evidence.student_id)
    except ValidationError as e:
        console.print(f"[red]❌ Invalid input:[/red]\n{e}")
        raise typer.Exit(code=1)

    result = analyze_evidence(evidence, perspective)

    if summary:
        console.print(_summary_table(f"Analysis of '{evidence.task_title}'", {
            "Adapted score": f"{result.adapted_score:.1f}",
            "Competency level": result.competency_level.value,
            "Strengths": result.identified_strengths,
            "Improvement areas": result.improvement_areas,
            "Successful modalities": result.successful_modalities,
            "Recommendations": result.pedagogical_recommendations,
            "Adaptations": result.suggested_adaptations,
        }))
    else:
        typer.echo(result.model_dump_json(indent=2))


@app.command()
def profile(
    path: Path = typer.Argument(
        ..., help="JSON file with 'student', optional 'perspective' and 'analyzed' evidence"
    ),
    summary: bool = typer.Option(False, "--summary", "-s", help="Show a table instead of JSON"),
):
    """
    Generate a learning profile and print it.

    Each entry of 'analyzed' holds an 'evidence' object and optionally its
    'analysis'; entries without an analysis are scored first.
    """
    data = _load_json(path)

    try:
        student = Student.model_validate(data.get("student") or {})
        perspective = _perspective(data, student.id)

        analyzed = []
        for entry in data.get("analyzed") or []:
            if not isinstance(entry, dict) or not isinstance(entry.get("evidence"), dict):
                raise TypeError(f"each 'analyzed' entry must be an object with an 'evidence' object, got {entry!r}")
            evidence = Evidence.model_validate({"student_id": student.id, **entry["evidence"]})
            if entry.get("analysis"):
                analysis = AnalysisResult.model_validate({"evidence_id": evidence.id, **entry["analysis"]})
            else:
                analysis = analyze_evidence(evidence, perspective)
            analyzed.append(AnalyzedEvidence(evidence=evidence, analysis=analysis))
    except (ValidationError, KeyError, TypeError) as e:
        console.print(f"[red]❌ Invalid input:[/red]\n{e}")
        raise typer.Exit(code=1)

    try:
        learning_profile: LearningProfile = generate_profile(student, perspective, analyzed)
    except AssessmentError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    if summary:
        console.print(_summary_table(f"Learning profile for {student.name}", {
            "Dominant pattern": learning_profile.dominant_learning_pattern,
            "Special abilities": learning_profile.detected_special_abilities,
            "Needs": learning_profile.identified_needs,
            "Strategies": learning_profile.recommended_teaching_strategies,
            "Instruments": learning_profile.suggested_evaluation_instruments,
            "Materials": learning_profile.personalized_didactic_materials,
            "Adaptation plan": learning_profile.curricular_adaptation_plan,
            "Confidence": f"{learning_profile.confidence_level:.2f}",
            "Evidence count": learning_profile.evidence_count,
        }))
    else:
        typer.echo(learning_profile.model_dump_json(indent=2))


@app.command()
def test_db(
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Database URL (defaults to DATABASE_URL env var)"
    )
):
    """Test database connectivity."""
    from .database.connection import (
        DatabaseConnectionError,
        DatabasePool,
        PoolConfig,
        create_pool_config_from_settings,
    )

    console.print("[yellow]Testing database connection...[/yellow]")

    async def check() -> bool:
        config = PoolConfig(dsn=url) if url else create_pool_config_from_settings()
        pool = DatabasePool(config)
        try:
            await pool.initialize()
            return await pool.health_check()
        finally:
            await pool.close()

    try:
        healthy = asyncio.run(check())
    except DatabaseConnectionError as e:
        console.print(f"[red]❌ Database connection failed: {e}[/red]")
        raise typer.Exit(code=1)

    if healthy:
        console.print("[green]✅ Database connection successful![/green]")
    else:
        console.print("[red]❌ Database health check failed[/red]")
        raise typer.Exit(code=1)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
