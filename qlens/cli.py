"""Command-line interface for Q-Lens."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from rich.console import Console

from qlens import __version__
from qlens.config import load_settings

if TYPE_CHECKING:
    from qlens.config import QLensSettings
    from qlens.workspace import Workspace

app = typer.Typer(
    name="qlens",
    help="Executive insight reports from focus-group transcripts.",
    no_args_is_help=True,
)
console = Console(width=min(80, Console().width))

REPORT_JSON_FILENAME = "q-lens-report.json"


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"qlens {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version", "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Executive insight reports from focus-group transcripts."""


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _model_for(settings: QLensSettings) -> str:
    return settings.local_model if settings.llm_provider == "local" else settings.llm_model


def _print_header(settings: QLensSettings) -> None:
    """Print the version + provider + model header line."""
    from qlens.providers import PROVIDERS

    provider = PROVIDERS.get(settings.llm_provider)
    name = provider.display_name if provider else settings.llm_provider
    model = _model_for(settings)
    console.print(f"\nQ-Lens [dim]v{__version__} · {name} · {model}[/dim]\n")


def _print_usage(workspace: Workspace) -> None:
    """Print the LLM token/cost line after an analysis."""
    from qlens.llm.pricing import format_usage, pricing_url

    if workspace.usage is None:
        return
    model = _model_for(workspace.settings)
    line = format_usage(workspace.usage, model)
    if line is None:
        return
    console.print(f"  [dim]LLM: {line} ({model})[/dim]")
    url = pricing_url(workspace.settings.llm_provider)
    if url:
        console.print(f"  [dim]Pricing → [link={url}]{url}[/link][/dim]")


def _print_estimate(settings: QLensSettings, transcript: str, context: str) -> None:
    from qlens.llm.pricing import estimate_report_cost

    cost = estimate_report_cost(_model_for(settings), transcript, context)
    if cost is not None:
        console.print(f"  [dim]Estimated cost ~${cost:.2f}[/dim]")


def _print_key_hint(settings: QLensSettings) -> None:
    from qlens.providers import PROVIDERS

    spec = PROVIDERS.get(settings.llm_provider)
    if spec is None or not spec.key_env_var:
        return
    console.print(f"  [dim]Set {spec.key_env_var} (get a key from {spec.key_url})[/dim]")


def _write_export(output_dir: Path, data: bytes) -> Path:
    from qlens.stages.export import EXPORT_FILENAME

    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / EXPORT_FILENAME
    path.write_bytes(data)
    return path


def _print_report_path(path: Path) -> None:
    file_url = f"file://{path.resolve()}"
    console.print(f"\n  Report:  [link={file_url}]{path.name}[/link]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    transcript: Annotated[
        Path,
        typer.Argument(
            help="Transcript file (.txt, .md or .rtf, up to 5MB).",
            exists=True,
            file_okay=True,
            dir_okay=False,
        ),
    ],
    context: Annotated[
        str | None,
        typer.Option("--context", "-c", help="Context for the focus group."),
    ] = None,
    context_file: Annotated[
        Path | None,
        typer.Option(
            "--context-file",
            help="Read the focus group context from a file.",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    prompt: Annotated[
        str | None,
        typer.Option("--prompt", "-p", help="Custom analysis prompt to steer the report."),
    ] = None,
    output_dir: Annotated[
        Path,
        typer.Option("--output", "-o", help="Directory for the exported report."),
    ] = Path("."),
    llm_provider: Annotated[
        str | None,
        typer.Option("--llm", "-l", help="LLM provider: gemini, claude, chatgpt, local."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Model name (defaults to the provider's default)."),
    ] = None,
    save_json: Annotated[
        bool,
        typer.Option("--save-json", help=f"Also write the report as {REPORT_JSON_FILENAME}."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Analyse a transcript and write a self-contained HTML report."""
    from qlens.logging import setup_logging
    from qlens.stages.generate_insights import CREDENTIAL_MESSAGE
    from qlens.stages.ingest import UploadError
    from qlens.workspace import CONTEXT_REQUIRED, InputValidationError, Workspace

    log_path = setup_logging(output_dir=output_dir, verbose=verbose)

    if context_file is not None:
        try:
            context = context_file.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            console.print(f"[red]Could not read context file {context_file.name}.[/red]")
            console.print(f"  [dim]{type(exc).__name__}[/dim]")
            raise typer.Exit(1)
    if not context or not context.strip():
        console.print(f"[red]{CONTEXT_REQUIRED}[/red]")
        raise typer.Exit(1)

    try:
        settings = load_settings(
            llm_provider=llm_provider,
            llm_model=model,
            output_dir=output_dir,
        )
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    _print_header(settings)

    workspace = Workspace(settings)
    try:
        workspace.upload_file(transcript)
    except UploadError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)
    _print_estimate(settings, workspace.inputs.transcript or "", context)

    with console.status("Analysing transcript...", spinner="dots"):
        try:
            report = asyncio.run(workspace.analyze(context, prompt))
        except InputValidationError as exc:
            console.print(f"[red]{exc}[/red]")
            raise typer.Exit(1)

    if report is None:
        console.print(f"[red]{workspace.state.error}[/red]")
        if workspace.state.error == CREDENTIAL_MESSAGE:
            _print_key_hint(settings)
        console.print(f"  [dim]See {log_path} for details.[/dim]")
        raise typer.Exit(1)

    data = workspace.export()
    assert data is not None
    path = _write_export(output_dir, data)

    if save_json:
        json_path = output_dir / REPORT_JSON_FILENAME
        json_path.write_text(
            json.dumps(report.to_json_dict(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        console.print(f"  [dim]Report JSON: {json_path}[/dim]")

    console.print(
        f"  [dim]{len(report.archetype_mapping.data)} archetypes · "
        f"{len(report.top_themes.data)} themes · "
        f"{len(report.actionable_recommendations.data)} recommendations[/dim]"
    )
    _print_usage(workspace)
    _print_report_path(path)
    console.print("\n  [green]Done.[/green]")


# British English alias for analyze
analyse = app.command(name="analyse", hidden=True)(analyze)


@app.command()
def render(
    report_json: Annotated[
        Path,
        typer.Argument(
            help=f"A saved report ({REPORT_JSON_FILENAME} from --save-json).",
            exists=True,
            dir_okay=False,
        ),
    ],
    output_dir: Annotated[
        Path,
        typer.Option("--output", "-o", help="Directory for the exported report."),
    ] = Path("."),
) -> None:
    """Re-render a saved report JSON without calling the LLM."""
    from pydantic import ValidationError

    from qlens.llm.structured import AnalysisReport
    from qlens.stages.export import export_report
    from qlens.stages.render_html import render_report_html

    try:
        report = AnalysisReport.model_validate_json(report_json.read_text(encoding="utf-8"))
    except ValidationError as exc:
        console.print(f"[red]{report_json.name} is not a valid report:[/red]")
        console.print(f"  [dim]{exc.error_count()} validation errors[/dim]")
        raise typer.Exit(1)

    settings = load_settings()
    markup = render_report_html(report, settings.report_title)
    path = _write_export(output_dir, export_report(markup, report, settings.report_title))
    _print_report_path(path)


@app.command()
def schema() -> None:
    """Print the JSON schema the model is asked to fill."""
    from qlens.llm.structured import report_response_schema

    typer.echo(json.dumps(report_response_schema(), indent=2))


@app.command()
def serve(
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to serve on."),
    ] = 8150,
    open_browser: Annotated[
        bool,
        typer.Option("--open/--no-open", help="Open the workspace in the default browser."),
    ] = True,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Launch the Q-Lens web workspace."""
    import threading
    import webbrowser

    import uvicorn

    from qlens.server.app import create_app

    url = f"http://127.0.0.1:{port}/"
    console.print(f"\n  Workspace: [bold cyan]{url}[/bold cyan]\n")

    def _open_browser() -> None:
        import time

        time.sleep(1.0)
        webbrowser.open(url)

    if open_browser:
        threading.Thread(target=_open_browser, daemon=True).start()

    app_instance = create_app(output_dir=Path.cwd(), verbose=verbose)
    uvicorn.run(
        app_instance,
        host="127.0.0.1",
        port=port,
        log_level="info" if verbose else "warning",
    )
