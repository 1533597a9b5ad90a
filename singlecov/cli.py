"""
singlecov CLI - audit coverage reports and check repository layout.

Thin boundary over the library: loads configuration, runs a check, prints
the findings and turns failures into a non-zero exit status.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from singlecov.config import CONFIG_FILE_NAME, ConfigLoader, SingleCovConfig
from singlecov.coverage.adapters import load_coverage_json
from singlecov.enforcement.auditor import AuditResult
from singlecov.enforcement.completeness import (
    check_completeness,
    check_declarations_used,
    check_full_coverage,
    glob_files,
)
from singlecov.errors import SingleCovError
from singlecov.logs import configure_logging
from singlecov.session import SingleCov

app = typer.Typer(
    name="singlecov",
    help="Per-file test coverage enforcement",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        from singlecov import __version__

        console.print(f"[bold blue]singlecov[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Verbose logging"),
) -> None:
    """singlecov - every file covered by exactly one test."""
    configure_logging(verbose)


def _load_config(config_path: str | None) -> SingleCovConfig:
    try:
        if config_path:
            return ConfigLoader.from_yaml(config_path)
        return ConfigLoader.discover()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _parse_expectation(value: str) -> tuple[str, int]:
    file, _, count = value.partition("=")
    if not count:
        return file, 0
    try:
        return file, int(count)
    except ValueError as e:
        raise typer.BadParameter(f"Uncovered count must be an integer: {value}") from e


def _display_audit(result: AuditResult) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("File", style="cyan")
    table.add_column("Verdict")
    table.add_column("Uncovered", justify="right")
    table.add_column("Configured", justify="right")

    colors = {"matched": "green", "improved": "yellow", "regressed": "red", "no_coverage": "red"}
    for verdict in result.verdicts:
        color = colors[verdict.kind.value]
        table.add_row(
            verdict.file,
            f"[{color}]{verdict.kind.value}[/{color}]",
            str(verdict.actual_uncovered),
            str(verdict.expected_uncovered),
        )
    console.print(table)

    for diagnostic in result.diagnostics:
        style = "yellow" if diagnostic.is_warning else "red"
        console.print(diagnostic.message, style=style, markup=False, highlight=False)


@app.command()
def audit(
    coverage_json: str = typer.Argument(..., help="coverage.py JSON report (`coverage json`)"),
    expect: list[str] = typer.Option(
        None, "--expect", "-e", help="Declared file, optionally with uncovered count: lib/a.py=2"
    ),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to singlecov.yaml"),
    report: str = typer.Option(None, "--report", "-r", help="Write coverage of declared files here"),
    format_: str = typer.Option("console", "--format", "-f", help="Output format: console, json"),
) -> None:
    """
    Audit a coverage.py JSON report against declared uncovered counts.

    Declarations come from --expect options, or from `expectations` in
    singlecov.yaml when no option is given.
    """
    config = _load_config(config_path)
    # the report comes from another process, whose imports are unknown here
    session = SingleCov(config, is_preloaded=lambda path: False)

    expectations = [_parse_expectation(e) for e in expect] if expect else config.expectations.items()
    if not expectations:
        console.print("[yellow]No declared files[/yellow] - use --expect or `expectations` in the config")
        raise typer.Exit(1)

    try:
        for file, count in expectations:
            session.covered(file=file, uncovered=count)
        raw = load_coverage_json(coverage_json, base=config.root)
    except (SingleCovError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if report:
        written = session.write_report(raw, report)
        console.print(f"[green]✓[/green] Report written to {written}")

    result = session.audit(raw)
    if format_ == "json":
        console.print_json(json.dumps(result.to_dict()))
    else:
        _display_audit(result)

    if not result.passed:
        raise typer.Exit(1)
    if format_ != "json":
        console.print("[green]✓ Coverage matches declarations[/green]")


@app.command()
def tested(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to singlecov.yaml"),
) -> None:
    """Check that every production file has a test file."""
    config = _load_config(config_path)
    resolver = config.build_resolver()
    production = glob_files(config.root, config.production_patterns)
    tests = glob_files(config.root, config.test_patterns)

    try:
        check_completeness(production, tests, config.allowed_untested, resolver)
    except SingleCovError as e:
        console.print(Panel(str(e), title="Untested files", border_style="red"))
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] {len(production)} file(s) have tests")


@app.command()
def used(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to singlecov.yaml"),
) -> None:
    """Check that every test file declares what it covers."""
    config = _load_config(config_path)
    tests = glob_files(config.root, config.test_patterns)

    try:
        check_declarations_used(tests, config.root)
    except SingleCovError as e:
        console.print(Panel(str(e), title="Undeclared tests", border_style="red"))
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] {len(tests)} test file(s) declare coverage")


@app.command()
def complete(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to singlecov.yaml"),
) -> None:
    """Check that `currently_complete` lists exactly the fully covered test files."""
    config = _load_config(config_path)
    tests = glob_files(config.root, config.test_patterns)

    try:
        check_full_coverage(tests, config.currently_complete, config.root)
    except SingleCovError as e:
        console.print(Panel(str(e), title="Full coverage drift", border_style="red"))
        raise typer.Exit(1) from e

    console.print(f"[green]✓[/green] {len(config.currently_complete)} test file(s) fully covered")


@app.command()
def resolve(
    test_path: str = typer.Argument(..., help="Test file to map"),
    config_path: str = typer.Option(None, "--config", "-c", help="Path to singlecov.yaml"),
    check: bool = typer.Option(True, "--check/--no-check", help="Require the file to exist"),
) -> None:
    """Show the production file a test file covers."""
    config = _load_config(config_path)
    resolver = config.build_resolver()

    try:
        file = resolver.resolve(test_path) if check else resolver.guess(test_path)
    except SingleCovError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(file, markup=False, highlight=False)


@app.command()
def init(
    path: str = typer.Argument(".", help="Project root to initialize"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
) -> None:
    """Create singlecov.yaml with default settings."""
    target_path = Path(path)
    config_file = target_path / CONFIG_FILE_NAME

    if config_file.exists() and not force:
        console.print(f"[yellow]⚠️  Config file already exists:[/yellow] {config_file}")
        console.print("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    target_path.mkdir(parents=True, exist_ok=True)
    config_file.write_text(ConfigLoader.generate_sample_config())
    console.print(f"[green]✓[/green] Created {config_file}")


if __name__ == "__main__":
    app()
