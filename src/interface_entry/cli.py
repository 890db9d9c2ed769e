from __future__ import annotations

"""`sls-console` command line entry point."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Coroutine, Dict, NoReturn, Optional, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from business_logic.console.errors import ConsoleError
from business_service.console.layer import ExtensionDistributionError
from interface_entry.config.service_loader import (
    ServiceConfiguration,
    ServiceConfigurationError,
    load_service_configuration,
    resolve_config_path,
)
from interface_entry.pipeline import LocalPipeline, PipelineError, PipelineResult
from project_utility.config.paths import get_log_root
from project_utility.config.settings import ConsoleSettings, load_console_settings
from project_utility.logging import configure_logging

__all__ = ["app", "main"]

log = logging.getLogger("interface_entry.cli")

T = TypeVar("T")

app = typer.Typer(
    help="Package and deploy a service with the Console telemetry integration.",
    no_args_is_help=True,
    add_completion=False,
)


@dataclass(slots=True)
class CliContext:
    config_path: Optional[Path]
    options: Dict[str, Any]
    verbose: bool


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to serverless.yml."),
    org: Optional[str] = typer.Option(None, "--org", help="Override the org of the service configuration."),
    stage: Optional[str] = typer.Option(None, "--stage", "-s", help="Deployment stage."),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="Deployment region."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    load_dotenv()
    ctx.obj = CliContext(
        config_path=config,
        options={"org": org, "stage": stage, "region": region},
        verbose=verbose,
    )


@app.command("package")
def package_command(
    ctx: typer.Context,
    package: Optional[Path] = typer.Option(None, "--package", "-p", help="Output directory for the package."),
) -> None:
    """Build the deployment package."""

    pipeline = _build_pipeline(ctx)
    result = _run(pipeline.package(package))
    _print_result(result, f"Service packaged into {result.package_dir}")


@app.command("deploy")
def deploy_command(
    ctx: typer.Context,
    package: Optional[Path] = typer.Option(None, "--package", "-p", help="Deploy a previously built package."),
) -> None:
    """Package (unless --package is given) and deploy the service."""

    pipeline = _build_pipeline(ctx)
    result = _run(pipeline.deploy(package))
    _print_result(result, f"Service deployed (deployment {result.timestamp})")


@app.command("deploy-function")
def deploy_function_command(
    ctx: typer.Context,
    function: str = typer.Option(..., "--function", "-f", help="Name of the function to update."),
) -> None:
    """Update the configuration of a single deployed function."""

    pipeline = _build_pipeline(ctx)
    result = _run(pipeline.deploy_function(function))
    _print_result(result, f'Function "{function}" updated')


@app.command("rollback")
def rollback_command(
    ctx: typer.Context,
    timestamp: Optional[str] = typer.Option(None, "--timestamp", "-t", help="Deployment timestamp to restore."),
) -> None:
    """Roll back to a recorded deployment, or list deployments when no timestamp is given."""

    pipeline = _build_pipeline(ctx)
    result = _run(pipeline.rollback(timestamp))
    if timestamp is None:
        _print_deployments(result)
        return
    _print_result(result, f"Rolled back to deployment {timestamp} (recorded as {result.timestamp})")


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show whether the Console integration would be enabled for a deploy."""

    pipeline = _build_pipeline(ctx)
    report = _run(pipeline.status())

    table = Table(title=f"Console integration: {report.service}")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("Stage", report.stage)
    table.add_row("Region", report.region)
    table.add_row("Enabled", "yes" if report.decision.enabled else "no")
    table.add_row("Reason", report.decision.reason or "-")
    table.add_row("Org", report.decision.org or "-")
    table.add_row("Ingestion URL", report.ingestion_url)
    table.add_row("Supported functions", ", ".join(report.supported_functions) or "-")
    table.add_row("Latest deployment", report.latest_deployment or "-")
    if report.deployed_state is not None:
        table.add_row("Deployed with Console", "yes" if report.deployed_state.activation else "no")
    Console().print(table)


def _build_pipeline(ctx: typer.Context) -> LocalPipeline:
    state: CliContext = ctx.obj
    settings = load_console_settings()
    try:
        configuration = load_service_configuration(resolve_config_path(state.config_path))
    except ServiceConfigurationError as exc:
        _fail("SERVICE_CONFIGURATION_INVALID", str(exc))
    _configure_logging(settings, configuration, verbose=state.verbose)
    return LocalPipeline(configuration=configuration, settings=settings, options=state.options)


def _configure_logging(settings: ConsoleSettings, configuration: ServiceConfiguration, *, verbose: bool) -> None:
    log_root = get_log_root(configuration.service_dir, override=settings.log_root)
    configure_logging(
        log_root=log_root,
        level=logging.DEBUG if verbose else logging.INFO,
        telemetry_console_level=settings.telemetry_console_level,
    )


def _run(coroutine: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coroutine)
    except ConsoleError as exc:
        _fail(exc.code, str(exc))
    except (PipelineError, ExtensionDistributionError) as exc:
        _fail(getattr(exc, "code", type(exc).__name__), str(exc))


def _fail(code: str, message: str) -> NoReturn:
    log.debug("cli.command.failed", extra={"reason": code})
    Console(stderr=True).print(f"[bold red]Error[/bold red] [red]{code}[/red]: {message}", highlight=False)
    raise typer.Exit(code=1)


def _print_result(result: PipelineResult, headline: str) -> None:
    console = Console()
    console.print(f"[green]✔[/green] {headline}")
    if result.console_enabled:
        console.print("  Console integration: [bold green]enabled[/bold green]")
    else:
        console.print(f"  Console integration: [dim]disabled ({result.reason})[/dim]")


def _print_deployments(result: PipelineResult) -> None:
    console = Console()
    if not result.timestamps:
        console.print("No deployments recorded yet.")
        return
    table = Table(title="Deployments")
    table.add_column("Timestamp", style="cyan", no_wrap=True)
    table.add_column("Deployed at (UTC)")
    for timestamp in result.timestamps:
        table.add_row(timestamp, _format_timestamp(timestamp))
    console.print(table)
    console.print('Run "rollback --timestamp <timestamp>" to restore one of them.')


def _format_timestamp(timestamp: str) -> str:
    head = timestamp.split("-", 1)[0]
    if not head.isdigit():
        return "-"
    return datetime.fromtimestamp(int(head) / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
