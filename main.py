#!/usr/bin/env python3
"""
AI Analysis - Multi-Provider Analysis Orchestration
===================================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                              # Show all commands
    python main.py check-config                        # Validate configuration
    python main.py services                            # List enabled services
    python main.py health [SERVICE]                    # Check service health
    python main.py metrics [SERVICE]                   # Show request metrics
    python main.py analyze --content "..."             # Analyze content
    python main.py compare --content "..." --services gpt4,claude
"""

import sys
import asyncio
import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from aianalysis.config.settings import get_settings
from aianalysis.ai.service_manager import AIServiceManager
from aianalysis.services.analysis_service import AnalysisService, error_response
from aianalysis.utils.logging import configure_application_logging
from aianalysis.utils.exceptions import AIAnalysisError

console = Console()
logger = logging.getLogger(__name__)


def _setup(ctx) -> AnalysisService:
    """Load settings, configure logging and build the analysis service."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return AnalysisService(AIServiceManager.from_settings(settings))


def _run(ctx, operation):
    """Run one service operation, always cleaning up the manager."""
    async def runner():
        service = _setup(ctx)
        try:
            return await operation(service)
        finally:
            await service.shutdown()

    try:
        return asyncio.run(runner())
    except AIAnalysisError as e:
        status, body = error_response(e)
        console.print(f"[bold red]❌ {body['error']}[/bold red] (status {status})")
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """AI Analysis - multi-provider content analysis with automatic fallback."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate environment configuration."""
    console.print("[bold blue]🔧 Checking AI Analysis Configuration[/bold blue]")

    try:
        settings = get_settings()
    except AIAnalysisError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    manager_config = settings.ai.build_manager_config()

    table = Table(title="AI Services")
    table.add_column("Service", style="cyan")
    table.add_column("API Key", style="green")
    table.add_column("Enabled")
    table.add_column("Model")

    configured = set(settings.ai.get_configured_services())
    for service_id in settings.ai.get_configured_services() + [
        s for s in settings.ai.enabled_services if s not in configured
    ]:
        provider = settings.ai.get_provider_settings(service_id)
        table.add_row(
            service_id.value,
            "✅" if service_id in configured else "❌ missing",
            "✅" if service_id in manager_config.enabled_services else "—",
            provider.model or "default",
        )

    console.print(table)
    console.print(f"Default service: [cyan]{manager_config.default_service.value}[/cyan]")
    console.print(f"Fallback order: [cyan]{', '.join(s.value for s in manager_config.fallback_order)}[/cyan]")

    warnings = manager_config.validate_configuration()
    for warning in warnings:
        console.print(f"[yellow]⚠️  {warning}[/yellow]")

    console.print("[bold green]✅ Configuration is valid[/bold green]")


@cli.command()
@click.pass_context
def services(ctx):
    """List enabled AI services."""
    result = _run(ctx, lambda service: service.services())

    console.print(f"[bold blue]Enabled services ({result['count']})[/bold blue]")
    for service_id in result['enabled_services']:
        console.print(f"  • {service_id}")


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def health(ctx, service):
    """Check health of one SERVICE or of every enabled service."""
    result = _run(ctx, lambda svc: svc.health(service))

    health_map = result['health'] if service is None else {service: result['health']}

    table = Table(title="Service Health")
    table.add_column("Service", style="cyan")
    table.add_column("Status")
    for service_id, healthy in health_map.items():
        table.add_row(service_id, "✅ Healthy" if healthy else "❌ Unhealthy")
    console.print(table)

    if not all(health_map.values()):
        sys.exit(1)


@cli.command()
@click.argument('service', required=False)
@click.pass_context
def metrics(ctx, service):
    """Show request metrics of one SERVICE or of every enabled service."""
    result = _run(ctx, lambda svc: svc.metrics(service))

    metrics_map = result['metrics'] if service is None else {service: result['metrics']}

    table = Table(title="Service Metrics")
    table.add_column("Service", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Avg ms", justify="right")
    table.add_column("Circuit")
    table.add_column("Healthy")

    for service_id, m in metrics_map.items():
        table.add_row(
            service_id,
            str(m['total_requests']),
            str(m['successful_requests']),
            str(m['failed_requests']),
            f"{m['average_response_time']:.0f}",
            m['circuit_breaker_state'] or "—",
            "✅" if m['is_healthy'] else "❌",
        )
    console.print(table)


def _read_content(content, file):
    if file:
        return Path(file).read_text(encoding='utf-8')
    return content


@cli.command()
@click.option('--content', help='Content to analyze')
@click.option('--file', 'file', type=click.Path(exists=True, dir_okay=False), help='Read content from file')
@click.option('--content-type', default='text/plain', help='Content type (default: text/plain)')
@click.option('--service', help='Preferred service')
@click.option('--json-output', is_flag=True, help='Print raw JSON')
@click.pass_context
def analyze(ctx, content, file, content_type, service, json_output):
    """Analyze content with automatic fallback between services."""
    text = _read_content(content, file)
    result = _run(ctx, lambda svc: svc.analyze(text, content_type, service))

    if json_output:
        click.echo(json.dumps(result, indent=2, default=str))
        return

    metadata = result['metadata']
    console.print(
        f"[bold green]✅ Analyzed by {metadata['service_id']}[/bold green] "
        f"({metadata['model']}, {result['processing_time']}ms, confidence {result['confidence']:.2f})"
    )
    console.print(result['content'])

    if metadata.get('suggestions'):
        console.print("\n[bold]Suggestions:[/bold]")
        for suggestion in metadata['suggestions']:
            console.print(f"  • {suggestion}")


@cli.command()
@click.option('--content', help='Content to analyze')
@click.option('--file', 'file', type=click.Path(exists=True, dir_okay=False), help='Read content from file')
@click.option('--content-type', default='text/plain', help='Content type (default: text/plain)')
@click.option('--services', 'service_list', required=True, help='Comma separated services, e.g. gpt4,claude')
@click.pass_context
def compare(ctx, content, file, content_type, service_list):
    """Analyze the same content with several services."""
    text = _read_content(content, file)
    requested = [s.strip() for s in service_list.split(',') if s.strip()]
    result = _run(ctx, lambda svc: svc.compare(text, content_type, requested))

    table = Table(title="Service Comparison")
    table.add_column("Requested", style="cyan")
    table.add_column("Answered by")
    table.add_column("Confidence", justify="right")
    table.add_column("Time ms", justify="right")
    table.add_column("Error")

    for service_id, response in result['results'].items():
        table.add_row(
            service_id,
            response['metadata']['service_id'],
            f"{response['confidence']:.2f}",
            str(response['processing_time']),
            "",
        )
    for service_id, error in result.get('errors', {}).items():
        table.add_row(service_id, "—", "—", "—", error)

    console.print(table)
    summary = result['comparison']
    console.print(
        f"{summary['successful_services']}/{summary['total_services']} services succeeded"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 AI Analysis interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
