"""
CLI interface for Usage Lens.

Provides command-line access to every configured provider profile.
"""

import json
import logging
import sys
from typing import Iterable, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from usage_lens.config.loader import (
    PROFILES_FILE,
    default_profiles,
    load_profiles,
    save_profiles,
)
from usage_lens.core.models import DailyUsage, Session, UsageStats
from usage_lens.providers.claude_api import validate_api_key
from usage_lens.registry.aggregator import get_all_usage_stats
from usage_lens.registry.registry import ProviderRegistry

app = typer.Typer()
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_state = {"config_path": None}


def _setup_logging(verbose: bool, debug: bool) -> None:
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_registry() -> ProviderRegistry:
    """Registry for the configured profiles, or auto-detected ones if none are saved."""
    config_path = _state["config_path"]
    try:
        profiles = load_profiles(config_path)
    except FileNotFoundError:
        logger.info("No profiles file found, using auto-detected profiles")
        profiles = default_profiles()
    return ProviderRegistry.from_profiles(
        profiles,
        on_change=lambda updated: save_profiles(updated, config_path),
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(EXIT_CODE_FAIL)


def _print_json(items: Iterable) -> None:
    console.print_json(json.dumps([item.to_dict() for item in items]))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help=f"Profiles file (default: {PROFILES_FILE})"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress"),
    debug: bool = typer.Option(False, "--debug", help="Log skipped records and other diagnostics"),
):
    """Usage Lens CLI."""
    _state["config_path"] = config
    _setup_logging(verbose, debug)
    if ctx.invoked_subcommand is None:
        console.print("Usage Lens - Use --help to see available commands")


@app.command()
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profiles file")
):
    """Write a profiles file for every locally detected client."""
    try:
        try:
            load_profiles(_state["config_path"])
            if not force:
                _fail("Profiles file already exists (use --force to overwrite)")
        except FileNotFoundError:
            pass
        except ValueError:
            if not force:
                raise

        profiles = default_profiles()
        path = save_profiles(profiles, _state["config_path"])
        console.print(f"[green]✓[/] Wrote {len(profiles)} profile(s) to {path}")
        for profile in profiles:
            console.print(f"  {profile.id}: {profile.config_dir}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        _fail(str(e))


@app.command()
def profiles():
    """List configured profiles."""
    try:
        registry = _load_registry()
        infos = registry.profile_infos()
    except Exception as e:
        _fail(str(e))

    if not infos:
        console.print("\n[bold yellow]No profiles configured[/]")
        console.print("Run `usage-lens init` to detect installed clients.\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Profiles")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Provider")
    table.add_column("Source")
    table.add_column("Location")
    table.add_column("Enabled")
    table.add_column("Ready")
    for info in infos:
        location = "API key" if info.has_api_key else info.config_dir
        table.add_row(
            info.id,
            info.name,
            info.provider_type,
            info.source_type,
            location,
            "yes" if info.enabled else "no",
            "[green]yes[/]" if info.id in registry else "[red]no[/]",
        )
    console.print(table)


@app.command()
def stats(
    profile_id: Optional[str] = typer.Argument(None, help="Profile to query (default: all enabled)"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw usage records"),
):
    """Show token usage and estimated cost."""
    try:
        registry = _load_registry()
        if profile_id:
            results = [registry.get_usage_stats(profile_id)]
        else:
            results = get_all_usage_stats(registry)
    except Exception as e:
        _fail(str(e))

    if as_json:
        _print_json(results)
    else:
        _display_usage_stats(results)


def _display_usage_stats(results: List[UsageStats]) -> None:
    table = Table(title="Usage")
    table.add_column("Provider", style="cyan")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache Read", justify="right")
    table.add_column("Cache Write", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("Cost", justify="right", style="green")
    for result in results:
        table.add_row(
            result.provider,
            f"{result.total_input_tokens:,}",
            f"{result.total_output_tokens:,}",
            f"{result.total_cache_read_tokens:,}",
            f"{result.total_cache_write_tokens:,}",
            str(result.total_sessions),
            str(result.total_messages),
            f"${result.estimated_cost_usd:.2f}",
        )
    console.print(table)

    for result in results:
        if not result.model_breakdown:
            continue
        breakdown = Table(title=f"{result.provider} by model")
        breakdown.add_column("Model", style="cyan")
        breakdown.add_column("Input", justify="right")
        breakdown.add_column("Output", justify="right")
        breakdown.add_column("Cost", justify="right", style="green")
        for usage in result.model_breakdown.values():
            breakdown.add_row(
                usage.model,
                f"{usage.input_tokens:,}",
                f"{usage.output_tokens:,}",
                f"${usage.cost_usd:.2f}",
            )
        console.print(breakdown)


@app.command()
def sessions(
    profile_id: str = typer.Argument(..., help="Profile to query"),
    history: bool = typer.Option(False, "--history", help="Show recent sessions, not only active ones"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum sessions in history"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw session records"),
):
    """Show active sessions, or recent ones with --history."""
    try:
        registry = _load_registry()
        if history:
            results = registry.get_session_history(profile_id, limit)
        else:
            results = registry.get_active_sessions(profile_id)
    except Exception as e:
        _fail(str(e))

    if as_json:
        _print_json(results)
    elif not results:
        console.print("[yellow]No sessions found[/]")
    else:
        _display_sessions(results, "Session history" if history else "Active sessions")


def _display_sessions(results: List[Session], title: str) -> None:
    table = Table(title=title)
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Project")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("Last Active")
    table.add_column("Active")
    for session in results:
        table.add_row(
            session.id,
            session.project,
            session.model,
            f"{session.tokens_used:,}",
            str(session.message_count),
            session.last_active,
            "[green]●[/]" if session.is_active else "",
        )
    console.print(table)


@app.command()
def daily(
    profile_id: str = typer.Argument(..., help="Profile to query"),
    days: int = typer.Option(7, "--days", "-d", help="Number of most recent days"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw daily records"),
):
    """Show usage per day, newest first."""
    try:
        results = _load_registry().get_daily_usage(profile_id, days)
    except Exception as e:
        _fail(str(e))

    if as_json:
        _print_json(results)
    elif not results:
        console.print("[yellow]No daily usage found[/]")
    else:
        _display_daily(results)


def _display_daily(results: List[DailyUsage]) -> None:
    table = Table(title="Daily usage")
    table.add_column("Date", style="cyan")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Messages", justify="right")
    for day in results:
        table.add_row(
            day.date,
            f"{day.input_tokens:,}",
            f"{day.output_tokens:,}",
            str(day.sessions),
            str(day.messages),
        )
    console.print(table)


@app.command()
def limits(profile_id: str = typer.Argument(..., help="Profile to query")):
    """Show quota utilization where the provider reports it."""
    try:
        status = _load_registry().get_rate_limit_status(profile_id)
    except Exception as e:
        _fail(str(e))

    if not status.available:
        console.print("[yellow]Rate limit data is not available for this profile[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Rate limits")
    table.add_column("Window", style="cyan")
    table.add_column("Utilization", justify="right")
    table.add_column("Resets At")
    for window in status.windows:
        color = "red" if window.utilization >= 90 else "yellow" if window.utilization >= 70 else "green"
        table.add_row(
            window.label,
            f"[{color}]{window.utilization:.1f}%[/]",
            window.resets_at or "-",
        )
    console.print(table)


@app.command("validate-key")
def validate_key(api_key: str = typer.Argument(..., help="Anthropic Admin API key")):
    """Check that an Admin API key is accepted."""
    try:
        valid = validate_api_key(api_key)
    except Exception as e:
        _fail(str(e))

    if valid:
        console.print("[green]✓[/] API key is valid")
        sys.exit(EXIT_CODE_PASS)
    console.print("[red]✗[/] API key was rejected")
    sys.exit(EXIT_CODE_FAIL)


if __name__ == "__main__":
    app()
