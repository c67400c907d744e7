"""
pbi-monitor CLI.

Entry points for the host timer (``tick``) and for operators managing
automatic sync and inspecting the collected data.
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click

from pbi_monitor import __version__
from pbi_monitor.auth import AdminOAuthClient
from pbi_monitor.config import Settings, get_settings, load_settings
from pbi_monitor.core import (
    AdminApiClient,
    MonitoringStatistics,
    MonitorRepository,
    RepositoryJobScheduler,
    SetupService,
    SyncOrchestrator,
    SyncResult,
)
from pbi_monitor.utils.exceptions import MonitorError
from pbi_monitor.utils.logger import get_logger, setup_logging


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _repository(ctx: click.Context) -> MonitorRepository:
    return MonitorRepository(_settings(ctx).get_sync_config().db_path)


def _setup_service(ctx: click.Context) -> SetupService:
    repository = _repository(ctx)
    return SetupService(repository, RepositoryJobScheduler(repository))


def _echo_result(result: SyncResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.ran:
        click.echo(f"Sync skipped: {result.skipped_reason}")
        return

    status = "[OK] Sync completed" if result.success else "[FAIL] Sync finished with failures"
    click.echo(status)
    click.echo(f"  Workspaces:          {result.workspaces_synced}")
    click.echo(f"  Datasets:            {result.datasets_synced}")
    click.echo(f"  Skipped datasets:    {result.datasets_skipped}")
    click.echo(f"  New refresh entries: {result.history_entries_added}")
    click.echo(f"  Duration:            {result.duration_seconds}s")
    for failure in result.failures:
        click.echo(f"  - {failure}", err=True)


@click.group()
@click.version_option(version=__version__, prog_name="pbi-monitor")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: bool,
    debug: bool,
    json_logs: bool,
) -> None:
    """
    pbi-monitor - sync Power BI tenant monitoring data into a local database.

    Examples:

        # Run from cron every hour; syncs only when due
        pbi-monitor tick

        # Enable automatic sync every 12 hours
        pbi-monitor set-frequency 12 && pbi-monitor enable

        # Sync right now
        pbi-monitor sync
    """
    ctx.ensure_object(dict)

    try:
        settings = load_settings(config) if config else get_settings()
    except MonitorError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    # Flags win over the configured level
    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = settings.log_level
    setup_logging(level=log_level, json_output=json_logs or settings.log_json)

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def tick(ctx: click.Context, as_json: bool) -> None:
    """
    Scheduled entry point: sync if auto sync is enabled and due.
    """
    logger = get_logger(__name__)
    try:
        orchestrator = SyncOrchestrator.from_settings(_settings(ctx), _repository(ctx))
        result = orchestrator.run_auto_sync()
        if result.ran or ctx.obj.get("verbose"):
            _echo_result(result, as_json)
        sys.exit(0 if result.success else 1)
    except MonitorError as e:
        logger.error(f"Tick failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def sync(ctx: click.Context, as_json: bool) -> None:
    """
    Run a full sync now, ignoring the schedule.
    """
    logger = get_logger(__name__)
    try:
        orchestrator = SyncOrchestrator.from_settings(_settings(ctx), _repository(ctx))
        result = orchestrator.force_sync()
        if as_json or not result.ran:
            _echo_result(result, as_json)
        else:
            logger.sweep_summary(result.to_dict())
            for failure in result.failures:
                click.echo(f"  - {failure}", err=True)
        sys.exit(0 if result.success else 1)
    except MonitorError as e:
        logger.error(f"Sync failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def enable(ctx: click.Context) -> None:
    """Enable automatic sync and create the scheduled job."""
    try:
        result = _setup_service(ctx).enable_auto_sync()
        click.echo(f"[OK] {result.message}")
        click.echo(f"  Job ID: {result.details.get('job_id')}")
        click.echo("  Run 'pbi-monitor tick' hourly from your scheduler.")
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def disable(ctx: click.Context) -> None:
    """Disable automatic sync and cancel the scheduled job."""
    try:
        result = _setup_service(ctx).disable_auto_sync()
        click.echo(f"[OK] {result.message}")
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command("set-frequency")
@click.argument("hours", type=int)
@click.pass_context
def set_frequency(ctx: click.Context, hours: int) -> None:
    """Set the number of hours between automatic syncs (1-168)."""
    try:
        result = _setup_service(ctx).set_frequency(hours)
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    prefix = "[OK]" if result.ok else "[WARN]"
    click.echo(f"{prefix} {result.message}")
    sys.exit(0 if result.ok else 1)


@cli.command("job-status")
@click.pass_context
def job_status(ctx: click.Context) -> None:
    """Validate the scheduled job link and show schedule state."""
    try:
        result = _setup_service(ctx).validate_job_linkage()
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    prefix = "[OK]" if result.ok else "[REPAIRED]"
    click.echo(f"{prefix} {result.message}")
    for key, value in result.details.items():
        if key == "job":
            continue
        click.echo(f"  {key.replace('_', ' ').capitalize():<28} {value if value is not None else '(none)'}")


@cli.command("trigger-refresh")
@click.argument("workspace_id")
@click.argument("dataset_id")
@click.pass_context
def trigger_refresh(ctx: click.Context, workspace_id: str, dataset_id: str) -> None:
    """Ask Power BI to refresh a dataset."""
    try:
        orchestrator = SyncOrchestrator.from_settings(_settings(ctx), _repository(ctx))
        orchestrator.dataset_reconciler.trigger_refresh(workspace_id, dataset_id)
        click.echo("[OK] Refresh requested. Run 'pbi-monitor sync' later to see the outcome.")
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@click.pass_context
def stats(ctx: click.Context, as_json: bool) -> None:
    """Show aggregate dataset refresh statistics."""
    summary = MonitoringStatistics(_repository(ctx)).summary()

    if as_json:
        click.echo(json.dumps(summary, indent=2))
        return

    click.echo("Refresh Statistics")
    click.echo("=" * 40)
    click.echo(f"  Workspaces:                {summary['workspaces']}")
    click.echo(f"  Datasets:                  {summary['datasets']}")
    click.echo(f"  Refresh history entries:   {summary['refresh_history_entries']}")
    click.echo(f"  Failed datasets:           {summary['failed_datasets']}")
    click.echo(f"  Avg refresh duration (m):  {summary['average_refresh_duration_minutes']}")
    if summary["refreshable_by_workspace"]:
        click.echo("\n[Refreshable datasets by workspace]")
        for name, count in summary["refreshable_by_workspace"].items():
            click.echo(f"  {name:<30} {count}")


@cli.command()
@click.option("--workspace", "-w", "workspace_id", help="Only this workspace")
@click.pass_context
def datasets(ctx: click.Context, workspace_id: Optional[str]) -> None:
    """List reconciled datasets with their latest refresh state."""
    rows = _repository(ctx).list_datasets(workspace_id.lower() if workspace_id else None)
    if not rows:
        click.echo("No datasets synchronized yet.")
        return

    for ds in rows:
        last = ds.last_refresh.isoformat() if ds.last_refresh else "never"
        click.echo(
            f"{ds.name:<40} {ds.last_refresh_status or '-':<12} {last:<20} "
            f"avg {ds.average_refresh_duration_minutes:.2f}m over {ds.refresh_count}"
        )


@cli.command()
@click.argument("dataset_id")
@click.option("--limit", "-n", default=20, show_default=True, help="Entries to show")
@click.pass_context
def history(ctx: click.Context, dataset_id: str, limit: int) -> None:
    """Show recorded refresh history for a dataset, newest first."""
    entries = _repository(ctx).list_refresh_history(dataset_id.lower(), limit=limit)
    if not entries:
        click.echo("No refresh history recorded.")
        return

    for entry in entries:
        click.echo(
            f"{entry.start_time.isoformat():<28} {entry.status.value:<11} "
            f"{entry.refresh_type:<12} {entry.duration_minutes:>8.2f}m  {entry.refresh_id}"
        )
        if entry.error_message:
            click.echo(f"    {entry.error_message}")


@cli.command()
@click.option("--clear-token-cache", is_flag=True, help="Discard the cached access token first")
@click.pass_context
def validate(ctx: click.Context, clear_token_cache: bool) -> None:
    """Validate credentials and admin API connectivity."""
    try:
        api_config = _settings(ctx).get_admin_api_config()
        oauth = AdminOAuthClient(api_config)
        if clear_token_cache:
            oauth.clear_cache()
        oauth.validate_credentials()
        click.echo("[OK] Credentials accepted by Microsoft Entra ID")

        AdminApiClient(api_config, oauth_client=oauth).validate_connection()
        click.echo("[OK] Admin API connection successful")
        get_logger(__name__).success("Validation complete", tenant_id=api_config.tenant_id)
    except MonitorError as e:
        click.echo(f"[FAIL] Admin API connection failed: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--frequency", type=int, help="Hours between automatic syncs (1-168)")
@click.pass_context
def install(ctx: click.Context, frequency: Optional[int]) -> None:
    """Create the setup record with defaults from the configuration."""
    try:
        settings = _settings(ctx)
        result = _setup_service(ctx).install(
            authority_url=settings.pbi_authority_url,
            api_base_url=settings.pbi_api_base_url,
            frequency_hours=frequency,
            default_frequency_hours=settings.get_sync_config().frequency_hours,
        )
    except MonitorError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"[OK] {result.message}")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def uninstall(ctx: click.Context, yes: bool) -> None:
    """Cancel the scheduled job and delete the setup record."""
    if not yes and not click.confirm("Remove setup and cancel the scheduled job?"):
        click.echo("Cancelled.")
        return
    result = _setup_service(ctx).uninstall()
    click.echo(f"[OK] {result.message}")


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """
    Show current configuration (secrets masked) and setup state.
    """
    try:
        settings = _settings(ctx)
        sync_config = settings.get_sync_config()
    except MonitorError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    click.echo("Current Configuration")
    click.echo("=" * 40)

    click.echo("\n[Admin API]")
    click.echo(f"  Tenant ID:     {settings.pbi_tenant_id or '(not set)'}")
    click.echo(f"  Client ID:     {settings.pbi_client_id or '(not set)'}")
    secret = settings.pbi_client_secret.get_secret_value()
    click.echo(f"  Client Secret: {'********' if secret else '(not set)'}")
    click.echo(f"  Authority:     {settings.pbi_authority_url}")
    click.echo(f"  API Base URL:  {settings.pbi_api_base_url}")

    click.echo("\n[Sync]")
    click.echo(f"  Database:      {sync_config.db_path}")
    click.echo(f"  History top:   {sync_config.history_top}")
    workspaces = ", ".join(sync_config.workspace_ids) or "(all)"
    click.echo(f"  Workspaces:    {workspaces}")

    state = MonitorRepository(sync_config.db_path).get_setup()
    click.echo("\n[Setup]")
    click.echo(f"  Auto sync:     {'enabled' if state.auto_sync_enabled else 'disabled'}")
    click.echo(f"  Frequency:     {state.sync_frequency_hours}h")
    click.echo(f"  Last sync:     {state.last_auto_sync or 'never'}")
    click.echo(f"  Last duration: {state.last_sync_duration_seconds}s")
    click.echo(f"  Job ID:        {state.scheduled_job_id or '(none)'}")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
