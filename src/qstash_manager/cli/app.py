"""
Main CLI application entry point.

This module contains the main Typer application and command handlers
for QStash Manager.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional
import asyncio
import logging
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from qstash_manager import VERSION
from qstash_manager.config import ConfigPersistenceError, ConfigStore, StoreResult, TokenSource
from qstash_manager.config.settings import QStashManagerSettings, get_settings
from qstash_manager.core.client import OperationResult, QStashClient, create_client_from_resolution
from qstash_manager.core.client.types import (
    CreateScheduleOptions,
    DlqFilter,
    EnqueueMessageOptions,
    LogFilter,
    MessageState,
    PublishMessageOptions,
    UpsertQueueOptions,
    UrlGroupEndpoint,
)
from qstash_manager.utils.validation import (
    ValidationResult,
    is_localhost_url,
    validate_delay,
    validate_endpoint_name,
    validate_environment_name,
    validate_group_name,
    validate_message_body,
    validate_parallelism,
    validate_queue_name,
    validate_token,
    validate_url,
)

logger = logging.getLogger(__name__)

# Create the main Typer application
app = typer.Typer(
    name="qstash-manager",
    help="QStash Manager - manage Upstash QStash from the command line",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

config_app = typer.Typer(help="Manage environments and preferences", no_args_is_help=True)
env_app = typer.Typer(help="Manage credential environments", no_args_is_help=True)
prefs_app = typer.Typer(help="Show or change preferences", no_args_is_help=True)
groups_app = typer.Typer(help="Manage URL groups", no_args_is_help=True)
schedules_app = typer.Typer(help="Manage schedules", no_args_is_help=True)
queues_app = typer.Typer(help="Manage queues", no_args_is_help=True)
messages_app = typer.Typer(help="Publish and track messages", no_args_is_help=True)
dlq_app = typer.Typer(help="Inspect the dead letter queue", no_args_is_help=True)
keys_app = typer.Typer(help="Manage signing keys", no_args_is_help=True)

app.add_typer(config_app, name="config")
config_app.add_typer(env_app, name="env")
config_app.add_typer(prefs_app, name="prefs")
app.add_typer(groups_app, name="groups")
app.add_typer(schedules_app, name="schedules")
app.add_typer(queues_app, name="queues")
app.add_typer(messages_app, name="messages")
app.add_typer(dlq_app, name="dlq")
app.add_typer(keys_app, name="keys")

# Rich console for output
console = Console()


@dataclass
class CliState:
    """Global options shared by every command."""
    token: Optional[str] = None
    environment: Optional[str] = None


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"[bold blue]QStash Manager[/bold blue] version [green]{VERSION}[/green]")
        raise typer.Exit()


def _configure_logging(settings: QStashManagerSettings) -> None:
    logging.basicConfig(
        level=settings.effective_log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=settings.debug)],
        force=True,
    )


@app.callback()
def app_callback(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        "-t",
        help="QStash token (overrides QSTASH_TOKEN and the config file)",
    ),
    env: Optional[str] = typer.Option(
        None,
        "--env",
        "-e",
        help="Environment to take the token from instead of the default",
    ),
) -> None:
    """
    QStash Manager - manage Upstash QStash from the command line.

    Tokens are resolved from --token, then QSTASH_TOKEN, then the
    configured environments.
    """
    _configure_logging(get_settings())
    ctx.obj = CliState(token=token, environment=env)


# Shared helpers

def _state(ctx: typer.Context) -> CliState:
    return ctx.obj if isinstance(ctx.obj, CliState) else CliState()


def _build_store(settings: QStashManagerSettings) -> ConfigStore:
    return ConfigStore(config_dir=settings.config_dir, config_path=settings.config_path)


def _fail(message: Optional[str]) -> None:
    console.print(f"[red]Error:[/red] {message or 'Unknown error'}")
    raise typer.Exit(1)


def _check(result: ValidationResult) -> None:
    if not result.is_valid:
        _fail(result.error)


def _check_store_result(result: StoreResult) -> Any:
    if not result.success:
        _fail(result.error)
    return result.data


def _confirm(store: ConfigStore, prompt: str, yes: bool) -> None:
    """Ask before destructive actions unless disabled or --yes was given."""
    if yes or not store.get_preferences().confirm_destructive_actions:
        return
    if not typer.confirm(prompt, default=False):
        console.print("[dim]Aborted[/dim]")
        raise typer.Exit(0)


def _make_client(ctx: typer.Context, settings: QStashManagerSettings) -> QStashClient:
    state = _state(ctx)
    store = _build_store(settings)
    resolution = store.resolve_token(cli_token=state.token, environment_id=state.environment)
    if resolution is None:
        console.print("[red]Error:[/red] No QStash token found.")
        console.print(
            "[dim]Pass --token, set QSTASH_TOKEN, or add one with "
            "'qstash-manager config env add <id> <token>'[/dim]"
        )
        raise typer.Exit(1)

    source = resolution.source.value
    if resolution.source == TokenSource.CONFIG:
        source = f"{source}:{resolution.environment_id}"
    logger.debug(f"Using token from {source}")

    return create_client_from_resolution(
        resolution,
        base_url=settings.base_url,
        timeout=settings.timeout,
        retry=settings.to_retry_config(),
    )


def _run(
    ctx: typer.Context,
    operation: Callable[[QStashClient], Awaitable[OperationResult]],
) -> Any:
    """Run one client operation and return its data, exiting 1 on failure."""
    settings = get_settings()
    client = _make_client(ctx, settings)

    async def _run_async() -> OperationResult:
        async with client:
            return await operation(client)

    result = asyncio.run(_run_async())
    if not result.success:
        _fail(result.error)
    return result.data


def _format_ms(timestamp: Optional[int]) -> str:
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _paused(is_paused: bool) -> str:
    return "[yellow]paused[/yellow]" if is_paused else "[green]active[/green]"


# config

@config_app.command("show")
def config_show() -> None:
    """Show the config file location, environments and preferences."""
    settings = get_settings()
    store = _build_store(settings)

    table = Table(title="Current Configuration", show_header=True, header_style="bold magenta")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Config file", str(store.config_path))
    table.add_row("Exists", "yes" if store.exists() else "no")
    table.add_row("Default environment", store.get_default_environment() or "-")
    table.add_row("Environments", str(store.environment_count()))

    preferences = store.get_preferences()
    table.add_row("Color output", str(preferences.color_output))
    table.add_row("Confirm destructive actions", str(preferences.confirm_destructive_actions))
    table.add_row("API base URL", settings.base_url)
    table.add_row("Retries", str(settings.max_retries) if settings.retry_enabled else "disabled")

    console.print(table)


@config_app.command("delete")
def config_delete(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the config file with all stored environments."""
    store = _build_store(get_settings())
    _confirm(store, f"Delete {store.config_path}?", yes)
    if store.delete_config():
        console.print(f"[green]✓[/green] Deleted {store.config_path}")
    else:
        console.print("[dim]No config file to delete[/dim]")


@env_app.command("add")
def env_add(
    environment_id: str = typer.Argument(..., help="Environment id, e.g. production"),
    token: str = typer.Argument(..., help="QStash token for this environment"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    default: bool = typer.Option(False, "--default", help="Make this the default environment"),
) -> None:
    """Add a credential environment."""
    _check(validate_environment_name(environment_id))
    _check(validate_token(token))

    store = _build_store(get_settings())
    environment = _check_store_result(store.add_environment(environment_id, token, name))
    console.print(f"[green]✓[/green] Added environment [cyan]{environment.name}[/cyan]")

    if default:
        _check_store_result(store.set_default_environment(environment_id))
    console.print(f"[dim]Default environment: {store.get_default_environment()}[/dim]")


@env_app.command("list")
def env_list(
    show_tokens: bool = typer.Option(False, "--show-tokens", help="Show masked tokens"),
) -> None:
    """List configured environments."""
    store = _build_store(get_settings())
    entries = store.list_environments(include_token=show_tokens)
    if not entries:
        console.print("[dim]No environments configured[/dim]")
        return

    table = Table(title="Environments", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Default", justify="center")
    table.add_column("Created", style="dim")
    if show_tokens:
        table.add_column("Token", style="yellow")

    for entry in entries:
        row = [
            entry.id,
            entry.name,
            "[green]●[/green]" if entry.is_default else "",
            entry.created_at.strftime("%Y-%m-%d %H:%M"),
        ]
        if show_tokens:
            row.append(entry.masked_token or "")
        table.add_row(*row)

    console.print(table)


@env_app.command("use")
def env_use(environment_id: str = typer.Argument(..., help="Environment id")) -> None:
    """Make an environment the default."""
    store = _build_store(get_settings())
    outcome = _check_store_result(store.set_default_environment(environment_id))
    previous = outcome.previous_default or "none"
    console.print(
        f"[green]✓[/green] Default environment is now "
        f"[cyan]{store.get_default_environment()}[/cyan] [dim](was {previous})[/dim]"
    )


@env_app.command("update")
def env_update(
    environment_id: str = typer.Argument(..., help="Environment id"),
    token: Optional[str] = typer.Option(None, "--token", help="New token"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New display name"),
) -> None:
    """Change the token or display name of an environment."""
    if token is None and name is None:
        _fail("Nothing to update. Pass --token and/or --name")
    if token is not None:
        _check(validate_token(token))

    store = _build_store(get_settings())
    environment = _check_store_result(store.update_environment(environment_id, token=token, name=name))
    console.print(f"[green]✓[/green] Updated environment [cyan]{environment.name}[/cyan]")


@env_app.command("remove")
def env_remove(
    environment_id: str = typer.Argument(..., help="Environment id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove an environment."""
    store = _build_store(get_settings())
    _confirm(store, f"Remove environment '{environment_id}'?", yes)

    outcome = _check_store_result(store.remove_environment(environment_id))
    console.print(f"[green]✓[/green] Removed environment [cyan]{environment_id}[/cyan]")
    if outcome.default_affected:
        if outcome.new_default:
            console.print(f"[dim]Default environment is now {outcome.new_default}[/dim]")
        else:
            console.print("[dim]No environments left; default cleared[/dim]")


@prefs_app.command("show")
def prefs_show() -> None:
    """Show preferences."""
    store = _build_store(get_settings())
    for key, value in store.get_preferences().model_dump().items():
        console.print(f"[cyan]{key}[/cyan]: {value}")


@prefs_app.command("set")
def prefs_set(
    key: str = typer.Argument(..., help="Preference name, e.g. confirm_destructive_actions"),
    value: bool = typer.Argument(..., help="true or false"),
) -> None:
    """Change a preference."""
    store = _build_store(get_settings())
    try:
        store.update_preferences(**{key: value})
    except (ValueError, ConfigPersistenceError) as e:
        _fail(str(e))
    console.print(f"[green]✓[/green] {key} = {value}")


# Token

@app.command("validate")
def validate_command(ctx: typer.Context) -> None:
    """Check that the resolved token is accepted by QStash."""
    _run(ctx, lambda client: client.validate_token())
    console.print("[green]✓[/green] Token is valid")


# URL groups

@groups_app.command("list")
def groups_list(ctx: typer.Context) -> None:
    """List URL groups."""
    groups = _run(ctx, lambda client: client.list_url_groups())
    if not groups:
        console.print("[dim]No URL groups found[/dim]")
        return

    table = Table(title="URL Groups", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Endpoints", justify="right")
    table.add_column("Updated", style="dim")
    for group in groups:
        table.add_row(group.name, str(len(group.endpoints)), _format_ms(group.updated_at))
    console.print(table)


@groups_app.command("show")
def groups_show(ctx: typer.Context, name: str = typer.Argument(..., help="URL group name")) -> None:
    """Show the endpoints of a URL group."""
    group = _run(ctx, lambda client: client.get_url_group(name))
    table = Table(title=f"URL Group: {group.name}", show_header=True, header_style="bold magenta")
    table.add_column("Endpoint name", style="cyan")
    table.add_column("URL", style="green")
    for endpoint in group.endpoints:
        table.add_row(endpoint.name or "-", endpoint.url)
    console.print(table)


@groups_app.command("add-endpoint")
def groups_add_endpoint(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="URL group name (created if missing)"),
    url: str = typer.Argument(..., help="Endpoint URL"),
    endpoint_name: Optional[str] = typer.Option(None, "--name", "-n", help="Endpoint name"),
) -> None:
    """Add an endpoint to a URL group."""
    _check(validate_group_name(name))
    _check(validate_url(url))
    _check(validate_endpoint_name(endpoint_name))
    if is_localhost_url(url):
        console.print("[yellow]Warning:[/yellow] QStash cannot reach local addresses")

    endpoint = UrlGroupEndpoint(url=url, name=endpoint_name or None)
    _run(ctx, lambda client: client.upsert_url_group_endpoints(name, [endpoint]))
    console.print(f"[green]✓[/green] Added {url} to [cyan]{name}[/cyan]")


@groups_app.command("remove-endpoint")
def groups_remove_endpoint(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="URL group name"),
    url: str = typer.Argument(..., help="Endpoint URL"),
) -> None:
    """Remove an endpoint from a URL group."""
    _run(ctx, lambda client: client.remove_url_group_endpoints(name, [UrlGroupEndpoint(url=url)]))
    console.print(f"[green]✓[/green] Removed {url} from [cyan]{name}[/cyan]")


@groups_app.command("delete")
def groups_delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="URL group name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a URL group."""
    _confirm(_build_store(get_settings()), f"Delete URL group '{name}'?", yes)
    _run(ctx, lambda client: client.delete_url_group(name))
    console.print(f"[green]✓[/green] Deleted URL group [cyan]{name}[/cyan]")


# Schedules

@schedules_app.command("list")
def schedules_list(ctx: typer.Context) -> None:
    """List schedules."""
    schedules = _run(ctx, lambda client: client.list_schedules())
    if not schedules:
        console.print("[dim]No schedules found[/dim]")
        return

    table = Table(title="Schedules", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Cron")
    table.add_column("Destination", style="green")
    table.add_column("Status")
    for schedule in schedules:
        table.add_row(schedule.schedule_id, schedule.cron, schedule.destination, _paused(schedule.is_paused))
    console.print(table)


@schedules_app.command("create")
def schedules_create(
    ctx: typer.Context,
    destination: str = typer.Argument(..., help="Destination URL or URL group"),
    cron: str = typer.Argument(..., help="Cron expression, e.g. '*/5 * * * *'"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Message body"),
    method: Optional[str] = typer.Option(None, "--method", "-m", help="HTTP method"),
    retries: Optional[int] = typer.Option(None, "--retries", help="Delivery retries"),
) -> None:
    """Create a schedule."""
    if destination.startswith("http"):
        _check(validate_url(destination))
    _check(validate_message_body(body))

    options = CreateScheduleOptions(
        destination=destination, cron=cron, body=body, method=method, retries=retries
    )
    schedule_id = _run(ctx, lambda client: client.create_schedule(options))
    console.print(f"[green]✓[/green] Created schedule [cyan]{schedule_id}[/cyan]")


def _schedule_action(ctx: typer.Context, schedule_id: str, action: str) -> None:
    operations = {
        "pause": lambda client: client.pause_schedule(schedule_id),
        "resume": lambda client: client.resume_schedule(schedule_id),
        "delete": lambda client: client.delete_schedule(schedule_id),
    }
    _run(ctx, operations[action])
    console.print(f"[green]✓[/green] Schedule [cyan]{schedule_id}[/cyan]: {action} done")


@schedules_app.command("pause")
def schedules_pause(ctx: typer.Context, schedule_id: str = typer.Argument(..., help="Schedule id")) -> None:
    """Pause a schedule."""
    _schedule_action(ctx, schedule_id, "pause")


@schedules_app.command("resume")
def schedules_resume(ctx: typer.Context, schedule_id: str = typer.Argument(..., help="Schedule id")) -> None:
    """Resume a paused schedule."""
    _schedule_action(ctx, schedule_id, "resume")


@schedules_app.command("delete")
def schedules_delete(
    ctx: typer.Context,
    schedule_id: str = typer.Argument(..., help="Schedule id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a schedule."""
    _confirm(_build_store(get_settings()), f"Delete schedule '{schedule_id}'?", yes)
    _schedule_action(ctx, schedule_id, "delete")


# Queues

@queues_app.command("list")
def queues_list(ctx: typer.Context) -> None:
    """List queues."""
    queues = _run(ctx, lambda client: client.list_queues())
    if not queues:
        console.print("[dim]No queues found[/dim]")
        return

    table = Table(title="Queues", show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Parallelism", justify="right")
    table.add_column("Lag", justify="right")
    table.add_column("Status")
    for queue in queues:
        lag = str(queue.lag) if queue.lag is not None else "-"
        table.add_row(queue.name, str(queue.parallelism), lag, _paused(queue.is_paused))
    console.print(table)


@queues_app.command("upsert")
def queues_upsert(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Queue name"),
    parallelism: int = typer.Option(1, "--parallelism", "-p", help="Concurrent deliveries"),
) -> None:
    """Create a queue or change its parallelism."""
    _check(validate_queue_name(name))
    _check(validate_parallelism(parallelism))

    _run(ctx, lambda client: client.upsert_queue(UpsertQueueOptions(name=name, parallelism=parallelism)))
    console.print(f"[green]✓[/green] Queue [cyan]{name}[/cyan] (parallelism {parallelism})")


@queues_app.command("pause")
def queues_pause(ctx: typer.Context, name: str = typer.Argument(..., help="Queue name")) -> None:
    """Pause a queue."""
    _run(ctx, lambda client: client.pause_queue(name))
    console.print(f"[green]✓[/green] Paused queue [cyan]{name}[/cyan]")


@queues_app.command("resume")
def queues_resume(ctx: typer.Context, name: str = typer.Argument(..., help="Queue name")) -> None:
    """Resume a paused queue."""
    _run(ctx, lambda client: client.resume_queue(name))
    console.print(f"[green]✓[/green] Resumed queue [cyan]{name}[/cyan]")


@queues_app.command("delete")
def queues_delete(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Queue name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a queue."""
    _confirm(_build_store(get_settings()), f"Delete queue '{name}'?", yes)
    _run(ctx, lambda client: client.delete_queue(name))
    console.print(f"[green]✓[/green] Deleted queue [cyan]{name}[/cyan]")


# Messages

def _parse_headers(values: Optional[List[str]]) -> Optional[dict]:
    if not values:
        return None
    headers = {}
    for value in values:
        key, sep, header_value = value.partition(":")
        if not sep or not key.strip():
            _fail(f"Invalid header '{value}'. Use 'Name: value'")
        headers[key.strip()] = header_value.strip()
    return headers


@messages_app.command("publish")
def messages_publish(
    ctx: typer.Context,
    destination: str = typer.Argument(..., help="Destination URL or URL group"),
    body: Optional[str] = typer.Option(None, "--body", "-b", help="Message body"),
    method: Optional[str] = typer.Option(None, "--method", "-m", help="HTTP method"),
    delay: Optional[int] = typer.Option(None, "--delay", "-d", help="Delay in seconds"),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Forwarded header 'Name: value'"),
    queue: Optional[str] = typer.Option(None, "--queue", "-q", help="Enqueue onto this queue instead"),
) -> None:
    """Publish a message, or enqueue it with --queue."""
    if destination.startswith("http"):
        _check(validate_url(destination))
    _check(validate_message_body(body))
    if delay is not None:
        _check(validate_delay(delay))

    fields = dict(
        destination=destination, body=body, method=method, delay=delay, headers=_parse_headers(header)
    )
    if queue:
        _check(validate_queue_name(queue))
        options = EnqueueMessageOptions(queue_name=queue, **fields)
        result = _run(ctx, lambda client: client.enqueue_message(options))
    else:
        result = _run(ctx, lambda client: client.publish_message(PublishMessageOptions(**fields)))

    console.print(f"[green]✓[/green] Message id: [cyan]{result.message_id}[/cyan]")
    if result.deduplicated:
        console.print("[dim]Message was deduplicated[/dim]")


@messages_app.command("show")
def messages_show(ctx: typer.Context, message_id: str = typer.Argument(..., help="Message id")) -> None:
    """Show the latest state of a message."""
    message = _run(ctx, lambda client: client.get_message(message_id))
    lines = [
        f"[cyan]URL:[/cyan] {message.url}",
        f"[cyan]Method:[/cyan] {message.method}",
        f"[cyan]State:[/cyan] {message.state.value if message.state else 'unknown'}",
        f"[cyan]Time:[/cyan] {_format_ms(message.created_at)}",
    ]
    if message.queue_name:
        lines.append(f"[cyan]Queue:[/cyan] {message.queue_name}")
    if message.body:
        lines.append(f"[cyan]Body:[/cyan] {message.body}")
    console.print(Panel("\n".join(lines), title=f"Message {message.message_id}", border_style="blue"))


@messages_app.command("cancel")
def messages_cancel(ctx: typer.Context, message_id: str = typer.Argument(..., help="Message id")) -> None:
    """Cancel a pending message."""
    _run(ctx, lambda client: client.cancel_message(message_id))
    console.print(f"[green]✓[/green] Cancelled message [cyan]{message_id}[/cyan]")


# Dead letter queue

@dlq_app.command("list")
def dlq_list(
    ctx: typer.Context,
    count: Optional[int] = typer.Option(None, "--count", "-c", help="Page size"),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Pagination cursor"),
) -> None:
    """List messages in the dead letter queue."""
    response = _run(ctx, lambda client: client.list_dlq_messages(DlqFilter(count=count, cursor=cursor)))
    if not response.messages:
        console.print("[dim]Dead letter queue is empty[/dim]")
        return

    table = Table(title="Dead Letter Queue", show_header=True, header_style="bold magenta")
    table.add_column("DLQ ID", style="cyan", no_wrap=True)
    table.add_column("URL", style="green")
    table.add_column("Status", justify="right")
    table.add_column("Created", style="dim")
    for message in response.messages:
        status = str(message.response_status) if message.response_status is not None else "-"
        table.add_row(message.dlq_id, message.url, status, _format_ms(message.created_at))
    console.print(table)
    if response.cursor:
        console.print(f"[dim]Next page: --cursor {response.cursor}[/dim]")


@dlq_app.command("retry")
def dlq_retry(ctx: typer.Context, dlq_id: str = typer.Argument(..., help="DLQ message id")) -> None:
    """Republish a dead-lettered message and remove it from the DLQ."""
    result = _run(ctx, lambda client: client.retry_dlq_message(dlq_id))
    console.print(f"[green]✓[/green] Republished as [cyan]{result.message_id}[/cyan]")


@dlq_app.command("delete")
def dlq_delete(
    ctx: typer.Context,
    dlq_ids: List[str] = typer.Argument(..., help="One or more DLQ message ids"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete messages from the dead letter queue."""
    _confirm(_build_store(get_settings()), f"Delete {len(dlq_ids)} DLQ message(s)?", yes)
    if len(dlq_ids) == 1:
        _run(ctx, lambda client: client.delete_dlq_message(dlq_ids[0]))
        deleted = 1
    else:
        deleted = _run(ctx, lambda client: client.delete_dlq_messages(dlq_ids))
    console.print(f"[green]✓[/green] Deleted {deleted} DLQ message(s)")


# Signing keys

@keys_app.command("show")
def keys_show(ctx: typer.Context) -> None:
    """Show the current and next signing keys."""
    keys = _run(ctx, lambda client: client.get_signing_keys())
    console.print(f"[cyan]Current:[/cyan] {keys.current}")
    console.print(f"[cyan]Next:[/cyan]    {keys.next}")


@keys_app.command("rotate")
def keys_rotate(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Rotate signing keys."""
    _confirm(_build_store(get_settings()), "Rotate signing keys? Receivers must accept the new key.", yes)
    keys = _run(ctx, lambda client: client.rotate_signing_keys())
    console.print("[green]✓[/green] Signing keys rotated")
    console.print(f"[cyan]Current:[/cyan] {keys.current}")
    console.print(f"[cyan]Next:[/cyan]    {keys.next}")


# Logs

@app.command("logs")
def logs_command(
    ctx: typer.Context,
    state: Optional[str] = typer.Option(None, "--state", "-s", help="Filter by state, e.g. DELIVERED"),
    queue: Optional[str] = typer.Option(None, "--queue", "-q", help="Filter by queue"),
    message_id: Optional[str] = typer.Option(None, "--message", help="Filter by message id"),
    count: Optional[int] = typer.Option(None, "--count", "-c", help="Page size"),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Pagination cursor"),
) -> None:
    """Show message delivery logs."""
    parsed_state = None
    if state:
        try:
            parsed_state = MessageState(state.upper())
        except ValueError:
            valid = ", ".join(s.value for s in MessageState)
            _fail(f"Unknown state '{state}'. Valid states: {valid}")

    log_filter = LogFilter(
        state=parsed_state, queue_name=queue, message_id=message_id, count=count, cursor=cursor
    )
    response = _run(ctx, lambda client: client.get_logs(log_filter))
    if not response.logs:
        console.print("[dim]No log entries found[/dim]")
        return

    table = Table(title="Logs", show_header=True, header_style="bold magenta")
    table.add_column("Time", style="dim")
    table.add_column("Message ID", style="cyan", no_wrap=True)
    table.add_column("State")
    table.add_column("URL", style="green")
    for entry in response.logs:
        table.add_row(
            _format_ms(entry.time),
            entry.message_id,
            entry.state.value if entry.state else "-",
            entry.url,
        )
    console.print(table)
    if response.cursor:
        console.print(f"[dim]Next page: --cursor {response.cursor}[/dim]")


def main() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    main()
