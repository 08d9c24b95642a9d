"""
CLI commands for the Teams console.

Commands:
    teams-console run       - List teams and channels, send, chat, list messages
    teams-console login     - Sign in with Device Code Flow
    teams-console teams     - List accessible teams
    teams-console channels  - List channels in a team
    teams-console messages  - List recent messages in a channel
    teams-console send      - Send a message to a channel
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import TeamsService
from .auth import CredentialProvider
from .config import Configuration
from .exceptions import SendError, TeamsError, ValidationError

console = Console()

app = typer.Typer(
    help="Microsoft Teams console over the Microsoft Graph API",
    invoke_without_command=True,
)

GREETING = "Hello from the Python Graph API console!"
EXIT_COMMANDS = {"exit", "quit"}


@dataclass
class Settings:
    config_dir: Optional[Path] = None
    mock: Optional[bool] = None
    strict: Optional[bool] = None
    verbose: bool = False


def _build_service(settings: Settings) -> TeamsService:
    """Load configuration and wire the service."""
    configuration = Configuration.load(settings.config_dir)
    credentials = CredentialProvider(configuration)
    return TeamsService(
        credentials,
        configuration,
        use_local_mock_data=settings.mock,
        strict=settings.strict,
        verbose=settings.verbose,
    )


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj if isinstance(ctx.obj, Settings) else Settings()


def is_exit_command(line: Optional[str]) -> bool:
    """An empty line, "exit" or "quit" ends the interactive loop."""
    if line is None or line == "":
        return True
    return line.strip().lower() in EXIT_COMMANDS


async def interactive_send(
    service: TeamsService,
    team_id: str,
    channel_id: str,
    channel_name: str,
    read_line: Optional[Callable[[str], str]] = None,
) -> int:
    """
    Read lines from the operator and send each one to the channel.

    Returns:
        Number of messages sent
    """
    read_line = read_line or console.input
    sent = 0

    console.print("Interactive sending started.")
    console.print('   Type "exit" or "quit" (or an empty line) to stop.')
    console.print("   Lines with only spaces are skipped.\n")

    while True:
        try:
            line = read_line(f"Message for {channel_name}: ")
        except EOFError:
            line = None

        if is_exit_command(line):
            console.print("Interactive sending finished.")
            break

        if not line.strip():
            console.print("[yellow]Empty message skipped.[/yellow]\n")
            continue

        console.print(f'\nSending: "{line}"', markup=False)
        try:
            await service.send_channel_message(team_id, channel_id, line)
            console.print("[green]Message sent.[/green]\n")
            sent += 1
        except (SendError, ValidationError) as e:
            console.print(f"[red]Failed to send message: {e}[/red]")
            console.print("Enter the next message.\n")

    return sent


async def run_sequence(
    service: TeamsService,
    interactive: bool = True,
    read_line: Optional[Callable[[str], str]] = None,
):
    """Teams, first team's channels, greeting, chat loop, recent messages."""
    console.print("Fetching teams...")
    teams = await service.list_my_teams()
    if not teams:
        console.print("[yellow]No teams found, or listing them failed.[/yellow]")
        return

    first_team = teams[0]
    console.print(f"First team: {first_team.display_name} (ID: {first_team.id})")
    if not first_team.id:
        console.print("[red]The first team has no ID. Cannot continue.[/red]")
        return

    channels = await service.list_channels(first_team.id)
    if not channels:
        console.print(f"[yellow]No channels found in team {first_team.display_name}.[/yellow]")
        return

    first_channel = channels[0]
    console.print(f"First channel: {first_channel.display_name} (ID: {first_channel.id})")
    if not first_channel.id:
        console.print("[red]The first channel has no ID. Cannot continue.[/red]")
        return

    console.print(f"Sending '{GREETING}' to channel {first_channel.display_name}...")
    try:
        sent = await service.send_channel_message(first_team.id, first_channel.id, GREETING)
        console.print(f"Message sent. Message ID: {sent.id}")
    except SendError as e:
        console.print(f"[red]Failed to send message: {e}[/red]")

    if interactive:
        console.print("\n[bold]--- Interactive message sending ---[/bold]")
        await interactive_send(
            service,
            first_team.id,
            first_channel.id,
            first_channel.display_name or "unknown channel",
            read_line=read_line,
        )

    console.print(f"\nFetching messages of channel {first_channel.display_name}...")
    messages = await service.list_channel_messages(first_team.id, first_channel.id)
    if not messages:
        console.print("[yellow]No messages found, or listing them failed.[/yellow]")
        return

    console.print(f"Found {len(messages)} messages:")
    for message in messages:
        console.print(f"- {message.content} (from: {message.from_name})", markup=False)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Optional[Path] = typer.Option(
        None, "--config-dir", help="Directory holding appsettings.json"
    ),
    mock: Optional[bool] = typer.Option(
        None, "--mock/--live", help="Override UseLocalMockData"
    ),
    strict: Optional[bool] = typer.Option(
        None, "--strict/--fail-soft", help="Raise on read errors instead of returning nothing"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show error details"),
):
    """Microsoft Teams console. Runs the full demo when no command is given."""
    ctx.obj = Settings(config_dir=config_dir, mock=mock, strict=strict, verbose=verbose)
    if ctx.invoked_subcommand is None:
        run_cmd(ctx, interactive=True)


@app.command("run")
def run_cmd(
    ctx: typer.Context,
    interactive: bool = typer.Option(
        True, "--interactive/--no-interactive", help="Prompt for extra messages to send"
    ),
):
    """List teams and channels, send a greeting, chat, then list messages."""
    settings = _settings(ctx)
    try:
        service = _build_service(settings)
        asyncio.run(run_sequence(service, interactive=interactive))
    except KeyboardInterrupt:
        console.print("\n\nShutting down...")
    except Exception as e:
        console.print(f"[red]An error occurred: {e}[/red]")
        if settings.verbose:
            console.print_exception()


@app.command("login")
def login_cmd(ctx: typer.Context):
    """
    Sign in with Device Code Flow.

    This will:
    1. Display a code and URL
    2. Wait for you to sign in and authorize
    """
    configuration = Configuration.load(_settings(ctx).config_dir)
    credentials = CredentialProvider(configuration)

    typer.echo("\nAuthenticating with Microsoft Teams...")
    typer.echo("=" * 50)

    try:
        asyncio.run(credentials.get_delegated_client())
    except TeamsError as e:
        typer.secho(f"\nAuthentication failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(1)

    typer.secho("Successfully authenticated!", fg=typer.colors.GREEN)


@app.command("teams")
def list_teams_cmd(ctx: typer.Context):
    """List all accessible Teams."""
    service = _build_service(_settings(ctx))
    teams = asyncio.run(service.list_my_teams())

    if not teams:
        return

    table = Table(title="Teams", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Description")

    for team in teams:
        table.add_row(team.id, team.display_name, team.description or "-")

    console.print(table)


@app.command("channels")
def list_channels_cmd(
    ctx: typer.Context,
    team_id: str = typer.Argument(..., help="Team ID (from 'teams-console teams')"),
):
    """List channels in a team."""
    service = _build_service(_settings(ctx))
    channels = asyncio.run(service.list_channels(team_id))

    if not channels:
        return

    table = Table(title="Channels", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Description")

    for channel in channels:
        table.add_row(channel.id, channel.display_name, channel.membership_type, channel.description or "-")

    console.print(table)


@app.command("messages")
def list_messages_cmd(
    ctx: typer.Context,
    team_id: str = typer.Argument(..., help="Team ID"),
    channel_id: str = typer.Argument(..., help="Channel ID"),
    top: Optional[int] = typer.Option(None, "--top", "-n", help="Number of messages"),
):
    """List the most recent messages in a channel."""
    service = _build_service(_settings(ctx))
    messages = asyncio.run(service.list_channel_messages(team_id, channel_id, top=top))

    if not messages:
        return

    table = Table(title="Messages", show_header=True)
    table.add_column("From", style="cyan")
    table.add_column("Content")
    table.add_column("Created", style="dim")

    for message in messages:
        created = message.created_at.strftime("%Y-%m-%d %H:%M") if message.created_at else "-"
        table.add_row(message.from_name, message.content, created)

    console.print(table)


@app.command("send")
def send_cmd(
    ctx: typer.Context,
    team_id: str = typer.Argument(..., help="Team ID"),
    channel_id: str = typer.Argument(..., help="Channel ID"),
    message: str = typer.Argument(..., help="Message to send"),
):
    """Send a message to a channel."""
    service = _build_service(_settings(ctx))

    try:
        sent = asyncio.run(service.send_channel_message(team_id, channel_id, message))
    except (ValidationError, SendError) as e:
        typer.secho(f"Failed to send message: {e}", fg=typer.colors.RED)
        raise typer.Exit(1)

    typer.secho(f"Message sent! ID: {sent.id}", fg=typer.colors.GREEN)
