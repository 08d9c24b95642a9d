"""
Microsoft Teams console over the Microsoft Graph API.

TeamsService decides, per operation, which client serves it:
- Reads (teams, channels, messages) use application credentials, falling
  back to the delegated client when no client secret is configured
- Sending uses delegated (Device Code Flow) credentials

With UseLocalMockData enabled every operation is served from the
SampleData configuration section instead of Graph.

Reads fail soft: errors are reported and an empty list is returned,
unless StrictMode is enabled. Sending always raises on failure.
"""

from typing import List, Optional

from rich.console import Console

from .auth import CredentialProvider
from .config import Configuration
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    RemoteApiError,
    SendError,
    TeamsError,
    ValidationError,
)
from .graph_client import DEFAULT_MESSAGE_PAGE_SIZE, SampleDataClient, TeamsClient
from .models import Channel, ChatMessage, SampleDataConfig, Team

console = Console()

__all__ = [
    "TeamsService",
    "CredentialProvider",
    "Configuration",
    "Team",
    "Channel",
    "ChatMessage",
    "SampleDataConfig",
]


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class TeamsService:
    """
    Teams operations for the console.

    The mock/live decision is made once, here; after construction the
    only state that changes is the credential provider's client cache.
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        configuration: Configuration,
        use_local_mock_data: Optional[bool] = None,
        strict: Optional[bool] = None,
        message_page_size: Optional[int] = None,
        verbose: bool = False,
    ):
        if credentials is None:
            raise TypeError("credentials is required")
        if configuration is None:
            raise TypeError("configuration is required")

        self.configuration = configuration
        self.verbose = verbose

        if use_local_mock_data is not None:
            self.use_local_mock_data = use_local_mock_data
        else:
            try:
                self.use_local_mock_data = configuration.get_bool("UseLocalMockData", False)
            except ConfigurationError:
                self.use_local_mock_data = False

        if strict is not None:
            self.strict = strict
        else:
            try:
                self.strict = configuration.get_bool("StrictMode", False)
            except ConfigurationError:
                self.strict = False

        if message_page_size is not None:
            self.message_page_size = message_page_size
        else:
            try:
                self.message_page_size = configuration.get_int("MessagePageSize", DEFAULT_MESSAGE_PAGE_SIZE)
            except ConfigurationError:
                self.message_page_size = DEFAULT_MESSAGE_PAGE_SIZE
        if self.message_page_size <= 0:
            self.message_page_size = DEFAULT_MESSAGE_PAGE_SIZE

        self.sample_data = SampleDataConfig()
        if self.use_local_mock_data:
            try:
                self.sample_data = SampleDataConfig.from_dict(configuration.get_section("SampleData"))
            except (ConfigurationError, TypeError, AttributeError, ValueError) as e:
                console.print(f"[yellow]Could not load sample data, using none: {e}[/yellow]")
            console.print("[cyan]Using local mock data instead of the Teams API.[/cyan]")
            self.credentials = CredentialProvider.from_client(SampleDataClient(self.sample_data))
        else:
            self.credentials = credentials

    async def _read_client(self) -> TeamsClient:
        """Application client, or the delegated one if no secret is configured."""
        try:
            return self.credentials.get_application_client()
        except ConfigurationError as e:
            console.print(f"[yellow]{e}[/yellow]")
            console.print("[dim]Falling back to delegated (device code) sign-in.[/dim]")
            return await self.credentials.get_delegated_client()

    def _report_failure(self, what: str, error: Exception):
        console.print(f"[red]Error while trying to {what}: {error}[/red]")
        if self.verbose:
            console.print(f"[dim]Details: {error!r}[/dim]")
            if error.__cause__ is not None:
                console.print(f"[dim]Caused by: {error.__cause__!r}[/dim]")

    async def list_my_teams(self) -> List[Team]:
        """List the teams this app can see."""
        console.print("\n[bold cyan]--- Listing accessible teams ---[/bold cyan]")

        try:
            client = await self._read_client()
            teams = await client.list_my_teams()
        except TeamsError as e:
            if self.strict:
                raise
            self._report_failure("list teams", e)
            return []

        if not teams:
            console.print(
                "[yellow]No teams found, or the app cannot access them. "
                "Check that it has Team.ReadBasic.All or Team.Read.All permission.[/yellow]"
            )
            return []

        for team in teams:
            console.print(
                f"Team ID: {team.id}, Name: {team.display_name}, "
                f"Description: {team.description or 'none'}"
            )
        return teams

    async def list_channels(self, team_id: str) -> List[Channel]:
        """List the channels of a team; blank team ids yield no channels."""
        console.print(f"\n[bold cyan]--- Listing channels of team {team_id} ---[/bold cyan]")

        if _is_blank(team_id):
            console.print("[yellow]Team ID is empty.[/yellow]")
            return []

        try:
            client = await self._read_client()
            channels = await client.list_team_channels(team_id)
        except TeamsError as e:
            if self.strict:
                raise
            self._report_failure(f"list channels of team {team_id}", e)
            return []

        if not channels:
            console.print(f"[yellow]No channels found for team {team_id}.[/yellow]")
            return []

        for channel in channels:
            console.print(
                f"Channel ID: {channel.id}, Name: {channel.display_name}, "
                f"Description: {channel.description or 'none'}"
            )
        return channels

    async def send_channel_message(self, team_id: str, channel_id: str, content: str) -> ChatMessage:
        """
        Post content to a channel as the signed-in user.

        Raises:
            ValidationError: If any argument is blank (no client is contacted)
            SendError: If authentication or the Graph call fails
        """
        console.print(f"\n[bold cyan]--- Sending message to team {team_id}, channel {channel_id} ---[/bold cyan]")

        if _is_blank(team_id) or _is_blank(channel_id) or _is_blank(content):
            raise ValidationError("Team ID, channel ID and message content must not be empty.")

        try:
            client = await self.credentials.get_delegated_client()
            message = await client.send_channel_message(team_id, channel_id, content)
        except ConfigurationError as e:
            raise SendError(
                f"Message not sent: {e}. Set GraphApi:TenantId and GraphApi:ClientId "
                "for an app registration that allows public client flows."
            ) from e
        except AuthenticationError as e:
            raise SendError(
                f"Message not sent: {e}. Complete the device code sign-in and make sure "
                "the account has the ChannelMessage.Send permission."
            ) from e
        except RemoteApiError as e:
            raise SendError(
                f"Message not sent: {e}. Check that the signed-in user is a member of the "
                "team and that ChannelMessage.Send is consented."
            ) from e
        except Exception as e:
            raise SendError(f"Message not sent: {e}") from e

        console.print(f"[green]Message sent. ID: {message.id}[/green]")
        return message

    async def list_channel_messages(
        self, team_id: str, channel_id: str, top: Optional[int] = None
    ) -> List[ChatMessage]:
        """
        Most recently modified messages of a channel, at most top of them.

        A missing or non-positive top uses the configured page size.
        """
        if top is None or top <= 0:
            top = self.message_page_size
        console.print(
            f"\n[bold cyan]--- Listing latest {top} messages of team {team_id}, "
            f"channel {channel_id} ---[/bold cyan]"
        )

        if _is_blank(team_id) or _is_blank(channel_id):
            console.print("[yellow]Team ID and channel ID must not be empty.[/yellow]")
            return []

        try:
            client = await self._read_client()
            messages = await client.list_channel_messages(team_id, channel_id, top=top)
        except TeamsError as e:
            if self.strict:
                raise
            self._report_failure(f"list messages of channel {channel_id}", e)
            return []

        if not messages:
            console.print("[yellow]No messages found in this channel.[/yellow]")
            return []

        for message in messages:
            created = f", Created: {message.created_at.isoformat()}" if message.created_at else ""
            console.print(
                f"Message ID: {message.id}, From: {message.from_name}, "
                f"Content: {message.content}{created}",
                markup=False,
            )
        return messages
