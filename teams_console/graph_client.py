"""
Teams operations behind one narrow client interface.

Two variants implement TeamsClient:
- GraphClientWrapper: live calls through msgraph-sdk's GraphServiceClient
- SampleDataClient: canned records from the SampleData configuration section

Only the first page of each Graph collection is returned.
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, NoReturn

from azure.core.exceptions import ClientAuthenticationError
from msgraph import GraphServiceClient
from msgraph.generated.models.body_type import BodyType
from msgraph.generated.models.chat_message import ChatMessage as GraphChatMessage
from msgraph.generated.models.item_body import ItemBody
from msgraph.generated.models.o_data_errors.o_data_error import ODataError
from msgraph.generated.teams.item.channels.item.messages.messages_request_builder import (
    MessagesRequestBuilder,
)

from .exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    RemoteApiError,
)
from .models import (
    UNKNOWN_SENDER,
    Channel,
    ChatMessage,
    CredentialStrategy,
    SampleDataConfig,
    Team,
)

DEFAULT_MESSAGE_PAGE_SIZE = 10
MAX_MESSAGE_PAGE_SIZE = 50
MOCK_SENDER = "Mock User"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class TeamsClient(ABC):
    """The four Teams operations the console needs."""

    @abstractmethod
    async def list_my_teams(self) -> List[Team]:
        ...

    @abstractmethod
    async def list_team_channels(self, team_id: str) -> List[Channel]:
        ...

    @abstractmethod
    async def list_channel_messages(
        self, team_id: str, channel_id: str, top: int = DEFAULT_MESSAGE_PAGE_SIZE
    ) -> List[ChatMessage]:
        ...

    @abstractmethod
    async def send_channel_message(
        self, team_id: str, channel_id: str, content: str
    ) -> ChatMessage:
        ...


def _raise_api_error(error: Exception, action: str) -> NoReturn:
    """Translate an SDK failure into the console's exception hierarchy."""
    if isinstance(error, ClientAuthenticationError):
        raise AuthenticationError(f"Authentication failed while trying to {action}: {error.message}") from error

    if isinstance(error, ODataError):
        status = error.response_status_code
        message = error.error.message if error.error and error.error.message else str(error)

        if status == 429:
            raise RateLimitError(f"Rate limited while trying to {action}: {message}") from error
        elif status == 404:
            raise NotFoundError(f"Resource not found while trying to {action}: {message}") from error
        elif status == 403:
            raise PermissionDeniedError(
                f"Permission denied while trying to {action}. Check app permissions: {message}"
            ) from error
        raise RemoteApiError(f"Graph API error ({status}) while trying to {action}: {message}") from error

    raise RemoteApiError(f"Failed to {action}: {error}") from error


def _team_from_graph(team: Any) -> Team:
    return Team(id=team.id or "", display_name=team.display_name or "", description=team.description)


def _channel_from_graph(channel: Any) -> Channel:
    membership = channel.membership_type.value if channel.membership_type else "standard"
    return Channel(
        id=channel.id or "",
        display_name=channel.display_name or "",
        description=channel.description,
        membership_type=membership,
    )


def _message_from_graph(message: Any) -> ChatMessage:
    sender = UNKNOWN_SENDER
    if message.from_ and message.from_.user and message.from_.user.display_name:
        sender = message.from_.user.display_name

    body = message.body
    return ChatMessage(
        id=message.id or "",
        content=body.content or "" if body else "",
        from_name=sender,
        content_type=body.content_type.value if body and body.content_type else "text",
        created_at=message.created_date_time,
        last_modified_at=message.last_modified_date_time,
    )


def _modified_at(message: ChatMessage) -> datetime:
    stamp = message.last_modified_at or message.created_at
    if stamp is None:
        return _EPOCH
    return stamp if stamp.tzinfo else stamp.replace(tzinfo=timezone.utc)


class GraphClientWrapper(TeamsClient):
    """
    Live Teams client over an authenticated GraphServiceClient.

    Application handles cannot use /me, so they list teams via /teams;
    delegated handles list the signed-in user's joined teams.

    Usage:
        client = GraphClientWrapper(GraphServiceClient(credentials=credential))
        teams = await client.list_my_teams()
    """

    def __init__(
        self,
        graph_client: GraphServiceClient,
        strategy: CredentialStrategy = CredentialStrategy.APPLICATION,
    ):
        self.graph_client = graph_client
        self.strategy = strategy

    async def list_my_teams(self) -> List[Team]:
        try:
            if self.strategy is CredentialStrategy.DELEGATED:
                response = await self.graph_client.me.joined_teams.get()
            else:
                response = await self.graph_client.teams.get()
        except Exception as e:
            _raise_api_error(e, "list teams")

        if not response or not response.value:
            return []
        return [_team_from_graph(t) for t in response.value]

    async def list_team_channels(self, team_id: str) -> List[Channel]:
        try:
            response = await self.graph_client.teams.by_team_id(team_id).channels.get()
        except Exception as e:
            _raise_api_error(e, f"list channels of team {team_id}")

        if not response or not response.value:
            return []
        return [_channel_from_graph(c) for c in response.value]

    async def list_channel_messages(
        self, team_id: str, channel_id: str, top: int = DEFAULT_MESSAGE_PAGE_SIZE
    ) -> List[ChatMessage]:
        page_size = max(1, min(top, MAX_MESSAGE_PAGE_SIZE))
        query_params = MessagesRequestBuilder.MessagesRequestBuilderGetQueryParameters(
            top=page_size
        )
        request_config = MessagesRequestBuilder.MessagesRequestBuilderGetRequestConfiguration(
            query_parameters=query_params
        )

        try:
            response = await (
                self.graph_client.teams.by_team_id(team_id)
                .channels.by_channel_id(channel_id)
                .messages.get(request_configuration=request_config)
            )
        except Exception as e:
            _raise_api_error(e, f"list messages of channel {channel_id}")

        if not response or not response.value:
            return []

        messages = [_message_from_graph(m) for m in response.value]
        messages.sort(key=_modified_at, reverse=True)
        return messages[:page_size]

    async def send_channel_message(
        self, team_id: str, channel_id: str, content: str
    ) -> ChatMessage:
        request_body = GraphChatMessage(
            body=ItemBody(content=content, content_type=BodyType.Text),
        )

        try:
            sent = await (
                self.graph_client.teams.by_team_id(team_id)
                .channels.by_channel_id(channel_id)
                .messages.post(request_body)
            )
        except Exception as e:
            _raise_api_error(e, f"send a message to channel {channel_id}")

        if not sent:
            raise RemoteApiError("Graph API returned no message for the send request")
        return _message_from_graph(sent)


class SampleDataClient(TeamsClient):
    """Serves SampleDataConfig records; sending fabricates a message locally."""

    def __init__(self, sample_data: SampleDataConfig):
        self.sample_data = sample_data

    async def list_my_teams(self) -> List[Team]:
        return list(self.sample_data.teams)

    async def list_team_channels(self, team_id: str) -> List[Channel]:
        return list(self.sample_data.channels.get(team_id, []))

    async def list_channel_messages(
        self, team_id: str, channel_id: str, top: int = DEFAULT_MESSAGE_PAGE_SIZE
    ) -> List[ChatMessage]:
        key = SampleDataConfig.message_key(team_id, channel_id)
        return list(self.sample_data.messages.get(key, []))[:max(1, top)]

    async def send_channel_message(
        self, team_id: str, channel_id: str, content: str
    ) -> ChatMessage:
        now = datetime.now(timezone.utc)
        return ChatMessage(
            id=str(uuid.uuid4()),
            content=content,
            from_name=MOCK_SENDER,
            created_at=now,
            last_modified_at=now,
        )
