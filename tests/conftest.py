"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock, Mock

import pytest

from teams_console import TeamsService
from teams_console.auth import CredentialProvider
from teams_console.config import Configuration
from teams_console.graph_client import TeamsClient
from teams_console.models import Channel, ChatMessage, Team


SAMPLE_DATA = {
    "Teams": [
        {"Id": "t1", "DisplayName": "Team1", "Description": "First team"},
        {"Id": "t2", "DisplayName": "Team2"},
    ],
    "Channels": {
        "t1": [
            {"Id": "c1", "DisplayName": "General"},
            {"Id": "c2", "DisplayName": "Random", "Description": "Off topic"},
        ],
    },
    "Messages": {
        "t1|c1": [
            {"Id": "m1", "Content": "Hello", "FromName": "Alice"},
            {"Id": "m2", "Content": "No sender"},
        ],
    },
}


@pytest.fixture
def sample_data():
    """Raw SampleData section."""
    return SAMPLE_DATA


@pytest.fixture
def mock_configuration():
    """Configuration with mock data enabled."""
    return Configuration.from_dict({"UseLocalMockData": True, "SampleData": SAMPLE_DATA})


@pytest.fixture
def live_configuration():
    """Configuration with full app registration settings."""
    return Configuration.from_dict({
        "GraphApi:TenantId": "test_tenant_id",
        "GraphApi:ClientId": "test_client_id",
        "GraphApi:ClientSecret": "test_client_secret",
    })


@pytest.fixture
def mock_service(mock_configuration):
    """TeamsService serving sample data."""
    return TeamsService(CredentialProvider(mock_configuration), mock_configuration)


@pytest.fixture
def fake_client():
    """TeamsClient whose four operations are AsyncMocks."""
    client = Mock(spec=TeamsClient)
    client.list_my_teams = AsyncMock(return_value=[Team(id="team1", display_name="Team 1")])
    client.list_team_channels = AsyncMock(
        return_value=[Channel(id="channel1", display_name="Channel 1")]
    )
    client.list_channel_messages = AsyncMock(
        return_value=[ChatMessage(id="msg1", content="Message 1", from_name="Bob")]
    )
    client.send_channel_message = AsyncMock(
        return_value=ChatMessage(id="message-id", content="Hello World")
    )
    return client


@pytest.fixture
def live_service(fake_client, live_configuration):
    """Live-mode TeamsService whose credential provider hands out fake_client."""
    return TeamsService(
        CredentialProvider.from_client(fake_client),
        live_configuration,
        use_local_mock_data=False,
    )
