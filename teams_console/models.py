"""Data models for the Teams console."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

UNKNOWN_SENDER = "Unknown"


class CredentialStrategy(Enum):
    """How a Graph client authenticates."""
    APPLICATION = "application"
    DELEGATED = "delegated"


@dataclass(frozen=True)
class DeviceCodePrompt:
    """What the operator needs to finish a device code sign-in."""
    verification_uri: str
    user_code: str
    expires_on: Optional[datetime] = None


@dataclass(frozen=True)
class Team:
    """Represents a Microsoft Teams team."""
    id: str
    display_name: str
    description: Optional[str] = None


@dataclass(frozen=True)
class Channel:
    """Represents a channel within a team."""
    id: str
    display_name: str
    description: Optional[str] = None
    membership_type: str = "standard"


@dataclass(frozen=True)
class ChatMessage:
    """Represents a message posted to a channel."""
    id: str
    content: str
    from_name: str = UNKNOWN_SENDER
    content_type: str = "text"
    created_at: Optional[datetime] = None
    last_modified_at: Optional[datetime] = None


def _normalize_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    """Lower-case keys and drop underscores so DisplayName == display_name."""
    return {str(k).replace("_", "").lower(): v for k, v in record.items()}


def team_from_record(record: Dict[str, Any]) -> Team:
    data = _normalize_keys(record)
    return Team(
        id=str(data.get("id") or ""),
        display_name=str(data.get("displayname") or ""),
        description=data.get("description"),
    )


def channel_from_record(record: Dict[str, Any]) -> Channel:
    data = _normalize_keys(record)
    return Channel(
        id=str(data.get("id") or ""),
        display_name=str(data.get("displayname") or ""),
        description=data.get("description"),
        membership_type=data.get("membershiptype") or "standard",
    )


def message_from_record(record: Dict[str, Any]) -> ChatMessage:
    data = _normalize_keys(record)
    return ChatMessage(
        id=str(data.get("id") or ""),
        content=str(data.get("content") or ""),
        from_name=data.get("fromname") or UNKNOWN_SENDER,
    )


@dataclass(frozen=True)
class SampleDataConfig:
    """
    Canned records served instead of live Graph responses.

    Channels are keyed by team id, messages by "teamId|channelId".
    """
    teams: List[Team] = field(default_factory=list)
    channels: Dict[str, List[Channel]] = field(default_factory=dict)
    messages: Dict[str, List[ChatMessage]] = field(default_factory=dict)

    @staticmethod
    def message_key(team_id: str, channel_id: str) -> str:
        return f"{team_id}|{channel_id}"

    @classmethod
    def from_dict(cls, section: Optional[Dict[str, Any]]) -> "SampleDataConfig":
        """
        Build sample data from the "SampleData" configuration section.

        Raises:
            TypeError, AttributeError: If the section has the wrong shape
        """
        if not section:
            return cls()

        data = {str(k).lower(): v for k, v in section.items()}

        teams = [team_from_record(t) for t in data.get("teams") or []]
        channels = {
            str(team_id): [channel_from_record(c) for c in records or []]
            for team_id, records in (data.get("channels") or {}).items()
        }
        messages = {
            str(key): [message_from_record(m) for m in records or []]
            for key, records in (data.get("messages") or {}).items()
        }

        return cls(teams=teams, channels=channels, messages=messages)
