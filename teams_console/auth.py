"""
Credential handling for Microsoft Graph.

Two strategies, each producing one cached client handle:
1. Application: tenant id + client id + client secret (ClientSecretCredential)
2. Delegated: tenant id + client id + Device Code Flow (DeviceCodeCredential)

The Device Code Flow runs in two phases:
1. The identity platform issues a code and URL, handed to on_device_code
2. The user signs in from a browser while we wait for the exchange to finish
"""

import asyncio
import threading
from datetime import datetime
from typing import Callable, List, Optional

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential, DeviceCodeCredential
from msgraph import GraphServiceClient
from rich.console import Console

from .config import Configuration
from .exceptions import AuthenticationError, ConfigurationError
from .graph_client import GraphClientWrapper, TeamsClient
from .models import CredentialStrategy, DeviceCodePrompt

console = Console()

TENANT_ID_KEY = "GraphApi:TenantId"
CLIENT_ID_KEY = "GraphApi:ClientId"
CLIENT_SECRET_KEY = "GraphApi:ClientSecret"
DEVICE_CODE_TIMEOUT_KEY = "GraphApi:DeviceCodeTimeout"

# Application permissions are granted to the app registration itself
APPLICATION_SCOPES = ["https://graph.microsoft.com/.default"]

# Graph API permissions requested for the signed-in user
DELEGATED_SCOPES = [
    "Team.ReadBasic.All",
    "Channel.ReadBasic.All",
    "ChannelMessage.Send",
    "ChannelMessage.Read.All",
    "User.Read",
]


def print_device_code(prompt: DeviceCodePrompt):
    """Default phase-one handler: show the code and URL on the console."""
    console.print(f"\nTo sign in, use a web browser to open [bold]{prompt.verification_uri}[/bold]")
    console.print(f"and enter the code: [bold cyan]{prompt.user_code}[/bold cyan]\n")
    if prompt.expires_on is not None:
        console.print(f"The code expires at {prompt.expires_on:%H:%M:%S}.")

    console.print("[dim]Waiting for authentication...[/dim]")


class CredentialProvider:
    """
    Lazily builds and caches one authenticated Teams client per strategy.

    Usage:
        provider = CredentialProvider(Configuration.load())
        reader = provider.get_application_client()
        writer = await provider.get_delegated_client()

    The strategies are independent: a missing client secret only blocks
    the application client.
    """

    def __init__(
        self,
        configuration: Configuration,
        on_device_code: Optional[Callable[[DeviceCodePrompt], None]] = None,
    ):
        self.configuration = configuration
        self.on_device_code = on_device_code or print_device_code
        self._application_client: Optional[TeamsClient] = None
        self._delegated_client: Optional[TeamsClient] = None
        self._fixed_client: Optional[TeamsClient] = None
        self._lock = threading.Lock()

    @classmethod
    def from_client(cls, client: TeamsClient) -> "CredentialProvider":
        """Provider that always hands out client, for either strategy."""
        provider = cls(Configuration())
        provider._fixed_client = client
        return provider

    def _require(self, *keys: str) -> List[str]:
        values = [self.configuration.get_str(key).strip() for key in keys]
        missing = [key for key, value in zip(keys, values) if not value]
        if missing:
            raise ConfigurationError(
                f"App registration settings are missing or empty: {', '.join(missing)}"
            )
        return values

    def get_application_client(self) -> TeamsClient:
        """
        Client authenticated with the application (client secret) flow.

        Raises:
            ConfigurationError: If tenant id, client id or secret is missing or invalid
        """
        if self._fixed_client is not None:
            return self._fixed_client
        if self._application_client is not None:
            return self._application_client

        tenant_id, client_id, client_secret = self._require(
            TENANT_ID_KEY, CLIENT_ID_KEY, CLIENT_SECRET_KEY
        )

        with self._lock:
            if self._application_client is None:
                console.print("Creating Graph client with application credentials...")
                try:
                    credential = ClientSecretCredential(tenant_id, client_id, client_secret)
                except ValueError as e:
                    raise ConfigurationError(f"Invalid app registration settings: {e}") from e
                graph_client = GraphServiceClient(credentials=credential, scopes=APPLICATION_SCOPES)
                self._application_client = GraphClientWrapper(graph_client, CredentialStrategy.APPLICATION)
                console.print("[green]Application client ready.[/green]")

        return self._application_client

    async def get_delegated_client(self) -> TeamsClient:
        """
        Client authenticated as a user through the Device Code Flow.

        The first call blocks until the user finishes signing in.

        Raises:
            ConfigurationError: If tenant id or client id is missing or invalid
            AuthenticationError: If the user declines or the code expires
        """
        if self._fixed_client is not None:
            return self._fixed_client
        if self._delegated_client is not None:
            return self._delegated_client

        tenant_id, client_id = self._require(TENANT_ID_KEY, CLIENT_ID_KEY)
        timeout = self.configuration.get_int(DEVICE_CODE_TIMEOUT_KEY)

        return await asyncio.to_thread(self._build_delegated_client, tenant_id, client_id, timeout)

    def _build_delegated_client(self, tenant_id: str, client_id: str, timeout: Optional[int]) -> TeamsClient:
        with self._lock:
            if self._delegated_client is not None:
                return self._delegated_client

            console.print("Starting device code sign-in for delegated permissions...")

            def prompt_callback(verification_uri: str, user_code: str, expires_on: datetime):
                self.on_device_code(DeviceCodePrompt(verification_uri, user_code, expires_on))

            kwargs = {"timeout": timeout} if timeout else {}
            try:
                credential = DeviceCodeCredential(
                    client_id=client_id,
                    tenant_id=tenant_id,
                    prompt_callback=prompt_callback,
                    **kwargs,
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid app registration settings: {e}") from e

            try:
                credential.authenticate(scopes=DELEGATED_SCOPES)
            except AzureError as e:
                raise AuthenticationError(f"Device code sign-in failed: {e.message}") from e

            graph_client = GraphServiceClient(credentials=credential, scopes=DELEGATED_SCOPES)
            self._delegated_client = GraphClientWrapper(graph_client, CredentialStrategy.DELEGATED)
            console.print("[green]Signed in. Delegated client ready.[/green]")
            return self._delegated_client

    def reset(self):
        """Forget both cached clients so the next call authenticates again."""
        with self._lock:
            self._application_client = None
            self._delegated_client = None
