"""Tests for CredentialProvider."""

from datetime import datetime
from unittest.mock import Mock, patch

import pytest
from azure.core.exceptions import ClientAuthenticationError, ServiceRequestError

from teams_console.auth import (
    APPLICATION_SCOPES,
    DELEGATED_SCOPES,
    CredentialProvider,
    print_device_code,
)
from teams_console.config import Configuration
from teams_console.exceptions import AuthenticationError, ConfigurationError
from teams_console.graph_client import GraphClientWrapper
from teams_console.models import CredentialStrategy, DeviceCodePrompt


@pytest.fixture
def patched_application():
    """Patch the credential and Graph client constructors used by auth."""
    with patch("teams_console.auth.ClientSecretCredential") as credential_cls, \
            patch("teams_console.auth.GraphServiceClient") as graph_cls:
        yield credential_cls, graph_cls


@pytest.fixture
def patched_delegated():
    with patch("teams_console.auth.DeviceCodeCredential") as credential_cls, \
            patch("teams_console.auth.GraphServiceClient") as graph_cls:
        yield credential_cls, graph_cls


class TestApplicationClient:
    """Tests for the application (client secret) strategy."""

    def test_builds_client_from_settings(self, live_configuration, patched_application):
        credential_cls, graph_cls = patched_application
        provider = CredentialProvider(live_configuration)

        client = provider.get_application_client()

        credential_cls.assert_called_once_with("test_tenant_id", "test_client_id", "test_client_secret")
        graph_cls.assert_called_once_with(
            credentials=credential_cls.return_value, scopes=APPLICATION_SCOPES
        )
        assert isinstance(client, GraphClientWrapper)
        assert client.strategy is CredentialStrategy.APPLICATION

    def test_second_call_returns_cached_client(self, live_configuration, patched_application):
        credential_cls, _ = patched_application
        provider = CredentialProvider(live_configuration)

        first = provider.get_application_client()
        second = provider.get_application_client()

        assert first is second
        assert credential_cls.call_count == 1

    def test_reset_forces_one_new_construction(self, live_configuration, patched_application):
        credential_cls, _ = patched_application
        provider = CredentialProvider(live_configuration)

        first = provider.get_application_client()
        provider.reset()
        second = provider.get_application_client()
        provider.get_application_client()

        assert first is not second
        assert credential_cls.call_count == 2

    @pytest.mark.parametrize(
        "missing", ["GraphApi:TenantId", "GraphApi:ClientId", "GraphApi:ClientSecret"]
    )
    def test_missing_setting_raises(self, missing, patched_application):
        settings = {
            "GraphApi:TenantId": "tenant",
            "GraphApi:ClientId": "client",
            "GraphApi:ClientSecret": "secret",
        }
        settings[missing] = ""
        provider = CredentialProvider(Configuration.from_dict(settings))

        with pytest.raises(ConfigurationError, match=missing):
            provider.get_application_client()

        patched_application[0].assert_not_called()

    def test_reset_without_clients_is_harmless(self, live_configuration):
        CredentialProvider(live_configuration).reset()


class TestDelegatedClient:
    """Tests for the delegated (device code) strategy."""

    @pytest.mark.asyncio
    async def test_authenticates_with_fixed_scopes(self, live_configuration, patched_delegated):
        credential_cls, graph_cls = patched_delegated
        provider = CredentialProvider(live_configuration, on_device_code=Mock())

        client = await provider.get_delegated_client()

        kwargs = credential_cls.call_args.kwargs
        assert kwargs["tenant_id"] == "test_tenant_id"
        assert kwargs["client_id"] == "test_client_id"
        credential_cls.return_value.authenticate.assert_called_once_with(scopes=DELEGATED_SCOPES)
        graph_cls.assert_called_once_with(
            credentials=credential_cls.return_value, scopes=DELEGATED_SCOPES
        )
        assert client.strategy is CredentialStrategy.DELEGATED

    @pytest.mark.asyncio
    async def test_only_needs_tenant_and_client_id(self, patched_delegated):
        config = Configuration.from_dict({"GraphApi:TenantId": "tenant", "GraphApi:ClientId": "client"})
        provider = CredentialProvider(config, on_device_code=Mock())

        with pytest.raises(ConfigurationError):
            provider.get_application_client()

        client = await provider.get_delegated_client()
        assert client.strategy is CredentialStrategy.DELEGATED

    @pytest.mark.asyncio
    async def test_missing_client_id_raises(self, patched_delegated):
        config = Configuration.from_dict({"GraphApi:TenantId": "tenant"})
        provider = CredentialProvider(config)

        with pytest.raises(ConfigurationError, match="GraphApi:ClientId"):
            await provider.get_delegated_client()

        patched_delegated[0].assert_not_called()

    @pytest.mark.asyncio
    async def test_device_code_is_handed_to_callback(self, live_configuration, patched_delegated):
        credential_cls, _ = patched_delegated
        on_device_code = Mock()
        provider = CredentialProvider(live_configuration, on_device_code=on_device_code)

        def authenticate(scopes):
            prompt_callback = credential_cls.call_args.kwargs["prompt_callback"]
            prompt_callback("https://microsoft.com/devicelogin", "ABCD-1234", None)

        credential_cls.return_value.authenticate.side_effect = authenticate

        await provider.get_delegated_client()

        on_device_code.assert_called_once_with(
            DeviceCodePrompt("https://microsoft.com/devicelogin", "ABCD-1234", None)
        )

    @pytest.mark.asyncio
    async def test_failed_exchange_raises_and_caches_nothing(self, live_configuration, patched_delegated):
        credential_cls, _ = patched_delegated
        credential_cls.return_value.authenticate.side_effect = ClientAuthenticationError("code expired")
        provider = CredentialProvider(live_configuration, on_device_code=Mock())

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_delegated_client()

        assert isinstance(exc_info.value.__cause__, ClientAuthenticationError)

        credential_cls.return_value.authenticate.side_effect = None
        client = await provider.get_delegated_client()
        assert client is not None
        assert credential_cls.call_count == 2

    @pytest.mark.asyncio
    async def test_second_call_returns_cached_client(self, live_configuration, patched_delegated):
        credential_cls, _ = patched_delegated
        provider = CredentialProvider(live_configuration, on_device_code=Mock())

        first = await provider.get_delegated_client()
        second = await provider.get_delegated_client()

        assert first is second
        assert credential_cls.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_setting_is_passed_through(self, patched_delegated):
        credential_cls, _ = patched_delegated
        config = Configuration.from_dict({
            "GraphApi:TenantId": "tenant",
            "GraphApi:ClientId": "client",
            "GraphApi:DeviceCodeTimeout": "120",
        })

        await CredentialProvider(config, on_device_code=Mock()).get_delegated_client()

        assert credential_cls.call_args.kwargs["timeout"] == 120


class TestFromClient:
    """Tests for the substitution constructor."""

    @pytest.mark.asyncio
    async def test_always_returns_given_client(self, fake_client):
        provider = CredentialProvider.from_client(fake_client)

        assert provider.get_application_client() is fake_client
        assert await provider.get_delegated_client() is fake_client

        provider.reset()
        assert provider.get_application_client() is fake_client


class TestInvalidSettings:
    """Tests for settings the identity library rejects."""

    BAD_TENANT = {
        "GraphApi:TenantId": "my tenant!",
        "GraphApi:ClientId": "client",
        "GraphApi:ClientSecret": "secret",
    }

    def test_malformed_tenant_blocks_application_client(self, patched_application):
        credential_cls, _ = patched_application
        credential_cls.side_effect = ValueError("Invalid tenant ID provided")
        provider = CredentialProvider(Configuration.from_dict(self.BAD_TENANT))

        with pytest.raises(ConfigurationError) as exc_info:
            provider.get_application_client()

        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_malformed_tenant_blocks_delegated_client(self, patched_delegated):
        credential_cls, _ = patched_delegated
        credential_cls.side_effect = ValueError("Invalid tenant ID provided")
        provider = CredentialProvider(Configuration.from_dict(self.BAD_TENANT), on_device_code=Mock())

        with pytest.raises(ConfigurationError):
            await provider.get_delegated_client()

    @pytest.mark.asyncio
    async def test_other_azure_errors_become_authentication_errors(self, live_configuration, patched_delegated):
        credential_cls, _ = patched_delegated
        credential_cls.return_value.authenticate.side_effect = ServiceRequestError("no network")
        provider = CredentialProvider(live_configuration, on_device_code=Mock())

        with pytest.raises(AuthenticationError) as exc_info:
            await provider.get_delegated_client()

        assert isinstance(exc_info.value.__cause__, ServiceRequestError)


class TestPrintDeviceCode:
    """Tests for the default device code handler."""

    def test_shows_code_url_and_expiry(self):
        prompt = DeviceCodePrompt(
            "https://microsoft.com/devicelogin", "ABCD-1234", datetime(2024, 1, 1, 12, 30, 15)
        )

        with patch("teams_console.auth.console") as console:
            print_device_code(prompt)

        printed = " ".join(str(call.args[0]) for call in console.print.call_args_list)
        assert "https://microsoft.com/devicelogin" in printed
        assert "ABCD-1234" in printed
        assert "12:30:15" in printed
