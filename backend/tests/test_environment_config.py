"""
Tests for environment parsing, settings and the client factory.
"""

import pytest

from boondsync.core.environment import Environment, parse_environment
from boondsync.integrations.boondmanager.client import BoondManagerClient
from boondsync.integrations.boondmanager.errors import BoondConfigError, BoondValidationError
from boondsync.services.boond_factory import create_client

from conftest import make_settings


class TestParseEnvironment:
    """Tests for parse_environment."""

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing_uses_default(self, value):
        assert parse_environment(value, Environment.PRODUCTION) == Environment.PRODUCTION

    @pytest.mark.parametrize("value, expected", [
        ("sandbox", Environment.SANDBOX),
        (" Production ", Environment.PRODUCTION),
        (Environment.SANDBOX, Environment.SANDBOX),
    ])
    def test_known_names(self, value, expected):
        assert parse_environment(value, Environment.SANDBOX) == expected

    @pytest.mark.parametrize("value", ["prod", "staging", "sandbox2"])
    def test_unknown_rejected(self, value):
        with pytest.raises(BoondValidationError):
            parse_environment(value, Environment.SANDBOX)


class TestSettings:
    """Tests for Settings."""

    def test_credentials_scoped_per_environment(self):
        settings = make_settings()

        production = settings.get_boond_credentials(Environment.PRODUCTION)
        sandbox = settings.get_boond_credentials(Environment.SANDBOX)

        assert production.user_token == "prod-user"
        assert sandbox.client_key == "sandbox-key"
        assert production.is_complete and sandbox.is_complete

    def test_missing_credentials_incomplete(self):
        settings = make_settings(BOOND_SANDBOX_CLIENT_KEY="")

        assert not settings.get_boond_credentials(Environment.SANDBOX).is_complete

    def test_default_environment_configurable(self):
        settings = make_settings(BOOND_DEFAULT_ENVIRONMENT="production")

        assert settings.boond_default_environment == Environment.PRODUCTION

    def test_production_writes_disabled_by_default(self):
        assert make_settings().boond_allow_production_writes is False


@pytest.mark.asyncio
class TestCreateClient:
    """Tests for create_client."""

    async def test_builds_client_for_requested_environment(self):
        client = create_client("production", settings=make_settings())

        async with client:
            assert isinstance(client, BoondManagerClient)
            assert client.environment == Environment.PRODUCTION
            assert client.allow_production_writes is False

    async def test_uses_configured_default(self):
        async with create_client(settings=make_settings(BOOND_DEFAULT_ENVIRONMENT="production")) as client:
            assert client.environment == Environment.PRODUCTION

    async def test_missing_credentials(self):
        settings = make_settings(BOOND_PRODUCTION_USER_TOKEN="")

        with pytest.raises(BoondConfigError) as exc_info:
            create_client("production", settings=settings)

        assert "BOOND_PRODUCTION_USER_TOKEN" in exc_info.value.message
