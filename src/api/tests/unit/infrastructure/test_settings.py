"""Unit tests for infrastructure settings."""

import pytest
from pydantic import ValidationError

from infrastructure.settings import (
    DEFAULT_RESERVED_SLUGS,
    DatabaseSettings,
    IdentityProviderSettings,
    ProvisioningSettings,
)


class TestDatabaseSettingsPoolConfiguration:
    """Tests for connection pool configuration."""

    def test_defaults(self):
        settings = DatabaseSettings()

        assert settings.pool_max_connections == 10
        assert settings.pool_timeout_seconds == 30
        assert settings.pool_recycle_seconds == 1800
        assert settings.statement_timeout_ms == 15000
        assert settings.echo_sql is False

    def test_pool_settings_from_fields(self):
        settings = DatabaseSettings(pool_max_connections=15, pool_recycle_seconds=-1)

        assert settings.pool_max_connections == 15
        assert settings.pool_recycle_seconds == -1

    @pytest.mark.parametrize(
        "field,value",
        [
            ("pool_max_connections", 0),
            ("pool_timeout_seconds", 0),
            ("pool_timeout_seconds", 301),
            ("pool_recycle_seconds", -2),
            ("statement_timeout_ms", -1),
            ("application_name", "x" * 64),
        ],
    )
    def test_out_of_range_values_are_rejected(self, field, value):
        with pytest.raises(ValidationError) as exc_info:
            DatabaseSettings(**{field: value})

        assert field in str(exc_info.value)

    def test_pool_max_respects_upper_limit(self):
        """Pool max should not exceed reasonable limit."""
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_max_connections=101)

    def test_connection_string_hides_password(self):
        settings = DatabaseSettings(
            host="db", username="svc", password="hunter2", database="tenants"
        )

        assert settings.connection_string == "postgresql://svc@db:5432/tenants"
        assert "hunter2" not in settings.connection_string


class TestDatabaseSettingsEnvironment:
    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("PROVISIONING_DB_HOST", "db.internal")
        monkeypatch.setenv("PROVISIONING_DB_PORT", "6543")

        settings = DatabaseSettings()

        assert settings.host == "db.internal"
        assert settings.port == 6543


class TestIdentityProviderSettings:
    def test_defaults(self):
        settings = IdentityProviderSettings()

        assert settings.timeout_seconds == 10.0
        assert settings.require_email_verification is True

    def test_service_key_is_secret(self, monkeypatch):
        monkeypatch.setenv("PROVISIONING_IDP_SERVICE_KEY", "sk-live")

        settings = IdentityProviderSettings()

        assert settings.service_key.get_secret_value() == "sk-live"
        assert "sk-live" not in repr(settings)

    @pytest.mark.parametrize("timeout", [0, -1, 121])
    def test_timeout_bounds(self, timeout):
        with pytest.raises(ValidationError):
            IdentityProviderSettings(timeout_seconds=timeout)


class TestProvisioningSettings:
    def test_defaults(self):
        settings = ProvisioningSettings()

        assert settings.reserved_slugs == DEFAULT_RESERVED_SLUGS
        assert "admin" in settings.reserved_slugs
        assert settings.stale_request_after_seconds == 900
        assert settings.initial_password_length >= 12

    def test_reserved_slugs_are_not_shared_between_instances(self):
        first = ProvisioningSettings()
        first.reserved_slugs.append("kitchen")

        assert "kitchen" not in ProvisioningSettings().reserved_slugs

    def test_slug_max_must_not_be_below_min(self):
        with pytest.raises(ValidationError) as exc_info:
            ProvisioningSettings(slug_min_length=10, slug_max_length=5)

        assert "slug_max_length" in str(exc_info.value)

    def test_stale_threshold_has_a_floor(self):
        with pytest.raises(ValidationError):
            ProvisioningSettings(stale_request_after_seconds=30)

    def test_initial_password_length_has_a_floor(self):
        with pytest.raises(ValidationError):
            ProvisioningSettings(initial_password_length=8)

    def test_currency_is_three_letters(self):
        with pytest.raises(ValidationError):
            ProvisioningSettings(default_currency="EURO")
