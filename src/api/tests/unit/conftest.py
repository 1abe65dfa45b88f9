"""Unit test fixtures shared across bounded contexts."""

import pytest

from infrastructure.settings import (
    get_database_settings,
    get_identity_provider_settings,
    get_provisioning_settings,
    get_settings,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Reload settings for every test so environment overrides apply."""
    for getter in (
        get_settings,
        get_database_settings,
        get_identity_provider_settings,
        get_provisioning_settings,
    ):
        getter.cache_clear()
    yield
    for getter in (
        get_settings,
        get_database_settings,
        get_identity_provider_settings,
        get_provisioning_settings,
    ):
        getter.cache_clear()
