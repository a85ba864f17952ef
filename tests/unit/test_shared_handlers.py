"""Tests for shared handler utilities."""

from __future__ import annotations

import threading
from unittest.mock import Mock, patch

import pytest

from otc_network_operator.handlers.shared import (
    OperatorContext,
    configure_context,
    get_context,
    reset_context,
)
from otc_network_operator.models import ProviderConfigReference
from otc_network_operator.utils.cache import ProviderCache


@pytest.fixture(autouse=True)
def clean_context():
    reset_context()
    yield
    reset_context()


class TestConfigureContext:
    """Test cases for configure_context function."""

    def test_uses_given_collaborators(self, store, providers):
        """Test that an explicit store and cache are used as-is."""
        cancel = threading.Event()

        context = configure_context(store=store, providers=providers, cancel=cancel)

        assert context == OperatorContext(store=store, providers=providers, cancel=cancel)
        assert get_context() is context

    @patch("otc_network_operator.handlers.shared.create_provider_from_config")
    def test_default_cache_builds_from_store(self, mock_create, store):
        """Test that the default cache builds providers from the same store and cancel event."""
        mock_create.return_value = Mock()

        context = configure_context(store=store)
        provider, _ = context.providers.get_or_create(ProviderConfigReference(name="otc"), "default")

        assert provider is mock_create.return_value
        provider_config, used_store, cancel = mock_create.call_args.args
        assert provider_config["metadata"]["name"] == "otc"
        assert used_store is store
        assert cancel is context.cancel

    @patch("otc_network_operator.handlers.shared.get_k8s_store")
    def test_default_store(self, mock_get_store):
        """Test that the Kubernetes store is used when none is given."""
        context = configure_context()

        assert context.store is mock_get_store.return_value
        assert isinstance(context.providers, ProviderCache)
        assert not context.cancel.is_set()


class TestGetContext:
    """Test cases for get_context function."""

    @patch("otc_network_operator.handlers.shared.get_k8s_store")
    def test_configures_on_first_use(self, mock_get_store):
        """Test lazy configuration."""
        context = get_context()

        assert context.store is mock_get_store.return_value
        assert get_context() is context
        mock_get_store.assert_called_once()

    @patch("otc_network_operator.handlers.shared.get_k8s_store")
    def test_reset(self, mock_get_store, store, providers):
        """Test that reset forgets the configured context."""
        configure_context(store=store, providers=providers)
        reset_context()

        assert get_context().store is mock_get_store.return_value
