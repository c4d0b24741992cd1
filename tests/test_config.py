"""
Provider configuration tests: layering of YAML file, provider block and
ARM_* environment variables, plus the SDK client container.
"""
import base64
import json
import os
from types import SimpleNamespace

import pytest


# --------------------------------------------------------- layering
class TestConfigLoad:
    def setup_method(self):
        from azprovider import config
        self.config = config

    def test_defaults(self):
        cfg = self.config.load(config_file=None, environ={})
        assert cfg.environment == "public"
        assert cfg.resource_manager_endpoint == "https://management.azure.com"
        assert cfg.features.prevent_deletion_if_contains_resources is True

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "azprovider.yaml"
        path.write_text(
            "provider:\n"
            "  subscription_id: 11111111-1111-1111-1111-111111111111\n"
            "  environment: china\n"
        )
        cfg = self.config.load(config_file=str(path), environ={})
        assert cfg.subscription_id == "11111111-1111-1111-1111-111111111111"
        assert cfg.storage_endpoint_suffix == "core.chinacloudapi.cn"

    def test_provider_block_overrides_file_and_env_overrides_block(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("subscription_id: from-file\ntenant_id: file-tenant\n")
        cfg = self.config.load(
            config_file=str(path),
            provider_block={"subscription_id": "from-block", "tenant_id": "block-tenant"},
            environ={"ARM_SUBSCRIPTION_ID": "from-env"},
        )
        assert cfg.subscription_id == "from-env"
        assert cfg.tenant_id == "block-tenant"

    def test_features_block(self):
        cfg = self.config.load(
            provider_block={"features": [{"resource_group": [{"prevent_deletion_if_contains_resources": False}]}]},
            environ={},
        )
        assert cfg.features.prevent_deletion_if_contains_resources is False

    def test_features_flag_from_string(self):
        cfg = self.config.load(
            provider_block={"features": {"resource_group": {"prevent_deletion_if_contains_resources": "false"}}},
            environ={},
        )
        assert cfg.features.prevent_deletion_if_contains_resources is False

    def test_missing_explicit_file(self, tmp_path):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="does not exist"):
            self.config.load(config_file=str(tmp_path / "absent.yaml"), environ={})

    def test_invalid_yaml(self, tmp_path):
        from azprovider.errors import ProviderError
        path = tmp_path / "broken.yaml"
        path.write_text("provider: [unclosed\n")
        with pytest.raises(ProviderError, match="parsing config file"):
            self.config.load(config_file=str(path), environ={})

    def test_validate(self):
        from azprovider.errors import ProviderError
        with pytest.raises(ProviderError, match="subscription_id is required"):
            self.config.ProviderConfig().validate()
        with pytest.raises(ProviderError, match="unknown environment"):
            self.config.ProviderConfig(subscription_id="x", environment="mars").validate()

    def test_client_secret_needs_all_three(self):
        assert not self.config.ProviderConfig(client_id="a", client_secret="b").uses_client_secret
        assert self.config.ProviderConfig(client_id="a", client_secret="b", tenant_id="c").uses_client_secret


# --------------------------------------------------------- clients
def _token(claims):
    payload = base64.urlsafe_b64encode(json.dumps(claims).encode()).decode().rstrip("=")
    return f"header.{payload}.signature"


class FakeCredential:
    def __init__(self, claims):
        self.claims = claims
        self.scopes = []

    def get_token(self, scope):
        self.scopes.append(scope)
        return SimpleNamespace(token=_token(self.claims), expires_on=0)


class TestClient:
    def setup_method(self):
        from azprovider.clients import Client
        from azprovider.config import ProviderConfig
        self.Client = Client
        self.ProviderConfig = ProviderConfig

    def test_injected_sdk_clients_are_used(self):
        storage = object()
        client = self.Client(self.ProviderConfig(subscription_id="s"), credential=object(), storage=storage)
        assert client.storage is storage
        assert client.subscription_id == "s"

    def test_identity_comes_from_config_first(self):
        credential = FakeCredential({"tid": "token-tenant", "appid": "token-app", "oid": "token-object"})
        client = self.Client(self.ProviderConfig(subscription_id="s", tenant_id="cfg-tenant"), credential=credential)
        assert client.tenant_id == "cfg-tenant"
        assert client.client_id == "token-app"
        assert client.object_id == "token-object"
        assert credential.scopes == ["https://management.azure.com/.default"]

    def test_bad_token(self):
        from azprovider.errors import ProviderError
        credential = SimpleNamespace(get_token=lambda scope: SimpleNamespace(token="not-a-jwt"))
        client = self.Client(self.ProviderConfig(subscription_id="s"), credential=credential)
        with pytest.raises(ProviderError, match="decoding access token claims"):
            client.object_id

    def test_provider_configure_validates(self):
        from azprovider.errors import ProviderError
        from azprovider.provider import Provider
        with pytest.raises(ProviderError):
            Provider().configure(environ={})
        client = Provider().configure(environ={"ARM_SUBSCRIPTION_ID": "abc"})
        assert client.subscription_id == "abc"


# --------------------------------------------------------- provider
class TestProvider:
    def setup_method(self):
        from azprovider.provider import Provider
        self.provider = Provider()

    def test_registered_types(self):
        assert sorted(self.provider.resources) == [
            "azurerm_managed_application",
            "azurerm_managed_application_definition",
            "azurerm_resource_group",
            "azurerm_storage_account",
            "azurerm_storage_management_policy",
        ]
        assert sorted(self.provider.data_sources) == [
            "azurerm_blueprint_definition",
            "azurerm_blueprint_published_version",
            "azurerm_client_config",
        ]

    def test_data_sources_are_read_only(self):
        for resource in self.provider.data_sources.values():
            assert resource.is_data_source
        for resource in self.provider.resources.values():
            assert not resource.is_data_source
            assert resource.importer is not None

    def test_lookup(self):
        assert self.provider.lookup("data", "azurerm_client_config") is self.provider.data_sources[
            "azurerm_client_config"
        ]
        assert self.provider.lookup("managed", "azurerm_client_config") is None
        with pytest.raises(KeyError, match="does not support resource type"):
            self.provider.resource("azurerm_virtual_machine")
