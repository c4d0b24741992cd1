"""
The provider: every resource and data source this package manages, and the
configure step that turns provider settings into an SDK client container.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from azprovider import config as provider_config
from azprovider.clients import Client
from azprovider.models.schema import Resource
from azprovider.services.blueprints.blueprint_definition_data_source import blueprint_definition
from azprovider.services.blueprints.blueprint_published_version_data_source import blueprint_published_version
from azprovider.services.managedapplications.managed_application_definition_resource import (
    managed_application_definition,
)
from azprovider.services.managedapplications.managed_application_resource import managed_application
from azprovider.services.resource.client_config_data_source import client_config
from azprovider.services.resource.resource_group_resource import resource_group
from azprovider.services.storage.storage_account_resource import storage_account
from azprovider.services.storage.storage_management_policy_resource import storage_management_policy

logger = logging.getLogger(__name__)

PROVIDER_NAME = "azurerm"


class Provider:
    def __init__(self):
        self.resources: Dict[str, Resource] = {
            "azurerm_managed_application": managed_application(),
            "azurerm_managed_application_definition": managed_application_definition(),
            "azurerm_resource_group": resource_group(),
            "azurerm_storage_account": storage_account(),
            "azurerm_storage_management_policy": storage_management_policy(),
        }
        self.data_sources: Dict[str, Resource] = {
            "azurerm_blueprint_definition": blueprint_definition(),
            "azurerm_blueprint_published_version": blueprint_published_version(),
            "azurerm_client_config": client_config(),
        }

    def resource(self, resource_type: str) -> Resource:
        try:
            return self.resources[resource_type]
        except KeyError:
            raise KeyError(f"The provider does not support resource type {resource_type!r}") from None

    def data_source(self, resource_type: str) -> Resource:
        try:
            return self.data_sources[resource_type]
        except KeyError:
            raise KeyError(f"The provider does not support data source {resource_type!r}") from None

    def lookup(self, mode: str, resource_type: str) -> Optional[Resource]:
        table = self.data_sources if mode == "data" else self.resources
        return table.get(resource_type)

    def configure(
        self,
        config_file: Optional[str] = None,
        provider_block: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Client:
        cfg = provider_config.load(config_file, provider_block, environ)
        cfg.validate()
        logger.debug(f"configured provider for subscription {cfg.subscription_id} ({cfg.environment})")
        return Client(cfg)
