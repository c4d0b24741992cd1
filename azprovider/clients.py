"""
Azure SDK client container handed to every handler as ``meta``.

SDK clients are created on first use so a provider configured for one
service never imports or authenticates the others.

Usage:
    client = Client(config)
    client.managed_applications.applications.get(resource_group_name, name)
"""
import base64
import json
import logging
from typing import Any, Callable, Dict, Optional

from azprovider.config import ProviderConfig
from azprovider.errors import ProviderError

logger = logging.getLogger(__name__)


def _resource_client(credential: Any, config: ProviderConfig) -> Any:
    from azure.mgmt.resource import ResourceManagementClient
    return ResourceManagementClient(
        credential=credential,
        subscription_id=config.subscription_id,
        base_url=config.resource_manager_endpoint,
    )


def _managed_applications_client(credential: Any, config: ProviderConfig) -> Any:
    from azure.mgmt.resource.managedapplications import ApplicationClient
    return ApplicationClient(
        credential=credential,
        subscription_id=config.subscription_id,
        base_url=config.resource_manager_endpoint,
    )


def _storage_client(credential: Any, config: ProviderConfig) -> Any:
    from azure.mgmt.storage import StorageManagementClient
    return StorageManagementClient(
        credential=credential,
        subscription_id=config.subscription_id,
        base_url=config.resource_manager_endpoint,
    )


def _blueprints_client(credential: Any, config: ProviderConfig) -> Any:
    from azure.mgmt.blueprint import BlueprintManagementClient
    return BlueprintManagementClient(credential, base_url=config.resource_manager_endpoint)


_FACTORIES: Dict[str, Callable[[Any, ProviderConfig], Any]] = {
    "resource": _resource_client,
    "managed_applications": _managed_applications_client,
    "storage": _storage_client,
    "blueprints": _blueprints_client,
}


def _token_claims(token: str) -> Dict[str, Any]:
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        return json.loads(base64.urlsafe_b64decode(payload))
    except (IndexError, ValueError) as exc:
        raise ProviderError(f"decoding access token claims: {exc}") from exc


class Client:
    """
    Holds the provider configuration, the credential and the SDK clients.

    Attributes:
        config: the resolved ProviderConfig
        subscription_id: subscription every resource ID is built under
    """

    def __init__(self, config: ProviderConfig, credential: Any = None, **sdk_clients: Any):
        self.config = config
        self.subscription_id = config.subscription_id
        self._credential = credential
        self._clients: Dict[str, Any] = dict(sdk_clients)
        self._claims: Optional[Dict[str, Any]] = None

    @property
    def credential(self) -> Any:
        if self._credential is None:
            self._credential = self._get_credential()
        return self._credential

    def _get_credential(self) -> Any:
        from azure.identity import ClientSecretCredential, DefaultAzureCredential

        if self.config.uses_client_secret:
            logger.debug("authenticating with a client secret for client %s", self.config.client_id)
            return ClientSecretCredential(
                tenant_id=self.config.tenant_id,
                client_id=self.config.client_id,
                client_secret=self.config.client_secret,
            )
        logger.debug("authenticating with DefaultAzureCredential")
        return DefaultAzureCredential()

    def _client(self, name: str) -> Any:
        if name not in self._clients:
            self._clients[name] = _FACTORIES[name](self.credential, self.config)
        return self._clients[name]

    @property
    def resource(self) -> Any:
        return self._client("resource")

    @property
    def managed_applications(self) -> Any:
        return self._client("managed_applications")

    @property
    def storage(self) -> Any:
        return self._client("storage")

    @property
    def blueprints(self) -> Any:
        return self._client("blueprints")

    # ------------------------------------------------ caller identity
    def _token_claims(self) -> Dict[str, Any]:
        if self._claims is None:
            scope = f"{self.config.resource_manager_endpoint}/.default"
            token = self.credential.get_token(scope)
            self._claims = _token_claims(token.token)
        return self._claims

    @property
    def tenant_id(self) -> str:
        return self.config.tenant_id or self._token_claims().get("tid", "")

    @property
    def client_id(self) -> str:
        return self.config.client_id or self._token_claims().get("appid", "")

    @property
    def object_id(self) -> str:
        return self.config.object_id or self._token_claims().get("oid", "")
