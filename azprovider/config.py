"""
Provider configuration: defaults, then an optional YAML file, then the
``provider "azurerm"`` block, then ``ARM_*`` environment variables.
"""
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional

import yaml

from azprovider.errors import ProviderError

DEFAULT_CONFIG_FILE = "azprovider.yaml"

ENVIRONMENTS = {
    "public": "https://management.azure.com",
    "usgovernment": "https://management.usgovcloudapi.net",
    "china": "https://management.chinacloudapi.cn",
}

STORAGE_ENDPOINT_SUFFIXES = {
    "public": "core.windows.net",
    "usgovernment": "core.usgovcloudapi.net",
    "china": "core.chinacloudapi.cn",
}

_ENV_VARS = {
    "subscription_id": "ARM_SUBSCRIPTION_ID",
    "tenant_id": "ARM_TENANT_ID",
    "client_id": "ARM_CLIENT_ID",
    "client_secret": "ARM_CLIENT_SECRET",
    "object_id": "ARM_OBJECT_ID",
    "environment": "ARM_ENVIRONMENT",
}


@dataclass
class Features:
    prevent_deletion_if_contains_resources: bool = True


@dataclass
class ProviderConfig:
    subscription_id: str = ""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    object_id: str = ""
    environment: str = "public"
    features: Features = field(default_factory=Features)

    @property
    def resource_manager_endpoint(self) -> str:
        return ENVIRONMENTS[self.environment]

    @property
    def storage_endpoint_suffix(self) -> str:
        return STORAGE_ENDPOINT_SUFFIXES[self.environment]

    @property
    def uses_client_secret(self) -> bool:
        return bool(self.client_id and self.client_secret and self.tenant_id)

    def validate(self) -> None:
        if self.environment not in ENVIRONMENTS:
            raise ProviderError(
                f"unknown environment {self.environment!r}, expected one of {sorted(ENVIRONMENTS)}"
            )
        if not self.subscription_id:
            raise ProviderError(
                "subscription_id is required: set it in the provider block, "
                "the config file or ARM_SUBSCRIPTION_ID"
            )

    def merged(self, values: Mapping[str, Any]) -> "ProviderConfig":
        """Return a copy with every non-empty value from ``values`` applied."""
        known = {f.name for f in fields(self)} - {"features"}
        kwargs: Dict[str, Any] = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in values.items():
            if key in known and value not in (None, ""):
                kwargs[key] = str(value)
        if "features" in values and values["features"]:
            kwargs["features"] = _features(values["features"], self.features)
        return ProviderConfig(**kwargs)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ("1", "true", "yes")


def _features(raw: Any, current: Features) -> Features:
    if isinstance(raw, list):
        raw = raw[0] if raw else {}
    rg = raw.get("resource_group") or {}
    if isinstance(rg, list):
        rg = rg[0] if rg else {}
    return Features(
        prevent_deletion_if_contains_resources=_as_bool(
            rg.get("prevent_deletion_if_contains_resources", current.prevent_deletion_if_contains_resources)
        ),
    )


def load_file(path: Optional[str]) -> Dict[str, Any]:
    """Read provider settings from YAML; a missing default file is not an error."""
    target = path or DEFAULT_CONFIG_FILE
    if not os.path.exists(target):
        if path:
            raise ProviderError(f"config file {path!r} does not exist")
        return {}
    try:
        with open(target, "r") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ProviderError(f"parsing config file {target!r}: {exc}") from exc
    if not isinstance(data, dict):
        raise ProviderError(f"config file {target!r} must contain a mapping")
    return data.get("provider", data)


def from_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    return {key: env[var] for key, var in _ENV_VARS.items() if env.get(var)}


def load(
    config_file: Optional[str] = None,
    provider_block: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ProviderConfig:
    cfg = ProviderConfig()
    cfg = cfg.merged(load_file(config_file))
    if provider_block:
        cfg = cfg.merged(provider_block)
    cfg = cfg.merged(from_environment(environ))
    return cfg
