import logging
from typing import Any, Dict

from azure.core.exceptions import HttpResponseError

from azprovider import commonschema, timeouts
from azprovider.clients import Client
from azprovider.errors import ProviderError, requires_import_error, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.services.storage import validate
from azprovider.services.storage.resourceids import StorageAccountId
from azprovider.timeouts import Timeouts, minutes
from azprovider.validation import string_in_slice

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "azurerm_storage_account"

_UPDATABLE = (
    "account_kind",
    "account_replication_type",
    "access_tier",
    "https_traffic_only_enabled",
    "min_tls_version",
    "allow_nested_items_to_be_public",
    "tags",
)


def storage_account() -> Resource:
    return Resource(
        create=_create,
        read=_read,
        update=_update,
        delete=_delete,
        importer=StorageAccountId.parse,
        timeouts=Timeouts(create=minutes(60), read=minutes(5), update=minutes(60), delete=minutes(60)),
        description="Manages an Azure Storage Account.",
        schema={
            "name": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=validate.storage_account_name,
            ),
            "resource_group_name": commonschema.resource_group_name(),
            "location": commonschema.location(),
            "account_kind": Schema(
                FieldType.STRING,
                optional=True,
                default="StorageV2",
                validate_func=string_in_slice(
                    ["BlobStorage", "BlockBlobStorage", "FileStorage", "Storage", "StorageV2"]
                ),
            ),
            "account_tier": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=string_in_slice(["Standard", "Premium"]),
            ),
            "account_replication_type": Schema(
                FieldType.STRING,
                required=True,
                validate_func=string_in_slice(["LRS", "ZRS", "GRS", "RAGRS", "GZRS", "RAGZRS"]),
            ),
            "access_tier": Schema(
                FieldType.STRING,
                optional=True,
                default="Hot",
                validate_func=string_in_slice(["Hot", "Cool"]),
            ),
            "https_traffic_only_enabled": Schema(FieldType.BOOL, optional=True, default=True),
            "min_tls_version": Schema(
                FieldType.STRING,
                optional=True,
                default="TLS1_2",
                validate_func=string_in_slice(["TLS1_0", "TLS1_1", "TLS1_2"]),
            ),
            "allow_nested_items_to_be_public": Schema(FieldType.BOOL, optional=True, default=True),
            "tags": commonschema.tags(),

            # Computed
            "primary_location": Schema(FieldType.STRING, computed=True),
            "secondary_location": Schema(FieldType.STRING, computed=True),
            "primary_blob_endpoint": Schema(FieldType.STRING, computed=True),
            "primary_access_key": Schema(FieldType.STRING, computed=True, sensitive=True),
            "primary_connection_string": Schema(FieldType.STRING, computed=True, sensitive=True),
        },
    )


def _sku_name(d: ResourceData) -> str:
    return f"{d.get('account_tier')}_{d.get('account_replication_type')}"


def _create(d: ResourceData, meta: Client) -> None:
    client = meta.storage.storage_accounts
    rid = StorageAccountId(meta.subscription_id, d.get("resource_group_name"), d.get("name"))

    try:
        existing = client.get_properties(rid.resource_group_name, rid.storage_account_name)
    except HttpResponseError as e:
        if not response_was_not_found(e):
            raise ProviderError(f"checking for presence of existing {rid}: {e}") from e
        existing = None
    if existing is not None:
        raise requires_import_error(RESOURCE_TYPE, rid.id())

    try:
        availability = client.check_name_availability(
            {"name": rid.storage_account_name, "type": "Microsoft.Storage/storageAccounts"}
        )
    except HttpResponseError as e:
        raise ProviderError(f"checking if the name {rid.storage_account_name!r} is available: {e}") from e
    if not availability.name_available:
        raise ProviderError(
            f"the name {rid.storage_account_name!r} used for the Storage Account needs to be "
            f"globally unique and isn't available: {availability.message}"
        )

    params: Dict[str, Any] = {
        "location": commonschema.normalize_location(d.get("location")),
        "kind": d.get("account_kind"),
        "sku": {"name": _sku_name(d)},
        "access_tier": d.get("access_tier"),
        "enable_https_traffic_only": d.get("https_traffic_only_enabled"),
        "minimum_tls_version": d.get("min_tls_version"),
        "allow_blob_public_access": d.get("allow_nested_items_to_be_public"),
        "tags": commonschema.expand_tags(d.get("tags")),
    }

    logger.info(f"Creating {rid}")
    try:
        poller = client.begin_create(rid.resource_group_name, rid.storage_account_name, params)
        timeouts.wait_for(poller, timeouts.for_create(d), f"creation of {rid}")
    except HttpResponseError as e:
        raise ProviderError(f"creating {rid}: {e}") from e

    d.set_id(rid.id())
    _read(d, meta)


def _update(d: ResourceData, meta: Client) -> None:
    client = meta.storage.storage_accounts
    rid = StorageAccountId.parse(d.id)

    if not any(d.has_change(k) for k in _UPDATABLE):
        _read(d, meta)
        return

    params: Dict[str, Any] = {}
    if d.has_change("account_kind"):
        params["kind"] = d.get("account_kind")
    if d.has_change("account_replication_type"):
        params["sku"] = {"name": _sku_name(d)}
    if d.has_change("access_tier"):
        params["access_tier"] = d.get("access_tier")
    if d.has_change("https_traffic_only_enabled"):
        params["enable_https_traffic_only"] = d.get("https_traffic_only_enabled")
    if d.has_change("min_tls_version"):
        params["minimum_tls_version"] = d.get("min_tls_version")
    if d.has_change("allow_nested_items_to_be_public"):
        params["allow_blob_public_access"] = d.get("allow_nested_items_to_be_public")
    if d.has_change("tags"):
        params["tags"] = commonschema.expand_tags(d.get("tags"))

    logger.info(f"Updating {rid}: {sorted(params)}")
    try:
        client.update(rid.resource_group_name, rid.storage_account_name, params)
    except HttpResponseError as e:
        raise ProviderError(f"updating {rid}: {e}") from e

    _read(d, meta)


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.storage.storage_accounts
    rid = StorageAccountId.parse(d.id)

    try:
        resp = client.get_properties(rid.resource_group_name, rid.storage_account_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"[DEBUG] {rid} was not found - removing from state")
            d.set_id("")
            return
        raise ProviderError(f"retrieving {rid}: {e}") from e

    d.set("name", rid.storage_account_name)
    d.set("resource_group_name", rid.resource_group_name)
    d.set("location", commonschema.normalize_location(resp.location))
    d.set("account_kind", resp.kind)

    if resp.sku is not None and resp.sku.name:
        tier, _, replication = resp.sku.name.partition("_")
        d.set("account_tier", tier)
        d.set("account_replication_type", replication)

    d.set("access_tier", resp.access_tier or "")
    d.set("https_traffic_only_enabled", bool(resp.enable_https_traffic_only))
    d.set("min_tls_version", resp.minimum_tls_version or "")
    d.set("allow_nested_items_to_be_public", bool(resp.allow_blob_public_access))
    d.set("primary_location", resp.primary_location or "")
    d.set("secondary_location", resp.secondary_location or "")
    endpoints = resp.primary_endpoints
    d.set("primary_blob_endpoint", (endpoints.blob if endpoints is not None else None) or "")
    d.set("tags", commonschema.flatten_tags(resp.tags))

    try:
        keys = client.list_keys(rid.resource_group_name, rid.storage_account_name)
    except HttpResponseError as e:
        raise ProviderError(f"listing access keys for {rid}: {e}") from e

    primary_key = keys.keys[0].value if keys.keys else ""
    d.set("primary_access_key", primary_key)
    if primary_key:
        d.set(
            "primary_connection_string",
            f"DefaultEndpointsProtocol=https;AccountName={rid.storage_account_name};"
            f"AccountKey={primary_key};EndpointSuffix={meta.config.storage_endpoint_suffix}",
        )


def _delete(d: ResourceData, meta: Client) -> None:
    client = meta.storage.storage_accounts
    rid = StorageAccountId.parse(d.id)

    logger.info(f"Deleting {rid}")
    try:
        client.delete(rid.resource_group_name, rid.storage_account_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"{rid} already deleted")
            return
        raise ProviderError(f"deleting {rid}: {e}") from e
