import logging
from typing import Any, Dict, List, Optional

from azure.core.exceptions import HttpResponseError

from azprovider.clients import Client
from azprovider.errors import ProviderError, requires_import_error, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.services.storage import validate
from azprovider.services.storage.resourceids import StorageAccountId, StorageAccountManagementPolicyId
from azprovider.timeouts import Timeouts, minutes
from azprovider.validation import string_in_slice

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "azurerm_storage_management_policy"

# Storage accounts carry at most one lifecycle policy and it is always named "default".
POLICY_NAME = "default"


def _days() -> Schema:
    return Schema(FieldType.INT, optional=True, default=-1, validate_func=validate.days_or_unset)


def storage_management_policy() -> Resource:
    return Resource(
        create=_create_update,
        read=_read,
        update=_create_update,
        delete=_delete,
        importer=StorageAccountManagementPolicyId.parse,
        timeouts=Timeouts(create=minutes(60), read=minutes(5), update=minutes(60), delete=minutes(60)),
        description="Manages an Azure Storage Account Management Policy.",
        schema={
            "storage_account_id": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=StorageAccountId.validate,
            ),
            "rule": Schema(
                FieldType.LIST,
                optional=True,
                elem={
                    "name": Schema(FieldType.STRING, required=True, validate_func=validate.management_policy_rule_name),
                    "enabled": Schema(FieldType.BOOL, required=True),
                    "filters": Schema(
                        FieldType.LIST,
                        optional=True,
                        max_items=1,
                        elem={
                            "prefix_match": Schema(FieldType.SET, optional=True, elem=Schema(FieldType.STRING)),
                            "blob_types": Schema(
                                FieldType.SET,
                                optional=True,
                                elem=Schema(
                                    FieldType.STRING,
                                    validate_func=string_in_slice(["blockBlob", "appendBlob"]),
                                ),
                            ),
                        },
                    ),
                    "actions": Schema(
                        FieldType.LIST,
                        required=True,
                        max_items=1,
                        elem={
                            "base_blob": Schema(
                                FieldType.LIST,
                                optional=True,
                                max_items=1,
                                elem={
                                    "tier_to_cool_after_days_since_modification_greater_than": _days(),
                                    "tier_to_archive_after_days_since_modification_greater_than": _days(),
                                    "delete_after_days_since_modification_greater_than": _days(),
                                },
                            ),
                            "snapshot": Schema(
                                FieldType.LIST,
                                optional=True,
                                max_items=1,
                                elem={
                                    "delete_after_days_since_creation_greater_than": _days(),
                                },
                            ),
                        },
                    ),
                },
            ),
        },
    )


def _create_update(d: ResourceData, meta: Client) -> None:
    client = meta.storage.management_policies
    account = StorageAccountId.parse(d.get("storage_account_id"))
    rid = StorageAccountManagementPolicyId(
        account.subscription_id, account.resource_group_name, account.storage_account_name, POLICY_NAME
    )

    if d.is_new_resource():
        try:
            existing = client.get(rid.resource_group_name, rid.storage_account_name, POLICY_NAME)
        except HttpResponseError as e:
            if not response_was_not_found(e):
                raise ProviderError(f"checking for presence of existing {rid}: {e}") from e
            existing = None
        if existing is not None:
            raise requires_import_error(RESOURCE_TYPE, rid.id())

    properties = {"policy": {"rules": [expand_rule(r) for r in d.get("rule")]}}

    logger.info(f"Creating/updating {rid}")
    try:
        client.create_or_update(rid.resource_group_name, rid.storage_account_name, POLICY_NAME, properties)
    except HttpResponseError as e:
        raise ProviderError(f"creating/updating {rid}: {e}") from e

    d.set_id(rid.id())
    _read(d, meta)


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.storage.management_policies
    rid = StorageAccountManagementPolicyId.parse(d.id)

    try:
        resp = client.get(rid.resource_group_name, rid.storage_account_name, rid.management_policy_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"[DEBUG] {rid} was not found - removing from state")
            d.set_id("")
            return
        raise ProviderError(f"retrieving {rid}: {e}") from e

    account = StorageAccountId(rid.subscription_id, rid.resource_group_name, rid.storage_account_name)
    d.set("storage_account_id", account.id())

    rules = resp.policy.rules if resp.policy is not None else None
    d.set("rule", [flatten_rule(r) for r in rules or []])


def _delete(d: ResourceData, meta: Client) -> None:
    client = meta.storage.management_policies
    rid = StorageAccountManagementPolicyId.parse(d.id)

    logger.info(f"Deleting {rid}")
    try:
        client.delete(rid.resource_group_name, rid.storage_account_name, rid.management_policy_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            return
        raise ProviderError(f"deleting {rid}: {e}") from e


# ------------------------------------------------ expanders / flatteners
def _first(blocks: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return blocks[0] if blocks else None


def expand_rule(rule: Dict[str, Any]) -> Dict[str, Any]:
    definition: Dict[str, Any] = {"actions": {}}

    filters = _first(rule.get("filters"))
    if filters is not None:
        definition["filters"] = {
            "prefix_match": list(filters.get("prefix_match") or []),
            "blob_types": list(filters.get("blob_types") or []),
        }

    actions = _first(rule.get("actions")) or {}
    base_blob = _first(actions.get("base_blob"))
    if base_blob is not None:
        out: Dict[str, Any] = {}
        days = base_blob["tier_to_cool_after_days_since_modification_greater_than"]
        if days != -1:
            out["tier_to_cool"] = {"days_after_modification_greater_than": days}
        days = base_blob["tier_to_archive_after_days_since_modification_greater_than"]
        if days != -1:
            out["tier_to_archive"] = {"days_after_modification_greater_than": days}
        days = base_blob["delete_after_days_since_modification_greater_than"]
        if days != -1:
            out["delete"] = {"days_after_modification_greater_than": days}
        definition["actions"]["base_blob"] = out

    snapshot = _first(actions.get("snapshot"))
    if snapshot is not None:
        days = snapshot["delete_after_days_since_creation_greater_than"]
        definition["actions"]["snapshot"] = (
            {"delete": {"days_after_creation_greater_than": days}} if days != -1 else {}
        )

    return {
        "name": rule["name"],
        "enabled": rule["enabled"],
        "type": "Lifecycle",
        "definition": definition,
    }


def _days_after(action: Any, attr: str) -> int:
    if action is None:
        return -1
    value = getattr(action, attr, None)
    return int(value) if value is not None else -1


def flatten_rule(rule: Any) -> Dict[str, Any]:
    definition = rule.definition
    out: Dict[str, Any] = {
        "name": rule.name,
        "enabled": bool(rule.enabled),
        "filters": [],
        "actions": [],
    }
    if definition is None:
        return out

    filters = definition.filters
    if filters is not None:
        out["filters"] = [{
            "prefix_match": list(filters.prefix_match or []),
            "blob_types": list(filters.blob_types or []),
        }]

    actions = definition.actions
    if actions is not None:
        flattened: Dict[str, Any] = {"base_blob": [], "snapshot": []}
        base_blob = actions.base_blob
        if base_blob is not None:
            flattened["base_blob"] = [{
                "tier_to_cool_after_days_since_modification_greater_than":
                    _days_after(base_blob.tier_to_cool, "days_after_modification_greater_than"),
                "tier_to_archive_after_days_since_modification_greater_than":
                    _days_after(base_blob.tier_to_archive, "days_after_modification_greater_than"),
                "delete_after_days_since_modification_greater_than":
                    _days_after(base_blob.delete, "days_after_modification_greater_than"),
            }]
        snapshot = actions.snapshot
        if snapshot is not None:
            flattened["snapshot"] = [{
                "delete_after_days_since_creation_greater_than":
                    _days_after(snapshot.delete, "days_after_creation_greater_than"),
            }]
        out["actions"] = [flattened]

    return out
