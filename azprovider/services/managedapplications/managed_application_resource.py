import json
import logging
from typing import Any, Dict, List, Optional

from azure.core.exceptions import HttpResponseError

from azprovider import commonschema, timeouts
from azprovider.clients import Client
from azprovider.errors import ProviderError, requires_import_error, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.resourceids import ResourceGroupId
from azprovider.services.managedapplications import validate
from azprovider.services.managedapplications.ids import ApplicationDefinitionId, ApplicationId
from azprovider.timeouts import Timeouts, minutes
from azprovider.validation import string_in_slice, string_is_json, string_is_not_empty

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "azurerm_managed_application"

KIND_MARKETPLACE = "MarketPlace"
KIND_SERVICE_CATALOG = "ServiceCatalog"


def managed_application() -> Resource:
    return Resource(
        create=_create_update,
        read=_read,
        update=_create_update,
        delete=_delete,
        importer=ApplicationId.parse,
        timeouts=Timeouts(create=minutes(30), read=minutes(5), update=minutes(30), delete=minutes(30)),
        description="Manages a Managed Application.",
        schema={
            "name": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=validate.application_name,
            ),
            "resource_group_name": commonschema.resource_group_name(),
            "location": commonschema.location(),
            "kind": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=string_in_slice([KIND_MARKETPLACE, KIND_SERVICE_CATALOG]),
            ),
            "managed_resource_group_name": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=commonschema.resource_group_name().validate_func,
            ),
            "application_definition_id": Schema(
                FieldType.STRING,
                optional=True,
                force_new=True,
                validate_func=ApplicationDefinitionId.validate,
            ),
            "parameters": Schema(
                FieldType.MAP,
                optional=True,
                computed=True,
                elem=Schema(FieldType.STRING),
                conflicts_with=["parameter_values"],
            ),
            "parameter_values": Schema(
                FieldType.STRING,
                optional=True,
                computed=True,
                validate_func=string_is_json,
                diff_suppress_func=commonschema.suppress_json_diff,
                conflicts_with=["parameters"],
            ),
            "plan": Schema(
                FieldType.LIST,
                optional=True,
                force_new=True,
                max_items=1,
                elem={
                    "name": Schema(FieldType.STRING, required=True, force_new=True, validate_func=string_is_not_empty),
                    "product": Schema(FieldType.STRING, required=True, force_new=True, validate_func=string_is_not_empty),
                    "publisher": Schema(FieldType.STRING, required=True, force_new=True, validate_func=string_is_not_empty),
                    "version": Schema(FieldType.STRING, required=True, force_new=True, validate_func=string_is_not_empty),
                    "promotion_code": Schema(FieldType.STRING, optional=True, force_new=True, validate_func=string_is_not_empty),
                },
            ),
            "tags": commonschema.tags(),
            "outputs": Schema(FieldType.MAP, computed=True, elem=Schema(FieldType.STRING)),
        },
    )


def _create_update(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.applications
    rid = ApplicationId(meta.subscription_id, d.get("resource_group_name"), d.get("name"))

    if d.is_new_resource():
        try:
            existing = client.get(rid.resource_group_name, rid.application_name)
        except HttpResponseError as e:
            if not response_was_not_found(e):
                raise ProviderError(f"checking for presence of existing {rid}: {e}") from e
            existing = None
        if existing is not None:
            raise requires_import_error(RESOURCE_TYPE, rid.id())

    managed_rg = ResourceGroupId(meta.subscription_id, d.get("managed_resource_group_name"))
    params: Dict[str, Any] = {
        "location": commonschema.normalize_location(d.get("location")),
        "kind": d.get("kind"),
        "managed_resource_group_id": managed_rg.id(),
        "tags": commonschema.expand_tags(d.get("tags")),
    }

    definition_id, ok = d.get_ok("application_definition_id")
    if ok:
        params["application_definition_id"] = definition_id

    plan = expand_plan(d.get("plan"))
    if plan is not None:
        params["plan"] = plan

    params["parameters"] = expand_parameters(d)

    deadline = timeouts.for_create(d) if d.is_new_resource() else timeouts.for_update(d)
    logger.info(f"Creating/updating {rid}")
    try:
        poller = client.begin_create_or_update(rid.resource_group_name, rid.application_name, params)
        timeouts.wait_for(poller, deadline, f"creation/update of {rid}")
    except HttpResponseError as e:
        raise ProviderError(f"creating/updating {rid}: {e}") from e

    d.set_id(rid.id())
    _read(d, meta)


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.applications
    rid = ApplicationId.parse(d.id)

    try:
        resp = client.get(rid.resource_group_name, rid.application_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"[DEBUG] {rid} was not found - removing from state")
            d.set_id("")
            return
        raise ProviderError(f"retrieving {rid}: {e}") from e

    d.set("name", rid.application_name)
    d.set("resource_group_name", rid.resource_group_name)
    d.set("location", commonschema.normalize_location(resp.location))
    d.set("kind", resp.kind)

    if resp.managed_resource_group_id:
        managed_rg = ResourceGroupId.parse_insensitively(resp.managed_resource_group_id)
        d.set("managed_resource_group_name", managed_rg.resource_group_name)
    d.set("application_definition_id", resp.application_definition_id or "")
    d.set("plan", flatten_plan(getattr(resp, "plan", None)))

    params = resp.parameters or {}
    d.set("parameters", flatten_parameters_or_outputs(params, "parameters"))
    d.set("parameter_values", json.dumps(params, sort_keys=True, separators=(",", ":")))
    d.set("outputs", flatten_parameters_or_outputs(resp.outputs or {}, "outputs"))
    d.set("tags", commonschema.flatten_tags(resp.tags))


def _delete(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.applications
    rid = ApplicationId.parse(d.id)

    logger.info(f"Deleting {rid}")
    try:
        poller = client.begin_delete(rid.resource_group_name, rid.application_name)
        timeouts.wait_for(poller, timeouts.for_delete(d), f"deletion of {rid}")
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"{rid} already deleted")
            return
        raise ProviderError(f"deleting {rid}: {e}") from e


# ------------------------------------------------ expanders / flatteners
def expand_parameters(d: ResourceData) -> Dict[str, Any]:
    """Parameters come either from the raw ``parameter_values`` JSON or the flat ``parameters`` map."""
    if d.in_config("parameter_values"):
        raw = d.get("parameter_values")
        try:
            values = json.loads(raw) if raw else {}
        except ValueError as e:
            raise ProviderError(f"unmarshalling `parameter_values`: {e}") from e
        if not isinstance(values, dict):
            raise ProviderError("`parameter_values` must be a JSON object")
        return values
    return {k: {"value": v} for k, v in (d.get("parameters") or {}).items()}


def expand_plan(blocks: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not blocks:
        return None
    plan = blocks[0]
    out = {
        "name": plan["name"],
        "product": plan["product"],
        "publisher": plan["publisher"],
        "version": plan["version"],
    }
    if plan.get("promotion_code"):
        out["promotion_code"] = plan["promotion_code"]
    return out


def flatten_plan(plan: Any) -> List[Dict[str, Any]]:
    if plan is None:
        return []
    return [{
        "name": plan.name or "",
        "product": plan.product or "",
        "publisher": plan.publisher or "",
        "version": plan.version or "",
        "promotion_code": getattr(plan, "promotion_code", None) or "",
    }]


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, str)):
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def flatten_parameters_or_outputs(raw: Dict[str, Any], field: str) -> Dict[str, str]:
    results: Dict[str, str] = {}
    for key, entry in raw.items():
        if not isinstance(entry, dict):
            raise ProviderError(f"unexpected {field} type for {key!r}: {type(entry).__name__}")
        value = entry.get("value")
        if value is None:
            continue
        results[key] = _stringify(value)
    return results
