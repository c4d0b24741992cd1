import json
import logging
from typing import Any, Dict, List

from azure.core.exceptions import HttpResponseError

from azprovider import commonschema, timeouts
from azprovider.clients import Client
from azprovider.errors import ProviderError, requires_import_error, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.services.managedapplications import validate
from azprovider.services.managedapplications.ids import ApplicationDefinitionId
from azprovider.timeouts import Timeouts, minutes
from azprovider.validation import is_url_with_https, is_uuid, string_in_slice, string_is_json

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "azurerm_managed_application_definition"


def managed_application_definition() -> Resource:
    return Resource(
        create=_create_update,
        read=_read,
        update=_create_update,
        delete=_delete,
        importer=ApplicationDefinitionId.parse,
        timeouts=Timeouts(create=minutes(30), read=minutes(5), update=minutes(30), delete=minutes(30)),
        description="Manages a Managed Application Definition.",
        schema={
            "name": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=validate.application_definition_name,
            ),
            "resource_group_name": commonschema.resource_group_name(),
            "location": commonschema.location(),
            "lock_level": Schema(
                FieldType.STRING,
                required=True,
                force_new=True,
                validate_func=string_in_slice(["CanNotDelete", "None", "ReadOnly"]),
            ),
            "authorization": Schema(
                FieldType.SET,
                optional=True,
                elem={
                    "role_definition_id": Schema(FieldType.STRING, required=True, validate_func=is_uuid),
                    "service_principal_id": Schema(FieldType.STRING, required=True, validate_func=is_uuid),
                },
            ),
            "create_ui_definition": Schema(
                FieldType.STRING,
                optional=True,
                validate_func=string_is_json,
                diff_suppress_func=commonschema.suppress_json_diff,
                required_with=["main_template"],
            ),
            "main_template": Schema(
                FieldType.STRING,
                optional=True,
                validate_func=string_is_json,
                diff_suppress_func=commonschema.suppress_json_diff,
                required_with=["create_ui_definition"],
            ),
            "description": Schema(
                FieldType.STRING,
                optional=True,
                validate_func=validate.application_definition_description,
            ),
            "display_name": Schema(
                FieldType.STRING,
                optional=True,
                validate_func=validate.application_definition_display_name,
            ),
            "package_enabled": Schema(FieldType.BOOL, optional=True, default=True),
            "package_file_uri": Schema(FieldType.STRING, optional=True, validate_func=is_url_with_https),
            "tags": commonschema.tags(),
        },
    )


def _create_update(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.application_definitions
    rid = ApplicationDefinitionId(meta.subscription_id, d.get("resource_group_name"), d.get("name"))

    if d.is_new_resource():
        try:
            existing = client.get(rid.resource_group_name, rid.application_definition_name)
        except HttpResponseError as e:
            if not response_was_not_found(e):
                raise ProviderError(f"checking for presence of existing {rid}: {e}") from e
            existing = None
        if existing is not None:
            raise requires_import_error(RESOURCE_TYPE, rid.id())

    params: Dict[str, Any] = {
        "location": commonschema.normalize_location(d.get("location")),
        "lock_level": d.get("lock_level"),
        "authorizations": expand_authorizations(d.get("authorization")),
        "description": d.get("description"),
        "display_name": d.get("display_name"),
        "is_enabled": d.get("package_enabled"),
        "tags": commonschema.expand_tags(d.get("tags")),
    }
    if d.get("package_file_uri"):
        params["package_file_uri"] = d.get("package_file_uri")
    if d.get("create_ui_definition"):
        params["create_ui_definition"] = json.loads(d.get("create_ui_definition"))
    if d.get("main_template"):
        params["main_template"] = json.loads(d.get("main_template"))

    deadline = timeouts.for_create(d) if d.is_new_resource() else timeouts.for_update(d)
    logger.info(f"Creating/updating {rid}")
    try:
        poller = client.begin_create_or_update(rid.resource_group_name, rid.application_definition_name, params)
        timeouts.wait_for(poller, deadline, f"creation/update of {rid}")
    except HttpResponseError as e:
        raise ProviderError(f"creating/updating {rid}: {e}") from e

    d.set_id(rid.id())
    _read(d, meta)


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.application_definitions
    rid = ApplicationDefinitionId.parse(d.id)

    try:
        resp = client.get(rid.resource_group_name, rid.application_definition_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"[DEBUG] {rid} was not found - removing from state")
            d.set_id("")
            return
        raise ProviderError(f"retrieving {rid}: {e}") from e

    d.set("name", rid.application_definition_name)
    d.set("resource_group_name", rid.resource_group_name)
    d.set("location", commonschema.normalize_location(resp.location))
    d.set("lock_level", resp.lock_level)
    d.set("authorization", flatten_authorizations(resp.authorizations))
    d.set("description", resp.description or "")
    d.set("display_name", resp.display_name or "")
    d.set("package_enabled", bool(resp.is_enabled) if resp.is_enabled is not None else True)
    d.set("package_file_uri", resp.package_file_uri or "")

    # Templates are only returned when they were supplied inline.
    if resp.create_ui_definition is not None:
        d.set("create_ui_definition", json.dumps(resp.create_ui_definition, sort_keys=True))
    if resp.main_template is not None:
        d.set("main_template", json.dumps(resp.main_template, sort_keys=True))

    d.set("tags", commonschema.flatten_tags(resp.tags))


def _delete(d: ResourceData, meta: Client) -> None:
    client = meta.managed_applications.application_definitions
    rid = ApplicationDefinitionId.parse(d.id)

    logger.info(f"Deleting {rid}")
    try:
        poller = client.begin_delete(rid.resource_group_name, rid.application_definition_name)
        timeouts.wait_for(poller, timeouts.for_delete(d), f"deletion of {rid}")
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"{rid} already deleted")
            return
        raise ProviderError(f"deleting {rid}: {e}") from e


def expand_authorizations(blocks: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    return [
        {"principal_id": b["service_principal_id"], "role_definition_id": b["role_definition_id"]}
        for b in blocks or []
    ]


def flatten_authorizations(authorizations: Any) -> List[Dict[str, str]]:
    return [
        {"service_principal_id": a.principal_id or "", "role_definition_id": a.role_definition_id or ""}
        for a in authorizations or []
    ]
