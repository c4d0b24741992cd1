import logging

from azure.core.exceptions import HttpResponseError

from azprovider import commonschema, timeouts
from azprovider.clients import Client
from azprovider.errors import ProviderError, requires_import_error, response_was_not_found
from azprovider.models.schema import Resource
from azprovider.models.state import ResourceData
from azprovider.resourceids import ResourceGroupId
from azprovider.timeouts import Timeouts, minutes

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "azurerm_resource_group"


def resource_group() -> Resource:
    return Resource(
        create=_create_update,
        read=_read,
        update=_create_update,
        delete=_delete,
        importer=ResourceGroupId.parse,
        timeouts=Timeouts(create=minutes(90), read=minutes(5), update=minutes(90), delete=minutes(90)),
        description="Manages a Resource Group.",
        schema={
            "name": commonschema.resource_group_name(),
            "location": commonschema.location(),
            "tags": commonschema.tags(),
        },
    )


def _create_update(d: ResourceData, meta: Client) -> None:
    client = meta.resource.resource_groups
    rid = ResourceGroupId(meta.subscription_id, d.get("name"))

    if d.is_new_resource():
        try:
            existing = client.get(rid.resource_group_name)
        except HttpResponseError as e:
            if not response_was_not_found(e):
                raise ProviderError(f"checking for presence of existing {rid}: {e}") from e
            existing = None
        if existing is not None:
            raise requires_import_error(RESOURCE_TYPE, rid.id())

    params = {
        "location": commonschema.normalize_location(d.get("location")),
        "tags": commonschema.expand_tags(d.get("tags")),
    }
    try:
        client.create_or_update(rid.resource_group_name, params)
    except HttpResponseError as e:
        raise ProviderError(f"creating/updating {rid}: {e}") from e

    d.set_id(rid.id())
    _read(d, meta)


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.resource.resource_groups
    rid = ResourceGroupId.parse(d.id)

    try:
        resp = client.get(rid.resource_group_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"[DEBUG] {rid} was not found - removing from state")
            d.set_id("")
            return
        raise ProviderError(f"retrieving {rid}: {e}") from e

    d.set("name", rid.resource_group_name)
    d.set("location", commonschema.normalize_location(resp.location))
    d.set("tags", commonschema.flatten_tags(resp.tags))


def _delete(d: ResourceData, meta: Client) -> None:
    client = meta.resource
    rid = ResourceGroupId.parse(d.id)

    if meta.config.features.prevent_deletion_if_contains_resources:
        try:
            nested = [r.id for r in client.resources.list_by_resource_group(rid.resource_group_name)]
        except HttpResponseError as e:
            raise ProviderError(f"listing resources in {rid}: {e}") from e
        if nested:
            listed = "\n".join(f"* `{n}`" for n in nested)
            raise ProviderError(
                f"deleting {rid}: the Resource Group still contains Resources.\n\n"
                f"Terraform is configured to check for Resources within the Resource Group when "
                f"deleting the Resource Group - and raise an error if nested Resources still exist "
                f"to avoid data loss.\n\nThis Resource Group contains {len(nested)} additional "
                f"Resources:\n\n{listed}"
            )

    logger.info(f"Deleting {rid}")
    try:
        poller = client.resource_groups.begin_delete(rid.resource_group_name)
        timeouts.wait_for(poller, timeouts.for_delete(d), f"deletion of {rid}")
    except HttpResponseError as e:
        if response_was_not_found(e):
            logger.info(f"{rid} already deleted")
            return
        raise ProviderError(f"deleting {rid}: {e}") from e
