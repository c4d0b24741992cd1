from azure.core.exceptions import HttpResponseError

from azprovider.clients import Client
from azprovider.errors import ProviderError, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.services.blueprints import validate
from azprovider.services.blueprints.blueprint_definition_data_source import format_timestamp
from azprovider.services.blueprints.ids import BlueprintPublishedVersionId
from azprovider.timeouts import Timeouts, minutes


def blueprint_published_version() -> Resource:
    return Resource(
        read=_read,
        timeouts=Timeouts(create=None, read=minutes(5), update=None, delete=None),
        description="Use this data source to access information about an existing Blueprint Published Version.",
        schema={
            "scope_id": Schema(FieldType.STRING, required=True, validate_func=validate.scope_id),
            "blueprint_name": Schema(FieldType.STRING, required=True, validate_func=validate.definition_name),
            "version": Schema(FieldType.STRING, required=True, validate_func=validate.version_name),

            # Computed
            "type": Schema(FieldType.STRING, computed=True),
            "target_scope": Schema(FieldType.STRING, computed=True),
            "display_name": Schema(FieldType.STRING, computed=True),
            "description": Schema(FieldType.STRING, computed=True),
            "time_created": Schema(FieldType.STRING, computed=True),
            "last_modified": Schema(FieldType.STRING, computed=True),
            "change_notes": Schema(FieldType.STRING, computed=True),
        },
    )


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.blueprints.published_blueprints
    rid = BlueprintPublishedVersionId(d.get("scope_id"), d.get("blueprint_name"), d.get("version"))

    try:
        resp = client.get(rid.scope, rid.blueprint_name, rid.version_name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            raise ProviderError(f"{rid} was not found: {e}") from e
        raise ProviderError(f"retrieving {rid}: {e}") from e

    d.set_id(resp.id or rid.id())
    d.set("type", resp.type or "")
    d.set("target_scope", resp.target_scope or "")
    d.set("display_name", resp.display_name or "")
    d.set("description", resp.description or "")
    d.set("change_notes", getattr(resp, "change_notes", None) or "")

    status = getattr(resp, "status", None)
    d.set("time_created", format_timestamp(getattr(status, "time_created", None)))
    d.set("last_modified", format_timestamp(getattr(status, "last_modified", None)))
