import logging
from typing import Any, List

from azure.core.exceptions import HttpResponseError

from azprovider import timeouts
from azprovider.clients import Client
from azprovider.errors import OperationTimeoutError, ProviderError, response_was_not_found
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.services.blueprints import validate
from azprovider.timeouts import Timeouts, minutes

logger = logging.getLogger(__name__)


def blueprint_definition() -> Resource:
    return Resource(
        read=_read,
        timeouts=Timeouts(create=None, read=minutes(5), update=None, delete=None),
        description="Use this data source to access information about an existing Azure Blueprint Definition.",
        schema={
            "name": Schema(FieldType.STRING, required=True, validate_func=validate.definition_name),
            "scope_id": Schema(FieldType.STRING, required=True, validate_func=validate.scope_id),

            # Computed
            "description": Schema(FieldType.STRING, computed=True),
            "display_name": Schema(FieldType.STRING, computed=True),
            "last_modified": Schema(FieldType.STRING, computed=True),
            "target_scope": Schema(FieldType.STRING, computed=True),
            "time_created": Schema(FieldType.STRING, computed=True),
            "versions": Schema(FieldType.LIST, computed=True, elem=Schema(FieldType.STRING)),
        },
    )


def format_timestamp(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _has_properties(version: Any) -> bool:
    return any(
        getattr(version, attr, None) is not None
        for attr in ("blueprint_name", "target_scope", "status", "display_name")
    )


def _read(d: ResourceData, meta: Client) -> None:
    client = meta.blueprints
    deadline = timeouts.for_read(d)

    name = d.get("name")
    scope = d.get("scope_id")

    try:
        resp = client.blueprints.get(scope, name)
    except HttpResponseError as e:
        if response_was_not_found(e):
            raise ProviderError(f"Blueprint Definition {name!r} not found in Scope ({scope!r}): {e}") from e
        raise ProviderError(f"Read failed for Blueprint Definition ({name!r}) in Scope ({scope!r}): {e}") from e

    if not resp.id:
        raise ProviderError(f"Failed to retrieve ID for Blueprint {name!r}")
    d.set_id(resp.id)

    if resp.description is not None:
        d.set("description", resp.description)
    if resp.display_name is not None:
        d.set("display_name", resp.display_name)

    status = getattr(resp, "status", None)
    d.set("last_modified", format_timestamp(getattr(status, "last_modified", None)))
    d.set("time_created", format_timestamp(getattr(status, "time_created", None)))
    d.set("target_scope", resp.target_scope or "")

    version_list: List[str] = []
    try:
        for version in client.published_blueprints.list(scope, name):
            if deadline.expired:
                raise OperationTimeoutError(f"timed out listing versions of Blueprint {name!r}")
            if not _has_properties(version) or not version.name:
                continue
            version_list.append(version.name)
    except HttpResponseError as e:
        raise ProviderError(f"listing blue print versions for {resp.id} error: {e}") from e

    logger.debug(f"Blueprint {name!r} in {scope!r} has {len(version_list)} published version(s)")
    d.set("versions", version_list)
