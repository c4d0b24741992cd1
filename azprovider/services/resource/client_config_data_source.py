import hashlib

from azprovider.clients import Client
from azprovider.models.schema import FieldType, Resource, Schema
from azprovider.models.state import ResourceData
from azprovider.timeouts import Timeouts, minutes


def client_config() -> Resource:
    return Resource(
        read=_read,
        timeouts=Timeouts(create=None, read=minutes(5), update=None, delete=None),
        description="Use this data source to access the configuration of the AzureRM provider.",
        schema={
            "client_id": Schema(FieldType.STRING, computed=True),
            "tenant_id": Schema(FieldType.STRING, computed=True),
            "subscription_id": Schema(FieldType.STRING, computed=True),
            "object_id": Schema(FieldType.STRING, computed=True),
        },
    )


def _read(d: ResourceData, meta: Client) -> None:
    values = {
        "client_id": meta.client_id,
        "tenant_id": meta.tenant_id,
        "subscription_id": meta.subscription_id,
        "object_id": meta.object_id,
    }
    digest = hashlib.sha256("|".join(values.values()).encode()).hexdigest()
    d.set_id(f"clientConfigs/{digest[:32]}")
    for key, value in values.items():
        d.set(key, value)
