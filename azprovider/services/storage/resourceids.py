from dataclasses import dataclass

from azprovider.resourceids import ResourceId

_ACCOUNT = (
    "/subscriptions/{subscription_id}/resourceGroups/{resource_group_name}"
    "/providers/Microsoft.Storage/storageAccounts/{storage_account_name}"
)
_SYNC_SERVICE = (
    "/subscriptions/{subscription_id}/resourceGroups/{resource_group_name}"
    "/providers/Microsoft.StorageSync/storageSyncServices/{storage_sync_service_name}"
)


@dataclass(frozen=True)
class StorageAccountId(ResourceId):
    TEMPLATE = _ACCOUNT
    DISPLAY_NAME = "Storage Account"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str


@dataclass(frozen=True)
class BlobInventoryPolicyId(ResourceId):
    TEMPLATE = _ACCOUNT + "/inventoryPolicies/{inventory_policy_name}"
    DISPLAY_NAME = "Blob Inventory Policy"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    inventory_policy_name: str


@dataclass(frozen=True)
class EncryptionScopeId(ResourceId):
    TEMPLATE = _ACCOUNT + "/encryptionScopes/{encryption_scope_name}"
    DISPLAY_NAME = "Encryption Scope"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    encryption_scope_name: str


@dataclass(frozen=True)
class StorageAccountDefaultBlobId(ResourceId):
    TEMPLATE = _ACCOUNT + "/blobServices/{blob_service_name}"
    DISPLAY_NAME = "Storage Account Default Blob"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    blob_service_name: str


@dataclass(frozen=True)
class StorageContainerResourceManagerId(ResourceId):
    TEMPLATE = _ACCOUNT + "/blobServices/{blob_service_name}/containers/{container_name}"
    DISPLAY_NAME = "Storage Container Resource Manager"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    blob_service_name: str
    container_name: str


@dataclass(frozen=True)
class StorageQueueResourceManagerId(ResourceId):
    TEMPLATE = _ACCOUNT + "/queueServices/{queue_service_name}/queues/{queue_name}"
    DISPLAY_NAME = "Storage Queue Resource Manager"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    queue_service_name: str
    queue_name: str


@dataclass(frozen=True)
class StorageShareResourceManagerId(ResourceId):
    TEMPLATE = _ACCOUNT + "/fileServices/{file_service_name}/fileshares/{fileshare_name}"
    DISPLAY_NAME = "Storage Share Resource Manager"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    file_service_name: str
    fileshare_name: str


@dataclass(frozen=True)
class StorageAccountManagementPolicyId(ResourceId):
    TEMPLATE = _ACCOUNT + "/managementPolicies/{management_policy_name}"
    DISPLAY_NAME = "Storage Account Management Policy"

    subscription_id: str
    resource_group_name: str
    storage_account_name: str
    management_policy_name: str


@dataclass(frozen=True)
class StorageSyncServiceId(ResourceId):
    TEMPLATE = _SYNC_SERVICE
    DISPLAY_NAME = "Storage Sync Service"

    subscription_id: str
    resource_group_name: str
    storage_sync_service_name: str


@dataclass(frozen=True)
class StorageSyncGroupId(ResourceId):
    TEMPLATE = _SYNC_SERVICE + "/syncGroups/{sync_group_name}"
    DISPLAY_NAME = "Storage Sync Group"

    subscription_id: str
    resource_group_name: str
    storage_sync_service_name: str
    sync_group_name: str


@dataclass(frozen=True)
class StorageSyncCloudEndpointId(ResourceId):
    TEMPLATE = _SYNC_SERVICE + "/syncGroups/{sync_group_name}/cloudEndpoints/{cloud_endpoint_name}"
    DISPLAY_NAME = "Storage Sync Cloud Endpoint"

    subscription_id: str
    resource_group_name: str
    storage_sync_service_name: str
    sync_group_name: str
    cloud_endpoint_name: str
