from dataclasses import dataclass

from azprovider.resourceids import ResourceId


@dataclass(frozen=True)
class ApplicationId(ResourceId):
    TEMPLATE = (
        "/subscriptions/{subscription_id}/resourceGroups/{resource_group_name}"
        "/providers/Microsoft.Solutions/applications/{application_name}"
    )
    DISPLAY_NAME = "Application"

    subscription_id: str
    resource_group_name: str
    application_name: str


@dataclass(frozen=True)
class ApplicationDefinitionId(ResourceId):
    TEMPLATE = (
        "/subscriptions/{subscription_id}/resourceGroups/{resource_group_name}"
        "/providers/Microsoft.Solutions/applicationDefinitions/{application_definition_name}"
    )
    DISPLAY_NAME = "Application Definition"

    subscription_id: str
    resource_group_name: str
    application_definition_name: str
