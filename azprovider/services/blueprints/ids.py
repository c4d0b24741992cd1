from dataclasses import dataclass

from azprovider.resourceids import ResourceId


@dataclass(frozen=True)
class BlueprintDefinitionId(ResourceId):
    TEMPLATE = "{scope}/providers/Microsoft.Blueprint/blueprints/{blueprint_name}"
    DISPLAY_NAME = "Blueprint Definition"

    scope: str
    blueprint_name: str


@dataclass(frozen=True)
class BlueprintPublishedVersionId(ResourceId):
    TEMPLATE = "{scope}/providers/Microsoft.Blueprint/blueprints/{blueprint_name}/versions/{version_name}"
    DISPLAY_NAME = "Blueprint Published Version"

    scope: str
    blueprint_name: str
    version_name: str
