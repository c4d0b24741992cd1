from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ConfigBlock:
    mode: str              # "managed", "data" or "provider"
    resource_type: str     # e.g. "azurerm_managed_application"
    name: str              # logical name in the configuration
    properties: Dict[str, Any] = field(default_factory=dict)
    source_file: str = ""
    relationships: List[str] = field(default_factory=list)   # addresses this block references

    @property
    def address(self) -> str:
        if self.mode == "data":
            return f"data.{self.resource_type}.{self.name}"
        if self.mode == "provider":
            return f"provider.{self.resource_type}"
        return f"{self.resource_type}.{self.name}"
