"""
Azure Resource Manager IDs.

Each ID type is a frozen dataclass whose ``TEMPLATE`` spells out the exact
path shape, for example::

    /subscriptions/{subscription_id}/resourceGroups/{resource_group_name}

Literal segments (the provider namespace) must match; ``{placeholders}``
become dataclass fields. A leading ``{scope}`` placeholder swallows any
number of segments so scoped types (blueprints) can live under a
subscription, a resource group or a management group.
"""
import re
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar

from azprovider.errors import ResourceIdParseError

T = TypeVar("T", bound="ResourceId")

_PLACEHOLDER_RE = re.compile(r"^\{(\w+)\}$")

ID_TYPES: Dict[str, Type["ResourceId"]] = {}


def _split(value: str) -> List[str]:
    return [p for p in value.strip("/").split("/")]


def _label(attr: str) -> str:
    words = attr.split("_")
    return " ".join("ID" if w == "id" else w.capitalize() for w in words)


@dataclass(frozen=True)
class ResourceId:
    TEMPLATE: ClassVar[str] = ""
    DISPLAY_NAME: ClassVar[str] = ""

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if cls.TEMPLATE:
            name = cls.__name__[:-2] if cls.__name__.endswith("Id") else cls.__name__
            ID_TYPES[name] = cls

    # ------------------------------------------------ template handling
    @classmethod
    def _template(cls) -> Tuple[bool, List[Tuple[str, str]]]:
        """Return (is_scoped, [(key, value-or-{attr}), ...]) for the template."""
        template = cls.TEMPLATE
        scoped = template.startswith("{scope}")
        if scoped:
            template = template[len("{scope}"):]
        parts = _split(template)
        pairs = [(parts[i], parts[i + 1]) for i in range(0, len(parts), 2)]
        return scoped, pairs

    # ------------------------------------------------ parsing
    @classmethod
    def parse(cls: Type[T], value: str, insensitively: bool = False) -> T:
        if not isinstance(value, str) or not value:
            raise ResourceIdParseError(f"parsing {cls.DISPLAY_NAME} ID: ID was empty")
        try:
            return cls(**cls._parse_values(value, insensitively))
        except ResourceIdParseError as exc:
            raise ResourceIdParseError(f"parsing {value!r} as a {cls.DISPLAY_NAME} ID: {exc}") from None

    @classmethod
    def parse_insensitively(cls: Type[T], value: str) -> T:
        return cls.parse(value, insensitively=True)

    @classmethod
    def _parse_values(cls, value: str, insensitively: bool) -> Dict[str, str]:
        if not value.startswith("/"):
            raise ResourceIdParseError("ID must start with a `/`")
        scoped, pairs = cls._template()
        segments = _split(value)
        values: Dict[str, str] = {}

        if scoped:
            needed = len(pairs) * 2
            if len(segments) <= needed:
                raise ResourceIdParseError("ID was missing the `scope` element")
            if "" in segments[: len(segments) - needed]:
                raise ResourceIdParseError("ID contained an empty segment in the `scope` element")
            values["scope"] = "/" + "/".join(segments[: len(segments) - needed])
            segments = segments[len(segments) - needed:]

        def same(a: str, b: str) -> bool:
            return a.lower() == b.lower() if insensitively else a == b

        for i, (key, expected) in enumerate(pairs):
            pos = i * 2
            if pos >= len(segments) or not same(segments[pos], key):
                raise ResourceIdParseError(f"ID was missing the `{key}` element")
            if pos + 1 >= len(segments) or segments[pos + 1] == "":
                raise ResourceIdParseError(f"ID was missing a value for the `{key}` element")
            actual = segments[pos + 1]
            m = _PLACEHOLDER_RE.match(expected)
            if m:
                values[m.group(1)] = actual
            elif not same(actual, expected):
                raise ResourceIdParseError(
                    f"expected the `{key}` segment to be `{expected}`, got `{actual}`"
                )

        if len(segments) > len(pairs) * 2:
            raise ResourceIdParseError("ID contained more segments than required")
        return values

    @classmethod
    def validate(cls, value: Any, key: str) -> List[str]:
        """Schema validation function accepting only this ID type."""
        if not isinstance(value, str):
            return [f"expected {key} to be a string"]
        try:
            cls.parse(value)
        except ResourceIdParseError as exc:
            return [str(exc)]
        return []

    # ------------------------------------------------ formatting
    def id(self) -> str:
        scoped, pairs = self._template()
        out = []
        for key, value in pairs:
            m = _PLACEHOLDER_RE.match(value)
            out.append(key)
            out.append(getattr(self, m.group(1)) if m else value)
        path = "/" + "/".join(out)
        if scoped:
            return self.scope.rstrip("/") + path
        return path

    def segments(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def __str__(self) -> str:
        parts = " / ".join(f'{_label(k)}: "{v}"' for k, v in self.segments().items())
        return f"{self.DISPLAY_NAME} ({parts})"


# ------------------------------------------------ shared scopes
@dataclass(frozen=True)
class SubscriptionId(ResourceId):
    TEMPLATE = "/subscriptions/{subscription_id}"
    DISPLAY_NAME = "Subscription"

    subscription_id: str


@dataclass(frozen=True)
class ResourceGroupId(ResourceId):
    TEMPLATE = "/subscriptions/{subscription_id}/resourceGroups/{resource_group_name}"
    DISPLAY_NAME = "Resource Group"

    subscription_id: str
    resource_group_name: str


@dataclass(frozen=True)
class ManagementGroupId(ResourceId):
    TEMPLATE = "/providers/Microsoft.Management/managementGroups/{management_group_name}"
    DISPLAY_NAME = "Management Group"

    management_group_name: str


# ------------------------------------------------ generic ARM IDs
@dataclass
class ArmResourceId:
    subscription_id: str
    resource_group: str = ""
    provider: str = ""
    path: Dict[str, str] = field(default_factory=dict)

    def pop(self, key: str) -> str:
        value = self.path.pop(key, "")
        if not value:
            raise ResourceIdParseError(f"ID was missing the `{key}` element")
        return value


def parse_azure_resource_id(value: str) -> ArmResourceId:
    """Parse any ARM ID into its key/value pairs; the subscription is required."""
    if not isinstance(value, str) or not value.startswith("/"):
        raise ResourceIdParseError(f"Cannot parse Azure ID {value!r}: must start with `/`")
    components = _split(value)
    if len(components) % 2 != 0:
        raise ResourceIdParseError(f"The number of path segments is not divisible by 2 in {value!r}")

    path: Dict[str, str] = {}
    for i in range(0, len(components), 2):
        key, val = components[i], components[i + 1]
        if not key or not val:
            raise ResourceIdParseError(f"Key/Value cannot be empty strings. Key: {key!r}, Value: {val!r}")
        path[key] = val

    subscription_id = path.pop("subscriptions", "")
    if not subscription_id:
        raise ResourceIdParseError(f"No subscription ID found in: {value!r}")
    return ArmResourceId(
        subscription_id=subscription_id,
        resource_group=path.pop("resourceGroups", ""),
        provider=path.pop("providers", ""),
        path=path,
    )


def validate_resource_id(value: Any, key: str) -> List[str]:
    if not isinstance(value, str):
        return [f"expected type of {key} to be string"]
    try:
        parse_azure_resource_id(value)
    except ResourceIdParseError as exc:
        return [f"Can not parse {key!r} as a resource id: {exc}"]
    return []


def lookup(kind: str) -> Optional[Type[ResourceId]]:
    """Find a registered ID type by name, e.g. ``StorageAccount``, ``storage_account`` or ``StorageAccountId``."""
    wanted = kind.replace("_", "").replace("-", "").lower()
    for name, cls in ID_TYPES.items():
        if wanted in (name.lower(), name.lower() + "id"):
            return cls
    return None
