from typing import Any, List

from azprovider.resourceids import ManagementGroupId, validate_resource_id
from azprovider.validation import any_of, string_matches

definition_name = string_matches(
    r"^[A-Za-z0-9-_]{1,48}$",
    "{key} can include letters, numbers, underscores or dashes. "
    "Spaces and other special characters are not allowed.",
)

version_name = string_matches(
    r"^[A-Za-z0-9-_.]{1,20}$",
    "{key} can include letters, numbers, underscores, dashes or periods, up to 20 characters.",
)


def management_group_id(value: Any, key: str) -> List[str]:
    return ManagementGroupId.validate(value, key)


scope_id = any_of(validate_resource_id, management_group_id)
