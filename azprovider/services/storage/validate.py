from typing import Any, List

from azprovider.validation import int_between, string_matches

storage_account_name = string_matches(
    r"^[a-z0-9]{3,24}$",
    "{key} can only consist of lowercase letters and numbers, and must be between 3 and 24 characters long",
)

management_policy_rule_name = string_matches(
    r"^[a-zA-Z0-9-]*$",
    "{key} can only consist of letters, numbers and hyphens, got {value!r}",
)


def days_or_unset(value: Any, key: str) -> List[str]:
    """Lifecycle day counts are 0-99999, with -1 meaning the action is not configured."""
    if value == -1 and isinstance(value, int) and not isinstance(value, bool):
        return []
    return int_between(0, 99999)(value, key)
