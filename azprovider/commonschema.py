"""
Schema fragments and helpers shared by every Azure resource.
"""
import json
import re
from typing import Any, Dict, List, Optional

from azprovider.models.schema import FieldType, Schema
from azprovider.validation import string_is_not_empty, string_matches

_RG_NAME_RE = r"^[-\w._()]{0,89}[-\w_()]$"


def normalize_location(location: Optional[str]) -> str:
    return re.sub(r"\s+", "", location or "").lower()


def suppress_location_diff(old: Any, new: Any) -> bool:
    return normalize_location(old) == normalize_location(new)


def suppress_json_diff(old: Any, new: Any) -> bool:
    try:
        return json.loads(old) == json.loads(new)
    except (TypeError, ValueError):
        return False


def _validate_tags(value: Any, key: str) -> List[str]:
    errors: List[str] = []
    if not isinstance(value, dict):
        return [f"expected {key} to be a map"]
    if len(value) > 50:
        errors.append(f"a maximum of 50 tags can be applied to each ARM resource, got {len(value)}")
    for k, v in value.items():
        if len(k) > 512:
            errors.append(f"the maximum length for a tag key is 512 characters: {k!r} is {len(k)} characters")
        if len(str(v)) > 256:
            errors.append(f"the maximum length for a tag value is 256 characters: the value for {k!r} is {len(str(v))} characters")
    return errors


def tags(computed: bool = False) -> Schema:
    return Schema(
        FieldType.MAP,
        optional=True,
        computed=computed,
        elem=Schema(FieldType.STRING),
        validate_func=_validate_tags,
        description="A mapping of tags to assign to the resource.",
    )


def location(force_new: bool = True) -> Schema:
    return Schema(
        FieldType.STRING,
        required=True,
        force_new=force_new,
        validate_func=string_is_not_empty,
        diff_suppress_func=suppress_location_diff,
        description="The Azure Region where the resource should exist.",
    )


def resource_group_name(force_new: bool = True) -> Schema:
    return Schema(
        FieldType.STRING,
        required=True,
        force_new=force_new,
        validate_func=string_matches(
            _RG_NAME_RE,
            "{key} may only contain alphanumeric characters, dash, underscores, parentheses "
            "and periods, and cannot end in a period",
        ),
        description="The name of the Resource Group where the resource should exist.",
    )


def expand_tags(raw: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {k: str(v) for k, v in (raw or {}).items()}


def flatten_tags(raw: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {k: "" if v is None else str(v) for k, v in (raw or {}).items()}
