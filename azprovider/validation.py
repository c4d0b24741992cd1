"""
Reusable validation functions for schema fields.

Each validator is called as ``fn(value, key)`` and returns a list of error
messages; an empty list means the value is valid.
"""
import json
import re
from typing import Any, Callable, Iterable, List

Validator = Callable[[Any, str], List[str]]


def string_is_not_empty(value: Any, key: str) -> List[str]:
    if not isinstance(value, str):
        return [f"expected type of {key} to be string"]
    if not value.strip():
        return [f"expected {key!r} to not be an empty string or whitespace"]
    return []


def string_in_slice(valid: Iterable[str], ignore_case: bool = False) -> Validator:
    allowed = list(valid)

    def _validate(value: Any, key: str) -> List[str]:
        if not isinstance(value, str):
            return [f"expected type of {key} to be string"]
        for v in allowed:
            if value == v or (ignore_case and value.lower() == v.lower()):
                return []
        return [f"expected {key} to be one of {allowed!r}, got {value}"]

    return _validate


def string_matches(pattern: str, message: str) -> Validator:
    regex = re.compile(pattern)

    def _validate(value: Any, key: str) -> List[str]:
        if not isinstance(value, str):
            return [f"expected type of {key} to be string"]
        if not regex.match(value):
            return [message.format(key=key, value=value)]
        return []

    return _validate


def string_length_between(lo: int, hi: int) -> Validator:
    def _validate(value: Any, key: str) -> List[str]:
        if not isinstance(value, str):
            return [f"expected type of {key} to be string"]
        if not lo <= len(value) <= hi:
            return [f"expected length of {key} to be in the range ({lo} - {hi}), got {value}"]
        return []

    return _validate


def string_is_json(value: Any, key: str) -> List[str]:
    if not isinstance(value, str):
        return [f"expected type of {key} to be string"]
    if value == "":
        return [f"expected {key!r} to contain a valid JSON, got empty string"]
    try:
        json.loads(value)
    except ValueError as exc:
        return [f"{key!r} contains an invalid JSON: {exc}"]
    return []


def int_between(lo: int, hi: int) -> Validator:
    def _validate(value: Any, key: str) -> List[str]:
        if not isinstance(value, int) or isinstance(value, bool):
            return [f"expected type of {key} to be integer"]
        if not lo <= value <= hi:
            return [f"expected {key} to be in the range ({lo} - {hi}), got {value}"]
        return []

    return _validate


def is_uuid(value: Any, key: str) -> List[str]:
    if not isinstance(value, str):
        return [f"expected type of {key} to be string"]
    if not re.match(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$", value):
        return [f"expected {key} to be a valid UUID, got {value}"]
    return []


def is_url_with_https(value: Any, key: str) -> List[str]:
    if not isinstance(value, str):
        return [f"expected type of {key} to be string"]
    if not value.startswith("https://") or len(value) <= len("https://"):
        return [f"expected {key} to have a url with schema of: 'https', got {value}"]
    return []


def any_of(*validators: Validator) -> Validator:
    """Valid when at least one validator accepts the value; otherwise all errors are reported."""

    def _validate(value: Any, key: str) -> List[str]:
        errors: List[str] = []
        for fn in validators:
            errs = fn(value, key)
            if not errs:
                return []
            errors.extend(errs)
        return errors

    return _validate


def all_of(*validators: Validator) -> Validator:
    def _validate(value: Any, key: str) -> List[str]:
        errors: List[str] = []
        for fn in validators:
            errors.extend(fn(value, key))
        return errors

    return _validate
