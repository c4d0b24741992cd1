"""
Composable state checks for acceptance test steps.

    check.that(data.resource_name).exists_in_azure(r)
    check.that(data.resource_name).key("kind").has_value("ServiceCatalog")

Keys use the flattened attribute form: ``tags.%``, ``plan.#``, ``plan.0.name``.
"""
from typing import Any, Dict

from azprovider.acceptance.runner import CheckFunc
from azprovider.engine import State


def _attributes(state: State, resource_name: str) -> Dict[str, str]:
    entry = state.get(resource_name)
    if entry is None:
        raise AssertionError(f"Not found: {resource_name} in the state")
    return entry.instance.flatmap()


def compose(*checks: CheckFunc) -> CheckFunc:
    """Run every check in order; the first failure is reported with its position."""
    def _check(state: State, client: Any) -> None:
        for i, fn in enumerate(checks, start=1):
            try:
                fn(state, client)
            except AssertionError as exc:
                raise AssertionError(f"Check {i}/{len(checks)} error: {exc}") from exc
    return _check


class ThatResource:
    def __init__(self, resource_name: str):
        self.resource_name = resource_name

    def exists_in_azure(self, test_resource: Any) -> CheckFunc:
        """``test_resource.exists(client, instance_state)`` must return a truthy value."""
        def _check(state: State, client: Any) -> None:
            entry = state.get(self.resource_name)
            if entry is None:
                raise AssertionError(f"{self.resource_name} was not found in the state")
            if not test_resource.exists(client, entry.instance):
                raise AssertionError(f"{self.resource_name} did not exist in Azure")
        return _check

    def key(self, key: str) -> "ThatResourceKey":
        return ThatResourceKey(self.resource_name, key)


class ThatResourceKey:
    def __init__(self, resource_name: str, key: str):
        self.resource_name = resource_name
        self.key = key

    def has_value(self, value: Any) -> CheckFunc:
        expected = str(value).lower() if isinstance(value, bool) else str(value)

        def _check(state: State, client: Any) -> None:
            attrs = _attributes(state, self.resource_name)
            if self.key not in attrs:
                raise AssertionError(f"{self.resource_name}: Attribute {self.key!r} not found")
            if attrs[self.key] != expected:
                raise AssertionError(
                    f"{self.resource_name}: Attribute {self.key!r} expected {expected!r}, got {attrs[self.key]!r}"
                )
        return _check

    def exists(self) -> CheckFunc:
        def _check(state: State, client: Any) -> None:
            attrs = _attributes(state, self.resource_name)
            if self.key not in attrs:
                raise AssertionError(f"{self.resource_name}: Attribute {self.key!r} expected to be set")
        return _check

    def does_not_exist(self) -> CheckFunc:
        def _check(state: State, client: Any) -> None:
            value = _attributes(state, self.resource_name).get(self.key)
            if value in (None, "") or (value == "0" and self.key.endswith((".#", ".%"))):
                return
            raise AssertionError(f"{self.resource_name}: Attribute {self.key!r} found when not expected: {value!r}")
        return _check

    def is_empty(self) -> CheckFunc:
        def _check(state: State, client: Any) -> None:
            value = _attributes(state, self.resource_name).get(self.key)
            if value in (None, "", "0"):
                return
            raise AssertionError(f"{self.resource_name}: Attribute {self.key!r} expected to be empty, got {value!r}")
        return _check


def that(resource_name: str) -> ThatResource:
    return ThatResource(resource_name)
