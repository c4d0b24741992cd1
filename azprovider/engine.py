"""
Drives resource handlers the way Terraform core would: blocks are ordered by
the references between them, interpolations are resolved from state, and each
resource is created, refreshed, updated, replaced or deleted as its
configuration requires.

Usage:
    engine = Engine(Provider(), client=client)
    state = engine.apply(parse_string(hcl_text))
    engine.destroy(state)
"""
import json
import logging
import os
import re
from dataclasses import dataclass, field
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, List, Mapping, Optional

from azprovider.clients import Client
from azprovider.detect import detect_format
from azprovider.errors import ConfigValidationError, ProviderError
from azprovider.models.resource import ConfigBlock
from azprovider.models.schema import Diagnostic, DiagnosticSeverity, FieldType, Resource, Schema, is_unknown
from azprovider.models.state import InstanceState, ResourceData
from azprovider.provider import PROVIDER_NAME, Provider

logger = logging.getLogger(__name__)

STATE_VERSION = 1

_WHOLE_INTERPOLATION_RE = re.compile(r'^\$\{([^}]*)\}$')
_INTERPOLATION_RE = re.compile(r'\$\{([^}]*)\}')
_REFERENCE_RE = re.compile(r'^((?:data\.)?azurerm_\w+\.[\w-]+)\.([\w.\[\]"-]+)$')
_INDEX_RE = re.compile(r'\[(?:"([^"]*)"|(\d+))\]')

# ------------------------------------------------ actions
CREATE = "create"
READ = "read"
UPDATE = "update"
REPLACE = "replace"
DELETE = "delete"
NO_OP = "no-op"


@dataclass
class StateEntry:
    mode: str
    resource_type: str
    name: str
    instance: InstanceState

    @property
    def address(self) -> str:
        if self.mode == "data":
            return f"data.{self.resource_type}.{self.name}"
        return f"{self.resource_type}.{self.name}"

    def to_dict(self) -> dict:
        out = {"mode": self.mode, "type": self.resource_type, "name": self.name}
        out.update(self.instance.to_dict())
        return out


@dataclass
class State:
    """Resources in the order they were applied; destroy walks it backwards."""
    entries: Dict[str, StateEntry] = field(default_factory=dict)

    def get(self, address: str) -> Optional[StateEntry]:
        return self.entries.get(address)

    def put(self, entry: StateEntry) -> None:
        self.entries.pop(entry.address, None)
        self.entries[entry.address] = entry

    def remove(self, address: str) -> None:
        self.entries.pop(address, None)

    def __iter__(self):
        return iter(list(self.entries.values()))

    def __len__(self) -> int:
        return len(self.entries)

    def to_dict(self) -> dict:
        return {"version": STATE_VERSION, "resources": [e.to_dict() for e in self.entries.values()]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "State":
        if data.get("version") != STATE_VERSION:
            raise ProviderError(f"unsupported state version {data.get('version')!r}")
        state = cls()
        for raw in data.get("resources", []):
            state.put(StateEntry(
                mode=raw["mode"],
                resource_type=raw["type"],
                name=raw["name"],
                instance=InstanceState(id=raw["id"], attributes=raw.get("attributes") or {}),
            ))
        return state


def load_state(path: str) -> State:
    if not os.path.exists(path):
        return State()
    if detect_format(path) != "state":
        raise ProviderError(
            f"reading state file {path!r}: expected a .json or .tfstate file holding version and resources"
        )
    try:
        with open(path) as fh:
            return State.from_dict(json.load(fh))
    except (ValueError, KeyError) as exc:
        raise ProviderError(f"reading state file {path!r}: {exc}") from exc


def save_state(path: str, state: State) -> None:
    tmp = f"{path}.tmp"
    with open(tmp, "w") as fh:
        json.dump(state.to_dict(), fh, indent=2, sort_keys=True)
        fh.write("\n")
    os.replace(tmp, path)


@dataclass
class Change:
    address: str
    action: str
    id: str = ""


# ------------------------------------------------ interpolation
def _walk(value: Any, path: str, address: str) -> Any:
    path = _INDEX_RE.sub(lambda m: "." + (m.group(1) if m.group(1) is not None else m.group(2)), path)
    for part in path.strip(".").split("."):
        if isinstance(value, list):
            try:
                value = value[int(part)]
            except (ValueError, IndexError):
                raise ProviderError(f"{address} has no element {part!r}") from None
        elif isinstance(value, dict):
            if part not in value:
                raise ProviderError(f"{address} does not have an attribute named {part!r}")
            value = value[part]
        else:
            raise ProviderError(f"cannot index into {part!r} of {address}")
    return value


class _Unknown(Exception):
    """A reference to a block that has not been applied yet."""


def _lookup(expr: str, state: State, unknown_ok: bool = False) -> Any:
    expr = expr.strip()
    m = _REFERENCE_RE.match(expr)
    if not m:
        raise ProviderError(f"unsupported expression ${{{expr}}}: only references to other blocks are supported")
    address, path = m.group(1), m.group(2)
    entry = state.get(address)
    if entry is None:
        if unknown_ok:
            raise _Unknown(address)
        raise ProviderError(f"reference to {address} which is not in the state")
    attributes = dict(entry.instance.attributes)
    attributes["id"] = entry.instance.id
    return _walk(attributes, path, address)


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def interpolate(value: Any, state: State, unknown_ok: bool = False) -> Any:
    """
    Replace ``${address.attribute}`` references with values from state. A
    string that is exactly one reference keeps the referenced value's type.

    With ``unknown_ok`` a string referencing a block missing from state is
    left as is, to be known after apply.
    """
    if isinstance(value, str):
        try:
            whole = _WHOLE_INTERPOLATION_RE.match(value)
            if whole:
                return _lookup(whole.group(1), state, unknown_ok)
            return _INTERPOLATION_RE.sub(lambda m: _to_string(_lookup(m.group(1), state, unknown_ok)), value)
        except _Unknown:
            return value
    if isinstance(value, list):
        return [interpolate(v, state, unknown_ok) for v in value]
    if isinstance(value, dict):
        return {k: interpolate(v, state, unknown_ok) for k, v in value.items()}
    return value


def _has_unknown(value: Any) -> bool:
    if isinstance(value, list):
        return any(_has_unknown(v) for v in value)
    if isinstance(value, dict):
        return any(_has_unknown(v) for v in value.values())
    return is_unknown(value)


# ------------------------------------------------ diffing
def _sort_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def values_equal(s: Schema, old: Any, new: Any) -> bool:
    if old is None:
        old = s.zero_value()
    if new is None:
        new = s.zero_value()
    if s.diff_suppress_func is not None and s.diff_suppress_func(old, new):
        return True
    if s.is_block:
        if len(old) != len(new):
            return False
        if s.type == FieldType.SET:
            old, new = sorted(old, key=_sort_key), sorted(new, key=_sort_key)
        return all(
            all(values_equal(es, o.get(k), n.get(k)) for k, es in s.elem.items())
            for o, n in zip(old, new)
        )
    if s.type == FieldType.SET:
        return sorted(old, key=_sort_key) == sorted(new, key=_sort_key)
    return old == new


def changed_keys(resource: Resource, d: ResourceData, prior: InstanceState) -> List[str]:
    """Arguments whose configured value differs from the prior state."""
    changes = []
    for key, s in resource.schema.items():
        if s.computed_only:
            continue
        if s.computed and not d.in_config(key):
            continue
        if not values_equal(s, prior.attributes.get(key), d.get(key)):
            changes.append(key)
    return changes


# ------------------------------------------------ engine
class Engine:
    def __init__(
        self,
        provider: Optional[Provider] = None,
        client: Optional[Client] = None,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.provider = provider or Provider()
        self.client = client
        self.config_file = config_file
        self.environ = environ
        self.changes: List[Change] = []

    # ------------------------------------------------ setup
    def configure(self, blocks: List[ConfigBlock]) -> Client:
        if self.client is None:
            provider_block = next(
                (b.properties for b in blocks if b.mode == "provider" and b.resource_type == PROVIDER_NAME),
                None,
            )
            self.client = self.provider.configure(self.config_file, provider_block, self.environ)
        return self.client

    def _schema_of(self, block: ConfigBlock) -> Resource:
        resource = self.provider.lookup(block.mode, block.resource_type)
        if resource is None:
            kind = "data source" if block.mode == "data" else "resource type"
            raise ProviderError(f"{block.address}: the provider does not support {kind} {block.resource_type!r}")
        return resource

    def _resource_for(self, entry: StateEntry) -> Resource:
        resource = self.provider.lookup(entry.mode, entry.resource_type)
        if resource is None:
            raise ProviderError(f"{entry.address}: the provider does not support {entry.resource_type!r}")
        return resource

    def order(self, blocks: List[ConfigBlock]) -> List[ConfigBlock]:
        """Blocks sorted so every block comes after the blocks it references."""
        by_address: Dict[str, ConfigBlock] = {}
        for block in blocks:
            if block.mode == "provider":
                continue
            if block.address in by_address:
                raise ProviderError(f"duplicate block {block.address}")
            by_address[block.address] = block

        sorter: TopologicalSorter = TopologicalSorter()
        for address, block in by_address.items():
            for ref in block.relationships:
                if ref not in by_address:
                    raise ProviderError(f"{address}: reference to undeclared {ref}")
            sorter.add(address, *block.relationships)
        try:
            return [by_address[a] for a in sorter.static_order()]
        except CycleError as exc:
            raise ProviderError(f"cycle between blocks: {' -> '.join(exc.args[1])}") from exc

    def validate(self, blocks: List[ConfigBlock]) -> List[Diagnostic]:
        """Diagnostics for every block, with references left unresolved."""
        diags: List[Diagnostic] = []
        for block in blocks:
            if block.mode == "provider":
                continue
            resource = self.provider.lookup(block.mode, block.resource_type)
            if resource is None:
                kind = "data source" if block.mode == "data" else "resource type"
                diags.append(Diagnostic(
                    DiagnosticSeverity.ERROR,
                    f"The provider does not support {kind} {block.resource_type!r}.",
                    address=block.address,
                ))
                continue
            diags.extend(resource.validate(block.properties, block.address))
        return diags

    # ------------------------------------------------ plan
    def plan(self, blocks: List[ConfigBlock], state: Optional[State] = None) -> List[Change]:
        """
        The actions ``apply`` would take, without changing anything remotely.
        Data sources are read and resources refreshed against a copy of the state.
        """
        planned = State(dict(state.entries)) if state is not None else State()
        self.changes = []
        ordered = self.order(blocks)
        client = self.configure(blocks)
        changes: List[Change] = []
        declared = set()

        for block in ordered:
            declared.add(block.address)
            resource = self._schema_of(block)
            config = interpolate(block.properties, planned, unknown_ok=True)

            if block.mode == "data":
                if _has_unknown(config):
                    # Known after apply: the read happens once its references exist.
                    planned.remove(block.address)
                    changes.append(Change(block.address, READ))
                    continue
                self._read_data(block, resource, config, planned, client)
                continue

            entry = planned.get(block.address)
            prior = self._refresh_entry(entry, resource, client) if entry is not None else None
            if prior is None:
                planned.remove(block.address)
                changes.append(Change(block.address, CREATE))
                continue

            d = ResourceData(resource.schema, state=prior, config=config, timeouts=resource.timeouts)
            diff = changed_keys(resource, d, prior)
            if not diff:
                planned.put(StateEntry(block.mode, block.resource_type, block.name, prior))
                changes.append(Change(block.address, NO_OP, prior.id))
            elif any(resource.schema[k].force_new for k in diff) or resource.update is None:
                planned.remove(block.address)
                changes.append(Change(block.address, REPLACE, prior.id))
            else:
                planned.put(StateEntry(block.mode, block.resource_type, block.name, prior))
                changes.append(Change(block.address, UPDATE, prior.id))

        for entry in planned:
            if entry.mode != "data" and entry.address not in declared:
                changes.append(Change(entry.address, DELETE, entry.instance.id))

        return changes

    # ------------------------------------------------ apply
    def apply(self, blocks: List[ConfigBlock], state: Optional[State] = None) -> State:
        state = state if state is not None else State()
        self.changes = []
        ordered = self.order(blocks)

        errors = [d for d in self.validate(blocks) if d.severity == DiagnosticSeverity.ERROR]
        if errors:
            raise ConfigValidationError(errors[0].address, errors)

        client = self.configure(blocks)
        declared = set()
        for block in ordered:
            declared.add(block.address)
            resource = self._schema_of(block)
            config = interpolate(block.properties, state)
            diags = [d for d in resource.validate(config, block.address) if d.severity == DiagnosticSeverity.ERROR]
            if diags:
                raise ConfigValidationError(block.address, diags)

            if block.mode == "data":
                self._read_data(block, resource, config, state, client)
            else:
                self._apply_resource(block, resource, config, state, client)

        for entry in reversed(list(state)):
            if entry.address in declared:
                continue
            if entry.mode == "data":
                state.remove(entry.address)
                continue
            self._delete(entry, state, client)

        return state

    def _read_data(self, block: ConfigBlock, resource: Resource, config: Dict[str, Any], state: State,
                   client: Client) -> None:
        d = ResourceData(resource.schema, config=config, timeouts=resource.timeouts)
        logger.info(f"{block.address}: Reading...")
        resource.read(d, client)
        instance = d.state()
        if instance is None:
            raise ProviderError(f"{block.address}: data source returned no ID")
        state.put(StateEntry(block.mode, block.resource_type, block.name, instance))
        self.changes.append(Change(block.address, READ, instance.id))

    def _apply_resource(self, block: ConfigBlock, resource: Resource, config: Dict[str, Any], state: State,
                        client: Client) -> None:
        entry = state.get(block.address)
        prior = self._refresh_entry(entry, resource, client) if entry is not None else None
        if entry is not None and prior is None:
            state.remove(block.address)

        if prior is None:
            self._create(block, resource, config, state, client)
            return

        d = ResourceData(resource.schema, state=prior, config=config, timeouts=resource.timeouts)
        changes = changed_keys(resource, d, prior)
        if not changes:
            state.put(StateEntry(block.mode, block.resource_type, block.name, prior))
            self.changes.append(Change(block.address, NO_OP, prior.id))
            return

        replace = [k for k in changes if resource.schema[k].force_new]
        if replace or resource.update is None:
            logger.info(f"{block.address}: must be replaced because of {', '.join(replace or changes)}")
            old = StateEntry(block.mode, block.resource_type, block.name, prior)
            self._delete(old, state, client, record=False)
            self._create(block, resource, config, state, client, action=REPLACE)
            return

        logger.info(f"{block.address}: Modifying... [id={prior.id}] ({', '.join(changes)})")
        resource.update(d, client)
        instance = d.state()
        if instance is None:
            raise ProviderError(f"{block.address}: resource disappeared during update")
        state.put(StateEntry(block.mode, block.resource_type, block.name, instance))
        self.changes.append(Change(block.address, UPDATE, instance.id))

    def _create(self, block: ConfigBlock, resource: Resource, config: Dict[str, Any], state: State,
                client: Client, action: str = CREATE) -> None:
        d = ResourceData(resource.schema, config=config, timeouts=resource.timeouts)
        d.mark_new_resource()
        logger.info(f"{block.address}: Creating...")
        resource.create(d, client)
        instance = d.state()
        if instance is None:
            raise ProviderError(f"{block.address}: provider produced no ID after create")
        state.put(StateEntry(block.mode, block.resource_type, block.name, instance))
        self.changes.append(Change(block.address, action, instance.id))
        logger.info(f"{block.address}: Creation complete [id={instance.id}]")

    def _refresh_entry(self, entry: StateEntry, resource: Resource, client: Client) -> Optional[InstanceState]:
        d = ResourceData(resource.schema, state=entry.instance, timeouts=resource.timeouts)
        resource.read(d, client)
        instance = d.state()
        if instance is None:
            logger.warning(f"{entry.address}: no longer exists remotely, removed from state")
        return instance

    def _delete(self, entry: StateEntry, state: State, client: Client, record: bool = True) -> None:
        resource = self._resource_for(entry)
        d = ResourceData(resource.schema, state=entry.instance, timeouts=resource.timeouts)
        logger.info(f"{entry.address}: Destroying... [id={entry.instance.id}]")
        resource.delete(d, client)
        state.remove(entry.address)
        if record:
            self.changes.append(Change(entry.address, DELETE, entry.instance.id))

    # ------------------------------------------------ other operations
    def refresh(self, state: State, client: Optional[Client] = None) -> State:
        client = client or self.configure([])
        for entry in state:
            if entry.mode == "data":
                continue
            instance = self._refresh_entry(entry, self._resource_for(entry), client)
            if instance is None:
                state.remove(entry.address)
            else:
                state.put(StateEntry(entry.mode, entry.resource_type, entry.name, instance))
        return state

    def destroy(self, state: State, blocks: Optional[List[ConfigBlock]] = None) -> State:
        self.changes = []
        client = self.configure(blocks or [])
        for entry in reversed(list(state)):
            if entry.mode == "data":
                state.remove(entry.address)
                continue
            self._delete(entry, state, client)
        return state

    def import_resource(self, resource_type: str, resource_id: str,
                        client: Optional[Client] = None) -> InstanceState:
        resource = self.provider.resource(resource_type)
        if resource.importer is None:
            raise ProviderError(f"{resource_type} does not support import")
        resource.importer(resource_id)
        client = client or self.configure([])
        d = ResourceData(resource.schema, state=InstanceState(id=resource_id), timeouts=resource.timeouts)
        resource.read(d, client)
        instance = d.state()
        if instance is None:
            raise ProviderError(
                f"Cannot import non-existent remote object: {resource_type} with ID {resource_id!r}"
            )
        return instance
