"""
Resource state as seen by handlers (ResourceData) and as persisted by the host
between operations (InstanceState).
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from azprovider.models.schema import FieldType, Schema, coerce, is_unknown
from azprovider.timeouts import Timeouts


@dataclass
class InstanceState:
    id: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def flatmap(self) -> Dict[str, str]:
        """Terraform's flattened form: ``tags.% = 1``, ``versions.# = 2``, ``plan.0.name = x``."""
        out: Dict[str, str] = {"id": self.id}
        for key, value in self.attributes.items():
            _flatten(key, value, out, top_level=True)
        return out

    def to_dict(self) -> dict:
        return {"id": self.id, "attributes": copy.deepcopy(self.attributes)}


def _flatten(prefix: str, value: Any, out: Dict[str, str], top_level: bool = False) -> None:
    if value is None:
        return
    if isinstance(value, dict):
        if top_level:
            out[f"{prefix}.%"] = str(len(value))
        for k, v in value.items():
            _flatten(f"{prefix}.{k}", v, out)
        return
    if isinstance(value, list):
        out[f"{prefix}.#"] = str(len(value))
        for i, v in enumerate(value):
            _flatten(f"{prefix}.{i}", v, out)
        return
    if isinstance(value, bool):
        out[prefix] = "true" if value else "false"
        return
    out[prefix] = str(value)


def normalize_config(schema: Dict[str, Schema], config: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce raw configuration values to the types their schema declares."""
    out: Dict[str, Any] = {}
    for key, value in config.items():
        s = schema.get(key)
        if s is None or value is None:
            continue
        out[key] = _normalize(s, value)
    return out


def _normalize(s: Schema, value: Any) -> Any:
    if is_unknown(value):
        return value
    if s.is_block:
        blocks = [value] if isinstance(value, dict) else list(value)
        return [_normalize_block(s.elem, b) for b in blocks]
    if s.type in (FieldType.LIST, FieldType.SET):
        elem = s.elem if isinstance(s.elem, Schema) else Schema(FieldType.STRING)
        return [_normalize(elem, v) for v in value]
    if s.type == FieldType.MAP:
        elem = s.elem if isinstance(s.elem, Schema) else Schema(FieldType.STRING)
        return {k: _normalize(elem, v) for k, v in value.items()}
    try:
        return coerce(s.type, value)
    except (TypeError, ValueError):
        return value


def _normalize_block(schema: Dict[str, Schema], block: Dict[str, Any]) -> Dict[str, Any]:
    out = normalize_config(schema, block)
    for key, s in schema.items():
        if key not in out:
            out[key] = copy.deepcopy(s.default) if s.default is not None else s.zero_value()
    return out


def _is_zero(value: Any) -> bool:
    return value is None or value == "" or value == 0 or value is False or value == [] or value == {}


class ResourceData:
    """
    The view of one resource a handler works with.

    During create/update the desired configuration wins over prior state;
    during refresh and import only prior state is available. Values written
    with ``set`` always win.
    """

    def __init__(
        self,
        schema: Dict[str, Schema],
        state: Optional[InstanceState] = None,
        config: Optional[Dict[str, Any]] = None,
        timeouts: Optional[Timeouts] = None,
    ):
        self._schema = schema
        self._prior: Dict[str, Any] = copy.deepcopy(state.attributes) if state else {}
        self._id = state.id if state else ""
        self._new_resource = not self._id
        self._values: Dict[str, Any] = {}

        raw_timeouts = None
        if config is not None:
            config = dict(config)
            raw_timeouts = config.pop("timeouts", None)
            if isinstance(raw_timeouts, list):
                raw_timeouts = raw_timeouts[0] if raw_timeouts else None
            self._config: Optional[Dict[str, Any]] = normalize_config(schema, config)
        else:
            self._config = None
        self._timeouts = (timeouts or Timeouts()).with_overrides(raw_timeouts)

    # ------------------------------------------------ identity
    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: str) -> None:
        self._id = value or ""

    def is_new_resource(self) -> bool:
        return self._new_resource

    def mark_new_resource(self) -> None:
        self._new_resource = True

    def timeout(self, operation: str) -> Optional[float]:
        return self._timeouts.get(operation)

    # ------------------------------------------------ reads
    def _schema_for(self, key: str) -> Schema:
        try:
            return self._schema[key]
        except KeyError:
            raise KeyError(f"{key!r} is not defined in the schema") from None

    def _raw(self, key: str) -> Any:
        s = self._schema_for(key)
        if key in self._values:
            return self._values[key]
        if self._config is None:
            if key in self._prior:
                return self._prior[key]
        elif key in self._config:
            return self._config[key]
        elif s.computed and key in self._prior:
            return self._prior[key]
        if s.default is not None:
            return copy.deepcopy(s.default)
        return s.zero_value()

    def get(self, key: str) -> Any:
        """Read a value; dotted paths such as ``plan.0.name`` walk into blocks."""
        head, _, rest = key.partition(".")
        value = self._raw(head)
        for part in rest.split(".") if rest else []:
            if isinstance(value, list):
                idx = int(part)
                value = value[idx] if idx < len(value) else None
            elif isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def get_ok(self, key: str) -> Tuple[Any, bool]:
        value = self.get(key)
        return value, not _is_zero(value)

    def in_config(self, key: str) -> bool:
        return self._config is not None and key in self._config

    def has_change(self, key: str) -> bool:
        return self._prior.get(key) != self.get(key)

    def get_change(self, key: str) -> Tuple[Any, Any]:
        return self._prior.get(key), self.get(key)

    # ------------------------------------------------ writes
    def set(self, key: str, value: Any) -> None:
        s = self._schema_for(key)
        if value is None:
            value = s.zero_value()
        self._values[key] = _normalize(s, value)

    def state(self) -> Optional[InstanceState]:
        if not self._id:
            return None
        attributes = {key: self._raw(key) for key in self._schema}
        return InstanceState(id=self._id, attributes=attributes)
