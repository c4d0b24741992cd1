"""
Schema declaration for resources and data sources, and static validation of
configuration blocks against it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from azprovider.errors import InvalidTimeoutError
from azprovider.timeouts import OPERATIONS, Timeouts, parse_duration

ValidateFunc = Callable[[Any, str], List[str]]


class FieldType(str, Enum):
    STRING = "string"
    INT    = "int"
    FLOAT  = "float"
    BOOL   = "bool"
    LIST   = "list"
    SET    = "set"
    MAP    = "map"


class DiagnosticSeverity(str, Enum):
    ERROR   = "ERROR"
    WARNING = "WARNING"


@dataclass
class Diagnostic:
    severity: DiagnosticSeverity
    summary: str
    attribute: str = ""
    address: str = ""

    def __str__(self) -> str:
        if self.attribute:
            return f"{self.attribute}: {self.summary}"
        return self.summary

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "summary": self.summary,
            "attribute": self.attribute,
            "address": self.address,
        }


@dataclass
class Schema:
    type: FieldType
    required: bool = False
    optional: bool = False
    computed: bool = False
    force_new: bool = False
    sensitive: bool = False
    default: Any = None
    # A Schema for primitive collection elements, or a dict of Schemas for nested blocks.
    elem: Any = None
    max_items: int = 0
    min_items: int = 0
    conflicts_with: List[str] = field(default_factory=list)
    required_with: List[str] = field(default_factory=list)
    validate_func: Optional[ValidateFunc] = None
    # Called with (old, new); True means the two values are equivalent.
    diff_suppress_func: Optional[Callable[[Any, Any], bool]] = None
    description: str = ""

    @property
    def is_block(self) -> bool:
        return self.type in (FieldType.LIST, FieldType.SET) and isinstance(self.elem, dict)

    @property
    def computed_only(self) -> bool:
        return self.computed and not self.optional and not self.required

    def zero_value(self) -> Any:
        return _ZERO[self.type]()


_ZERO: Dict[FieldType, Callable[[], Any]] = {
    FieldType.STRING: str,
    FieldType.INT: int,
    FieldType.FLOAT: float,
    FieldType.BOOL: bool,
    FieldType.LIST: list,
    FieldType.SET: list,
    FieldType.MAP: dict,
}


@dataclass
class Resource:
    """
    A resource (create/read/update/delete) or a data source (read only).

    Handlers are plain functions taking ``(d: ResourceData, meta: Client)``.
    """
    schema: Dict[str, Schema]
    read: Callable
    create: Optional[Callable] = None
    update: Optional[Callable] = None
    delete: Optional[Callable] = None
    importer: Optional[Callable[[str], Any]] = None
    timeouts: Timeouts = field(default_factory=Timeouts)
    description: str = ""

    @property
    def is_data_source(self) -> bool:
        return self.create is None and self.delete is None

    @property
    def force_new_keys(self) -> List[str]:
        return [k for k, s in self.schema.items() if s.force_new]

    def validate(self, config: Dict[str, Any], address: str = "") -> List[Diagnostic]:
        cfg = {k: v for k, v in config.items() if k != "timeouts"}
        diags = validate_config(self.schema, cfg)
        diags.extend(self._validate_timeouts(config.get("timeouts")))
        for d in diags:
            d.address = address
        return diags

    def _validate_timeouts(self, block: Any) -> List[Diagnostic]:
        if isinstance(block, list):
            if len(block) > 1:
                return [_error("at most one timeouts block may be declared", "timeouts")]
            block = block[0] if block else None
        if block is None:
            return []
        if not isinstance(block, dict):
            return [_error("timeouts must be a block", "timeouts")]
        allowed = ("read",) if self.is_data_source else OPERATIONS
        diags: List[Diagnostic] = []
        for op, raw in block.items():
            attribute = f"timeouts.{op}"
            if op not in allowed:
                diags.append(_error(f"unsupported timeout {op!r}, expected one of {', '.join(allowed)}", attribute))
                continue
            if is_unknown(raw):
                continue
            try:
                parse_duration(raw)
            except InvalidTimeoutError as exc:
                diags.append(_error(str(exc), attribute))
        return diags


def is_unknown(value: Any) -> bool:
    """Values still holding an interpolation are only known after apply."""
    return isinstance(value, str) and "${" in value


def coerce(field_type: FieldType, value: Any) -> Any:
    """Convert a configuration scalar to the Python type of ``field_type``."""
    if field_type == FieldType.STRING:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float, str)):
            return str(value)
        raise TypeError(f"string required, got {type(value).__name__}")
    if field_type == FieldType.BOOL:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise TypeError(f"bool required, got {value!r}")
    if field_type == FieldType.INT:
        if isinstance(value, bool):
            raise TypeError(f"number required, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            return int(value)
        raise TypeError(f"number required, got {value!r}")
    if field_type == FieldType.FLOAT:
        if isinstance(value, bool):
            raise TypeError(f"number required, got {value!r}")
        return float(value)
    return value


def _error(summary: str, attribute: str) -> Diagnostic:
    return Diagnostic(DiagnosticSeverity.ERROR, summary, attribute)


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _present(config: Dict[str, Any], key: str) -> bool:
    return config.get(key) is not None


def validate_config(schema: Dict[str, Schema], config: Dict[str, Any], path: str = "") -> List[Diagnostic]:
    diags: List[Diagnostic] = []

    for key in config:
        if key not in schema:
            diags.append(_error(f"An argument named {key!r} is not expected here.", _join(path, key)))

    for key, s in schema.items():
        attr = _join(path, key)
        if not _present(config, key):
            if s.required:
                diags.append(_error("The argument is required, but no definition was found.", attr))
            continue

        if s.computed_only:
            diags.append(_error("Can't configure a value for a computed-only attribute.", attr))
            continue

        for other in s.conflicts_with:
            if _present(config, other):
                diags.append(_error(f"conflicts with {other}", attr))
        for other in s.required_with:
            if not _present(config, other):
                diags.append(_error(f"all of `{key},{other}` must be specified", attr))

        diags.extend(_validate_value(s, config[key], attr))

    return diags


def _validate_value(s: Schema, value: Any, attr: str) -> List[Diagnostic]:
    if is_unknown(value):
        return []

    if s.is_block:
        blocks = [value] if isinstance(value, dict) else value
        if not isinstance(blocks, list) or not all(isinstance(b, dict) for b in blocks):
            return [_error("Blocks of this type must be declared as nested blocks.", attr)]
        return _validate_blocks(s, blocks, attr)

    if s.type in (FieldType.LIST, FieldType.SET):
        if not isinstance(value, list):
            return [_error(f"Inappropriate value for attribute: {s.type.value} required.", attr)]
        diags = _validate_count(s, len(value), attr)
        elem_schema = s.elem if isinstance(s.elem, Schema) else Schema(FieldType.STRING)
        for i, item in enumerate(value):
            diags.extend(_validate_scalar(elem_schema, item, f"{attr}.{i}"))
        return diags + _validate_whole(s, value, attr)

    if s.type == FieldType.MAP:
        if not isinstance(value, dict):
            return [_error("Inappropriate value for attribute: map required.", attr)]
        elem_schema = s.elem if isinstance(s.elem, Schema) else Schema(FieldType.STRING)
        diags = []
        for k, item in value.items():
            diags.extend(_validate_scalar(elem_schema, item, f"{attr}.{k}"))
        return diags + _validate_whole(s, value, attr)

    return _validate_scalar(s, value, attr)


def _validate_blocks(s: Schema, blocks: List[Dict[str, Any]], attr: str) -> List[Diagnostic]:
    diags = _validate_count(s, len(blocks), attr)
    for i, block in enumerate(blocks):
        diags.extend(validate_config(s.elem, block, f"{attr}.{i}"))
    return diags


def _validate_count(s: Schema, count: int, attr: str) -> List[Diagnostic]:
    if s.max_items and count > s.max_items:
        return [_error(f"No more than {s.max_items} item(s) are allowed, got {count}.", attr)]
    if s.min_items and count < s.min_items:
        return [_error(f"At least {s.min_items} item(s) are required, got {count}.", attr)]
    return []


def _validate_scalar(s: Schema, value: Any, attr: str) -> List[Diagnostic]:
    if is_unknown(value):
        return []
    try:
        coerced = coerce(s.type, value)
    except (TypeError, ValueError):
        return [_error(f"Inappropriate value for attribute: {s.type.value} required.", attr)]
    if s.validate_func is None:
        return []
    return [_error(msg, attr) for msg in s.validate_func(coerced, attr)]


def _validate_whole(s: Schema, value: Any, attr: str) -> List[Diagnostic]:
    if s.validate_func is None or any(is_unknown(v) for v in (value.values() if isinstance(value, dict) else value)):
        return []
    return [_error(msg, attr) for msg in s.validate_func(value, attr)]
