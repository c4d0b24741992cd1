"""
JSON output for schemas, validation results and apply summaries.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from azprovider import __version__
from azprovider.models.resource import ConfigBlock
from azprovider.models.schema import Diagnostic, DiagnosticSeverity, Resource, Schema


def _meta(source_path: str = "") -> Dict[str, Any]:
    meta = {
        "generated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "tool": "azprovider",
        "version": __version__,
    }
    if source_path:
        meta["source"] = source_path
    return meta


def schema_to_dict(s: Schema) -> Dict[str, Any]:
    out: Dict[str, Any] = {"type": s.type.value}
    for flag in ("required", "optional", "computed", "force_new", "sensitive"):
        if getattr(s, flag):
            out[flag] = True
    if s.default is not None:
        out["default"] = s.default
    if s.max_items:
        out["max_items"] = s.max_items
    if s.min_items:
        out["min_items"] = s.min_items
    if s.conflicts_with:
        out["conflicts_with"] = list(s.conflicts_with)
    if s.required_with:
        out["required_with"] = list(s.required_with)
    if s.description:
        out["description"] = s.description
    if isinstance(s.elem, dict):
        out["block"] = {k: schema_to_dict(v) for k, v in s.elem.items()}
    elif isinstance(s.elem, Schema):
        out["elem"] = schema_to_dict(s.elem)
    return out


def resource_to_dict(resource: Resource) -> Dict[str, Any]:
    return {
        "description": resource.description,
        "attributes": {k: schema_to_dict(s) for k, s in resource.schema.items()},
        "timeouts": {
            op: resource.timeouts.get(op)
            for op in ("create", "read", "update", "delete")
            if not resource.is_data_source or op == "read"
        },
        "importable": resource.importer is not None,
    }


def build_schema_report(resources: Dict[str, Resource], data_sources: Dict[str, Resource]) -> str:
    report = {
        "meta": _meta(),
        "resource_schemas": {k: resource_to_dict(r) for k, r in sorted(resources.items())},
        "data_source_schemas": {k: resource_to_dict(r) for k, r in sorted(data_sources.items())},
    }
    return json.dumps(report, indent=2, default=str)


def build_validation_report(blocks: List[ConfigBlock], diagnostics: List[Diagnostic], source_path: str) -> str:
    report = {
        "meta": _meta(source_path),
        "valid": not any(d.severity == DiagnosticSeverity.ERROR for d in diagnostics),
        "blocks": [
            {
                "address": b.address,
                "source_file": b.source_file,
                "relationships": b.relationships,
            }
            for b in blocks
        ],
        "diagnostics": [d.to_dict() for d in diagnostics],
    }
    return json.dumps(report, indent=2)


def build_changes_report(changes: List[Any], state: Optional[Dict[str, Any]] = None) -> str:
    report: Dict[str, Any] = {
        "meta": _meta(),
        "changes": [{"address": c.address, "action": c.action, "id": c.id} for c in changes],
    }
    if state is not None:
        report["state"] = state
    return json.dumps(report, indent=2)
