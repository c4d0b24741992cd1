"""
Markdown documentation generator for resources and data sources.
"""
import re
from typing import Any, Dict, List, Optional

from jinja2 import Environment

from azprovider.models.schema import Resource, Schema
from azprovider.timeouts import OPERATIONS

_EXAMPLE_SUBSCRIPTION = "12345678-1234-9876-4563-123456789012"

_TEMPLATE = """\
---
subcategory: "{{ subcategory }}"
page_title: "Azure Resource Manager: {{ resource_type }}"
---

# {% if is_data_source %}Data Source: {% endif %}{{ resource_type }}

{{ description }}

## Arguments Reference

The following arguments are supported:
{% for arg in arguments %}
* `{{ arg.name }}` - ({{ arg.presence }}) {{ arg.description }}{% if arg.force_new %} Changing this forces a new resource to be created.{% endif %}{% if arg.default is not none %} Defaults to `{{ arg.default }}`.{% endif %}{% if arg.conflicts_with %} Conflicts with {{ arg.conflicts_with }}.{% endif %}
{% endfor %}
{% for block in blocks %}
---

A `{{ block.name }}` block supports the following:
{% for arg in block.arguments %}
* `{{ arg.name }}` - ({{ arg.presence }}) {{ arg.description }}{% if arg.default is not none %} Defaults to `{{ arg.default }}`.{% endif %}
{% endfor %}
{% endfor %}
## Attributes Reference

In addition to the Arguments listed above - the following Attributes are exported:

* `id` - The ID of the {{ display_name }}.
{% for attr in attributes %}
* `{{ attr.name }}` - {{ attr.description }}{% if attr.sensitive %} This value is sensitive.{% endif %}
{% endfor %}
## Timeouts

The `timeouts` block allows you to specify timeouts for certain actions:
{% for op, value in timeouts %}
* `{{ op }}` - (Defaults to {{ value }}) Used when {{ op_verbs[op] }} the {{ display_name }}.
{% endfor %}
{% if import_id %}
## Import

{{ display_name }}s can be imported using the `resource id`, e.g.

```shell
terraform import {{ resource_type }}.example {{ import_id }}
```
{% endif %}"""

_OP_VERBS = {
    "create": "creating",
    "read": "retrieving",
    "update": "updating",
    "delete": "deleting",
}


def _humanize(seconds: Optional[float]) -> str:
    if seconds is None:
        return "no timeout"
    seconds = int(seconds)
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour" + ("s" if hours != 1 else "")
    mins = seconds // 60
    return f"{mins} minute" + ("s" if mins != 1 else "")


def _display_name(resource_type: str) -> str:
    return " ".join(w.capitalize() for w in resource_type.split("_")[1:])


def _subcategory(resource_type: str) -> str:
    if "blueprint" in resource_type:
        return "Blueprints"
    if "managed_application" in resource_type:
        return "Managed Applications"
    if "storage" in resource_type:
        return "Storage"
    return "Base"


def _example_value(key: str) -> str:
    if key == "subscription_id":
        return _EXAMPLE_SUBSCRIPTION
    if key == "scope":
        return f"/subscriptions/{_EXAMPLE_SUBSCRIPTION}"
    base = re.sub(r"_name$", "", key)
    first, *rest = base.split("_")
    return first + "".join(w.capitalize() for w in rest) + "1"


def example_id(id_type: Any) -> str:
    """A sample ID for the given ResourceId class, with every placeholder filled in."""
    template = getattr(id_type, "TEMPLATE", "")
    return re.sub(r"\{(\w+)\}", lambda m: _example_value(m.group(1)), template)


def _describe(name: str, s: Schema) -> str:
    if s.description:
        return s.description
    words = name.replace("_", " ")
    return f"The {words}." if not s.is_block else f"A `{name}` block as defined below."


def _argument(name: str, s: Schema) -> Dict[str, Any]:
    return {
        "name": name,
        "presence": "Required" if s.required else "Optional",
        "description": _describe(name, s),
        "force_new": s.force_new,
        "default": s.default if not isinstance(s.default, bool) else str(s.default).lower(),
        "conflicts_with": ", ".join(f"`{c}`" for c in s.conflicts_with),
    }


def _collect_blocks(schema: Dict[str, Schema], out: List[Dict[str, Any]]) -> None:
    for name, s in schema.items():
        if s.is_block and not s.computed_only:
            out.append({
                "name": name,
                "arguments": [_argument(k, es) for k, es in s.elem.items() if not es.computed_only],
            })
            _collect_blocks(s.elem, out)


def build_docs(resource_type: str, resource: Resource) -> str:
    display_name = _display_name(resource_type)
    arguments = [_argument(k, s) for k, s in resource.schema.items() if not s.computed_only]
    attributes = [
        {"name": k, "description": _describe(k, s), "sensitive": s.sensitive}
        for k, s in resource.schema.items()
        if s.computed_only
    ]
    blocks: List[Dict[str, Any]] = []
    _collect_blocks(resource.schema, blocks)

    ops = ("read",) if resource.is_data_source else OPERATIONS
    timeouts = [(op, _humanize(resource.timeouts.get(op))) for op in ops]

    importer = resource.importer
    import_id = example_id(getattr(importer, "__self__", None)) if importer is not None else ""

    env = Environment(autoescape=False, trim_blocks=True)
    template = env.from_string(_TEMPLATE)
    return template.render(
        resource_type=resource_type,
        subcategory=_subcategory(resource_type),
        description=resource.description,
        is_data_source=resource.is_data_source,
        display_name=display_name,
        arguments=arguments,
        blocks=blocks,
        attributes=attributes,
        timeouts=timeouts,
        op_verbs=_OP_VERBS,
        import_id=import_id,
    )
