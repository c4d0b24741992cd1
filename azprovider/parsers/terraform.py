import os
import re
from typing import Any, Dict, List

import hcl2
from rich.console import Console

from azprovider.detect import detect_format
from azprovider.errors import ProviderError
from azprovider.models.resource import ConfigBlock

console = Console(stderr=True)

# Cross-block references inside interpolations: azurerm_x.name or data.azurerm_x.name
_REF_RE = re.compile(r'(?:data\.)?azurerm_\w+\.[\w-]+')
_INTERPOLATION_RE = re.compile(r'\$\{([^}]*)\}')
_HEREDOC_RE = re.compile(r'^<<-?(\w+)\r?\n(.*?)\r?\n[ \t]*\1\s*$', re.DOTALL)
_ESCAPE_RE = re.compile(r'\\(["\\nt])')
_ESCAPES = {"n": "\n", "t": "\t"}


def _unescape(val: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), val)


def _clean(val: Any) -> Any:
    """
    Normalise what python-hcl2 hands back across its releases: string values
    may keep their surrounding quotes or heredoc markers and blocks may carry
    ``__start_line__``-style metadata keys.
    """
    if isinstance(val, str):
        quoted = len(val) >= 2 and val.startswith('"') and val.endswith('"')
        if quoted:
            val = val[1:-1]
        # Heredoc bodies are raw text whether or not the release quotes them.
        m = _HEREDOC_RE.match(val)
        if m:
            return m.group(2)
        return _unescape(val) if quoted else val
    if isinstance(val, list):
        return [_clean(v) for v in val]
    if isinstance(val, dict):
        return {_clean(k): _clean(v) for k, v in val.items() if not str(k).startswith("__")}
    return val


def _extract_refs(val: Any) -> List[str]:
    """Recursively scan property values for references to other blocks."""
    refs: List[str] = []
    if isinstance(val, str):
        for expr in _INTERPOLATION_RE.findall(val):
            refs.extend(_REF_RE.findall(expr))
    elif isinstance(val, list):
        for item in val:
            refs.extend(_extract_refs(item))
    elif isinstance(val, dict):
        for v in val.values():
            refs.extend(_extract_refs(v))
    return refs


def _extract_all_refs(props: Dict[str, Any]) -> List[str]:
    refs = []
    for v in props.values():
        refs.extend(_extract_refs(v))
    return sorted(set(refs))


def _body(raw_props: Any) -> Dict[str, Any]:
    if isinstance(raw_props, list):
        raw_props = raw_props[0] if raw_props else {}
    props = _clean(raw_props) if isinstance(raw_props, dict) else {}
    return props


def _labelled_blocks(data: Dict[str, Any], key: str, mode: str, source: str) -> List[ConfigBlock]:
    blocks: List[ConfigBlock] = []
    for block in data.get(key, []):
        for resource_type, instances in block.items():
            # hcl2 wraps the block in a list in some releases and not in others
            if isinstance(instances, dict):
                instances = [instances]
            for instance_map in instances:
                if not isinstance(instance_map, dict):
                    continue
                for name, raw_props in instance_map.items():
                    props = _body(raw_props)
                    blocks.append(ConfigBlock(
                        mode=mode,
                        resource_type=_clean(resource_type),
                        name=_clean(name),
                        properties=props,
                        source_file=source,
                        relationships=_extract_all_refs(props),
                    ))
    return blocks


def _provider_blocks(data: Dict[str, Any], source: str) -> List[ConfigBlock]:
    blocks: List[ConfigBlock] = []
    for block in data.get("provider", []):
        for provider_name, body in block.items():
            props = _body(body)
            blocks.append(ConfigBlock(
                mode="provider",
                resource_type=_clean(provider_name),
                name=str(props.get("alias") or "default"),
                properties=props,
                source_file=source,
            ))
    return blocks


def parse_string(text: str, source_file: str = "<config>") -> List[ConfigBlock]:
    """Parse HCL text into provider, data and resource blocks. Raises on invalid HCL."""
    try:
        data = hcl2.loads(text)
    except Exception as exc:
        raise ProviderError(f"failed to parse {source_file}: {exc}") from exc

    blocks = _provider_blocks(data, source_file)
    blocks.extend(_labelled_blocks(data, "data", "data", source_file))
    blocks.extend(_labelled_blocks(data, "resource", "managed", source_file))
    return blocks


def parse_file(filepath: str, strict: bool = False) -> List[ConfigBlock]:
    try:
        with open(filepath) as fh:
            text = fh.read()
        return parse_string(text, filepath)
    except (OSError, ProviderError) as exc:
        if strict:
            raise ProviderError(str(exc)) from exc
        console.print(f"[yellow]Warning:[/yellow] failed to parse {filepath}: {exc}")
        return []


def parse_directory(path: str, strict: bool = False) -> List[ConfigBlock]:
    blocks: List[ConfigBlock] = []

    if os.path.isfile(path):
        if detect_format(path) == "terraform":
            blocks.extend(parse_file(path, strict))
        return blocks

    for root, dirs, files in os.walk(path):
        dirs[:] = sorted(d for d in dirs if not d.startswith("."))
        for fname in sorted(files):
            fpath = os.path.join(root, fname)
            if detect_format(fpath) == "terraform":
                blocks.extend(parse_file(fpath, strict))

    return blocks
