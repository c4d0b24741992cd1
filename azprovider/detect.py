import json
import os


def detect_format(filepath: str) -> str:
    """
    Return 'terraform', 'state', or 'unknown'.
    """
    lower = filepath.lower()
    _, ext = os.path.splitext(lower)

    if ext == ".tf":
        return "terraform"

    if ext in (".json", ".tfstate"):
        try:
            with open(filepath) as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            return "unknown"
        if isinstance(data, dict) and isinstance(data.get("resources"), list) and "version" in data:
            return "state"

    return "unknown"
