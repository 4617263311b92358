from pathlib import Path
from typing import Any
import json
import yaml

from .errors import DocumentError

YAML_SUFFIXES = {".yaml", ".yml"}

def load_document(path: Path) -> Any:
    """Read a JSON or YAML document, chosen by file suffix."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix.lower() in YAML_SUFFIXES:
            return yaml.safe_load(text)
        return json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise DocumentError(f"Cannot load {path}: {e}") from e

def save_document(data: Any, path: Path):
    path = Path(path)
    if path.suffix.lower() in YAML_SUFFIXES:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

def dump_document(data: Any, fmt: str = "json") -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    return json.dumps(data, indent=2)
