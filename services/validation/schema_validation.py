import json
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

import jsonschema

REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_DIR = REPO_ROOT / "config" / "schemas"

_PHONE_SEPARATORS_RE = re.compile(r"[^0-9]")


@lru_cache(maxsize=None)
def _load_schema(name: str) -> dict:
    schema_path = SCHEMA_DIR / f"{name}.schema.json"
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema not found: {schema_path}")
    return json.loads(schema_path.read_text(encoding="utf-8"))


def user_input_fields():
    return list(_load_schema("user_input").get("properties", {}).keys())


def normalize_user_value(field: str, value: Optional[str]) -> Optional[str]:
    """Trim; empty clears the field. Phone numbers lose separators and a leading '+'."""
    if value is None:
        return None
    s = " ".join(str(value).split())
    if not s:
        return None
    if field == "phone":
        return _PHONE_SEPARATORS_RE.sub("", s)
    return s


def validate_user_field(field: str, value: Optional[str]) -> Tuple[bool, str]:
    """Validates a single user-entered value against its schema property."""
    schema = _load_schema("user_input")
    if field not in schema.get("properties", {}):
        return False, f"Unknown field: {field}"
    if value is None:
        return True, "Valid"

    try:
        jsonschema.validate(instance={field: value}, schema=schema)
        return True, "Valid"
    except jsonschema.exceptions.ValidationError as e:
        return False, e.message
