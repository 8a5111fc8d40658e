import re
from typing import Any, Mapping, MutableMapping, Optional
from uuid import uuid4

PLACEHOLDER_REGEX = re.compile(r"\|&PLACE_HOLDER_(\w+)&\|")
STRING_VALUES_REGEX = re.compile(
    r"'((?:[^'\\]|\\.)*)'|\"((?:[^\"\\]|\\.)*)\"", flags=re.DOTALL
)
_ESCAPED_CHAR_REGEX = re.compile(r"\\(.)", flags=re.DOTALL)


def get_placeholder() -> tuple[str, str]:
    id_ = uuid4().hex
    return id_, f"|&PLACE_HOLDER_{id_}&|"


def encode_strings(exp: str) -> tuple[str, dict[str, Any]]:
    placeholders = {}
    for match in STRING_VALUES_REGEX.finditer(exp):
        start, stop = match.span()
        string_value = match.string[start:stop]
        id_, placeholder = get_placeholder()
        placeholders[id_] = string_value
        exp = exp.replace(string_value, placeholder, 1)
    return exp, placeholders


def decode_placeholders(exp: str, placeholders: dict[str, Any]) -> str:
    encoded = exp
    for match in PLACEHOLDER_REGEX.finditer(exp):
        id_ = match.group(1)
        if id_ in placeholders:
            encoded = encoded.replace(match.group(0), str(placeholders[id_]))
    return encoded


def deserialize_comparison_value(value: str) -> Any:
    if (
        value.startswith('"')
        and value.endswith('"')
        or value.startswith("'")
        and value.endswith("'")
    ):
        value = _ESCAPED_CHAR_REGEX.sub(r"\1", value[1:-1])
    elif value == "false":
        value = False
    elif value == "true":
        value = True
    elif value == "null":
        value = None
    else:
        deserialized = float(value)
        deserialized_int = int(deserialized)
        if deserialized == deserialized_int:
            value = deserialized_int
        else:
            value = deserialized
    return value


def find_key(data: Mapping[str, Any], key: str) -> Optional[str]:
    """
    Returns the key of `data` that matches the provided `key` case-insensitively, or `None`
    if there is no such key. Attribute names and schema URIs are case-insensitive.
    """
    if key in data:
        return key
    lowered = key.lower()
    for existing in data:
        if isinstance(existing, str) and existing.lower() == lowered:
            return existing
    return None


def get_value(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    existing = find_key(data, key)
    if existing is None:
        return default
    return data[existing]


def set_value(data: MutableMapping[str, Any], key: str, value: Any) -> None:
    """
    Sets the value under the provided `key`, reusing the existing key spelling if present.
    """
    existing = find_key(data, key)
    data[existing if existing is not None else key] = value


def pop_value(data: MutableMapping[str, Any], key: str, default: Any = None) -> Any:
    existing = find_key(data, key)
    if existing is None:
        return default
    return data.pop(existing)


def is_empty(value: Any) -> bool:
    """
    Checks whether the value should be treated as not provided: `None`, an empty object,
    an empty array, or an array with empty items only.
    """
    if value is None:
        return True
    if isinstance(value, dict):
        return len(value) == 0
    if isinstance(value, list):
        return all(is_empty(item) for item in value)
    return False


def json_type_name(value: Any) -> str:
    """
    Returns the name of JSON kind of the provided value.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "decimal"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
