"""
Rewrites PATCH operations sent by non-conformant clients into the canonical form,
understood by `PatchEngine`.

Every rule is a plain value object. `applies` decides whether the rule is enabled for
the operation, and `rewrite` returns the rewritten operation, or `None` if the operation
does not have exactly the shape the rule targets. Rules never raise.
"""

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from scimcore.config import PatchOption
from scimcore.constants import SCHEMAS
from scimcore.data.patch import PatchOperation, PatchOperationType
from scimcore.data.patch_path import EqualityClause, PatchPath, ValueFilter
from scimcore.data.utils import find_key, set_value
from scimcore.error import BadRequest
from scimcore.identifiers import AttrRep
from scimcore.registry import ResourceType

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool)


@dataclass(frozen=True)
class NormalizerRule:
    name: str
    applies: Callable[[PatchOption, ResourceType, PatchOperation], bool]
    rewrite: Callable[[ResourceType, PatchOperation], Optional[PatchOperation]]
    continue_chain: bool = True


def _parse_path(path: Optional[str]) -> Optional[PatchPath]:
    if path is None:
        return None
    try:
        return PatchPath.deserialize(path)
    except BadRequest:
        return None


def _load_object(value: Any) -> Optional[dict[str, Any]]:
    if isinstance(value, dict):
        return value
    if not isinstance(value, str):
        return None
    try:
        loaded = json.loads(value)
    except ValueError:
        return None
    return loaded if isinstance(loaded, dict) else None


def _is_json_container(value: str) -> bool:
    try:
        loaded = json.loads(value)
    except ValueError:
        return False
    return isinstance(loaded, (dict, list))


def _is_add_or_replace(operation: PatchOperation) -> bool:
    return operation.op in (PatchOperationType.ADD, PatchOperationType.REPLACE)


def rewrite_remove_values(
    resource_type: ResourceType, operation: PatchOperation
) -> Optional[PatchOperation]:
    """
    Rewrites `remove` operation with `values` targeting multi-valued attribute, e.g.

        {"op": "remove", "path": "members", "value": [{"value": "1"}, {"value": "2"}]}

    into equivalent operation with value selection filter, e.g.

        {"op": "remove", "path": "members[value eq \"1\" or value eq \"2\"]"}
    """
    path = _parse_path(operation.path)
    if path is None or path.has_filter or path.sub_attr_name is not None:
        return None
    attr = resource_type.lookup(str(path.attr_rep))
    if attr is None or not attr.is_multi_valued_complex:
        return None
    clauses = []
    for item in operation.values:
        item = _load_object(item)
        if item is None or len(item) != 1:
            return None
        key, value = next(iter(item.items()))
        if not isinstance(value, _SCALARS):
            return None
        try:
            clauses.append(EqualityClause(key, value))
        except ValueError:
            return None
    if not clauses:
        return None
    rewritten = PatchPath(
        attr_rep=AttrRep(attr=path.attr_rep.attr, schema=path.attr_rep.schema),
        filter_=ValueFilter(clauses),
    )
    return operation.evolve(path=rewritten.serialize(), values=None)


def unwrap_value_sub_attribute(
    resource_type: ResourceType, operation: PatchOperation
) -> Optional[PatchOperation]:
    """
    Unwraps JSON object encoded as a string in the only `value` key, e.g.

        {"op": "replace", "value": {"value": "{\"displayName\": \"Admins\"}"}}

    becomes

        {"op": "replace", "value": {"displayName": "Admins"}}
    """
    values = operation.values
    if len(values) != 1 or not isinstance(values[0], dict) or len(values[0]) != 1:
        return None
    key, value = next(iter(values[0].items()))
    if not isinstance(key, str) or key.lower() != "value" or not isinstance(value, str):
        return None
    unwrapped = _load_object(value)
    if unwrapped is None:
        return None
    return operation.evolve(values=[unwrapped])


def wrap_complex_simple_values(
    resource_type: ResourceType, operation: PatchOperation
) -> Optional[PatchOperation]:
    """
    Wraps simple values targeting complex attribute into `{"value": ...}` objects, e.g.

        {"op": "add", "path": "emails", "value": ["a@example.com"]}

    becomes

        {"op": "add", "path": "emails", "value": [{"value": "a@example.com"}]}
    """
    path = _parse_path(operation.path)
    if path is None or path.has_filter:
        return None
    attr = resource_type.lookup(str(path.attr_rep))
    if attr is not None and path.sub_attr_name is not None:
        attr = attr.get_sub_attribute(path.sub_attr_name)
    if attr is None or not attr.is_complex or attr.get_sub_attribute("value") is None:
        return None
    values = operation.values
    for value in values:
        if not isinstance(value, _SCALARS):
            return None
        if isinstance(value, str) and _is_json_container(value):
            return None
    return operation.evolve(values=[{"value": value} for value in values])


def _flatten_dotted_keys(
    resource_type: ResourceType, data: dict[str, Any]
) -> Optional[dict[str, Any]]:
    extensions = data.get(SCHEMAS) if isinstance(data.get(SCHEMAS), list) else []
    output: dict[str, Any] = {}
    dotted: list[tuple[str, str, Any]] = []
    changed = False
    for key, value in data.items():
        if ":" in key:
            is_extension = resource_type.get_extension(key) is not None or any(
                isinstance(item, str) and item.lower() == key.lower() for item in extensions
            )
            if is_extension and isinstance(value, dict):
                flattened = _flatten_dotted_keys(resource_type, value)
                if flattened is not None:
                    output[key] = flattened
                    changed = True
                    continue
            output[key] = copy.deepcopy(value)
            continue
        parts = key.split(".")
        if len(parts) == 2 and all(parts):
            dotted.append((parts[0], parts[1], value))
            continue
        output[key] = copy.deepcopy(value)

    for attr_name, sub_attr_name, value in dotted:
        # the dotted key wins over a colliding sub-key or non-object sibling
        attr_key = find_key(output, attr_name)
        if attr_key is None or not isinstance(output[attr_key], dict):
            set_value(output, attr_name, {sub_attr_name: copy.deepcopy(value)})
        else:
            set_value(output[attr_key], sub_attr_name, copy.deepcopy(value))
        changed = True
    return output if changed else None


def flatten_dotted_attributes(
    resource_type: ResourceType, operation: PatchOperation
) -> Optional[PatchOperation]:
    """
    Flattens value keys in dotted notation into nested objects, e.g.

        {"name.givenName": "captain", "name.familyName": "goldfish"}

    becomes

        {"name": {"givenName": "captain", "familyName": "goldfish"}}

    Keys with more than one dot are left unchanged.
    """
    values = operation.values
    if len(values) != 1:
        return None
    data = _load_object(values[0])
    if data is None:
        return None
    flattened = _flatten_dotted_keys(resource_type, data)
    if flattened is None:
        return None
    return operation.evolve(values=[flattened])


REMOVE_VALUES_RULE = NormalizerRule(
    name="remove-values-to-filter",
    applies=lambda config, resource_type, operation: (
        operation.op == PatchOperationType.REMOVE
        and operation.path is not None
        and bool(operation.values)
    ),
    rewrite=rewrite_remove_values,
    continue_chain=False,
)

VALUE_SUB_ATTRIBUTE_RULE = NormalizerRule(
    name="value-sub-attribute-unwrap",
    applies=lambda config, resource_type, operation: (
        config.value_sub_attribute_workaround and _is_add_or_replace(operation)
    ),
    rewrite=unwrap_value_sub_attribute,
)

COMPLEX_SIMPLE_VALUE_RULE = NormalizerRule(
    name="complex-simple-value-wrap",
    applies=lambda config, resource_type, operation: (
        config.complex_simple_value_workaround
        and _is_add_or_replace(operation)
        and operation.path is not None
    ),
    rewrite=wrap_complex_simple_values,
)

DOTTED_ATTRIBUTE_RULE = NormalizerRule(
    name="dotted-attribute-flatten",
    applies=lambda config, resource_type, operation: (
        config.dotted_attribute_workaround and _is_add_or_replace(operation)
    ),
    rewrite=flatten_dotted_attributes,
)


def default_rules() -> list[NormalizerRule]:
    return [
        REMOVE_VALUES_RULE,
        VALUE_SUB_ATTRIBUTE_RULE,
        COMPLEX_SIMPLE_VALUE_RULE,
        DOTTED_ATTRIBUTE_RULE,
    ]


def normalize(
    config: PatchOption,
    resource_type: ResourceType,
    operation: PatchOperation,
    rules: Optional[Iterable[NormalizerRule]] = None,
) -> PatchOperation:
    """
    Walks the rules in order and applies every rule whose `applies` predicate holds. The
    walk stops after a successful rewrite by a rule with `continue_chain` set to `False`.
    """
    for rule in default_rules() if rules is None else rules:
        if not rule.applies(config, resource_type, operation):
            continue
        rewritten = rule.rewrite(resource_type, operation)
        if rewritten is None:
            logger.debug("Rule %r declined operation %r", rule.name, operation)
            continue
        logger.debug("Rule %r rewrote operation %r into %r", rule.name, operation, rewritten)
        operation = rewritten
        if not rule.continue_chain:
            break
    return operation
