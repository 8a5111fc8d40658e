import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional, Union, cast

from scimcore.data.attrs import AttributeDescriptor
from scimcore.data.patch import PatchOperationType
from scimcore.data.utils import (
    decode_placeholders,
    deserialize_comparison_value,
    encode_strings,
    find_key,
    get_value,
)
from scimcore.error import BadRequest, ValidationError
from scimcore.identifiers import AttrName, AttrRep, AttrRepFactory

if TYPE_CHECKING:
    from scimcore.data.schemas import SchemaTree
    from scimcore.registry import ResourceType

_OR_REGEX = re.compile(r"\s+or\s+", flags=re.IGNORECASE)
_WHITESPACE_REGEX = re.compile(r"\s+")


class EqualityClause:
    """
    Single `<sub-attribute> eq <value>` clause of the value selection filter.
    """

    def __init__(self, sub_attr_name: str, value: Any):
        self._sub_attr_name = AttrName(sub_attr_name)
        self._value = value

    @property
    def sub_attr_name(self) -> AttrName:
        return self._sub_attr_name

    @property
    def value(self) -> Any:
        return self._value

    def serialize(self) -> str:
        if isinstance(self._value, str):
            value = '"' + self._value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        elif isinstance(self._value, bool):
            value = str(self._value).lower()
        elif self._value is None:
            value = "null"
        else:
            value = str(self._value)
        return f"{self._sub_attr_name} eq {value}"

    def match(self, item: dict[str, Any], attr: AttributeDescriptor) -> bool:
        """
        Checks whether the element of multi-valued complex attribute satisfies the clause.
        The comparison follows `caseExact` characteristic of the sub-attribute.
        """
        sub_attr = attr.get_sub_attribute(self._sub_attr_name)
        actual = get_value(item, self._sub_attr_name)
        if sub_attr is None:
            return bool(actual == self._value)
        return bool(sub_attr.comparison_key(actual) == sub_attr.comparison_key(self._value))

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, EqualityClause):
            return False
        return self._sub_attr_name == other._sub_attr_name and self._value == other._value

    def __repr__(self) -> str:
        return f"EqualityClause({self.serialize()})"


class ValueFilter:
    """
    Value selection filter, used in PATCH paths to select elements of multi-valued
    complex attributes. A disjunction of equality clauses.
    """

    def __init__(self, clauses: list[EqualityClause]):
        if not clauses:
            raise ValueError("at least one clause is required")
        self._clauses = list(clauses)

    @property
    def clauses(self) -> list[EqualityClause]:
        return list(self._clauses)

    def match(self, item: Any, attr: AttributeDescriptor) -> bool:
        if not isinstance(item, dict):
            return False
        return any(clause.match(item, attr) for clause in self._clauses)

    def serialize(self) -> str:
        return " or ".join(clause.serialize() for clause in self._clauses)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ValueFilter):
            return False
        return self._clauses == other._clauses

    @classmethod
    def deserialize(cls, attr_name: str, exp: str, placeholders: dict[str, Any]) -> "ValueFilter":
        """
        Deserializes filter expression (with string literals encoded as placeholders).

        Raises:
            BadRequest: If the expression is not valid.
        """
        if not exp.strip():
            raise BadRequest(ValidationError.empty_filter_expression(attr_name))
        clauses = []
        for clause_exp in _OR_REGEX.split(exp.strip()):
            parts = _WHITESPACE_REGEX.split(clause_exp.strip())
            full_exp = decode_placeholders(clause_exp.strip(), placeholders)
            if len(parts) == 2 and parts[1].lower() == "eq":
                raise BadRequest(ValidationError.missing_operand_for_operator("eq", full_exp))
            if len(parts) != 3:
                operator = parts[1] if len(parts) > 1 else parts[0]
                raise BadRequest(ValidationError.unknown_operator(operator, full_exp))
            sub_attr_name, operator, raw_value = parts
            if operator.lower() != "eq":
                raise BadRequest(
                    ValidationError.unknown_operator(decode_placeholders(operator, placeholders), full_exp)
                )
            try:
                sub_attr_name = AttrName(sub_attr_name)
            except ValueError:
                raise BadRequest(
                    ValidationError.bad_attribute_name(
                        decode_placeholders(sub_attr_name, placeholders)
                    )
                )
            raw_value = decode_placeholders(raw_value, placeholders)
            try:
                value = deserialize_comparison_value(raw_value)
            except (ValueError, OverflowError):
                raise BadRequest(ValidationError.bad_operand(raw_value))
            clauses.append(EqualityClause(sub_attr_name, value))
        return cls(clauses)


class PatchPath:
    """
    Target modification path, used in PATCH requests. Supports the following syntax:
    `attr`, `attr.subAttr`, `attr[filter]`, `attr[filter].subAttr`, each optionally prefixed
    with the schema URI, where `filter` is a disjunction of `subAttr eq value` clauses.
    """

    def __init__(
        self,
        attr_rep: AttrRep,
        sub_attr_name: Optional[str] = None,
        filter_: Optional[ValueFilter] = None,
    ):
        """
        Args:
            attr_rep: The representation of the attribute being targeted. Must not be
                a sub-attribute representation.
            sub_attr_name: The optional sub-attribute being targeted.
            filter_: Value selection filter, used for multi-valued complex attributes.

        Raises:
            ValueError: When `attr_rep` is a sub-attribute representation.
        """
        if attr_rep.is_sub_attr:
            raise ValueError("'attr_rep' must not be a sub attribute")
        self._attr_rep = attr_rep
        if sub_attr_name is not None:
            sub_attr_name = AttrName(sub_attr_name)
        self._sub_attr_name = sub_attr_name
        self._filter = filter_

    @property
    def attr_rep(self) -> AttrRep:
        """
        The representation of the attribute being targeted.
        """
        return self._attr_rep

    @property
    def sub_attr_name(self) -> Optional[AttrName]:
        """
        The sub-attribute being targeted, if any.
        """
        return self._sub_attr_name

    @property
    def filter(self) -> Optional[ValueFilter]:
        return self._filter

    @property
    def has_filter(self) -> bool:
        """
        Flag indicating whether the path contains the value selection filter.
        """
        return self._filter is not None

    @classmethod
    def deserialize(cls, path_exp: str) -> "PatchPath":
        """
        Deserializes the provided path expression into a `PatchPath`.

        Raises:
            BadRequest: When `path_exp` is not a valid path expression.
        """
        if not isinstance(path_exp, str) or not path_exp.strip():
            raise BadRequest(ValidationError.bad_attribute_name(str(path_exp)))
        path_exp = path_exp.strip()
        encoded, placeholders = encode_strings(path_exp)
        if (
            encoded.count("[") > 1
            or encoded.count("]") > 1
            or encoded.count("[") != encoded.count("]")
            or ("[" in encoded and encoded.index("[") > encoded.index("]"))
        ):
            raise BadRequest(ValidationError.bracket_not_opened_or_closed())

        if "[" in encoded:
            return cls._deserialize_filtered(encoded, placeholders)

        try:
            attr_rep = AttrRepFactory.deserialize(path_exp)
        except ValueError:
            raise BadRequest(ValidationError.bad_attribute_name(path_exp))
        return cls(
            attr_rep=AttrRep(attr=attr_rep.attr, schema=attr_rep.schema),
            sub_attr_name=attr_rep.sub_attr,
        )

    @classmethod
    def _deserialize_filtered(cls, encoded: str, placeholders: dict[str, Any]) -> "PatchPath":
        attr_exp = encoded[: encoded.index("[")]
        filter_exp = encoded[encoded.index("[") + 1 : encoded.index("]")]
        sub_attr_exp = encoded[encoded.index("]") + 1 :]
        try:
            attr_rep = AttrRepFactory.deserialize(attr_exp)
        except ValueError:
            raise BadRequest(
                ValidationError.bad_attribute_name(decode_placeholders(attr_exp, placeholders))
            )
        if attr_rep.is_sub_attr:
            raise BadRequest(ValidationError.filter_not_applicable(), location=str(attr_rep))

        sub_attr_name = None
        if sub_attr_exp:
            if not sub_attr_exp.startswith("."):
                raise BadRequest(ValidationError.bad_value_syntax(scim_error="invalidPath"))
            sub_attr_exp = sub_attr_exp[1:]
            try:
                sub_attr_name = AttrName(sub_attr_exp)
            except ValueError:
                raise BadRequest(
                    ValidationError.bad_attribute_name(
                        decode_placeholders(sub_attr_exp, placeholders)
                    )
                )
        return cls(
            attr_rep=attr_rep,
            sub_attr_name=sub_attr_name,
            filter_=ValueFilter.deserialize(str(attr_rep.attr), filter_exp, placeholders),
        )

    def serialize(self) -> str:
        """
        Serializes `PatchPath` to string expression.
        """
        serialized = str(self._attr_rep)
        if self._filter is not None:
            serialized += f"[{self._filter.serialize()}]"
        if self._sub_attr_name is not None:
            serialized += f".{self._sub_attr_name}"
        return serialized

    def __repr__(self):
        return f"PatchPath({self.serialize()})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PatchPath):
            return False

        return bool(
            self._attr_rep == other._attr_rep
            and self._filter == other._filter
            and self._sub_attr_name == other._sub_attr_name
        )


@dataclass
class PatchTarget:
    """
    Concrete modification target: the JSON node `container`, the `key` within it (an
    object key or an array index), and the attribute that governs the value under the key.
    `array` is set for targets located inside elements of multi-valued complex attribute.
    """

    container: Union[dict[str, Any], list[Any]]
    key: Union[str, int]
    attr: AttributeDescriptor
    array: Optional[list[Any]] = None

    @property
    def current(self) -> Any:
        if isinstance(self.container, list):
            return self.container[cast(int, self.key)]
        return get_value(self.container, cast(str, self.key))


@dataclass
class ResolvedPath:
    """
    Result of resolving `PatchPath` against the resource type's schemas.
    """

    path: PatchPath
    schema: "SchemaTree"
    attr: AttributeDescriptor
    sub_attr: Optional[AttributeDescriptor] = None

    @property
    def target_attr(self) -> AttributeDescriptor:
        """
        The attribute the operation's value is written to.
        """
        return self.sub_attr or self.attr


class PatchPathResolver:
    """
    Resolves PATCH paths against the main schema and the extensions of the resource type,
    and finds the concrete modification targets in the documents.

    Args:
        resource_type: The resource type PATCH operations are applied to.
        do_not_fail_on_no_target: If `True`, `add` and `replace` operations with no target
            yield empty target list instead of raising `noTarget` error.
    """

    def __init__(self, resource_type: "ResourceType", do_not_fail_on_no_target: bool = False):
        self._resource_type = resource_type
        self._do_not_fail_on_no_target = do_not_fail_on_no_target

    @property
    def resource_type(self) -> "ResourceType":
        return self._resource_type

    def extension_for(self, path_exp: str) -> Optional["SchemaTree"]:
        """
        Returns the extension schema if the path expression is the extension's URI.
        """
        if not isinstance(path_exp, str):
            return None
        return self._resource_type.get_extension(path_exp.strip())

    def resolve(
        self, path: Union[str, PatchPath], op: Union[str, PatchOperationType]
    ) -> ResolvedPath:
        """
        Resolves the path to the attribute (and sub-attribute) descriptors.

        Raises:
            BadRequest: If the path is malformed, refers to unknown attribute, or uses
                value selection filter improperly.
        """
        if isinstance(path, str):
            path = PatchPath.deserialize(path)
        op = PatchOperationType(op)
        schema, attr = self._resolve_head(path)

        if path.filter is not None:
            if not attr.is_multi_valued_complex:
                raise BadRequest(ValidationError.filter_not_applicable(), location=path.serialize())
            for clause in path.filter.clauses:
                if attr.get_sub_attribute(clause.sub_attr_name) is None:
                    raise self._unknown(f"{attr.scim_node_name}.{clause.sub_attr_name}")
            if path.sub_attr_name is None and op != PatchOperationType.REMOVE:
                suggestion = "value" if attr.get_sub_attribute("value") else attr.sub_attributes[0].name
                raise BadRequest(
                    ValidationError.filter_requires_sub_attribute(
                        f"{path.serialize()}.{suggestion}"
                    ),
                    location=path.serialize(),
                )

        sub_attr = None
        if path.sub_attr_name is not None:
            if not attr.is_complex:
                raise self._unknown(path.serialize())
            sub_attr = attr.get_sub_attribute(path.sub_attr_name)
            if sub_attr is None:
                sub_attr = schema.lookup(f"{attr.scim_node_name}.{path.sub_attr_name}")
            if sub_attr is None:
                raise self._unknown(path.serialize())
        return ResolvedPath(path=path, schema=schema, attr=attr, sub_attr=sub_attr)

    def _resolve_head(self, path: PatchPath) -> tuple["SchemaTree", AttributeDescriptor]:
        resource_type = self._resource_type
        schemas = [resource_type.schema, *resource_type.extension_schemas]
        if path.attr_rep.schema is not None:
            schemas = [schema for schema in schemas if schema.id == path.attr_rep.schema]
        for schema in schemas:
            attr = schema.lookup(path.attr_rep.attr)
            if attr is not None:
                return schema, attr
        raise self._unknown(path.serialize())

    def _unknown(self, attribute: str) -> BadRequest:
        return BadRequest(
            ValidationError.unknown_attribute(attribute, self._resource_type.name),
            location=attribute,
        )

    def _no_target(self, issue: ValidationError, location: str) -> list[PatchTarget]:
        if self._do_not_fail_on_no_target:
            return []
        raise BadRequest(issue, location=location)

    def get_root(
        self, resolved: ResolvedPath, document: dict[str, Any], create: bool
    ) -> Optional[dict[str, Any]]:
        """
        Returns the node holding top-level attributes of the resolved path's schema. For
        extensions, that is the extension object, created if `create` is `True`.
        """
        if resolved.schema is self._resource_type.schema:
            return document
        key = find_key(document, resolved.schema.id)
        if key is not None and isinstance(document[key], dict):
            return document[key]
        if not create:
            return None
        root: dict[str, Any] = {}
        document[key or str(resolved.schema.id)] = root
        return root

    def targets(
        self,
        resolved: ResolvedPath,
        document: dict[str, Any],
        op: Union[str, PatchOperationType],
    ) -> list[PatchTarget]:
        """
        Finds the modification targets in the document. Containers required by `add` and
        `replace` operations (extension objects, single-valued complex attributes) are
        created when missing.

        Returns:
            Modification targets. Empty list means the operation is a no-op.

        Raises:
            BadRequest: With `noTarget` error type, if `add` or `replace` operation has
                no target to modify.
        """
        op = PatchOperationType(op)
        create = op != PatchOperationType.REMOVE
        root = self.get_root(resolved, document, create)
        if root is None:
            return []
        attr, path = resolved.attr, resolved.path
        attr_key = find_key(root, attr.name) or str(attr.name)
        current = get_value(root, attr_key)

        if path.filter is None and resolved.sub_attr is None:
            if not create and current is None:
                return []
            return [PatchTarget(container=root, key=attr_key, attr=attr)]

        if path.filter is None:
            sub_attr = cast(AttributeDescriptor, resolved.sub_attr)
            if attr.multi_valued:
                if not isinstance(current, list) or not current:
                    if not create:
                        return []
                    return self._no_target(
                        ValidationError.missing_target_container(attr.scim_node_name),
                        location=path.serialize(),
                    )
                return [
                    PatchTarget(
                        container=item,
                        key=find_key(item, sub_attr.name) or str(sub_attr.name),
                        attr=sub_attr,
                        array=current,
                    )
                    for item in current
                    if isinstance(item, dict)
                ]
            if not isinstance(current, dict):
                if not create:
                    return []
                current = {}
                root[attr_key] = current
            key = find_key(current, sub_attr.name) or str(sub_attr.name)
            if not create and key not in current:
                return []
            return [PatchTarget(container=current, key=key, attr=sub_attr)]

        value_filter = cast(ValueFilter, path.filter)
        if not isinstance(current, list):
            if not create:
                return []
            return self._no_target(
                ValidationError.missing_target_container(attr.scim_node_name),
                location=path.serialize(),
            )
        matches = [i for i, item in enumerate(current) if value_filter.match(item, attr)]
        if not matches:
            if not create:
                return []
            return self._no_target(
                ValidationError.unknown_modification_target(), location=path.serialize()
            )
        if resolved.sub_attr is None:
            return [PatchTarget(container=current, key=i, attr=attr) for i in matches]
        sub_attr = resolved.sub_attr
        output = []
        for i in matches:
            item = current[i]
            key = find_key(item, sub_attr.name) or str(sub_attr.name)
            if not create and key not in item:
                continue
            output.append(PatchTarget(container=item, key=key, attr=sub_attr, array=current))
        return output
