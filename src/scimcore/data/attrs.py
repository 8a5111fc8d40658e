import json
import re
import warnings
import weakref
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Collection,
    Iterable,
    Iterator,
    Mapping,
    Optional,
    Union,
)

import precis_i18n.profile
from precis_i18n import get_profile

from scimcore.constants import SCIMType
from scimcore.error import InvalidSchema, ValidationError
from scimcore.identifiers import AttrName
from scimcore.warning import ScimCoreWarning

if TYPE_CHECKING:
    from scimcore.data.schemas import SchemaTree


class AttributeMutability(str, Enum):
    READ_WRITE = "readWrite"
    READ_ONLY = "readOnly"
    WRITE_ONLY = "writeOnly"
    IMMUTABLE = "immutable"


class AttributeReturn(str, Enum):
    DEFAULT = "default"
    ALWAYS = "always"
    NEVER = "never"
    REQUEST = "request"


class AttributeUniqueness(str, Enum):
    NONE = "none"
    SERVER = "server"
    GLOBAL = "global"


class ReferenceType(str, Enum):
    RESOURCE = "resource"
    EXTERNAL = "external"
    URI = "uri"


_NUMERIC_TYPES = (SCIMType.INTEGER, SCIMType.DECIMAL)
_TEXT_TYPES = (SCIMType.STRING, SCIMType.REFERENCE)
_OPAQUE_STRING = get_profile("OpaqueString")
_FRACTION_REGEX = re.compile(r"(T\d{2}:\d{2}:\d{2})\.(\d+)")


def parse_datetime(value: str) -> Optional[datetime]:
    """
    Parses `xsd:dateTime` value. Returns `None` if the value can not be parsed.
    Values without time zone are considered to be in UTC.
    """
    if not isinstance(value, str) or "T" not in value:
        return None
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    # fromisoformat accepts only 3 or 6 fractional digits before Python 3.11
    value = _FRACTION_REGEX.sub(
        lambda match: f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}", value, count=1
    )
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AttributeDescriptor:
    """
    Describes a single attribute or sub-attribute of a schema, as specified in RFC-7643,
    together with custom validation constraints.

    Sub-attributes are owned by their parent. The parent and the owning `SchemaTree` are
    referenced weakly and are available only once the descriptor is attached.

    Args:
        name: Name of the attribute. Must be valid attribute name, according to RFC-7643.
        type_: SCIM type of the attribute.
        description: Description of the attribute.
        mutability: Specifies attribute's mutability, as per RFC-7643.
        returned: Specifies attribute's `returned` characteristic, as per RFC-7643.
        uniqueness: Specifies attribute's uniqueness, as per RFC-7643.
        multi_valued: Specifies if attribute is multivalued, as per RFC-7643.
        required: Specifies if attribute is required, as per RFC-7643.
        case_exact: Specifies if attribute's values are case-sensitive. Always `True` for
            binary attributes.
        canonical_values: Canonical values for the attribute. If not empty, only these values
            are accepted.
        reference_types: Reference types of reference attributes. Defaults to `["external"]`.
        sub_attributes: Sub-attributes of a complex attribute.
        default_value: Default value literal, applied when the attribute is not provided.
        resource_type: Name of the resource type referenced by `resource` reference attribute.
        name_prefix: Prefix of `scim_node_name`, used for attribute groups defined outside
            their owning schema (e.g. `meta`).
        **constraints: Custom validation constraints (`minimum`, `maximum`, `multiple_of`,
            `min_length`, `max_length`, `pattern`, `min_items`, `max_items`, `not_before`,
            `not_after`).

    Raises:
        InvalidSchema: If the attribute definition is not valid.
    """

    def __init__(
        self,
        name: str,
        *,
        type_: Union[str, SCIMType],
        description: str,
        mutability: Union[str, AttributeMutability] = AttributeMutability.READ_WRITE,
        returned: Union[str, AttributeReturn] = AttributeReturn.DEFAULT,
        uniqueness: Union[str, AttributeUniqueness] = AttributeUniqueness.NONE,
        multi_valued: bool = False,
        required: bool = False,
        case_exact: Optional[bool] = None,
        canonical_values: Optional[Collection[str]] = None,
        reference_types: Optional[Collection[str]] = None,
        sub_attributes: Optional[Iterable["AttributeDescriptor"]] = None,
        default_value: Any = None,
        resource_type: Optional[str] = None,
        name_prefix: Optional[str] = None,
        minimum: Optional[Union[int, float]] = None,
        maximum: Optional[Union[int, float]] = None,
        multiple_of: Optional[Union[int, float]] = None,
        min_length: Optional[int] = None,
        max_length: Optional[int] = None,
        pattern: Optional[str] = None,
        min_items: Optional[int] = None,
        max_items: Optional[int] = None,
        not_before: Optional[str] = None,
        not_after: Optional[str] = None,
    ):
        try:
            self._name = AttrName(name)
        except (TypeError, ValueError):
            raise InvalidSchema(ValidationError.bad_definition_value("name", name))
        location = name
        self._type = self._enum(SCIMType, type_, "type", location)
        self._description = description
        self._mutability = self._enum(AttributeMutability, mutability, "mutability", location)
        self._returned = self._enum(AttributeReturn, returned, "returned", location)
        self._uniqueness = self._enum(AttributeUniqueness, uniqueness, "uniqueness", location)
        self._multi_valued = bool(multi_valued)
        self._required = bool(required)
        self._name_prefix = name_prefix
        self._parent: Optional[weakref.ReferenceType] = None
        self._schema: Optional[weakref.ReferenceType] = None

        if self._type == SCIMType.BINARY:
            if case_exact is False:
                raise InvalidSchema(ValidationError.binary_not_case_exact(), location=location)
            case_exact = True
        self._case_exact = bool(case_exact)

        if (
            self._mutability == AttributeMutability.READ_ONLY
            and self._returned == AttributeReturn.NEVER
        ) or (
            self._mutability == AttributeMutability.WRITE_ONLY
            and self._returned != AttributeReturn.NEVER
        ):
            raise InvalidSchema(
                ValidationError.bad_mutability_returned_pair(
                    self._mutability.value, self._returned.value
                ),
                location=location,
            )

        self._canonical_values = list(canonical_values or [])

        if reference_types and self._type != SCIMType.REFERENCE:
            raise InvalidSchema(
                ValidationError.constraint_not_applicable("referenceTypes", self._type.value),
                location=location,
            )
        if self._type == SCIMType.REFERENCE and not reference_types:
            reference_types = [ReferenceType.EXTERNAL.value]
        self._reference_types = list(reference_types or [])

        self._sub_attributes: list[AttributeDescriptor] = []
        if self._type == SCIMType.COMPLEX:
            if not sub_attributes:
                raise InvalidSchema(ValidationError.missing_sub_attributes(), location=location)
            seen: set[AttrName] = set()
            for sub_attribute in sub_attributes:
                if sub_attribute.name in seen:
                    raise InvalidSchema(
                        ValidationError.duplicated_attribute(sub_attribute.name),
                        location=location,
                    )
                seen.add(sub_attribute.name)
                sub_attribute._parent = weakref.ref(self)
                self._sub_attributes.append(sub_attribute)
        elif sub_attributes:
            raise InvalidSchema(
                ValidationError.constraint_not_applicable("subAttributes", self._type.value),
                location=location,
            )

        self._minimum = self._numeric_constraint("minimum", minimum)
        self._maximum = self._numeric_constraint("maximum", maximum)
        self._multiple_of = self._numeric_constraint("multipleOf", multiple_of)
        if self._multiple_of is not None and self._multiple_of <= 0:
            raise InvalidSchema(
                ValidationError.bad_definition_value("multipleOf", multiple_of),
                location=location,
            )
        self._min_length = self._count_constraint("minLength", min_length, _TEXT_TYPES)
        self._max_length = self._count_constraint("maxLength", max_length, _TEXT_TYPES)
        self._pattern: Optional[re.Pattern] = None
        if pattern is not None:
            self._check_constraint_type("pattern", _TEXT_TYPES)
            try:
                self._pattern = re.compile(pattern)
            except (TypeError, re.error):
                raise InvalidSchema(
                    ValidationError.bad_definition_value("pattern", pattern),
                    location=location,
                )
        self._min_items = self._count_constraint("minItems", min_items)
        self._max_items = self._count_constraint("maxItems", max_items)
        self._not_before = self._date_constraint("notBefore", not_before)
        self._not_after = self._date_constraint("notAfter", not_after)

        if resource_type is not None and not (
            self._type == SCIMType.REFERENCE and ReferenceType.RESOURCE in self._reference_types
        ):
            raise InvalidSchema(
                ValidationError.constraint_not_applicable("resourceType", self._type.value),
                location=location,
            )
        self._resource_type = resource_type

        self._default_value: Optional[str] = None
        self.default_value = default_value

        self._complex_bulk_id_candidate = self._detect_complex_bulk_id_candidate()
        self._simple_bulk_id_candidate = self._detect_simple_bulk_id_candidate()

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], name_prefix: Optional[str] = None
    ) -> "AttributeDescriptor":
        """
        Creates `AttributeDescriptor` from the attribute definition, as it appears in schema
        documents (RFC-7643, section 7), extended with custom validation keys.

        Raises:
            InvalidSchema: If the definition is not valid.
        """
        if not isinstance(data, Mapping):
            raise InvalidSchema(ValidationError.bad_definition_value("attributes", data))
        for key in ("name", "type", "description"):
            if key not in data:
                raise InvalidSchema(
                    ValidationError.missing_definition_key(key),
                    location=data.get("name"),
                )
        sub_attributes = None
        if data.get("subAttributes") is not None:
            if not isinstance(data["subAttributes"], list):
                raise InvalidSchema(
                    ValidationError.bad_definition_value("subAttributes", data["subAttributes"]),
                    location=data["name"],
                )
            sub_attributes = [cls.from_dict(item) for item in data["subAttributes"]]
        return cls(
            data["name"],
            type_=data["type"],
            description=data["description"],
            mutability=data.get("mutability", AttributeMutability.READ_WRITE),
            returned=data.get("returned", AttributeReturn.DEFAULT),
            uniqueness=data.get("uniqueness", AttributeUniqueness.NONE),
            multi_valued=data.get("multiValued", False),
            required=data.get("required", False),
            case_exact=data.get("caseExact"),
            canonical_values=data.get("canonicalValues"),
            reference_types=data.get("referenceTypes"),
            sub_attributes=sub_attributes,
            default_value=data.get("defaultValue"),
            resource_type=data.get("resourceType"),
            name_prefix=name_prefix,
            minimum=data.get("minimum"),
            maximum=data.get("maximum"),
            multiple_of=data.get("multipleOf"),
            min_length=data.get("minLength"),
            max_length=data.get("maxLength"),
            pattern=data.get("pattern"),
            min_items=data.get("minItems"),
            max_items=data.get("maxItems"),
            not_before=data.get("notBefore"),
            not_after=data.get("notAfter"),
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Converts the descriptor to the attribute definition, as it appears in schema documents.
        """
        output: dict[str, Any] = {
            "name": str(self._name),
            "type": self._type.value,
            "description": self._description,
            "mutability": self._mutability.value,
            "returned": self._returned.value,
            "uniqueness": self._uniqueness.value,
            "multiValued": self._multi_valued,
            "required": self._required,
            "caseExact": self._case_exact,
        }
        if self._canonical_values:
            output["canonicalValues"] = list(self._canonical_values)
        if self._reference_types:
            output["referenceTypes"] = list(self._reference_types)
        if self._sub_attributes:
            output["subAttributes"] = [item.to_dict() for item in self._sub_attributes]
        for key, value in (
            ("minimum", self._minimum),
            ("maximum", self._maximum),
            ("multipleOf", self._multiple_of),
            ("minLength", self._min_length),
            ("maxLength", self._max_length),
            ("pattern", self._pattern.pattern if self._pattern else None),
            ("minItems", self._min_items),
            ("maxItems", self._max_items),
            ("notBefore", self._not_before[0] if self._not_before else None),
            ("notAfter", self._not_after[0] if self._not_after else None),
            ("defaultValue", self._default_value),
            ("resourceType", self._resource_type),
        ):
            if value is not None:
                output[key] = value
        return output

    def _enum(self, enum: type, value: Any, key: str, location: str) -> Any:
        try:
            return enum(value)
        except ValueError:
            raise InvalidSchema(ValidationError.bad_definition_value(key, value), location=location)

    def _check_constraint_type(
        self, key: str, types: Optional[tuple[SCIMType, ...]] = None
    ) -> None:
        if types is None:
            applicable = self._multi_valued
        else:
            applicable = self._type in types
        if not applicable:
            raise InvalidSchema(
                ValidationError.constraint_not_applicable(key, self._type.value),
                location=self._name,
            )

    def _numeric_constraint(self, key: str, value: Any) -> Optional[Union[int, float]]:
        if value is None:
            return None
        self._check_constraint_type(key, _NUMERIC_TYPES)
        if not _is_number(value):
            raise InvalidSchema(ValidationError.bad_definition_value(key, value), location=self._name)
        return value

    def _count_constraint(
        self, key: str, value: Any, types: Optional[tuple[SCIMType, ...]] = None
    ) -> Optional[int]:
        if value is None:
            return None
        self._check_constraint_type(key, types)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidSchema(ValidationError.bad_definition_value(key, value), location=self._name)
        return value

    def _date_constraint(self, key: str, value: Any) -> Optional[tuple[str, datetime]]:
        if value is None:
            return None
        self._check_constraint_type(key, (SCIMType.DATETIME,))
        parsed = parse_datetime(value)
        if parsed is None:
            raise InvalidSchema(ValidationError.bad_definition_value(key, value), location=self._name)
        return value, parsed

    def _detect_complex_bulk_id_candidate(self) -> bool:
        if self._type != SCIMType.COMPLEX:
            return False
        value = self.get_sub_attribute("value")
        ref = self.get_sub_attribute("$ref")
        return bool(
            value is not None
            and ref is not None
            and ref.type == SCIMType.REFERENCE
            and ReferenceType.RESOURCE in ref.reference_types
            and ref.mutability != AttributeMutability.READ_ONLY
        )

    def _detect_simple_bulk_id_candidate(self) -> bool:
        return bool(
            self._type == SCIMType.REFERENCE
            and self._reference_types == [ReferenceType.RESOURCE.value]
            and self._mutability != AttributeMutability.READ_ONLY
            and self._resource_type
        )

    @property
    def name(self) -> AttrName:
        """Name of the attribute."""
        return self._name

    @property
    def type(self) -> SCIMType:
        return self._type

    @property
    def description(self) -> str:
        return self._description

    @property
    def mutability(self) -> AttributeMutability:
        return self._mutability

    @property
    def returned(self) -> AttributeReturn:
        return self._returned

    @property
    def uniqueness(self) -> AttributeUniqueness:
        return self._uniqueness

    @property
    def multi_valued(self) -> bool:
        return self._multi_valued

    @property
    def required(self) -> bool:
        return self._required

    @property
    def case_exact(self) -> bool:
        return self._case_exact

    @property
    def canonical_values(self) -> list[str]:
        return self._canonical_values

    @property
    def reference_types(self) -> list[str]:
        return self._reference_types

    @property
    def resource_type(self) -> Optional[str]:
        """Name of the resource type referenced by `resource` reference attribute."""
        return self._resource_type

    @property
    def sub_attributes(self) -> list["AttributeDescriptor"]:
        return list(self._sub_attributes)

    @property
    def precis(self) -> precis_i18n.profile.Profile:
        """
        PRECIS profile applied to string values before comparing them.
        """
        return _OPAQUE_STRING

    @property
    def parent(self) -> Optional["AttributeDescriptor"]:
        if self._parent is None:
            return None
        return self._parent()

    @property
    def schema(self) -> Optional["SchemaTree"]:
        """The `SchemaTree` the attribute belongs to, if attached."""
        if self._schema is not None:
            return self._schema()
        parent = self.parent
        if parent is not None:
            return parent.schema
        return None

    @property
    def scim_node_name(self) -> str:
        """
        Dotted path of the attribute, starting from the schema root, e.g. `name.givenName`.
        """
        parent = self.parent
        if parent is not None:
            return f"{parent.scim_node_name}.{self._name}"
        if self._name_prefix:
            return f"{self._name_prefix}.{self._name}"
        return str(self._name)

    @property
    def full_name(self) -> str:
        schema = self.schema
        if schema is None:
            return self.scim_node_name
        return f"{schema.id}:{self.scim_node_name}"

    @property
    def default_value(self) -> Optional[str]:
        """The default value literal, if any."""
        return self._default_value

    @default_value.setter
    def default_value(self, value: Any) -> None:
        """
        Sets the default value literal. Values not compatible with the attribute's type
        are discarded with a warning.
        """
        if value is None:
            self._default_value = None
            return
        if not isinstance(value, str):
            value = json.dumps(value)
        if value.strip() == "":
            self._default_value = None
            return
        try:
            self._coerce_default(value)
        except ValueError as e:
            warnings.warn(
                message=(
                    f"Discarding default value {value!r} of attribute {self._name!r} "
                    f"of type {self._type.value!r}: {e}"
                ),
                category=ScimCoreWarning,
            )
            self._default_value = None
            return
        self._default_value = value

    def get_default(self) -> Any:
        """
        Returns the default value, converted to the attribute's type. Multi-valued attributes
        receive a list. Returns `None` if the attribute has no default value.
        """
        if self._default_value is None:
            return None
        value = self._coerce_default(self._default_value)
        if self._multi_valued and not isinstance(value, list):
            return [value]
        return value

    def _coerce_default(self, value: str) -> Any:
        if self._multi_valued and value.lstrip().startswith("["):
            try:
                items = json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("not a valid JSON array")
            return [self._coerce_default_item(json.dumps(item)) for item in items]
        return self._coerce_default_item(value)

    def _coerce_default_item(self, value: str) -> Any:
        if self._type == SCIMType.BOOLEAN:
            if value.lower() not in ("true", "false"):
                raise ValueError("expecting 'true' or 'false'")
            return value.lower() == "true"
        if self._type == SCIMType.INTEGER:
            return int(value)
        if self._type == SCIMType.DECIMAL:
            return float(value)
        if self._type == SCIMType.COMPLEX:
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError:
                raise ValueError("not a valid JSON object")
            if not isinstance(parsed, dict):
                raise ValueError("not a valid JSON object")
            return parsed
        if value.startswith('"') and value.endswith('"') and len(value) > 1:
            return json.loads(value)
        return value

    @property
    def is_complex(self) -> bool:
        return self._type == SCIMType.COMPLEX

    @property
    def is_multi_valued_complex(self) -> bool:
        return self.is_complex and self._multi_valued

    @property
    def is_child_of_complex(self) -> bool:
        parent = self.parent
        return parent is not None and parent.is_complex

    @property
    def is_child_of_multi_valued_complex(self) -> bool:
        parent = self.parent
        return parent is not None and parent.is_multi_valued_complex

    @property
    def is_read_only(self) -> bool:
        return self._mutability == AttributeMutability.READ_ONLY

    @property
    def is_read_write(self) -> bool:
        return self._mutability == AttributeMutability.READ_WRITE

    @property
    def is_immutable(self) -> bool:
        return self._mutability == AttributeMutability.IMMUTABLE

    @property
    def is_write_only(self) -> bool:
        return self._mutability == AttributeMutability.WRITE_ONLY

    @property
    def is_complex_bulk_id_candidate(self) -> bool:
        return self._complex_bulk_id_candidate

    @property
    def is_simple_bulk_id_candidate(self) -> bool:
        return self._simple_bulk_id_candidate

    def get_sub_attribute(self, name: str) -> Optional["AttributeDescriptor"]:
        """
        Returns the sub-attribute with the provided name (case-insensitive), if any.
        """
        for sub_attribute in self._sub_attributes:
            if sub_attribute.name == name:
                return sub_attribute
        return None

    def iter_tree(self) -> Iterator["AttributeDescriptor"]:
        """
        Iterates over the attribute and all its descendants, depth-first.
        """
        yield self
        for sub_attribute in self._sub_attributes:
            yield from sub_attribute.iter_tree()

    def comparison_key(self, value: Any) -> Any:
        """
        Returns the representation of a simple value used for equality comparisons. String
        values are enforced with the PRECIS profile and lower-cased, unless the attribute
        is case-exact.
        """
        if not isinstance(value, str):
            return value
        try:
            value = self.precis.enforce(value)
        except UnicodeEncodeError:
            pass
        if self._case_exact:
            return value
        return value.lower()

    def is_canonical(self, value: Any) -> bool:
        if not self._canonical_values:
            return True
        key = self.comparison_key(value)
        return any(key == self.comparison_key(item) for item in self._canonical_values)

    def check_value(self, value: Any) -> Optional[ValidationError]:
        """
        Checks custom validation constraints of the already type-checked simple value.

        Returns:
            The first violated constraint, or `None` if the value satisfies all of them.
        """
        if not self.is_canonical(value):
            return ValidationError.must_be_one_of(self._canonical_values)
        if self._type in _NUMERIC_TYPES:
            return self._check_number(value)
        if self._type in _TEXT_TYPES:
            return self._check_text(value)
        if self._type == SCIMType.DATETIME:
            return self._check_datetime(value)
        return None

    def _check_number(self, value: Union[int, float]) -> Optional[ValidationError]:
        if self._minimum is not None and value < self._minimum:
            return ValidationError.below_minimum(self._minimum)
        if self._maximum is not None and value > self._maximum:
            return ValidationError.above_maximum(self._maximum)
        if self._multiple_of is not None:
            try:
                remainder = Decimal(str(value)) % Decimal(str(self._multiple_of))
            except InvalidOperation:
                return ValidationError.not_multiple_of(self._multiple_of)
            if remainder != 0:
                return ValidationError.not_multiple_of(self._multiple_of)
        return None

    def _check_text(self, value: str) -> Optional[ValidationError]:
        if self._min_length is not None and len(value) < self._min_length:
            return ValidationError.too_short(self._min_length)
        if self._max_length is not None and len(value) > self._max_length:
            return ValidationError.too_long(self._max_length)
        if self._pattern is not None and not self._pattern.fullmatch(value):
            return ValidationError.pattern_mismatch(self._pattern.pattern)
        return None

    def _check_datetime(self, value: str) -> Optional[ValidationError]:
        parsed = parse_datetime(value)
        if parsed is None:
            return ValidationError.bad_value_syntax()
        if self._not_before is not None and parsed < self._not_before[1]:
            return ValidationError.before_not_before(self._not_before[0])
        if self._not_after is not None and parsed > self._not_after[1]:
            return ValidationError.after_not_after(self._not_after[0])
        return None

    def check_items(self, values: list) -> Optional[ValidationError]:
        """
        Checks item-count constraints of multi-valued attribute's value.
        """
        if self._min_items is not None and len(values) < self._min_items:
            return ValidationError.too_few_items(self._min_items)
        if self._max_items is not None and len(values) > self._max_items:
            return ValidationError.too_many_items(self._max_items)
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.scim_node_name})"
