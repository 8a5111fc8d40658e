from enum import Enum
from typing import Any, Collection, Optional, TypedDict, Union

from typing_extensions import NotRequired

from scimcore.constants import ERROR_URI


class ScimErrorType(str, Enum):
    INVALID_FILTER = "invalidFilter"
    TOO_MANY = "tooMany"
    UNIQUENESS = "uniqueness"
    MUTABILITY = "mutability"
    INVALID_SYNTAX = "invalidSyntax"
    INVALID_PATH = "invalidPath"
    NO_TARGET = "noTarget"
    INVALID_VALUE = "invalidValue"
    INVALID_VERS = "invalidVers"
    SENSITIVE = "sensitive"


class ValidationError:
    """
    Represents a single validation issue. Uniquely identified by the error code.

    Pre-formatted messages stored in `message_by_code` can be modified, as long as embedded
    string parameters stay the same.
    """

    message_by_code = {
        1: "bad value syntax",
        2: "bad type, expecting '{expected}' but got '{actual}'",
        3: "bad encoding, expecting '{expected}'",
        5: "missing",
        6: "required {mutability!r} attribute is missing",
        7: "required immutable attribute must be set on resource creation",
        9: "must be one of: {expected_values}",
        10: "contains duplicates, which are not allowed",
        12: "missing main schema {schema!r} in 'schemas'",
        13: "missing schema extension {extension!r}",
        14: "unknown schema",
        15: "'primary' attribute set to 'True' MUST appear no more than once",
        16: "bad SCIM reference, allowed resources: {allowed_resources}",
        17: "bad attribute name {attribute!r}",
        18: "attribute {attribute!r} is unknown to resource type {resource_type!r}",
        19: "missing 'schemas' attribute",
        28: "unknown modification target",
        29: "attribute can not be modified",
        30: "attribute can not be deleted",
        31: "value or operation not supported",
        32: "must be greater than or equal to {minimum}",
        33: "must be lesser than or equal to {maximum}",
        34: "must be a multiple of {multiple_of}",
        35: "must have a minimum length of {min_length}",
        36: "must not be longer than {max_length}",
        37: "must match the regular expression {pattern!r}",
        38: "must have at least {min_items} item(s)",
        39: "must not have more than {max_items} item(s)",
        40: "must not be before {not_before!r}",
        41: "must not be after {not_after!r}",
        42: "unknown resource type {resource_type!r}",
        43: "several values found for non multi-valued attribute",
        44: "filter requires a sub-attribute, did you mean '{suggestion}'?",
        45: "no target found, {container!r} is not present",
        46: "value must be a JSON object",
        47: "value selection filter can be used with multi-valued complex attributes only",
        48: "no value provided",
        49: "too many values, expecting a single object",
        # Error codes specific to path expressions
        100: "one of brackets is not opened / closed",
        103: "missing operand for operator '{operator}' in expression '{expression}'",
        104: "unknown operator '{operator}' in expression '{expression}'",
        108: "attribute {attribute!r} has no filter expression",
        109: "bad operand {value!r}",
        # Error codes specific to schema descriptors
        200: "missing {key!r} in attribute definition",
        201: "duplicated attribute name {attribute!r}",
        202: "{key!r} can not be used with {type!r} attribute",
        203: "mutability {mutability!r} can not be used together with returned {returned!r}",
        204: "binary attribute must be case exact",
        205: "complex attribute must define sub-attributes",
        206: "bad value {value!r} for {key!r}",
        207: "schema must define at least one attribute",
        208: "missing schema 'id'",
        209: "schema {schema!r} is already registered",
        210: "resource type {resource_type!r} is already registered",
    }

    def __init__(
        self,
        code: int,
        scim_error: Optional[Union[str, ScimErrorType]] = None,
        message: Optional[str] = None,
        **context: Any,
    ):
        """
        Args:
            code: The error code. Can be one of built-in error_codes (see `message_by_code`
                attribute) or custom. If custom, it must be greater than 1000.
            scim_error: SCIM error corresponding to the validation error, if any.
            message: Error message. Can replace built-in message or be specified for custom
                validation error.
            **context: Parameters passed to pre-formatted messages.
        """
        if code not in self.message_by_code and code <= 1000:
            raise ValueError("error code for custom validation error must be greater than 1000")
        self.code = code
        if message is None:
            message = "" if code > 1000 else self.message_by_code[code].format(**context)
        self.message = message
        self.context = context
        self.scim_error = ScimErrorType(scim_error) if scim_error is not None else None

    @classmethod
    def bad_value_syntax(cls, scim_error: str = ScimErrorType.INVALID_SYNTAX):
        return cls(code=1, scim_error=scim_error)

    @classmethod
    def bad_type(cls, expected: str, actual: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=2, scim_error=scim_error, expected=expected, actual=actual)

    @classmethod
    def bad_encoding(cls, expected: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=3, scim_error=scim_error, expected=expected)

    @classmethod
    def missing(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=5, scim_error=scim_error)

    @classmethod
    def missing_required(cls, mutability: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=6, scim_error=scim_error, mutability=mutability)

    @classmethod
    def missing_immutable_on_creation(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=7, scim_error=scim_error)

    @classmethod
    def must_be_one_of(
        cls,
        expected_values: Collection[Any],
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=9, scim_error=scim_error, expected_values=list(expected_values))

    @classmethod
    def duplicated_values(cls, scim_error: str = ScimErrorType.UNIQUENESS):
        return cls(code=10, scim_error=scim_error)

    @classmethod
    def missing_main_schema(cls, schema: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=12, scim_error=scim_error, schema=schema)

    @classmethod
    def missing_schema_extension(
        cls,
        extension: str,
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=13, scim_error=scim_error, extension=extension)

    @classmethod
    def unknown_schema(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=14, scim_error=scim_error)

    @classmethod
    def multiple_primary_values(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=15, scim_error=scim_error)

    @classmethod
    def bad_scim_reference(
        cls,
        allowed_resources: Collection[str],
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=16, scim_error=scim_error, allowed_resources=list(allowed_resources))

    @classmethod
    def bad_attribute_name(cls, attribute: str, scim_error: str = ScimErrorType.INVALID_PATH):
        return cls(code=17, scim_error=scim_error, attribute=attribute)

    @classmethod
    def unknown_attribute(
        cls,
        attribute: str,
        resource_type: str,
        scim_error: str = ScimErrorType.INVALID_PATH,
    ):
        return cls(code=18, scim_error=scim_error, attribute=attribute, resource_type=resource_type)

    @classmethod
    def missing_schemas(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=19, scim_error=scim_error)

    @classmethod
    def unknown_modification_target(cls, scim_error: str = ScimErrorType.NO_TARGET):
        return cls(code=28, scim_error=scim_error)

    @classmethod
    def attribute_can_not_be_modified(cls, scim_error: str = ScimErrorType.MUTABILITY):
        return cls(code=29, scim_error=scim_error)

    @classmethod
    def attribute_can_not_be_deleted(cls, scim_error: str = ScimErrorType.MUTABILITY):
        return cls(code=30, scim_error=scim_error)

    @classmethod
    def not_supported(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=31, scim_error=scim_error)

    @classmethod
    def below_minimum(cls, minimum: Any, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=32, scim_error=scim_error, minimum=minimum)

    @classmethod
    def above_maximum(cls, maximum: Any, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=33, scim_error=scim_error, maximum=maximum)

    @classmethod
    def not_multiple_of(cls, multiple_of: Any, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=34, scim_error=scim_error, multiple_of=multiple_of)

    @classmethod
    def too_short(cls, min_length: int, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=35, scim_error=scim_error, min_length=min_length)

    @classmethod
    def too_long(cls, max_length: int, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=36, scim_error=scim_error, max_length=max_length)

    @classmethod
    def pattern_mismatch(cls, pattern: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=37, scim_error=scim_error, pattern=pattern)

    @classmethod
    def too_few_items(cls, min_items: int, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=38, scim_error=scim_error, min_items=min_items)

    @classmethod
    def too_many_items(cls, max_items: int, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=39, scim_error=scim_error, max_items=max_items)

    @classmethod
    def before_not_before(cls, not_before: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=40, scim_error=scim_error, not_before=not_before)

    @classmethod
    def after_not_after(cls, not_after: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=41, scim_error=scim_error, not_after=not_after)

    @classmethod
    def unknown_resource_type(
        cls, resource_type: str, scim_error: str = ScimErrorType.INVALID_VALUE
    ):
        return cls(code=42, scim_error=scim_error, resource_type=resource_type)

    @classmethod
    def several_values_for_single_valued(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=43, scim_error=scim_error)

    @classmethod
    def filter_requires_sub_attribute(
        cls, suggestion: str, scim_error: str = ScimErrorType.INVALID_PATH
    ):
        return cls(code=44, scim_error=scim_error, suggestion=suggestion)

    @classmethod
    def missing_target_container(cls, container: str, scim_error: str = ScimErrorType.NO_TARGET):
        return cls(code=45, scim_error=scim_error, container=container)

    @classmethod
    def value_not_an_object(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=46, scim_error=scim_error)

    @classmethod
    def filter_not_applicable(cls, scim_error: str = ScimErrorType.INVALID_PATH):
        return cls(code=47, scim_error=scim_error)

    @classmethod
    def no_value_provided(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=48, scim_error=scim_error)

    @classmethod
    def expecting_single_object(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=49, scim_error=scim_error)

    @classmethod
    def bracket_not_opened_or_closed(cls, scim_error: str = ScimErrorType.INVALID_PATH):
        return cls(code=100, scim_error=scim_error)

    @classmethod
    def missing_operand_for_operator(
        cls,
        operator: str,
        expression: str,
        scim_error: str = ScimErrorType.INVALID_FILTER,
    ):
        return cls(code=103, scim_error=scim_error, operator=operator, expression=expression)

    @classmethod
    def unknown_operator(
        cls, operator: str, expression: str, scim_error: str = ScimErrorType.INVALID_FILTER
    ):
        return cls(code=104, scim_error=scim_error, operator=operator, expression=expression)

    @classmethod
    def empty_filter_expression(cls, attribute: str, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=108, scim_error=scim_error, attribute=attribute)

    @classmethod
    def bad_operand(cls, value: Any, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=109, scim_error=scim_error, value=value)

    @classmethod
    def missing_definition_key(cls, key: str):
        return cls(code=200, key=key)

    @classmethod
    def duplicated_attribute(cls, attribute: str):
        return cls(code=201, attribute=attribute)

    @classmethod
    def constraint_not_applicable(cls, key: str, type_: str):
        return cls(code=202, key=key, type=type_)

    @classmethod
    def bad_mutability_returned_pair(cls, mutability: str, returned: str):
        return cls(code=203, mutability=mutability, returned=returned)

    @classmethod
    def binary_not_case_exact(cls):
        return cls(code=204)

    @classmethod
    def missing_sub_attributes(cls):
        return cls(code=205)

    @classmethod
    def bad_definition_value(cls, key: str, value: Any):
        return cls(code=206, key=key, value=value)

    @classmethod
    def no_attributes(cls):
        return cls(code=207)

    @classmethod
    def missing_schema_id(cls):
        return cls(code=208)

    @classmethod
    def schema_already_registered(cls, schema: str):
        return cls(code=209, schema=schema)

    @classmethod
    def resource_type_already_registered(cls, resource_type: str):
        return cls(code=210, resource_type=resource_type)

    def __eq__(self, other):
        if not isinstance(other, ValidationError):
            return False
        return self.code == other.code

    def __repr__(self) -> str:
        return f"ValidationError(code={self.code}, message={self.message!r})"


class ScimErrorDict(TypedDict):
    schemas: list[str]
    status: str
    scimType: NotRequired[str]
    detail: str


class ScimError(Exception):
    """
    Base class for all errors raised while processing schemas, documents and PATCH requests.
    Carries the underlying `ValidationError`, the location of the offending attribute
    (if known), and the HTTP status the error should be reported with.
    """

    status: int = 500

    def __init__(
        self,
        issue: ValidationError,
        *,
        location: Optional[str] = None,
        status: Optional[int] = None,
    ):
        self.issue = issue
        self.location = location
        if status is not None:
            self.status = status
        super().__init__(self.detail)

    @property
    def code(self) -> int:
        return self.issue.code

    @property
    def scim_type(self) -> Optional[ScimErrorType]:
        return self.issue.scim_error

    @property
    def detail(self) -> str:
        if self.location:
            return f"{self.location!r}: {self.issue.message}"
        return self.issue.message

    def to_dict(self) -> ScimErrorDict:
        """
        Converts the error to the SCIM error response body, as specified in RFC-7644.
        """
        output: ScimErrorDict = {
            "schemas": [ERROR_URI],
            "status": str(self.status),
            "detail": self.detail,
        }
        if self.scim_type is not None:
            output["scimType"] = self.scim_type.value
        return output


class InvalidSchema(ScimError):
    """Raised when a schema or attribute descriptor is malformed."""

    status = 500


class DocumentValidation(ScimError):
    """
    Raised when a document does not conform to its schema. The status depends on
    the validation direction: 400 for requests, 500 for responses or unset direction.
    """

    status = 500


class BadRequest(ScimError):
    status = 400


class InternalServer(ScimError):
    status = 500
