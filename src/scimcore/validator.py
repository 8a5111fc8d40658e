import base64
import binascii
import logging
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlparse

from scimcore.constants import SCHEMAS, Direction, HttpVerb, SCIMType
from scimcore.data.attrs import (
    AttributeDescriptor,
    AttributeReturn,
    AttributeUniqueness,
    ReferenceType,
)
from scimcore.data.schemas import SchemaTree
from scimcore.data.utils import find_key, get_value, is_empty, json_type_name
from scimcore.error import DocumentValidation, InternalServer, ScimError, ValidationError
from scimcore.registry import ResourceType, SchemaRegistry

logger = logging.getLogger(__name__)


_EXPECTED_PYTHON_TYPES: dict[SCIMType, tuple[type, ...]] = {
    SCIMType.STRING: (str,),
    SCIMType.REFERENCE: (str,),
    SCIMType.BINARY: (str,),
    SCIMType.DATETIME: (str,),
    SCIMType.BOOLEAN: (bool,),
    SCIMType.INTEGER: (int,),
    SCIMType.DECIMAL: (int, float),
}


class DocumentValidator:
    """
    Validates documents against schemas and filters them, depending on whether the document
    is a request sent by the client, or a response returned by the service provider.

    Validation is fail-fast: the first violation raises `DocumentValidation` error with
    status 400 for requests and 500 for responses, or if the direction is not specified.
    No partial results are returned.

    Args:
        registry: Registry used to resolve resource types and references.
        direction: Validation direction. If not specified, neither required-ness checks
            nor direction-based filtering are performed.
        verb: HTTP verb of the request. Relevant for `REQUEST` direction only.
        schema_validation: If `True`, required-ness and direction-based rules are disabled.
            Used when validating schema documents against their meta-schema.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        direction: Optional[Union[str, Direction]] = None,
        verb: Optional[Union[str, HttpVerb]] = None,
        schema_validation: bool = False,
    ):
        self._registry = registry
        self._direction = Direction(direction) if direction is not None else None
        self._verb = HttpVerb(verb) if verb is not None else None
        self._schema_validation = schema_validation

    @classmethod
    def request(cls, registry: SchemaRegistry, verb: Union[str, HttpVerb]) -> "DocumentValidator":
        return cls(registry, direction=Direction.REQUEST, verb=verb)

    @classmethod
    def response(cls, registry: SchemaRegistry) -> "DocumentValidator":
        return cls(registry, direction=Direction.RESPONSE)

    @classmethod
    def for_schema_validation(cls, registry: SchemaRegistry) -> "DocumentValidator":
        return cls(registry, schema_validation=True)

    @property
    def direction(self) -> Optional[Direction]:
        return self._direction

    @property
    def verb(self) -> Optional[HttpVerb]:
        return self._verb

    @property
    def status(self) -> int:
        """HTTP status reported with validation errors."""
        return 400 if self._direction == Direction.REQUEST else 500

    def validate_document(self, document: Any) -> dict[str, Any]:
        """
        Validates the document against the resource type resolved from its `schemas`.
        """
        if not isinstance(document, dict):
            raise self._error(ValidationError.bad_type("object", json_type_name(document)))
        resource_type = self._registry.resource_type_for_document(document)
        if resource_type is None:
            if not isinstance(get_value(document, SCHEMAS), list):
                raise self._error(ValidationError.missing_schemas())
            raise self._error(ValidationError.unknown_schema(), location=SCHEMAS)
        return self.validate_resource(resource_type, document)

    def validate_resource(self, resource_type: ResourceType, document: Any) -> dict[str, Any]:
        """
        Validates the document against the main schema of the provided resource type and
        the schema extensions present in the document.

        Raises:
            DocumentValidation: If the document, or any of its extensions, is not valid.
            InternalServer: If a required extension is missing in a response document.
        """
        output = self.validate(resource_type.schema, document)
        known = [resource_type.schema, *resource_type.extension_schemas]
        for schema_uri in output[SCHEMAS]:
            if not any(schema.id == schema_uri for schema in known):
                raise self._error(ValidationError.unknown_schema(), location=str(schema_uri))

        schemas = [str(resource_type.schema.id)]
        for extension in resource_type.extensions:
            key = find_key(document, extension.schema.id)
            data = document[key] if key is not None else None
            if is_empty(data):
                if extension.required:
                    self._handle_missing_extension(extension.schema)
                continue
            validated = self.validate(extension.schema, data, extension=True)
            if validated:
                output[str(extension.schema.id)] = validated
                schemas.append(str(extension.schema.id))
            elif extension.required:
                self._handle_missing_extension(extension.schema)
        output[SCHEMAS] = schemas
        return output

    def _handle_missing_extension(self, schema: SchemaTree) -> None:
        if self._schema_validation or self._direction is None:
            return
        issue = ValidationError.missing_schema_extension(str(schema.id))
        if self._direction == Direction.REQUEST:
            if self._verb == HttpVerb.PATCH:
                return
            raise self._error(issue)
        raise InternalServer(issue)

    def validate(
        self,
        schema: SchemaTree,
        document: Any,
        *,
        extension: bool = False,
    ) -> dict[str, Any]:
        """
        Validates the document against a single schema and returns the filtered document.

        Args:
            schema: Schema to validate the document against.
            document: The document to validate.
            extension: Whether the document is an extension sub-document. Extension
                sub-documents do not carry `schemas` attribute.
        """
        if not isinstance(document, dict):
            raise self._error(
                ValidationError.bad_type("object", json_type_name(document)),
                location=None if not extension else str(schema.id),
            )
        output: dict[str, Any] = {}
        if not extension:
            schemas = get_value(document, SCHEMAS)
            if not isinstance(schemas, list):
                raise self._error(ValidationError.missing_schemas())
            if not any(isinstance(item, str) and schema.id == item for item in schemas):
                raise self._error(
                    ValidationError.missing_main_schema(str(schema.id)),
                    location=SCHEMAS,
                )
            output[SCHEMAS] = list(schemas)
        output.update(self._validate_attributes(schema.attributes, document))
        return output

    def validate_value(self, attr: AttributeDescriptor, value: Any) -> Any:
        """
        Validates the value of the provided attribute, ignoring required-ness and
        direction-based filtering of the attribute itself. Used to validate values
        provided in PATCH operations.

        Returns:
            Validated value, or `None` if it evaluates to an empty one.
        """
        if is_empty(value):
            return None
        if attr.multi_valued:
            return self._check_multi_valued(attr, value)
        if isinstance(value, list):
            raise self._error(ValidationError.several_values_for_single_valued(), attr=attr)
        if attr.is_complex:
            return self._check_complex(attr, value)
        return self._check_simple(attr, value)

    def _validate_attributes(
        self, attributes: Iterable[AttributeDescriptor], data: dict[str, Any]
    ) -> dict[str, Any]:
        output = {}
        for attr in attributes:
            key = find_key(data, attr.name)
            value = data[key] if key is not None else None
            validated = self._check_attribute(attr, value)
            if validated is not None:
                output[str(attr.name)] = validated
        return output

    def _check_attribute(self, attr: AttributeDescriptor, value: Any) -> Any:
        if is_empty(value):
            value = None
        if value is None and self._applies_defaults:
            value = attr.get_default()

        if (
            not self._schema_validation
            and self._direction == Direction.REQUEST
            and attr.is_read_only
        ):
            if value is not None:
                logger.debug("Removing 'readOnly' attribute %r from request document", attr.full_name)
            return None

        if value is None:
            self._check_required(attr)
            return None

        if attr.multi_valued:
            validated = self._check_multi_valued(attr, value)
        elif isinstance(value, list):
            raise self._error(
                ValidationError.bad_type(attr.type.value, json_type_name(value)), attr=attr
            )
        elif attr.is_complex:
            validated = self._check_complex(attr, value)
        else:
            validated = self._check_simple(attr, value)

        if validated is None:
            self._check_required(attr)
            return None

        if (
            not self._schema_validation
            and self._direction == Direction.RESPONSE
            and (attr.is_write_only or attr.returned == AttributeReturn.NEVER)
        ):
            return None
        return validated

    @property
    def _applies_defaults(self) -> bool:
        return (
            not self._schema_validation
            and self._direction == Direction.REQUEST
            and self._verb in (HttpVerb.POST, HttpVerb.PUT)
        )

    def _check_required(self, attr: AttributeDescriptor) -> None:
        if self._schema_validation or not attr.required or self._direction is None:
            return
        if self._direction == Direction.REQUEST:
            if attr.is_read_write or attr.is_write_only:
                raise self._error(
                    ValidationError.missing_required(attr.mutability.value), attr=attr
                )
            if attr.is_immutable and self._verb == HttpVerb.POST:
                raise self._error(ValidationError.missing_immutable_on_creation(), attr=attr)
            return
        if not attr.is_write_only:
            raise self._error(ValidationError.missing(), attr=attr)

    def _check_multi_valued(self, attr: AttributeDescriptor, value: Any) -> Optional[list]:
        if not isinstance(value, list):
            value = [value]
        output: list = []
        seen: list = []
        primary_count = 0
        for item in value:
            if is_empty(item):
                continue
            if isinstance(item, list):
                raise self._error(
                    ValidationError.bad_type(attr.type.value, json_type_name(item)), attr=attr
                )
            if attr.is_complex:
                validated = self._check_complex(attr, item)
                if validated is None:
                    continue
                if get_value(validated, "primary") is True:
                    primary_count += 1
                    if primary_count > 1:
                        raise self._error(ValidationError.multiple_primary_values(), attr=attr)
                unique_key: Any = validated
            else:
                validated = self._check_simple(attr, item)
                unique_key = attr.comparison_key(validated)
            if attr.uniqueness != AttributeUniqueness.NONE:
                if unique_key in seen:
                    raise self._error(ValidationError.duplicated_values(), attr=attr)
                seen.append(unique_key)
            output.append(validated)
        if not output:
            return None
        issue = attr.check_items(output)
        if issue is not None:
            raise self._error(issue, attr=attr)
        return output

    def _check_complex(self, attr: AttributeDescriptor, value: Any) -> Optional[dict[str, Any]]:
        if not isinstance(value, dict):
            raise self._error(ValidationError.bad_type("object", json_type_name(value)), attr=attr)
        validated = self._validate_attributes(attr.sub_attributes, value)
        return validated or None

    def _check_simple(self, attr: AttributeDescriptor, value: Any) -> Any:
        if attr.type == SCIMType.ANY:
            return value
        if attr.type == SCIMType.INTEGER and isinstance(value, float) and value.is_integer():
            value = int(value)
        expected = _EXPECTED_PYTHON_TYPES.get(attr.type)
        if (
            expected is None
            or not isinstance(value, expected)
            or (isinstance(value, bool) and attr.type != SCIMType.BOOLEAN)
        ):
            raise self._error(
                ValidationError.bad_type(attr.type.value, json_type_name(value)), attr=attr
            )
        if attr.type == SCIMType.BINARY:
            try:
                base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError):
                raise self._error(ValidationError.bad_encoding("base64"), attr=attr)
        elif attr.type == SCIMType.REFERENCE:
            self._check_reference(attr, value)
        issue = attr.check_value(value)
        if issue is not None:
            raise self._error(issue, attr=attr)
        return value

    def _check_reference(self, attr: AttributeDescriptor, value: str) -> None:
        reference_types = attr.reference_types
        if ReferenceType.EXTERNAL in reference_types:
            return
        if ReferenceType.URI in reference_types and self._is_uri(value):
            return
        resource_names = [
            item for item in reference_types if item not in (ReferenceType.EXTERNAL, ReferenceType.URI)
        ]
        if resource_names and self._is_resource_reference(attr, value, resource_names):
            return
        if resource_names:
            allowed = [attr.resource_type] if attr.resource_type else resource_names
            raise self._error(ValidationError.bad_scim_reference(allowed), attr=attr)
        raise self._error(ValidationError.bad_value_syntax(), attr=attr)

    @staticmethod
    def _is_uri(value: str) -> bool:
        if not value or any(char.isspace() for char in value):
            return False
        try:
            result = urlparse(value)
        except ValueError:
            return False
        return bool(result.scheme or result.path)

    def _is_resource_reference(
        self, attr: AttributeDescriptor, value: str, resource_names: list[str]
    ) -> bool:
        if attr.resource_type:
            allowed = [attr.resource_type]
        else:
            allowed = [name for name in resource_names if name != ReferenceType.RESOURCE]
        candidates = [
            resource_type
            for resource_type in self._registry.resource_types
            if not allowed or any(resource_type.name.lower() == name.lower() for name in allowed)
        ]
        for resource_type in candidates:
            if resource_type.name.lower() == value.lower():
                return True
            if self._is_uri(value) and (
                f"{resource_type.endpoint}/" in value or value.endswith(resource_type.endpoint)
            ):
                return True
        return False

    def _error(
        self,
        issue: ValidationError,
        attr: Optional[AttributeDescriptor] = None,
        location: Optional[str] = None,
    ) -> ScimError:
        if location is None and attr is not None:
            location = attr.full_name
        return DocumentValidation(issue, location=location, status=self.status)
