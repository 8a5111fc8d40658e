import threading
import warnings
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from scimcore.constants import SCHEMAS
from scimcore.data.attrs import AttributeDescriptor
from scimcore.data.schemas import SchemaTree
from scimcore.data.utils import get_value
from scimcore.error import BadRequest, InternalServer, InvalidSchema, ValidationError
from scimcore.identifiers import SchemaUri
from scimcore.warning import ScimCoreWarning


def _to_uri(value: Any) -> Optional[SchemaUri]:
    if not isinstance(value, str):
        return None
    try:
        return SchemaUri(value)
    except ValueError:
        return None


@dataclass(frozen=True)
class SchemaExtension:
    schema: SchemaTree
    required: bool = False


@dataclass
class ResourceType:
    """
    Binds the resource type name to its main schema and schema extensions.
    """

    name: str
    schema: SchemaTree
    endpoint: str
    description: str = ""
    extensions: list[SchemaExtension] = field(default_factory=list)

    @property
    def extension_schemas(self) -> list[SchemaTree]:
        return [extension.schema for extension in self.extensions]

    @property
    def required_extensions(self) -> list[SchemaTree]:
        return [extension.schema for extension in self.extensions if extension.required]

    def get_extension(self, schema_uri: str) -> Optional[SchemaTree]:
        for extension in self.extensions:
            if extension.schema.id == schema_uri:
                return extension.schema
        return None

    def lookup(self, attr_name: str) -> Optional[AttributeDescriptor]:
        """
        Looks up the attribute in the main schema first, then in the extensions. The name
        can be prefixed with the schema URI, in which case only the matching schema is used.
        """
        for schema in [self.schema, *self.extension_schemas]:
            if attr_name.lower().startswith(schema.id.lower() + ":"):
                return schema.lookup(attr_name)
        attribute = self.schema.lookup(attr_name)
        if attribute is not None:
            return attribute
        for schema in self.extension_schemas:
            attribute = schema.lookup(attr_name)
            if attribute is not None:
                return attribute
        return None

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:ResourceType"],
            "id": self.name,
            "name": self.name,
            "endpoint": self.endpoint,
            "schema": str(self.schema.id),
        }
        if self.description:
            output["description"] = self.description
        if self.extensions:
            output["schemaExtensions"] = [
                {"schema": str(extension.schema.id), "required": extension.required}
                for extension in self.extensions
            ]
        return output


class SchemaRegistry:
    """
    Registry of schemas and resource types. Expected to be populated once, at startup, and
    read many times afterwards. Registration is serialized with an internal lock, reads are
    not locked.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._schemas: dict[SchemaUri, SchemaTree] = {}
        self._resource_types: dict[str, ResourceType] = {}
        self._resource_type_by_schema: dict[SchemaUri, ResourceType] = {}

    @property
    def schemas(self) -> list[SchemaTree]:
        return list(self._schemas.values())

    @property
    def resource_types(self) -> list[ResourceType]:
        return list(self._resource_types.values())

    def register_schema(self, schema: Union[SchemaTree, Mapping[str, Any]]) -> SchemaTree:
        """
        Registers the schema. The schema can be provided as `SchemaTree` or as schema document.

        Raises:
            InvalidSchema: If the schema document is not valid, or the schema with the same
                id is already registered.
        """
        if not isinstance(schema, SchemaTree):
            schema = SchemaTree.from_dict(schema)
        with self._lock:
            if schema.id in self._schemas:
                raise InvalidSchema(ValidationError.schema_already_registered(schema.id))
            self._schemas[schema.id] = schema
        return schema

    def register_resource_type(
        self,
        name: str,
        schema: Union[SchemaTree, str],
        *,
        endpoint: Optional[str] = None,
        description: str = "",
        extensions: Optional[Mapping[Union[SchemaTree, str], bool]] = None,
    ) -> ResourceType:
        """
        Registers the resource type. Schemas provided as `SchemaTree` are registered if not
        registered yet, schemas provided as URIs must be registered already.

        Args:
            name: Name of the resource type, e.g. `User`.
            schema: The main schema.
            endpoint: The resource type endpoint. Defaults to `/<name>s`.
            description: Description of the resource type.
            extensions: Schema extensions, mapped to the flag indicating whether the extension
                is required.

        Raises:
            InvalidSchema: If the resource type is already registered.
            InternalServer: If any of the referenced schemas is not registered.
        """
        main = self._ensure_schema(schema)
        resource_extensions = [
            SchemaExtension(schema=self._ensure_schema(extension), required=bool(required))
            for extension, required in (extensions or {}).items()
        ]
        for extension in resource_extensions:
            for attribute in extension.schema.attributes:
                if main.lookup(attribute.name) is not None:
                    warnings.warn(
                        message=(
                            f"Resource extension {extension.schema.id!r} defines "
                            f"{attribute.name!r} attribute, which is also present in "
                            f"base {main.id!r} schema."
                        ),
                        category=ScimCoreWarning,
                    )
        resource_type = ResourceType(
            name=name,
            schema=main,
            endpoint=endpoint or f"/{name}s",
            description=description,
            extensions=resource_extensions,
        )
        with self._lock:
            if name.lower() in self._resource_types:
                raise InvalidSchema(ValidationError.resource_type_already_registered(name))
            self._resource_types[name.lower()] = resource_type
            self._resource_type_by_schema[main.id] = resource_type
        return resource_type

    def _ensure_schema(self, schema: Union[SchemaTree, str]) -> SchemaTree:
        if isinstance(schema, SchemaTree):
            registered = self._schemas.get(schema.id)
            if registered is None:
                return self.register_schema(schema)
            if registered is not schema:
                raise InvalidSchema(ValidationError.schema_already_registered(schema.id))
            return registered
        registered = self.get_schema(schema)
        if registered is None:
            raise InternalServer(ValidationError.unknown_schema(), location=schema)
        return registered

    def get_schema(self, schema_uri: str) -> Optional[SchemaTree]:
        uri = _to_uri(schema_uri)
        if uri is None:
            return None
        return self._schemas.get(uri)

    def get_resource_type(self, name: str) -> Optional[ResourceType]:
        return self._resource_types.get(name.lower())

    def is_resource_type_registered(self, name: str) -> bool:
        return isinstance(name, str) and name.lower() in self._resource_types

    def resource_type_for_schema(self, schema_uri: str) -> Optional[ResourceType]:
        uri = _to_uri(schema_uri)
        if uri is None:
            return None
        return self._resource_type_by_schema.get(uri)

    def resource_type_for_document(self, document: Mapping[str, Any]) -> Optional[ResourceType]:
        """
        Returns the resource type whose main schema is listed in the document's `schemas`.
        """
        schemas = get_value(document, SCHEMAS)
        if not isinstance(schemas, list):
            return None
        for schema_uri in schemas:
            resource_type = self.resource_type_for_schema(schema_uri)
            if resource_type is not None:
                return resource_type
        return None

    def resolve_schema_for_document(
        self, document: Mapping[str, Any]
    ) -> tuple[SchemaTree, list[SchemaTree]]:
        """
        Resolves the main schema and the extension schemas listed in the document's `schemas`.

        Raises:
            BadRequest: If `schemas` is missing, does not reference any registered resource type,
                or references a schema that is not known to the resource type.
        """
        schemas = get_value(document, SCHEMAS)
        if not isinstance(schemas, list) or not schemas:
            raise BadRequest(ValidationError.missing_schemas())
        resource_type = self.resource_type_for_document(document)
        if resource_type is None:
            raise BadRequest(ValidationError.unknown_schema(), location=SCHEMAS)
        extensions = []
        for schema_uri in schemas:
            if resource_type.schema.id == schema_uri:
                continue
            extension = resource_type.get_extension(schema_uri)
            if extension is None:
                raise BadRequest(ValidationError.unknown_schema(), location=str(schema_uri))
            extensions.append(extension)
        return resource_type.schema, extensions
