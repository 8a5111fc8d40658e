import weakref
from typing import Any, Iterable, Iterator, Mapping, Optional

from typing_extensions import Self

from scimcore.data.attrs import AttributeDescriptor
from scimcore.error import InvalidSchema, ValidationError
from scimcore.identifiers import SchemaUri


class SchemaTree:
    """
    Schema definition: a named, ordered set of top-level attributes, together with
    case-insensitive index of all attributes and sub-attributes by their dotted names.

    Args:
        schema_id: The schema URI. Must be globally unique.
        name: Human-readable name of the schema.
        description: Description of the schema.
        attributes: Top-level attributes. At least one is required.

    Raises:
        InvalidSchema: If the schema definition is not valid, e.g. attribute names collide.
    """

    def __init__(
        self,
        schema_id: str,
        *,
        attributes: Iterable[AttributeDescriptor],
        name: Optional[str] = None,
        description: Optional[str] = None,
    ):
        if not schema_id:
            raise InvalidSchema(ValidationError.missing_schema_id())
        try:
            self._id = SchemaUri(schema_id)
        except (TypeError, ValueError):
            raise InvalidSchema(ValidationError.bad_definition_value("id", schema_id))
        self._name = name
        self._description = description
        self._attributes: list[AttributeDescriptor] = []
        self._index: dict[str, AttributeDescriptor] = {}
        self._complex_bulk_id_candidates: list[AttributeDescriptor] = []
        self._simple_bulk_id_candidates: list[AttributeDescriptor] = []
        for attribute in attributes:
            self.add_attribute(attribute)
        if not self._attributes:
            raise InvalidSchema(ValidationError.no_attributes(), location=schema_id)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """
        Creates `SchemaTree` from schema document, as specified in RFC-7643, section 7.

        Raises:
            InvalidSchema: If the schema document is not valid.
        """
        schema_id = data.get("id")
        if not schema_id:
            raise InvalidSchema(ValidationError.missing_schema_id())
        attributes = data.get("attributes")
        if not isinstance(attributes, list) or not attributes:
            raise InvalidSchema(ValidationError.no_attributes(), location=schema_id)
        return cls(
            schema_id,
            name=data.get("name"),
            description=data.get("description"),
            attributes=[AttributeDescriptor.from_dict(item) for item in attributes],
        )

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"id": str(self._id)}
        if self._name is not None:
            output["name"] = self._name
        if self._description is not None:
            output["description"] = self._description
        output["attributes"] = [attribute.to_dict() for attribute in self._attributes]
        return output

    @property
    def id(self) -> SchemaUri:
        return self._id

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def attributes(self) -> list[AttributeDescriptor]:
        """Top-level attributes, in definition order."""
        return list(self._attributes)

    @property
    def complex_bulk_id_candidates(self) -> list[AttributeDescriptor]:
        return list(self._complex_bulk_id_candidates)

    @property
    def simple_bulk_id_candidates(self) -> list[AttributeDescriptor]:
        return list(self._simple_bulk_id_candidates)

    def __iter__(self) -> Iterator[AttributeDescriptor]:
        return iter(self._attributes)

    def __repr__(self) -> str:
        return f"SchemaTree({self._id})"

    def lookup(self, scim_node_name: str) -> Optional[AttributeDescriptor]:
        """
        Returns the attribute for the provided dotted name (case-insensitive), e.g.
        `name.givenName`. The name can be prefixed with the schema URI.
        """
        key = scim_node_name.lower()
        prefix = self._id.lower() + ":"
        if key.startswith(prefix):
            key = key[len(prefix) :]
        return self._index.get(key)

    def add_attribute(self, attribute: AttributeDescriptor) -> None:
        """
        Adds the top-level attribute and registers it, and all its sub-attributes, in
        the index.

        Raises:
            InvalidSchema: If the attribute, or any of its sub-attributes, is already registered.
        """
        if attribute.parent is not None or attribute.schema is not None:
            raise InvalidSchema(
                ValidationError.duplicated_attribute(attribute.name),
                location=str(self._id),
            )
        descendants = list(attribute.iter_tree())
        for item in descendants:
            if item.scim_node_name.lower() in self._index:
                raise InvalidSchema(
                    ValidationError.duplicated_attribute(item.scim_node_name),
                    location=str(self._id),
                )
        attribute._schema = weakref.ref(self)
        self._attributes.append(attribute)
        for item in descendants:
            self._index[item.scim_node_name.lower()] = item
            if item.is_complex_bulk_id_candidate:
                self._complex_bulk_id_candidates.append(item)
            if item.is_simple_bulk_id_candidate:
                self._simple_bulk_id_candidates.append(item)

    def remove_attribute(self, name: str) -> Optional[AttributeDescriptor]:
        """
        Removes the top-level attribute with the provided name, together with its index
        entries and bulk-id candidate registrations. Returns the removed attribute, if any.
        """
        attribute = self.lookup(name)
        if attribute is None or attribute.parent is not None:
            return None
        descendants = list(attribute.iter_tree())
        for item in descendants:
            self._index.pop(item.scim_node_name.lower(), None)
        removed = set(map(id, descendants))
        self._complex_bulk_id_candidates = [
            item for item in self._complex_bulk_id_candidates if id(item) not in removed
        ]
        self._simple_bulk_id_candidates = [
            item for item in self._simple_bulk_id_candidates if id(item) not in removed
        ]
        self._attributes = [item for item in self._attributes if item is not attribute]
        attribute._schema = None
        return attribute
