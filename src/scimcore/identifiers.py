import re
from typing import Any, Optional, cast

_ATTR_NAME = re.compile(r"([a-zA-Z][\w$-]*|\$ref)")
_URI_PREFIX = re.compile(r"(?:[\w.-]+:)*")
_ATTR_REP = re.compile(
    rf"({_URI_PREFIX.pattern})?({_ATTR_NAME.pattern}(\.([a-zA-Z][\w$-]*|\$ref))?)"
)


class AttrName(str):
    """
    Represents attribute name. Must conform attribute name notation, as
    specified in RFC-7643.

    Attribute names are case-insensitive.

    Raises:
        ValueError: If the provided value is not valid attribute name.
    """

    def __repr__(self):
        return f"AttrName({self})"

    def __new__(cls, value: str) -> "AttrName":
        if not isinstance(value, AttrName) and not _ATTR_NAME.fullmatch(value):
            raise ValueError(f"{value!r} is not valid attr name")
        return cast(AttrName, str.__new__(cls, value))

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, str):
            other = other.lower()
        return self.lower() == other

    def __hash__(self):
        return hash(self.lower())


class SchemaUri(str):
    """
    Represents schema URI.

    Schema URIs are case-insensitive.

    Raises:
        ValueError: If the provided value is not valid schema URI.
    """

    def __new__(cls, value: str) -> "SchemaUri":
        if not isinstance(value, SchemaUri) and not _URI_PREFIX.fullmatch(value + ":"):
            raise ValueError(f"{value!r} is not a valid schema URI")
        return cast(SchemaUri, str.__new__(cls, value))

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, str):
            other = other.lower()
        return self.lower() == other

    def __hash__(self):
        return hash(self.lower())


class AttrRep:
    """
    Representation of an attribute or sub-attribute, optionally prefixed with the URI of
    the schema it belongs to.
    """

    def __init__(self, attr: str, sub_attr: Optional[str] = None, schema: Optional[str] = None):
        """
        Args:
            attr: The attribute name.
            sub_attr: The sub-attribute name.
            schema: The schema URI the attribute is prefixed with.
        """
        attr = AttrName(attr)
        str_: str = attr
        if sub_attr is not None:
            sub_attr = AttrName(sub_attr)
            str_ += "." + sub_attr
        if schema:
            schema = SchemaUri(schema)
            str_ = f"{schema}:{str_}"
        self._attr = attr
        self._sub_attr = sub_attr
        self._schema = schema or None
        self._str = str_

    def __str__(self) -> str:
        return self._str

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, AttrRep):
            return False

        return bool(
            self._attr == other._attr
            and self._sub_attr == other._sub_attr
            and self._schema == other._schema
        )

    def __hash__(self):
        return hash((self._attr, self._sub_attr, self._schema))

    @property
    def attr(self) -> AttrName:
        """
        The attribute name.
        """
        return self._attr

    @property
    def sub_attr(self) -> Optional[AttrName]:
        """
        The sub-attribute name, if any.
        """
        return self._sub_attr

    @property
    def schema(self) -> Optional[SchemaUri]:
        """
        The schema URI prefix, if any.
        """
        return self._schema

    @property
    def is_sub_attr(self) -> bool:
        return self._sub_attr is not None


class AttrRepFactory:
    """
    Attribute representation factory. Able to deserialize string-based representations
    to `AttrRep`.
    """

    @classmethod
    def deserialize(cls, value: str) -> AttrRep:
        """
        Deserializes the provided `value` to `AttrRep`.

        Raises:
            ValueError: If the provided `value` is not valid attribute representation.

        Examples:
            >>> AttrRepFactory.deserialize("name.formatted")
            AttrRep(name.formatted)
            >>> AttrRepFactory.deserialize(
            >>>     "urn:ietf:params:scim:schemas:core:2.0:Group:members.type"
            >>> )
            AttrRep(urn:ietf:params:scim:schemas:core:2.0:Group:members.type)
        """
        match = _ATTR_REP.fullmatch(value)
        if match is None:
            raise ValueError(f"{value!r} is not valid attribute representation")

        schema, attr = match.group(1), match.group(2)
        schema = schema[:-1] if schema else None
        if "." in attr:
            attr, sub_attr = attr.split(".")
        else:
            attr, sub_attr = attr, None
        return AttrRep(attr=attr, sub_attr=sub_attr, schema=schema)
