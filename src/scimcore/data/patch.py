from enum import Enum
from typing import Any, Mapping, Optional, Union

from typing_extensions import Self

from scimcore.constants import PATCH_OP_URI, SCHEMAS
from scimcore.data.utils import get_value, json_type_name
from scimcore.error import BadRequest, ScimErrorType, ValidationError


class PatchOperationType(str, Enum):
    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"


class PatchOperation:
    """
    Single PATCH operation. Values are always kept as a list, regardless of whether
    they were provided with `value` or `values` key.

    Raises:
        BadRequest: If the operation is not valid, e.g. `remove` without `path`.
    """

    def __init__(
        self,
        op: Union[str, PatchOperationType],
        path: Optional[str] = None,
        values: Optional[list[Any]] = None,
    ):
        try:
            self._op = PatchOperationType(op.lower() if isinstance(op, str) else op)
        except ValueError:
            raise BadRequest(
                ValidationError.must_be_one_of([item.value for item in PatchOperationType]),
                location="op",
            )
        if path is not None and not isinstance(path, str):
            raise BadRequest(
                ValidationError.bad_type("string", json_type_name(path)), location="path"
            )
        if not path:
            path = None
        self._path = path
        self._values = list(values) if values is not None else []
        if self._op == PatchOperationType.REMOVE and self._path is None:
            raise BadRequest(
                ValidationError.missing(scim_error=ScimErrorType.NO_TARGET), location="path"
            )
        if self._op != PatchOperationType.REMOVE and not self._values:
            raise BadRequest(ValidationError.no_value_provided(), location="value")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        if not isinstance(data, Mapping):
            raise BadRequest(ValidationError.bad_type("object", json_type_name(data)))
        op = get_value(data, "op")
        if not isinstance(op, str):
            raise BadRequest(ValidationError.missing(), location="op")
        values: list[Any] = []
        value = get_value(data, "value")
        if isinstance(value, list):
            values.extend(value)
        elif value is not None:
            values.append(value)
        extra = get_value(data, "values")
        if isinstance(extra, list):
            values.extend(extra)
        elif extra is not None:
            values.append(extra)
        return cls(op=op, path=get_value(data, "path"), values=values)

    @property
    def op(self) -> PatchOperationType:
        return self._op

    @property
    def path(self) -> Optional[str]:
        return self._path

    @property
    def values(self) -> list[Any]:
        return list(self._values)

    def evolve(self, **kwargs: Any) -> Self:
        """
        Returns a copy of the operation with the provided fields (`op`, `path`, `values`)
        replaced.
        """
        params: dict[str, Any] = {"op": self._op, "path": self._path, "values": self._values}
        params.update(kwargs)
        return type(self)(**params)

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"op": self._op.value}
        if self._path is not None:
            output["path"] = self._path
        if len(self._values) == 1:
            output["value"] = self._values[0]
        elif self._values:
            output["value"] = list(self._values)
        return output

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PatchOperation):
            return False
        return (
            self._op == other._op and self._path == other._path and self._values == other._values
        )

    def __repr__(self) -> str:
        return f"PatchOperation({self.to_dict()})"


class PatchRequest:
    """
    PATCH request message, as specified in RFC-7644, section 3.5.2.
    """

    def __init__(self, operations: list[PatchOperation]):
        self._operations = list(operations)

    @property
    def operations(self) -> list[PatchOperation]:
        return list(self._operations)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        """
        Creates `PatchRequest` from the request body.

        Raises:
            BadRequest: If the body is not valid PATCH request.
        """
        if not isinstance(data, Mapping):
            raise BadRequest(ValidationError.bad_type("object", json_type_name(data)))
        schemas = get_value(data, SCHEMAS)
        if not isinstance(schemas, list):
            raise BadRequest(ValidationError.missing_schemas())
        if not any(isinstance(item, str) and item.lower() == PATCH_OP_URI.lower() for item in schemas):
            raise BadRequest(ValidationError.missing_main_schema(PATCH_OP_URI), location=SCHEMAS)
        operations = get_value(data, "Operations")
        if not isinstance(operations, list) or not operations:
            raise BadRequest(ValidationError.missing(), location="Operations")
        parsed = []
        for i, item in enumerate(operations):
            try:
                parsed.append(PatchOperation.from_dict(item))
            except BadRequest as e:
                location = f"Operations.{i}"
                if e.location:
                    location += f".{e.location}"
                raise BadRequest(e.issue, location=location) from e
        return cls(parsed)

    def to_dict(self) -> dict[str, Any]:
        return {
            SCHEMAS: [PATCH_OP_URI],
            "Operations": [operation.to_dict() for operation in self._operations],
        }
