from enum import Enum

ERROR_URI = "urn:ietf:params:scim:api:messages:2.0:Error"
PATCH_OP_URI = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
SCHEMAS = "schemas"
META = "meta"
LAST_MODIFIED = "lastModified"


class SCIMType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATETIME = "dateTime"
    REFERENCE = "reference"
    COMPLEX = "complex"
    BINARY = "binary"
    ANY = "any"

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.value})"


class Direction(str, Enum):
    REQUEST = "REQUEST"
    RESPONSE = "RESPONSE"


class HttpVerb(str, Enum):
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
