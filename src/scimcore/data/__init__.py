from scimcore.data.attrs import (
    AttributeDescriptor,
    AttributeMutability,
    AttributeReturn,
    AttributeUniqueness,
    ReferenceType,
)
from scimcore.data.patch import PatchOperation, PatchOperationType, PatchRequest
from scimcore.data.patch_path import (
    EqualityClause,
    PatchPath,
    PatchPathResolver,
    PatchTarget,
    ResolvedPath,
    ValueFilter,
)
from scimcore.data.schemas import SchemaTree

__all__ = [
    "AttributeDescriptor",
    "AttributeMutability",
    "AttributeReturn",
    "AttributeUniqueness",
    "EqualityClause",
    "PatchOperation",
    "PatchOperationType",
    "PatchPath",
    "PatchPathResolver",
    "PatchRequest",
    "PatchTarget",
    "ReferenceType",
    "ResolvedPath",
    "SchemaTree",
    "ValueFilter",
]
