from scimcore.registry import ResourceType, SchemaRegistry
from scimcore.schemas.enterprise_user import ENTERPRISE_USER_SCHEMA_URI, enterprise_user_schema
from scimcore.schemas.group import GROUP_SCHEMA_URI, group_schema
from scimcore.schemas.user import USER_SCHEMA_URI, user_schema


def register_defaults(registry: SchemaRegistry) -> tuple[ResourceType, ResourceType]:
    """
    Registers `User` (with optional `EnterpriseUser` extension) and `Group` resource types,
    together with their schemas.
    """
    user = registry.register_resource_type(
        "User",
        user_schema(),
        endpoint="/Users",
        description="User Account",
        extensions={enterprise_user_schema(): False},
    )
    group = registry.register_resource_type(
        "Group", group_schema(), endpoint="/Groups", description="Group"
    )
    return user, group


__all__ = [
    "ENTERPRISE_USER_SCHEMA_URI",
    "GROUP_SCHEMA_URI",
    "USER_SCHEMA_URI",
    "enterprise_user_schema",
    "group_schema",
    "register_defaults",
    "user_schema",
]
