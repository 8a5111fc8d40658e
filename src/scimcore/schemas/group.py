from scimcore.constants import SCIMType
from scimcore.data.attrs import AttributeDescriptor, AttributeMutability
from scimcore.data.schemas import SchemaTree
from scimcore.schemas.common import common_attributes

GROUP_SCHEMA_URI = "urn:ietf:params:scim:schemas:core:2.0:Group"


def group_schema() -> SchemaTree:
    return SchemaTree(
        GROUP_SCHEMA_URI,
        name="Group",
        description="Group",
        attributes=[
            *common_attributes(),
            AttributeDescriptor(
                "displayName",
                type_=SCIMType.STRING,
                description="A human-readable name for the Group.",
                required=True,
            ),
            AttributeDescriptor(
                "members",
                type_=SCIMType.COMPLEX,
                description="A list of members of the Group.",
                multi_valued=True,
                sub_attributes=[
                    AttributeDescriptor(
                        "value",
                        type_=SCIMType.STRING,
                        description="Identifier of the member of this Group.",
                        mutability=AttributeMutability.IMMUTABLE,
                    ),
                    AttributeDescriptor(
                        "$ref",
                        type_=SCIMType.REFERENCE,
                        description=(
                            "The URI corresponding to a SCIM resource that is a member "
                            "of this Group."
                        ),
                        reference_types=["User", "Group"],
                        mutability=AttributeMutability.IMMUTABLE,
                    ),
                    AttributeDescriptor(
                        "display",
                        type_=SCIMType.STRING,
                        description="A human-readable name of the member.",
                    ),
                    AttributeDescriptor(
                        "type",
                        type_=SCIMType.STRING,
                        description=(
                            "A label indicating the type of resource, e.g., 'User' or 'Group'."
                        ),
                        canonical_values=["User", "Group"],
                        mutability=AttributeMutability.IMMUTABLE,
                    ),
                ],
            ),
        ],
    )
