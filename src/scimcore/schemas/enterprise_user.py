from scimcore.constants import SCIMType
from scimcore.data.attrs import AttributeDescriptor, AttributeMutability
from scimcore.data.schemas import SchemaTree

ENTERPRISE_USER_SCHEMA_URI = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


def enterprise_user_schema() -> SchemaTree:
    def string(name: str, description: str) -> AttributeDescriptor:
        return AttributeDescriptor(name, type_=SCIMType.STRING, description=description)

    return SchemaTree(
        ENTERPRISE_USER_SCHEMA_URI,
        name="EnterpriseUser",
        description="Enterprise User",
        attributes=[
            string("employeeNumber", "Numeric or alphanumeric identifier assigned to a person."),
            string("costCenter", "Identifies the name of a cost center."),
            string("organization", "Identifies the name of an organization."),
            string("division", "Identifies the name of a division."),
            string("department", "Identifies the name of a department."),
            AttributeDescriptor(
                "manager",
                type_=SCIMType.COMPLEX,
                description="The User's manager.",
                sub_attributes=[
                    string("value", "The id of the SCIM resource representing the User's manager."),
                    AttributeDescriptor(
                        "$ref",
                        type_=SCIMType.REFERENCE,
                        description="The URI of the SCIM resource representing the User's manager.",
                        reference_types=["User"],
                    ),
                    AttributeDescriptor(
                        "displayName",
                        type_=SCIMType.STRING,
                        description="The displayName of the User's manager.",
                        mutability=AttributeMutability.READ_ONLY,
                    ),
                ],
            ),
        ],
    )
