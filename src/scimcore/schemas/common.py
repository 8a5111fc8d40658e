from scimcore.constants import SCIMType
from scimcore.data.attrs import (
    AttributeDescriptor,
    AttributeMutability,
    AttributeReturn,
    AttributeUniqueness,
)


def id_attribute() -> AttributeDescriptor:
    return AttributeDescriptor(
        "id",
        type_=SCIMType.STRING,
        description="Unique identifier for a SCIM resource as defined by the service provider.",
        mutability=AttributeMutability.READ_ONLY,
        returned=AttributeReturn.ALWAYS,
        uniqueness=AttributeUniqueness.SERVER,
        case_exact=True,
    )


def external_id_attribute() -> AttributeDescriptor:
    return AttributeDescriptor(
        "externalId",
        type_=SCIMType.STRING,
        description=(
            "A String that is an identifier for the resource as defined by the provisioning client."
        ),
        case_exact=True,
    )


def meta_attribute() -> AttributeDescriptor:
    def sub_attribute(name: str, type_: SCIMType, description: str) -> AttributeDescriptor:
        return AttributeDescriptor(
            name,
            type_=type_,
            description=description,
            mutability=AttributeMutability.READ_ONLY,
            case_exact=type_ in (SCIMType.STRING, SCIMType.REFERENCE),
        )

    return AttributeDescriptor(
        "meta",
        type_=SCIMType.COMPLEX,
        description="A complex attribute containing resource metadata.",
        mutability=AttributeMutability.READ_ONLY,
        sub_attributes=[
            sub_attribute("resourceType", SCIMType.STRING, "The name of the resource type."),
            sub_attribute(
                "created",
                SCIMType.DATETIME,
                "The DateTime that the resource was added to the service provider.",
            ),
            sub_attribute(
                "lastModified",
                SCIMType.DATETIME,
                "The most recent DateTime that the details of this resource were updated.",
            ),
            sub_attribute("location", SCIMType.REFERENCE, "The URI of the resource being returned."),
            sub_attribute("version", SCIMType.STRING, "The version of the resource being returned."),
        ],
    )


def common_attributes() -> list[AttributeDescriptor]:
    """
    Returns new instances of attributes included in every resource: `id`, `externalId`
    and `meta`.
    """
    return [id_attribute(), external_id_attribute(), meta_attribute()]


def multi_valued_complex(
    name: str,
    description: str,
    value_type: SCIMType = SCIMType.STRING,
    mutability: AttributeMutability = AttributeMutability.READ_WRITE,
) -> AttributeDescriptor:
    """
    Builds the multi-valued complex attribute of the common shape, with `value`, `display`,
    `type` and `primary` sub-attributes.
    """
    return AttributeDescriptor(
        name,
        type_=SCIMType.COMPLEX,
        description=description,
        multi_valued=True,
        mutability=mutability,
        sub_attributes=[
            AttributeDescriptor(
                "value", type_=value_type, description=f"Value of the {name} item."
            ),
            AttributeDescriptor(
                "display",
                type_=SCIMType.STRING,
                description="A human-readable name, primarily used for display purposes.",
            ),
            AttributeDescriptor(
                "type",
                type_=SCIMType.STRING,
                description="A label indicating the attribute's function.",
            ),
            AttributeDescriptor(
                "primary",
                type_=SCIMType.BOOLEAN,
                description=(
                    "A Boolean value indicating the 'primary' or preferred attribute value."
                ),
            ),
        ],
    )
