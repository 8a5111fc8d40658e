from scimcore.constants import SCIMType
from scimcore.data.attrs import (
    AttributeDescriptor,
    AttributeMutability,
    AttributeReturn,
    AttributeUniqueness,
)
from scimcore.data.schemas import SchemaTree
from scimcore.schemas.common import common_attributes, multi_valued_complex

USER_SCHEMA_URI = "urn:ietf:params:scim:schemas:core:2.0:User"


def _string(name: str, description: str, **kwargs) -> AttributeDescriptor:
    return AttributeDescriptor(name, type_=SCIMType.STRING, description=description, **kwargs)


def _name() -> AttributeDescriptor:
    return AttributeDescriptor(
        "name",
        type_=SCIMType.COMPLEX,
        description="The components of the user's real name.",
        sub_attributes=[
            _string(
                "formatted",
                "The full name, including all middle names, titles, and suffixes as appropriate, "
                "formatted for display.",
            ),
            _string("familyName", "The family name of the User, or last name."),
            _string("givenName", "The given name of the User, or first name."),
            _string("middleName", "The middle name(s) of the User."),
            _string("honorificPrefix", "The honorific prefix(es) of the User, or title."),
            _string("honorificSuffix", "The honorific suffix(es) of the User, or suffix."),
        ],
    )


def _addresses() -> AttributeDescriptor:
    return AttributeDescriptor(
        "addresses",
        type_=SCIMType.COMPLEX,
        description="A physical mailing address for this User.",
        multi_valued=True,
        sub_attributes=[
            _string("formatted", "The full mailing address, formatted for display."),
            _string("streetAddress", "The full street address component."),
            _string("locality", "The city or locality component."),
            _string("region", "The state or region component."),
            _string("postalCode", "The zip code or postal code component."),
            _string("country", "The country name component."),
            _string("type", "A label indicating the attribute's function."),
            AttributeDescriptor(
                "primary",
                type_=SCIMType.BOOLEAN,
                description="A Boolean value indicating the preferred address.",
            ),
        ],
    )


def _groups() -> AttributeDescriptor:
    return AttributeDescriptor(
        "groups",
        type_=SCIMType.COMPLEX,
        description="A list of groups to which the user belongs.",
        multi_valued=True,
        mutability=AttributeMutability.READ_ONLY,
        sub_attributes=[
            _string(
                "value",
                "The identifier of the User's group.",
                mutability=AttributeMutability.READ_ONLY,
            ),
            AttributeDescriptor(
                "$ref",
                type_=SCIMType.REFERENCE,
                description="The URI of the corresponding 'Group' resource.",
                reference_types=["User", "Group"],
                mutability=AttributeMutability.READ_ONLY,
            ),
            _string(
                "display",
                "A human-readable name, primarily used for display purposes.",
                mutability=AttributeMutability.READ_ONLY,
            ),
            _string(
                "type",
                "A label indicating the attribute's function, e.g., 'direct' or 'indirect'.",
                canonical_values=["direct", "indirect"],
                mutability=AttributeMutability.READ_ONLY,
            ),
        ],
    )


def user_schema() -> SchemaTree:
    return SchemaTree(
        USER_SCHEMA_URI,
        name="User",
        description="User Account",
        attributes=[
            *common_attributes(),
            _string(
                "userName",
                "Unique identifier for the User, typically used by the user to directly "
                "authenticate to the service provider.",
                required=True,
                uniqueness=AttributeUniqueness.SERVER,
            ),
            _name(),
            _string("displayName", "The name of the User, suitable for display to end-users."),
            _string("nickName", "The casual way to address the user in real life."),
            AttributeDescriptor(
                "profileUrl",
                type_=SCIMType.REFERENCE,
                description="A fully qualified URL pointing to a page representing the User.",
                reference_types=["external"],
            ),
            _string("title", "The user's title, such as 'Vice President'."),
            _string("userType", "Used to identify the relationship between the organization and the user."),
            _string("preferredLanguage", "Indicates the User's preferred written or spoken language."),
            _string("locale", "Used to indicate the User's default location."),
            _string("timezone", "The User's time zone in the 'Olson' time zone database format."),
            AttributeDescriptor(
                "active",
                type_=SCIMType.BOOLEAN,
                description="A Boolean value indicating the User's administrative status.",
            ),
            _string(
                "password",
                "The User's cleartext password.",
                mutability=AttributeMutability.WRITE_ONLY,
                returned=AttributeReturn.NEVER,
            ),
            multi_valued_complex("emails", "Email addresses for the user."),
            multi_valued_complex("phoneNumbers", "Phone numbers for the User."),
            multi_valued_complex("ims", "Instant messaging addresses for the User."),
            multi_valued_complex(
                "photos", "URLs of photos of the User.", value_type=SCIMType.REFERENCE
            ),
            _addresses(),
            _groups(),
            multi_valued_complex("entitlements", "A list of entitlements for the User."),
            multi_valued_complex("roles", "A list of roles for the User."),
            multi_valued_complex(
                "x509Certificates",
                "A list of certificates issued to the User.",
                value_type=SCIMType.BINARY,
            ),
        ],
    )
