from copy import deepcopy

import pytest

from scimcore.constants import SCIMType
from scimcore.data.attrs import (
    AttributeDescriptor,
    AttributeMutability,
    AttributeReturn,
    AttributeUniqueness,
)
from scimcore.data.schemas import SchemaTree
from scimcore.registry import ResourceType, SchemaRegistry
from scimcore.schemas import register_defaults

TEST_SCHEMA_URI = "urn:test:schemas:2.0:Test"
USER_URI = "urn:ietf:params:scim:schemas:core:2.0:User"
GROUP_URI = "urn:ietf:params:scim:schemas:core:2.0:Group"
ENTERPRISE_URI = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


def create_test_schema() -> SchemaTree:
    return SchemaTree(
        TEST_SCHEMA_URI,
        name="Test",
        attributes=[
            AttributeDescriptor(
                "id",
                type_=SCIMType.STRING,
                description="id",
                mutability=AttributeMutability.READ_ONLY,
                returned=AttributeReturn.ALWAYS,
            ),
            AttributeDescriptor("int", type_=SCIMType.INTEGER, description="int", minimum=0, maximum=100),
            AttributeDescriptor("decimal", type_=SCIMType.DECIMAL, description="decimal", multiple_of=0.5),
            AttributeDescriptor("str", type_=SCIMType.STRING, description="str"),
            AttributeDescriptor("str_cs", type_=SCIMType.STRING, description="str_cs", case_exact=True),
            AttributeDescriptor(
                "stringArray",
                type_=SCIMType.STRING,
                description="stringArray",
                multi_valued=True,
                uniqueness=AttributeUniqueness.SERVER,
                max_items=3,
            ),
            AttributeDescriptor("bool", type_=SCIMType.BOOLEAN, description="bool"),
            AttributeDescriptor(
                "datetime",
                type_=SCIMType.DATETIME,
                description="datetime",
                not_before="2000-01-01T00:00:00Z",
            ),
            AttributeDescriptor("binary", type_=SCIMType.BINARY, description="binary"),
            AttributeDescriptor("external_ref", type_=SCIMType.REFERENCE, description="external_ref"),
            AttributeDescriptor(
                "uri_ref", type_=SCIMType.REFERENCE, description="uri_ref", reference_types=["uri"]
            ),
            AttributeDescriptor(
                "resource_ref",
                type_=SCIMType.REFERENCE,
                description="resource_ref",
                reference_types=["resource"],
                resource_type="User",
            ),
            AttributeDescriptor(
                "code", type_=SCIMType.STRING, description="code", pattern="[A-Z]{3}", min_length=3
            ),
            AttributeDescriptor(
                "canonical",
                type_=SCIMType.STRING,
                description="canonical",
                canonical_values=["one", "two"],
            ),
            AttributeDescriptor("anything", type_=SCIMType.ANY, description="anything"),
            AttributeDescriptor(
                "default_str", type_=SCIMType.STRING, description="default_str", default_value="x"
            ),
            AttributeDescriptor(
                "immutable_str",
                type_=SCIMType.STRING,
                description="immutable_str",
                mutability=AttributeMutability.IMMUTABLE,
            ),
            AttributeDescriptor(
                "secret",
                type_=SCIMType.STRING,
                description="secret",
                mutability=AttributeMutability.WRITE_ONLY,
                returned=AttributeReturn.NEVER,
            ),
            AttributeDescriptor(
                "c",
                type_=SCIMType.COMPLEX,
                description="c",
                sub_attributes=[
                    AttributeDescriptor("str", type_=SCIMType.STRING, description="str"),
                    AttributeDescriptor("int", type_=SCIMType.INTEGER, description="int"),
                ],
            ),
            AttributeDescriptor(
                "c_mv",
                type_=SCIMType.COMPLEX,
                description="c_mv",
                multi_valued=True,
                sub_attributes=[
                    AttributeDescriptor("value", type_=SCIMType.STRING, description="value"),
                    AttributeDescriptor("type", type_=SCIMType.STRING, description="type"),
                    AttributeDescriptor("primary", type_=SCIMType.BOOLEAN, description="primary"),
                    AttributeDescriptor(
                        "bool", type_=SCIMType.BOOLEAN, description="bool", required=True
                    ),
                ],
            ),
        ],
    )


@pytest.fixture
def registry() -> SchemaRegistry:
    registry = SchemaRegistry()
    register_defaults(registry)
    registry.register_resource_type("Test", create_test_schema(), endpoint="/Tests")
    return registry


@pytest.fixture
def user_resource_type(registry) -> ResourceType:
    return registry.get_resource_type("User")


@pytest.fixture
def group_resource_type(registry) -> ResourceType:
    return registry.get_resource_type("Group")


@pytest.fixture
def test_resource_type(registry) -> ResourceType:
    return registry.get_resource_type("Test")


@pytest.fixture
def user_data_client():
    return {
        "schemas": [USER_URI, ENTERPRISE_URI],
        "externalId": "1",
        "userName": "bjensen@example.com",
        "name": {
            "formatted": "Ms. Barbara J Jensen, III",
            "familyName": "Jensen",
            "givenName": "Barbara",
            "middleName": "Jane",
            "honorificPrefix": "Ms.",
            "honorificSuffix": "III",
        },
        "displayName": "Babs Jensen",
        "nickName": "Babs",
        "profileUrl": "https://login.example.com/bjensen",
        "emails": [
            {"value": "bjensen@example.com", "type": "work", "primary": True},
            {"value": "babs@jensen.org", "type": "home"},
        ],
        "addresses": [
            {
                "streetAddress": "100 Universal City Plaza",
                "locality": "Hollywood",
                "region": "CA",
                "postalCode": "91608",
                "country": "US",
                "formatted": "100 Universal City Plaza\nHollywood, CA 91608 USA",
                "type": "work",
            },
        ],
        "phoneNumbers": [
            {"value": "555-555-5555", "type": "work"},
            {"value": "555-555-4444", "type": "mobile"},
        ],
        "ims": [{"value": "someaimhandle", "type": "aim"}],
        "photos": [
            {"value": "https://photos.example.com/profilephoto/72930000000Ccne/F", "type": "photo"},
        ],
        "userType": "Employee",
        "title": "Tour Guide",
        "preferredLanguage": "en-US",
        "locale": "en-US",
        "timezone": "America/Los_Angeles",
        "active": True,
        "password": "t1meMa$heen",
        "x509Certificates": [
            {
                "value": (
                    "MIIDQzCCAqygAwIBAgICEAAwDQYJKoZIhvcNAQEFBQAwTjELMAkGA1UEBhMCVVMx"
                    "EzARBgNVBAgMCkNhbGlmb3JuaWExFDASBgNVBAoMC2V4YW1wbGUuY29tMRQwEgYD"
                )
            }
        ],
        ENTERPRISE_URI: {
            "employeeNumber": "1",
            "costCenter": "4130",
            "organization": "Universal Studios",
            "division": "Theme Park",
            "department": "Tour Operations",
            "manager": {
                "value": "26118915-6090-4610-87e4-49d8ca9f808d",
                "$ref": "../Users/26118915-6090-4610-87e4-49d8ca9f808d",
            },
        },
    }


@pytest.fixture
def user_data_server(user_data_client):
    data = deepcopy(user_data_client)
    data["id"] = "2819c223-7f76-453a-919d-413861904646"
    data["meta"] = {
        "resourceType": "User",
        "created": "2010-01-23T04:56:22Z",
        "lastModified": "2011-05-13T04:42:34Z",
        "version": r'W/"3694e05e9dff591"',
        "location": "https://example.com/v2/Users/2819c223-7f76-453a-919d-413861904646",
    }
    data["groups"] = [
        {
            "value": "e9e30dba-f08f-4109-8486-d5c6a331660a",
            "$ref": "../Groups/e9e30dba-f08f-4109-8486-d5c6a331660a",
            "display": "Tour Guides",
        },
    ]
    data[ENTERPRISE_URI]["manager"]["displayName"] = "John Smith"
    data.pop("password")
    return data


@pytest.fixture
def group_data():
    return {
        "schemas": [GROUP_URI],
        "id": "e9e30dba-f08f-4109-8486-d5c6a331660a",
        "displayName": "Tour Guides",
        "members": [
            {
                "value": "2819c223-7f76-453a-919d-413861904646",
                "$ref": "https://example.com/v2/Users/2819c223-7f76-453a-919d-413861904646",
                "type": "User",
            },
            {
                "value": "123456",
                "$ref": "https://example.com/v2/Users/123456",
                "type": "User",
            },
        ],
        "meta": {
            "resourceType": "Group",
            "created": "2010-01-23T04:56:22Z",
            "lastModified": "2011-05-13T04:42:34Z",
        },
    }


@pytest.fixture
def test_data():
    return {
        "schemas": [TEST_SCHEMA_URI],
        "id": "1",
        "str": "abc",
        "c_mv": [
            {"value": "a", "type": "work", "primary": True, "bool": True},
            {"value": "b", "type": "home", "bool": False},
        ],
        "meta": {"lastModified": "2011-05-13T04:42:34Z"},
    }
