from copy import deepcopy

import pytest

from scimcore.data.attrs import AttributeDescriptor
from scimcore.data.schemas import SchemaTree
from scimcore.error import DocumentValidation, InternalServer
from scimcore.registry import SchemaRegistry
from scimcore.validator import DocumentValidator
from tests.conftest import ENTERPRISE_URI, TEST_SCHEMA_URI, USER_URI


@pytest.fixture
def request_validator(registry):
    return DocumentValidator.request(registry, "POST")


@pytest.fixture
def response_validator(registry):
    return DocumentValidator.response(registry)


def test_correct_request_document_is_returned_unchanged(request_validator, user_resource_type):
    document = {"schemas": [USER_URI], "userName": "bjensen"}

    assert request_validator.validate(user_resource_type.schema, document) == document


def test_missing_required_attribute_in_request_is_reported_with_400(
    request_validator, user_resource_type
):
    with pytest.raises(DocumentValidation) as e:
        request_validator.validate(user_resource_type.schema, {"schemas": [USER_URI]})

    assert e.value.code == 6
    assert e.value.status == 400
    assert e.value.location == f"{USER_URI}:userName"


def test_missing_required_attribute_in_response_is_reported_with_500(
    response_validator, user_resource_type
):
    with pytest.raises(DocumentValidation) as e:
        response_validator.validate(user_resource_type.schema, {"schemas": [USER_URI]})

    assert e.value.code == 5
    assert e.value.status == 500


def test_missing_required_attribute_is_ignored_if_no_direction(registry, user_resource_type):
    validator = DocumentValidator(registry)

    assert validator.validate(user_resource_type.schema, {"schemas": [USER_URI]}) == {
        "schemas": [USER_URI]
    }
    assert validator.status == 500


def test_write_only_attribute_is_not_returned_in_response(response_validator, user_resource_type):
    document = {"schemas": [USER_URI], "userName": "bjensen", "password": "t1meMa$heen"}

    output = response_validator.validate(user_resource_type.schema, document)

    assert output == {"schemas": [USER_URI], "userName": "bjensen"}


def test_write_only_attribute_is_kept_in_request(request_validator, user_resource_type):
    document = {"schemas": [USER_URI], "userName": "bjensen", "password": "t1meMa$heen"}

    output = request_validator.validate(user_resource_type.schema, document)

    assert output["password"] == "t1meMa$heen"


def test_read_only_attributes_are_dropped_from_request(request_validator, user_resource_type):
    document = {
        "schemas": [USER_URI],
        "id": "2819c223",
        "userName": "bjensen",
        "meta": {"resourceType": "User"},
        "groups": [{"value": "e9e30dba", "display": "Tour Guides"}],
    }

    output = request_validator.validate(user_resource_type.schema, document)

    assert output == {"schemas": [USER_URI], "userName": "bjensen"}


def test_attribute_names_are_matched_case_insensitively(request_validator, user_resource_type):
    document = {"SCHEMAS": [USER_URI], "USERNAME": "bjensen", "Name": {"GIVENNAME": "Barbara"}}

    output = request_validator.validate(user_resource_type.schema, document)

    assert output == {
        "schemas": [USER_URI],
        "userName": "bjensen",
        "name": {"givenName": "Barbara"},
    }


@pytest.mark.parametrize(
    ("document", "expected_code"),
    (
        ({"userName": "bjensen"}, 19),
        ({"schemas": "bad", "userName": "bjensen"}, 19),
        ({"schemas": [TEST_SCHEMA_URI], "userName": "bjensen"}, 12),
    ),
)
def test_bad_schemas_are_reported(request_validator, user_resource_type, document, expected_code):
    with pytest.raises(DocumentValidation) as e:
        request_validator.validate(user_resource_type.schema, document)

    assert e.value.code == expected_code


def test_document_must_be_an_object(request_validator, user_resource_type):
    with pytest.raises(DocumentValidation) as e:
        request_validator.validate(user_resource_type.schema, [])

    assert e.value.code == 2


def test_multiple_primary_values_are_rejected(request_validator, user_resource_type):
    document = {
        "schemas": [USER_URI],
        "userName": "bjensen",
        "emails": [
            {"value": "bjensen@example.com", "primary": True},
            {"value": "babs@jensen.org", "primary": True},
        ],
    }

    with pytest.raises(DocumentValidation) as e:
        request_validator.validate(user_resource_type.schema, document)

    assert e.value.code == 15
    assert e.value.location == f"{USER_URI}:emails"


def test_single_value_is_wrapped_in_list_for_multi_valued_attribute(
    request_validator, test_resource_type
):
    output = request_validator.validate(
        test_resource_type.schema,
        {"schemas": [TEST_SCHEMA_URI], "stringArray": "a"},
    )

    assert output["stringArray"] == ["a"]


def test_empty_values_are_dropped(request_validator, test_resource_type):
    output = request_validator.validate(
        test_resource_type.schema,
        {
            "schemas": [TEST_SCHEMA_URI],
            "str": None,
            "stringArray": [],
            "c": {},
            "c_mv": [{}, {"value": "a", "bool": True}],
        },
    )

    assert output == {
        "schemas": [TEST_SCHEMA_URI],
        "c_mv": [{"value": "a", "bool": True}],
        "default_str": "x",
    }


@pytest.mark.parametrize(
    ("attr", "value", "expected_code"),
    (
        ("int", "1", 2),
        ("int", True, 2),
        ("int", 1.5, 2),
        ("int", -1, 32),
        ("int", 101, 33),
        ("decimal", 0.3, 34),
        ("decimal", "1.5", 2),
        ("str", 1, 2),
        ("str", ["a", "b"], 2),
        ("bool", 1, 2),
        ("bool", "true", 2),
        ("datetime", "not a date", 1),
        ("datetime", "1999-12-31T23:59:59Z", 40),
        ("binary", "not base64!", 3),
        ("uri_ref", "has a space", 1),
        ("resource_ref", "Group", 16),
        ("resource_ref", "https://example.com/v2/Groups/1", 16),
        ("code", "AB", 35),
        ("code", "abc", 37),
        ("canonical", "three", 9),
        ("stringArray", ["a", "b", "A"], 10),
        ("stringArray", ["a", "b", "c", "d"], 39),
        ("c", "abc", 2),
        ("c", {"int": "1"}, 2),
        ("c_mv", ["abc"], 2),
        ("c_mv", [{"value": "a"}], 6),
        ("c_mv", [[{"value": "a", "bool": True}]], 2),
    ),
)
def test_bad_value_is_rejected(request_validator, test_resource_type, attr, value, expected_code):
    with pytest.raises(DocumentValidation) as e:
        request_validator.validate(
            test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], attr: value}
        )

    assert e.value.code == expected_code
    assert e.value.status == 400


@pytest.mark.parametrize(
    ("attr", "value"),
    (
        ("int", 100),
        ("int", 2.0),
        ("decimal", 1),
        ("decimal", 1.5),
        ("datetime", "2024-05-01T10:00:00.123+02:00"),
        ("binary", "YWJj"),
        ("external_ref", "whatever it is"),
        ("uri_ref", "urn:example:thing"),
        ("uri_ref", "https://example.com/a"),
        ("resource_ref", "User"),
        ("resource_ref", "https://example.com/v2/Users/2819c223"),
        ("code", "ABC"),
        ("canonical", "ONE"),
        ("anything", {"a": [1, "b"]}),
        ("anything", 1.5),
        ("stringArray", ["a", "b", "c"]),
    ),
)
def test_correct_value_is_accepted(request_validator, test_resource_type, attr, value):
    output = request_validator.validate(
        test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], attr: value}
    )

    assert output[attr] == value


def test_integral_decimal_is_coerced_to_integer(request_validator, test_resource_type):
    output = request_validator.validate(
        test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], "int": 2.0}
    )

    assert output["int"] == 2
    assert isinstance(output["int"], int)


def test_default_value_is_set_on_creation(request_validator, test_resource_type):
    output = request_validator.validate(test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI]})

    assert output["default_str"] == "x"


def test_provided_value_takes_precedence_over_default(request_validator, test_resource_type):
    output = request_validator.validate(
        test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], "default_str": "y"}
    )

    assert output["default_str"] == "y"


@pytest.mark.parametrize(
    "validator_factory",
    (
        lambda registry: DocumentValidator.request(registry, "PATCH"),
        lambda registry: DocumentValidator.response(registry),
        lambda registry: DocumentValidator(registry),
    ),
)
def test_default_value_is_not_set_outside_of_creation_and_replacement(
    registry, test_resource_type, validator_factory
):
    output = validator_factory(registry).validate(
        test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], "id": "1"}
    )

    assert "default_str" not in output


def test_secret_attribute_is_never_returned(response_validator, test_resource_type):
    output = response_validator.validate(
        test_resource_type.schema, {"schemas": [TEST_SCHEMA_URI], "id": "1", "secret": "s"}
    )

    assert "secret" not in output


def test_missing_immutable_required_attribute_is_reported_on_creation_only(registry):
    schema = SchemaTree(
        "urn:test:Immutable",
        attributes=[
            AttributeDescriptor(
                "value", type_="string", description="value", mutability="immutable", required=True
            )
        ],
    )
    registry.register_resource_type("Immutable", schema)
    document = {"schemas": ["urn:test:Immutable"]}

    with pytest.raises(DocumentValidation) as e:
        DocumentValidator.request(registry, "POST").validate(schema, document)

    assert e.value.code == 7
    assert DocumentValidator.request(registry, "PUT").validate(schema, document) == document


def test_user_request_document_is_validated(request_validator, user_data_client):
    output = request_validator.validate_document(user_data_client)

    assert output == user_data_client


def test_user_response_document_is_validated(response_validator, user_data_server):
    document = deepcopy(user_data_server)
    document["password"] = "t1meMa$heen"

    output = response_validator.validate_document(document)

    assert output == user_data_server


def test_unknown_resource_type_is_reported(request_validator):
    with pytest.raises(DocumentValidation) as e:
        request_validator.validate_document({"schemas": ["urn:unknown"], "userName": "bjensen"})

    assert e.value.code == 14


def test_unknown_extension_in_schemas_is_reported(request_validator, user_data_client):
    user_data_client["schemas"].append("urn:unknown:extension")

    with pytest.raises(DocumentValidation) as e:
        request_validator.validate_document(user_data_client)

    assert e.value.code == 14
    assert e.value.location == "urn:unknown:extension"


def test_extension_is_validated(request_validator, user_data_client):
    user_data_client[ENTERPRISE_URI]["manager"]["$ref"] = "../Groups/1"

    with pytest.raises(DocumentValidation) as e:
        request_validator.validate_document(user_data_client)

    assert e.value.code == 16
    assert e.value.location == f"{ENTERPRISE_URI}:manager.$ref"


def test_empty_extension_is_removed_from_output(request_validator, user_data_client):
    user_data_client[ENTERPRISE_URI] = {"manager": {"displayName": "John Smith"}}

    output = request_validator.validate_document(user_data_client)

    assert ENTERPRISE_URI not in output
    assert output["schemas"] == [USER_URI]


def _registry_with_required_extension():
    registry = SchemaRegistry()
    registry.register_resource_type(
        "Device",
        SchemaTree(
            "urn:test:Device",
            attributes=[AttributeDescriptor("name", type_="string", description="name")],
        ),
        extensions={
            SchemaTree(
                "urn:test:ext:Device",
                attributes=[AttributeDescriptor("serial", type_="string", description="serial")],
            ): True
        },
    )
    return registry


def test_missing_required_extension_in_request_is_reported_with_400():
    registry = _registry_with_required_extension()

    with pytest.raises(DocumentValidation) as e:
        DocumentValidator.request(registry, "POST").validate_document(
            {"schemas": ["urn:test:Device"], "name": "printer"}
        )

    assert e.value.code == 13
    assert e.value.status == 400


def test_missing_required_extension_in_response_is_internal_error():
    registry = _registry_with_required_extension()

    with pytest.raises(InternalServer) as e:
        DocumentValidator.response(registry).validate_document(
            {"schemas": ["urn:test:Device"], "name": "printer"}
        )

    assert e.value.code == 13


def test_missing_required_extension_is_ignored_for_patch():
    registry = _registry_with_required_extension()
    document = {"schemas": ["urn:test:Device"], "name": "printer"}

    assert DocumentValidator.request(registry, "PATCH").validate_document(document) == document


@pytest.mark.parametrize(
    ("attr_name", "value", "expected"),
    (
        ("str", "abc", "abc"),
        ("str", None, None),
        ("stringArray", "a", ["a"]),
        ("c", {"str": "abc", "unknown": 1}, {"str": "abc"}),
        ("c", {}, None),
    ),
)
def test_value_is_validated_against_attribute(registry, test_resource_type, attr_name, value, expected):
    validator = DocumentValidator.request(registry, "PATCH")

    assert validator.validate_value(test_resource_type.lookup(attr_name), value) == expected


def test_several_values_for_single_valued_attribute_are_rejected(registry, test_resource_type):
    validator = DocumentValidator.request(registry, "PATCH")

    with pytest.raises(DocumentValidation) as e:
        validator.validate_value(test_resource_type.lookup("str"), ["a", "b"])

    assert e.value.code == 43


def test_schema_validation_ignores_required_and_direction_rules(registry, user_resource_type):
    validator = DocumentValidator.for_schema_validation(registry)
    document = {"schemas": [USER_URI], "id": "1", "password": "t1meMa$heen"}

    assert validator.validate(user_resource_type.schema, document) == document
