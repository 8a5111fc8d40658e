import pytest

from scimcore.data.patch_path import (
    EqualityClause,
    PatchPath,
    PatchPathResolver,
    ValueFilter,
)
from scimcore.error import BadRequest
from scimcore.identifiers import AttrRep

ENTERPRISE_URI = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


@pytest.mark.parametrize(
    ("path", "expected_code"),
    (
        ("bad^attr", 17),
        ("good_attr.bad^sub_attr", 17),
        ("attr[", 100),
        ("attr]", 100),
        ("attr[[]", 100),
        ("attr[]]", 100),
        ("attr][", 100),
        ("attr[]", 108),
        ("attr.sub_attr[value eq 1]", 47),
        ("attr[value eq 1].sub_attr.sub_sub_attr", 17),
        ("attr[value eq]", 103),
        ("attr[eq 1]", 104),
        ("attr[value gt 1]", 104),
        ("attr[value eq abc]", 109),
        ("attr[value eq 1]sub_attr", 1),
        ("", 17),
    ),
)
def test_patch_path_parsing_failure(path, expected_code):
    with pytest.raises(BadRequest) as e:
        PatchPath.deserialize(path)

    assert e.value.code == expected_code
    assert e.value.status == 400


@pytest.mark.parametrize(
    ("path", "expected"),
    (
        ("members", PatchPath(attr_rep=AttrRep(attr="members"))),
        (
            "name.familyName",
            PatchPath(attr_rep=AttrRep(attr="name"), sub_attr_name="familyName"),
        ),
        (
            'addresses[type eq "work"]',
            PatchPath(
                attr_rep=AttrRep(attr="addresses"),
                filter_=ValueFilter([EqualityClause("type", "work")]),
            ),
        ),
        (
            'members[value eq "2819c223" or value eq "x OR y"].display',
            PatchPath(
                attr_rep=AttrRep(attr="members"),
                sub_attr_name="display",
                filter_=ValueFilter(
                    [EqualityClause("value", "2819c223"), EqualityClause("value", "x OR y")]
                ),
            ),
        ),
        (
            "c_mv[primary eq true]",
            PatchPath(
                attr_rep=AttrRep(attr="c_mv"),
                filter_=ValueFilter([EqualityClause("primary", True)]),
            ),
        ),
        (
            'members[value eq "ab\\"c]" or value eq \'x\\\'y\']',
            PatchPath(
                attr_rep=AttrRep(attr="members"),
                filter_=ValueFilter(
                    [EqualityClause("value", 'ab"c]'), EqualityClause("value", "x'y")]
                ),
            ),
        ),
        (
            f"{ENTERPRISE_URI}:manager.value",
            PatchPath(
                attr_rep=AttrRep(attr="manager", schema=ENTERPRISE_URI),
                sub_attr_name="value",
            ),
        ),
    ),
)
def test_patch_path_deserialization(path, expected):
    assert PatchPath.deserialize(path) == expected


@pytest.mark.parametrize(
    "path",
    (
        "members",
        "name.familyName",
        'emails[type eq "work"].value',
        'members[value eq "1" or value eq "2"]',
        'members[value eq "ab\\"c\\\\d"]',
        f"{ENTERPRISE_URI}:manager.value",
    ),
)
def test_patch_path_serialization(path):
    assert PatchPath.deserialize(path).serialize() == path


def test_patch_path_rejects_sub_attribute_representation():
    with pytest.raises(ValueError):
        PatchPath(attr_rep=AttrRep(attr="name", sub_attr="givenName"))


def test_filter_matches_case_insensitive_values_unless_case_exact(user_resource_type):
    emails = user_resource_type.lookup("emails")
    value_filter = ValueFilter([EqualityClause("type", "WORK")])

    assert value_filter.match({"type": "work"}, emails)
    assert not value_filter.match({"type": "home"}, emails)
    assert not value_filter.match("work", emails)


@pytest.mark.parametrize(
    ("path", "attr", "sub_attr"),
    (
        ("userName", "userName", None),
        ("USERNAME", "userName", None),
        ("name.givenName", "name", "givenName"),
        ('emails[type eq "work"].value', "emails", "value"),
        ("urn:ietf:params:scim:schemas:core:2.0:User:name.familyName", "name", "familyName"),
        ("employeeNumber", "employeeNumber", None),
        (f"{ENTERPRISE_URI}:manager.value", "manager", "value"),
    ),
)
def test_path_is_resolved(user_resource_type, path, attr, sub_attr):
    resolved = PatchPathResolver(user_resource_type).resolve(path, "replace")

    assert resolved.attr.name == attr
    if sub_attr is None:
        assert resolved.sub_attr is None
        assert resolved.target_attr is resolved.attr
    else:
        assert resolved.sub_attr.name == sub_attr
        assert resolved.target_attr is resolved.sub_attr


def test_extension_attribute_is_resolved_against_extension_schema(user_resource_type):
    resolved = PatchPathResolver(user_resource_type).resolve("employeeNumber", "add")

    assert resolved.schema.id == ENTERPRISE_URI


@pytest.mark.parametrize(
    ("path", "op", "expected_code"),
    (
        ("unknown", "add", 18),
        ("name.unknown", "add", 18),
        ("userName.sub", "add", 18),
        ("urn:ietf:params:scim:schemas:core:2.0:Group:displayName", "add", 18),
        ('emails[unknown eq "x"].value', "add", 18),
        ('name[givenName eq "x"].familyName', "add", 47),
        ('userName[value eq "x"]', "remove", 47),
        ('emails[type eq "work"]', "add", 44),
        ('emails[type eq "work"]', "replace", 44),
    ),
)
def test_path_resolution_failure(user_resource_type, path, op, expected_code):
    with pytest.raises(BadRequest) as e:
        PatchPathResolver(user_resource_type).resolve(path, op)

    assert e.value.code == expected_code


def test_filter_without_sub_attribute_suggests_sub_attribute(user_resource_type):
    with pytest.raises(BadRequest, match=r"did you mean 'emails\[type eq \"work\"\]\.value'"):
        PatchPathResolver(user_resource_type).resolve('emails[type eq "work"]', "replace")


def test_filter_without_sub_attribute_is_allowed_for_remove(user_resource_type):
    resolved = PatchPathResolver(user_resource_type).resolve('emails[type eq "work"]', "remove")

    assert resolved.path.has_filter
    assert resolved.sub_attr is None


def test_extension_uri_is_recognized(user_resource_type):
    resolver = PatchPathResolver(user_resource_type)

    assert resolver.extension_for(ENTERPRISE_URI.upper()).id == ENTERPRISE_URI
    assert resolver.extension_for("userName") is None


def test_filtered_targets_are_matching_elements(user_resource_type, user_data_server):
    resolver = PatchPathResolver(user_resource_type)
    resolved = resolver.resolve('emails[type eq "home" or type eq "work"].display', "add")

    targets = resolver.targets(resolved, user_data_server, "add")

    assert [target.container["value"] for target in targets] == [
        "bjensen@example.com",
        "babs@jensen.org",
    ]
    assert all(target.key == "display" for target in targets)
    assert all(target.array is user_data_server["emails"] for target in targets)


def test_filtered_remove_targets_are_array_indexes(user_resource_type, user_data_server):
    resolver = PatchPathResolver(user_resource_type)
    resolved = resolver.resolve('emails[type eq "home"]', "remove")

    targets = resolver.targets(resolved, user_data_server, "remove")

    assert [target.key for target in targets] == [1]
    assert targets[0].current == {"value": "babs@jensen.org", "type": "home"}


def test_missing_complex_container_is_created_for_add(user_resource_type):
    resolver = PatchPathResolver(user_resource_type)
    document = {"userName": "bjensen"}
    resolved = resolver.resolve("name.givenName", "add")

    targets = resolver.targets(resolved, document, "add")

    assert document["name"] == {}
    assert targets[0].container is document["name"]
    assert targets[0].key == "givenName"


def test_missing_extension_object_is_created_for_add(user_resource_type):
    resolver = PatchPathResolver(user_resource_type)
    document = {"userName": "bjensen"}
    resolved = resolver.resolve("employeeNumber", "add")

    targets = resolver.targets(resolved, document, "add")

    assert document[ENTERPRISE_URI] == {}
    assert targets[0].container is document[ENTERPRISE_URI]


def test_no_target_is_reported_for_missing_filtered_container(user_resource_type):
    resolver = PatchPathResolver(user_resource_type)
    resolved = resolver.resolve('emails[type eq "work"].value', "replace")

    with pytest.raises(BadRequest, match="'emails' is not present") as e:
        resolver.targets(resolved, {"userName": "bjensen"}, "replace")

    assert e.value.scim_type == "noTarget"


def test_no_match_is_reported_for_add(user_resource_type, user_data_server):
    resolver = PatchPathResolver(user_resource_type)
    resolved = resolver.resolve('emails[type eq "other"].value', "add")

    with pytest.raises(BadRequest) as e:
        resolver.targets(resolved, user_data_server, "add")

    assert e.value.code == 28


def test_no_target_is_tolerated_when_configured(user_resource_type):
    resolver = PatchPathResolver(user_resource_type, do_not_fail_on_no_target=True)
    resolved = resolver.resolve('emails[type eq "work"].value', "replace")

    assert resolver.targets(resolved, {"userName": "bjensen"}, "replace") == []


@pytest.mark.parametrize(
    "path",
    ('emails[type eq "work"]', "name.givenName", "nickName", "employeeNumber"),
)
def test_remove_without_target_yields_no_targets(user_resource_type, path):
    resolver = PatchPathResolver(user_resource_type)
    resolved = resolver.resolve(path, "remove")

    assert resolver.targets(resolved, {"userName": "bjensen"}, "remove") == []
