import pytest

from scimcore.config import PatchOption, ServiceProviderConfig


def test_default_config_supports_patch_with_dotted_attribute_workaround():
    config = ServiceProviderConfig.create()

    assert config.documentation_uri == ""
    assert config.patch == PatchOption(
        supported=True,
        ignore_unknown_attribute=False,
        do_not_fail_on_no_target=False,
        dotted_attribute_workaround=True,
        value_sub_attribute_workaround=False,
        complex_simple_value_workaround=False,
    )


def test_patch_options_are_created_from_dict():
    config = ServiceProviderConfig.create(
        documentation_uri="https://example.com/docs",
        patch={"supported": True, "ignore_unknown_attribute": True},
    )

    assert config.patch.ignore_unknown_attribute
    assert config.patch.dotted_attribute_workaround


def test_unknown_patch_option_is_rejected():
    with pytest.raises(TypeError):
        ServiceProviderConfig.create(patch={"unknown": True})


@pytest.mark.parametrize(
    ("config", "expected"),
    (
        (ServiceProviderConfig.create(), {"patch": {"supported": True}}),
        (
            ServiceProviderConfig.create(
                documentation_uri="https://example.com/docs", patch={"supported": False}
            ),
            {"patch": {"supported": False}, "documentationUri": "https://example.com/docs"},
        ),
    ),
)
def test_config_is_serialized(config, expected):
    assert config.to_dict() == expected
