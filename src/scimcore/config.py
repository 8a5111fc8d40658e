from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class _GenericOption:
    supported: bool = False


@dataclass
class PatchOption(_GenericOption):
    """
    PATCH support options.

    Args:
        supported: Whether PATCH operations are supported at all.
        ignore_unknown_attribute: If `True`, operations with paths that can not be resolved
            are skipped instead of failing the whole request.
        do_not_fail_on_no_target: If `True`, operations that yield no modification target
            are treated as no-ops instead of failing with `noTarget` error.
        dotted_attribute_workaround: Enables rewriting of value keys in dotted notation
            (e.g. `name.givenName`) into nested objects.
        value_sub_attribute_workaround: Enables unwrapping of JSON objects encoded as strings
            inside `value` sub-attribute.
        complex_simple_value_workaround: Enables wrapping of simple values targeting complex
            attributes into `{"value": ...}` objects.
    """

    supported: bool = True
    ignore_unknown_attribute: bool = False
    do_not_fail_on_no_target: bool = False
    dotted_attribute_workaround: bool = True
    value_sub_attribute_workaround: bool = False
    complex_simple_value_workaround: bool = False


@dataclass(frozen=True)
class ServiceProviderConfig:
    """
    Service provider configuration, limited to the options relevant for document
    validation and PATCH processing.
    """

    documentation_uri: str
    patch: PatchOption

    @classmethod
    def create(
        cls,
        documentation_uri: str = "",
        patch: Optional[dict[str, Any]] = None,
    ):
        """
        Creates `ServiceProviderConfig` with all values defaulted, so PATCH is supported
        with the default set of dialect workarounds.
        """
        return cls(
            documentation_uri=documentation_uri,
            patch=PatchOption(**(patch or {})),
        )

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"patch": {"supported": self.patch.supported}}
        if self.documentation_uri:
            output["documentationUri"] = self.documentation_uri
        return output
