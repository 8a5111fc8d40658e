import copy
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from scimcore.config import ServiceProviderConfig
from scimcore.constants import LAST_MODIFIED, META, SCHEMAS, HttpVerb
from scimcore.data.attrs import AttributeDescriptor
from scimcore.data.patch import PatchOperation, PatchOperationType, PatchRequest
from scimcore.data.patch_path import PatchPathResolver, PatchTarget
from scimcore.data.schemas import SchemaTree
from scimcore.data.utils import find_key, get_value, is_empty, pop_value, set_value
from scimcore.error import BadRequest, DocumentValidation, ValidationError
from scimcore.normalizer import NormalizerRule, normalize
from scimcore.registry import ResourceType, SchemaRegistry
from scimcore.validator import DocumentValidator

logger = logging.getLogger(__name__)

_UNKNOWN_ATTRIBUTE_CODE = 18


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """
    Formats the timestamp as ISO-8601 UTC date-time with millisecond precision.
    """
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PatchEngine:
    """
    Applies PATCH operations, in request order, to a copy of the resource document.

    Every operation is first passed through the normalizer chain, then resolved against
    the resource type's schemas, and finally applied. Values are validated with the rules
    of PATCH request validation. Processing is fail-fast, the first error aborts the whole
    request and no partially-patched document is returned.

    Args:
        registry: Registry used to validate values (e.g. resource references).
        resource_type: Resource type of the patched documents.
        config: Service provider configuration. PATCH options control the normalizer
            chain and no-target handling.
        rules: Normalizer rules. Defaults to the built-in chain.
        clock: Returns the current time, used for `meta.lastModified`.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        resource_type: Union[ResourceType, str],
        config: Optional[ServiceProviderConfig] = None,
        rules: Optional[Iterable[NormalizerRule]] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        if isinstance(resource_type, str):
            name = resource_type
            resource_type = registry.get_resource_type(name)
            if resource_type is None:
                raise BadRequest(ValidationError.unknown_resource_type(name))
        self._registry = registry
        self._resource_type = resource_type
        self._config = config or ServiceProviderConfig.create()
        self._rules = list(rules) if rules is not None else None
        self._clock = clock
        self._resolver = PatchPathResolver(
            resource_type,
            do_not_fail_on_no_target=self._config.patch.do_not_fail_on_no_target,
        )
        self._validator = DocumentValidator.request(registry, HttpVerb.PATCH)

    @property
    def resource_type(self) -> ResourceType:
        return self._resource_type

    @property
    def config(self) -> ServiceProviderConfig:
        return self._config

    def apply(
        self,
        document: Mapping[str, Any],
        operations: Union[PatchRequest, Mapping[str, Any], Iterable[Union[PatchOperation, Mapping]]],
    ) -> tuple[dict[str, Any], bool]:
        """
        Applies the operations to the copy of the document.

        Returns:
            The patched document and the flag indicating whether any value changed. The
            `meta.lastModified` is updated only if something changed.

        Raises:
            BadRequest: If PATCH is not supported, or any operation is not valid.
        """
        if not self._config.patch.supported:
            raise BadRequest(ValidationError.not_supported())
        if isinstance(operations, Mapping):
            operations = PatchRequest.from_dict(operations)
        if isinstance(operations, PatchRequest):
            operations = operations.operations
        parsed = [
            item if isinstance(item, PatchOperation) else PatchOperation.from_dict(item)
            for item in operations
        ]
        original = copy.deepcopy(dict(document))
        self._sync_extensions(original)
        patched = copy.deepcopy(original)
        for operation in parsed:
            operation = normalize(self._config.patch, self._resource_type, operation, self._rules)
            self._apply_operation(patched, operation)
            self._sync_extensions(patched)

        changed = patched != original
        if changed:
            meta = get_value(patched, META)
            if not isinstance(meta, dict):
                meta = {}
                set_value(patched, META, meta)
            set_value(meta, LAST_MODIFIED, format_timestamp(self._clock()))
        return patched, changed

    def _apply_operation(self, document: dict[str, Any], operation: PatchOperation) -> None:
        if operation.path is None:
            self._apply_object(
                document, self._resource_type.schema, operation.op, self._single_object(operation)
            )
            return

        extension = self._resolver.extension_for(operation.path)
        if extension is not None:
            self._apply_extension(document, extension, operation)
            return

        try:
            resolved = self._resolver.resolve(operation.path, operation.op)
        except BadRequest as e:
            if e.code == _UNKNOWN_ATTRIBUTE_CODE and self._config.patch.ignore_unknown_attribute:
                logger.debug("Ignoring operation %r with unknown path", operation)
                return
            raise

        for attr in {id(item): item for item in (resolved.attr, resolved.target_attr)}.values():
            if attr.is_read_only:
                raise self._mutability_error(operation.op, attr)

        targets = self._resolver.targets(resolved, document, operation.op)
        if operation.op == PatchOperationType.REMOVE:
            self._remove(targets, operation.values)
        else:
            for target in targets:
                self._write(target, operation.op, operation.values)
        self._prune(self._resolver.get_root(resolved, document, create=False), resolved.attr)

    def _single_object(self, operation: PatchOperation) -> dict[str, Any]:
        values = operation.values
        if len(values) > 1:
            raise BadRequest(ValidationError.expecting_single_object(), location="value")
        if not isinstance(values[0], dict):
            raise BadRequest(ValidationError.value_not_an_object(), location="value")
        return values[0]

    def _apply_object(
        self,
        container: dict[str, Any],
        schema: SchemaTree,
        op: PatchOperationType,
        data: dict[str, Any],
    ) -> None:
        for key, value in data.items():
            if schema is self._resource_type.schema:
                if key.lower() == SCHEMAS:
                    continue
                extension = self._resource_type.get_extension(key)
                if extension is not None:
                    self._apply_extension(
                        container, extension, PatchOperation(op=op, path=key, values=[value])
                    )
                    continue
            attr = schema.lookup(key) if "." not in key else None
            if attr is None:
                if self._config.patch.ignore_unknown_attribute:
                    logger.debug("Ignoring unknown attribute %r", key)
                    continue
                raise BadRequest(
                    ValidationError.unknown_attribute(key, self._resource_type.name), location=key
                )
            if attr.is_read_only:
                logger.debug("Ignoring 'readOnly' attribute %r in PATCH value", attr.full_name)
                continue
            values = value if attr.multi_valued and isinstance(value, list) else [value]
            attr_key = find_key(container, attr.name) or str(attr.name)
            self._write(PatchTarget(container=container, key=attr_key, attr=attr), op, values)
            self._prune(container, attr)

    def _apply_extension(
        self, document: dict[str, Any], extension: SchemaTree, operation: PatchOperation
    ) -> None:
        key = find_key(document, extension.id)
        if operation.op == PatchOperationType.REMOVE:
            if key is None:
                return
            if extension in self._resource_type.required_extensions:
                raise BadRequest(
                    ValidationError.attribute_can_not_be_deleted(), location=str(extension.id)
                )
            document.pop(key)
            return
        data = self._single_object(operation)
        container = document[key] if key is not None and isinstance(document[key], dict) else {}
        document[key or str(extension.id)] = container
        self._apply_object(container, extension, operation.op, data)

    def _validate(self, attr: AttributeDescriptor, value: Any) -> Any:
        try:
            validated = self._validator.validate_value(attr, value)
        except DocumentValidation as e:
            raise BadRequest(e.issue, location=e.location) from e
        if validated is None:
            raise BadRequest(ValidationError.no_value_provided(), location=attr.full_name)
        return validated

    def _write(self, target: PatchTarget, op: PatchOperationType, values: list[Any]) -> None:
        attr = target.attr
        container = target.container
        if isinstance(container, list):
            raise BadRequest(ValidationError.unknown_modification_target())
        current = get_value(container, target.key)

        if attr.multi_valued:
            new_items = self._validate(attr, values)
            if op == PatchOperationType.ADD and isinstance(current, list):
                added = [item for item in new_items if item not in current]
                final = list(current)
                if attr.is_complex and any(self._is_primary(item) for item in added):
                    final = [self._without_primary(item) for item in final]
                final.extend(added)
            else:
                final = new_items
            issue = attr.check_items(final)
            if issue is not None:
                raise BadRequest(issue, location=attr.full_name)
        else:
            if len(values) > 1:
                raise BadRequest(
                    ValidationError.several_values_for_single_valued(), location=attr.full_name
                )
            value = values[0]
            if attr.is_complex and not isinstance(value, dict):
                raise BadRequest(ValidationError.value_not_an_object(), location=attr.full_name)
            final = self._validate(attr, value)
            if attr.is_complex and isinstance(current, dict):
                merged = dict(current)
                for key, item in final.items():
                    set_value(merged, key, item)
                final = merged

        if attr.is_immutable and not is_empty(current) and current != final:
            raise self._mutability_error(op, attr)
        set_value(container, target.key, final)
        if (
            target.array is not None
            and attr.name == "primary"
            and final is True
        ):
            for i, item in enumerate(target.array):
                if item is not container and self._is_primary(item):
                    target.array[i] = self._without_primary(item)

    def _remove(self, targets: list[PatchTarget], values: list[Any]) -> None:
        indexes: dict[int, tuple[list, list[int]]] = {}
        for target in targets:
            attr = target.attr
            if isinstance(target.container, list):
                array_id = id(target.container)
                indexes.setdefault(array_id, (target.container, []))[1].append(target.key)
                if attr.is_immutable:
                    raise self._mutability_error(PatchOperationType.REMOVE, attr)
                continue
            current = get_value(target.container, target.key)
            if values and attr.multi_valued and isinstance(current, list):
                remaining = [
                    item
                    for item in current
                    if not any(self._matches(attr, item, value) for value in values)
                ]
                if len(remaining) == len(current):
                    continue
                if attr.is_immutable or (attr.required and not remaining):
                    raise self._mutability_error(PatchOperationType.REMOVE, attr)
                set_value(target.container, target.key, remaining)
                continue
            if current is None:
                continue
            if attr.required or attr.is_immutable:
                raise self._mutability_error(PatchOperationType.REMOVE, attr)
            pop_value(target.container, target.key)

        for array, array_indexes in indexes.values():
            for i in sorted(set(array_indexes), reverse=True):
                del array[i]

    def _prune(self, root: Optional[dict[str, Any]], attr: AttributeDescriptor) -> None:
        if root is None:
            return
        key = find_key(root, attr.name)
        if key is None:
            return
        value = root[key]
        if isinstance(value, list):
            value[:] = [item for item in value if not is_empty(item)]
        if is_empty(value):
            if attr.required:
                raise self._mutability_error(PatchOperationType.REMOVE, attr)
            root.pop(key)

    def _sync_extensions(self, document: dict[str, Any]) -> None:
        schemas = get_value(document, SCHEMAS)
        for extension in self._resource_type.extension_schemas:
            key = find_key(document, extension.id)
            present = key is not None and not is_empty(document[key])
            if key is not None and not present:
                document.pop(key)
            if not isinstance(schemas, list):
                continue
            listed = [item for item in schemas if extension.id == item]
            if present and not listed:
                schemas.append(str(extension.id))
            elif not present and listed:
                schemas[:] = [item for item in schemas if extension.id != item]

    @staticmethod
    def _matches(attr: AttributeDescriptor, item: Any, value: Any) -> bool:
        """
        Checks whether the element of multi-valued attribute is matched by the value
        provided in `remove` operation. For complex attributes, every sub-attribute
        present in the value must be equal.
        """
        if not attr.is_complex:
            return bool(attr.comparison_key(item) == attr.comparison_key(value))
        if not isinstance(item, dict) or not isinstance(value, dict) or not value:
            return False
        for key, expected in value.items():
            sub_attr = attr.get_sub_attribute(key)
            actual = get_value(item, key)
            if sub_attr is None:
                if actual != expected:
                    return False
            elif sub_attr.comparison_key(actual) != sub_attr.comparison_key(expected):
                return False
        return True

    @staticmethod
    def _is_primary(item: Any) -> bool:
        return isinstance(item, dict) and get_value(item, "primary") is True

    @staticmethod
    def _without_primary(item: Any) -> Any:
        if not isinstance(item, dict):
            return item
        item = dict(item)
        pop_value(item, "primary")
        return item

    @staticmethod
    def _mutability_error(op: PatchOperationType, attr: AttributeDescriptor) -> BadRequest:
        if op == PatchOperationType.REMOVE:
            issue = ValidationError.attribute_can_not_be_deleted()
        else:
            issue = ValidationError.attribute_can_not_be_modified()
        return BadRequest(issue, location=attr.full_name)
