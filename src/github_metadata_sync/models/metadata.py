from collections.abc import Sequence
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, PrivateAttr, ValidationError

from github_metadata_sync.errors import AmbiguousOperationError, MetadataError, MetadataFileError, MethodErrors, OperationNotFoundError
from github_metadata_sync.models.operation import Operation, OperationNormalizer, sort_operations

YAML_INDENT = 2
YAML_WIDTH = 4096


class _IndentedDumper(yaml.SafeDumper):
    """Indent sequences below their parent key, like `methods:\n  - name: ...`."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:  # noqa: ARG002
        return super().increase_indent(flow, False)


def dump_yaml(document: dict[str, Any]) -> str:
    return yaml.dump(
        document,
        Dumper=_IndentedDumper,
        sort_keys=False,
        indent=YAML_INDENT,
        width=YAML_WIDTH,
        allow_unicode=True,
        default_flow_style=False,
    )


class Method(BaseModel):
    """A service method and the operations it implements."""

    name: str = Field(description="The method name, for example `RepositoriesService.get`.")
    openapi_operations: list[str] = Field(default_factory=list, description="The operations the method implements, in declared order.")

    @property
    def receiver(self) -> str:
        return self.name.partition(".")[0]

    @property
    def method_name(self) -> str:
        return self.name.partition(".")[2]

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {"name": self.name}
        if self.openapi_operations:
            document["openapi_operations"] = list(self.openapi_operations)
        return document


class MetadataDocument(BaseModel):
    """The persisted mapping between service methods and GitHub API operations."""

    methods: list[Method] = Field(default_factory=list)
    operations: list[Operation] = Field(default_factory=list, description="Operations added by hand.")
    operation_overrides: list[Operation] = Field(default_factory=list, description="Corrections to other operations.")
    openapi_commit: str | None = Field(default=None, description="The rest-api-description commit of the snapshot.")
    openapi_operations: list[Operation] = Field(default_factory=list, description="Operations from the OpenAPI descriptions.")

    _resolved: dict[str, Operation] | None = PrivateAttr(default=None)

    @classmethod
    def from_yaml(cls, content: str, filename: str = "<string>") -> Self:
        try:
            loaded = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise MetadataFileError(filename=filename, message=str(e)) from e

        if loaded is None:
            loaded = {}

        if not isinstance(loaded, dict):
            raise MetadataFileError(filename=filename, message="expected a mapping at the top level")

        try:
            return cls.model_validate(loaded)
        except ValidationError as e:
            raise MetadataFileError(filename=filename, message=str(e)) from e

    @classmethod
    def load(cls, path: Path) -> Self:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise MetadataFileError(filename=str(path), message=str(e)) from e

        return cls.from_yaml(content, filename=str(path))

    def to_document(self) -> dict[str, Any]:
        """Dump the populated sections in their canonical order. Operations and methods are sorted."""

        document: dict[str, Any] = {}
        if self.methods:
            document["methods"] = [method.to_document() for method in sorted(self.methods, key=lambda method: method.name)]
        if self.operations:
            document["operations"] = [operation.to_document() for operation in sort_operations(self.operations)]
        if self.operation_overrides:
            document["operation_overrides"] = [operation.to_document() for operation in sort_operations(self.operation_overrides)]
        if self.openapi_commit:
            document["openapi_commit"] = self.openapi_commit
        if self.openapi_operations:
            document["openapi_operations"] = [operation.to_document() for operation in sort_operations(self.openapi_operations)]
        return document

    def to_yaml(self) -> str:
        document = self.to_document()
        if not document:
            return ""
        return dump_yaml(document)

    def save(self, path: Path) -> None:
        _ = path.write_text(self.to_yaml(), encoding="utf-8")

    def invalidate(self) -> None:
        """Forget resolved operations after the operation lists changed."""
        self._resolved = None

    def resolved_operations(self) -> dict[str, Operation]:
        """OpenAPI and manual operations by name, with overrides applied."""

        if self._resolved is not None:
            return self._resolved

        resolved: dict[str, Operation] = {}
        for operation in [*self.openapi_operations, *self.operations]:
            resolved[operation.name] = operation.model_copy(deep=True)

        for override in self.operation_overrides:
            if (operation := resolved.get(override.name)) is None:
                continue
            resolved[override.name] = operation.apply_override(override)

        self._resolved = resolved
        return resolved

    def get_operation(self, name: str) -> Operation | None:
        """Find an operation by its canonical name."""
        return self.resolved_operations().get(name)

    def get_operations_with_normalized_name(self, name: str, normalizer: OperationNormalizer) -> list[Operation]:
        normalized = normalizer.normalized_name(name)
        return [operation for operation in self.resolved_operations().values() if normalizer.normalized_name(operation.name) == normalized]

    def resolve_operation(self, name: str, normalizer: OperationNormalizer) -> Operation:
        """Resolve a possibly non-canonical operation reference to exactly one operation.

        An exact name match wins over normalized matches.

        Raises:
            OperationNotFoundError: If no operation matches.
            AmbiguousOperationError: If more than one operation matches.
        """

        if (operation := self.get_operation(name)) is not None:
            return operation

        candidates = self.get_operations_with_normalized_name(name, normalizer)

        if not candidates:
            raise OperationNotFoundError(operation_name=name)

        if len(candidates) > 1:
            raise AmbiguousOperationError(operation_name=name, candidates=[candidate.name for candidate in candidates])

        return candidates[0]

    def get_method(self, name: str) -> Method | None:
        for method in self.methods:
            if method.name == name:
                return method
        return None

    def method_names(self) -> list[str]:
        return [method.name for method in self.methods]

    def methods_for_operation(self, name: str, normalizer: OperationNormalizer) -> list[str]:
        """The methods referencing the operation, in any spelling that normalizes to it."""

        normalized = normalizer.normalized_name(name)
        return sorted(
            method.name
            for method in self.methods
            if any(normalizer.normalized_name(operation_name) == normalized for operation_name in method.openapi_operations)
        )

    def unused_operations(self, normalizer: OperationNormalizer) -> list[Operation]:
        """Resolved operations that no method references."""

        used: set[str] = {
            normalizer.normalized_name(operation_name) for method in self.methods for operation_name in method.openapi_operations
        }
        return sort_operations(
            operation for operation in self.resolved_operations().values() if normalizer.normalized_name(operation.name) not in used
        )

    def replace_openapi_operations(self, operations: Sequence[Operation], commit: str | None) -> None:
        self.openapi_operations = list(operations)
        self.openapi_commit = commit
        self.invalidate()

    def canonize(self, normalizer: OperationNormalizer, filename: str = "<string>") -> int:
        """Replace operation references of methods by the canonical name of the operation they resolve to.

        Nothing is changed when a reference does not resolve to exactly one operation. Returns the number of replaced
        references.

        Raises:
            MethodErrors: If any reference cannot be resolved.
        """

        replacements: dict[tuple[int, int], str] = {}
        errors: list[MetadataError] = []

        for method_index, method in enumerate(self.methods):
            for operation_index, operation_name in enumerate(method.openapi_operations):
                try:
                    operation = self.resolve_operation(operation_name, normalizer)
                except MetadataError as e:
                    errors.append(e)
                    continue

                if operation.name != operation_name:
                    replacements[(method_index, operation_index)] = operation.name

        if errors:
            raise MethodErrors(filename=filename, errors=errors)

        for (method_index, operation_index), name in replacements.items():
            self.methods[method_index].openapi_operations[operation_index] = name

        return len(replacements)
