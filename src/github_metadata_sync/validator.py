"""Consistency checks between the metadata file and the service methods of the source directory.

- Service methods in the source directory must exist in the metadata file
- Methods in the metadata file must exist in the source directory
- Methods in the metadata file must have unique names
- Methods in the metadata file must have at least one operation
- Methods in the metadata file may not have duplicate operations
- Methods in the metadata file must use the canonical operation name
- Every operation referenced by a method must exist in operations or openapi_operations
- No operation is duplicated between operations and openapi_operations
- Every operation in operation_overrides must exist in operations or openapi_operations
- Every operation in openapi_operations must come from at least one OpenAPI description
"""

from collections.abc import Sequence

from github_metadata_sync.models.metadata import Method, MetadataDocument
from github_metadata_sync.models.operation import OperationNormalizer


def validate_service_methods_exist(metadata: MetadataDocument, service_methods: Sequence[str]) -> list[str]:
    return [
        f"Method {service_method} does not exist in metadata file. Please add it."
        for service_method in service_methods
        if metadata.get_method(service_method) is None
    ]


def validate_method_operations(metadata: MetadataDocument, method: Method, normalizer: OperationNormalizer) -> list[str]:
    issues: list[str] = []

    if not method.openapi_operations:
        issues.append(f"Method {method.name} in metadata file does not have any operations.")

    seen: set[str] = set()
    for operation_name in method.openapi_operations:
        if operation_name in seen:
            issues.append(f"Method {method.name} in metadata file has duplicate operation: {operation_name}.")
        seen.add(operation_name)

        if metadata.get_operation(operation_name) is not None:
            continue

        if metadata.get_operations_with_normalized_name(operation_name, normalizer):
            issues.append(
                f"Method {method.name} has operation which does not use the canonical name. "
                + f"You may be able to automatically fix this by running 'canonize': {operation_name}."
            )
            continue

        issues.append(f"Method {method.name} has operation which is not defined in metadata file: {operation_name}.")

    return issues


def validate_metadata_methods(metadata: MetadataDocument, service_methods: Sequence[str], normalizer: OperationNormalizer) -> list[str]:
    issues: list[str] = []
    known = set(service_methods)
    seen: set[str] = set()

    for method in metadata.methods:
        if method.name in seen:
            issues.append(f"Method {method.name} is duplicated in metadata file.")
            continue
        seen.add(method.name)

        if method.name not in known:
            issues.append(f"Method {method.name} in metadata file does not exist in the source directory.")

        issues.extend(validate_method_operations(metadata, method, normalizer))

    return issues


def validate_operations(metadata: MetadataDocument) -> list[str]:
    issues: list[str] = []

    openapi_names: set[str] = set()
    for operation in metadata.openapi_operations:
        if operation.name in openapi_names:
            issues.append(f"Name duplicated in openapi_operations: {operation.name}")
        openapi_names.add(operation.name)

    manual_names: set[str] = set()
    for operation in metadata.operations:
        if operation.name in manual_names:
            issues.append(f"Name duplicated in operations: {operation.name}")
        manual_names.add(operation.name)

        if operation.name in openapi_names:
            issues.append(f"Name exists in both operations and openapi_operations: {operation.name}")

    override_names: set[str] = set()
    for operation in metadata.operation_overrides:
        if operation.name in override_names:
            issues.append(f"Name duplicated in operation_overrides: {operation.name}")
        override_names.add(operation.name)

        if operation.name not in manual_names and operation.name not in openapi_names:
            issues.append(f"Name in operation_overrides does not exist in operations or openapi_operations: {operation.name}")

    return issues


def validate_stale_operations(metadata: MetadataDocument) -> list[str]:
    return [
        f"Operation {operation.name} in openapi_operations is not present in any OpenAPI description."
        for operation in metadata.openapi_operations
        if not operation.openapi_files
    ]


def validate_metadata(metadata: MetadataDocument, service_methods: Sequence[str], normalizer: OperationNormalizer) -> list[str]:
    """Return every consistency issue of the metadata file. An empty list means the file is consistent.

    Nothing is modified. `service_methods` are the names of the service methods found in the source directory.
    """

    issues: list[str] = []
    issues.extend(validate_service_methods_exist(metadata, service_methods))
    issues.extend(validate_metadata_methods(metadata, service_methods, normalizer))
    issues.extend(validate_operations(metadata))
    issues.extend(validate_stale_operations(metadata))
    return issues
