from inline_snapshot import snapshot

from github_metadata_sync.models.metadata import MetadataDocument, Method
from github_metadata_sync.models.operation import Operation, OperationNormalizer
from github_metadata_sync.validator import validate_metadata

SERVICE_METHODS = ["AService.get", "AService.get_b", "AService.get_undocumented"]


def test_consistent_metadata(metadata: MetadataDocument, normalizer: OperationNormalizer):
    assert validate_metadata(metadata, SERVICE_METHODS, normalizer) == []


def test_orphaned_override(normalizer: OperationNormalizer):
    metadata = MetadataDocument(
        openapi_operations=[Operation(name="GET /a/{a_id}", openapi_files=["descriptions/ghec/ghec.json"])],
        operation_overrides=[Operation(name="GET /b/{b_id}", documentation_url="https://docs.github.com/rest/b")],
    )

    assert validate_metadata(metadata, [], normalizer) == snapshot(
        ["Name in operation_overrides does not exist in operations or openapi_operations: GET /b/{b_id}"]
    )


def test_method_issues(normalizer: OperationNormalizer):
    metadata = MetadataDocument(
        methods=[
            Method(name="AService.get", openapi_operations=["GET /a/{id}"]),
            Method(name="AService.get", openapi_operations=["GET /a/{a_id}"]),
            Method(name="AService.gone", openapi_operations=["GET /a/{a_id}"]),
            Method(name="AService.empty"),
            Method(name="AService.twice", openapi_operations=["GET /a/{a_id}", "GET /a/{a_id}"]),
            Method(name="AService.missing", openapi_operations=["GET /missing"]),
        ],
        openapi_operations=[Operation(name="GET /a/{a_id}", openapi_files=["descriptions/ghec/ghec.json"])],
    )
    service_methods = ["AService.empty", "AService.get", "AService.missing", "AService.new", "AService.twice"]

    assert validate_metadata(metadata, service_methods, normalizer) == snapshot(
        [
            "Method AService.new does not exist in metadata file. Please add it.",
            "Method AService.get has operation which does not use the canonical name. You may be able to automatically fix this by running 'canonize': GET /a/{id}.",
            "Method AService.get is duplicated in metadata file.",
            "Method AService.gone in metadata file does not exist in the source directory.",
            "Method AService.empty in metadata file does not have any operations.",
            "Method AService.twice in metadata file has duplicate operation: GET /a/{a_id}.",
            "Method AService.missing has operation which is not defined in metadata file: GET /missing.",
        ]
    )


def test_operation_list_issues(normalizer: OperationNormalizer):
    files = ["descriptions/api.github.com/api.github.com.json"]
    metadata = MetadataDocument(
        openapi_operations=[
            Operation(name="GET /a", openapi_files=files),
            Operation(name="GET /a", openapi_files=files),
            Operation(name="GET /b", openapi_files=files),
            Operation(name="GET /stale"),
        ],
        operations=[Operation(name="GET /manual"), Operation(name="GET /manual"), Operation(name="GET /b")],
        operation_overrides=[Operation(name="GET /manual"), Operation(name="GET /manual")],
    )

    assert validate_metadata(metadata, [], normalizer) == snapshot(
        [
            "Name duplicated in openapi_operations: GET /a",
            "Name duplicated in operations: GET /manual",
            "Name exists in both operations and openapi_operations: GET /b",
            "Name duplicated in operation_overrides: GET /manual",
            "Operation GET /stale in openapi_operations is not present in any OpenAPI description.",
        ]
    )


def test_validation_does_not_modify_metadata(metadata: MetadataDocument, normalizer: OperationNormalizer):
    before = metadata.to_yaml()

    _ = validate_metadata(metadata, [], normalizer)

    assert metadata.to_yaml() == before
