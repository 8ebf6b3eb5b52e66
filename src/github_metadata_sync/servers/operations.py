from logging import Logger
from pathlib import Path
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger

from github_metadata_sync.annotator import get_service_methods
from github_metadata_sync.config import SyncSettings
from github_metadata_sync.models.metadata import MetadataDocument
from github_metadata_sync.models.operation import OperationNormalizer
from github_metadata_sync.servers.models.operations import MethodNotFoundError, MethodOperations, OperationDetails
from github_metadata_sync.servers.shared.annotations import METHOD, OPERATION
from github_metadata_sync.validator import validate_metadata


class OperationsServer:
    """Read-only tools over a metadata file and the source directory it describes.

    The metadata file is read on every call so the tools always reflect the file on disk.
    """

    filename: Path
    source_dir: Path
    settings: SyncSettings
    logger: Logger

    def __init__(self, filename: Path, source_dir: Path, settings: SyncSettings | None = None, logger: Logger | None = None):
        self.filename = filename
        self.source_dir = source_dir
        self.settings = settings or SyncSettings()
        self.logger = logger or get_logger(name=__name__)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_operation))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_method_operations))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.list_unused_operations))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.validate_metadata))

        return fastmcp

    def _load(self) -> MetadataDocument:
        self.logger.debug(f"Loading metadata file {self.filename}")
        return MetadataDocument.load(self.filename)

    def _details(self, metadata: MetadataDocument, name: str, normalizer: OperationNormalizer) -> OperationDetails:
        operation = metadata.resolve_operation(name, normalizer)
        return OperationDetails.from_operation(
            operation=operation,
            settings=self.settings,
            methods=metadata.methods_for_operation(operation.name, normalizer),
        )

    async def get_operation(self, operation: OPERATION) -> OperationDetails:
        """Get a GitHub API operation with its documentation URL, the plans it is available in and the methods that implement it."""

        return self._details(self._load(), operation, OperationNormalizer())

    async def get_method_operations(self, method: METHOD) -> MethodOperations:
        """Get the GitHub API operations a service method implements."""

        metadata = self._load()
        normalizer = OperationNormalizer()

        if (entry := metadata.get_method(method)) is None:
            raise MethodNotFoundError(method=method)

        return MethodOperations(
            method=entry.name,
            operations=[self._details(metadata, name, normalizer) for name in entry.openapi_operations],
        )

    async def list_unused_operations(self) -> list[str]:
        """List the GitHub API operations that no service method implements."""

        metadata = self._load()
        return [operation.name for operation in metadata.unused_operations(OperationNormalizer())]

    async def validate_metadata(self) -> list[str]:
        """Check the metadata file against the source directory. Returns the issues found, an empty list means no issues."""

        metadata = self._load()
        service_methods = get_service_methods(self.source_dir, settings=self.settings)

        issues = validate_metadata(metadata, service_methods, OperationNormalizer())

        self.logger.info(f"Found {len(issues)} issues in {self.filename}")

        return issues
