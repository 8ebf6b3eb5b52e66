"""Merge freshly fetched OpenAPI descriptions into the operation snapshot of the metadata file."""

from collections.abc import Sequence
from logging import Logger

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from github_metadata_sync.config import SyncSettings
from github_metadata_sync.models.openapi import DescribedOperation, DescriptionFile
from github_metadata_sync.models.operation import Operation, OperationNormalizer, operation_name, sort_operations

logger: Logger = get_logger(name=__name__)


class OperationRegistry:
    """Operations indexed by their (verb, normalized path) identity."""

    def __init__(self, normalizer: OperationNormalizer):
        self.normalizer = normalizer
        self._operations: dict[tuple[str, str], Operation] = {}

    def __len__(self) -> int:
        return len(self._operations)

    def identity(self, operation: Operation) -> tuple[str, str]:
        return self.normalizer.identity(operation.verb, operation.path)

    def get(self, verb: str, path: str) -> Operation | None:
        return self._operations.get(self.normalizer.identity(verb, path))

    def add(self, operation: Operation) -> bool:
        """Add an operation unless one with the same identity exists. Returns whether it was added."""

        identity = self.identity(operation)
        if identity in self._operations:
            return False
        self._operations[identity] = operation
        return True

    def operations(self) -> list[Operation]:
        return sort_operations(self._operations.values())


class ReconcileResult(BaseModel):
    operations: list[Operation] = Field(description="The reconciled operations, sorted.")
    added: list[str] = Field(default_factory=list, description="Operations that were not in the snapshot.")
    changed: list[str] = Field(default_factory=list, description="Operations whose name, documentation or files changed.")
    stale: list[str] = Field(default_factory=list, description="Operations not found in any description.")

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.changed or self.stale)

    def fresh_operations(self) -> list[Operation]:
        return [operation for operation in self.operations if operation.openapi_files]


def _single_file_plans(settings: SyncSettings) -> set[str]:
    return {plan.name for plan in settings.plans if plan.single_file_per_operation}


def _record(
    operation: Operation,
    described: DescribedOperation,
    description_file: DescriptionFile,
    single_file_plans: set[str],
    settings: SyncSettings,
) -> None:
    if not operation.openapi_files:
        # first time this operation is seen in this run
        operation.name = operation_name(described.verb, described.path)
        operation.documentation_url = described.documentation_url or None
        operation.summary = described.summary or None
        operation.openapi_files = [description_file.filename]
        return

    if description_file.filename in operation.openapi_files:
        return

    if description_file.plan in single_file_plans:
        for filename in operation.openapi_files:
            plan = settings.plan_for_file(filename)
            if plan is not None and plan.name == description_file.plan:
                return

    operation.openapi_files.append(description_file.filename)


def reconcile(
    current_operations: Sequence[Operation],
    description_files: Sequence[DescriptionFile],
    normalizer: OperationNormalizer,
    settings: SyncSettings | None = None,
) -> ReconcileResult:
    """Reconcile the operation snapshot with the operations of the fetched descriptions.

    Description files must be in processing order (see `DescriptionFetcher.fetch`); the first occurrence of an
    operation provides its name, documentation URL and summary. Operations not found in any description are kept
    with an empty file list.
    """

    settings = settings or SyncSettings()
    single_file_plans = _single_file_plans(settings)

    registry = OperationRegistry(normalizer=normalizer)
    previous: dict[tuple[str, str], Operation] = {}

    for current in current_operations:
        copied = current.model_copy(deep=True)
        copied.openapi_files = []
        if not registry.add(copied):
            logger.warning(f"Ignoring duplicate operation {current.name} in the snapshot")
            continue
        previous[registry.identity(copied)] = current

    for description_file in description_files:
        if description_file.description is None:
            msg = f"Description {description_file.filename} has not been loaded"
            raise ValueError(msg)

        for described in description_file.description.described_operations():
            operation = registry.get(described.verb, described.path)

            if operation is None:
                operation = Operation(name=operation_name(described.verb, described.path))
                _ = registry.add(operation)

            _record(operation, described, description_file, single_file_plans, settings)

    result = ReconcileResult(operations=registry.operations())

    for operation in result.operations:
        identity = registry.identity(operation)
        before = previous.get(identity)

        if not operation.openapi_files:
            result.stale.append(operation.name)
        elif before is None:
            result.added.append(operation.name)
        elif before.to_document() != operation.to_document():
            result.changed.append(operation.name)

    return result
