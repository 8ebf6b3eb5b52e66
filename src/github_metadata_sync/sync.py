from logging import Logger

from fastmcp.utilities.logging import get_logger

from github_metadata_sync.clients.models.github import Commit
from github_metadata_sync.config import SyncSettings
from github_metadata_sync.errors import ConfigurationError
from github_metadata_sync.fetcher import DescriptionFetcher
from github_metadata_sync.models.metadata import MetadataDocument
from github_metadata_sync.models.openapi import DescriptionFile
from github_metadata_sync.models.operation import OperationNormalizer, operations_equal
from github_metadata_sync.reconcile import ReconcileResult, reconcile

logger: Logger = get_logger(name=__name__)


async def update_openapi(
    metadata: MetadataDocument,
    fetcher: DescriptionFetcher,
    ref: str,
    normalizer: OperationNormalizer,
    settings: SyncSettings,
    prune: bool = False,
) -> ReconcileResult:
    """Update the operation snapshot of `metadata` from the descriptions at `ref`.

    The metadata document is only modified after every description was fetched and parsed. The snapshot and its
    commit are replaced only when the operations changed.
    """

    commit: Commit = await fetcher.get_commit(ref=ref)
    description_files: list[DescriptionFile] = await fetcher.fetch(ref=commit.sha)

    result = reconcile(
        current_operations=metadata.openapi_operations,
        description_files=description_files,
        normalizer=normalizer,
        settings=settings,
    )

    for name in result.stale:
        logger.warning(f"Operation {name} is not present in any OpenAPI description at {ref}")

    operations = result.fresh_operations() if prune else result.operations

    if not operations_equal(metadata.openapi_operations, operations):
        logger.info(f"Updating openapi_operations to {commit.sha}: {len(result.added)} added, {len(result.changed)} changed")
        metadata.replace_openapi_operations(operations=operations, commit=commit.sha)

    return result


async def validate_git_commit(
    metadata: MetadataDocument,
    fetcher: DescriptionFetcher,
    normalizer: OperationNormalizer,
    settings: SyncSettings,
) -> str | None:
    """Check that rebuilding the snapshot from `openapi_commit` gives the stored operations.

    Returns an issue message when the snapshot drifted, `None` otherwise.
    """

    if not metadata.openapi_commit:
        msg = "The metadata file does not have an openapi_commit field"
        raise ConfigurationError(msg)

    description_files = await fetcher.fetch(ref=metadata.openapi_commit)

    result = reconcile(
        current_operations=metadata.openapi_operations,
        description_files=description_files,
        normalizer=normalizer,
        settings=settings,
    )

    if not operations_equal(metadata.openapi_operations, result.operations):
        return f"openapi_operations does not match operations from git commit {metadata.openapi_commit}"

    return None
