import asyncio
from logging import Logger, getLogger
from typing import Protocol

from github_metadata_sync.clients.models.github import Commit, DirectoryEntry
from github_metadata_sync.config import SyncSettings
from github_metadata_sync.models.openapi import DescriptionFile, OpenAPIDescription


class DescriptionsClient(Protocol):
    """The parts of the spec repository client the fetcher needs."""

    async def get_commit(self, ref: str) -> Commit: ...

    async def list_directory(self, path: str, ref: str) -> list[DirectoryEntry]: ...

    async def download_file(self, path: str, ref: str) -> bytes: ...


def match_description_directories(entries: list[DirectoryEntry], settings: SyncSettings) -> list[DescriptionFile]:
    """Turn a listing of the descriptions directory into description files, most relevant first.

    - Entries that match no plan pattern are dropped.
    - Entries whose major version is below the plan's minimum are dropped.
    - Results are sorted by plan pattern order, then by major and minor version descending.
    """

    description_files: list[DescriptionFile] = []

    for entry in entries:
        for plan_index, plan in enumerate(settings.plans):
            match = plan.match(entry.name)
            if match is None:
                continue

            groups = match.groupdict()
            release_major = int(groups["major"]) if groups.get("major") else 0
            release_minor = int(groups["minor"]) if groups.get("minor") else 0

            if plan.minimum_major is not None and release_major < plan.minimum_major:
                continue

            description_files.append(
                DescriptionFile(
                    filename=f"{settings.descriptions_path}/{entry.name}/{entry.name}.json",
                    directory=entry.name,
                    plan=plan.name,
                    plan_index=plan_index,
                    release_major=release_major,
                    release_minor=release_minor,
                )
            )
            break

    return sorted(description_files, key=lambda description_file: description_file.sort_key())


class DescriptionFetcher:
    """Downloads and parses the OpenAPI descriptions of every supported plan."""

    client: DescriptionsClient
    settings: SyncSettings
    logger: Logger

    def __init__(self, client: DescriptionsClient, settings: SyncSettings | None = None, logger: Logger | None = None):
        self.client = client
        self.settings = settings or SyncSettings()
        self.logger = logger or getLogger(__name__)

    async def get_commit(self, ref: str) -> Commit:
        return await self.client.get_commit(ref=ref)

    async def list_description_files(self, ref: str) -> list[DescriptionFile]:
        entries = await self.client.list_directory(path=self.settings.descriptions_path, ref=ref)

        description_files = match_description_directories(entries=entries, settings=self.settings)

        self.logger.debug(f"Matched {len(description_files)} of {len(entries)} description directories at {ref}")

        return description_files

    async def _load(self, description_file: DescriptionFile, ref: str) -> DescriptionFile:
        content: bytes = await self.client.download_file(path=description_file.filename, ref=ref)

        description: OpenAPIDescription = await asyncio.to_thread(OpenAPIDescription.from_json, description_file.filename, content)

        self.logger.debug(f"Loaded {len(description.paths)} paths from {description_file.filename}")

        return description_file.model_copy(update={"description": description})

    async def fetch(self, ref: str) -> list[DescriptionFile]:
        """Fetch every matching description at `ref`, in processing order.

        Downloads run concurrently. The first failure cancels the other downloads and is raised as-is.
        """

        description_files = await self.list_description_files(ref=ref)

        if not description_files:
            return []

        tasks: list[asyncio.Task[DescriptionFile]] = [
            asyncio.create_task(self._load(description_file=description_file, ref=ref)) for description_file in description_files
        ]

        try:
            loaded: list[DescriptionFile] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                _ = task.cancel()
            _ = await asyncio.gather(*tasks, return_exceptions=True)
            raise

        self.logger.info(f"Fetched {len(loaded)} OpenAPI descriptions at {ref}")

        return loaded
