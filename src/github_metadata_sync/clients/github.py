from collections.abc import Awaitable, Callable
from functools import partial
from logging import Logger, getLogger
from typing import Any

from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import GitHubException as GitHubKitGitHubException
from githubkit.exception import RequestFailed as GitHubKitRequestFailed
from githubkit.response import Response as GitHubKitResponse
from githubkit.versions.v2022_11_28.models import ContentDirectoryItems as GitHubKitContentDirectoryItems

from github_metadata_sync.clients.errors.github import (
    MissingTokenError,
    RequestError,
    ResourceNotFoundError,
    ResourceTypeMismatchError,
    UnexpectedStatusError,
)
from github_metadata_sync.clients.models.github import Commit, DirectoryEntry
from github_metadata_sync.config import DEFAULT_GITHUB_URL, GITHUB_TOKEN_ENV_VARS, SyncSettings, get_github_token

OK_STATUS = 200
NOT_FOUND_ERROR = 404


def get_githubkit_client(github_url: str = DEFAULT_GITHUB_URL) -> GitHubKit[Any]:
    """Build an authenticated githubkit client. Requests are never retried."""

    token = get_github_token()
    if token is None:
        raise MissingTokenError(env_vars=GITHUB_TOKEN_ENV_VARS)

    return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), base_url=github_url, auto_retry=False)


class SpecRepositoryClient:
    """Reads the repository holding the OpenAPI descriptions."""

    githubkit_client: GitHubKit[Any]
    logger: Logger

    owner: str
    repo: str

    log_requests: bool
    log_on_error: bool

    def __init__(
        self,
        githubkit_client: GitHubKit[Any] | None = None,
        settings: SyncSettings | None = None,
        logger: Logger | None = None,
        log_requests: bool = True,
        log_on_error: bool = True,
    ):
        settings = settings or SyncSettings()
        self.githubkit_client = githubkit_client or get_githubkit_client(github_url=settings.github_url)
        self.owner = settings.descriptions_owner
        self.repo = settings.descriptions_repo
        self.logger = logger or getLogger(__name__)
        self.log_requests = log_requests
        self.log_on_error = log_on_error

    def _get_loggers(self) -> tuple[Callable[[str], Any], Callable[[str], Any]]:
        request_logger = self.logger.info if self.log_requests else self.logger.debug
        error_logger = self.logger.error if self.log_on_error else self.logger.debug
        return request_logger, error_logger

    async def _send[T](
        self,
        action: str,
        resource: str,
        *,
        method: Callable[..., Awaitable[GitHubKitResponse[T]]],
        **request_args: Any,  # pyright: ignore[reportAny]
    ) -> GitHubKitResponse[T]:
        """Send a request and check its status.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            UnexpectedStatusError: If the request succeeded with a status other than 200.
            RequestError: If the request fails.
        """

        request_logger, error_logger = self._get_loggers()

        request_logger(f"Performing {action} for {resource} with kwargs {request_args}")

        try:
            response: GitHubKitResponse[T] = await method(**request_args)
        except GitHubKitRequestFailed as e:
            if e.response.status_code == NOT_FOUND_ERROR:
                raise ResourceNotFoundError(action=action, resource=resource) from e

            error_logger(f"RequestFailed error performing {action} for {resource}: {e}")

            raise RequestError(action=action, message=str(e)) from e
        except GitHubKitGitHubException as e:
            error_logger(f"Error performing {action} for {resource}: {e}")

            raise RequestError(action=action, message=str(e)) from e

        if response.status_code != OK_STATUS:
            raise UnexpectedStatusError(action=action, status_code=response.status_code, resource=resource)

        return response

    async def get_commit(self, ref: str) -> Commit:
        """Resolve a branch, tag or SHA of the descriptions repository to a commit."""

        response = await self._send(
            action="Get commit",
            resource=f"{self.owner}/{self.repo}@{ref}",
            method=self.githubkit_client.rest.repos.async_get_commit,
            owner=self.owner,
            repo=self.repo,
            ref=ref,
        )

        return Commit(ref=ref, sha=response.parsed_data.sha)

    async def list_directory(self, path: str, ref: str) -> list[DirectoryEntry]:
        """List the entries of a directory of the descriptions repository.

        Raises:
            ResourceTypeMismatchError: If the path is not a directory.
        """

        response = await self._send(
            action="List directory",
            resource=path,
            method=self.githubkit_client.rest.repos.async_get_content,
            owner=self.owner,
            repo=self.repo,
            path=path,
            ref=ref,
        )

        listing = response.parsed_data

        if not isinstance(listing, list):
            raise ResourceTypeMismatchError(action="List directory", resource=path, expected_type="directory", actual_type=type(listing))

        return [
            DirectoryEntry.from_content_directory_item(content_directory_item=item)
            for item in listing
            if isinstance(item, GitHubKitContentDirectoryItems)
        ]

    async def download_file(self, path: str, ref: str) -> bytes:
        """Download the raw content of a file.

        The contents API does not return the content of large files, so the file is looked up in its parent
        directory listing and fetched from its download URL.
        """

        directory, _, name = path.rpartition("/")

        entries: list[DirectoryEntry] = await self.list_directory(path=directory, ref=ref)

        entry: DirectoryEntry | None = next((entry for entry in entries if entry.name == name), None)

        if entry is None or entry.download_url is None:
            raise ResourceNotFoundError(action="Download file", resource=path, extra_info={"ref": ref})

        response = await self._send(
            action="Download file",
            resource=path,
            method=partial(self.githubkit_client.arequest, "GET", entry.download_url),
        )

        return response.content
