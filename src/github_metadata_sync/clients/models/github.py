from typing import Literal, Self

from githubkit.versions.v2022_11_28.models import ContentDirectoryItems as GitHubKitContentDirectoryItems
from pydantic import BaseModel, ConfigDict, Field


class DirectoryEntry(BaseModel):
    """An entry of a repository directory listing."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(description="The name of the entry.")
    path: str = Field(description="The path of the entry in the repository.")
    type: Literal["dir", "file", "submodule", "symlink"] = Field(description="The type of the entry.")
    download_url: str | None = Field(default=None, description="The URL to download the raw content of a file.")

    @classmethod
    def from_content_directory_item(cls, content_directory_item: GitHubKitContentDirectoryItems) -> Self:
        return cls(
            name=content_directory_item.name,
            path=content_directory_item.path,
            type=content_directory_item.type,
            download_url=content_directory_item.download_url,
        )


class Commit(BaseModel):
    """A commit the descriptions were read from."""

    ref: str = Field(description="The ref that was resolved.")
    sha: str = Field(description="The SHA of the commit.")
