import asyncio
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any, overload

import pytest
from fastmcp.client.client import CallToolResult
from pydantic import BaseModel

from github_metadata_sync.clients.errors.github import RequestError, ResourceNotFoundError
from github_metadata_sync.clients.models.github import Commit, DirectoryEntry
from github_metadata_sync.config import SyncSettings
from github_metadata_sync.models.metadata import MetadataDocument
from github_metadata_sync.models.operation import OperationNormalizer

DESCRIPTIONS_PATH = "descriptions"


def openapi_description(operations: dict[str, dict[str, str]]) -> dict[str, Any]:
    """Build a minimal OpenAPI description from `{"GET /a/{a_id}": {"url": ..., "summary": ...}}`."""

    paths: dict[str, dict[str, Any]] = {}

    for name, details in operations.items():
        verb, path = name.split(" ", 1)

        operation: dict[str, Any] = {"operationId": f"{verb.lower()}{path.replace('/', '-')}"}
        if url := details.get("url"):
            operation["externalDocs"] = {"description": "API method documentation", "url": url}
        if summary := details.get("summary"):
            operation["summary"] = summary

        paths.setdefault(path, {})[verb.lower()] = operation

    return {"openapi": "3.0.3", "info": {"title": "GitHub v3 REST API", "version": "1.1.4"}, "paths": paths}


class FakeDescriptionsClient:
    """An in-memory descriptions repository.

    `descriptions` maps directory names, for example `ghes-3.9`, to OpenAPI description documents.
    """

    def __init__(
        self,
        descriptions: dict[str, dict[str, Any]],
        sha: str = "s3cr3t",
        extra_entries: Sequence[str] = (),
        failing: Sequence[str] = (),
        slow: Sequence[str] = (),
    ):
        self.descriptions = descriptions
        self.sha = sha
        self.extra_entries = list(extra_entries)
        self.failing = set(failing)
        self.slow = set(slow)

        self.commits: list[str] = []
        self.listed: list[tuple[str, str]] = []
        self.downloaded: list[tuple[str, str]] = []
        self.cancelled: list[str] = []

    async def get_commit(self, ref: str) -> Commit:
        self.commits.append(ref)
        return Commit(ref=ref, sha=self.sha)

    async def list_directory(self, path: str, ref: str) -> list[DirectoryEntry]:
        self.listed.append((path, ref))

        if path != DESCRIPTIONS_PATH:
            raise ResourceNotFoundError(action="List directory", resource=path)

        names = sorted([*self.descriptions, *self.extra_entries])
        return [DirectoryEntry(name=name, path=f"{path}/{name}", type="dir") for name in names]

    async def download_file(self, path: str, ref: str) -> bytes:
        directory = path.split("/")[-2]

        if directory in self.slow:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                self.cancelled.append(directory)
                raise

        if directory in self.failing:
            raise RequestError(action="Download file", message="Server Error")

        self.downloaded.append((path, ref))

        if directory not in self.descriptions:
            raise ResourceNotFoundError(action="Download file", resource=path)

        return json.dumps(self.descriptions[directory]).encode()


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings()


@pytest.fixture
def normalizer() -> OperationNormalizer:
    return OperationNormalizer()


@pytest.fixture
def descriptions() -> dict[str, dict[str, Any]]:
    return {
        "api.github.com": openapi_description(
            {
                "GET /a/{a_id}": {"url": "https://docs.github.com/rest/a/a#get-a", "summary": "Get an a"},
                "GET /undocumented/{undocumented_id}": {},
            }
        ),
        "ghec": openapi_description(
            {
                "GET /a/{a_id}": {"url": "https://docs.github.com/enterprise-cloud@latest//rest/a/a#get-a", "summary": "Get an a"},
                "GET /a/b/{a_id}": {"url": "https://docs.github.com/enterprise-cloud@latest//rest/a/b#get-a-b", "summary": "Get an a b"},
            }
        ),
        "ghes-3.9": openapi_description(
            {"GET /a/b/{a_id}": {"url": "https://docs.github.com/enterprise-server@3.9/rest/a/b#get-a-b", "summary": "Get an a b"}}
        ),
        "ghes-3.10": openapi_description(
            {"GET /a/b/{a_id}": {"url": "https://docs.github.com/enterprise-server@3.10/rest/a/b#get-a-b", "summary": "Get an a b"}}
        ),
    }


@pytest.fixture
def descriptions_client(descriptions: dict[str, dict[str, Any]]) -> FakeDescriptionsClient:
    return FakeDescriptionsClient(descriptions=descriptions, extra_entries=["ghes-2.22", "README.md"])


METADATA_YAML = """\
methods:
  - name: AService.get
    openapi_operations:
      - GET /a/{a_id}
  - name: AService.get_b
    openapi_operations:
      - GET /a/b/{a_id}
  - name: AService.get_undocumented
    openapi_operations:
      - GET /undocumented/{undocumented_id}
operations:
  - name: GET /manual
    documentation_url: https://docs.github.com/rest/manual#get-manual
operation_overrides:
  - name: GET /a/{a_id}
    documentation_url: https://docs.github.com/rest/a/a#get-a-override
openapi_commit: s3cr3t
openapi_operations:
  - name: GET /a/b/{a_id}
    documentation_url: https://docs.github.com/enterprise-cloud@latest//rest/a/b#get-a-b
    summary: Get an a b
    openapi_files:
      - descriptions/ghec/ghec.json
      - descriptions/ghes-3.10/ghes-3.10.json
  - name: GET /a/{a_id}
    documentation_url: https://docs.github.com/rest/a/a#get-a
    summary: Get an a
    openapi_files:
      - descriptions/api.github.com/api.github.com.json
      - descriptions/ghec/ghec.json
  - name: GET /undocumented/{undocumented_id}
    openapi_files:
      - descriptions/api.github.com/api.github.com.json
"""


@pytest.fixture
def metadata_yaml() -> str:
    return METADATA_YAML


@pytest.fixture
def metadata(metadata_yaml: str) -> MetadataDocument:
    return MetadataDocument.from_yaml(metadata_yaml)


SERVICE_SOURCE = '''\
class AService:
    """Handles the a endpoints."""

    # get fetches an a.
    def get(self, a_id: int) -> dict:
        return {"id": a_id}

    def get_b(self, a_id: int) -> dict:
        return {"id": a_id}

    @property
    def get_undocumented(self) -> dict:
        return {}

    def _helper(self) -> None:
        return None

    @staticmethod
    def build(a_id: int) -> dict:
        return {"id": a_id}
'''


@pytest.fixture
def workspace(tmp_path: Path, metadata_yaml: str) -> Path:
    """A working directory with a metadata file and a source directory."""

    _ = (tmp_path / "metadata.yaml").write_text(metadata_yaml, encoding="utf-8")

    source_dir = tmp_path / "github"
    source_dir.mkdir()
    _ = (source_dir / "a.py").write_text(SERVICE_SOURCE, encoding="utf-8")
    _ = (source_dir / "test_a.py").write_text("class TestService:\n    def test_get(self):\n        pass\n", encoding="utf-8")

    return tmp_path


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]]:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]


def dump_call_tool_result_for_snapshot(
    call_tool_result: CallToolResult,
    /,
) -> dict[str, Any]:
    return {
        "content": [item.model_dump() for item in call_tool_result.content],
        "structured_content": call_tool_result.structured_content,
    }
