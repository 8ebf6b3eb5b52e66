import re
import threading
from collections.abc import Iterable
from typing import Any, Self

from pydantic import BaseModel, Field

from github_metadata_sync.config import SyncSettings

# matches something like "GET /some/path"
OPERATION_NAME_PATTERN = re.compile(r"(\S+)(?:\s+(\S.*))?")

PATH_WILDCARD = "*"


def parse_operation_name(name: str) -> tuple[str, str]:
    """Split an operation name into its uppercased verb and its path. The path always starts with a slash."""

    match = OPERATION_NAME_PATTERN.search(name)
    if match is None:
        return "", ""

    path = (match.group(2) or "").strip()
    if not path.startswith("/"):
        path = "/" + path

    return match.group(1).upper(), path


def operation_name(verb: str, path: str) -> str:
    return f"{verb.upper()} {path}"


def normalize_operation_path(path: str) -> str:
    """Replace every templated path segment with a wildcard."""

    if "{" not in path and "%" not in path:
        return path

    segments = path.split("/")
    return "/".join(PATH_WILDCARD if segment and segment[0] in "{%" else segment for segment in segments)


class OperationNormalizer:
    """Memoizes normalized operation names for the duration of a run."""

    def __init__(self):
        self._cache: dict[str, str] = {}
        self._lock = threading.Lock()

    def normalize_path(self, path: str) -> str:
        with self._lock:
            if (normalized := self._cache.get(path)) is not None:
                return normalized

            normalized = normalize_operation_path(path)
            self._cache[path] = normalized
            return normalized

    def normalized_name(self, name: str) -> str:
        verb, path = parse_operation_name(name)
        return f"{verb} {self.normalize_path(path)}".strip()

    def identity(self, verb: str, path: str) -> tuple[str, str]:
        return verb.upper(), self.normalize_path(path)


class Operation(BaseModel):
    """One (verb, path) pair of the GitHub API."""

    name: str = Field(description="The operation name, for example `GET /repos/{owner}/{repo}`.")
    documentation_url: str | None = Field(default=None, description="The documentation URL of the operation.")
    summary: str | None = Field(default=None, description="The summary of the operation.")
    openapi_files: list[str] = Field(default_factory=list, description="The OpenAPI description files the operation was found in.")

    @property
    def verb(self) -> str:
        return parse_operation_name(self.name)[0]

    @property
    def path(self) -> str:
        return parse_operation_name(self.name)[1]

    def sort_key(self) -> tuple[str, str]:
        verb, path = parse_operation_name(self.name)
        return path, verb

    def plans(self, settings: SyncSettings) -> list[str]:
        """The plans the operation is available in, in plan priority order."""

        found: set[str] = set()
        for filename in self.openapi_files:
            if plan := settings.plan_for_file(filename):
                found.add(plan.name)

        return [plan.name for plan in settings.plans if plan.name in found]

    def apply_override(self, override: "Operation") -> Self:
        update: dict[str, Any] = {}
        if override.documentation_url:
            update["documentation_url"] = override.documentation_url
        if override.summary:
            update["summary"] = override.summary
        if override.openapi_files:
            update["openapi_files"] = list(override.openapi_files)
        return self.model_copy(update=update, deep=True)

    def to_document(self) -> dict[str, Any]:
        """Dump the populated fields in document order."""

        document: dict[str, Any] = {"name": self.name}
        if self.documentation_url:
            document["documentation_url"] = self.documentation_url
        if self.summary:
            document["summary"] = self.summary
        if self.openapi_files:
            document["openapi_files"] = list(self.openapi_files)
        return document


def sort_operations(operations: Iterable[Operation]) -> list[Operation]:
    return sorted(operations, key=lambda operation: operation.sort_key())


def operations_equal(left: Iterable[Operation], right: Iterable[Operation]) -> bool:
    """Whether two operation lists hold the same operations, ignoring their order."""
    left_documents = [operation.to_document() for operation in sort_operations(left)]
    right_documents = [operation.to_document() for operation in sort_operations(right)]
    return left_documents == right_documents
