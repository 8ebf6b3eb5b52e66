from collections.abc import Iterator
from typing import NamedTuple, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from github_metadata_sync.errors import DescriptionParseError

HTTP_METHODS: tuple[str, ...] = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


class ExternalDocs(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str = Field(description="The URL of the external documentation.")
    description: str | None = Field(default=None, description="A description of the external documentation.")


class OpenAPIOperation(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str | None = Field(default=None, description="A short summary of the operation.")
    operation_id: str | None = Field(default=None, alias="operationId", description="The operation id.")
    external_docs: ExternalDocs | None = Field(default=None, alias="externalDocs", description="Where the operation is documented.")


class OpenAPIPathItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    get: OpenAPIOperation | None = None
    put: OpenAPIOperation | None = None
    post: OpenAPIOperation | None = None
    delete: OpenAPIOperation | None = None
    options: OpenAPIOperation | None = None
    head: OpenAPIOperation | None = None
    patch: OpenAPIOperation | None = None
    trace: OpenAPIOperation | None = None

    def operations(self) -> dict[str, OpenAPIOperation]:
        """The operations of the path item keyed by uppercased HTTP method."""

        operations: dict[str, OpenAPIOperation] = {}
        for method in HTTP_METHODS:
            if (operation := getattr(self, method)) is not None:
                operations[method.upper()] = operation
        return operations


class OpenAPIInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    version: str | None = None


class DescribedOperation(NamedTuple):
    verb: str
    path: str
    documentation_url: str | None
    summary: str | None


class OpenAPIDescription(BaseModel):
    """The parts of an OpenAPI 3.0 description the metadata tool reads."""

    model_config = ConfigDict(extra="ignore")

    openapi: str | None = None
    info: OpenAPIInfo = Field(default_factory=OpenAPIInfo)
    paths: dict[str, OpenAPIPathItem] = Field(default_factory=dict)

    @classmethod
    def from_json(cls, filename: str, content: str | bytes) -> Self:
        try:
            return cls.model_validate_json(content)
        except ValidationError as e:
            raise DescriptionParseError(filename=filename, message=str(e)) from e

    def described_operations(self) -> Iterator[DescribedOperation]:
        for path, path_item in self.paths.items():
            for verb, operation in path_item.operations().items():
                yield DescribedOperation(
                    verb=verb,
                    path=path,
                    documentation_url=operation.external_docs.url if operation.external_docs else None,
                    summary=operation.summary,
                )


class DescriptionFile(BaseModel):
    """An OpenAPI description of one plan and release."""

    filename: str = Field(description="The path of the description in the descriptions repository.")
    directory: str = Field(description="The name of the directory holding the description.")
    plan: str = Field(description="The name of the plan.")
    plan_index: int = Field(description="The index of the plan pattern that matched the directory.")
    release_major: int = Field(default=0, description="The major version of the release, 0 for unversioned plans.")
    release_minor: int = Field(default=0, description="The minor version of the release, 0 for unversioned plans.")
    description: OpenAPIDescription | None = Field(default=None, description="The parsed description, once downloaded.")

    def sort_key(self) -> tuple[int, int, int]:
        """Plan index ascending, then release major and minor descending."""
        return self.plan_index, -self.release_major, -self.release_minor
