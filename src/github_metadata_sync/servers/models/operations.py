from typing import Self

from pydantic import BaseModel, Field

from github_metadata_sync.config import SyncSettings
from github_metadata_sync.models.operation import Operation


class MethodNotFoundError(Exception):
    """A method is not in the metadata file."""

    def __init__(self, method: str):
        super().__init__(f"Method {method} does not exist in the metadata file")


class OperationDetails(BaseModel):
    """An operation with the plans it is available in and the methods that implement it."""

    name: str = Field(description="The canonical operation name.")
    documentation_url: str | None = Field(default=None, description="The documentation URL of the operation.")
    summary: str | None = Field(default=None, description="The summary of the operation.")
    plans: list[str] = Field(default_factory=list, description="The plans the operation is available in.")
    methods: list[str] = Field(default_factory=list, description="The service methods that implement the operation.")

    @classmethod
    def from_operation(cls, operation: Operation, settings: SyncSettings, methods: list[str]) -> Self:
        return cls(
            name=operation.name,
            documentation_url=operation.documentation_url,
            summary=operation.summary,
            plans=operation.plans(settings),
            methods=methods,
        )


class MethodOperations(BaseModel):
    method: str = Field(description="The service method name.")
    operations: list[OperationDetails] = Field(default_factory=list, description="The operations of the method, in declared order.")
