from typing import Annotated

from pydantic import Field

OPERATION_DESCRIPTION = "The operation name, for example `GET /repos/{owner}/{repo}`. Path parameter names and case do not matter."
OPERATION = Annotated[str, Field(description=OPERATION_DESCRIPTION)]

METHOD_DESCRIPTION = "The service method name, for example `RepositoriesService.get`."
METHOD = Annotated[str, Field(description=METHOD_DESCRIPTION)]
