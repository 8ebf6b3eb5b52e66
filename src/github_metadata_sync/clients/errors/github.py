ExtraInfoType = dict[str, str | None]


class ClientError(Exception):
    """An error from the spec repository client."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class MissingTokenError(ClientError):
    """No GitHub token is configured."""

    def __init__(self, env_vars: list[str]):
        super().__init__(
            message=" or ".join(env_vars) + " must be set to a GitHub personal access token with the public_repo scope"
        )


class RequestError(ClientError):
    """A request error from the spec repository client."""

    def __init__(self, action: str, message: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(message="A request error occurred.", extra_info={"action": action, "message": message, **extra_info})


class ResourceNotFoundError(RequestError):
    """A not found error from the spec repository client."""

    def __init__(self, action: str, resource: str | None = None, extra_info: ExtraInfoType | None = None):
        if not extra_info:
            extra_info = {}
        super().__init__(
            action=action,
            message="The resource could not be found.",
            extra_info={"resource": resource, **extra_info},
        )


class ResourceTypeMismatchError(RequestError):
    """A type mismatch error from the spec repository client."""

    def __init__(self, action: str, resource: str, expected_type: type | str, actual_type: type | str):
        super().__init__(action, f"{resource}: Expected {expected_type}, got {actual_type}")


class UnexpectedStatusError(RequestError):
    """The server answered with a success status other than 200."""

    def __init__(self, action: str, status_code: int, resource: str | None = None):
        super().__init__(
            action=action,
            message=f"unexpected status code: {status_code}",
            extra_info={"resource": resource},
        )
