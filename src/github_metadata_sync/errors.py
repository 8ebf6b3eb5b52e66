from collections.abc import Sequence

ExtraInfoType = dict[str, str | None]


class MetadataError(Exception):
    """An error raised while reading, reconciling or applying the metadata file."""

    def __init__(self, message: str, extra_info: ExtraInfoType | None = None):
        msg = message
        if extra_info:
            msg += " (" + ", ".join([f"{key}: {value}" for key, value in extra_info.items() if value is not None]) + ")"
        super().__init__(msg)


class ConfigurationError(MetadataError):
    """The tool is misconfigured. Nothing was changed."""


class MetadataFileError(ConfigurationError):
    """The metadata file is missing or cannot be parsed."""

    def __init__(self, filename: str, message: str):
        super().__init__(message=f"Could not load metadata file {filename}: {message}")


class DescriptionParseError(MetadataError):
    """An OpenAPI description could not be parsed."""

    def __init__(self, filename: str, message: str):
        super().__init__(message=f"Could not parse OpenAPI description {filename}", extra_info={"error": message})


class SourceParseError(MetadataError):
    """A source file is not valid Python."""

    def __init__(self, filename: str, message: str):
        super().__init__(message=f"Could not parse source file {filename}: {message}")


class OperationNotFoundError(MetadataError):
    def __init__(self, operation_name: str):
        super().__init__(message=f'could not find operation "{operation_name}" in metadata file')


class AmbiguousOperationError(MetadataError):
    def __init__(self, operation_name: str, candidates: Sequence[str]):
        self.candidates: list[str] = sorted(candidates)
        super().__init__(message=f'ambiguous operation "{operation_name}" could match any of: {self.candidates}')


class DuplicateOperationError(MetadataError):
    def __init__(self, method_name: str, operation_name: str):
        super().__init__(message=f"duplicate operation for {method_name}: {operation_name}")


class MissingOperationsError(MetadataError):
    def __init__(self, method_name: str):
        super().__init__(message=f"no operations defined for {method_name}")


class MethodErrors(MetadataError):
    """Several errors were found for the methods of one source file."""

    def __init__(self, filename: str, errors: Sequence[Exception]):
        self.errors: list[Exception] = list(errors)
        super().__init__(message=f"{filename}: " + "; ".join(str(error) for error in self.errors))
