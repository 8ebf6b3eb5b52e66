"""Rewrite the comment blocks above service methods from the metadata file.

The source is parsed with `ast` only to locate service methods. The rewrite itself is a list of `CommentEdit`s
applied to the lines of the file, so the parsed tree is never modified.

A rewritten comment block looks like:

    # Get a repository.
    #
    # GitHub API docs: https://docs.github.com/rest/repos/repos#get-a-repository
    #meta:operation GET /repos/{owner}/{repo}
"""

import ast
import re
from logging import Logger, getLogger
from pathlib import Path

from pydantic import BaseModel, Field

from github_metadata_sync.config import SyncSettings
from github_metadata_sync.doc_links import normalize_doc_url, same_doc_link
from github_metadata_sync.errors import (
    DuplicateOperationError,
    MetadataError,
    MethodErrors,
    MissingOperationsError,
    SourceParseError,
)
from github_metadata_sync.models.metadata import MetadataDocument
from github_metadata_sync.models.operation import Operation, OperationNormalizer, sort_operations

META_OPERATION_PATTERN = re.compile(r"^\s*#\s*meta:operation\s+(\S.*)$", re.IGNORECASE)
UNDOCUMENTED_NOTE_PATTERN = re.compile(r"^\s*#\s*Note:\s+\S.* uses the undocumented GitHub API endpoint", re.IGNORECASE)
DOC_LINK_PATTERN = re.compile(r"^\s*#\s*GitHub\s+API\s+docs:\s*(\S+)", re.IGNORECASE)

GENERATED_LINE_PATTERNS = [META_OPERATION_PATTERN, UNDOCUMENTED_NOTE_PATTERN, DOC_LINK_PATTERN]

EXCLUDED_FILE_PATTERNS = ["test_*.py", "*_test.py", "conftest.py"]

NON_RECEIVER_DECORATORS = {"staticmethod", "classmethod"}


class ServiceMethod(BaseModel):
    """A public method of a service class."""

    name: str = Field(description="The method name, for example `RepositoriesService.get`.")
    filename: str
    start: int = Field(description="The 0-based index of the first line of the method, including decorators.")
    definition: int = Field(description="The 0-based index of the `def` line of the method.")
    indent: str = Field(description="The indentation of the method's first line.")

    @property
    def method_name(self) -> str:
        return self.name.partition(".")[2]


class CommentEdit(BaseModel):
    """Replace `lines[start:end]` of a file with `replacement`."""

    method: str
    start: int
    end: int
    replacement: list[str]


class AnnotationReport(BaseModel):
    updated_files: list[str] = Field(default_factory=list, description="The files that were rewritten.")
    failures: dict[str, str] = Field(default_factory=dict, description="The error of each file that could not be processed.")

    @property
    def ok(self) -> bool:
        return not self.failures


def is_generated_line(line: str) -> bool:
    return any(pattern.match(line) for pattern in GENERATED_LINE_PATTERNS)


def _decorator_name(decorator: ast.expr) -> str | None:
    if isinstance(decorator, ast.Name):
        return decorator.id
    if isinstance(decorator, ast.Attribute):
        return decorator.attr
    return None


def _has_receiver(function: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
    if any(_decorator_name(decorator) in NON_RECEIVER_DECORATORS for decorator in function.decorator_list):
        return False
    return len(function.args.posonlyargs) + len(function.args.args) >= 1


def _is_service_class(class_name: str, filename: str, settings: SyncSettings) -> bool:
    if class_name.startswith("_"):
        return False

    if class_name.endswith(settings.service_suffix):
        return True

    return class_name == settings.aggregate_type and Path(filename).name != settings.aggregate_excluded_file


def find_service_methods(tree: ast.Module, lines: list[str], filename: str, settings: SyncSettings) -> list[ServiceMethod]:
    """Find the service methods defined in a parsed module, in source order."""

    service_methods: list[ServiceMethod] = []

    for node in tree.body:
        if not isinstance(node, ast.ClassDef) or not _is_service_class(node.name, filename, settings):
            continue

        for item in node.body:
            if not isinstance(item, ast.FunctionDef | ast.AsyncFunctionDef):
                continue
            if item.name.startswith("_") or not _has_receiver(item):
                continue

            first_line = min([item.lineno, *(decorator.lineno for decorator in item.decorator_list)])
            line = lines[first_line - 1]

            service_methods.append(
                ServiceMethod(
                    name=f"{node.name}.{item.name}",
                    filename=filename,
                    start=first_line - 1,
                    definition=item.lineno - 1,
                    indent=line[: len(line) - len(line.lstrip())],
                )
            )

    return service_methods


def parse_source(content: str, filename: str) -> ast.Module:
    try:
        return ast.parse(content, filename=filename)
    except SyntaxError as e:
        raise SourceParseError(filename=filename, message=str(e)) from e


def comment_block_start(lines: list[str], service_method: ServiceMethod) -> int:
    """The index of the first line of the comment block directly above the method."""

    start = service_method.start
    while start > 0 and lines[start - 1].startswith(service_method.indent + "#"):
        start -= 1
    return start


def method_operations(service_method: ServiceMethod, metadata: MetadataDocument, normalizer: OperationNormalizer) -> list[Operation] | None:
    """The resolved operations of a method in declared order, or `None` when the method has no metadata entry.

    Raises:
        MissingOperationsError: If the method's entry lists no operation.
        DuplicateOperationError: If two references resolve to the same operation.
        OperationNotFoundError: If a reference does not resolve to any operation.
        AmbiguousOperationError: If a reference resolves to several operations.
    """

    method = metadata.get_method(service_method.name)
    if method is None:
        return None

    if not method.openapi_operations:
        raise MissingOperationsError(method_name=service_method.name)

    operations: list[Operation] = []
    for reference in method.openapi_operations:
        operation = metadata.resolve_operation(reference, normalizer)
        if any(existing.name == operation.name for existing in operations):
            raise DuplicateOperationError(method_name=service_method.name, operation_name=operation.name)
        operations.append(operation)

    return operations


def build_comment_block(service_method: ServiceMethod, operations: list[Operation], existing: list[str]) -> list[str]:
    """Build the comment block of a method from its current block and its operations."""

    indent = service_method.indent

    preserved = [line for line in existing if not is_generated_line(line)]
    while preserved and preserved[-1].strip() == "#":
        _ = preserved.pop()

    existing_links = [match.group(1) for line in existing if (match := DOC_LINK_PATTERN.match(line))]

    links: set[str] = set()
    for operation in operations:
        if not operation.documentation_url:
            continue
        desired = normalize_doc_url(operation.documentation_url)
        links.add(next((link for link in existing_links if same_doc_link(link, desired)), desired))

    undocumented = sort_operations({operation.name: operation for operation in operations if not operation.documentation_url}.values())

    block = list(preserved)
    if preserved:
        block.append(f"{indent}#")
    block.extend(f"{indent}# GitHub API docs: {link}" for link in sorted(links))
    block.extend(
        f'{indent}# Note: {service_method.method_name} uses the undocumented GitHub API endpoint "{operation.name}".'
        for operation in undocumented
    )
    block.extend(f"{indent}#meta:operation {operation.name}" for operation in operations)

    return block


def plan_comment_edits(
    lines: list[str],
    service_methods: list[ServiceMethod],
    metadata: MetadataDocument,
    normalizer: OperationNormalizer,
    filename: str,
) -> list[CommentEdit]:
    """Compute the comment edits of a file. Every failing method is reported together in one `MethodErrors`."""

    edits: list[CommentEdit] = []
    errors: list[MetadataError] = []

    for service_method in service_methods:
        try:
            operations = method_operations(service_method, metadata, normalizer)
        except MetadataError as e:
            errors.append(e)
            continue

        if operations is None:
            continue

        start = comment_block_start(lines, service_method)

        # generated lines between the decorators and `def` move into the block above the decorators
        decorated = [
            index
            for index in range(service_method.start, service_method.definition)
            if lines[index].lstrip().startswith("#") and is_generated_line(lines[index])
        ]

        existing = lines[start : service_method.start] + [lines[index] for index in decorated]
        replacement = build_comment_block(service_method, operations, existing)

        edits.append(CommentEdit(method=service_method.name, start=start, end=service_method.start, replacement=replacement))
        edits.extend(CommentEdit(method=service_method.name, start=index, end=index + 1, replacement=[]) for index in decorated)

    if errors:
        raise MethodErrors(filename=filename, errors=errors)

    return edits


def apply_comment_edits(lines: list[str], edits: list[CommentEdit]) -> list[str]:
    """Apply non-overlapping edits to a copy of `lines`."""

    updated = list(lines)
    for edit in sorted(edits, key=lambda edit: edit.start, reverse=True):
        updated[edit.start : edit.end] = edit.replacement
    return updated


def update_source(
    content: str,
    metadata: MetadataDocument,
    normalizer: OperationNormalizer,
    settings: SyncSettings | None = None,
    filename: str = "<string>",
) -> str:
    """Return `content` with the comment block of every documented service method rewritten.

    Raises:
        SourceParseError: If the content is not valid Python.
        MethodErrors: If the operations of a method cannot be resolved.
    """

    settings = settings or SyncSettings()
    content = content.replace("\r\n", "\n")

    tree = parse_source(content, filename)
    lines = content.split("\n")

    service_methods = find_service_methods(tree, lines, filename, settings)
    edits = plan_comment_edits(lines, service_methods, metadata, normalizer, filename)

    return "\n".join(apply_comment_edits(lines, edits))


def iter_source_files(source_dir: Path) -> list[Path]:
    """The Python files below `source_dir`, without test modules, sorted."""

    return sorted(
        path
        for path in source_dir.rglob("*.py")
        if path.is_file() and not any(path.match(pattern) for pattern in EXCLUDED_FILE_PATTERNS)
    )


def read_source_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise SourceParseError(filename=str(path), message=str(e)) from e


def update_source_file(
    path: Path,
    metadata: MetadataDocument,
    normalizer: OperationNormalizer,
    settings: SyncSettings | None = None,
) -> bool:
    """Rewrite one source file. The file is only written when its content changed. Returns whether it was written."""

    content = read_source_file(path).replace("\r\n", "\n")

    updated = update_source(content, metadata=metadata, normalizer=normalizer, settings=settings, filename=str(path))

    if updated == content:
        return False

    _ = path.write_text(updated, encoding="utf-8")
    return True


def update_source_directory(
    source_dir: Path,
    metadata: MetadataDocument,
    normalizer: OperationNormalizer,
    settings: SyncSettings | None = None,
    logger: Logger | None = None,
) -> AnnotationReport:
    """Rewrite every source file below `source_dir`. A failing file is reported and the remaining files are processed."""

    logger = logger or getLogger(__name__)
    report = AnnotationReport()

    for path in iter_source_files(source_dir):
        try:
            updated = update_source_file(path, metadata=metadata, normalizer=normalizer, settings=settings)
        except MetadataError as e:
            logger.error(f"Could not update {path}: {e}")
            report.failures[str(path)] = str(e)
            continue

        if updated:
            logger.info(f"Updated {path}")
            report.updated_files.append(str(path))

    return report


def get_service_methods(source_dir: Path, settings: SyncSettings | None = None) -> list[str]:
    """The names of every service method below `source_dir`, sorted.

    Raises:
        SourceParseError: If a source file cannot be read or parsed.
    """

    settings = settings or SyncSettings()
    names: list[str] = []

    for path in iter_source_files(source_dir):
        content = read_source_file(path).replace("\r\n", "\n")
        tree = parse_source(content, str(path))
        names.extend(service_method.name for service_method in find_service_methods(tree, content.split("\n"), str(path), settings))

    return sorted(names)
