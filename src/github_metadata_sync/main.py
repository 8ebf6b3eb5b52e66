"""The `github-metadata-sync` command line."""

import asyncio
import json
from logging import Logger
from pathlib import Path
from typing import Literal

import click
from fastmcp.utilities.logging import configure_logging, get_logger
from pydantic import BaseModel, ConfigDict

from github_metadata_sync.annotator import get_service_methods, update_source_directory
from github_metadata_sync.clients.errors.github import ClientError
from github_metadata_sync.clients.github import SpecRepositoryClient
from github_metadata_sync.config import SyncSettings
from github_metadata_sync.errors import ConfigurationError, MetadataError
from github_metadata_sync.fetcher import DescriptionFetcher, DescriptionsClient
from github_metadata_sync.models.metadata import MetadataDocument
from github_metadata_sync.models.operation import OperationNormalizer
from github_metadata_sync.sync import update_openapi, validate_git_commit
from github_metadata_sync.validator import validate_metadata

logger: Logger = get_logger(name=__name__)

DEFAULT_METADATA_FILENAME = "metadata.yaml"
DEFAULT_SOURCE_DIR = "github"


class RunContext(BaseModel):
    """Everything a command needs. One is created per invocation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    filename: Path
    source_dir: Path
    settings: SyncSettings
    normalizer: OperationNormalizer

    def load_metadata(self) -> MetadataDocument:
        return MetadataDocument.load(self.filename)

    def save_metadata(self, metadata: MetadataDocument) -> None:
        """Write the metadata file unless its content would not change."""

        content = metadata.to_yaml()
        if self.filename.exists() and self.filename.read_text(encoding="utf-8") == content:
            return
        _ = self.filename.write_text(content, encoding="utf-8")

    def require_source_dir(self) -> Path:
        if not self.source_dir.is_dir():
            msg = f"Source directory {self.source_dir} does not exist"
            raise ConfigurationError(msg)
        return self.source_dir

    def new_fetcher(self) -> DescriptionFetcher:
        return DescriptionFetcher(client=new_descriptions_client(settings=self.settings), settings=self.settings, logger=logger)


def new_descriptions_client(settings: SyncSettings) -> DescriptionsClient:
    """Create the client for the descriptions repository. Raises `MissingTokenError` when no token is set."""
    return SpecRepositoryClient(settings=settings, logger=logger, log_requests=False)


def fail(e: Exception) -> click.ClickException:
    return click.ClickException(str(e))


@click.group()
@click.option(
    "-C",
    "--working-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path(),
    help="The directory the other paths are relative to.",
)
@click.option(
    "--filename",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"The metadata file. Defaults to {DEFAULT_METADATA_FILENAME} in the working directory.",
)
@click.option(
    "--source-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"The directory holding the service methods. Defaults to {DEFAULT_SOURCE_DIR} in the working directory.",
)
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="A YAML settings file.",
)
@click.option("--github-url", default=None, hidden=True, help="The GitHub REST API base URL.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    help="The level of the log messages written to stderr.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    working_dir: Path,
    filename: Path | None,
    source_dir: Path | None,
    config_file: Path | None,
    github_url: str | None,
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"],
):
    """Keep metadata.yaml and the service method comments in sync with the GitHub OpenAPI descriptions."""

    configure_logging(level=log_level)

    try:
        settings = SyncSettings.load(path=config_file, github_url=github_url)
    except ConfigurationError as e:
        raise fail(e) from e

    ctx.obj = RunContext(
        filename=working_dir / (filename or DEFAULT_METADATA_FILENAME),
        source_dir=working_dir / (source_dir or DEFAULT_SOURCE_DIR),
        settings=settings,
        normalizer=OperationNormalizer(),
    )


@cli.command("update-openapi")
@click.option("--ref", default="main", show_default=True, help="The branch, tag or commit of the descriptions repository.")
@click.option("--prune", is_flag=True, default=False, help="Drop operations that are not in any description.")
@click.pass_obj
def update_openapi_command(run: RunContext, ref: str, prune: bool):
    """Update openapi_operations from the OpenAPI descriptions."""

    try:
        metadata = run.load_metadata()
        fetcher = run.new_fetcher()
        _ = asyncio.run(
            update_openapi(metadata=metadata, fetcher=fetcher, ref=ref, normalizer=run.normalizer, settings=run.settings, prune=prune)
        )
    except (ClientError, MetadataError) as e:
        raise fail(e) from e

    run.save_metadata(metadata)


@cli.command("format")
@click.pass_obj
def format_command(run: RunContext):
    """Rewrite the metadata file in its canonical form."""

    try:
        metadata = run.load_metadata()
    except MetadataError as e:
        raise fail(e) from e

    run.save_metadata(metadata)


@cli.command("validate")
@click.option("--openapi", is_flag=True, default=False, help="Also check openapi_operations against openapi_commit.")
@click.pass_obj
def validate_command(run: RunContext, openapi: bool):
    """Report inconsistencies between the metadata file and the source directory."""

    try:
        metadata = run.load_metadata()
        service_methods = get_service_methods(run.require_source_dir(), settings=run.settings)

        issues = validate_metadata(metadata, service_methods, run.normalizer)

        if openapi:
            fetcher = run.new_fetcher()
            drift = asyncio.run(validate_git_commit(metadata=metadata, fetcher=fetcher, normalizer=run.normalizer, settings=run.settings))
            if drift is not None:
                issues.append(drift)
    except (ClientError, MetadataError) as e:
        raise fail(e) from e

    if not issues:
        return

    for issue in issues:
        click.echo(issue, err=True)

    msg = f"found {len(issues)} issues in {run.filename}"
    raise click.ClickException(msg)


@cli.command("unused")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the operations as JSON.")
@click.pass_obj
def unused_command(run: RunContext, as_json: bool):
    """List the operations that no method uses."""

    try:
        metadata = run.load_metadata()
    except MetadataError as e:
        raise fail(e) from e

    unused = metadata.unused_operations(run.normalizer)

    if as_json:
        click.echo(json.dumps([operation.to_document() for operation in unused], indent=2))
        return

    for operation in unused:
        click.echo(operation.name)


@cli.command("update-source")
@click.pass_obj
def update_source_command(run: RunContext):
    """Rewrite the comments of the service methods from the metadata file."""

    try:
        metadata = run.load_metadata()
        source_dir = run.require_source_dir()
    except MetadataError as e:
        raise fail(e) from e

    report = update_source_directory(source_dir, metadata=metadata, normalizer=run.normalizer, settings=run.settings, logger=logger)

    if report.ok:
        return

    for filename, error in report.failures.items():
        click.echo(f"{filename}: {error}", err=True)

    msg = f"failed to update {len(report.failures)} files in {source_dir}"
    raise click.ClickException(msg)


@cli.command("canonize")
@click.pass_obj
def canonize_command(run: RunContext):
    """Replace operation references in methods with canonical operation names."""

    try:
        metadata = run.load_metadata()
        _ = metadata.canonize(run.normalizer, filename=str(run.filename))
    except MetadataError as e:
        raise fail(e) from e

    run.save_metadata(metadata)


if __name__ == "__main__":
    cli()
