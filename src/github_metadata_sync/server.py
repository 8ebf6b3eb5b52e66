"""The entrypoint for the metadata MCP Server."""

import os
from logging import Logger
from pathlib import Path
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from github_metadata_sync.config import SyncSettings
from github_metadata_sync.servers.operations import OperationsServer

logger: Logger = get_logger(name=__name__)


def new_mcp_server(filename: Path, source_dir: Path, settings: SyncSettings | None = None) -> FastMCP[None]:
    mcp: FastMCP[None] = FastMCP[None](name="GitHub Metadata MCP")

    mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

    operations_server: OperationsServer = OperationsServer(filename=filename, source_dir=source_dir, settings=settings, logger=logger)
    _ = operations_server.register_tools(fastmcp=mcp)

    return mcp


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
@click.option("--filename", type=click.Path(dir_okay=False, path_type=Path), default=None, help="The metadata file.")
@click.option("--source-dir", type=click.Path(file_okay=False, path_type=Path), default=None, help="The source directory.")
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"], filename: Path | None, source_dir: Path | None):
    mcp = new_mcp_server(
        filename=filename or Path(os.getenv("METADATA_FILE", "metadata.yaml")),
        source_dir=source_dir or Path(os.getenv("METADATA_SOURCE_DIR", "github")),
        settings=SyncSettings.load(),
    )
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
