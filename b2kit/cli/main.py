"""Main CLI app."""

from __future__ import annotations

import logging
import os

import typer
from typing_extensions import Annotated, Optional

import b2kit
from b2kit import config
from b2kit.cli.config import config_app
from b2kit.cli.core import raise_error, warn
from b2kit.errors import B2Error
from b2kit.service import Service, connect
from b2kit.upload import cancel_large_file, sha1_hex, upload_large_file

app = typer.Typer(
    invoke_without_command=True,
    no_args_is_help=True,
    context_settings=dict(help_option_names=["-h", "--help"]),
    pretty_exceptions_show_locals=False,
)
app.add_typer(config_app, name="config", help="Configure b2kit.")

state = {"verbose": False}


def _connect() -> tuple[Service, config.Settings]:
    try:
        settings = config.read()
        if state["verbose"]:
            settings.logging = True
        return connect(settings), settings
    except (B2Error, ValueError) as e:
        raise_error(e)


def _bucket_id(settings: config.Settings, bucket_id: str | None) -> str:
    bucket_id = bucket_id or settings.bucket_id
    if not bucket_id and not settings.local_path:
        raise_error("No bucket ID specified or configured")
    return bucket_id or ""


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log each API call."),
    ] = False,
):
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)
    state["verbose"] = verbose
    if version:
        typer.echo(f"b2kit {b2kit.__version__}")
        raise typer.Exit()


@app.command(name="upload")
def upload(
    path: Annotated[str, typer.Argument(help="Path of the file to upload.")],
    name: Annotated[
        Optional[str],
        typer.Option(
            "--name", "-n", help="File name in the bucket."
        ),
    ] = None,
    bucket_id: Annotated[
        Optional[str], typer.Option("--bucket-id", "-b", help="Bucket ID.")
    ] = None,
    part_size: Annotated[
        Optional[int],
        typer.Option(
            "--part-size", help="Size of each part for large files, in bytes."
        ),
    ] = None,
):
    """Upload a file, in parts if it is larger than one part."""
    if not os.path.isfile(path):
        raise_error(f"{path} does not exist")
    service, settings = _connect()
    bucket_id = _bucket_id(settings, bucket_id)
    if name is None:
        name = os.path.basename(path)
    if part_size is None:
        part_size = max(settings.part_size, service.minimum_part_size)
    elif part_size < service.minimum_part_size:
        warn(
            f"Part size raised to the minimum of "
            f"{service.minimum_part_size} bytes"
        )
        part_size = service.minimum_part_size
    size = os.path.getsize(path)
    try:
        if size > part_size:
            with open(path, "rb") as f:
                res = upload_large_file(service, name, bucket_id, f, part_size)
        else:
            with open(path, "rb") as f:
                contents = f.read()
            target = service.get_upload_url(bucket_id)
            res = service.upload_file(
                target, name, sha1_hex(contents), contents
            )
    except (B2Error, ValueError) as e:
        raise_error(e)
    typer.echo(res.model_dump_json(indent=2))


@app.command(name="download")
def download(
    file_id: Annotated[str, typer.Argument(help="ID of the file.")],
    output: Annotated[
        Optional[str],
        typer.Option("--output", "-o", help="Where to save the file."),
    ] = None,
    byte_range: Annotated[
        Optional[str],
        typer.Option(
            "--range",
            help="Inclusive byte range to download, e.g., '0-99'.",
        ),
    ] = None,
):
    """Download a file by ID."""
    service, _ = _connect()
    try:
        if byte_range is not None:
            try:
                begin, end = (int(v) for v in byte_range.split("-"))
            except ValueError:
                raise_error(f"Invalid byte range: '{byte_range}'")
            contents = service.partial_download_by_id(file_id, begin, end)
        else:
            contents = service.download_by_id(file_id)
    except (B2Error, ValueError) as e:
        raise_error(e)
    if output is None:
        output = os.path.basename(file_id)
    with open(output, "wb") as f:
        f.write(contents)


@app.command(name="ls")
def list_files(
    bucket_id: Annotated[
        Optional[str], typer.Option("--bucket-id", "-b", help="Bucket ID.")
    ] = None,
    count: Annotated[
        int, typer.Option("--count", "-n", help="Maximum number of files.")
    ] = 100,
    start_name: Annotated[
        str, typer.Option("--start-name", help="File name to start at.")
    ] = "",
    start_id: Annotated[
        str, typer.Option("--start-id", help="File ID to start at.")
    ] = "",
):
    """List files in the bucket."""
    service, settings = _connect()
    bucket_id = _bucket_id(settings, bucket_id)
    try:
        resp = service.list_files(
            bucket_id, count=count, start_name=start_name, start_id=start_id
        )
    except B2Error as e:
        raise_error(e)
    for f in resp.files:
        typer.echo(f"{f.file_id}\t{f.content_length}\t{f.file_name}")
    if resp.next_file_name:
        typer.echo(
            f"Next: --start-name '{resp.next_file_name}' "
            f"--start-id '{resp.next_file_id}'"
        )


@app.command(name="rm")
def delete_file(
    file_id: Annotated[str, typer.Argument(help="ID of the file.")],
    file_name: Annotated[str, typer.Argument(help="Name of the file.")],
):
    """Delete a file."""
    service, _ = _connect()
    try:
        deleted = service.delete_file(file_id, file_name)
    except B2Error as e:
        raise_error(e)
    if not deleted:
        raise_error(f"Failed to delete {file_name}")


@app.command(name="cancel")
def cancel(
    file_id: Annotated[str, typer.Argument(help="ID of the large file.")],
):
    """Cancel an unfinished large file upload."""
    service, _ = _connect()
    try:
        canceled = cancel_large_file(service, file_id)
    except B2Error as e:
        raise_error(e)
    if not canceled:
        raise_error(f"Failed to cancel {file_id}")


def run() -> None:
    app()
