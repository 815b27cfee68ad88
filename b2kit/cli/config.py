"""Commands for viewing and changing settings."""

from __future__ import annotations

import typer

from b2kit import config
from b2kit.cli.core import raise_error

config_app = typer.Typer(no_args_is_help=True)


def _check_key(key: str) -> None:
    names = list(config.Settings.model_fields)
    if key not in names:
        raise_error(f"Unknown setting '{key}'; choose from {names}")


def _save(key: str, update: dict) -> None:
    try:
        settings = config.read()
        settings = config.Settings.model_validate(
            settings.model_dump() | update
        )
        settings.write()
    except Exception as e:
        raise_error(f"Failed to update {key}: {e}")


@config_app.command(name="set")
def set_value(key: str, value: str):
    """Save a setting."""
    _check_key(key)
    _save(key, {key: value})


@config_app.command(name="get")
def get_value(key: str):
    """Print a setting, or nothing if it isn't set."""
    _check_key(key)
    value = getattr(config.read(), key)
    typer.echo("" if value is None else value)


@config_app.command(name="unset")
def unset_value(key: str):
    """Reset a setting to its default."""
    _check_key(key)
    _save(key, {key: config.Settings.model_fields[key].default})


@config_app.command(name="show")
def show():
    """Print all settings, with secrets hidden."""
    settings = config.read()
    secrets = settings.secret_names()
    for name, value in settings.model_dump().items():
        if name in secrets and value is not None:
            value = "*****"
        typer.echo(f"{name}: {'' if value is None else value}")
