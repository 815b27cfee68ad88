"""Settings for connecting to B2, read from the environment, a ``.env``
file, ``~/.b2kit/config.yaml`` and the system keyring, in that order of
priority.
"""

from __future__ import annotations

import os
from typing import Any, Literal, get_args

import keyring
import keyring.backends.fail
import keyring.backends.null
import keyring.errors
import yaml
from pydantic import GetCoreSchemaHandler
from pydantic.fields import FieldInfo
from pydantic_core import core_schema
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

APP_NAME = "b2kit"
# B2's recommended part size
DEFAULT_PART_SIZE = 100_000_000


def supports_keyring() -> bool:
    """Whether a real keyring backend is available to store secrets in."""
    try:
        backend = keyring.get_keyring()
    except keyring.errors.KeyringError:
        return False
    return not isinstance(
        backend, (keyring.backends.fail.Keyring, keyring.backends.null.Keyring)
    )


KEYRING_SUPPORTED = supports_keyring()


def get_config_yaml_fpath() -> str:
    return os.path.join(os.path.expanduser("~"), "." + APP_NAME, "config.yaml")


def set_secret(key: str, value: str) -> None:
    keyring.set_password(APP_NAME, key, value)


def get_secret(key: str) -> str | None:
    return keyring.get_password(APP_NAME, key)


def delete_secret(key: str) -> None:
    try:
        keyring.delete_password(APP_NAME, key)
    except keyring.errors.PasswordDeleteError:
        pass


class KeyringSecret(str):
    """A setting kept in the system keyring instead of the config file,
    unless there is no keyring to keep it in.
    """

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls, core_schema.str_schema()
        )


def is_secret(field: FieldInfo) -> bool:
    return KeyringSecret in get_args(field.annotation)


class KeyringSource(PydanticBaseSettingsSource):
    def get_field_value(self, field: FieldInfo, field_name: str):
        return get_secret(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        if not KEYRING_SUPPORTED:
            return {}
        values = {}
        for name, field in self.settings_cls.model_fields.items():
            if not is_secret(field):
                continue
            value, _, _ = self.get_field_value(field, name)
            if value is not None:
                values[name] = value
        return values


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=APP_NAME.upper() + "_",
        env_file=".env",
        yaml_file=get_config_yaml_fpath(),
        extra="ignore",
    )

    key_id: str | None = None
    application_key: KeyringSecret | None = None
    bucket_id: str | None = None
    api_version: Literal["v2", "v3"] = "v3"
    # Store files in this directory instead of B2
    local_path: str | None = None
    # Bytes, only used with local_path; 0 means no limit
    storage_maximum: int = 0
    part_size: int = DEFAULT_PART_SIZE
    timeout: float = 10.0
    logging: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            KeyringSource(settings_cls),
        )

    def secret_names(self) -> list[str]:
        return [
            name
            for name, field in type(self).model_fields.items()
            if is_secret(field)
        ]

    def write(self) -> None:
        """Save to the YAML file, moving secrets to the keyring if there is
        one.
        """
        values = self.model_dump()
        for name in self.secret_names():
            value = values.pop(name)
            if KEYRING_SUPPORTED:
                if value is None:
                    delete_secret(name)
                else:
                    set_secret(name, str(value))
            elif value is not None:
                values[name] = str(value)
        fpath = self.model_config["yaml_file"]
        os.makedirs(os.path.dirname(fpath), exist_ok=True)
        with open(fpath, "w") as f:
            yaml.safe_dump(values, f)


def read() -> Settings:
    # The home directory may have changed since import, e.g., in tests
    Settings.model_config["yaml_file"] = get_config_yaml_fpath()
    return Settings()
