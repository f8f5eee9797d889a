"""
restcore settings provider
"""

import os
import json
from typing import Any, Callable, List, Optional, Tuple, Type

import pydantic_settings
from pydantic_settings import JsonConfigSettingsSource, PydanticBaseSettingsSource

from .schemas import config


SETTINGS_LOG_INFO_FUNCTION: Optional[Callable[[str], Any]] = None
"""
optional function to accept log messages when creating a new configuration file
"""

CONFIG_PATHS: List[str] = ["config.json", os.path.join("..", "config.json")]
"""
list of search paths for the config file, can be overwritten by the env variable ``CONFIG_PATH``
"""

if os.environ.get("CONFIG_PATH"):
    CONFIG_PATHS = [os.environ.get("CONFIG_PATH")]


def get_db_from_env(db_override: Optional[str] = None) -> Optional[str]:
    if db_override:
        return db_override
    return os.environ.get("DATABASE_CONNECTION", os.environ.get("DATABASE__CONNECTION", None))


def find_config_file() -> Optional[str]:
    """
    Return the first existing file out of the ``CONFIG_PATHS``, if any
    """

    for path in CONFIG_PATHS:
        if os.path.exists(path):
            return path


class Settings(pydantic_settings.BaseSettings, config.CoreConfig):
    """
    restcore settings

    Values are taken from (in order of precedence) the constructor's keyword
    arguments, the environment (nested keys are separated by ``__``, e.g.
    ``SERVER__PORT``), a ``.env`` file and the first JSON config file found
    in the ``CONFIG_PATHS``. Missing values use the defaults of the schemas.
    Do not change the settings at runtime, restart the server instead.
    """

    model_config = pydantic_settings.SettingsConfigDict(
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def settings_customise_sources(
            cls,
            settings_cls: Type[pydantic_settings.BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            JsonConfigSettingsSource(settings_cls, json_file=find_config_file()),
            file_secret_settings
        )


def get_default_core_config(database_override: Optional[str] = None) -> config.CoreConfig:
    c = config.CoreConfig()
    if database_override:
        c.database.connection = database_override
    return c


def store_configuration(conf: Optional[config.CoreConfig] = None, path: Optional[str] = None) -> config.CoreConfig:
    p = path or os.path.abspath(CONFIG_PATHS[0])
    conf = conf or get_default_core_config(get_db_from_env())
    with open(p, "w") as f:
        json.dump(conf.model_dump(mode="json"), f, indent=4)
    SETTINGS_LOG_INFO_FUNCTION and SETTINGS_LOG_INFO_FUNCTION(f"A new config file has been created as {p!r}.")
    return conf
