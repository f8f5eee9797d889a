"""
Special schemas for the configuration file and its properties
"""

import re
from typing import Dict, List, Optional, Union

import pydantic


RESOURCE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z0-9_.~-]{1,255}$")

DEFAULT_IRREGULAR_PLURALS = [
    "people", "children", "men", "women", "data", "media", "criteria", "feet", "teeth", "mice", "geese"
]


class ResourceDefinition(pydantic.BaseModel):
    """
    Declaration of a resource collection served by the API

    As soon as at least one resource has been declared in the config file,
    only declared resources will be served by the API ("strict mode").
    """

    name: pydantic.constr(min_length=1, max_length=255)
    description: str = ""
    required: List[pydantic.constr(min_length=1)] = []
    """Names of properties that must be present when creating or replacing an instance"""
    labels: List[pydantic.constr(min_length=1)] = ["tags", "labels"]
    """Names of label-like properties, which are arrays of ``{id, name}`` objects"""
    parents: List[pydantic.constr(min_length=1)] = []
    """Names of resources whose instances may hold this resource as sub-collection"""
    default_subresource: Optional[pydantic.constr(min_length=1)] = None
    """Sub-collection that receives instances when using ``POST`` on an instance URL"""

    @pydantic.field_validator("name")
    @classmethod
    def enforce_lowercase_name(cls, value: str) -> str:
        if not RESOURCE_NAME_PATTERN.match(value):
            raise ValueError(f"Resource name {value!r} must match {RESOURCE_NAME_PATTERN.pattern!r}")
        return value


class GeneralConfig(pydantic.BaseModel):
    default_limit: pydantic.PositiveInt = 10
    max_limit: pydantic.PositiveInt = 1000
    enforce_plural_names: bool = True
    irregular_plurals: List[str] = DEFAULT_IRREGULAR_PLURALS
    default_label_fields: List[str] = ["tags", "labels"]
    error_reference_url: str = "https://restcore.readthedocs.io/en/latest/errors"

    @pydantic.model_validator(mode="after")
    def enforce_limit_order(self) -> "GeneralConfig":
        if self.default_limit > self.max_limit:
            raise ValueError("Field 'default_limit' must not exceed 'max_limit'")
        return self


class ServerConfig(pydantic.BaseModel):
    host: str = "127.0.0.1"
    port: pydantic.conint(gt=0, lt=65536) = 8000
    public_base_url: Optional[pydantic.HttpUrl] = None


class DatabaseConfig(pydantic.BaseModel):
    connection: str = "sqlite://"
    debug_sql: bool = False


class LoggingConfig(pydantic.BaseModel):
    version: pydantic.conint(ge=1, le=1) = 1
    disable_existing_loggers: bool = False
    incremental: bool = False
    filters: Dict[str, Dict[str, Union[str, list]]] = {
        "pool_no_debug": {
            "()": "restcore.misc.logger.NoDebugFilter",
            "name": "sqlalchemy.pool"
        }
    }
    formatters: Dict[str, Dict[str, str]] = {
        "default": {
            "style": "{",
            "format": "{asctime}: restcore {process}: [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M:%S"
        },
        "file": {
            "style": "{",
            "format": "{asctime} ({process}): [{levelname}] {name}: {message}",
            "datefmt": "%d.%m.%Y %H:%M"
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": "%(asctime)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"
        }
    }
    loggers: Dict[str, dict] = {
        "uvicorn.access": {
            "level": "INFO",
            "handlers": ["access"],
            "propagate": False
        }
    }
    handlers: Dict[str, Dict[str, Union[str, list]]] = {
        "default": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "default",
            "filters": ["pool_no_debug"]
        },
        "file": {
            "level": "DEBUG",
            "class": "logging.FileHandler",
            "filename": "./restcore.log",
            "formatter": "file",
            "filters": ["pool_no_debug"]
        },
        "access": {
            "level": "INFO",
            "class": "logging.FileHandler",
            "filename": "./access.log",
            "formatter": "access"
        }
    }
    root: dict = {
        "level": "INFO",
        "handlers": ["default", "file"]
    }


class CoreConfig(pydantic.BaseModel):
    general: GeneralConfig = GeneralConfig()
    server: ServerConfig = ServerConfig()
    resources: List[ResourceDefinition] = []
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()

    @pydantic.field_validator("resources")
    @classmethod
    def enforce_resource_constraints(cls, value: List[ResourceDefinition]) -> List[ResourceDefinition]:
        if len({v.name for v in value}) != len(value):
            raise ValueError("Field 'name' must be unique")
        return value
