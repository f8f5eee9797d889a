"""
restcore resource router

This module classifies requests into resources, instances and intents
without touching any data. The supported URL patterns are:

  - ``/{resource}`` addressing a collection resource
  - ``/{resource}/{identifier}`` addressing an instance resource
  - ``/{resource}/{identifier}/{resource}`` addressing the sub-collection
    of an instance (e.g. all articles of magazine 1234)

The last path segment may carry one of the format suffixes ``.json``,
``.html`` or ``.csv`` to select the representation of the response.
The HTTP verbs map to intents as follows:

=========  ==============  ==============================
Verb       Collection      Instance
=========  ==============  ==============================
``GET``    List            Read
``POST``   Create          (not supported, see below)
``PUT``    ReplaceAll      Update (or create if absent)
``DELETE`` DeleteAll       Delete
=========  ==============  ==============================

``POST`` on an instance is only supported for resources that declare a
default sub-resource; it creates a new member of that sub-collection.
"""

import enum
from typing import List, Mapping, Optional, Tuple

import pydantic

from .base import MalformedPath, MalformedQuery, MethodNotSupported, UnknownResource
from ..persistence.access import ParentReference
from ..registry import ResourceRegistry
from ..schemas.config import GeneralConfig, IDENTIFIER_PATTERN


MAXIMAL_PATH_DEPTH = 3
RESERVED_QUERY_PARAMETERS = ("limit", "offset", "fields")


@enum.unique
class Intent(enum.Enum):
    LIST = "List"
    CREATE = "Create"
    REPLACE_ALL = "ReplaceAll"
    DELETE_ALL = "DeleteAll"
    READ = "Read"
    UPDATE = "Update"
    DELETE = "Delete"


@enum.unique
class Format(enum.Enum):
    JSON = "json"
    HTML = "html"
    CSV = "csv"


COLLECTION_INTENTS = {
    "GET": Intent.LIST,
    "POST": Intent.CREATE,
    "PUT": Intent.REPLACE_ALL,
    "DELETE": Intent.DELETE_ALL
}

INSTANCE_INTENTS = {
    "GET": Intent.READ,
    "PUT": Intent.UPDATE,
    "DELETE": Intent.DELETE
}


class Route(pydantic.BaseModel):
    """
    Result of the classification of a request
    """

    model_config = pydantic.ConfigDict(frozen=True)

    resource: str
    identifier: Optional[str] = None
    parent: Optional[ParentReference] = None
    intent: Intent
    format: Format = Format.JSON

    @property
    def is_collection(self) -> bool:
        return self.identifier is None


class QueryOptions(pydantic.BaseModel):
    """
    Pagination, projection and filters of a request as parsed from its query string
    """

    model_config = pydantic.ConfigDict(frozen=True)

    limit: pydantic.PositiveInt
    offset: pydantic.NonNegativeInt = 0
    fields: Optional[Tuple[str, ...]] = None
    filters: Tuple[Tuple[str, str], ...] = ()


def split_format(segment: str) -> Tuple[str, Format]:
    """
    Strip a known format suffix from a path segment and return the rest together with the format
    """

    for fmt in Format:
        suffix = "." + fmt.value
        if segment.endswith(suffix) and len(segment) > len(suffix):
            return segment[:-len(suffix)], fmt
    return segment, Format.JSON


def split_path(path: str) -> List[str]:
    """
    Split a path relative to the API version prefix into its segments

    :raises MalformedPath: for empty paths, empty segments or too many segments
    """

    if not path.startswith("/"):
        path = "/" + path
    segments = path[1:].split("/")
    if any(segment == "" for segment in segments):
        raise MalformedPath(f"Path {path!r} contains empty segments (e.g. a trailing slash)")
    if len(segments) > MAXIMAL_PATH_DEPTH:
        raise MalformedPath(
            f"Path {path!r} is too deep: only 'resource', 'resource/identifier' "
            f"and 'resource/identifier/resource' are supported"
        )
    return segments


def _check_resource(name: str, registry: ResourceRegistry):
    if not registry.is_well_formed(name):
        raise MalformedPath(f"Resource name {name!r} must consist of lowercase letters, digits, '-' and '_'")
    if not registry.is_known(name):
        raise UnknownResource(name)
    if not registry.is_plural(name):
        raise MalformedPath(f"Resource name {name!r} must be a plural noun")


def _check_identifier(identifier: str):
    if not IDENTIFIER_PATTERN.match(identifier):
        raise MalformedPath(f"Identifier {identifier!r} contains unsupported characters")


def classify(method: str, path: str, registry: Optional[ResourceRegistry] = None) -> Route:
    """
    Classify a request by its method and path into a resource, instance and intent

    :param method: HTTP verb of the request
    :param path: path of the request relative to the API version prefix
    :param registry: optional registry of resource definitions (open mode if omitted)
    :return: frozen route object describing the request
    :raises MalformedPath: when the path doesn't follow the supported URL patterns
    :raises UnknownResource: when the registry doesn't know a resource of the path
    :raises MethodNotSupported: when the HTTP verb has no meaning for the path
    """

    registry = registry or ResourceRegistry()
    method = method.upper()
    segments = split_path(path)
    segments[-1], fmt = split_format(segments[-1])

    resource = segments[0]
    _check_resource(resource, registry)

    if len(segments) == 1:
        if method not in COLLECTION_INTENTS:
            raise MethodNotSupported(method, path)
        return Route(resource=resource, intent=COLLECTION_INTENTS[method], format=fmt)

    identifier = segments[1]
    _check_identifier(identifier)

    if len(segments) == 2:
        if method == "POST":
            subresource = registry.default_subresource_of(resource)
            if subresource is None:
                raise MethodNotSupported(method, path)
            _check_resource(subresource, registry)
            return Route(
                resource=subresource,
                parent=ParentReference(resource, identifier),
                intent=Intent.CREATE,
                format=fmt
            )
        if method not in INSTANCE_INTENTS:
            raise MethodNotSupported(method, path)
        return Route(resource=resource, identifier=identifier, intent=INSTANCE_INTENTS[method], format=fmt)

    subresource = segments[2]
    _check_resource(subresource, registry)
    if not registry.may_nest(subresource, resource):
        raise UnknownResource(subresource, f"Resource {subresource!r} is no sub-collection of {resource!r}")
    if method not in COLLECTION_INTENTS:
        raise MethodNotSupported(method, path)
    return Route(
        resource=subresource,
        parent=ParentReference(resource, identifier),
        intent=COLLECTION_INTENTS[method],
        format=fmt
    )


def _parse_int(params: Mapping[str, str], key: str, default: int) -> int:
    value = params.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise MalformedQuery(f"Query parameter {key!r} must be an integer, got {value!r}") from None


def parse_query(params: Mapping[str, str], general: Optional[GeneralConfig] = None) -> QueryOptions:
    """
    Parse the query parameters of a request into pagination, projection and filters

    :param params: mapping of query parameters (the last value wins for repeated keys)
    :param general: general config holding the default and maximal limits
    :return: frozen query options
    :raises MalformedQuery: when any of the reserved parameters is invalid
    """

    general = general or GeneralConfig()
    limit = _parse_int(params, "limit", general.default_limit)
    offset = _parse_int(params, "offset", 0)
    if limit < 1 or limit > general.max_limit:
        raise MalformedQuery(f"Query parameter 'limit' must be between 1 and {general.max_limit}, got {limit}")
    if offset < 0:
        raise MalformedQuery(f"Query parameter 'offset' must not be negative, got {offset}")

    fields = None
    if params.get("fields") is not None:
        fields = tuple(field.strip() for field in params["fields"].split(","))
        if any(field == "" for field in fields):
            raise MalformedQuery(f"Query parameter 'fields' contains empty field names: {params['fields']!r}")

    filters = tuple((k, v) for k, v in params.items() if k not in RESERVED_QUERY_PARAMETERS)
    return QueryOptions(limit=limit, offset=offset, fields=fields, filters=filters)
