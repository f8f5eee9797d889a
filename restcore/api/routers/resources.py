"""
restcore router module for all resource collections and instances

The path operations of this module don't know any resource in advance.
They hand every request to the resource router, which classifies it into
a resource, an optional instance and an intent. The intent is then
performed by the data access collaborator and its result is wrapped by
the envelope formatter. Failures are handled by the exception handlers.
"""

import json
import logging
from typing import Any, Callable, List

from fastapi import Depends, Response

from ._router import router
from ..base import MalformedBody, MalformedPath
from ..dependency import LocalRequestData
from .. import envelope, routing, versioning
from ... import schemas


logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")

_RESPONSES = {
    400: {"model": schemas.APIError},
    500: {"model": schemas.APIError}
}


def _resource_route(path: str) -> Callable[[Callable], Callable]:
    """
    Register the decorated path operation for all supported methods of the given path

    Every method gets its own route to keep the operation IDs in the OpenAPI definition unique.
    """

    def decorator(func: Callable) -> Callable:
        for method in SUPPORTED_METHODS:
            router.add_api_route(
                path,
                func,
                methods=[method],
                tags=["Resources"],
                response_class=Response,
                responses=_RESPONSES,
                name=f"{func.__name__}_{method.lower()}"
            )
        return func

    return decorator


def _reject_constant(constant: str):
    raise ValueError(f"Non-standard JSON constant {constant!r} is not allowed")


async def _read_body(local: LocalRequestData) -> Any:
    content = await local.request.body()
    if not content.strip():
        raise MalformedBody("The request requires a JSON body, but the body is empty")
    try:
        return json.loads(content, parse_constant=_reject_constant)
    except ValueError as exc:
        raise MalformedBody(f"The body is no valid JSON: {exc}") from exc


async def _read_array(local: LocalRequestData) -> List[Any]:
    body = await _read_body(local)
    if not isinstance(body, list):
        raise MalformedBody(f"Expected a JSON array of objects, got {type(body).__name__}")
    return body


async def dispatch(local: LocalRequestData, path: str) -> Response:
    """
    Classify the request, let the data access collaborator perform its intent and format the result

    :param local: contextual local data
    :param path: path of the request relative to the API version prefix
    :return: response in the representation selected by the format suffix
    """

    route = routing.classify(local.request.method, path, local.registry)
    options = routing.parse_query(local.query_params, local.config.general)
    labels = local.registry.labels_of(route.resource)
    filters = dict(options.filters)
    store = local.store
    logger.debug(f"'{local.request.method} {path}' classified as {route.intent.value} of {route.resource!r}")

    if route.intent == routing.Intent.LIST:
        items, count = store.list(route.resource, filters, options.limit, options.offset, route.parent)
        payload = envelope.format_collection(items, count, options.offset, options.limit, options.fields, labels)

    elif route.intent == routing.Intent.CREATE:
        body = await _read_body(local)
        if isinstance(body, list):
            if len(body) == 0:
                raise MalformedBody("Expected at least one object in the array")
            identifiers = store.create_many(route.resource, body, route.parent)
            payload = [schemas.CreatedInstance(id=identifier).model_dump() for identifier in identifiers]
        else:
            payload = schemas.CreatedInstance(id=store.create(route.resource, body, route.parent)).model_dump()

    elif route.intent == routing.Intent.REPLACE_ALL:
        identifiers = store.replace_all(route.resource, await _read_array(local), route.parent)
        items = [store.read(route.resource, identifier) for identifier in identifiers]
        payload = envelope.format_collection(items, len(items), 0, len(items), options.fields, labels)

    elif route.intent == routing.Intent.DELETE_ALL:
        payload = schemas.DeletedInstances(count=store.delete_all(route.resource, filters, route.parent)).model_dump()

    elif route.intent == routing.Intent.READ:
        payload = envelope.format_instance(store.read(route.resource, route.identifier), options.fields, labels)

    elif route.intent == routing.Intent.UPDATE:
        body = await _read_body(local)
        if store.exists(route.resource, route.identifier):
            store.update(route.resource, route.identifier, body)
        else:
            store.create(route.resource, body, identifier=route.identifier)
        payload = envelope.format_instance(store.read(route.resource, route.identifier), options.fields, labels)

    elif route.intent == routing.Intent.DELETE:
        item = store.read(route.resource, route.identifier)
        store.delete(route.resource, route.identifier)
        payload = envelope.format_instance(item, options.fields, labels)

    else:
        raise RuntimeError(f"Unknown intent {route.intent!r}")

    is_envelope = route.intent in (routing.Intent.LIST, routing.Intent.REPLACE_ALL)
    return envelope.render(payload, route.format, collection=is_envelope)


@_resource_route("/{resource}")
@versioning.versions(minimal=1)
async def handle_collection(resource: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Handle a collection resource: `GET` lists, `POST` creates, `PUT` replaces and `DELETE` deletes instances.

    Use the query parameters `limit` and `offset` to select a window of the
    collection, `fields` to select properties and any other parameter to
    filter the instances by their properties. Append `.json`, `.csv` or
    `.html` to select the representation of the response.
    """

    return await dispatch(local, f"/{resource}")


@_resource_route("/{resource}/{identifier}")
@versioning.versions(minimal=1)
async def handle_instance(resource: str, identifier: str, local: LocalRequestData = Depends(LocalRequestData)):
    """
    Handle an instance resource: `GET` reads, `PUT` updates (or creates) and `DELETE` deletes the instance.

    A 400 error will be returned if the identifier is unknown, except
    for `PUT`, which creates the instance with the given identifier.
    """

    return await dispatch(local, f"/{resource}/{identifier}")


@_resource_route("/{resource}/{identifier}/{subresource}")
@versioning.versions(minimal=1)
async def handle_sub_collection(
        resource: str,
        identifier: str,
        subresource: str,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Handle the sub-collection of an instance, e.g. `/magazines/1234/articles`.

    The verbs have the same meaning as for collection resources, but only
    the members of the sub-collection are affected. New members can be
    addressed by their canonical URL (e.g. `/articles/5`) afterwards.
    """

    return await dispatch(local, f"/{resource}/{identifier}/{subresource}")


@_resource_route("/{resource}/{identifier}/{subresource}/{remainder:path}")
@versioning.versions(minimal=1)
async def reject_deep_path(resource: str, identifier: str, subresource: str, remainder: str):
    """
    Reject any path deeper than `resource/identifier/resource` with a 400 error.
    """

    path = f"/{resource}/{identifier}/{subresource}/{remainder}"
    routing.split_path(path)
    raise MalformedPath(f"Path {path!r} is not supported")
