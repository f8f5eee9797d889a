"""
restcore API library to serve several API versions side by side

Every path operation is annotated with the first API version serving it,
using the ``versions`` decorator. The ``VersionedFastAPI`` then builds
one sub-application per API version and mounts it below its version
prefix (``/api/v1``, ``/api/v2``, ...). A path operation is part of every
API version starting with its annotated version, so older versions stay
servable while newer versions add endpoints.
"""

import logging
from typing import Any, Callable, Dict, Optional

import fastapi
import fastapi.routing

from .. import schemas


DEFAULT_VERSION_FORMAT = "/api/v{}"

MINIMAL_VERSION_ANNOTATION_NAME = "_minimal_api_version"


def versions(minimal: int) -> Callable[[Callable], Callable]:
    """
    Decorate a path operation function with the first API version that should serve it

    :param minimal: minimal version of APIs that should include the decorated path operation
    :return: decorator to use on a path operation function
    """

    if not isinstance(minimal, int) or isinstance(minimal, bool):
        raise TypeError(f"Expected int, got {type(minimal)!r}")
    if minimal < 1:
        raise ValueError(f"API versions start at 1, got {minimal}")

    def decorator(func: Callable) -> Callable:
        assert not hasattr(func, MINIMAL_VERSION_ANNOTATION_NAME), "'versions' can't be used twice"
        setattr(func, MINIMAL_VERSION_ANNOTATION_NAME, minimal)
        return func

    return decorator


class VersionedFastAPI(fastapi.FastAPI):
    """
    Specialized FastAPI adding support for multiple versioned sub-APIs

    Use this class as in-place replacement for the FastAPI class. The
    constructor requires the ``apis`` parameter which maps the API versions
    to the sub-applications that will be mounted during ``finish``.

    To add a new router to the API, use ``add_router`` instead of
    ``include_router``, since the latter would ignore the versioning.
    After adding all the routers, call ``finish`` once to mount the
    sub-APIs with all path operations annotated for their version.

    .. code-block::

        app = VersionedFastAPI(
            apis={
                1: FastAPI(title="API v1"),
                2: FastAPI(title="API v2")
            },
            title="API"
        )
        app.add_router(...)
        app.share_state(settings=...)
        app.finish()
    """

    def __init__(
            self,
            apis: Dict[int, fastapi.FastAPI],
            *args,
            version_format: str = DEFAULT_VERSION_FORMAT,
            logger: Optional[logging.Logger] = None,
            **kwargs
    ):
        assert version_format.count("{}") == 1, "Version format string must contain '{}' once"
        super().__init__(*args, **kwargs)
        self._apis = apis
        self._version_format = version_format
        self._logger = logger or logging.getLogger(__name__)
        self._finished = False

    @property
    def latest(self) -> int:
        return max(self._apis.keys())

    def prefix(self, api_version: int) -> str:
        return self._version_format.format(api_version)

    def share_state(self, **kwargs: Any):
        """
        Store the given values in the ``state`` of this application and all its sub-APIs
        """

        for key, value in kwargs.items():
            setattr(self.state, key, value)
            for api in self._apis.values():
                setattr(api.state, key, value)

    def finish(self):
        """
        Mount the sub-APIs once and add the ``/versions`` endpoint listing them
        """

        if self._finished:
            return

        for api_version, api in self._apis.items():
            prefix = self.prefix(api_version)
            self.mount(prefix, api)
            self._logger.debug(f"Mounted API version {api_version} at {prefix!r}")

        @self.get("/versions", response_model=schemas.Versions, tags=["Miscellaneous"])
        async def get_version_info():
            """
            Return the list of all API versions served by this application and their URL prefixes
            """

            return schemas.Versions(
                latest=self.latest,
                versions=[{"version": v, "prefix": self.prefix(v)} for v in sorted(self._apis.keys())]
            )

        self._finished = True

    def add_router(self, router: fastapi.APIRouter, **kwargs):
        """
        Add the routes of the router to every sub-API at least as new as their annotated version

        Routes without annotation are only served by the latest API version.

        :param router: APIRouter carrying all routes that should be filtered and added
        :param kwargs: optional keyword arguments for the ``include_router`` method of the sub-APIs
        :raises TypeError: when the annotated version of an endpoint is no integer
        """

        if self._finished:
            raise RuntimeError("Can't add new routers after the API has been finally built")

        minimal_versions = {}
        for route in router.routes:
            endpoint = getattr(route, "endpoint", None)
            if not isinstance(route, fastapi.routing.APIRoute) or endpoint is None:
                self._logger.error(f"Route {route!r} is no 'APIRoute' with an endpoint! Skipping.")
                continue

            if not hasattr(endpoint, MINIMAL_VERSION_ANNOTATION_NAME):
                self._logger.warning(
                    f"Route {route.path!r} has no annotated version! It will "
                    f"therefore only be served by API version {self.latest}."
                )
            min_version = getattr(endpoint, MINIMAL_VERSION_ANNOTATION_NAME, self.latest)
            if not isinstance(min_version, int):
                raise TypeError(f"Min version annotation {min_version!r} is no integer!")
            minimal_versions[id(route)] = min_version

        kwargs.pop("prefix", None)
        for api_version, api in self._apis.items():
            api.include_router(
                fastapi.APIRouter(
                    default_response_class=router.default_response_class,
                    routes=[r for r in router.routes if minimal_versions.get(id(r), api_version + 1) <= api_version]
                ),
                **kwargs
            )
