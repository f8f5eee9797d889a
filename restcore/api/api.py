"""
Combined restcore REST API definitions

This API provides multiple versions of its endpoints below the URL base
`/api/v{N}`. Take a look into the different API definitions to see which
functionality they provide. The endpoint `/versions` lists all of them.

The root path `/` only redirects to the documentation in `/docs` and
is no part of the API, which answers with status codes `200`, `400` and
`500` only. Below the version prefixes, `/` is an unknown endpoint.
"""

import logging.config
import contextlib
from typing import Any, Callable, Dict, Optional, Type, Union

import fastapi

from . import base, versioning
from .routers import router
from .. import schemas, __version__
from ..persistence import database
from ..persistence.access import DataAccess
from ..persistence.store import DatabaseStore
from ..registry import ResourceRegistry
from ..settings import Settings
from ..version import API_VERSIONS


LICENSE_INFO = {
    "name": "GNU General Public License v3",
    "url": "https://www.gnu.org/licenses/gpl-3.0.html"
}


API_DOC = """restcore REST API definition version {version}

This API serves collections of resources below plural nouns, e.g. `/magazines`.
Every collection resource supports the following verbs:

* `GET /magazines` lists the instances of the collection
* `POST /magazines` creates one new instance (JSON object) or multiple new instances (JSON array)
* `PUT /magazines` replaces all instances of the collection by the instances of the JSON array
* `DELETE /magazines` deletes all (matching) instances of the collection

Every instance resource supports the following verbs:

* `GET /magazines/1234` reads the instance with all its properties
* `PUT /magazines/1234` replaces all properties of the instance (or creates it if it doesn't exist)
* `DELETE /magazines/1234` deletes the instance

Instances may hold sub-collections, e.g. `/magazines/1234/articles`, which
support the same verbs as collection resources. Paths deeper than that are
rejected. Identifiers are always strings.

Collections are always returned in an envelope with the total number of matching
instances (`count`), the number of skipped instances (`offset`) and the maximal
number of returned instances (`limit`). Use the query parameters `limit` and
`offset` for pagination, the query parameter `fields` with a comma-separated list
of property names to select properties and any other query parameter to filter
the instances by their properties. Append `.json`, `.csv` or `.html` to the last
path segment to select the representation of the response. Label-like properties
(e.g. `tags`) are always arrays of `{{id, name}}` objects.

The API only uses three status codes. Successful requests return `200` (OK).
Any problem of the request (e.g. a malformed path, an unknown identifier or
invalid data) returns `400` (Bad Request), while problems of the server return
`500` (Internal Server Error). All error responses use the `APIError` schema,
which carries a `developerMessage`, an optional `userMessage`, a stable
`errorCode` and a link with `moreInfo` about the error code.
"""

API_V2_DOC_ADDITION = """
Version 2 adds the endpoint `GET /resources` to discover all known resources.
"""


def _make_app(
        title: str,
        version: str,
        description: str,
        license_info: Optional[Dict[str, str]] = None,
        exception_handlers: Optional[Dict[Any, Callable]] = None,
        root_redirect: bool = True,
        responses: Optional[Dict[Union[int, str], Dict[str, Any]]] = None,
        api_class: Optional[Type[fastapi.FastAPI]] = None,
        **kwargs
) -> fastapi.FastAPI:
    if api_class is None:
        api_class = fastapi.FastAPI
    app = api_class(
        title=title,
        version=version,
        description=description,
        license_info=license_info or LICENSE_INFO,
        responses=responses or {400: {"model": schemas.APIError}, 500: {"model": schemas.APIError}},
        **kwargs
    )

    handlers = exception_handlers or base.DEFAULT_EXCEPTION_HANDLERS
    for exc in handlers:
        app.add_exception_handler(exc, handlers[exc])

    if root_redirect:
        @app.get("/", include_in_schema=False)
        async def redirect_root():
            return fastapi.responses.RedirectResponse("./docs")

    return app


def create_app(
        settings: Optional[Settings] = None,
        store: Optional[DataAccess] = None,
        configure_logging: bool = True,
        configure_database: bool = True
) -> fastapi.FastAPI:
    """
    Create a new ``FastAPI`` instance using the specified settings and switches

    This function is conveniently used to allow overwriting the settings
    before launching the application as well as to allow multiple ``FastAPI``
    instances in one program, which in turn makes unit testing much easier.

    :param settings: optional Settings instance (would be created if not present)
    :param store: optional data access collaborator (defaults to the database store)
    :param configure_logging: switch whether to configure logging
    :param configure_database: switch whether to configure the database
    :return: new ``FastAPI`` instance
    """

    if settings is None:
        settings = Settings()

    if configure_logging:
        logging.config.dictConfig(settings.logging.model_dump())
    logger = logging.getLogger(__name__)
    logger.debug("Starting application...")

    if configure_database:
        database.init(settings.database.connection, settings.database.debug_sql)

    registry = ResourceRegistry.from_config(settings)
    if store is None:
        store = DatabaseStore(registry, logging.getLogger("restcore.store"))
    if registry.strict:
        logger.info(f"Serving the declared resources: {', '.join(registry.names)}")
    else:
        logger.info("No resources declared, serving any plural resource name")

    @contextlib.asynccontextmanager
    async def lifespan(_: fastapi.FastAPI):
        logger.info("Starting API...")
        yield
        logger.info("Shutting down...")

    apis = {
        v: _make_app(
            title=f"restcore REST API v{v}",
            version=__version__,
            description=API_DOC.format(version=v) + (API_V2_DOC_ADDITION if v >= 2 else ""),
            root_redirect=False,
            api_class=base.APIWithoutValidationError,
            redirect_slashes=False
        )
        for v in API_VERSIONS
    }

    servers = None
    if settings.server.public_base_url is not None:
        servers = [{"url": str(settings.server.public_base_url)}]

    app = _make_app(
        title="restcore REST API",
        version=__version__,
        description=__doc__,
        servers=servers,
        apis=apis,
        logger=logger,
        lifespan=lifespan,
        api_class=versioning.VersionedFastAPI
    )

    assert isinstance(app, versioning.VersionedFastAPI), "'VersionedFastAPI' instance required"
    app.add_router(router)
    app.share_state(settings=settings, registry=registry, store=store)
    for api_version, api in apis.items():
        api.state.api_version = api_version

    app.finish()
    return app


class APIWrapper:
    """
    Wrapper class around the FastAPI main object, accessible via the ``app`` property

    There should be only one global instance of this object, which should only
    export its functionality to hold the ``app`` property. This wrapper can be
    used to allow easy command-line usage via ``uvicorn`` calls. Example:

    .. code-block::

        uvicorn restcore.api:api.app
    """

    def __init__(self):
        self._app: Optional[fastapi.FastAPI] = None

    def get_app(self) -> fastapi.FastAPI:
        return self.app

    def set_app(self, application: fastapi.FastAPI):
        if not isinstance(application, fastapi.FastAPI):
            raise TypeError
        self._app = application

    @property
    def app(self) -> fastapi.FastAPI:
        """
        Return the ``app`` instance (or create it with default settings if it doesn't exist)
        """

        if self._app is not None:
            return self._app
        self._app = create_app()
        return self._app


api = APIWrapper()
