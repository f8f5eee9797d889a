"""
restcore API dependency library
"""

from typing import Dict

from fastapi import Request

from . import base
from ..persistence.access import DataAccess
from ..registry import ResourceRegistry
from ..settings import Settings


class MinimalRequestData:
    """
    Collection of minimal dependencies used only for internal functionalities
    """

    def __init__(self, request: Request):
        self.request = request

    @property
    def config(self) -> Settings:
        settings = getattr(self.request.app.state, "settings", None)
        if settings is None:
            settings = Settings()
            self.request.app.state.settings = settings
        return settings


class LocalRequestData(MinimalRequestData):
    """
    Collection of core dependencies used by all resource path operations

    This class stores references to the objects that will almost certainly
    be used by request handlers (path operations): the settings, the
    registry of resource definitions and the data access collaborator.
    Note that any dependency added here will be added to the OpenAPI
    definition, if it refers to a Query, Header, Path or Cookie.
    """

    def __init__(self, request: Request):
        super().__init__(request)
        self.store: DataAccess = self._from_state("store")
        self.registry: ResourceRegistry = self._from_state("registry")

    def _from_state(self, name: str):
        value = getattr(self.request.app.state, name, None)
        if value is None:
            raise base.InternalServerException(
                "The server has not been set up correctly.",
                f"Application state {name!r} is missing"
            )
        return value

    @property
    def query_params(self) -> Dict[str, str]:
        return dict(self.request.query_params)
