"""
restcore data access interface

The API never touches stored data itself. Every path operation delegates
to an implementation of the ``DataAccess`` interface (the "collaborator"),
which may raise the exceptions of this module to signal problems. Any
other exception raised by a collaborator is treated as an internal failure.
"""

import abc
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from .. import schemas


class ParentReference(NamedTuple):
    """
    Reference to the instance owning a sub-collection, e.g. ``magazines/1234``
    """

    resource: str
    identifier: str

    def __str__(self) -> str:
        return f"{self.resource}/{self.identifier}"


class AccessError(Exception):
    """
    Base class for all exceptions raised by data access collaborators
    """


class RecordNotFound(AccessError):
    """
    Exception when an addressed instance (or the parent of a sub-collection) doesn't exist
    """

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource}/{identifier}")
        self.resource = resource
        self.identifier = identifier


class RecordValidationError(AccessError):
    """
    Exception when a submitted representation can't be accepted for a resource
    """

    def __init__(self, resource: str, message: str):
        super().__init__(message)
        self.resource = resource
        self.message = message


class StorageError(AccessError):
    """
    Exception when the underlying storage failed to perform an operation
    """


class DataAccess(abc.ABC):
    """
    Interface of the data access collaborator used by the resource path operations

    Identifiers are opaque strings. The ``filters`` arguments map property
    names to the expected values as received in the query string.
    """

    @abc.abstractmethod
    def list(
            self,
            resource: str,
            filters: Dict[str, str],
            limit: int,
            offset: int,
            parent: Optional[ParentReference] = None
    ) -> Tuple[List[schemas.Instance], int]:
        """
        Return a window of the matching instances and the total number of matching instances

        :raises RecordNotFound: when the parent of a sub-collection doesn't exist
        """

    @abc.abstractmethod
    def read(self, resource: str, identifier: str) -> schemas.Instance:
        """
        :raises RecordNotFound: when the instance doesn't exist
        """

    @abc.abstractmethod
    def exists(self, resource: str, identifier: str) -> bool:
        pass

    @abc.abstractmethod
    def create(
            self,
            resource: str,
            body: Any,
            parent: Optional[ParentReference] = None,
            identifier: Optional[str] = None
    ) -> str:
        """
        Create a new instance and return its identifier (a given identifier is used as is)

        :raises RecordValidationError: when the body can't be accepted
        :raises RecordNotFound: when the parent of a sub-collection doesn't exist
        """

    def create_many(
            self,
            resource: str,
            bodies: List[Any],
            parent: Optional[ParentReference] = None
    ) -> List[str]:
        """
        Create multiple new instances and return their identifiers in the order of the bodies

        Implementations should override this method to create all instances
        atomically, the default implementation just creates them one by one.
        """

        return [self.create(resource, body, parent) for body in bodies]

    @abc.abstractmethod
    def update(self, resource: str, identifier: str, body: Any):
        """
        Replace all properties of an existing instance

        :raises RecordNotFound: when the instance doesn't exist
        :raises RecordValidationError: when the body can't be accepted
        """

    @abc.abstractmethod
    def delete(self, resource: str, identifier: str):
        """
        Delete an existing instance together with all members of its sub-collections

        :raises RecordNotFound: when the instance doesn't exist
        """

    @abc.abstractmethod
    def replace_all(
            self,
            resource: str,
            bodies: List[Any],
            parent: Optional[ParentReference] = None
    ) -> List[str]:
        """
        Atomically replace all instances of a (sub-)collection and return the new identifiers

        :raises RecordValidationError: when any of the bodies can't be accepted
        :raises RecordNotFound: when the parent of a sub-collection doesn't exist
        """

    @abc.abstractmethod
    def delete_all(
            self,
            resource: str,
            filters: Dict[str, str],
            parent: Optional[ParentReference] = None
    ) -> int:
        """
        Delete all matching instances of a (sub-)collection and return their number

        :raises RecordNotFound: when the parent of a sub-collection doesn't exist
        """

    @abc.abstractmethod
    def resources(self) -> Dict[str, int]:
        """
        Return the names of all resources holding instances together with their number of instances
        """
