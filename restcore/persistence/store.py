"""
restcore data access collaborator backed by a SQL database
"""

import secrets
import logging
import contextlib
from typing import Any, Dict, Iterator, List, Optional, Tuple

import sqlalchemy
import sqlalchemy.exc
from sqlalchemy.orm import Session

from . import database
from .access import (
    DataAccess, ParentReference,
    RecordNotFound, RecordValidationError, StorageError
)
from .models import Record
from .. import schemas
from ..misc.labels import normalize_labels
from ..misc.logger import enforce_logger
from ..registry import ResourceRegistry
from ..schemas.config import IDENTIFIER_PATTERN


def matches(value: Any, expected: str) -> bool:
    """
    Determine whether a property value matches the expected value of a query string filter

    Booleans are compared case-insensitively, ``null`` matches missing values,
    arrays match when any element matches and labels match by ID or name.
    """

    if isinstance(value, bool):
        return expected.lower() == str(value).lower()
    if value is None:
        return expected.lower() in ("", "null")
    if isinstance(value, (int, float, str)):
        return str(value) == expected
    if isinstance(value, list):
        return any(matches(v, expected) for v in value)
    if isinstance(value, dict):
        return any(key in value and str(value[key]) == expected for key in ("id", "name"))
    return False


def matches_all(instance: schemas.Instance, filters: Dict[str, str]) -> bool:
    values = instance.model_dump()
    return all(matches(values.get(key), expected) for key, expected in filters.items())


class DatabaseStore(DataAccess):
    """
    Data access collaborator storing every instance as one ``Record`` row

    The database bindings in the ``database`` module must have been
    initialized before using any of the methods of a store.
    """

    def __init__(self, registry: Optional[ResourceRegistry] = None, logger: Optional[logging.Logger] = None):
        self.registry = registry or ResourceRegistry()
        self.logger = enforce_logger(logger)

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        session = database.get_new_session()
        try:
            yield session
            session.commit()
        except sqlalchemy.exc.SQLAlchemyError as exc:
            self.logger.exception(f"{type(exc).__name__}: {exc}")
            session.rollback()
            raise StorageError(f"{type(exc).__name__}: {exc}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _find(session: Session, resource: str, identifier: str) -> Optional[Record]:
        return session.query(Record).filter_by(resource=resource, identifier=identifier).first()

    def _get(self, session: Session, resource: str, identifier: str) -> Record:
        record = self._find(session, resource, identifier)
        if record is None:
            raise RecordNotFound(resource, identifier)
        return record

    def _scope(self, session: Session, resource: str, parent: Optional[ParentReference]) -> sqlalchemy.orm.Query:
        query = session.query(Record).filter_by(resource=resource)
        if parent is not None:
            self._get(session, parent.resource, parent.identifier)
            query = query.filter_by(parent_resource=parent.resource, parent_identifier=parent.identifier)
        return query.order_by(Record.pk)

    def _validate(self, resource: str, body: Any, identifier: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate the body of a creation or update and return the properties to be stored

        :raises RecordValidationError: when the body can't be accepted for the resource
        """

        if not isinstance(body, dict):
            raise RecordValidationError(resource, f"Expected a JSON object, got {type(body).__name__}")
        properties = dict(body)

        if "id" in properties:
            given = properties.pop("id")
            if identifier is None:
                raise RecordValidationError(resource, "The 'id' of new instances is assigned by the server")
            if str(given) != identifier:
                raise RecordValidationError(resource, f"The 'id' {given!r} doesn't match the addressed {identifier!r}")

        if identifier is not None and not IDENTIFIER_PATTERN.match(identifier):
            raise RecordValidationError(resource, f"The identifier {identifier!r} contains invalid characters")
        if any(key == "" for key in properties):
            raise RecordValidationError(resource, "Empty property names are not allowed")

        missing = [key for key in self.registry.required_of(resource) if properties.get(key) is None]
        if missing:
            raise RecordValidationError(resource, f"Missing required properties: {', '.join(missing)}")

        for field in self.registry.labels_of(resource):
            value = properties.get(field)
            if value is None:
                continue
            if isinstance(value, dict):
                raise RecordValidationError(
                    resource,
                    f"Property {field!r} must be an array of {{id, name}} objects, not an object"
                )
            try:
                properties[field] = normalize_labels(value)
            except ValueError as exc:
                raise RecordValidationError(resource, f"Property {field!r}: {exc}") from exc

        return properties

    def _insert(
            self,
            session: Session,
            resource: str,
            properties: Dict[str, Any],
            parent: Optional[ParentReference],
            identifier: Optional[str]
    ) -> Record:
        if identifier is not None and self._find(session, resource, identifier) is not None:
            raise RecordValidationError(resource, f"The identifier {identifier!r} is already in use")

        record = Record(
            resource=resource,
            identifier=identifier,
            parent_resource=parent and parent.resource,
            parent_identifier=parent and parent.identifier,
            properties=properties
        )
        session.add(record)
        session.flush()

        if identifier is None:
            candidate = str(record.pk)
            if self._find(session, resource, candidate) is not None:
                candidate = f"{record.pk}-{secrets.token_hex(4)}"
            record.identifier = candidate
            session.flush()
        return record

    def _remove(self, session: Session, records: List[Record]) -> int:
        pending = list(records)
        while pending:
            record = pending.pop()
            pending.extend(session.query(Record).filter_by(
                parent_resource=record.resource,
                parent_identifier=record.identifier
            ).all())
            self.logger.debug(f"Deleting model {record!r}...")
            session.delete(record)
        session.flush()
        return len(records)

    def list(
            self,
            resource: str,
            filters: Dict[str, str],
            limit: int,
            offset: int,
            parent: Optional[ParentReference] = None
    ) -> Tuple[List[schemas.Instance], int]:
        with self._session() as session:
            results = [record.schema for record in self._scope(session, resource, parent).all()]
        if filters:
            results = [instance for instance in results if matches_all(instance, filters)]
        return results[offset:offset+limit], len(results)

    def read(self, resource: str, identifier: str) -> schemas.Instance:
        with self._session() as session:
            return self._get(session, resource, identifier).schema

    def exists(self, resource: str, identifier: str) -> bool:
        with self._session() as session:
            return self._find(session, resource, identifier) is not None

    def create(
            self,
            resource: str,
            body: Any,
            parent: Optional[ParentReference] = None,
            identifier: Optional[str] = None
    ) -> str:
        properties = self._validate(resource, body, identifier)
        with self._session() as session:
            if parent is not None:
                self._get(session, parent.resource, parent.identifier)
            record = self._insert(session, resource, properties, parent, identifier)
            self.logger.debug(f"Created model {record!r}")
            return record.identifier

    def create_many(
            self,
            resource: str,
            bodies: List[Any],
            parent: Optional[ParentReference] = None
    ) -> List[str]:
        validated = [self._validate(resource, body) for body in bodies]
        with self._session() as session:
            if parent is not None:
                self._get(session, parent.resource, parent.identifier)
            return [
                self._insert(session, resource, properties, parent, None).identifier
                for properties in validated
            ]

    def update(self, resource: str, identifier: str, body: Any):
        properties = self._validate(resource, body, identifier)
        with self._session() as session:
            record = self._get(session, resource, identifier)
            record.properties = properties
            self.logger.debug(f"Updated model {record!r}")

    def delete(self, resource: str, identifier: str):
        with self._session() as session:
            self._remove(session, [self._get(session, resource, identifier)])

    def replace_all(
            self,
            resource: str,
            bodies: List[Any],
            parent: Optional[ParentReference] = None
    ) -> List[str]:
        validated = []
        for body in bodies:
            identifier = None
            if isinstance(body, dict) and body.get("id") is not None:
                identifier = str(body["id"])
            validated.append((self._validate(resource, body, identifier), identifier))

        given = [identifier for _, identifier in validated if identifier is not None]
        if len(set(given)) != len(given):
            raise RecordValidationError(resource, "The identifiers of the new instances must be unique")

        with self._session() as session:
            count = self._remove(session, self._scope(session, resource, parent).all())
            self.logger.debug(f"Replacing {count} instances of {resource!r} by {len(validated)} new instances")
            return [
                self._insert(session, resource, properties, parent, identifier).identifier
                for properties, identifier in validated
            ]

    def delete_all(
            self,
            resource: str,
            filters: Dict[str, str],
            parent: Optional[ParentReference] = None
    ) -> int:
        with self._session() as session:
            records = [
                record for record in self._scope(session, resource, parent).all()
                if matches_all(record.schema, filters)
            ]
            return self._remove(session, records)

    def resources(self) -> Dict[str, int]:
        with self._session() as session:
            rows = session.query(Record.resource, sqlalchemy.func.count(Record.pk)).group_by(Record.resource).all()
        return {name: count for name, count in rows}
