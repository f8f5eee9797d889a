"""
restcore database models
"""

import datetime
from typing import Any, Dict, Optional

from sqlalchemy import (
    DateTime, Integer, JSON, String,
    Column, FetchedValue, Index, UniqueConstraint
)
from sqlalchemy.sql import func

from .database import Base
from .. import schemas


class Record(Base):
    """
    Model representing one instance of an arbitrary resource collection

    The properties of the instance are stored as a JSON document. An
    instance may belong to a parent instance of another resource,
    which makes it a member of the parent's sub-collection.
    """

    __tablename__ = "records"

    pk: int = Column(Integer, nullable=False, primary_key=True, autoincrement=True, unique=True)
    resource: str = Column(String(255), nullable=False)
    identifier: str = Column(String(255), nullable=True)
    """Opaque identifier of the instance, unique within its resource collection"""
    parent_resource: Optional[str] = Column(String(255), nullable=True)
    parent_identifier: Optional[str] = Column(String(255), nullable=True)
    properties: Dict[str, Any] = Column(JSON, nullable=False, default=dict)
    created: datetime.datetime = Column(DateTime, server_default=func.now())
    modified: datetime.datetime = Column(DateTime, server_onupdate=FetchedValue(), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("resource", "identifier", name="single_identifier_per_resource"),
        Index("parent_lookup", "parent_resource", "parent_identifier"),
    )

    @property
    def schema(self) -> schemas.Instance:
        """
        Pydantic schema representation of the database model that can be sent to clients
        """

        return schemas.Instance(id=self.identifier, **{k: v for k, v in self.properties.items() if k != "id"})

    def __repr__(self) -> str:
        return f"Record(resource={self.resource!r}, identifier={self.identifier!r})"
