"""
restcore schemas for resource instances and their envelopes

Any instance of any resource is represented by the ``Instance`` schema,
which only requires the ``id`` field but allows arbitrary other properties.
Collections of instances are always wrapped in the ``Envelope`` schema.
"""

from typing import Any, List, Optional

import pydantic


class Label(pydantic.BaseModel):
    """
    Label-like sub-entity (e.g. a tag) which is always part of an array, never an object key
    """

    id: pydantic.constr(min_length=1, max_length=255)
    name: str


class Instance(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="allow")

    id: pydantic.constr(min_length=1, max_length=255)


class ResultSet(pydantic.BaseModel):
    count: pydantic.NonNegativeInt
    offset: pydantic.NonNegativeInt
    limit: pydantic.NonNegativeInt


class Metadata(pydantic.BaseModel):
    resultset: ResultSet


class Envelope(pydantic.BaseModel):
    metadata: Metadata
    results: List[Any]


class CreatedInstance(pydantic.BaseModel):
    id: pydantic.constr(min_length=1, max_length=255)


class DeletedInstances(pydantic.BaseModel):
    count: pydantic.NonNegativeInt


class ResourceSummary(pydantic.BaseModel):
    name: pydantic.constr(min_length=1, max_length=255)
    count: pydantic.NonNegativeInt
    declared: bool
    description: Optional[str] = None
