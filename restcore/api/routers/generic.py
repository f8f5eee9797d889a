"""
restcore router module generic functionalities
"""

import datetime

from fastapi import Depends

from ._router import router
from ..base import startup
from ..dependency import LocalRequestData, MinimalRequestData
from .. import envelope, versioning
from ... import schemas
from ...schemas import config
from ...version import PROJECT_VERSION_INFO


@router.get("/health", tags=["Generic"], response_model=dict)
@versioning.versions(minimal=1)
async def verify_running_backend(_: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Return 200 OK with an empty object as body to only verify that the service and the middlewares work
    """

    return {}


@router.get("/status", tags=["Generic"], response_model=schemas.Status)
@versioning.versions(minimal=1)
async def get_status(local: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Return some information about the current status of the server and the API version in use
    """

    now = datetime.datetime.now()
    return schemas.Status(
        startup=int(startup),
        api_version=getattr(local.request.app.state, "api_version", 1),
        project_version=schemas.VersionInfo(**PROJECT_VERSION_INFO._asdict()),
        localtime=now,
        timestamp=int(now.timestamp())
    )


@router.get("/settings", tags=["Generic"], response_model=config.GeneralConfig)
@versioning.versions(minimal=1)
async def get_settings(local: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Return the general settings which directly affect the handling of requests (e.g. the default limit)
    """

    return local.config.general


@router.get("/resources", tags=["Generic"], response_model=schemas.Envelope)
@versioning.versions(minimal=2)
async def get_resources(local: LocalRequestData = Depends(LocalRequestData)):
    """
    Return an envelope with all known resources: the declared ones and those holding instances.

    Each result contains the `name` of the resource, the `count` of its
    instances and the flag `declared` whether it's part of the configuration.
    """

    counts = local.store.resources()
    names = local.registry.names + sorted(name for name in counts if name not in local.registry.names)
    results = [
        schemas.ResourceSummary(
            name=name,
            count=counts.get(name, 0),
            declared=local.registry.get(name) is not None,
            description=getattr(local.registry.get(name), "description", None)
        ).model_dump()
        for name in names
    ]
    return envelope.format_collection(results, len(results), 0, len(results))
