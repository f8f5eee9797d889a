"""
restcore envelope formatter

Collections are always wrapped in the same envelope, even if there are no results:

.. code-block:: json

    {
        "metadata": {
            "resultset": {
                "count": 227,
                "offset": 25,
                "limit": 10
            }
        },
        "results": [...]
    }

Single instances are returned as flat objects with all their properties.
Label-like properties are always arrays of ``{id, name}`` objects.
"""

import io
import csv
import html
import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pydantic
from fastapi.encoders import jsonable_encoder
from fastapi.responses import HTMLResponse, JSONResponse, Response

from .routing import Format
from .. import schemas
from ..misc.labels import normalize_labels


logger = logging.getLogger(__name__)

RESULTSET_HEADERS = {
    "count": "X-Resultset-Count",
    "offset": "X-Resultset-Offset",
    "limit": "X-Resultset-Limit"
}


def _as_dict(item: Any) -> Dict[str, Any]:
    if isinstance(item, pydantic.BaseModel):
        return item.model_dump()
    return dict(item)


def project(item: Dict[str, Any], fields: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    """
    Reduce an instance representation to its ``id`` and the selected fields (unknown fields are skipped)
    """

    if fields is None:
        return item
    return {k: v for k, v in item.items() if k == "id" or k in fields}


def apply_labels(item: Dict[str, Any], labels: Iterable[str] = ()) -> Dict[str, Any]:
    """
    Convert all label-like properties of an instance into arrays of ``{id, name}`` objects
    """

    result = dict(item)
    for field in labels:
        if result.get(field) is None:
            continue
        try:
            result[field] = normalize_labels(result[field])
        except ValueError as exc:
            logger.warning(f"Property {field!r} of {result.get('id')!r} isn't label-like: {exc}")
    return result


def format_instance(
        item: Any,
        fields: Optional[Sequence[str]] = None,
        labels: Iterable[str] = ()
) -> Dict[str, Any]:
    """
    Format a single instance as flat object with all its properties

    :param item: instance schema or mapping (must contain the ``id``)
    :param fields: optional list of selected properties
    :param labels: names of the label-like properties of the resource
    :return: flat representation of the instance
    """

    representation = apply_labels(_as_dict(item), labels)
    if representation.get("id") is not None:
        representation["id"] = str(representation["id"])
    return project(representation, fields)


def format_collection(
        items: Sequence[Any],
        count: int,
        offset: int,
        limit: int,
        fields: Optional[Sequence[str]] = None,
        labels: Iterable[str] = ()
) -> Dict[str, Any]:
    """
    Wrap a window of instances in the collection envelope

    :param items: instances of the current window (possibly empty)
    :param count: total number of matching instances regardless of the window
    :param offset: number of skipped instances
    :param limit: maximal number of returned instances
    :param fields: optional list of selected properties
    :param labels: names of the label-like properties of the resource
    :return: envelope with the ``metadata`` and ``results`` keys
    """

    labels = list(labels)
    envelope = schemas.Envelope(
        metadata=schemas.Metadata(resultset=schemas.ResultSet(count=count, offset=offset, limit=limit)),
        results=[format_instance(item, fields, labels) for item in items]
    )
    if envelope.metadata.resultset.count < len(envelope.results):
        logger.warning(f"Total count {count} is lower than the number of results {len(envelope.results)}")
    return envelope.model_dump()


def _rows(payload: Any, collection: bool) -> List[Dict[str, Any]]:
    if collection:
        return payload["results"]
    if isinstance(payload, list):
        return payload
    return [payload]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list) and all(isinstance(v, dict) and "name" in v for v in value):
        return ";".join(str(v["name"]) for v in value)
    if isinstance(value, (list, dict)):
        return json.dumps(value)
    return str(value)


def _columns(rows: List[Dict[str, Any]]) -> List[str]:
    columns = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)
    return columns


def render_csv(payload: Any, collection: bool = False) -> str:
    rows = _rows(jsonable_encoder(payload), collection)
    columns = _columns(rows)
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(columns)
    for row in rows:
        writer.writerow([_cell(row.get(column)) for column in columns])
    return buffer.getvalue()


def render_html(payload: Any, collection: bool = False) -> str:
    rows = _rows(jsonable_encoder(payload), collection)
    columns = _columns(rows)
    head = "".join(f"<th>{html.escape(column)}</th>" for column in columns)
    body = "".join(
        "<tr>" + "".join(f"<td>{html.escape(_cell(row.get(column)))}</td>" for column in columns) + "</tr>"
        for row in rows
    )
    return f"<!DOCTYPE html><html><body><table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table></body></html>"


def render(payload: Any, fmt: Format = Format.JSON, status_code: int = 200, collection: bool = False) -> Response:
    """
    Create the response for a payload in the requested representation

    CSV and HTML representations of collections can't carry the envelope's
    metadata, so it's added as ``X-Resultset-*`` headers to the response.
    The ``collection`` switch marks the payload as collection envelope;
    any other payload is rendered as it is, whatever its keys are.
    """

    if fmt == Format.JSON:
        return JSONResponse(jsonable_encoder(payload), status_code=status_code)

    headers = {}
    if collection:
        resultset = payload["metadata"]["resultset"]
        headers = {RESULTSET_HEADERS[k]: str(v) for k, v in resultset.items() if k in RESULTSET_HEADERS}

    if fmt == Format.CSV:
        return Response(
            render_csv(payload, collection),
            status_code=status_code,
            media_type="text/csv",
            headers=headers
        )
    return HTMLResponse(render_html(payload, collection), status_code=status_code, headers=headers)
