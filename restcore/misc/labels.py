"""
restcore helpers for label-like sub-entities

Labels (e.g. tags) are always represented as arrays of ``{id, name}``
objects. A value is never encoded as object key, so the representation
``{"1": "red", "2": "blue"}`` is converted into
``[{"id": "1", "name": "red"}, {"id": "2", "name": "blue"}]``.
"""

from typing import Any, Dict, List

from ..schemas import Label


def to_label(element: Any) -> Dict[str, str]:
    """
    Convert a single label representation into a ``{id, name}`` object

    :param element: plain string (used as ID and name) or a mapping with an ``id``
        and an optional ``name`` field (the ID will be used as name if omitted)
    :return: new dictionary with the string keys ``id`` and ``name``
    :raises ValueError: when the element can't be understood as a label
    """

    if isinstance(element, bool):
        raise ValueError(f"Can't use {element!r} as label")
    if isinstance(element, (str, int)):
        if str(element) == "":
            raise ValueError("Empty labels are not allowed")
        return Label(id=str(element), name=str(element)).model_dump()
    if isinstance(element, dict):
        if element.get("id") is None or str(element["id"]) == "":
            raise ValueError(f"Label {element!r} has no 'id'")
        if set(element.keys()) - {"id", "name"}:
            raise ValueError(f"Label {element!r} has unexpected keys besides 'id' and 'name'")
        name = element.get("name")
        return Label(id=str(element["id"]), name=str(element["id"] if name is None else name)).model_dump()
    raise ValueError(f"Can't use {element!r} ({type(element).__name__}) as label")


def normalize_labels(value: Any) -> List[Dict[str, str]]:
    """
    Convert a label-like property value into an array of ``{id, name}`` objects

    Mappings from label IDs to names are converted into arrays, too.

    :raises ValueError: when the value or any of its elements can't be understood as labels
    """

    if isinstance(value, dict):
        if "id" in value:
            return [to_label(value)]
        return [to_label({"id": k, "name": v}) for k, v in value.items()]
    if not isinstance(value, (list, tuple)):
        raise ValueError(f"Expected an array of labels, got {type(value).__name__}")
    return [to_label(element) for element in value]
