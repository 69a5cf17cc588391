"""Dotted field-path access on the pydantic document models.

Paths use the python attribute names, e.g. ``postgres.primary.ip``.
"""
import typing
from typing import Any, Optional, Type

from pydantic import BaseModel


class FieldPathError(AttributeError):
    """Raised when a field path does not resolve on a document."""
    pass


def is_empty(value: Any) -> bool:
    """Zero-value check: None, "", 0, False, empty containers, or an all-empty model."""
    if value is None:
        return True
    if isinstance(value, BaseModel):
        return all(is_empty(getattr(value, name)) for name in type(value).model_fields)
    if isinstance(value, (str, bytes, int, float, list, tuple, dict, set)):
        return not value
    return False


def _model_type(annotation: Any) -> Optional[Type[BaseModel]]:
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    for arg in typing.get_args(annotation):
        found = _model_type(arg)
        if found is not None:
            return found
    return None


def _check(obj: Any, name: str, path: str) -> None:
    if not isinstance(obj, BaseModel) or name not in type(obj).model_fields:
        raise FieldPathError(f"unknown field '{name}' in path '{path}'")


def get_field(obj: BaseModel, path: str) -> Any:
    """Resolve ``path`` on ``obj``; a missing optional section resolves to None."""
    current = obj
    for name in path.split("."):
        if current is None:
            return None
        _check(current, name, path)
        current = getattr(current, name)
    return current


def set_field(obj: BaseModel, path: str, value: Any, create: bool = True) -> None:
    """Assign ``value`` at ``path``, creating missing optional sections when ``create``."""
    *parents, leaf = path.split(".")
    current = obj
    for name in parents:
        _check(current, name, path)
        child = getattr(current, name)
        if child is None:
            model = _model_type(type(current).model_fields[name].annotation)
            if not create or model is None:
                raise FieldPathError(f"section '{name}' of path '{path}' is not set")
            child = model()
            setattr(current, name, child)
        current = child
    _check(current, leaf, path)
    setattr(current, leaf, value)
