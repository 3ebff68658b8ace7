"""
Runtime argument checking for libforge.

Annotated parameters of decorated functions are checked on every call, but
only while running under pytest; in normal use the decorators return their
target unchanged and cost nothing.
"""

import functools
import inspect
import sys
import types
from pathlib import Path
from typing import get_type_hints, get_origin, get_args, Union


# Enabled whenever pytest has been imported before libforge
TYPECHECK_ENABLED = "pytest" in sys.modules

_UNION_ORIGINS = (Union, types.UnionType)
_SEQUENCE_ORIGINS = (list, tuple)


def _type_name(hint) -> str:
    return getattr(hint, "__name__", str(hint))


def _check_plain(value, expected_type, param_name: str):
    if not isinstance(expected_type, type):
        return  # Any, TypeVar and friends are not checked
    # Path parameters also take str, the way the standard library does
    allowed = (Path, str) if expected_type is Path else expected_type
    if not isinstance(value, allowed):
        raise TypeError(f"Parameter '{param_name}' expected {expected_type.__name__}, got {type(value).__name__}")


def _check_sequence(value, origin, expected_type, param_name: str):
    if not isinstance(value, origin):
        raise TypeError(f"Parameter '{param_name}' expected {origin.__name__}, got {type(value).__name__}")
    args = [a for a in get_args(expected_type) if a is not Ellipsis]
    if len(args) != 1 or not isinstance(args[0], type):
        return
    for i, elem in enumerate(value):
        if not isinstance(elem, args[0]):
            raise TypeError(f"Parameter '{param_name}[{i}]' expected {args[0].__name__}, got {type(elem).__name__}")


def _check_union(value, expected_type, param_name: str):
    members = [a for a in get_args(expected_type) if a is not type(None)]
    for member in members:
        try:
            _check_type(value, member, param_name)
            return
        except TypeError:
            continue
    raise TypeError(f"Parameter '{param_name}' expected one of {[_type_name(m) for m in members]}, "
                    f"got {type(value).__name__}")


def _check_type(value, expected_type, param_name: str):
    """Raise TypeError if value does not fit expected_type.
    Generic containers other than list and tuple are accepted unchecked."""
    origin = get_origin(expected_type)

    if value is None:
        if expected_type is type(None) or (origin in _UNION_ORIGINS and type(None) in get_args(expected_type)):
            return
        raise TypeError(f"Parameter '{param_name}' expected {_type_name(expected_type)}, got None")

    if origin is None:
        _check_plain(value, expected_type, param_name)
    elif origin in _SEQUENCE_ORIGINS:
        _check_sequence(value, origin, expected_type, param_name)
    elif origin in _UNION_ORIGINS:
        _check_union(value, expected_type, param_name)


def typecheck(func):
    """Decorator that checks call arguments against the function's annotations.
    Only active under pytest; otherwise the function is returned unchanged."""
    if not TYPECHECK_ENABLED:
        return func

    params = list(inspect.signature(func).parameters)
    hints = None

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        nonlocal hints
        if hints is None:
            # Resolved on first call; forward references may not exist at decoration time
            try:
                hints = get_type_hints(func)
            except (NameError, TypeError):
                hints = {}

        for param_name, value in list(zip(params, args)) + list(kwargs.items()):
            if param_name in hints:
                _check_type(value, hints[param_name], param_name)

        return func(*args, **kwargs)

    return wrapper


def typecheck_methods(cls):
    """Class decorator applying typecheck to __init__ and every public method."""
    if not TYPECHECK_ENABLED:
        return cls

    for name, method in inspect.getmembers(cls, predicate=inspect.isfunction):
        if name.startswith('_') and name != '__init__':
            continue
        if isinstance(inspect.getattr_static(cls, name), staticmethod):
            setattr(cls, name, staticmethod(typecheck(method)))
        else:
            setattr(cls, name, typecheck(method))

    return cls
