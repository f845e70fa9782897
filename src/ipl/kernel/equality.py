"""Syntactic equality for deeply nested values.

The frozen dataclasses of the kernel compare with ``==`` recursively, which
fails on types and terms nested past the interpreter's recursion limit.
:func:`same` gives the same answer with an explicit stack.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields, is_dataclass
from functools import cache


@cache
def _field_names(cls: type) -> tuple[str, ...]:
    return tuple(f.name for f in fields(cls))


def same(left: object, right: object) -> bool:
    """Return ``left == right`` for types, terms, environments and sequents.

    Dataclass values are equal when they have the same class and equal
    fields; mappings when they have the same keys and equal values.  Each
    pair of shared sub-values is compared once.
    """

    compared: set[tuple[int, int]] = set()
    stack: list[tuple[object, object]] = [(left, right)]
    while stack:
        a, b = stack.pop()
        if a is b:
            continue
        if type(a) is not type(b):
            return False
        if not (isinstance(a, Mapping) or is_dataclass(a)):
            if a != b:
                return False
            continue
        key = (id(a), id(b))
        if key in compared:
            continue
        compared.add(key)
        if isinstance(a, Mapping):
            assert isinstance(b, Mapping)
            if a.keys() != b.keys():
                return False
            stack.extend((a[k], b[k]) for k in a)
        else:
            names = _field_names(type(a))
            stack.extend((getattr(a, n), getattr(b, n)) for n in names)
    return True


__all__ = ["same"]
