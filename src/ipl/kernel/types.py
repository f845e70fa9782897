"""Types of the simply-typed lambda calculus with sums, products and bottom."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias


@dataclass(frozen=True)
class Bottom:
    """The uninhabited type ``⊥``."""


@dataclass(frozen=True)
class BaseVar:
    """A base type (propositional variable).

    Args:
        name: Any non-empty atomic name. There is no fixed catalogue of
            primitive types; two base types are equal iff their names are.
    """

    name: str


@dataclass(frozen=True)
class Arrow:
    """Function type ``dom -> cod`` (implication)."""

    dom: Type
    cod: Type


@dataclass(frozen=True)
class Product:
    """Product type ``left × right`` (conjunction)."""

    left: Type
    right: Type


@dataclass(frozen=True)
class Sum:
    """Sum type ``left + right`` (disjunction)."""

    left: Type
    right: Type


Type: TypeAlias = Bottom | BaseVar | Arrow | Product | Sum

Path: TypeAlias = tuple[str, ...]

# Field names from a sub-value back up to the value a walk started at.
Trail: TypeAlias = "tuple[str, Trail] | None"


def unwind(trail: Trail) -> Path:
    """Turn a :data:`Trail` into a root-first :data:`Path`."""

    names: list[str] = []
    while trail is not None:
        name, trail = trail
        names.append(name)
    return tuple(reversed(names))


def malformed_type_path(value: object, checked: set[int] | None = None) -> Path | None:
    """Locate the first sub-value of ``value`` that is not a valid type.

    Returns ``None`` when ``value`` is well formed, otherwise the field path
    from ``value`` down to the offending sub-value (``()`` is ``value``
    itself).  ``Arrow(BaseVar("P"), 3)`` yields ``("cod",)``.

    The walk keeps its own stack, so nesting depth is not limited by the
    interpreter, and visits a shared sub-value once.  ``checked`` holds ids of
    values already known to be well formed; they are skipped, and when
    ``value`` is well formed the ids of everything visited are added to it.
    """

    visited: set[int] = set()
    stack: list[tuple[object, Trail]] = [(value, None)]
    while stack:
        ty, trail = stack.pop()
        key = id(ty)
        if key in visited or (checked is not None and key in checked):
            continue
        visited.add(key)
        match ty:
            case Bottom():
                pass
            case BaseVar(name) if isinstance(name, str) and name:
                pass
            case Arrow(dom, cod):
                stack.append((cod, ("cod", trail)))
                stack.append((dom, ("dom", trail)))
            case Product(left, right) | Sum(left, right):
                stack.append((right, ("right", trail)))
                stack.append((left, ("left", trail)))
            case _:
                return unwind(trail)
    if checked is not None:
        checked.update(visited)
    return None


def is_well_formed_type(value: object, checked: set[int] | None = None) -> bool:
    """Return ``True`` iff ``value`` is a syntactically valid type."""

    return malformed_type_path(value, checked) is None


__all__ = [
    "Type",
    "Path",
    "Trail",
    "Bottom",
    "BaseVar",
    "Arrow",
    "Product",
    "Sum",
    "unwind",
    "malformed_type_path",
    "is_well_formed_type",
]
