"""Proof terms for intuitionistic propositional logic.

Terms are compared structurally.  Bound names are part of a term's identity,
so ``Lambda("x", P, Var("x"))`` and ``Lambda("y", P, Var("y"))`` are
different terms: there is no alpha-equivalence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from ipl.kernel.types import Path, Trail, Type, malformed_type_path, unwind


@dataclass(frozen=True)
class Var:
    """A variable, looked up by name in the environment."""

    name: str


@dataclass(frozen=True)
class Pair:
    """Pair construction ``(cons fst snd)``."""

    fst: Term
    snd: Term


@dataclass(frozen=True)
class InL:
    """Left injection into a sum."""

    body: Term


@dataclass(frozen=True)
class InR:
    """Right injection into a sum."""

    body: Term


@dataclass(frozen=True)
class Case:
    """Case analysis on a sum.

    Args:
        scrutinee: Term of some sum type ``A + B``.
        on_left: Function handling the ``A`` alternative.
        on_right: Function handling the ``B`` alternative.
    """

    scrutinee: Term
    on_left: Term
    on_right: Term


@dataclass(frozen=True)
class Fst:
    """Left projection ``(car pair)``."""

    pair: Term


@dataclass(frozen=True)
class Snd:
    """Right projection ``(cdr pair)``."""

    pair: Term


@dataclass(frozen=True)
class Lambda:
    """Lambda abstraction with an explicit parameter type."""

    param: str
    param_ty: Type
    body: Term


@dataclass(frozen=True)
class Abort:
    """Bottom elimination: ``(abort t)`` for ``t : ⊥``."""

    body: Term


Term: TypeAlias = Var | Pair | InL | InR | Case | Fst | Snd | Lambda | Abort


def _is_name(value: object) -> bool:
    return isinstance(value, str) and bool(value)


def malformed_term_path(value: object, checked: set[int] | None = None) -> Path | None:
    """Locate the first sub-value of ``value`` that is not a valid term.

    Same contract as :func:`ipl.kernel.types.malformed_type_path`.  A
    ``Lambda`` whose parameter type is malformed reports the path into that
    type, e.g. ``("param_ty", "dom")``.
    """

    visited: set[int] = set()
    stack: list[tuple[object, Trail]] = [(value, None)]
    while stack:
        term, trail = stack.pop()
        key = id(term)
        if key in visited or (checked is not None and key in checked):
            continue
        visited.add(key)
        match term:
            case Var(name) if _is_name(name):
                pass
            case Pair(fst, snd):
                stack.append((snd, ("snd", trail)))
                stack.append((fst, ("fst", trail)))
            case InL(body) | InR(body) | Abort(body):
                stack.append((body, ("body", trail)))
            case Case(scrutinee, on_left, on_right):
                stack.append((on_right, ("on_right", trail)))
                stack.append((on_left, ("on_left", trail)))
                stack.append((scrutinee, ("scrutinee", trail)))
            case Fst(pair) | Snd(pair):
                stack.append((pair, ("pair", trail)))
            case Lambda(param, param_ty, body):
                if not _is_name(param):
                    return (*unwind(trail), "param")
                ty_path = malformed_type_path(param_ty, checked)
                if ty_path is not None:
                    return (*unwind(trail), "param_ty", *ty_path)
                stack.append((body, ("body", trail)))
            case _:
                return unwind(trail)
    if checked is not None:
        checked.update(visited)
    return None


def is_well_formed_term(value: object, checked: set[int] | None = None) -> bool:
    """Return ``True`` iff ``value`` is a syntactically valid term."""

    return malformed_term_path(value, checked) is None


__all__ = [
    "Term",
    "Var",
    "Pair",
    "InL",
    "InR",
    "Case",
    "Fst",
    "Snd",
    "Lambda",
    "Abort",
    "malformed_term_path",
    "is_well_formed_term",
]
