"""Pretty-printing utilities for types, terms, sequents and derivations.

Everything is rendered in the surface syntax accepted by
:mod:`ipl.surface.parse`, so printed values can be read back.  The exception
is a name that is also a surface keyword (``cons``, ``inl``, ``inr``,
``case``, ``car``, ``cdr``, ``abort``, ``lambda``, ``bot``): it prints, but
reads back as the keyword.

``limit`` cuts the output off after that many characters and marks the cut
with ``…``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ipl.kernel.terms import Abort, Case, Fst, InL, InR, Lambda, Pair, Snd, Var
from ipl.kernel.types import Arrow, BaseVar, Bottom, Product, Sum

if TYPE_CHECKING:
    from ipl.kernel.derivation import Derivation, Sequent
    from ipl.kernel.env import Env
    from ipl.kernel.terms import Term
    from ipl.kernel.types import Type

INDENT = "  "
ELLIPSIS = "…"


def _pieces(value: object) -> list[object]:
    """Split one constructor into literal text and the sub-values to render."""

    match value:
        case Bottom():
            return ["⊥"]
        case BaseVar(name) | Var(name) if isinstance(name, str):
            return [name]
        case Arrow(dom, cod):
            return ["(", dom, " -> ", cod, ")"]
        case Product(left, right):
            return ["(", left, " × ", right, ")"]
        case Sum(left, right):
            return ["(", left, " + ", right, ")"]
        case Pair(fst, snd):
            return ["(cons ", fst, " ", snd, ")"]
        case InL(body):
            return ["(inl ", body, ")"]
        case InR(body):
            return ["(inr ", body, ")"]
        case Case(scrutinee, on_left, on_right):
            return ["(case ", scrutinee, " ", on_left, " ", on_right, ")"]
        case Fst(pair):
            return ["(car ", pair, ")"]
        case Snd(pair):
            return ["(cdr ", pair, ")"]
        case Lambda(param, param_ty, body):
            return [f"(λ ({param} : ", param_ty, ") ", body, ")"]
        case Abort(body):
            return ["(abort ", body, ")"]
    return [repr(value)]


def _render(value: object, limit: int | None) -> str:
    out: list[str] = []
    size = 0
    stack: list[object] = [value]
    while stack:
        piece = stack.pop()
        if not isinstance(piece, str):
            stack.extend(reversed(_pieces(piece)))
            continue
        out.append(piece)
        size += len(piece)
        if limit is not None and size > limit:
            return "".join(out)[:limit] + ELLIPSIS
    return "".join(out)


def show_type(ty: Type, limit: int | None = None) -> str:
    return _render(ty, limit)


def show_term(term: Term, limit: int | None = None) -> str:
    return _render(term, limit)


def show_env(env: Env, limit: int | None = None) -> str:
    """Render Γ with bindings sorted by name."""

    items = sorted(env.bindings.items())
    body = ", ".join(f"{name} : {show_type(ty, limit)}" for name, ty in items)
    if limit is not None and len(body) > limit:
        body = body[:limit] + ELLIPSIS
    return "{" + body + "}"


def show_sequent(sequent: Sequent, limit: int | None = None) -> str:
    return (
        f"{show_env(sequent.env, limit)} ⊢ {show_term(sequent.term, limit)} : "
        f"{show_type(sequent.ty, limit)}"
    )


def show_derivation(tree: Derivation, depth: int = 0) -> str:
    """Render a proof tree, one rule application per line."""

    out: list[str] = []
    stack: list[str | tuple[Derivation, int]] = [(tree, depth)]
    while stack:
        item = stack.pop()
        if isinstance(item, str):
            out.append(item)
            continue
        node, level = item
        out.append(f"{INDENT * level}({node.rule} {show_sequent(node.conclusion)}")
        stack.append(")")
        for premise in reversed(node.premises):
            stack.append((premise, level + 1))
            stack.append("\n")
    return "".join(out)


__all__ = [
    "show_type",
    "show_term",
    "show_env",
    "show_sequent",
    "show_derivation",
]
