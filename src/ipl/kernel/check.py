"""Derivation checking for intuitionistic propositional logic.

The checker is the trusted kernel.  It never searches for proofs and never
repairs a tree: every node must be an instance of the rule its tag names, its
premises' recorded conclusions must be exactly what the rule demands, and the
premises must themselves check.  The root is checked against the caller's
target; only after the whole tree checks is the root's recorded conclusion
compared with that target.  Failures are reported as values (:class:`Reject`)
carrying the location of the first offending node in pre-order.

Trees, types and terms are walked with explicit stacks, and a node or
sub-value shared by several parents is examined once.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeAlias, assert_never, cast

from ipl.kernel.derivation import Derivation, Rule, Sequent
from ipl.kernel.env import ABSENT, Env
from ipl.kernel.equality import same
from ipl.kernel.pretty import show_env, show_sequent, show_term, show_type
from ipl.kernel.terms import (
    Abort,
    Case,
    Fst,
    InL,
    InR,
    Lambda,
    Pair,
    Snd,
    Term,
    Var,
    malformed_term_path,
)
from ipl.kernel.types import (
    Arrow,
    Bottom,
    Path,
    Product,
    Sum,
    Type,
    malformed_type_path,
)

logger = logging.getLogger(__name__)

# Values quoted in messages are cut off after this many characters.
SHOWN = 120


class RejectReason(enum.StrEnum):
    RULE_TERM_MISMATCH = "rule-term-mismatch"
    RULE_TYPE_MISMATCH = "rule-type-mismatch"
    PREMISE_CONCLUSION_MISMATCH = "premise-conclusion-mismatch"
    PREMISE_INVALID = "premise-invalid"
    CONCLUSION_TARGET_MISMATCH = "conclusion-target-mismatch"
    UNBOUND_VARIABLE = "unbound-variable"
    MALFORMED_INPUT = "malformed-input"
    MALFORMED_PROOF_STRUCTURE = "malformed-proof-structure"


Location: TypeAlias = tuple[int, ...]


@dataclass(frozen=True)
class Accept:
    """The tree is a valid derivation of the target sequent."""

    def __bool__(self) -> bool:
        return True

    def __str__(self) -> str:
        return "Accept"


@dataclass(frozen=True)
class Reject:
    """
    The tree is not a valid derivation of the target sequent.

    Args:
        reason: Why the first failing node was rejected.
        location: Premise indices leading from the root to that node.
            ``()`` is the root, ``(1, 0)`` the first premise of its second premise.
        rule: Rule tag of the node at ``location`` when it has a valid one.
        message: Human readable detail.
    """

    reason: RejectReason
    location: Location = ()
    rule: Rule | None = None
    message: str = ""

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        where = "root" if not self.location else ".".join(map(str, self.location))
        text = f"Reject: {self.reason} at {where}"
        return f"{text}: {self.message}" if self.message else text


CheckResult: TypeAlias = Accept | Reject


@dataclass(frozen=True)
class CheckerConfig:
    """Resource limits for checking untrusted trees."""

    max_depth: int = 10_000

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError("max_depth must be positive")


class _RuleFailure(Exception):
    """Raised inside a rule check; converted to a :class:`Reject` by the walk."""

    def __init__(
        self, reason: RejectReason, message: str, premise: int | None = None
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.premise = premise

    def at(self, node: Derivation, path: Location) -> Reject:
        if self.premise is None:
            return Reject(self.reason, path, node.rule, self.message)
        return Reject(
            self.reason,
            path + (self.premise,),
            node.premises[self.premise].rule,
            self.message,
        )


def _term_mismatch(rule: Rule, term: Term, shape: str) -> _RuleFailure:
    return _RuleFailure(
        RejectReason.RULE_TERM_MISMATCH,
        f"{rule} needs {shape}, got {show_term(term, SHOWN)}",
    )


def _type_mismatch(rule: Rule, ty: Type, shape: str) -> _RuleFailure:
    return _RuleFailure(
        RejectReason.RULE_TYPE_MISMATCH,
        f"{rule} needs {shape}, got {show_type(ty, SHOWN)}",
    )


def _premise_mismatch(index: int, got: Sequent, expected: str) -> _RuleFailure:
    return _RuleFailure(
        RejectReason.PREMISE_CONCLUSION_MISMATCH,
        f"premise {index} concludes {show_sequent(got, SHOWN)}, expected {expected}",
        index,
    )


def _expect_arity(node: Derivation) -> None:
    expected = node.rule.arity
    if len(node.premises) != expected:
        raise _RuleFailure(
            RejectReason.PREMISE_INVALID,
            f"{node.rule} takes {expected} premise(s), got {len(node.premises)}",
        )


def _expect_premise(node: Derivation, index: int, expected: Sequent) -> None:
    got = node.premises[index].conclusion
    if not same(got, expected):
        raise _premise_mismatch(index, got, show_sequent(expected, SHOWN))


def _premise_type(node: Derivation, index: int, env: Env, term: Term) -> Type:
    """Check premise ``index`` is ``env ⊢ term : _`` and return its type."""

    got = node.premises[index].conclusion
    if not (same(got.env, env) and same(got.term, term)):
        raise _premise_mismatch(
            index, got, f"{show_env(env, SHOWN)} ⊢ {show_term(term, SHOWN)} : _"
        )
    return got.ty


def _projection(
    node: Derivation, env: Env, pair: Term, component: str, goal: Type
) -> None:
    """Check premise 0 is ``env ⊢ pair : A × B`` whose ``component`` is ``goal``."""

    pair_ty = _premise_type(node, 0, env, pair)
    if not isinstance(pair_ty, Product) or not same(getattr(pair_ty, component), goal):
        raise _premise_mismatch(
            0,
            node.premises[0].conclusion,
            f"a product type whose {component} component is {show_type(goal, SHOWN)}",
        )


def _check_node(node: Derivation, goal: Sequent) -> None:
    """Check that ``node`` derives ``goal`` from its premises' recorded conclusions."""

    rule = node.rule
    env, term, ty = goal.env, goal.term, goal.ty
    match rule:
        case Rule.ASSM:
            if not isinstance(term, Var):
                raise _term_mismatch(rule, term, "a variable")
            _expect_arity(node)
            bound = env.lookup(term.name)
            if bound is ABSENT:
                raise _RuleFailure(
                    RejectReason.UNBOUND_VARIABLE,
                    f"{term.name} is not bound in {show_env(env, SHOWN)}",
                )
            if not same(bound, ty):
                raise _RuleFailure(
                    RejectReason.RULE_TYPE_MISMATCH,
                    f"{term.name} has type {show_type(bound, SHOWN)}, "
                    f"not {show_type(ty, SHOWN)}",
                )
        case Rule.PAIR_INTRO:
            if not isinstance(term, Pair):
                raise _term_mismatch(rule, term, "a pair")
            if not isinstance(ty, Product):
                raise _type_mismatch(rule, ty, "a product type")
            _expect_arity(node)
            _expect_premise(node, 0, Sequent(env, term.fst, ty.left))
            _expect_premise(node, 1, Sequent(env, term.snd, ty.right))
        case Rule.INL_INTRO:
            if not isinstance(term, InL):
                raise _term_mismatch(rule, term, "a left injection")
            if not isinstance(ty, Sum):
                raise _type_mismatch(rule, ty, "a sum type")
            _expect_arity(node)
            _expect_premise(node, 0, Sequent(env, term.body, ty.left))
        case Rule.INR_INTRO:
            if not isinstance(term, InR):
                raise _term_mismatch(rule, term, "a right injection")
            if not isinstance(ty, Sum):
                raise _type_mismatch(rule, ty, "a sum type")
            _expect_arity(node)
            _expect_premise(node, 0, Sequent(env, term.body, ty.right))
        case Rule.CASE_ELIM:
            if not isinstance(term, Case):
                raise _term_mismatch(rule, term, "a case analysis")
            _expect_arity(node)
            scrutinee_ty = _premise_type(node, 0, env, term.scrutinee)
            if not isinstance(scrutinee_ty, Sum):
                raise _premise_mismatch(
                    0, node.premises[0].conclusion, "a sum type for the scrutinee"
                )
            _expect_premise(
                node, 1, Sequent(env, term.on_left, Arrow(scrutinee_ty.left, ty))
            )
            _expect_premise(
                node, 2, Sequent(env, term.on_right, Arrow(scrutinee_ty.right, ty))
            )
        case Rule.FST_ELIM:
            if not isinstance(term, Fst):
                raise _term_mismatch(rule, term, "a left projection")
            _expect_arity(node)
            _projection(node, env, term.pair, "left", ty)
        case Rule.SND_ELIM:
            if not isinstance(term, Snd):
                raise _term_mismatch(rule, term, "a right projection")
            _expect_arity(node)
            _projection(node, env, term.pair, "right", ty)
        case Rule.LAMBDA_INTRO:
            if not isinstance(term, Lambda):
                raise _term_mismatch(rule, term, "a lambda")
            if not isinstance(ty, Arrow):
                raise _type_mismatch(rule, ty, "a function type")
            if not same(term.param_ty, ty.dom):
                param_ty = show_type(term.param_ty, SHOWN)
                raise _RuleFailure(
                    RejectReason.RULE_TYPE_MISMATCH,
                    f"parameter {term.param} has type {param_ty} "
                    f"but the function type expects {show_type(ty.dom, SHOWN)}",
                )
            _expect_arity(node)
            _expect_premise(
                node, 0, Sequent(env.extend(term.param, ty.dom), term.body, ty.cod)
            )
        case Rule.BOTTOM_ELIM:
            if not isinstance(term, Abort):
                raise _term_mismatch(rule, term, "an abort")
            _expect_arity(node)
            _expect_premise(node, 0, Sequent(env, term.body, Bottom()))
        case _:
            assert_never(rule)


def _malformed_input(what: str, path: Path) -> Reject:
    where = ".".join(path[:12]) + (".…" if len(path) > 12 else "")
    message = f"{what} is malformed at {where or what}"
    return Reject(RejectReason.MALFORMED_INPUT, (), None, message)


def _check_target(
    env: object, term: object, ty: object, checked: set[int]
) -> Reject | None:
    if not isinstance(env, Env) or not env.is_well_formed(checked):
        return Reject(
            RejectReason.MALFORMED_INPUT, (), None, "environment is malformed"
        )
    term_path = malformed_term_path(term, checked)
    if term_path is not None:
        return _malformed_input("term", term_path)
    ty_path = malformed_type_path(ty, checked)
    if ty_path is not None:
        return _malformed_input("type", ty_path)
    return None


def _structural(path: Sequence[int], message: str) -> Reject:
    return Reject(RejectReason.MALFORMED_PROOF_STRUCTURE, tuple(path), None, message)


def _deepest(node: Derivation, steps: int, heights: dict[int, int]) -> Location:
    """First path in pre-order that descends ``steps`` levels below ``node``."""

    below: list[int] = []
    for remaining in reversed(range(steps)):
        index = next(
            i for i, p in enumerate(node.premises) if heights[id(p)] >= remaining
        )
        below.append(index)
        node = node.premises[index]
    return tuple(below)


def _check_structure(
    tree: object, config: CheckerConfig, checked: set[int]
) -> Reject | None:
    """Validate node shapes, recorded sequents, depth and acyclicity.

    Depth-first with enter and exit entries on the work list: ``on_path``
    holds the nodes between the root and the current one, ``heights`` the
    nodes whose whole subtree has been validated.
    """

    heights: dict[int, int] = {}
    on_path: set[int] = set()
    path: list[int] = []
    stack: list[tuple[bool, object, int | None]] = [(True, tree, None)]
    while stack:
        entering, node, index = stack.pop()
        if not entering:
            done = cast(Derivation, node)
            on_path.discard(id(done))
            heights[id(done)] = max(
                (heights[id(p)] + 1 for p in done.premises), default=0
            )
            if index is not None:
                path.pop()
            continue

        if index is not None:
            path.append(index)
        if not isinstance(node, Derivation):
            got = type(node).__name__
            return _structural(path, f"expected a derivation, got {got}")
        key = id(node)
        if key in on_path:
            return _structural(path, "derivation contains itself")
        if key in heights:
            # Already validated below another parent; only the depth can differ.
            if len(path) + heights[key] >= config.max_depth:
                below = _deepest(node, config.max_depth - len(path), heights)
                return _structural(
                    (*path, *below), f"derivation is deeper than {config.max_depth}"
                )
            if index is not None:
                path.pop()
            continue
        if len(path) >= config.max_depth:
            return _structural(path, f"derivation is deeper than {config.max_depth}")
        if not isinstance(node.rule, Rule):
            return _structural(path, f"unknown rule {node.rule!r}")
        premises = node.premises
        if not isinstance(premises, Sequence) or isinstance(premises, str):
            return _structural(path, "premises must be a sequence of derivations")
        conclusion = node.conclusion
        if not (
            isinstance(conclusion, Sequent) and conclusion.is_well_formed(checked)
        ):
            return Reject(
                RejectReason.MALFORMED_INPUT,
                tuple(path),
                node.rule,
                "recorded conclusion is not a well-formed sequent",
            )

        on_path.add(key)
        stack.append((False, node, index))
        stack.extend((True, premises[i], i) for i in reversed(range(len(premises))))
    return None


def _check_rules(tree: Derivation, target: Sequent) -> Reject | None:
    """Check every rule application in pre-order, each distinct node once.

    The root must derive ``target``; every other node must derive the
    conclusion it records, which its parent has already matched.
    """

    checked: set[int] = set()
    path: list[int] = []
    stack: list[tuple[Derivation, int | None, int]] = [(tree, None, 0)]
    while stack:
        node, index, depth = stack.pop()
        if index is not None:
            del path[depth - 1 :]
            path.append(index)
        if id(node) in checked:
            continue
        checked.add(id(node))
        try:
            _check_node(node, target if index is None else node.conclusion)
        except _RuleFailure as failure:
            return failure.at(node, tuple(path))
        stack.extend(
            (node.premises[i], i, depth + 1)
            for i in reversed(range(len(node.premises)))
        )
    return None


def _check_conclusion(tree: Derivation, target: Sequent) -> Reject | None:
    if same(tree.conclusion, target):
        return None
    return Reject(
        RejectReason.CONCLUSION_TARGET_MISMATCH,
        (),
        tree.rule,
        f"tree concludes {show_sequent(tree.conclusion, SHOWN)}, "
        f"target is {show_sequent(target, SHOWN)}",
    )


def check_derivation(
    tree: Derivation,
    env: Env,
    term: Term,
    ty: Type,
    *,
    config: CheckerConfig | None = None,
) -> CheckResult:
    """Decide whether ``tree`` derives ``env ⊢ term : ty``.

    Returns :class:`Accept` or the first :class:`Reject` found.  The inputs are
    never modified and the result depends on nothing but the inputs.
    """

    config = config or CheckerConfig()
    checked: set[int] = set()
    target = Sequent(env, term, ty)
    result = _check_target(env, term, ty, checked)
    if result is None:
        result = _check_structure(tree, config, checked)
    if result is None:
        result = _check_rules(tree, target)
    if result is None:
        result = _check_conclusion(tree, target)
    if result is None:
        return Accept()
    logger.debug("rejected derivation: %s", result)
    return result


def check_proof(
    tree: Derivation, *, config: CheckerConfig | None = None
) -> CheckResult:
    """Check ``tree`` against its own recorded root conclusion."""

    conclusion = getattr(tree, "conclusion", None)
    if not isinstance(tree, Derivation) or not isinstance(conclusion, Sequent):
        return Reject(
            RejectReason.MALFORMED_PROOF_STRUCTURE, (), None, "not a derivation"
        )
    return check_derivation(
        tree, conclusion.env, conclusion.term, conclusion.ty, config=config
    )


__all__ = [
    "Accept",
    "CheckResult",
    "CheckerConfig",
    "Location",
    "Reject",
    "RejectReason",
    "check_derivation",
    "check_proof",
]
