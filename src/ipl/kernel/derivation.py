"""Natural-deduction proof trees."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass

from ipl.kernel.env import Env
from ipl.kernel.terms import Term, is_well_formed_term
from ipl.kernel.types import Type, is_well_formed_type


class Rule(enum.StrEnum):
    """The closed set of inference rules."""

    ASSM = "Assm"
    PAIR_INTRO = "PairIntro"
    INL_INTRO = "InLIntro"
    INR_INTRO = "InRIntro"
    CASE_ELIM = "CaseElim"
    FST_ELIM = "FstElim"
    SND_ELIM = "SndElim"
    LAMBDA_INTRO = "LambdaIntro"
    BOTTOM_ELIM = "BottomElim"

    @property
    def arity(self) -> int:
        """Number of premises the rule takes."""
        return _ARITY[self]


_ARITY: dict[Rule, int] = {
    Rule.ASSM: 0,
    Rule.PAIR_INTRO: 2,
    Rule.INL_INTRO: 1,
    Rule.INR_INTRO: 1,
    Rule.CASE_ELIM: 3,
    Rule.FST_ELIM: 1,
    Rule.SND_ELIM: 1,
    Rule.LAMBDA_INTRO: 1,
    Rule.BOTTOM_ELIM: 1,
}


@dataclass(frozen=True)
class Sequent:
    """The judgment ``env ⊢ term : ty``."""

    env: Env
    term: Term
    ty: Type

    def is_well_formed(self, checked: set[int] | None = None) -> bool:
        return (
            isinstance(self.env, Env)
            and self.env.is_well_formed(checked)
            and is_well_formed_term(self.term, checked)
            and is_well_formed_type(self.ty, checked)
        )

    def __str__(self) -> str:
        from ipl.kernel.pretty import show_sequent

        return show_sequent(self)


@dataclass(frozen=True)
class Derivation:
    """
    A claimed derivation of ``conclusion`` by ``rule`` from ``premises``.

    Nothing here is trusted: the conclusion is only what the tree claims and
    must be confirmed by :func:`ipl.kernel.check.check_derivation`.
    """

    rule: Rule
    conclusion: Sequent
    premises: tuple[Derivation, ...] = ()

    @staticmethod
    def of(
        rule: Rule | str,
        env: Env,
        term: Term,
        ty: Type,
        premises: Iterable[Derivation] = (),
    ) -> Derivation:
        """Build a node from the pieces of its conclusion."""
        return Derivation(Rule(rule), Sequent(env, term, ty), tuple(premises))

    def __str__(self) -> str:
        from ipl.kernel.pretty import show_derivation

        return show_derivation(self)


__all__ = ["Rule", "Sequent", "Derivation"]
