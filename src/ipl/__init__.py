"""Derivation checker for intuitionistic propositional logic."""

from ipl.kernel.check import (
    Accept,
    CheckerConfig,
    CheckResult,
    Reject,
    RejectReason,
    check_derivation,
    check_proof,
)
from ipl.kernel.derivation import Derivation, Rule, Sequent
from ipl.kernel.env import ABSENT, Env
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
    is_well_formed_term,
)
from ipl.kernel.types import (
    Arrow,
    BaseVar,
    Bottom,
    Product,
    Sum,
    Type,
    is_well_formed_type,
)

__all__ = [
    "ABSENT",
    "Abort",
    "Accept",
    "Arrow",
    "BaseVar",
    "Bottom",
    "Case",
    "CheckResult",
    "CheckerConfig",
    "Derivation",
    "Env",
    "Fst",
    "InL",
    "InR",
    "Lambda",
    "Pair",
    "Product",
    "Reject",
    "RejectReason",
    "Rule",
    "Sequent",
    "Snd",
    "Sum",
    "Term",
    "Type",
    "Var",
    "check_derivation",
    "check_proof",
    "is_well_formed_term",
    "is_well_formed_type",
]
