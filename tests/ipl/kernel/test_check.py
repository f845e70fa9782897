import time

import pytest

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
from ipl.kernel.terms import Abort, Case, Fst, InL, InR, Lambda, Pair, Snd, Term, Var
from ipl.kernel.types import Arrow, BaseVar, Bottom, Product, Sum, Type

P = BaseVar("P")
Q = BaseVar("Q")
R = BaseVar("R")

D = Derivation.of


def assm(env: Env, name: str) -> Derivation:
    ty = env.lookup(name)
    assert ty is not ABSENT
    return D(Rule.ASSM, env, Var(name), ty)


def check(tree: Derivation, env: Env, term: Term, ty: Type) -> CheckResult:
    return check_derivation(tree, env, term, ty)


def test_assm_accepts_bound_variable() -> None:
    env = Env.of(x=P)
    tree = D(Rule.ASSM, env, Var("x"), P)
    assert check(tree, env, Var("x"), P) == Accept()


def test_pair_with_free_variables_is_unbound() -> None:
    env = Env()
    term = Pair(Var("a"), Var("b"))
    tree = D(
        Rule.PAIR_INTRO,
        env,
        term,
        Product(P, Q),
        [D(Rule.ASSM, env, Var("a"), P), D(Rule.ASSM, env, Var("b"), Q)],
    )
    result = check(tree, env, term, Product(P, Q))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.UNBOUND_VARIABLE
    assert result.location == (0,)
    assert result.rule is Rule.ASSM


def test_fst_of_product_hypothesis() -> None:
    env = Env.of(p=Product(P, Q))
    tree = D(Rule.FST_ELIM, env, Fst(Var("p")), P, [assm(env, "p")])
    assert check(tree, env, Fst(Var("p")), P)


def test_snd_of_product_hypothesis() -> None:
    env = Env.of(p=Product(P, Q))
    tree = D(Rule.SND_ELIM, env, Snd(Var("p")), Q, [assm(env, "p")])
    assert check(tree, env, Snd(Var("p")), Q)


def test_fst_with_wrong_component_is_premise_mismatch() -> None:
    env = Env.of(p=Product(P, Q))
    tree = D(Rule.FST_ELIM, env, Fst(Var("p")), Q, [assm(env, "p")])
    result = check(tree, env, Fst(Var("p")), Q)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)


def test_inl_with_wrong_premise_type() -> None:
    a, a_prime = BaseVar("A"), BaseVar("A'")
    env = Env.of(e=a_prime)
    term = InL(Var("e"))
    ty = Sum(a, BaseVar("B"))
    tree = D(Rule.INL_INTRO, env, term, ty, [assm(env, "e")])
    result = check(tree, env, term, ty)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)


def test_inl_and_inr_take_other_side_from_target() -> None:
    env = Env.of(e=P)
    left = D(Rule.INL_INTRO, env, InL(Var("e")), Sum(P, R), [assm(env, "e")])
    right = D(Rule.INR_INTRO, env, InR(Var("e")), Sum(R, P), [assm(env, "e")])
    assert check(left, env, InL(Var("e")), Sum(P, R))
    assert check(right, env, InR(Var("e")), Sum(R, P))


def test_inr_checks_right_component() -> None:
    env = Env.of(e=P)
    tree = D(Rule.INR_INTRO, env, InR(Var("e")), Sum(P, R), [assm(env, "e")])
    result = check(tree, env, InR(Var("e")), Sum(P, R))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH


def test_identity_lambda() -> None:
    term = Lambda("x", P, Var("x"))
    inner = Env.of(x=P)
    tree = D(
        Rule.LAMBDA_INTRO, Env(), term, Arrow(P, P), [D(Rule.ASSM, inner, Var("x"), P)]
    )
    assert check(tree, Env(), term, Arrow(P, P)) == Accept()


def test_lambda_parameter_type_disagreement() -> None:
    term = Lambda("x", P, Var("x"))
    inner = Env.of(x=P)
    tree = D(
        Rule.LAMBDA_INTRO, Env(), term, Arrow(Q, P), [D(Rule.ASSM, inner, Var("x"), P)]
    )
    result = check(tree, Env(), term, Arrow(Q, P))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TYPE_MISMATCH
    assert result.location == ()
    assert result.rule is Rule.LAMBDA_INTRO


def test_lambda_parameter_checked_against_target() -> None:
    term = Lambda("x", P, Var("x"))
    inner = Env.of(x=P)
    tree = D(
        Rule.LAMBDA_INTRO, Env(), term, Arrow(P, P), [D(Rule.ASSM, inner, Var("x"), P)]
    )
    assert check(tree, Env(), term, Arrow(P, P)) == Accept()
    result = check(tree, Env(), term, Arrow(Q, P))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TYPE_MISMATCH
    assert result.location == ()
    assert result.rule is Rule.LAMBDA_INTRO


def test_lambda_body_must_see_extended_env() -> None:
    term = Lambda("x", P, Var("x"))
    tree = D(
        Rule.LAMBDA_INTRO, Env(), term, Arrow(P, P), [D(Rule.ASSM, Env(), Var("x"), P)]
    )
    result = check(tree, Env(), term, Arrow(P, P))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH


def test_lambda_shadows_outer_binding() -> None:
    outer = Env.of(x=Q)
    inner = outer.extend("x", P)
    term = Lambda("x", P, Var("x"))
    tree = D(
        Rule.LAMBDA_INTRO, outer, term, Arrow(P, P), [D(Rule.ASSM, inner, Var("x"), P)]
    )
    assert check(tree, outer, term, Arrow(P, P))
    assert outer.lookup("x") == Q


def test_abort_proves_anything() -> None:
    env = Env.of(e=Bottom())
    ty = Product(BaseVar("A"), BaseVar("B"))
    tree = D(Rule.BOTTOM_ELIM, env, Abort(Var("e")), ty, [assm(env, "e")])
    assert check(tree, env, Abort(Var("e")), ty) == Accept()


def test_abort_needs_bottom_premise() -> None:
    env = Env.of(e=P)
    tree = D(Rule.BOTTOM_ELIM, env, Abort(Var("e")), Q, [assm(env, "e")])
    result = check(tree, env, Abort(Var("e")), Q)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH


def _sum_commutes(right_env_extra: bool = False) -> tuple[Derivation, Sequent]:
    """(case s (λ (x : P) (inr x)) (λ (y : Q) (inl y))) : (Q + P)"""

    env = Env.of(s=Sum(P, Q))
    goal = Sum(Q, P)
    on_left = Lambda("x", P, InR(Var("x")))
    on_right = Lambda("y", Q, InL(Var("y")))
    left_env = env.extend("x", P)
    right_env = env.extend("y", Q)
    if right_env_extra:
        right_env = right_env.extend("x", P)
    left = D(
        Rule.LAMBDA_INTRO,
        env,
        on_left,
        Arrow(P, goal),
        [D(Rule.INR_INTRO, left_env, InR(Var("x")), goal, [assm(left_env, "x")])],
    )
    right = D(
        Rule.LAMBDA_INTRO,
        env,
        on_right,
        Arrow(Q, goal),
        [D(Rule.INL_INTRO, right_env, InL(Var("y")), goal, [assm(right_env, "y")])],
    )
    term = Case(Var("s"), on_left, on_right)
    tree = D(Rule.CASE_ELIM, env, term, goal, [assm(env, "s"), left, right])
    return tree, Sequent(env, term, goal)


def test_case_elim_accepts_sum_commutativity() -> None:
    tree, goal = _sum_commutes()
    assert check(tree, goal.env, goal.term, goal.ty) == Accept()


def test_case_branch_bindings_do_not_leak() -> None:
    tree, goal = _sum_commutes(right_env_extra=True)
    result = check(tree, goal.env, goal.term, goal.ty)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (2, 0)


def test_case_scrutinee_must_be_a_sum() -> None:
    env = Env.of(s=Product(P, Q), f=Arrow(P, R), g=Arrow(Q, R))
    term = Case(Var("s"), Var("f"), Var("g"))
    tree = D(
        Rule.CASE_ELIM, env, term, R, [assm(env, "s"), assm(env, "f"), assm(env, "g")]
    )
    result = check(tree, env, term, R)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)


def test_case_branches_must_share_result_type() -> None:
    env = Env.of(s=Sum(P, Q), f=Arrow(P, R), g=Arrow(Q, P))
    term = Case(Var("s"), Var("f"), Var("g"))
    tree = D(
        Rule.CASE_ELIM, env, term, R, [assm(env, "s"), assm(env, "f"), assm(env, "g")]
    )
    result = check(tree, env, term, R)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (2,)


def test_case_with_function_hypotheses() -> None:
    env = Env.of(s=Sum(P, Q), f=Arrow(P, R), g=Arrow(Q, R))
    term = Case(Var("s"), Var("f"), Var("g"))
    tree = D(
        Rule.CASE_ELIM, env, term, R, [assm(env, "s"), assm(env, "f"), assm(env, "g")]
    )
    assert check(tree, env, term, R)


def test_assm_with_wrong_type() -> None:
    env = Env.of(x=P)
    tree = D(Rule.ASSM, env, Var("x"), Q)
    result = check(tree, env, Var("x"), Q)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TYPE_MISMATCH


def test_rule_term_mismatch() -> None:
    env = Env.of(x=P)
    tree = D(Rule.PAIR_INTRO, env, Var("x"), P)
    result = check(tree, env, Var("x"), P)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TERM_MISMATCH


def test_pair_intro_needs_product_type() -> None:
    env = Env.of(x=P, y=Q)
    term = Pair(Var("x"), Var("y"))
    tree = D(Rule.PAIR_INTRO, env, term, Sum(P, Q), [assm(env, "x"), assm(env, "y")])
    result = check(tree, env, term, Sum(P, Q))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TYPE_MISMATCH


@pytest.mark.parametrize("count", [0, 1, 3])
def test_pair_intro_with_wrong_number_of_premises(count: int) -> None:
    env = Env.of(x=P, y=Q)
    term = Pair(Var("x"), Var("y"))
    premises = [assm(env, "x"), assm(env, "y"), assm(env, "x")][:count]
    tree = D(Rule.PAIR_INTRO, env, term, Product(P, Q), premises)
    result = check(tree, env, term, Product(P, Q))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_INVALID
    assert result.location == ()


def test_assm_with_premises_is_invalid() -> None:
    env = Env.of(x=P)
    tree = D(Rule.ASSM, env, Var("x"), P, [assm(env, "x")])
    result = check(tree, env, Var("x"), P)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_INVALID


def test_target_mismatch_rejects_internally_valid_tree() -> None:
    env = Env.of(x=P, y=Q)
    tree = assm(env, "x")
    for target in [
        Sequent(Env.of(x=P), Var("x"), P),
        Sequent(env, Var("y"), Q),
    ]:
        result = check(tree, target.env, target.term, target.ty)
        assert isinstance(result, Reject)
        assert result.reason is RejectReason.CONCLUSION_TARGET_MISMATCH
        assert result.location == ()


def test_root_rule_is_checked_before_target_comparison() -> None:
    env = Env.of(x=P, y=Q)
    result = check(assm(env, "x"), env, Var("x"), Q)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.RULE_TYPE_MISMATCH

    inject = D(Rule.INL_INTRO, env, InL(Var("x")), Sum(P, Q), [assm(env, "x")])
    result = check(inject, env, InL(Var("x")), Sum(Q, Q))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)

    result = check(inject, env, InL(Var("x")), Sum(P, P))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.CONCLUSION_TARGET_MISMATCH


def test_no_alpha_equivalence() -> None:
    inner = Env.of(y=P)
    tree = D(
        Rule.LAMBDA_INTRO,
        Env(),
        Lambda("y", P, Var("y")),
        Arrow(P, P),
        [D(Rule.ASSM, inner, Var("y"), P)],
    )
    assert check_proof(tree)
    result = check(tree, Env(), Lambda("x", P, Var("x")), Arrow(P, P))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)


def test_env_equality_ignores_insertion_order() -> None:
    tree = D(Rule.ASSM, Env.of(("x", P), ("y", Q)), Var("x"), P)
    assert check(tree, Env.of(("y", Q), ("x", P)), Var("x"), P)


def test_deterministic() -> None:
    tree, goal = _sum_commutes(right_env_extra=True)
    first = check(tree, goal.env, goal.term, goal.ty)
    second = check(tree, goal.env, goal.term, goal.ty)
    rebuilt, _ = _sum_commutes(right_env_extra=True)
    third = check(rebuilt, goal.env, goal.term, goal.ty)
    assert first == second == third


def test_shared_subtrees_are_allowed() -> None:
    env = Env.of(x=P)
    leaf = assm(env, "x")
    term = Pair(Var("x"), Var("x"))
    tree = D(Rule.PAIR_INTRO, env, term, Product(P, P), [leaf, leaf])
    assert check(tree, env, term, Product(P, P))


def test_malformed_target() -> None:
    env = Env.of(x=P)
    tree = assm(env, "x")
    for target in [
        (env, Var(""), P),
        (env, Var("x"), BaseVar(3)),  # type: ignore[arg-type]
        ({"x": P}, Var("x"), P),
        (Env.of(x="P"), Var("x"), P),  # type: ignore[arg-type]
        (env, Lambda("x", "P", Var("x")), P),  # type: ignore[arg-type]
    ]:
        result = check_derivation(tree, *target)  # type: ignore[arg-type]
        assert isinstance(result, Reject)
        assert result.reason is RejectReason.MALFORMED_INPUT


def test_malformed_recorded_conclusion() -> None:
    env = Env.of(p=Product(P, Q))
    bad_leaf = D(Rule.ASSM, env, Var("p"), Product(P, None))  # type: ignore[arg-type]
    tree = D(Rule.FST_ELIM, env, Fst(Var("p")), P, [bad_leaf])
    result = check(tree, env, Fst(Var("p")), P)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_INPUT
    assert result.location == (0,)


def test_premise_that_is_not_a_derivation() -> None:
    env = Env.of(x=P)
    tree = Derivation(
        Rule.INL_INTRO, Sequent(env, InL(Var("x")), Sum(P, Q)), ("not a proof",)  # type: ignore[arg-type]
    )
    result = check(tree, env, InL(Var("x")), Sum(P, Q))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE
    assert result.location == (0,)


def test_unknown_rule_tag() -> None:
    env = Env.of(x=P)
    tree = Derivation("Assm", Sequent(env, Var("x"), P))  # type: ignore[arg-type]
    result = check(tree, env, Var("x"), P)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE


def test_cyclic_tree() -> None:
    env = Env.of(e=Bottom())
    premises: list[Derivation] = []
    tree = Derivation(
        Rule.BOTTOM_ELIM, Sequent(env, Abort(Var("e")), Bottom()), premises  # type: ignore[arg-type]
    )
    premises.append(tree)
    result = check(tree, env, Abort(Var("e")), Bottom())
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE
    assert result.location == (0,)


def _inl_tower(height: int) -> Derivation:
    env = Env.of(x=P)
    tree = assm(env, "x")
    for _ in range(height):
        c = tree.conclusion
        tree = D(Rule.INL_INTRO, env, InL(c.term), Sum(c.ty, Q), [tree])
    return tree


def test_max_depth() -> None:
    config = CheckerConfig(max_depth=10)
    ok = _inl_tower(9)
    assert check_proof(ok, config=config)

    too_deep = _inl_tower(10)
    result = check_proof(too_deep, config=config)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE
    assert result.location == (0,) * 10


def test_deep_valid_tree_is_accepted() -> None:
    assert check_proof(_inl_tower(5_000)) == Accept()


def test_default_depth_limit_is_reachable() -> None:
    assert check_proof(_inl_tower(9_999)) == Accept()
    result = check_proof(_inl_tower(10_000))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE
    assert len(result.location) == 10_000


def test_deep_forgery_is_located() -> None:
    tree = _inl_tower(3_000)
    leaf = tree
    while leaf.premises:
        leaf = leaf.premises[0]
    object.__setattr__(leaf, "conclusion", Sequent(leaf.conclusion.env, Var("x"), Q))
    result = check_proof(tree)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,) * 3_000


def test_messages_elide_deep_terms() -> None:
    tree = _inl_tower(3_000)
    below = tree.premises[0]
    c = below.conclusion
    object.__setattr__(below, "conclusion", Sequent(c.env, c.term, Q))
    result = check_proof(tree)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,)
    assert "…" in result.message
    assert len(result.message) < 1_000


def test_deeply_nested_malformed_term() -> None:
    term: Term = Var("")
    for _ in range(20_000):
        term = InL(term)
    env = Env.of(x=P)
    tree = D(Rule.ASSM, env, Var("x"), P)
    result = check(tree, env, term, P)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_INPUT
    assert result.message.startswith("term is malformed at body.body.")


def _doubling(levels: int) -> Derivation:
    """Each node uses the node below it as both of its premises."""

    env = Env.of(x=P)
    tree = assm(env, "x")
    for _ in range(levels):
        c = tree.conclusion
        pair = Pair(c.term, c.term)
        tree = D(Rule.PAIR_INTRO, env, pair, Product(c.ty, c.ty), [tree, tree])
    return tree


def test_shared_subtrees_are_checked_once() -> None:
    tree = _doubling(40)
    started = time.perf_counter()
    assert check_proof(tree) == Accept()
    assert time.perf_counter() - started < 5.0


def test_forgery_below_shared_subtrees() -> None:
    env = Env.of(x=P)
    tree = _doubling(30)
    leaf = tree
    while leaf.premises:
        leaf = leaf.premises[0]
    object.__setattr__(leaf, "conclusion", Sequent(env, Var("x"), Q))
    result = check_proof(tree)
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.PREMISE_CONCLUSION_MISMATCH
    assert result.location == (0,) * 30


def test_depth_limit_applies_through_shared_subtree() -> None:
    env = Env.of(x=P)
    shared = _inl_tower(3)
    c = shared.conclusion
    wrapped = D(Rule.INL_INTRO, env, InL(c.term), Sum(c.ty, Q), [shared])
    tree = D(
        Rule.PAIR_INTRO,
        env,
        Pair(c.term, InL(c.term)),
        Product(c.ty, Sum(c.ty, Q)),
        [shared, wrapped],
    )
    assert check_proof(tree) == Accept()
    assert check_proof(tree, config=CheckerConfig(max_depth=6))

    result = check_proof(tree, config=CheckerConfig(max_depth=5))
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE
    assert result.location == (1, 0, 0, 0, 0)


def test_config_rejects_nonpositive_depth() -> None:
    with pytest.raises(ValueError, match="max_depth"):
        CheckerConfig(max_depth=0)


def test_check_proof_on_non_derivation() -> None:
    result = check_proof("nope")  # type: ignore[arg-type]
    assert isinstance(result, Reject)
    assert result.reason is RejectReason.MALFORMED_PROOF_STRUCTURE


def test_reject_str() -> None:
    result = Reject(RejectReason.PREMISE_INVALID, (1, 0), Rule.ASSM, "oops")
    assert str(result) == "Reject: premise-invalid at 1.0: oops"
    assert str(Reject(RejectReason.UNBOUND_VARIABLE)) == "Reject: unbound-variable at root"
    assert str(Accept()) == "Accept"
    assert not Reject(RejectReason.UNBOUND_VARIABLE)
