"""Parser for the textual syntax of types, terms, sequents and proof trees.

Types::

    P   ⊥   (A -> B)   (A * B)   (A + B)        # also bot, →, ×

Terms::

    x   (cons a b)   (inl t)   (inr t)   (case t f g)
    (car t)   (cdr t)   (λ (x : A) t)   (abort t)   # also lambda

Sequents and derivations::

    {x : P, y : Q} |- (cons x y) : (P * Q)          # also ⊢
    (PairIntro {x : P, y : Q} |- (cons x y) : (P * Q)
      (Assm {x : P, y : Q} |- x : P)
      (Assm {x : P, y : Q} |- y : Q))

``#`` starts a comment that runs to the end of the line.  The term keywords
and ``bot`` are reserved; every other identifier, rule names included, may
name a variable or a base type.
"""

from __future__ import annotations

import logging
from typing import cast

import ply.lex as lex  # type: ignore[import-untyped]
import ply.yacc as yacc  # type: ignore[import-untyped]

from ipl.kernel.derivation import Derivation, Rule, Sequent
from ipl.kernel.env import Env
from ipl.kernel.terms import Abort, Case, Fst, InL, InR, Lambda, Pair, Snd, Term, Var
from ipl.kernel.types import Arrow, BaseVar, Bottom, Product, Sum, Type
from ipl.surface.errors import Span, SurfaceError

logger = logging.getLogger(__name__)

_SOURCE: str = ""

reserved = {
    "cons": "CONS",
    "inl": "INL",
    "inr": "INR",
    "case": "CASE",
    "car": "CAR",
    "cdr": "CDR",
    "abort": "ABORT",
    "lambda": "LAMBDA",
    "bot": "BOT",
}

# Rule tags are read where a derivation names its rule and are ordinary
# identifiers everywhere else.
_RULES = {rule.value: rule for rule in Rule}

tokens = (
    "IDENT",
    "ARROW",
    "TIMES",
    "PLUS",
    "TURNSTILE",
    "COLON",
    "COMMA",
    "LPAREN",
    "RPAREN",
    "LBRACE",
    "RBRACE",
    *tuple(dict.fromkeys(reserved.values())),
)

t_ARROW = r"->|→"
t_TIMES = r"\*|×"
t_PLUS = r"\+"
t_TURNSTILE = r"\|-|⊢"
t_COLON = r":"
t_COMMA = r","
t_LPAREN = r"\("
t_RPAREN = r"\)"
t_LBRACE = r"\{"
t_RBRACE = r"\}"

t_ignore = " \t\r"
t_ignore_COMMENT = r"\#[^\n]*"


def t_newline(t: lex.LexToken) -> None:
    r"\n+"
    t.lexer.lineno += len(t.value)


def t_LAMBDA(t: lex.LexToken) -> lex.LexToken:
    r"λ"
    return t


def t_BOT(t: lex.LexToken) -> lex.LexToken:
    r"⊥"
    return t


def t_IDENT(t: lex.LexToken) -> lex.LexToken:
    r"[A-Za-z_][A-Za-z0-9_']*"
    t.type = reserved.get(t.value, "IDENT")
    return t


def t_error(t: lex.LexToken) -> None:
    span = Span(t.lexpos, t.lexpos + 1)
    raise SurfaceError(f"Unexpected character {t.value[0]!r}", span, _SOURCE)


# ---- types ----


def p_type_base(p: yacc.YaccProduction) -> None:
    "type : IDENT"
    p[0] = BaseVar(p[1])


def p_type_bottom(p: yacc.YaccProduction) -> None:
    "type : BOT"
    p[0] = Bottom()


def p_type_arrow(p: yacc.YaccProduction) -> None:
    "type : LPAREN type ARROW type RPAREN"
    p[0] = Arrow(p[2], p[4])


def p_type_product(p: yacc.YaccProduction) -> None:
    "type : LPAREN type TIMES type RPAREN"
    p[0] = Product(p[2], p[4])


def p_type_sum(p: yacc.YaccProduction) -> None:
    "type : LPAREN type PLUS type RPAREN"
    p[0] = Sum(p[2], p[4])


# ---- terms ----


def p_term_var(p: yacc.YaccProduction) -> None:
    "term : IDENT"
    p[0] = Var(p[1])


def p_term_pair(p: yacc.YaccProduction) -> None:
    "term : LPAREN CONS term term RPAREN"
    p[0] = Pair(p[3], p[4])


def p_term_unary(p: yacc.YaccProduction) -> None:
    """term : LPAREN INL term RPAREN
    | LPAREN INR term RPAREN
    | LPAREN CAR term RPAREN
    | LPAREN CDR term RPAREN
    | LPAREN ABORT term RPAREN"""
    ctor = {"inl": InL, "inr": InR, "car": Fst, "cdr": Snd, "abort": Abort}[p[2]]
    p[0] = ctor(p[3])


def p_term_case(p: yacc.YaccProduction) -> None:
    "term : LPAREN CASE term term term RPAREN"
    p[0] = Case(p[3], p[4], p[5])


def p_term_lambda(p: yacc.YaccProduction) -> None:
    "term : LPAREN LAMBDA LPAREN IDENT COLON type RPAREN term RPAREN"
    p[0] = Lambda(p[4], p[6], p[8])


# ---- environments and sequents ----


def p_env_empty(p: yacc.YaccProduction) -> None:
    "env : LBRACE RBRACE"
    p[0] = Env()


def p_env(p: yacc.YaccProduction) -> None:
    "env : LBRACE bindings RBRACE"
    bindings: dict[str, Type] = {}
    for name, ty, span in p[2]:
        if name in bindings:
            raise SurfaceError(f"Duplicate binding for {name!r}", span, _SOURCE)
        bindings[name] = ty
    p[0] = Env.of(*bindings.items())


def p_bindings_multi(p: yacc.YaccProduction) -> None:
    "bindings : bindings COMMA binding"
    p[0] = p[1] + (p[3],)


def p_bindings_single(p: yacc.YaccProduction) -> None:
    "bindings : binding"
    p[0] = (p[1],)


def p_binding(p: yacc.YaccProduction) -> None:
    "binding : IDENT COLON type"
    start = p.lexpos(1)
    p[0] = (p[1], p[3], Span(start, start + len(p[1])))


def p_sequent(p: yacc.YaccProduction) -> None:
    "sequent : env TURNSTILE term COLON type"
    p[0] = Sequent(p[1], p[3], p[5])


# ---- derivations ----


def p_derivation(p: yacc.YaccProduction) -> None:
    "derivation : LPAREN IDENT sequent premises RPAREN"
    name = p[2]
    if name not in _RULES:
        start = p.lexpos(2)
        span = Span(start, start + len(name))
        raise SurfaceError(f"Unknown rule {name!r}", span, _SOURCE)
    p[0] = Derivation(_RULES[name], p[3], p[4])


def p_premises_multi(p: yacc.YaccProduction) -> None:
    "premises : premises derivation"
    p[0] = p[1] + (p[2],)


def p_premises_empty(p: yacc.YaccProduction) -> None:
    "premises : empty"
    p[0] = ()


def p_empty(p: yacc.YaccProduction) -> None:
    "empty :"
    p[0] = ()


def p_error(p: lex.LexToken | None) -> None:
    if p is None:
        span = Span(len(_SOURCE), len(_SOURCE))
        raise SurfaceError("Unexpected end of input", span, _SOURCE)
    tok = cast(lex.LexToken, p)
    span = Span(tok.lexpos, tok.lexpos + len(str(tok.value)))
    raise SurfaceError("Unexpected token", span, _SOURCE)


# One table per entry point; symbols outside a start symbol's reach are
# expected, so table construction warnings are discarded.
_PARSERS: dict[str, yacc.LRParser] = {}


def _parse(source: str, start: str) -> object:
    global _SOURCE
    _SOURCE = source
    lexer = lex.lex()
    parser = _PARSERS.get(start)
    if parser is None:
        logger.debug("building %s parser tables", start)
        parser = _PARSERS[start] = yacc.yacc(
            start=start, debug=False, write_tables=False, errorlog=yacc.NullLogger()
        )
    result = parser.parse(source, lexer=lexer)
    if result is None:
        span = Span(len(source), len(source))
        raise SurfaceError("Unexpected end of input", span, source)
    return result


def parse_type(source: str) -> Type:
    return cast(Type, _parse(source, "type"))


def parse_term(source: str) -> Term:
    return cast(Term, _parse(source, "term"))


def parse_env(source: str) -> Env:
    return cast(Env, _parse(source, "env"))


def parse_sequent(source: str) -> Sequent:
    return cast(Sequent, _parse(source, "sequent"))


def parse_derivation(source: str) -> Derivation:
    """Parse a proof tree written in the syntax shown in the module docstring."""
    return cast(Derivation, _parse(source, "derivation"))


__all__ = [
    "parse_type",
    "parse_term",
    "parse_env",
    "parse_sequent",
    "parse_derivation",
]
