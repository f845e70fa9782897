"""ipl-check: verify a natural-deduction proof tree written in a file.

Usage:
  ipl-check proof.ipl                         # check against the tree's own conclusion
  ipl-check proof.ipl --goal "{} |- t : T"    # check against an explicit sequent
  ipl-check - < proof.ipl                     # read the tree from stdin

Exit status is 0 on Accept, 1 on Reject and 2 when the input cannot be read
or parsed.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from ipl.kernel.check import CheckerConfig, check_derivation
from ipl.kernel.pretty import show_derivation, show_sequent
from ipl.surface.errors import SurfaceError
from ipl.surface.parse import parse_derivation, parse_sequent

logger = logging.getLogger(__name__)

EXIT_ACCEPT = 0
EXIT_REJECT = 1
EXIT_USAGE = 2


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ipl-check",
        description="Check a typing derivation for intuitionistic propositional logic.",
    )
    parser.add_argument("proof", help="proof tree file, or - for stdin")
    parser.add_argument(
        "--goal",
        help="sequent to prove, e.g. '{p : (P * Q)} |- (car p) : P' "
        "(defaults to the tree's own conclusion)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=CheckerConfig().max_depth,
        help="reject trees deeper than this (default: %(default)s)",
    )
    parser.add_argument(
        "--show", action="store_true", help="print the parsed tree before checking"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging"
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = CheckerConfig(max_depth=args.max_depth)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        source = _read(args.proof)
    except OSError as e:
        print(f"error: cannot read {args.proof}: {e.strerror}", file=sys.stderr)
        return EXIT_USAGE

    try:
        tree = parse_derivation(source)
        goal = parse_sequent(args.goal) if args.goal else tree.conclusion
    except SurfaceError as e:
        print(f"syntax error: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.show:
        print(show_derivation(tree))
    logger.debug("checking against %s", show_sequent(goal))

    result = check_derivation(tree, goal.env, goal.term, goal.ty, config=config)
    print(result)
    return EXIT_ACCEPT if result else EXIT_REJECT


if __name__ == "__main__":
    sys.exit(main())
