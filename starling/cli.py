#!/usr/bin/env python3
"""
Starling Command-Line Interface

Usage:
    starling simplify "(implies x (not x))"         # => not(x)
    starling simplify --format sexpr "(not (and p q))"  # => (not (and p q))
    starling simplify -r extra.rules "(f x)"        # extra rules on top of the defaults
    echo "(- x x)" | starling simplify              # filter mode, one term per line
    starling rules                                  # list the rule table
    starling rules --group boolean                  # ... or part of it

Exit status is 0 on success, 1 for unreadable terms or rules, and 2 when
the rules prove two different constants equal.
"""

import argparse
import sys
from typing import List, Optional, Sequence, TextIO

from . import __version__
from .encode import decode
from .errors import InconsistentAnalysis, RuleSyntaxError, TermSyntaxError
from .extract import Extractor
from .log import get_logger, setup_logging
from .pattern import Rewrite
from .rules import default_rules, load_rules_from_file, rule_groups, to_dsl
from .runner import DEFAULT_ITER_LIMIT, DEFAULT_NODE_LIMIT
from .simplify import saturate
from .term import TermExpr

logger = get_logger(__name__, system="cli")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_INCONSISTENT = 2


def positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


class SimplifyCommand:
    """Simplifies terms given on the command line or read from stdin."""

    def __init__(self, rules: Sequence[Rewrite], iter_limit: int, node_limit: int,
                 fmt: str = "infix", trace: bool = False,
                 out: Optional[TextIO] = None, err: Optional[TextIO] = None):
        self.rules = rules
        self.iter_limit = iter_limit
        self.node_limit = node_limit
        self.fmt = fmt
        self.trace = trace
        self._out = out
        self._err = err

    @property
    def out(self) -> TextIO:
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def simplify_text(self, text: str) -> str:
        term = TermExpr.parse(text)
        runner = saturate(term, rules=self.rules, iter_limit=self.iter_limit,
                          node_limit=self.node_limit)
        if self.trace:
            print(runner.report.format(), file=self.err)
        _, best = Extractor(runner.egraph).find_best(runner.roots[0])
        if self.fmt == "infix":
            return str(decode(best))
        return str(best)

    def run_expression(self, text: str) -> int:
        """
        Simplify one term and print it.

        Returns:
            Exit code (0 for success)
        """
        try:
            print(self.simplify_text(text), file=self.out)
        except TermSyntaxError as e:
            print(f"Error: {e}", file=self.err)
            return EXIT_USAGE
        except InconsistentAnalysis as e:
            print(f"Error: {e}", file=self.err)
            return EXIT_INCONSISTENT
        return EXIT_OK

    def run_stream(self, stream: TextIO) -> int:
        """
        Simplify each non-blank, non-comment line of `stream`.

        Stops at the first failing line and returns its exit code.
        """
        for line in stream:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            status = self.run_expression(line)
            if status != EXIT_OK:
                return status
        return EXIT_OK


def load_rules(paths: Sequence[str], groups: Optional[List[str]]) -> List[Rewrite]:
    """The default table (optionally narrowed to `groups`) plus rules from files."""
    rules = list(default_rules(groups))
    for path in paths:
        rules.extend(load_rules_from_file(path))
    return rules


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="starling",
        description="Simplify Starling expressions by equality saturation",
        epilog="Examples:\n"
               "  starling simplify '(implies x (not x))'\n"
               "  starling simplify --format sexpr '(+ x 0)'\n"
               "  echo '(- x x)' | starling simplify\n"
               "  starling rules --group boolean\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log saturation progress to stderr",
    )
    parser.add_argument(
        "--log-format",
        choices=["console", "json"],
        default="console",
        help="Log line format (default: console)",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    simplify = commands.add_parser("simplify", help="Simplify a term")
    simplify.add_argument(
        "expr",
        nargs="?",
        help="S-expression to simplify; read lines from stdin if omitted",
    )
    simplify.add_argument(
        "-f", "--format",
        choices=["sexpr", "infix"],
        default="infix",
        help="Output format (default: infix)",
    )
    simplify.add_argument(
        "-t", "--trace",
        action="store_true",
        help="Print per-iteration saturation statistics to stderr",
    )
    simplify.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        metavar="FILE",
        help="Load extra rules from file (can be specified multiple times)",
    )
    simplify.add_argument(
        "-g", "--group",
        action="append",
        metavar="GROUP",
        help="Only use built-in rules from this group (repeatable)",
    )
    simplify.add_argument(
        "--iter-limit",
        type=positive_int,
        default=DEFAULT_ITER_LIMIT,
        help=f"Maximum saturation iterations (default: {DEFAULT_ITER_LIMIT})",
    )
    simplify.add_argument(
        "--node-limit",
        type=positive_int,
        default=DEFAULT_NODE_LIMIT,
        help=f"Maximum e-graph size in nodes (default: {DEFAULT_NODE_LIMIT})",
    )

    rules = commands.add_parser("rules", help="List the rule table")
    rules.add_argument(
        "-g", "--group",
        action="append",
        metavar="GROUP",
        help="Only list this group (repeatable)",
    )
    rules.add_argument(
        "-r", "--rules",
        action="append",
        default=[],
        metavar="FILE",
        help="Also list rules from file",
    )
    rules.add_argument(
        "--groups",
        action="store_true",
        help="List group names only",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING", args.log_format)

    try:
        rules = load_rules(args.rules, args.group)
    except (OSError, RuleSyntaxError) as e:
        print(f"Error loading rules: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)

    if args.command == "rules":
        if args.groups:
            print("\n".join(rule_groups(rules)))
        else:
            sys.stdout.write(to_dsl(rules))
        sys.exit(EXIT_OK)

    command = SimplifyCommand(
        rules,
        iter_limit=args.iter_limit,
        node_limit=args.node_limit,
        fmt=args.format,
        trace=args.trace,
    )
    logger.debug("simplify_start", rules=len(rules), iter_limit=args.iter_limit,
                 node_limit=args.node_limit)

    if args.expr is not None:
        sys.exit(command.run_expression(args.expr))
    sys.exit(command.run_stream(sys.stdin))


if __name__ == "__main__":
    main()
