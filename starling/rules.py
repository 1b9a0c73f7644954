"""
Rewrite rules as data.

Rules are written one per line in a small DSL:

    @name: lhs => rhs
    @name "description": lhs => rhs
    @name: lhs => rhs when (guard :x)

`[group]` lines tag the rules that follow, `# ...` lines are comments and
`:include path` pulls in another rules file. The built-in table is
DEFAULT_RULES_DSL; default_rules() parses it once per process.
"""

import re
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from .analysis import is_not_zero
from .errors import RuleSyntaxError, TermSyntaxError
from .pattern import (
    LHS_PREFIX,
    RHS_PREFIX,
    Guard,
    GuardFunc,
    Rewrite,
    parse_pattern,
)
from .term import read_sexpr

# Guards a rule may name in its `when` clause.
CONDITIONS: Dict[str, GuardFunc] = {
    "is-not-zero": is_not_zero,
}


DEFAULT_RULES_DSL = """
# Starling simplification rules.

[arithmetic]
@commute-add: (+ ?x ?y) => (+ :y :x)
@commute-mul: (* ?x ?y) => (* :y :x)
@add-0: (+ ?x 0) => :x
@sub-0: (- ?x 0) => :x
@mul-1: (* ?x 1) => :x
@mul-0: (* ?x 0) => 0
@sub-reflexive: (- ?x ?x) => 0
@div-reflexive: (/ ?x ?x) => 1 when (is-not-zero :x)
@int-div-reflexive: (div ?x ?x) => 1 when (is-not-zero :x)
@mod-reflexive: (mod ?x ?x) => 0
@add-minus: (+ ?x (- ?y)) => (- :x :y)
@sub-minus: (- 0 ?x) => (- :x)

[unary]
@minus-intro: (* ?x -1) => (- :x)
@plus-intro: ?x => (+ :x)
@minus-eliminate: (- ?x) => (* :x -1)
@plus-eliminate: (+ ?x) => :x

[relational]
@gt-lt: (> ?x ?y) => (< :y :x)
@ge-le: (>= ?x ?y) => (<= :y :x)
@neq-sym: (<> ?x ?y) => (<> :y :x)
@leq-reflexive: (<= ?x ?x) => true
@neq-reflexive: (<> ?x ?x) => false
@lt-reflexive: (< ?x ?x) => false
@eq-reflexive: (= ?x ?x) => true
@eq-symmetric: (= ?x ?y) => (= :y :x)
@eq-transitive: (and (= ?x ?y) (= ?y ?z)) => (= :x :z)
@eq-not: (= ?x (not ?y)) => (<> :x :y)
@eq-true: (= ?x true) => :x
@eq-false: (= ?x false) => (not :x)

[boolean]
@or-false: (or ?x false) => :x
@or-reflexive: (or ?x ?x) => :x
@or-true: (or ?x true) => true
@or-commute: (or ?x ?y) => (or :y :x)
@or-saturate: (or ?x (not ?x)) => true
@and-true: (and ?x true) => :x
@and-reflexive: (and ?x ?x) => :x
@and-false: (and ?x false) => false
@and-commute: (and ?x ?y) => (and :y :x)
@and-saturate: (and ?x (not ?x)) => false
@not-true: (not true) => false
@not-false: (not false) => true
@not-not: (not (not ?x)) => :x
@de-morgan-and: (not (and ?x ?y)) => (or (not :x) (not :y))
@de-morgan-or: (not (or ?x ?y)) => (and (not :x) (not :y))
@implies-definition: (implies ?x ?y) => (or (not :x) :y)
@implies-reflexive: (implies ?x ?x) => true
@implies-antisymmetric: (and (implies ?x ?y) (implies ?y ?x)) => (= :x :y)
@implies-transitive: (and (implies ?x ?y) (implies ?y ?z)) => (implies :x :z)
@iff-definition: (iff ?x ?y) => (= :x :y)
"""


# ============================================================
# Parsing
# ============================================================

def _find_when(text: str) -> int:
    """Position of a top-level `when` keyword in `text`, or -1."""
    depth = 0
    for i, char in enumerate(text):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif depth == 0 and text[i:i + 4] == "when" and (i == 0 or text[i - 1].isspace()):
            after = i + 4
            if after >= len(text) or text[after].isspace():
                return i
    return -1


def _parse_guard(text: str, line: str,
                 conditions: Dict[str, GuardFunc]) -> Guard:
    try:
        sexpr = read_sexpr(text)
    except TermSyntaxError as exc:
        raise RuleSyntaxError(f"bad guard: {exc}", line) from None
    if (not isinstance(sexpr, list) or len(sexpr) != 2
            or isinstance(sexpr[0], list) or isinstance(sexpr[1], list)
            or not sexpr[1].startswith(RHS_PREFIX)):
        raise RuleSyntaxError(f"guard must look like (name {RHS_PREFIX}var)", line)
    name, var = sexpr[0], sexpr[1][len(RHS_PREFIX):]
    check = conditions.get(name)
    if check is None:
        raise RuleSyntaxError(f"unknown guard {name!r}", line)
    return Guard(name, var, check)


def parse_rule_line(line: str,
                    conditions: Optional[Dict[str, GuardFunc]] = None) -> Optional[Rewrite]:
    """
    Parse a single rule line.

    Formats:
        @name: pattern => skeleton
        @name "description": pattern => skeleton
        @name: pattern => skeleton when (guard :x)
        pattern => skeleton

    Returns:
        The rewrite, or None for a blank or comment line.

    Raises:
        RuleSyntaxError: if the line is neither blank, a comment nor a rule.
    """
    conditions = CONDITIONS if conditions is None else conditions
    original = line.strip()
    line = original

    if not line or line.startswith("#"):
        return None

    name = None
    description = None
    if line.startswith("@"):
        match_obj = re.match(r'@([\w-]+)\s+"([^"]+)":\s*(.+)', line)
        if match_obj:
            name, description, line = match_obj.groups()
        else:
            match_obj = re.match(r"@([\w-]+):\s*(.+)", line)
            if not match_obj:
                raise RuleSyntaxError("expected '@name:' before the rule", original)
            name, line = match_obj.groups()

    if "=>" not in line:
        raise RuleSyntaxError("missing '=>'", original)
    lhs_text, rest = (part.strip() for part in line.split("=>", 1))

    guard = None
    when_pos = _find_when(rest)
    if when_pos >= 0:
        guard = _parse_guard(rest[when_pos + 4:].strip(), original, conditions)
        rest = rest[:when_pos].strip()

    try:
        lhs = parse_pattern(lhs_text, LHS_PREFIX)
        rhs = parse_pattern(rest, RHS_PREFIX)
        return Rewrite(name or "", lhs, rhs, guard, description)
    except RuleSyntaxError as exc:
        raise RuleSyntaxError(str(exc), original) from None


def load_rules_from_dsl(
    text: str,
    conditions: Optional[Dict[str, GuardFunc]] = None,
    base_path: Optional[Path] = None,
    _included_files: Optional[Set[Path]] = None,
) -> List[Rewrite]:
    """
    Load rules from DSL text.

    Supports:
    - Named groups: [groupname]
    - File includes: :include path/to/file.rules

    Unnamed rules are named rule-1, rule-2, ... in order of appearance.

    Args:
        text: DSL text containing rules
        conditions: Guard registry; defaults to CONDITIONS
        base_path: Base path for resolving relative :include paths
        _included_files: Internal tracking for circular include detection

    Returns:
        The rules in the order they were written.
    """
    rules: List[Rewrite] = []
    current_group = None

    if _included_files is None:
        _included_files = set()

    for line in text.split("\n"):
        stripped = line.strip()

        if stripped.startswith("[") and stripped.endswith("]"):
            current_group = stripped[1:-1].strip()
            continue

        if stripped.startswith(":include "):
            include_path = Path(stripped[len(":include "):].strip())
            if base_path is not None:
                include_path = base_path / include_path
            resolved = include_path.resolve()
            if resolved in _included_files:
                raise RuleSyntaxError(f"circular include of {include_path}")
            if not include_path.exists():
                raise FileNotFoundError(f"Include file not found: {include_path}")
            _included_files.add(resolved)
            included = load_rules_from_file(include_path, conditions, _included_files)
            for rule in included:
                if current_group and not rule.tags:
                    rule.tags.append(current_group)
            rules.extend(included)
            continue

        rule = parse_rule_line(line, conditions)
        if rule is None:
            continue
        if current_group and current_group not in rule.tags:
            rule.tags.append(current_group)
        rules.append(rule)

    for number, rule in enumerate(rules, 1):
        if not rule.name:
            rule.name = f"rule-{number}"
    return rules


def load_rules_from_file(
    path: Union[str, Path],
    conditions: Optional[Dict[str, GuardFunc]] = None,
    _included_files: Optional[Set[Path]] = None,
) -> List[Rewrite]:
    """Load rules from a .rules file, resolving includes relative to it."""
    path = Path(path)
    return load_rules_from_dsl(
        path.read_text(),
        conditions,
        base_path=path.parent,
        _included_files=_included_files,
    )


def format_rule(rule: Rewrite) -> str:
    """Render a rule back to one DSL line."""
    if rule.description:
        return f'@{rule.name} "{rule.description}": {rule}'
    return f"@{rule.name}: {rule}"


def to_dsl(rules: Iterable[Rewrite]) -> str:
    """Render rules as DSL text, with a [group] header wherever the group changes."""
    lines: List[str] = []
    current_group = None
    for rule in rules:
        group = rule.tags[0] if rule.tags else None
        if group != current_group and group is not None:
            if lines:
                lines.append("")
            lines.append(f"[{group}]")
        current_group = group
        lines.append(format_rule(rule))
    return "\n".join(lines) + "\n"


# ============================================================
# The default table
# ============================================================

_default_rules: Optional[Tuple[Rewrite, ...]] = None
_default_rules_lock = threading.Lock()


def default_rules(groups: Optional[Iterable[str]] = None) -> Tuple[Rewrite, ...]:
    """
    The built-in rule table, parsed on first use and shared afterwards.

    Args:
        groups: If given, keep only rules tagged with one of these groups.
    """
    global _default_rules
    if _default_rules is None:
        with _default_rules_lock:
            if _default_rules is None:
                _default_rules = tuple(load_rules_from_dsl(DEFAULT_RULES_DSL))
    if groups is None:
        return _default_rules
    wanted = set(groups)
    return tuple(rule for rule in _default_rules if wanted.intersection(rule.tags))


def rule_groups(rules: Optional[Iterable[Rewrite]] = None) -> List[str]:
    """Group names in order of first appearance."""
    names: List[str] = []
    for rule in default_rules() if rules is None else rules:
        for tag in rule.tags:
            if tag not in names:
                names.append(tag)
    return names
