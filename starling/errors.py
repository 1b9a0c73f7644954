"""
Exceptions raised by the starling simplifier.

Constant-folding failures (a type mismatch, a zero divisor) are not errors:
the analysis just reports the value as unknown. The exceptions here cover
unreadable input and the one internal inconsistency the e-graph can detect.
"""

from typing import Any, Optional


class StarlingError(Exception):
    """Base class for every error raised by starling."""


class TermSyntaxError(StarlingError, ValueError):
    """Raised when term or pattern text cannot be read."""

    def __init__(self, message: str, text: Optional[str] = None):
        if text is not None:
            message = f"{message}: {text!r}"
        super().__init__(message)
        self.text = text


class RuleSyntaxError(StarlingError, ValueError):
    """Raised when a rewrite rule definition is malformed."""

    def __init__(self, message: str, line: Optional[str] = None):
        if line is not None:
            message = f"{message} in rule {line!r}"
        super().__init__(message)
        self.line = line


class InconsistentAnalysis(StarlingError):
    """
    Two e-classes proven equal folded to different constants.

    This means a rewrite rule (or the folding itself) is unsound for the
    input at hand. Callers should treat it as a defect and stop, not retry.
    """

    def __init__(self, left: Any, right: Any,
                 left_id: Optional[int] = None, right_id: Optional[int] = None):
        where = ""
        if left_id is not None and right_id is not None:
            where = f" (e-classes {left_id} and {right_id})"
        super().__init__(f"merged non-equal constants {left} and {right}{where}")
        self.left = left
        self.right = right
        self.left_id = left_id
        self.right_id = right_id
