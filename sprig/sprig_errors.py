"""
Exceptions raised by the sprig core.

Every failure raised by the tree model, the evaluator or the type layer is a
`SprigError`. The core never recovers from these locally; they propagate to
the caller (normally `Session.run`, which formats them for display).
"""
from typing import Any, List, Optional


class SprigError(Exception):
    """Base class for all sprig failures.

    `expr` is the offending node when one is known, and `stacktrace` is the
    evaluator's call stack at the point of failure (outermost call first).
    """
    kind = "Error"

    def __init__(self, message: str, *, expr: Any = None):
        super().__init__(message)
        self.message = message
        self.expr = expr
        self.stacktrace: List[dict] = []

    def __str__(self) -> str:
        return f"{self.kind}: {self.message}"


class InvalidPath(SprigError):
    """An index path does not resolve against a tree."""
    kind = "InvalidPath"

    def __init__(self, path, message: Optional[str] = None, *, expr: Any = None):
        super().__init__(message or f"invalid index path {list(path)!r} for tree", expr=expr)
        self.path = list(path)


class HoleEvaluated(SprigError):
    kind = "HoleEvaluated"

    def __init__(self, message: str = "evaluating hole as expression", *, expr: Any = None):
        super().__init__(message, expr=expr)


class UnboundVariable(SprigError):
    kind = "UnboundVariable"

    def __init__(self, name: str, message: Optional[str] = None, *, expr: Any = None):
        super().__init__(message or f"unbound variable: {name}", expr=expr)
        self.name = name


class NotCallable(SprigError):
    kind = "NotCallable"


class ArityMismatch(SprigError):
    kind = "ArityMismatch"


class TypeMismatch(SprigError):
    kind = "TypeMismatch"


class DivisionByZero(SprigError):
    kind = "DivisionByZero"


class MalformedExpression(SprigError):
    """A binder slot holds something other than a name-binding."""
    kind = "MalformedExpression"


class NotImplementedFeature(SprigError, NotImplementedError):
    kind = "NotImplemented"


class RecursionDepthExceeded(SprigError):
    kind = "RecursionDepthExceeded"


class NotInjectable(SprigError):
    """A value has no expression form and cannot become a tree."""
    kind = "NotInjectable"
