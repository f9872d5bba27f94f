"""
Editing sessions: a forest of trees, its top-level defines, and an evaluator
wired to both.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from sprig.sprig_datatypes import (
    Expr, Define, ListLiteral, NameBinding, is_function,
)
from sprig.sprig_environment import Defines, Environment
from sprig.sprig_errors import NotInjectable, SprigError
from sprig.sprig_interpreter import Evaluator
from sprig.sprig_library import InitialEnvironment
from sprig.sprig_mutate import (
    copy_expr, delete_expr, duplicate_expr, move_expr, orphan_expr, rename_binding,
)
from sprig.sprig_printer import Printer
from sprig.sprig_trees import Forest, Point, Tree, TreeIndexPath, node_at


@dataclass
class ExecutionResult:
    """The structured result of evaluating a node."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_expr: Optional[Expr] = None
    stacktrace: List[dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats the error with the offending expression and call stack, if known."""
        if self.status != 'error':
            return ""
        printer = Printer()
        lines = [str(self.error_message or "Unknown error")]
        if self.error_expr is not None:
            lines.append(f"in: {printer.pformat(self.error_expr)}")
        if self.stacktrace:
            frames = []
            for frame in self.stacktrace:
                args = [printer.pformat(arg) for arg in frame.get("args", [])]
                frames.append("(" + " ".join([frame["name"], *args]) + ")")
            lines.append("sprig stacktrace: " + " ".join(frames))
        return "\n".join(lines)


def _contains_function(value: Any) -> bool:
    if is_function(value):
        return True
    if isinstance(value, ListLiteral):
        return any(_contains_function(h) for h in value.heads) or _contains_function(value.tail)
    return False


class Session:
    """Owns the forest being edited and evaluates nodes within it.

    Every tree whose root is a `define` with a name contributes a top-level
    binding. Defines are reloaded from the forest before each evaluation, so
    they may refer to each other regardless of tree order.
    """
    def __init__(self, base_env: Optional[Environment] = None, max_call_depth: Optional[int] = None):
        self.forest = Forest()
        self.base_env = base_env if base_env is not None else InitialEnvironment
        self.defines = Defines()
        self.evaluator = Evaluator(self.base_env, self.defines, max_call_depth)

    def new_tree(self, root: Expr, location: Optional[Point] = None) -> Tree:
        return self.forest.new_tree(root, location)

    def reset(self):
        self.forest.clear()
        self.defines.reset()
        self.evaluator.call_stack.clear()

    def load_defines(self):
        """Register a producer for every top-level `define` in the forest."""
        self.defines.reset()
        for tree in self.forest.trees():
            root = tree.root
            if isinstance(root, Define) and isinstance(root.name, NameBinding):
                self.evaluator.eval(root)

    def evaluate(self, location: TreeIndexPath) -> Any:
        """Evaluate the node at `location`. Errors propagate to the caller."""
        node = node_at(location)
        self.load_defines()
        self.evaluator.call_stack.clear()
        self.evaluator._dbg("Session.evaluate", location.tree.id, list(location.path))
        return self.evaluator.eval(node)

    def evaluate_to_tree(self, location: TreeIndexPath, point: Optional[Point] = None) -> Tree:
        """Evaluate the node at `location` and add (a copy of) the result as a new tree."""
        value = self.evaluate(location)
        if _contains_function(value):
            raise NotInjectable(f"cannot place {Printer().pformat(value)} in the forest: functions have no source form")
        return self.forest.new_tree(copy.deepcopy(value), point or location.tree.location)

    def run(self, location: TreeIndexPath) -> ExecutionResult:
        """Like `evaluate`, but reports failures as a result instead of raising."""
        try:
            return ExecutionResult(status='success', value=self.evaluate(location))
        except SprigError as e:
            return ExecutionResult(
                status='error',
                error_message=str(e),
                error_expr=e.expr,
                stacktrace=list(e.stacktrace),
            )

    # --- Editing ---
    def move(self, source: TreeIndexPath, destination: TreeIndexPath, location: Optional[Point] = None):
        move_expr(self.forest, source, destination, location)

    def copy(self, source: TreeIndexPath, destination: TreeIndexPath, location: Optional[Point] = None):
        copy_expr(self.forest, source, destination, location)

    def orphan(self, target: TreeIndexPath, location: Optional[Point] = None):
        orphan_expr(self.forest, target, location)

    def delete(self, target: TreeIndexPath):
        delete_expr(self.forest, target)

    def duplicate(self, target: TreeIndexPath, location: Optional[Point] = None) -> Optional[Tree]:
        return duplicate_expr(self.forest, target, location)

    def rename(self, binder: TreeIndexPath, new_name: str):
        return rename_binding(self.forest, binder, new_name)
