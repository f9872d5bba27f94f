"""
Addressing within expression trees, and the forest of trees being edited.

Every composite expression has a fixed, ordered list of child slots:

  call          called, arg0, arg1, ...
  list          head0, head1, ..., [tail]
  define        name, value
  let/letrec    name0, value0, name1, value1, ..., body
  lambda        param0, param1, ..., body
  sequence      expr0, expr1, ...
  if            condition, then, else
  cond          test0, body0, test1, body1, ...

An index path selects one child per step, starting from a tree's root.
"""
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Sequence as Seq, Tuple

from sprig.sprig_datatypes import (
    Expr, Call, ListLiteral, Define, Let, Letrec, Lambda, Sequence, If, Cond,
)
from sprig.sprig_errors import InvalidPath

IndexPath = List[int]

COMPOSITE_CLASSES = (Call, ListLiteral, Define, Let, Letrec, Lambda, Sequence, If, Cond)


def is_composite(expr: Expr) -> bool:
    """Whether `expr` has child slots (an s-expression, as opposed to an atom)."""
    return isinstance(expr, COMPOSITE_CLASSES)


def children(expr: Expr) -> List[Expr]:
    """The child slots of `expr`, in order."""
    match expr:
        case Call():
            return [expr.called, *expr.args]
        case ListLiteral():
            return [*expr.heads, expr.tail] if expr.tail is not None else list(expr.heads)
        case Define():
            return [expr.name, expr.value]
        case Let() | Letrec():
            out: List[Expr] = []
            for name, value in expr.bindings:
                out.extend((name, value))
            out.append(expr.body)
            return out
        case Lambda():
            return [*expr.params, expr.body]
        case Sequence():
            return list(expr.exprs)
        case If():
            return [expr.condition, expr.then, expr.else_]
        case Cond():
            out = []
            for test, body in expr.clauses:
                out.extend((test, body))
            return out
    return []


def child_at(expr: Expr, index: int) -> Expr:
    slots = children(expr)
    if not is_composite(expr) or not 0 <= index < len(slots):
        raise InvalidPath([index], f"no child slot {index} in {expr.kind} expression", expr=expr)
    return slots[index]


def set_child_at(expr: Expr, index: int, child: Expr):
    """Replace a single child slot in place, leaving its siblings alone."""
    count = len(children(expr))
    if not is_composite(expr) or not 0 <= index < count:
        raise InvalidPath([index], f"no child slot {index} in {expr.kind} expression", expr=expr)

    match expr:
        case Call():
            if index == 0:
                expr.called = child
            else:
                expr.args[index - 1] = child
        case ListLiteral():
            if index < len(expr.heads):
                expr.heads[index] = child
            else:
                expr.tail = child
        case Define():
            if index == 0:
                expr.name = child
            else:
                expr.value = child
        case Let() | Letrec():
            if index == count - 1:
                expr.body = child
            else:
                name, value = expr.bindings[index // 2]
                expr.bindings[index // 2] = (child, value) if index % 2 == 0 else (name, child)
        case Lambda():
            if index == count - 1:
                expr.body = child
            else:
                expr.params[index] = child
        case Sequence():
            expr.exprs[index] = child
        case If():
            if index == 0:
                expr.condition = child
            elif index == 1:
                expr.then = child
            else:
                expr.else_ = child
        case Cond():
            test, body = expr.clauses[index // 2]
            expr.clauses[index // 2] = (child, body) if index % 2 == 0 else (test, child)


def expr_at_path(root: Expr, path: Seq[int]) -> Expr:
    node = root
    for depth, index in enumerate(path):
        if not is_composite(node):
            raise InvalidPath(path, f"invalid index path {list(path)!r}: {node.kind} at depth {depth} has no children", expr=node)
        slots = children(node)
        if not 0 <= index < len(slots):
            raise InvalidPath(path, f"invalid index path {list(path)!r}: index {index} out of range at depth {depth}", expr=node)
        node = slots[index]
    return node


def walk(expr: Expr, path: Optional[IndexPath] = None) -> Iterator[Tuple[IndexPath, Expr]]:
    """Yield `(path, node)` for `expr` and all of its descendants, pre-order."""
    path = list(path or [])
    yield path, expr
    for i, child in enumerate(children(expr)):
        yield from walk(child, path + [i])


def is_path_prefix(prefix: Seq[int], path: Seq[int]) -> bool:
    return len(prefix) <= len(path) and list(path[:len(prefix)]) == list(prefix)


# =================================================================
# Trees and the forest
# =================================================================

class Point(NamedTuple):
    """Canvas placement of a tree; opaque to everything but the renderer."""
    x: float = 0
    y: float = 0


@dataclass(eq=False)
class Tree:
    id: str
    root: Expr
    location: Point = field(default_factory=Point)

    def __repr__(self) -> str:
        return f"<Tree id={self.id!r} root={self.root.kind} at ({self.location.x}, {self.location.y})>"


class TreeIndexPath(NamedTuple):
    """A node location: a tree plus an index path from its root."""
    tree: Tree
    path: Tuple[int, ...]

    def extend(self, *indices: int) -> 'TreeIndexPath':
        return TreeIndexPath(self.tree, tuple(self.path) + indices)

    def parent(self) -> 'TreeIndexPath':
        return TreeIndexPath(self.tree, tuple(self.path[:-1]))


def resolve(tree: Tree, path: Seq[int]) -> Expr:
    return expr_at_path(tree.root, path)


def node_at(location: TreeIndexPath) -> Expr:
    return expr_at_path(location.tree.root, location.path)


class Forest:
    """The ordered collection of trees in an editing session.

    Tree ids are assigned from a counter and never reused, even after the
    tree holding them is removed.
    """
    def __init__(self):
        self._trees: List[Tree] = []
        self._next_id = 0

    def trees(self) -> List[Tree]:
        """A snapshot; later changes to the forest do not affect it."""
        return list(self._trees)

    def tree_by_id(self, tree_id: str) -> Optional[Tree]:
        for tree in self._trees:
            if tree.id == tree_id:
                return tree
        return None

    def new_tree(self, root: Expr, location: Optional[Point] = None) -> Tree:
        self._next_id += 1
        tree = Tree(str(self._next_id), root, Point(*location) if location is not None else Point())
        self._trees.append(tree)
        return tree

    def remove_tree(self, tree: Tree):
        self._trees = [t for t in self._trees if t.id != tree.id]

    def __contains__(self, tree: Tree) -> bool:
        return any(t.id == tree.id for t in self._trees)

    def __len__(self) -> int:
        return len(self._trees)

    def __iter__(self) -> Iterator[Tree]:
        return iter(self.trees())

    def clear(self):
        """Remove every tree. Ids keep counting up from where they were."""
        self._trees = []
