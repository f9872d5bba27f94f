"""
Name resolution for the evaluator: cells, bindings, environments and the
lazily-resolved table of top-level defines.
"""
import collections.abc
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from sprig.sprig_errors import UnboundVariable
from sprig.sprig_types import Type


class Cell:
    """A mutable box holding at most one value.

    Cells are shared by reference: every closure capturing a scope sees later
    writes to that scope's cells, which is what lets `letrec` bindings refer
    to one another.
    """
    __slots__ = ("value",)
    _EMPTY = object()

    def __init__(self, value: Any = _EMPTY):
        self.value = value

    @property
    def is_empty(self) -> bool:
        return self.value is Cell._EMPTY

    def clear(self):
        self.value = Cell._EMPTY

    def __repr__(self) -> str:
        return "Cell(<empty>)" if self.is_empty else f"Cell({self.value!r})"


@dataclass
class BindingAttributes:
    """Editor-facing metadata about a binding: documentation, declared types
    and arity bounds, and hints for laying out calls as blocks."""
    binder: Optional[Any] = None
    doc: Optional[str] = None

    arg_types: Optional[List[Type]] = None
    ret_type: Optional[Type] = None
    min_arg_count: Optional[int] = None
    max_arg_count: Optional[int] = None

    heading_arg_count: Optional[int] = None
    body_arg_hints: Optional[List[str]] = None

    infix: bool = False


@dataclass
class Binding:
    name: str
    cell: Cell
    attributes: Optional[BindingAttributes] = field(default=None)


class Environment(collections.abc.Mapping):
    """An immutable name -> Binding mapping.

    Environments are never modified after construction; scopes are nested by
    merging into a new environment (`merge_envs`), so a parent scope is never
    affected by its children.
    """
    def __init__(self, bindings: Optional[Dict[str, Binding]] = None):
        self._bindings: Dict[str, Binding] = dict(bindings or {})

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> 'Environment':
        """Build an environment binding each name to a fresh cell holding its value."""
        return cls({name: Binding(name, Cell(value)) for name, value in values.items()})

    def __getitem__(self, name: str) -> Binding:
        return self._bindings[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def cell(self, name: str) -> Optional[Cell]:
        binding = self._bindings.get(name)
        return binding.cell if binding is not None else None

    def __repr__(self) -> str:
        return f"<Environment names=[{', '.join(self._bindings)}]>"


def make_env(bindings: Iterable[Binding]) -> Environment:
    return Environment({binding.name: binding for binding in bindings})


def merge_envs(*environments: Optional[Environment]) -> Environment:
    """Right-biased union: names in later environments shadow earlier ones."""
    merged: Dict[str, Binding] = {}
    for env in environments:
        if env:
            merged.update(env._bindings)
    return Environment(merged)


# =================================================================
# Defines
# =================================================================

class Defines:
    """Top-level bindings, resolved lazily on first lookup.

    Each name maps to a producer returning the Cell for that name. A producer
    runs at most once: its Cell is cached and every later lookup returns the
    same Cell. Producers may look up other defines, so top-level definitions
    can refer forwards and to each other regardless of the order in which
    they were registered. A producer that needs its own (not yet produced)
    Cell fails with UnboundVariable.
    """
    def __init__(self):
        self._producers: Dict[str, Callable[[], Cell]] = {}
        self._cells: Dict[str, Cell] = {}
        self._forcing: List[str] = []

    def add(self, name: str, producer: Callable[[], Cell]):
        """Register (or replace) the producer for `name`."""
        self._producers[name] = producer
        self._cells.pop(name, None)

    def add_all(self, entries: Iterable[Tuple[str, Callable[[], Cell]]]):
        for name, producer in entries:
            self.add(name, producer)

    def get(self, name: str) -> Optional[Cell]:
        if name in self._cells:
            return self._cells[name]
        producer = self._producers.get(name)
        if producer is None:
            return None
        if name in self._forcing:
            cycle = " -> ".join(self._forcing[self._forcing.index(name):] + [name])
            raise UnboundVariable(name, f"unbound variable: {name} (used before its definition finished: {cycle})")

        self._dbg("force", name)
        self._forcing.append(name)
        try:
            cell = producer()
        finally:
            self._forcing.pop()
        self._cells[name] = cell
        return cell

    def names(self) -> List[str]:
        return list(self._producers)

    def __contains__(self, name: str) -> bool:
        return name in self._producers

    def reset(self):
        self._producers.clear()
        self._cells.clear()
        self._forcing.clear()

    def _dbg(self, *parts):
        if os.environ.get("SPRIG_DEBUG"):
            print("[DBG] defines", *parts, file=sys.stderr)
