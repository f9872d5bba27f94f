"""
Defines the expression and value types of the sprig language.

Expressions are mutable nodes owned by exactly one tree in the forest; the
editor rewrites their child slots in place. Literal expressions double as
runtime data: evaluating a number, string or list literal returns the node
itself, and builtins build results out of the same classes.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, List, Optional, Tuple, Union, TYPE_CHECKING

from sprig.sprig_types import Type

if TYPE_CHECKING:
    from sprig.sprig_environment import Environment
    from sprig.sprig_interpreter import Evaluator


# =================================================================
# Expressions
# =================================================================

class Expr:
    """Base class for every expression node."""
    kind: ClassVar[str] = "expr"


class _Hole(Expr):
    """The empty slot. There is exactly one hole; copying returns it unchanged."""
    kind = "hole"
    _instance: Optional['_Hole'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __reduce__(self):
        return (_Hole, ())

    def __repr__(self) -> str:
        return "hole"


hole = _Hole()


def is_hole(expr: Any) -> bool:
    return expr is hole


@dataclass
class Number(Expr):
    kind: ClassVar[str] = "number"
    value: Union[int, float]


@dataclass
class Bool(Expr):
    kind: ClassVar[str] = "bool"
    value: bool


@dataclass
class String(Expr):
    kind: ClassVar[str] = "string"
    value: str


@dataclass
class Symbol(Expr):
    kind: ClassVar[str] = "symbol"
    value: str


@dataclass
class ListLiteral(Expr):
    """A (possibly improper) list: `heads` followed by `tail`.

    With no tail, or a tail that is itself a proper list, this is a proper
    list. `(1 2 . 3)` is `ListLiteral([1, 2], tail=3)`.
    """
    kind: ClassVar[str] = "list"
    heads: List[Expr] = field(default_factory=list)
    tail: Optional[Expr] = None


@dataclass
class Var(Expr):
    kind: ClassVar[str] = "var"
    id: str


@dataclass
class NameBinding(Expr):
    """A bindable identifier, optionally type-annotated.

    `variadic` marks the trailing parameter of a lambda that collects the
    remaining arguments.
    """
    kind: ClassVar[str] = "name-binding"
    id: str
    type: Optional[Type] = None
    variadic: bool = False


@dataclass
class Call(Expr):
    kind: ClassVar[str] = "call"
    called: Expr
    args: List[Expr] = field(default_factory=list)


@dataclass
class Define(Expr):
    kind: ClassVar[str] = "define"
    name: Expr
    value: Expr


@dataclass
class Let(Expr):
    kind: ClassVar[str] = "let"
    bindings: List[Tuple[Expr, Expr]] = field(default_factory=list)
    body: Expr = hole


@dataclass
class Letrec(Expr):
    kind: ClassVar[str] = "letrec"
    bindings: List[Tuple[Expr, Expr]] = field(default_factory=list)
    body: Expr = hole


@dataclass
class Lambda(Expr):
    kind: ClassVar[str] = "lambda"
    params: List[Expr] = field(default_factory=list)
    body: Expr = hole


@dataclass
class Sequence(Expr):
    kind: ClassVar[str] = "sequence"
    exprs: List[Expr] = field(default_factory=list)


@dataclass
class If(Expr):
    kind: ClassVar[str] = "if"
    condition: Expr = hole
    then: Expr = hole
    else_: Expr = hole


@dataclass
class Cond(Expr):
    kind: ClassVar[str] = "cond"
    clauses: List[Tuple[Expr, Expr]] = field(default_factory=list)


@dataclass
class TypeExpr(Expr):
    """A type written where an expression is expected."""
    kind: ClassVar[str] = "type"
    type: Type


DATUM_CLASSES = (Number, Bool, String, Symbol, ListLiteral)


def is_datum(obj: Any) -> bool:
    return isinstance(obj, DATUM_CLASSES)


def make_list(values: List[Any], tail: Optional[Expr] = None) -> ListLiteral:
    return ListLiteral(list(values), tail)


def empty_list() -> ListLiteral:
    return ListLiteral([])


# =================================================================
# Function values
# =================================================================

@dataclass
class Param:
    """One entry of a function signature. `type` is a tag name (e.g. "Number")
    checked against each argument at call time."""
    name: str
    type: Optional[str] = None
    variadic: bool = False


@dataclass
class Closure:
    """A function defined by a `lambda`: signature and body plus the
    environment the lambda was evaluated in."""
    signature: List[Param]
    body: Expr
    # Closures compare by code only; the captured environment is ignored.
    env: 'Environment' = field(default=None, compare=False, repr=False)
    name: Optional[str] = field(default=None, compare=False)


@dataclass
class Builtin:
    """A function implemented in Python.

    `body(args, evaluator)` receives the raw argument values and the calling
    evaluator so it can call back into user closures.
    """
    name: str
    signature: List[Param]
    body: Callable[[List[Any], 'Evaluator'], Any] = field(compare=False, repr=False)
    max_arg_count: Optional[int] = None


FnValue = Union[Closure, Builtin]
Value = Union[Number, Bool, String, Symbol, ListLiteral, Closure, Builtin]


def is_function(obj: Any) -> bool:
    return isinstance(obj, (Closure, Builtin))


def value_as_bool(value: Value) -> bool:
    """Only `#f` is false; every other value, including `()` and 0, is true."""
    return not (isinstance(value, Bool) and value.value is False)


def list_value_as_vector(value: ListLiteral) -> Optional[List[Value]]:
    """The elements of a proper list, or None if the list is improper."""
    out = list(value.heads)
    tail = value.tail
    while tail is not None:
        if not isinstance(tail, ListLiteral):
            return None
        out.extend(tail.heads)
        tail = tail.tail
    return out


def get_variadic(index: int, args: List[Value]) -> List[Value]:
    return list(args[index:])


def datum_equal(a: Any, b: Any) -> bool:
    """Structural equality of data, treating `(1 . (2))` and `(1 2)` alike."""
    if isinstance(a, ListLiteral) and isinstance(b, ListLiteral):
        va, vb = _flatten_list(a), _flatten_list(b)
        if len(va[0]) != len(vb[0]):
            return False
        if not all(datum_equal(x, y) for x, y in zip(va[0], vb[0])):
            return False
        if va[1] is None or vb[1] is None:
            return va[1] is None and vb[1] is None
        return datum_equal(va[1], vb[1])
    if isinstance(a, Number) and isinstance(b, Number):
        return a.value == b.value
    return type(a) is type(b) and a == b


def _flatten_list(value: ListLiteral) -> Tuple[List[Any], Optional[Any]]:
    heads = list(value.heads)
    tail = value.tail
    while isinstance(tail, ListLiteral):
        heads.extend(tail.heads)
        tail = tail.tail
    return heads, tail
