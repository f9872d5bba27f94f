"""
Static types for sprig expressions, and substitution over type variables.

A type is one of:
  - ConcreteType: a tag plus ordered type parameters, e.g. `List[Number]`
    or `Function[Number, String]` (the last parameter of a function type is
    always its result type). `VariadicFunctionType` (tag `Function*`)
    additionally carries argument-count bounds.
  - TypeVar: a named placeholder for an unconstrained type, e.g. the `a` in
    the identity function's `Function[a, a]`.
  - ForallType: universal quantification of a body over type-variable slots.
  - TypeVarSlot: a naming placeholder used when editing the names bound by a
    ForallType. It carries no checking semantics.

Types are immutable; every transform returns a new type.
"""
from typing import Callable, Dict, List, Optional, Sequence, Union


class ConcreteType:
    """A tagged type with ordered type parameters."""
    def __init__(self, tag: str, of: Optional[Sequence['Type']] = None):
        self.tag = tag
        self.of = tuple(of) if of else ()

    def with_params(self, of: Sequence['Type']) -> 'ConcreteType':
        return ConcreteType(self.tag, of)

    def __eq__(self, other):
        return (
            isinstance(other, ConcreteType)
            and type(other) is type(self)
            and self.tag == other.tag
            and self.of == other.of
        )

    def __hash__(self):
        return hash((self.tag, self.of))

    def __repr__(self) -> str:
        from sprig.sprig_printer import Printer
        return Printer().pformat(self)


class VariadicFunctionType(ConcreteType):
    """`Function*[params..., result]` accepting between `min_arg_count` and
    `max_arg_count` arguments (either bound may be absent). Arguments past the
    declared parameters take the type of the last declared parameter."""
    def __init__(self, of: Sequence['Type'], min_arg_count: Optional[int] = None,
                 max_arg_count: Optional[int] = None):
        super().__init__("Function*", of)
        self.min_arg_count = min_arg_count
        self.max_arg_count = max_arg_count

    def with_params(self, of: Sequence['Type']) -> 'VariadicFunctionType':
        return VariadicFunctionType(of, self.min_arg_count, self.max_arg_count)

    def __eq__(self, other):
        return (
            super().__eq__(other)
            and self.min_arg_count == other.min_arg_count
            and self.max_arg_count == other.max_arg_count
        )

    def __hash__(self):
        return hash((self.tag, self.of, self.min_arg_count, self.max_arg_count))


class TypeVar:
    def __init__(self, name: str):
        self.name = name

    def __eq__(self, other):
        return isinstance(other, TypeVar) and self.name == other.name

    def __hash__(self):
        return hash(("var", self.name))

    def __repr__(self) -> str:
        return f"TypeVar({self.name!r})"


class TypeVarSlot:
    """A type-variable name position inside a ForallType: either a hole
    (`id is None`) or a bound name."""
    def __init__(self, id: Optional[str] = None):
        self.id = id

    @property
    def is_hole(self) -> bool:
        return self.id is None

    def __eq__(self, other):
        return isinstance(other, TypeVarSlot) and self.id == other.id

    def __hash__(self):
        return hash(("slot", self.id))

    def __repr__(self) -> str:
        return f"TypeVarSlot({self.id!r})"


class ForallType:
    def __init__(self, forall: Sequence[TypeVarSlot], body: 'Type'):
        self.forall = tuple(forall)
        self.body = body

    def __eq__(self, other):
        return isinstance(other, ForallType) and self.forall == other.forall and self.body == other.body

    def __hash__(self):
        return hash((self.forall, self.body))

    def __repr__(self) -> str:
        from sprig.sprig_printer import Printer
        return Printer().pformat(self)


Type = Union[ConcreteType, TypeVar, ForallType, TypeVarSlot]

# =================================================================
# Builtin types
# =================================================================

Any = ConcreteType("Any")
Never = ConcreteType("Never")
Null = ConcreteType("Null")
Number = ConcreteType("Number")
Integer = ConcreteType("Integer")
Boolean = ConcreteType("Boolean")
String = ConcreteType("String")
Symbol = ConcreteType("Symbol")

BUILTIN_TAGS = frozenset([
    "Any", "Never", "Null", "Number", "Integer", "Boolean", "String", "Symbol",
    "List", "Function", "Function*", "Promise",
])


def list_of(element: Type) -> ConcreteType:
    return ConcreteType("List", [element])


def function_of(*params_and_result: Type) -> ConcreteType:
    """`function_of(a, b, r)` is `Function[a, b, r]`: takes a and b, returns r."""
    return ConcreteType("Function", params_and_result)


def promise_of(value: Type) -> ConcreteType:
    return ConcreteType("Promise", [value])


def forall(names: Sequence[str], body: Type) -> ForallType:
    return ForallType([TypeVarSlot(name) for name in names], body)


# =================================================================
# Queries
# =================================================================

def is_type_var(t: Type) -> bool:
    return isinstance(t, TypeVar)


def is_forall_type(t: Type) -> bool:
    return isinstance(t, ForallType)


def is_type_var_slot(t: Type) -> bool:
    return isinstance(t, TypeVarSlot)


def is_concrete_type(t: Type) -> bool:
    return isinstance(t, ConcreteType)


def type_params(t: Type) -> List[Type]:
    match t:
        case TypeVar() | TypeVarSlot():
            return []
        case ForallType():
            return type_params(t.body)
        case ConcreteType():
            return list(t.of)
    raise TypeError(f"not a type: {t!r}")


def function_param_types(fn_type: Type) -> List[Type]:
    return type_params(fn_type)[:-1]


def function_result_type(fn_type: Type) -> Type:
    params = type_params(fn_type)
    return params[-1] if params else Any


def has_tag(t: Type, tag: str) -> bool:
    return isinstance(t, ConcreteType) and t.tag == tag


def is_function_type(t: Type) -> bool:
    return has_tag(t, "Function") or has_tag(t, "Function*")


def is_type_var_bound_by(name: str, t: ForallType) -> bool:
    return any(slot.id == name for slot in t.forall)


def type_structure_map(t: Type, fn: Callable[[Type], Type]) -> Type:
    """Rebuild `t` with `fn` applied to each immediate type parameter.

    Type variables, slots and quantifiers come back unchanged; this is the
    primitive every other structural transform is built on.
    """
    if not isinstance(t, ConcreteType):
        return t
    return t.with_params([fn(param) for param in t.of])


def has_no_type_var(t: Type) -> bool:
    """True when no type variable (free or bound) appears anywhere in `t`."""
    match t:
        case TypeVar():
            return False
        case TypeVarSlot():
            return True
        case ForallType():
            return has_no_type_var(t.body)
        case ConcreteType():
            return all(has_no_type_var(param) for param in t.of)
    raise TypeError(f"not a type: {t!r}")


def free_type_vars(t: Type) -> List[str]:
    """Names of free type variables in `t`, in first-occurrence order."""
    out: List[str] = []

    def visit(node: Type, bound: frozenset):
        match node:
            case TypeVar():
                if node.name not in bound and node.name not in out:
                    out.append(node.name)
            case ForallType():
                visit(node.body, bound | {slot.id for slot in node.forall if slot.id is not None})
            case ConcreteType():
                for param in node.of:
                    visit(param, bound)

    visit(t, frozenset())
    return out


# =================================================================
# Substitution
# =================================================================

TypeSubstitution = Dict[str, Type]


def substitute(t: Type, sub: TypeSubstitution) -> Type:
    """Replace every free type variable named in `sub` by its mapped type.

    Variables rebound by an enclosing ForallType are shadowed and left alone.
    Nothing is renamed: a mapped type mentioning a name the quantifier binds
    will be captured by it.
    """
    match t:
        case TypeVarSlot():
            return t
        case TypeVar():
            return sub.get(t.name, t)
        case ForallType():
            inner = {name: value for name, value in sub.items() if not is_type_var_bound_by(name, t)}
            return ForallType(t.forall, substitute(t.body, inner))
        case ConcreteType():
            return type_structure_map(t, lambda param: substitute(param, sub))
    raise TypeError(f"not a type: {t!r}")


def occurs(name: str, t: Type) -> bool:
    """Whether `name` occurs free in `t`."""
    match t:
        case TypeVar():
            return t.name == name
        case ForallType():
            if is_type_var_bound_by(name, t):
                # Shadowed
                return False
            return occurs(name, t.body)
        case ConcreteType():
            return any(occurs(name, param) for param in t.of)
        case TypeVarSlot():
            return False
    raise TypeError(f"not a type: {t!r}")


def instantiate(t: Type, sub: TypeSubstitution) -> Type:
    """Strip one quantifier from `t`, substituting `sub` into its body."""
    if isinstance(t, ForallType):
        return substitute(t.body, sub)
    return substitute(t, sub)
