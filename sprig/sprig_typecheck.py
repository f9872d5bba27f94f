"""
Signature checks for function calls.

Two levels are provided:
  - `check_call_against_signature` runs at every call in the evaluator and
    validates argument values against a function value's signature (arity
    and declared tag names).
  - `check_call_type` validates argument *types* against a function type,
    such as one built from a builtin's documented attributes. It checks tags
    and arity only; type variables accept anything and nothing is unified.
"""
from typing import Any as AnyValue, List, Optional

from sprig.sprig_datatypes import (
    Number as NumberExpr, Bool, String as StringExpr, Symbol as SymbolExpr,
    ListLiteral, Closure, Builtin, Param, is_function,
)
from sprig.sprig_errors import ArityMismatch, NotCallable, TypeMismatch
from sprig.sprig_types import (
    Type, ConcreteType, VariadicFunctionType, TypeVar, ForallType, TypeVarSlot,
    Any, Boolean, Integer, Number, String, Symbol, forall, free_type_vars,
    function_param_types, function_result_type, is_function_type,
)

# Tags accepted where a parameter declares the key tag.
_COMPATIBLE_TAGS = {
    "Number": {"Number", "Integer"},
    "Function": {"Function", "Function*"},
    "Function*": {"Function", "Function*"},
}


def _is_integral(n) -> bool:
    return isinstance(n, int) or (isinstance(n, float) and n.is_integer())


def value_has_tag(value: AnyValue, tag: str) -> bool:
    """Whether a runtime value belongs to the builtin type named by `tag`."""
    match tag:
        case "Any":
            return True
        case "Never" | "Promise":
            return False
        case "Number":
            return isinstance(value, NumberExpr)
        case "Integer":
            return isinstance(value, NumberExpr) and _is_integral(value.value)
        case "Boolean":
            return isinstance(value, Bool)
        case "String":
            return isinstance(value, StringExpr)
        case "Symbol":
            return isinstance(value, SymbolExpr)
        case "List":
            return isinstance(value, ListLiteral)
        case "Null":
            return isinstance(value, ListLiteral) and not value.heads and value.tail is None
        case "Function" | "Function*":
            return is_function(value)
    return False


def _describe(value: AnyValue) -> str:
    from sprig.sprig_printer import Printer
    return Printer().pformat(value)


def check_call_against_signature(args: List[AnyValue], signature: List[Param],
                                 max_arg_count: Optional[int] = None, name: Optional[str] = None):
    """Validate `args` against a function signature; raises on mismatch.

    Without a variadic last parameter the argument count must match exactly;
    with one, at least the fixed parameters must be supplied.
    """
    variadic = signature[-1] if signature and signature[-1].variadic else None
    fixed = signature[:-1] if variadic else signature
    label = f"'{name}'" if name else "function"

    if variadic is None and len(args) != len(fixed):
        raise ArityMismatch(f"{label} expects {len(fixed)} argument(s), got {len(args)}")
    if variadic is not None and len(args) < len(fixed):
        raise ArityMismatch(f"{label} expects at least {len(fixed)} argument(s), got {len(args)}")
    if max_arg_count is not None and len(args) > max_arg_count:
        raise ArityMismatch(f"{label} expects at most {max_arg_count} argument(s), got {len(args)}")

    for i, arg in enumerate(args):
        param = fixed[i] if i < len(fixed) else variadic
        if param.type and not value_has_tag(arg, param.type):
            raise TypeMismatch(
                f"argument {i + 1} ({param.name}) of {label} must be {param.type}, got {_describe(arg)}",
                expr=arg,
            )


# =================================================================
# Static checks
# =================================================================

def _strip_forall(t: Type) -> Type:
    while isinstance(t, ForallType):
        t = t.body
    return t


def is_assignable(arg_type: Type, param_type: Type) -> bool:
    """Tag-level compatibility of an argument type with a parameter type."""
    arg_type, param_type = _strip_forall(arg_type), _strip_forall(param_type)
    if isinstance(arg_type, (TypeVar, TypeVarSlot)) or isinstance(param_type, (TypeVar, TypeVarSlot)):
        return True
    if param_type.tag == "Any" or arg_type.tag in ("Any", "Never"):
        return True
    if arg_type.tag not in _COMPATIBLE_TAGS.get(param_type.tag, {param_type.tag}):
        return False
    if arg_type.tag != param_type.tag or not arg_type.of or not param_type.of:
        return True
    if len(arg_type.of) != len(param_type.of):
        return False
    return all(is_assignable(a, p) for a, p in zip(arg_type.of, param_type.of))


def check_call_type(fn_type: Type, arg_types: List[Type]) -> Type:
    """Check a call of a function of type `fn_type`; returns the result type."""
    body = _strip_forall(fn_type)
    if isinstance(body, TypeVar):
        return Any
    if not is_function_type(body):
        raise NotCallable(f"cannot call a value of type {body!r}")

    params = function_param_types(body)
    count = len(arg_types)
    if isinstance(body, VariadicFunctionType):
        lower = body.min_arg_count or 0
        if count < lower:
            raise ArityMismatch(f"expected at least {lower} argument(s), got {count}")
        if body.max_arg_count is not None and count > body.max_arg_count:
            raise ArityMismatch(f"expected at most {body.max_arg_count} argument(s), got {count}")
    elif count != len(params):
        raise ArityMismatch(f"expected {len(params)} argument(s), got {count}")

    for i, arg_type in enumerate(arg_types):
        if params:
            param_type = params[min(i, len(params) - 1)]
        else:
            param_type = Any
        if not is_assignable(arg_type, param_type):
            raise TypeMismatch(f"argument {i + 1} has type {arg_type!r}, expected {param_type!r}")
    return function_result_type(body)


def binding_type(attributes) -> Type:
    """The function type documented by a binding's attributes, quantified
    over its free type variables."""
    params = list(attributes.arg_types or [])
    t = VariadicFunctionType(
        [*params, attributes.ret_type or Any],
        attributes.min_arg_count,
        attributes.max_arg_count,
    )
    names = free_type_vars(t)
    return forall(names, t) if names else t


def value_type(value: AnyValue) -> Type:
    """The most specific builtin type of a runtime value."""
    match value:
        case NumberExpr():
            return Integer if _is_integral(value.value) else Number
        case Bool():
            return Boolean
        case StringExpr():
            return String
        case SymbolExpr():
            return Symbol
        case ListLiteral():
            return ConcreteType("List")
        case Closure() | Builtin():
            return signature_type(value.signature)
    raise TypeError(f"not a value: {value!r}")


def signature_type(signature: List[Param]) -> Type:
    def param_type(param: Param) -> Type:
        return ConcreteType(param.type) if param.type else Any

    if signature and signature[-1].variadic:
        fixed = signature[:-1]
        return VariadicFunctionType(
            [*map(param_type, fixed), param_type(signature[-1]), Any],
            min_arg_count=len(fixed),
        )
    return ConcreteType("Function", [*map(param_type, signature), Any])
